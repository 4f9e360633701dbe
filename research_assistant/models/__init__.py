from .llm import FunctionCallInfo, ModelResponse, PromptOptions
from .plan import (
	ExecutionOptions,
	ExecutionPhase,
	ExecutionPlan,
	ExecutionStatus,
	InvalidTransitionError,
	PlanRevision,
	ReportPlan,
	ReportSection,
	SectionTask,
	TaskStatus,
)
from .report import Citation, Report, ReportContent
from .search import SearchOptions, SearchResult, SearchResultSet

__all__ = [
	'FunctionCallInfo',
	'ModelResponse',
	'PromptOptions',
	'ExecutionOptions',
	'ExecutionPhase',
	'ExecutionPlan',
	'ExecutionStatus',
	'InvalidTransitionError',
	'PlanRevision',
	'ReportPlan',
	'ReportSection',
	'SectionTask',
	'TaskStatus',
	'Citation',
	'Report',
	'ReportContent',
	'SearchOptions',
	'SearchResult',
	'SearchResultSet',
]
