from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from research_assistant.models.search import SearchOptions, SearchResult, SearchResultSet


class InvalidTransitionError(ValueError):
	pass


class ExecutionPhase(Enum):
	INITIAL = 'initial'
	BODY = 'body'
	FINAL = 'final'


class ExecutionStatus(Enum):
	READY = 'ready'
	IN_PROGRESS = 'in_progress'
	PAUSED = 'paused'
	COMPLETED = 'completed'
	FAILED = 'failed'


class TaskStatus(Enum):
	PENDING = 'pending'
	IN_PROGRESS = 'in_progress'
	PAUSED = 'paused'
	COMPLETED = 'completed'
	FAILED = 'failed'


# Failed stays in the enum but no plan transition reaches it; section failures are per task.
_PLAN_TRANSITIONS: dict[ExecutionStatus, set[ExecutionStatus]] = {
	ExecutionStatus.READY: {ExecutionStatus.IN_PROGRESS},
	ExecutionStatus.IN_PROGRESS: {ExecutionStatus.COMPLETED, ExecutionStatus.PAUSED},
	ExecutionStatus.PAUSED: set(),
	ExecutionStatus.COMPLETED: set(),
	ExecutionStatus.FAILED: set(),
}

# COMPLETED -> FAILED covers a failed introduction rewrite.
_TASK_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
	TaskStatus.PENDING: {TaskStatus.IN_PROGRESS},
	TaskStatus.IN_PROGRESS: {TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.PAUSED},
	TaskStatus.COMPLETED: {TaskStatus.FAILED},
	TaskStatus.PAUSED: set(),
	TaskStatus.FAILED: set(),
}


def _now() -> datetime:
	return datetime.now(UTC)


@dataclass(frozen=True)
class ReportSection:
	id: str
	number: int
	name: str
	description: str = ''
	requires_research: bool = True
	execution_phase: ExecutionPhase = ExecutionPhase.BODY


@dataclass(frozen=True)
class PlanRevision:
	timestamp: datetime
	feedback: str
	previous_sections: list[ReportSection]


@dataclass
class ReportPlan:
	id: str
	topic: str
	sections: list[ReportSection]
	organization: str = ''
	created_at: datetime = field(default_factory=_now)
	revision_history: list[PlanRevision] = field(default_factory=list)
	tokens_used: int = 0


@dataclass
class ExecutionOptions:
	max_concurrent_sections: int = 3
	max_search_queries_per_section: int = 3
	# Accepted from config for compatibility; the engine does not read these two.
	include_reflection: bool = True
	pause_after_each_section: bool = False
	include_non_research_sections: bool = False
	search_options: SearchOptions | None = None


@dataclass
class SectionTask:
	"""Mutable execution state for one outline section.

	Only the routine processing this section writes to it while a phase
	batch is running.
	"""

	section_id: str
	section_name: str
	description: str
	max_search_queries: int
	status: TaskStatus = TaskStatus.PENDING
	search_results: list[SearchResultSet] = field(default_factory=list)
	content: str = ''
	is_revised: bool = False
	error_message: str | None = None
	tokens_used: int = 0
	started_at: datetime | None = None
	completed_at: datetime | None = None

	def _transition(self, target: TaskStatus):
		if target not in _TASK_TRANSITIONS[self.status]:
			raise InvalidTransitionError(
				f"Task '{self.section_name}' cannot move from {self.status.value} to {target.value}"
			)
		self.status = target

	def start(self):
		self._transition(TaskStatus.IN_PROGRESS)
		if self.started_at is None:
			self.started_at = _now()

	def complete(self, content: str):
		if not content or not content.strip():
			raise InvalidTransitionError(f"Task '{self.section_name}' cannot complete with empty content")
		self._transition(TaskStatus.COMPLETED)
		self.content = content
		if self.completed_at is None:
			self.completed_at = _now()

	def fail(self, message: str):
		self._transition(TaskStatus.FAILED)
		self.error_message = message or 'Unknown error'

	def pause(self):
		self._transition(TaskStatus.PAUSED)

	def revise(self, content: str):
		if self.status != TaskStatus.COMPLETED:
			raise InvalidTransitionError(f"Task '{self.section_name}' must be completed before it is revised")
		if not content or not content.strip():
			raise InvalidTransitionError(f"Revision of '{self.section_name}' returned empty content")
		self.content = content
		self.is_revised = True

	def add_results(self, query: str, results: list[SearchResult]):
		self.search_results.append(SearchResultSet(query=query, results=results, timestamp=_now()))

	def all_results(self) -> list[SearchResult]:
		"""Results of every query in order; `[Source k]` is index k-1."""
		return [result for result_set in self.search_results for result in result_set.results]


@dataclass
class ExecutionPlan:
	plan_id: str
	topic: str
	approved_plan: ReportPlan
	tasks: dict[str, SectionTask]
	max_concurrent_sections: int = 3
	status: ExecutionStatus = ExecutionStatus.READY
	search_options: SearchOptions | None = None
	created_at: datetime = field(default_factory=_now)
	started_at: datetime | None = None
	completed_at: datetime | None = None

	def __post_init__(self):
		if self.max_concurrent_sections < 1:
			raise ValueError('max_concurrent_sections must be a positive integer')

	@property
	def approved_sections(self) -> list[ReportSection]:
		return self.approved_plan.sections

	def _transition(self, target: ExecutionStatus):
		if target not in _PLAN_TRANSITIONS[self.status]:
			raise InvalidTransitionError(f'Plan {self.plan_id} cannot move from {self.status.value} to {target.value}')
		self.status = target

	def start(self):
		self._transition(ExecutionStatus.IN_PROGRESS)
		self.started_at = _now()

	def complete(self):
		self._transition(ExecutionStatus.COMPLETED)
		self.completed_at = _now()

	def pause(self):
		self._transition(ExecutionStatus.PAUSED)

	def get_section(self, section_id: str) -> ReportSection | None:
		for section in self.approved_sections:
			if section.id == section_id:
				return section
		return None

	def get_phase(self, task: SectionTask) -> ExecutionPhase:
		section = self.get_section(task.section_id)
		return section.execution_phase if section else ExecutionPhase.BODY

	def ordered_sections(self) -> list[ReportSection]:
		return sorted(self.approved_sections, key=lambda s: s.number)

	def adjacent_sections(self, section_id: str) -> tuple[ReportSection | None, ReportSection | None]:
		ordered = self.ordered_sections()
		for index, section in enumerate(ordered):
			if section.id == section_id:
				previous = ordered[index - 1] if index > 0 else None
				following = ordered[index + 1] if index < len(ordered) - 1 else None
				return previous, following
		return None, None

	def get_progress(self) -> dict[str, int | float]:
		total = len(self.tasks)
		counts = {status: 0 for status in TaskStatus}
		for task in self.tasks.values():
			counts[task.status] += 1

		completed = counts[TaskStatus.COMPLETED]
		return {
			'total_sections': total,
			'completed': completed,
			'in_progress': counts[TaskStatus.IN_PROGRESS],
			'pending': counts[TaskStatus.PENDING],
			'paused': counts[TaskStatus.PAUSED],
			'failed': counts[TaskStatus.FAILED],
			'progress_percentage': (completed / total * 100) if total > 0 else 0,
		}
