import json
import uuid
from dataclasses import asdict
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from research_assistant.core.cancellation import CancellationToken, OperationCancelledError
from research_assistant.generators.prompts import DEFAULT_ORGANIZATION, PLAN_GENERATION_PROMPT, PLAN_REVISION_PROMPT
from research_assistant.models import (
	ExecutionOptions,
	ExecutionPlan,
	ExecutionStatus,
	PlanRevision,
	PromptOptions,
	ReportPlan,
	SectionTask,
)
from research_assistant.parsers import OutlineParser
from research_assistant.utils.logger import logger

if TYPE_CHECKING:
	from research_assistant.llm.connector import ModelConnector


class PlanningError(Exception):
	pass


class PlannerService:
	def __init__(self, connector: 'ModelConnector', parser: OutlineParser | None = None):
		self.connector = connector
		self.parser = parser or OutlineParser()

	async def generate_initial_plan(
		self,
		topic: str,
		organization: str | None = None,
		context: str = '',
		options: PromptOptions | None = None,
		token: CancellationToken | None = None,
	) -> ReportPlan:
		if not topic or not topic.strip():
			raise ValueError('Topic cannot be empty')

		logger.info(f'Generating report plan for: {topic}')
		prompt = PLAN_GENERATION_PROMPT.format(
			topic=topic,
			organization=organization or DEFAULT_ORGANIZATION,
			context=context or 'None',
		)
		options = options or PromptOptions(temperature=0.2, max_tokens=2048, include_citations=False)

		try:
			response = await self.connector.send(prompt, options, token)
			sections = self.parser.parse(response.content)
		except OperationCancelledError:
			raise
		except Exception as e:
			raise PlanningError(f'Failed to generate plan: {e}') from e

		if not sections:
			logger.warning('Planner response contained no sections')

		plan = ReportPlan(
			id=str(uuid.uuid4()),
			topic=topic,
			sections=sections,
			organization=organization or '',
			tokens_used=response.tokens_used,
		)
		logger.info(f'Generated plan with {len(sections)} sections')
		return plan

	async def revise_with_feedback(
		self,
		plan: ReportPlan,
		feedback: str,
		options: PromptOptions | None = None,
		token: CancellationToken | None = None,
	) -> ReportPlan:
		if plan is None:
			raise ValueError('Plan cannot be None')
		if not feedback or not feedback.strip():
			raise ValueError('Feedback cannot be empty')

		logger.info(f'Revising plan {plan.id} with feedback')
		sections_json = json.dumps(
			[
				{
					'number': s.number,
					'name': s.name,
					'description': s.description,
					'requires_research': s.requires_research,
				}
				for s in plan.sections
			],
			indent=2,
		)
		prompt = PLAN_REVISION_PROMPT.format(topic=plan.topic, sections=sections_json, feedback=feedback)
		options = options or PromptOptions(temperature=0.4, max_tokens=2048, include_citations=False)

		try:
			response = await self.connector.send(prompt, options, token)
			sections = self.parser.parse(response.content)
		except OperationCancelledError:
			raise
		except Exception as e:
			raise PlanningError(f'Failed to revise plan: {e}') from e

		revision = PlanRevision(
			timestamp=datetime.now(UTC),
			feedback=feedback,
			previous_sections=list(plan.sections),
		)
		return ReportPlan(
			id=str(uuid.uuid4()),
			topic=plan.topic,
			sections=sections,
			organization=plan.organization,
			revision_history=[*plan.revision_history, revision],
			tokens_used=plan.tokens_used + response.tokens_used,
		)

	def prepare_for_execution(
		self, plan: ReportPlan, execution_options: ExecutionOptions | None = None
	) -> ExecutionPlan:
		if plan is None:
			raise ValueError('Plan cannot be None')

		options = execution_options or ExecutionOptions()
		tasks: dict[str, SectionTask] = {}

		for section in sorted(plan.sections, key=lambda s: s.number):
			if not section.requires_research and not options.include_non_research_sections:
				logger.debug(f"Section '{section.name}' does not require research, no task created")
				continue

			tasks[section.id] = SectionTask(
				section_id=section.id,
				section_name=section.name,
				description=section.description,
				max_search_queries=options.max_search_queries_per_section,
			)

		execution_plan = ExecutionPlan(
			plan_id=str(uuid.uuid4()),
			topic=plan.topic,
			approved_plan=plan,
			tasks=tasks,
			max_concurrent_sections=options.max_concurrent_sections,
			status=ExecutionStatus.READY,
			search_options=options.search_options,
		)
		logger.info(f'Prepared execution plan {execution_plan.plan_id} with {len(tasks)} tasks')
		return execution_plan

	@staticmethod
	def describe(plan: ReportPlan) -> str:
		return json.dumps([asdict(s) | {'execution_phase': s.execution_phase.value} for s in plan.sections], indent=2)
