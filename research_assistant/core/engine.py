import asyncio
from collections.abc import Callable
from typing import TYPE_CHECKING

from research_assistant.core.cancellation import CancellationToken, OperationCancelledError
from research_assistant.core.compiler import ReportCompiler
from research_assistant.core.gate import AdmissionGate
from research_assistant.generators import SectionGenerator
from research_assistant.models import ExecutionPhase, ExecutionPlan, Report, SectionTask, TaskStatus
from research_assistant.research.researcher import SectionResearcher
from research_assistant.research.search_tool import NullSearchTool, SearchTool
from research_assistant.utils.logger import logger

if TYPE_CHECKING:
	from research_assistant.llm.connector import ModelConnector

TaskHook = Callable[[SectionTask], None]


class ExecutionCancelledError(Exception):
	def __init__(self, plan: ExecutionPlan):
		super().__init__(f'Execution of plan {plan.plan_id} was cancelled')
		self.plan = plan


class ExecutionEngine:
	"""Drives an execution plan's section tasks to completion and compiles the report.

	Introduction and body sections run first as one bounded-parallel batch.
	The introduction is then rewritten against the finished body, and only
	after that do the conclusion sections run. A failing section is recorded
	on its task and never stops the batch.
	"""

	def __init__(
		self,
		connector: 'ModelConnector',
		search_tool: SearchTool | None = None,
		compiler: ReportCompiler | None = None,
		generator: SectionGenerator | None = None,
		on_task_started: TaskHook | None = None,
		on_task_finished: TaskHook | None = None,
	):
		self.connector = connector
		self.search_tool = search_tool or NullSearchTool()
		self.researcher = SectionResearcher(connector, self.search_tool)
		self.generator = generator or SectionGenerator(connector)
		self.compiler = compiler or ReportCompiler()
		self.on_task_started = on_task_started
		self.on_task_finished = on_task_finished
		self.peak_concurrency = 0

	async def execute(self, plan: ExecutionPlan, token: CancellationToken | None = None) -> Report:
		if plan is None:
			raise ValueError('Execution plan cannot be None')

		token = token or CancellationToken()
		plan.start()
		logger.info(f"Executing plan {plan.plan_id} for '{plan.topic}' with {len(plan.tasks)} sections")

		non_final, final = self._partition(plan)

		try:
			logger.info(f'Phase 1: writing {len(non_final)} introduction and body sections')
			await self._run_batch(non_final, plan, token)
			token.raise_if_cancelled()

			await self._revise_introduction(plan, non_final, token)
			token.raise_if_cancelled()

			logger.info(f'Phase 2: writing {len(final)} concluding sections')
			await self._run_batch(final, plan, token)
			token.raise_if_cancelled()
		except OperationCancelledError:
			plan.pause()
			logger.warning(f'Execution of plan {plan.plan_id} cancelled: {plan.get_progress()}')
			raise ExecutionCancelledError(plan) from None

		report = self.compiler.compile(plan)
		plan.complete()

		progress = plan.get_progress()
		logger.info(
			f'Plan {plan.plan_id} finished: {progress["completed"]} completed, {progress["failed"]} failed'
		)
		return report

	def _partition(self, plan: ExecutionPlan) -> tuple[list[SectionTask], list[SectionTask]]:
		non_final, final = [], []
		for task in plan.tasks.values():
			if plan.get_phase(task) == ExecutionPhase.FINAL:
				final.append(task)
			else:
				non_final.append(task)
		return non_final, final

	async def _run_batch(self, tasks: list[SectionTask], plan: ExecutionPlan, token: CancellationToken):
		if not tasks:
			return

		gate = AdmissionGate(plan.max_concurrent_sections)
		running: list[asyncio.Task] = []

		try:
			for task in tasks:
				await gate.acquire(token)
				running.append(asyncio.create_task(self._run_gated(task, plan, gate, token)))
		except OperationCancelledError:
			logger.warning('Cancellation requested, no further sections will be started')
		finally:
			await asyncio.gather(*running, return_exceptions=True)
			self.peak_concurrency = max(self.peak_concurrency, gate.peak)

	async def _run_gated(
		self, task: SectionTask, plan: ExecutionPlan, gate: AdmissionGate, token: CancellationToken
	):
		try:
			if token.is_cancelled:
				return
			await self._process_task(task, plan, token)
		finally:
			gate.release()

	async def _process_task(self, task: SectionTask, plan: ExecutionPlan, token: CancellationToken):
		task.start()
		self._notify(self.on_task_started, task)
		logger.info(f"Starting section '{task.section_name}'")

		try:
			section = plan.get_section(task.section_id)
			if section is None or section.requires_research:
				await self.researcher.research(task, plan.topic, plan.search_options, token)

			content = await self.generator.write(task, plan, token)
			task.complete(content)
			logger.info(f"Section '{task.section_name}' completed ({task.tokens_used} tokens)")
		except OperationCancelledError:
			task.pause()
			logger.warning(f"Section '{task.section_name}' interrupted by cancellation")
		except Exception as e:
			task.fail(str(e) or type(e).__name__)
			logger.error(f"Section '{task.section_name}' failed: {task.error_message}")
		finally:
			self._notify(self.on_task_finished, task)

	async def _revise_introduction(self, plan: ExecutionPlan, tasks: list[SectionTask], token: CancellationToken):
		intro = next(
			(
				t
				for t in tasks
				if plan.get_phase(t) == ExecutionPhase.INITIAL and t.status == TaskStatus.COMPLETED
			),
			None,
		)
		if intro is None:
			return

		numbers = {section.id: section.number for section in plan.approved_sections}
		completed = sorted(
			(t for t in tasks if t is not intro and t.status == TaskStatus.COMPLETED),
			key=lambda t: numbers.get(t.section_id, 0),
		)

		logger.info(f"Revising introduction '{intro.section_name}' against {len(completed)} completed sections")
		try:
			content = await self.generator.revise_introduction(intro, completed, plan.topic, token)
			intro.revise(content)
		except OperationCancelledError:
			raise
		except Exception as e:
			intro.fail(f'Introduction revision failed: {e}')
			logger.error(f"Revision of '{intro.section_name}' failed: {e}")

	@staticmethod
	def _notify(hook: TaskHook | None, task: SectionTask):
		if hook is not None:
			hook(task)
