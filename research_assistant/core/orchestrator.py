import asyncio
import time
from pathlib import Path

from research_assistant.config.settings import Settings
from research_assistant.config.settings import settings as default_settings
from research_assistant.core.cancellation import CancellationToken
from research_assistant.core.config_loader import ConfigLoader
from research_assistant.core.engine import ExecutionEngine
from research_assistant.core.planner import PlannerService, PlanningError
from research_assistant.core.progress import ProgressReporter
from research_assistant.export import MarkdownExporter
from research_assistant.generators import SectionGenerator
from research_assistant.llm.connector import ModelConnector, create_llm_connector_from_config
from research_assistant.models import ExecutionOptions, Report, TaskStatus
from research_assistant.research.search_tool import NullSearchTool, SearchTool, create_search_tool_from_config
from research_assistant.utils.logger import logger


class Orchestrator:
	def __init__(
		self,
		settings: Settings | None = None,
		config_loader: ConfigLoader | None = None,
		connector: ModelConnector | None = None,
		search_tool: SearchTool | None = None,
		execution_options: ExecutionOptions | None = None,
		use_search: bool = True,
		writing_temperature: float = 0.7,
		output_dir: Path | str | None = None,
		progress_interval: float = 2.0,
	):
		self.settings = settings or default_settings
		self.config = config_loader or ConfigLoader(settings=self.settings)

		if search_tool is None:
			search_tool = create_search_tool_from_config(self.config.get_search_config()) if use_search else None
		self.search_tool = search_tool or NullSearchTool()

		self.connector = connector or create_llm_connector_from_config(self.config.get_llm_config(), self.search_tool)
		self.execution_options = execution_options or self.config.get_execution_options()
		self.progress_interval = progress_interval

		self.planner = PlannerService(self.connector)
		self.engine = ExecutionEngine(
			self.connector,
			self.search_tool,
			generator=SectionGenerator(self.connector, temperature=writing_temperature),
		)
		self.exporter = MarkdownExporter(output_dir or self.settings.OUTPUT_DIR)

		logger.info(f'Orchestrator initialized with search tool: {type(self.search_tool).__name__}')

	async def run(
		self,
		topic: str,
		organization: str | None = None,
		context: str = '',
		feedback: list[str] | None = None,
		token: CancellationToken | None = None,
	) -> tuple[Report, Path]:
		token = token or CancellationToken()
		start_time = time.time()

		plan = await self.planner.generate_initial_plan(topic, organization, context, token=token)
		for item in feedback or []:
			plan = await self.planner.revise_with_feedback(plan, item, token=token)

		if not plan.sections:
			raise PlanningError(f'Planner produced no sections for: {topic}')

		logger.debug(f'Approved plan:\n{self.planner.describe(plan)}')
		execution_plan = self.planner.prepare_for_execution(plan, self.execution_options)

		reporter = ProgressReporter(execution_plan, interval=self.progress_interval)
		progress_token = token.linked()
		progress_task = asyncio.create_task(reporter.run(progress_token))
		try:
			report = await self.engine.execute(execution_plan, token)
		finally:
			progress_token.cancel()
			await progress_task

		output_path = self.exporter.export(report)

		failed = sum(1 for task in execution_plan.tasks.values() if task.status == TaskStatus.FAILED)
		logger.info(f'\n{"=" * 60}')
		logger.info('REPORT GENERATION COMPLETE')
		logger.info(f'{"=" * 60}')
		logger.info(f'Output: {output_path}')
		logger.info(f'Sections completed: {len(report.sections)}, failed: {failed}')
		logger.info(f'Citations: {len(report.citations)}')
		logger.info(f'Tokens used: {report.tokens_used + plan.tokens_used:,}')
		logger.info(f'Elapsed: {time.time() - start_time:.2f}s')
		logger.info(f'{"=" * 60}')

		return report, output_path

	async def close(self):
		await self.search_tool.close()
