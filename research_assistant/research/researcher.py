from typing import TYPE_CHECKING

from research_assistant.core.cancellation import CancellationToken, OperationCancelledError
from research_assistant.generators.prompts import QUERY_GENERATION_PROMPT
from research_assistant.models import PromptOptions, SearchOptions, SectionTask
from research_assistant.parsers import parse_numbered_list
from research_assistant.research.search_tool import NullSearchTool, SearchTool
from research_assistant.utils.logger import logger

if TYPE_CHECKING:
	from research_assistant.llm.connector import ModelConnector


class SectionResearcher:
	"""Generates search queries for a section and collects their results into the task."""

	def __init__(self, connector: 'ModelConnector', search_tool: SearchTool):
		self.connector = connector
		self.search_tool = search_tool

	async def research(
		self,
		task: SectionTask,
		topic: str,
		search_options: SearchOptions | None = None,
		token: CancellationToken | None = None,
	):
		if isinstance(self.search_tool, NullSearchTool):
			logger.debug(f"Search disabled, skipping research for '{task.section_name}'")
			return

		queries = await self.generate_queries(task, topic, token)
		logger.info(f"Researching '{task.section_name}' with {len(queries)} queries")

		for query in queries:
			if token:
				token.raise_if_cancelled()

			logger.debug(f'Searching: {query}')
			try:
				results = await self.search_tool.search(query, search_options, token)
			except OperationCancelledError:
				raise
			except Exception as e:
				logger.error(f"Search failed for query '{query}': {e}")
				continue

			if not results:
				logger.warning(f"No results for query '{query}'")
				continue

			task.add_results(query, results)

	async def generate_queries(self, task: SectionTask, topic: str, token: CancellationToken | None = None) -> list[str]:
		if task.max_search_queries < 1:
			return []

		prompt = QUERY_GENERATION_PROMPT.format(
			count=task.max_search_queries,
			topic=topic,
			section_name=task.section_name,
			description=task.description,
		)
		response = await self.connector.send(
			prompt, PromptOptions(temperature=0.3, max_tokens=500, include_citations=False), token
		)
		task.tokens_used += response.tokens_used

		queries = list(dict.fromkeys(parse_numbered_list(response.content)))
		return queries[: task.max_search_queries]
