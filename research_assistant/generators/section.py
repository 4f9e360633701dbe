import re
from typing import TYPE_CHECKING

from research_assistant.core.cancellation import CancellationToken
from research_assistant.generators.prompts import (
	INTRODUCTION_REVISION_PROMPT,
	SECTION_WRITING_PROMPT,
	format_adjacent,
	format_research,
)
from research_assistant.models import ExecutionPlan, PromptOptions, SectionTask
from research_assistant.utils.logger import logger

if TYPE_CHECKING:
	from research_assistant.llm.connector import ModelConnector


BLANK_LINE_PATTERN = re.compile(r'\r?\n[ \t]*\r?\n')


def first_paragraph(content: str) -> str:
	return BLANK_LINE_PATTERN.split(content.strip(), maxsplit=1)[0].strip()


class SectionGenerator:
	def __init__(self, connector: 'ModelConnector', temperature: float = 0.7, max_tokens: int = 2500):
		self.connector = connector
		self.temperature = temperature
		self.max_tokens = max_tokens

	async def write(self, task: SectionTask, plan: ExecutionPlan, token: CancellationToken | None = None) -> str:
		previous, following = plan.adjacent_sections(task.section_id)

		prompt = SECTION_WRITING_PROMPT.format(
			topic=plan.topic,
			section_name=task.section_name,
			description=task.description,
			research=format_research(task.search_results),
			adjacent=format_adjacent(previous, following),
		)

		response = await self.connector.send(
			prompt,
			PromptOptions(temperature=self.temperature, max_tokens=self.max_tokens, include_citations=True),
			token,
		)
		task.tokens_used += response.tokens_used

		logger.debug(f"Wrote {len(response.content.split())} words for '{task.section_name}'")
		return response.content.strip()

	async def revise_introduction(
		self,
		intro_task: SectionTask,
		completed_tasks: list[SectionTask],
		topic: str,
		token: CancellationToken | None = None,
	) -> str:
		"""Rewrite the introduction against what the body sections actually say.

		Each other completed section contributes its name, description and
		first paragraph to the summary.
		"""
		summary = '\n\n'.join(
			f'Section: {task.section_name}\nDescription: {task.description}\nOpening: {first_paragraph(task.content)}'
			for task in completed_tasks
			if task.section_id != intro_task.section_id
		)

		prompt = INTRODUCTION_REVISION_PROMPT.format(
			topic=topic,
			introduction=intro_task.content,
			summary=summary or 'None',
		)

		response = await self.connector.send(
			prompt, PromptOptions(temperature=0.5, max_tokens=1500, include_citations=True), token
		)
		intro_task.tokens_used += response.tokens_used

		return response.content.strip()
