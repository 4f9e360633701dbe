import re
import uuid
from datetime import UTC, datetime

from research_assistant.models import (
	Citation,
	ExecutionPlan,
	Report,
	ReportContent,
	SearchResult,
	SectionTask,
	TaskStatus,
)
from research_assistant.utils.logger import logger

CITATION_PATTERN = re.compile(r'\[Source\s+(\d+)\]')


class ReportCompiler:
	"""Assembles completed sections into a report with globally numbered citations.

	Sections are visited in outline order. Within a section every distinct
	`[Source k]` marker gets the next global number the first time it is seen
	and all of its occurrences become `[N]`. Sections whose task is missing or
	not completed are left out without shifting the numbers of the others.
	"""

	def compile(self, plan: ExecutionPlan) -> Report:
		sections: list[ReportContent] = []
		citations: list[Citation] = []

		for section in plan.ordered_sections():
			task = plan.tasks.get(section.id)
			if task is None or task.status != TaskStatus.COMPLETED:
				if task is not None:
					logger.warning(f"Omitting section '{section.name}' from report ({task.status.value})")
				continue

			content, section_citations = self.extract_citations(task, start=len(citations) + 1)
			citations.extend(section_citations)
			sections.append(
				ReportContent(
					section_id=section.id,
					section_number=section.number,
					section_name=section.name,
					content=content,
					is_revised=task.is_revised,
				)
			)

		tokens_used = sum(task.tokens_used for task in plan.tasks.values())
		logger.info(f'Compiled report with {len(sections)} sections and {len(citations)} citations')

		return Report(
			id=str(uuid.uuid4()),
			topic=plan.topic,
			sections=sections,
			citations=citations,
			created_at=datetime.now(UTC),
			plan_id=plan.plan_id,
			tokens_used=tokens_used,
		)

	def extract_citations(self, task: SectionTask, start: int = 1) -> tuple[str, list[Citation]]:
		sources = task.all_results()
		numbers: dict[str, int] = {}
		citations: list[Citation] = []

		def replace(match: re.Match) -> str:
			marker = match.group(0)
			if marker not in numbers:
				number = start + len(numbers)
				numbers[marker] = number
				citations.append(self._make_citation(marker, number, self._resolve(sources, int(match.group(1)))))
			return f'[{numbers[marker]}]'

		return CITATION_PATTERN.sub(replace, task.content), citations

	@staticmethod
	def _resolve(sources: list[SearchResult], local_index: int) -> SearchResult | None:
		if 1 <= local_index <= len(sources):
			return sources[local_index - 1]
		return None

	@staticmethod
	def _make_citation(marker: str, number: int, source: SearchResult | None) -> Citation:
		title = source.title if source and source.title else f'Source {number}'
		url = source.url if source and source.url else f'source-{number}'
		return Citation(id=str(uuid.uuid4()), number=number, text=marker, url=url, title=title)
