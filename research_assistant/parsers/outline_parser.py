import re
import uuid

from research_assistant.models import ExecutionPhase, ReportSection
from research_assistant.utils.logger import logger

SECTION_PATTERN = re.compile(r'^(\d+)\s*[./]\s+(.+)$')
PROPERTY_PATTERN = re.compile(r'^[-*]\s*(name|description|research|content)\s*:\s*(.*)$', re.IGNORECASE)

INTRODUCTION_PATTERN = re.compile(r'\bintro(duction)?\b', re.IGNORECASE)
CONCLUSION_PATTERN = re.compile(r'\b(conclusions?|summary|closing|concluding)\b', re.IGNORECASE)


def _clean(text: str) -> str:
	return text.replace('**', '').replace('__', '').strip().strip('#').strip()


class OutlineParser:
	"""Turns a planner response into ordered outline sections.

	A section starts at `N. name` or `N/ name`; `- Name:`, `- Description:`,
	`- Research:` and `- Content:` lines fill it in, and other lines continue
	the property last seen.
	"""

	def parse(self, response: str | None) -> list[ReportSection]:
		if not response:
			return []

		drafts: list[dict] = []
		current: dict | None = None
		current_property: str | None = None

		for raw_line in response.splitlines():
			if raw_line.strip().startswith('#'):
				continue

			line = _clean(raw_line)
			if not line:
				continue

			section_match = SECTION_PATTERN.match(line)
			if section_match:
				current = {
					'name': _clean(section_match.group(2)),
					'description': '',
					'requires_research': True,
				}
				drafts.append(current)
				current_property = None
				continue

			if current is None:
				continue

			property_match = PROPERTY_PATTERN.match(line)
			if property_match:
				current_property = property_match.group(1).lower()
				value = _clean(property_match.group(2))

				if current_property == 'name' and value:
					current['name'] = value
				elif current_property == 'description':
					current['description'] = value
				elif current_property == 'research':
					current['requires_research'] = value.lower() in ('true', 'yes')
				continue

			if current_property == 'name':
				current['name'] = f'{current["name"]} {line}'.strip()
			elif current_property == 'description':
				current['description'] = f'{current["description"]} {line}'.strip()

		sections = self._build_sections(drafts)
		logger.debug(f'Parsed {len(sections)} sections from planner response')
		return sections

	def _build_sections(self, drafts: list[dict]) -> list[ReportSection]:
		sections = []
		has_initial = False

		for number, draft in enumerate(drafts, start=1):
			phase = self.detect_phase(draft['name'])
			if phase == ExecutionPhase.INITIAL:
				if has_initial:
					phase = ExecutionPhase.BODY
				has_initial = True

			sections.append(
				ReportSection(
					id=str(uuid.uuid4()),
					number=number,
					name=draft['name'],
					description=draft['description'],
					requires_research=draft['requires_research'],
					execution_phase=phase,
				)
			)

		return sections

	@staticmethod
	def detect_phase(name: str) -> ExecutionPhase:
		if INTRODUCTION_PATTERN.search(name):
			return ExecutionPhase.INITIAL
		if CONCLUSION_PATTERN.search(name):
			return ExecutionPhase.FINAL
		return ExecutionPhase.BODY
