import re
from datetime import datetime
from pathlib import Path

from research_assistant.models import Report
from research_assistant.utils.logger import logger


def sanitize_filename(text: str, max_length: int = 50) -> str:
	cleaned = re.sub(r'[^\w\s-]', '', text).strip().lower()
	cleaned = re.sub(r'[\s-]+', '_', cleaned)
	return cleaned[:max_length] or 'report'


def heading_anchor(text: str) -> str:
	anchor = re.sub(r'[^\w\s-]', '', text.lower()).strip()
	return re.sub(r'\s+', '-', anchor)


class MarkdownExporter:
	def __init__(self, output_dir: Path | str):
		self.output_dir = Path(output_dir)

	def export(self, report: Report) -> Path:
		logger.info(f'Exporting report to Markdown: {report.topic}')

		self.output_dir.mkdir(parents=True, exist_ok=True)
		timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
		output_path = self.output_dir / f'research_report_{sanitize_filename(report.topic)}_{timestamp}.md'

		output_path.write_text(self.render(report), encoding='utf-8')

		logger.info(f'Report saved: {output_path}')
		return output_path

	def render(self, report: Report) -> str:
		lines = [
			f'# {report.topic}',
			'',
			f'*Generated on {report.created_at.strftime("%Y-%m-%d %H:%M")}*',
			'',
		]

		if report.sections:
			lines.extend(['## Table of Contents', ''])
			for section in report.sections:
				title = f'{section.section_number}. {section.section_name}'
				lines.append(f'- [{title}](#{heading_anchor(title)})')
			lines.append('')

		for section in report.sections:
			lines.extend([f'## {section.section_number}. {section.section_name}', '', section.content.strip(), ''])

		if report.citations:
			lines.extend(['## References', ''])
			for citation in report.citations:
				lines.append(f'[{citation.number}] {citation.title}. {citation.url}')
				lines.append('')

		return '\n'.join(lines).rstrip() + '\n'
