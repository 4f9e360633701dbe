from research_assistant.models import ReportSection, SearchResultSet

QUERY_GENERATION_PROMPT = """Generate {count} specific and focused search queries for researching:
Topic: {topic}
Section: {section_name}
Description: {description}

Return ONLY a numbered list of queries, one per line, no preamble.

FORMAT:
1. First query
2. Second query"""

SECTION_WRITING_PROMPT = """<ReportTopic>{topic}</ReportTopic>

<Section>
Name: {section_name}
Description: {description}
</Section>

<ResearchInformation>
{research}
</ResearchInformation>

<AdjacentSections>
{adjacent}
</AdjacentSections>

<WritingGuidelines>
- Write the content for the "{section_name}" section only, do not repeat its title
- Ground every claim in the research information where possible
- Cite sources using [Source X] format, where X is the source number above
- Keep continuity with the adjacent sections without repeating them
- Aim for 500-800 words
</WritingGuidelines>"""

INTRODUCTION_REVISION_PROMPT = """Revise the introduction of a research report on "{topic}" now that the rest of the report is written.

<CurrentIntroduction>
{introduction}
</CurrentIntroduction>

<CompletedSections>
{summary}
</CompletedSections>

<Guidelines>
- Preview the sections actually written, in their order
- Keep existing [Source X] citations where they still apply
- Don't expand beyond 500 words
- Return only the revised introduction text
</Guidelines>"""

PLAN_GENERATION_PROMPT = """You are a research report planner. Create a detailed outline for a report on:

Topic: {topic}

Organization guidance:
{organization}

Additional context:
{context}

For each section provide:
1. Section title
   - Name: the section name
   - Description: what the section should cover
   - Research: true if the section needs web research, false otherwise

Number the sections in document order. Return only the outline."""

PLAN_REVISION_PROMPT = """Revise the following research report outline for the topic "{topic}" based on the feedback.

<CurrentSections>
{sections}
</CurrentSections>

<Feedback>
{feedback}
</Feedback>

Return the complete revised outline in the same format:
1. Section title
   - Name: the section name
   - Description: what the section should cover
   - Research: true or false"""

DEFAULT_ORGANIZATION = """1. Introduction
2. Literature Review
3. Methodology
4. Findings
5. Discussion
6. Conclusion"""


def format_research(result_sets: list[SearchResultSet]) -> str:
	"""Sources are numbered continuously across result sets."""
	if not result_sets:
		return 'No research information available.'

	lines = []
	source_number = 0
	for result_set in result_sets:
		lines.append(f'Query: {result_set.query}')
		for result in result_set.results:
			source_number += 1
			lines.append(f'[Source {source_number}] {result.title}')
			if result.url:
				lines.append(f'URL: {result.url}')
			if result.snippet:
				lines.append(f'Snippet: {result.snippet}')
			if result.content:
				lines.append(f'Content: {result.content}')
		lines.append('')

	return '\n'.join(lines).strip()


def format_adjacent(previous: ReportSection | None, following: ReportSection | None) -> str:
	lines = []
	if previous:
		lines.append(f'Previous section: {previous.name} - {previous.description}')
	if following:
		lines.append(f'Next section: {following.name} - {following.description}')
	return '\n'.join(lines) if lines else 'None'
