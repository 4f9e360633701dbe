import asyncio

import pytest

from research_assistant.core.cancellation import CancellationToken
from research_assistant.core.engine import ExecutionCancelledError, ExecutionEngine
from research_assistant.generators import first_paragraph
from research_assistant.models import (
	ExecutionPhase,
	ExecutionStatus,
	InvalidTransitionError,
	SearchOptions,
	TaskStatus,
)
from tests.conftest import make_plan, make_section
from tests.fakes import FakeModelConnector, FakeSearchTool


def task_named(plan, name):
	return next(task for task in plan.tasks.values() if task.section_name == name)


@pytest.mark.asyncio
async def test_execute_writes_every_section(standard_sections, fake_connector, fake_search):
	plan = make_plan(standard_sections)
	engine = ExecutionEngine(fake_connector, fake_search)

	report = await engine.execute(plan)

	assert plan.status == ExecutionStatus.COMPLETED
	assert plan.started_at is not None
	assert plan.completed_at is not None
	assert [s.section_number for s in report.sections] == [1, 2, 3, 4, 5]
	assert all(task.status == TaskStatus.COMPLETED for task in plan.tasks.values())
	assert report.plan_id == plan.plan_id
	assert report.topic == plan.topic


@pytest.mark.asyncio
async def test_final_sections_start_after_introduction_revision(standard_sections, fake_search):
	connector = FakeModelConnector(delay=0.01)
	plan = make_plan(standard_sections)
	engine = ExecutionEngine(connector, fake_search)

	await engine.execute(plan)

	kinds = [(call['kind'], call['section']) for call in connector.calls]
	revision_index = next(i for i, (kind, _) in enumerate(kinds) if kind == 'revision')
	conclusion_indexes = [
		i for i, (kind, section) in enumerate(kinds) if kind != 'revision' and section == 'Conclusion'
	]
	body = ('Introduction', 'Causes', 'Effects', 'Mitigation')
	body_indexes = [i for i, (kind, section) in enumerate(kinds) if kind == 'write' and section in body]

	assert conclusion_indexes
	assert max(body_indexes) < revision_index < min(conclusion_indexes)


@pytest.mark.asyncio
async def test_final_sections_wait_for_body_without_introduction(fake_search):
	sections = [
		make_section(1, 'Background'),
		make_section(2, 'Analysis'),
		make_section(3, 'Conclusion', ExecutionPhase.FINAL),
	]
	connector = FakeModelConnector(delay=0.01)
	plan = make_plan(sections)
	events = []
	engine = ExecutionEngine(
		connector,
		fake_search,
		on_task_started=lambda task: events.append(('started', task.section_name)),
		on_task_finished=lambda task: events.append(('finished', task.section_name)),
	)

	await engine.execute(plan)

	conclusion_start = events.index(('started', 'Conclusion'))
	assert events.index(('finished', 'Background')) < conclusion_start
	assert events.index(('finished', 'Analysis')) < conclusion_start
	assert connector.calls_of('revision') == []


@pytest.mark.asyncio
async def test_concurrency_never_exceeds_limit(fake_search):
	sections = [make_section(i, f'Topic {i}') for i in range(1, 8)]
	connector = FakeModelConnector(delay=0.01)
	plan = make_plan(sections, max_concurrent=2)

	active = 0
	peak = 0

	def started(task):
		nonlocal active, peak
		active += 1
		peak = max(peak, active)

	def finished(task):
		nonlocal active
		active -= 1

	engine = ExecutionEngine(connector, fake_search, on_task_started=started, on_task_finished=finished)
	await engine.execute(plan)

	assert peak == 2
	assert engine.peak_concurrency == 2
	assert connector.peak <= 2
	assert all(task.status == TaskStatus.COMPLETED for task in plan.tasks.values())


@pytest.mark.asyncio
async def test_failed_section_does_not_stop_the_batch(fake_search):
	sections = [make_section(1, 'Causes'), make_section(2, 'Effects')]
	connector = FakeModelConnector(failing_sections=('Causes',))
	plan = make_plan(sections)

	report = await ExecutionEngine(connector, fake_search).execute(plan)

	failed = task_named(plan, 'Causes')
	succeeded = task_named(plan, 'Effects')
	assert failed.status == TaskStatus.FAILED
	assert 'Model unavailable' in failed.error_message
	assert succeeded.status == TaskStatus.COMPLETED
	assert succeeded.content.startswith('Content for Effects')
	assert [s.section_name for s in report.sections] == ['Effects']
	assert plan.status == ExecutionStatus.COMPLETED


@pytest.mark.asyncio
async def test_empty_content_fails_the_section(fake_search):
	connector = FakeModelConnector(writer=lambda name: '   ')
	plan = make_plan([make_section(1, 'Causes')])

	report = await ExecutionEngine(connector, fake_search).execute(plan)

	task = task_named(plan, 'Causes')
	assert task.status == TaskStatus.FAILED
	assert task.content == ''
	assert report.sections == []


@pytest.mark.asyncio
async def test_empty_plan_completes_with_empty_report(fake_connector, fake_search):
	plan = make_plan([])

	report = await ExecutionEngine(fake_connector, fake_search).execute(plan)

	assert report.sections == []
	assert report.citations == []
	assert plan.status == ExecutionStatus.COMPLETED
	assert plan.started_at is not None
	assert fake_connector.calls == []


@pytest.mark.asyncio
async def test_query_generation_is_truncated(fake_search):
	connector = FakeModelConnector(query_response='1. a\n2. b\n3. c\n4. d\n5. e')
	plan = make_plan([make_section(1, 'Causes')], max_queries=2)

	await ExecutionEngine(connector, fake_search).execute(plan)

	assert fake_search.queries == ['a', 'b']
	assert len(task_named(plan, 'Causes').search_results) == 2


@pytest.mark.asyncio
async def test_search_failures_and_empty_results_are_skipped():
	search = FakeSearchTool(failing_queries=('first query',), empty_queries=('second query',))
	plan = make_plan([make_section(1, 'Causes')])

	await ExecutionEngine(FakeModelConnector(), search).execute(plan)

	task = task_named(plan, 'Causes')
	assert search.queries == ['first query', 'second query', 'third query']
	assert [result_set.query for result_set in task.search_results] == ['third query']
	assert task.status == TaskStatus.COMPLETED


@pytest.mark.asyncio
async def test_writing_prompt_numbers_sources_across_queries(fake_connector, fake_search):
	plan = make_plan([make_section(1, 'Introduction', ExecutionPhase.INITIAL), make_section(2, 'Causes')])

	await ExecutionEngine(fake_connector, fake_search).execute(plan)

	prompt = next(call['prompt'] for call in fake_connector.calls_of('write') if call['section'] == 'Causes')
	assert '[Source 6] third query result 2' in prompt
	assert 'Previous section: Introduction' in prompt
	assert 'Next section' not in prompt


@pytest.mark.asyncio
async def test_search_options_are_passed_to_every_search(fake_connector, fake_search):
	plan = make_plan([make_section(1, 'Causes')])
	plan.search_options = SearchOptions(max_results=7)

	await ExecutionEngine(fake_connector, fake_search).execute(plan)

	assert fake_search.options == [plan.search_options] * 3


@pytest.mark.asyncio
async def test_disabled_search_skips_query_generation(standard_sections):
	connector = FakeModelConnector()
	plan = make_plan(standard_sections)

	report = await ExecutionEngine(connector).execute(plan)

	assert connector.calls_of('queries') == []
	assert all(task.search_results == [] for task in plan.tasks.values())
	assert all(task.status == TaskStatus.COMPLETED for task in plan.tasks.values())
	assert len(report.sections) == 5


@pytest.mark.asyncio
async def test_introduction_is_revised_from_body_openings(standard_sections, fake_connector, fake_search):
	plan = make_plan(standard_sections)

	report = await ExecutionEngine(fake_connector, fake_search).execute(plan)

	intro = task_named(plan, 'Introduction')
	assert intro.is_revised
	assert intro.content == 'Revised introduction covering every section.'
	assert report.sections[0].is_revised

	revision_prompt = fake_connector.calls_of('revision')[0]['prompt']
	assert 'Content for Causes [Source 1].' in revision_prompt
	assert 'More about Causes' not in revision_prompt
	assert 'Section: Conclusion' not in revision_prompt
	assert '<CurrentIntroduction>\nContent for Introduction' in revision_prompt


@pytest.mark.parametrize(
	'content',
	[
		'Opening line.\r\n\r\nSecond paragraph.',
		'Opening line.\n   \nSecond paragraph.',
		'  Opening line.\r\n \t\r\nSecond paragraph.\n\nThird.',
	],
)
def test_first_paragraph_stops_at_any_blank_line(content):
	assert first_paragraph(content) == 'Opening line.'


def test_first_paragraph_keeps_single_line_breaks():
	assert first_paragraph('Line one\r\nline two.') == 'Line one\r\nline two.'


@pytest.mark.asyncio
async def test_introduction_revision_uses_opening_of_crlf_sections(standard_sections, fake_search):
	connector = FakeModelConnector(writer=lambda name: f'Open {name}.\r\n\r\nHidden body of {name}.')
	plan = make_plan(standard_sections)

	await ExecutionEngine(connector, fake_search).execute(plan)

	revision_prompt = connector.calls_of('revision')[0]['prompt']
	assert 'Opening: Open Causes.' in revision_prompt
	assert 'Hidden body of Causes' not in revision_prompt
	assert 'Hidden body of Mitigation' not in revision_prompt


@pytest.mark.asyncio
async def test_failed_revision_fails_only_the_introduction(standard_sections, fake_search):
	connector = FakeModelConnector(fail_revision=True)
	plan = make_plan(standard_sections)

	report = await ExecutionEngine(connector, fake_search).execute(plan)

	intro = task_named(plan, 'Introduction')
	assert intro.status == TaskStatus.FAILED
	assert intro.error_message.startswith('Introduction revision failed')
	assert task_named(plan, 'Conclusion').status == TaskStatus.COMPLETED
	assert [s.section_number for s in report.sections] == [2, 3, 4, 5]


@pytest.mark.asyncio
async def test_non_research_sections_are_skipped_by_default(fake_connector, fake_search):
	sections = [make_section(1, 'Causes'), make_section(2, 'Glossary', research=False)]
	plan = make_plan(sections)

	report = await ExecutionEngine(fake_connector, fake_search).execute(plan)

	assert len(plan.tasks) == 1
	assert [s.section_name for s in report.sections] == ['Causes']


@pytest.mark.asyncio
async def test_non_research_sections_are_written_without_search(fake_connector, fake_search):
	sections = [make_section(1, 'Causes'), make_section(2, 'Glossary', research=False)]
	plan = make_plan(sections, include_non_research=True)

	report = await ExecutionEngine(fake_connector, fake_search).execute(plan)

	glossary = task_named(plan, 'Glossary')
	assert glossary.status == TaskStatus.COMPLETED
	assert glossary.search_results == []
	assert [call['section'] for call in fake_connector.calls_of('queries')] == ['Causes']
	assert [s.section_name for s in report.sections] == ['Causes', 'Glossary']


@pytest.mark.asyncio
async def test_report_tokens_sum_every_task(fake_search):
	connector = FakeModelConnector(failing_sections=('Effects',), tokens_per_call=7)
	plan = make_plan([make_section(1, 'Causes'), make_section(2, 'Effects')])

	report = await ExecutionEngine(connector, fake_search).execute(plan)

	assert task_named(plan, 'Causes').tokens_used == 14
	assert report.tokens_used == 14


@pytest.mark.asyncio
async def test_execute_rejects_missing_plan(fake_connector):
	with pytest.raises(ValueError):
		await ExecutionEngine(fake_connector).execute(None)


@pytest.mark.asyncio
async def test_execute_rejects_plan_that_already_ran(fake_connector, fake_search):
	plan = make_plan([make_section(1, 'Causes')])
	engine = ExecutionEngine(fake_connector, fake_search)
	await engine.execute(plan)

	with pytest.raises(InvalidTransitionError):
		await engine.execute(plan)


@pytest.mark.asyncio
async def test_cancellation_pauses_in_flight_sections(fake_search):
	sections = [make_section(i, f'Topic {i}') for i in range(1, 4)]
	connector = FakeModelConnector(delay=0.5)
	plan = make_plan(sections, max_concurrent=1)
	token = CancellationToken()

	asyncio.get_running_loop().call_later(0.05, token.cancel)

	with pytest.raises(ExecutionCancelledError) as exc_info:
		await ExecutionEngine(connector, fake_search).execute(plan, token)

	assert exc_info.value.plan is plan
	assert plan.status == ExecutionStatus.PAUSED
	assert task_named(plan, 'Topic 1').status == TaskStatus.PAUSED
	assert task_named(plan, 'Topic 2').status == TaskStatus.PENDING
	assert task_named(plan, 'Topic 3').status == TaskStatus.PENDING


@pytest.mark.asyncio
async def test_cancellation_keeps_completed_sections(fake_connector, fake_search):
	sections = [make_section(i, f'Topic {i}') for i in range(1, 4)]
	plan = make_plan(sections, max_concurrent=1)
	token = CancellationToken()

	def cancel_after_first(task):
		if task.status == TaskStatus.COMPLETED:
			token.cancel()

	engine = ExecutionEngine(fake_connector, fake_search, on_task_finished=cancel_after_first)
	with pytest.raises(ExecutionCancelledError):
		await engine.execute(plan, token)

	first = task_named(plan, 'Topic 1')
	assert first.status == TaskStatus.COMPLETED
	assert first.content
	assert task_named(plan, 'Topic 2').status == TaskStatus.PENDING
	assert plan.status == ExecutionStatus.PAUSED
