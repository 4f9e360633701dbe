import pytest

from research_assistant.models import (
	ExecutionPhase,
	ExecutionStatus,
	InvalidTransitionError,
	SearchResult,
	SectionTask,
	TaskStatus,
)
from tests.conftest import make_plan, make_section


def make_task(**overrides):
	fields = {'section_id': 's1', 'section_name': 'Causes', 'description': 'Why it happens', 'max_search_queries': 3}
	fields.update(overrides)
	return SectionTask(**fields)


def test_task_lifecycle():
	task = make_task()
	assert task.status == TaskStatus.PENDING

	task.start()
	assert task.status == TaskStatus.IN_PROGRESS
	assert task.started_at is not None

	task.complete('Written content')
	assert task.status == TaskStatus.COMPLETED
	assert task.content == 'Written content'
	assert task.completed_at is not None


def test_task_cannot_complete_with_empty_content():
	task = make_task()
	task.start()

	with pytest.raises(InvalidTransitionError):
		task.complete('  \n ')

	assert task.status == TaskStatus.IN_PROGRESS


def test_task_cannot_complete_without_starting():
	with pytest.raises(InvalidTransitionError):
		make_task().complete('content')


def test_task_failure_records_message():
	task = make_task()
	task.start()
	task.fail('')

	assert task.status == TaskStatus.FAILED
	assert task.error_message == 'Unknown error'

	with pytest.raises(InvalidTransitionError):
		task.start()


def test_completed_task_can_fail_after_revision_error():
	task = make_task()
	task.start()
	task.complete('content')
	task.fail('rewrite broke')

	assert task.status == TaskStatus.FAILED


def test_revise_requires_completed_task():
	task = make_task()
	with pytest.raises(InvalidTransitionError):
		task.revise('new')

	task.start()
	task.complete('old')
	completed_at = task.completed_at

	with pytest.raises(InvalidTransitionError):
		task.revise('')

	task.revise('new')
	assert task.content == 'new'
	assert task.is_revised
	assert task.completed_at == completed_at


def test_pause_only_from_in_progress():
	task = make_task()
	with pytest.raises(InvalidTransitionError):
		task.pause()

	task.start()
	task.pause()
	assert task.status == TaskStatus.PAUSED


def test_all_results_flattens_result_sets_in_order():
	task = make_task()
	task.add_results('q1', [SearchResult('A', 'https://a', 'a'), SearchResult('B', 'https://b', 'b')])
	task.add_results('q2', [SearchResult('C', 'https://c', 'c')])

	assert [r.title for r in task.all_results()] == ['A', 'B', 'C']
	assert task.search_results[1].query == 'q2'


def test_plan_status_moves_forward_only():
	plan = make_plan([make_section(1, 'Causes')])
	assert plan.status == ExecutionStatus.READY

	with pytest.raises(InvalidTransitionError):
		plan.complete()

	plan.start()
	plan.complete()
	assert plan.status == ExecutionStatus.COMPLETED

	with pytest.raises(InvalidTransitionError):
		plan.start()


def test_plan_only_ends_completed_or_paused():
	plan = make_plan([make_section(1, 'Causes')])
	plan.start()

	with pytest.raises(InvalidTransitionError):
		plan._transition(ExecutionStatus.FAILED)

	plan.pause()
	assert plan.status == ExecutionStatus.PAUSED
	assert not hasattr(plan, 'fail')


def test_plan_rejects_non_positive_concurrency():
	with pytest.raises(ValueError):
		make_plan([make_section(1, 'Causes')], max_concurrent=0)


def test_plan_phase_lookup_defaults_to_body():
	plan = make_plan([make_section(1, 'Conclusion', ExecutionPhase.FINAL)])
	task = plan.tasks['section-1']

	assert plan.get_phase(task) == ExecutionPhase.FINAL
	assert plan.get_phase(make_task(section_id='unknown')) == ExecutionPhase.BODY


def test_adjacent_sections_follow_ordinal_order():
	sections = [make_section(3, 'Third'), make_section(1, 'First'), make_section(2, 'Second')]
	plan = make_plan(sections)

	previous, following = plan.adjacent_sections('section-2')
	assert previous.name == 'First'
	assert following.name == 'Third'
	assert plan.adjacent_sections('section-1')[0] is None
	assert plan.adjacent_sections('missing') == (None, None)


def test_progress_counts():
	plan = make_plan([make_section(i, f'Topic {i}') for i in range(1, 5)])
	tasks = list(plan.tasks.values())
	tasks[0].start()
	tasks[0].complete('done')
	tasks[1].start()
	tasks[2].start()
	tasks[2].fail('boom')

	progress = plan.get_progress()
	assert progress['total_sections'] == 4
	assert progress['completed'] == 1
	assert progress['in_progress'] == 1
	assert progress['failed'] == 1
	assert progress['pending'] == 1
	assert progress['progress_percentage'] == 25


def test_progress_of_empty_plan():
	assert make_plan([]).get_progress()['progress_percentage'] == 0
