import uuid

import pytest

from research_assistant.core.planner import PlannerService
from research_assistant.models import ExecutionOptions, ExecutionPhase, ExecutionPlan, ReportPlan, ReportSection
from tests.fakes import FakeModelConnector, FakeSearchTool


def make_section(number: int, name: str, phase: ExecutionPhase = ExecutionPhase.BODY, research: bool = True):
	return ReportSection(
		id=f'section-{number}',
		number=number,
		name=name,
		description=f'About {name.lower()}',
		requires_research=research,
		execution_phase=phase,
	)


def make_plan(
	sections: list[ReportSection],
	max_concurrent: int = 3,
	max_queries: int = 3,
	include_non_research: bool = False,
	topic: str = 'Urban heat islands',
) -> ExecutionPlan:
	report_plan = ReportPlan(id=str(uuid.uuid4()), topic=topic, sections=sections)
	options = ExecutionOptions(
		max_concurrent_sections=max_concurrent,
		max_search_queries_per_section=max_queries,
		include_non_research_sections=include_non_research,
	)
	return PlannerService(FakeModelConnector()).prepare_for_execution(report_plan, options)


@pytest.fixture
def standard_sections():
	return [
		make_section(1, 'Introduction', ExecutionPhase.INITIAL),
		make_section(2, 'Causes'),
		make_section(3, 'Effects'),
		make_section(4, 'Mitigation'),
		make_section(5, 'Conclusion', ExecutionPhase.FINAL),
	]


@pytest.fixture
def plan_factory():
	return make_plan


@pytest.fixture
def fake_connector():
	return FakeModelConnector()


@pytest.fixture
def fake_search():
	return FakeSearchTool()
