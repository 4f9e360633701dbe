from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Citation:
	id: str
	number: int
	text: str
	url: str
	title: str


@dataclass(frozen=True)
class ReportContent:
	section_id: str
	section_number: int
	section_name: str
	content: str
	is_revised: bool = False


@dataclass(frozen=True)
class Report:
	id: str
	topic: str
	sections: list[ReportContent]
	citations: list[Citation]
	created_at: datetime
	plan_id: str
	tokens_used: int = 0
