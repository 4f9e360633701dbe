from dataclasses import dataclass, field
from typing import Any

from research_assistant.models.search import SearchOptions


@dataclass
class PromptOptions:
	temperature: float | None = None
	top_p: float | None = None
	max_tokens: int | None = None
	include_citations: bool = True
	search_options: SearchOptions | None = None
	context_data: dict[str, Any] = field(default_factory=dict)


@dataclass
class FunctionCallInfo:
	name: str
	parameters: dict[str, Any] = field(default_factory=dict)
	result: Any = None


@dataclass
class ModelResponse:
	content: str
	tokens_used: int = 0
	function_calls: list[FunctionCallInfo] = field(default_factory=list)
