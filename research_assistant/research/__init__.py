from .researcher import SectionResearcher
from .search_tool import (
	GoogleSearchTool,
	NullSearchTool,
	SearchError,
	SearchTool,
	TavilySearchTool,
	create_search_tool_from_config,
)

__all__ = [
	'SectionResearcher',
	'GoogleSearchTool',
	'NullSearchTool',
	'SearchError',
	'SearchTool',
	'TavilySearchTool',
	'create_search_tool_from_config',
]
