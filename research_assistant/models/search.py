from dataclasses import dataclass
from datetime import datetime


@dataclass
class SearchResult:
	title: str
	url: str
	snippet: str
	content: str = ''


@dataclass
class SearchOptions:
	max_results: int = 5
	include_urls: bool = True
	include_snippets: bool = True
	include_content: bool = False

	# Site filtering
	site_filter: str = ''
	site_filter_mode: str = ''  # 'i' include, 'e' exclude
	link_site: str = ''

	# Content filtering
	date_restrict: str = ''  # d[n], w[n], m[n], y[n]
	exact_terms: str = ''
	exclude_terms: str = ''
	or_terms: str = ''
	file_type: str = ''

	# Language and region
	language: str = ''
	country: str = ''

	# Rights and safety
	rights: str = ''
	safe_search: str = ''

	duplicate_content_filter: str = ''


@dataclass
class SearchResultSet:
	query: str
	results: list[SearchResult]
	timestamp: datetime
