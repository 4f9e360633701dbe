from abc import ABC, abstractmethod
from typing import Any

import httpx

from research_assistant.config.settings import SearchBackend
from research_assistant.core.cancellation import CancellationToken
from research_assistant.core.config_loader import SearchConfig
from research_assistant.models import SearchOptions, SearchResult
from research_assistant.utils.logger import logger


class SearchError(Exception):
	pass


class SearchTool(ABC):
	@abstractmethod
	async def search(
		self, query: str, options: SearchOptions | None = None, token: CancellationToken | None = None
	) -> list[SearchResult]:
		raise NotImplementedError

	async def close(self) -> None:
		return None


class NullSearchTool(SearchTool):
	"""Stand-in used when search is disabled; every query yields nothing."""

	async def search(
		self, query: str, options: SearchOptions | None = None, token: CancellationToken | None = None
	) -> list[SearchResult]:
		logger.debug(f'Search disabled, ignoring query: {query}')
		return []


class HttpSearchTool(SearchTool):
	def __init__(self, client: httpx.AsyncClient | None = None, timeout: float = 30, max_results: int = 5):
		self.max_results = max_results
		# One pool shared by every concurrent section routine
		self.client = client or httpx.AsyncClient(
			timeout=timeout,
			limits=httpx.Limits(max_connections=32, max_keepalive_connections=16),
		)

	async def _request(
		self, method: str, url: str, token: CancellationToken | None = None, **kwargs: Any
	) -> dict[str, Any]:
		request = self.client.request(method, url, **kwargs)
		try:
			response = await token.run(request) if token else await request
			response.raise_for_status()
			return response.json()
		except httpx.HTTPStatusError as e:
			raise SearchError(f'Search request failed with status {e.response.status_code}: {e.response.text}') from e
		except httpx.RequestError as e:
			raise SearchError(f'Search request failed: {e}') from e

	async def close(self) -> None:
		if not self.client.is_closed:
			await self.client.aclose()


class GoogleSearchTool(HttpSearchTool):
	endpoint = 'https://www.googleapis.com/customsearch/v1'

	def __init__(
		self, api_key: str, search_engine_id: str, client: httpx.AsyncClient | None = None, max_results: int = 5
	):
		if not api_key:
			raise ValueError('Google Search API key cannot be empty')
		if not search_engine_id or not search_engine_id.strip():
			raise ValueError('Google Search Engine ID cannot be empty')

		super().__init__(client, max_results=max_results)
		self.api_key = api_key
		self.search_engine_id = search_engine_id

	async def search(
		self, query: str, options: SearchOptions | None = None, token: CancellationToken | None = None
	) -> list[SearchResult]:
		if not query or not query.strip():
			return []

		options = options or SearchOptions(max_results=self.max_results)
		logger.info(f'Searching Google for: {query}')

		data = await self._request('GET', self.endpoint, token, params=self._build_params(query, options))

		results = [self._to_result(item, options) for item in data.get('items', [])]
		logger.info(f'Retrieved {len(results)} search results')
		return results

	def _build_params(self, query: str, options: SearchOptions) -> dict[str, Any]:
		params: dict[str, Any] = {
			'key': self.api_key,
			'cx': self.search_engine_id,
			'q': query,
			# The API serves at most 10 results per page
			'num': min(max(1, options.max_results), 10),
		}

		if options.site_filter:
			params['siteSearch'] = options.site_filter
			if options.site_filter_mode in ('i', 'e'):
				params['siteSearchFilter'] = options.site_filter_mode

		optional = {
			'linkSite': options.link_site,
			'dateRestrict': options.date_restrict,
			'exactTerms': options.exact_terms,
			'excludeTerms': options.exclude_terms,
			'orTerms': options.or_terms,
			'fileType': options.file_type,
			'lr': options.language,
			'cr': options.country,
			'rights': options.rights,
			'safe': options.safe_search,
			'filter': options.duplicate_content_filter,
		}
		params.update({key: value for key, value in optional.items() if value and value.strip()})

		return params

	def _to_result(self, item: dict[str, Any], options: SearchOptions) -> SearchResult:
		snippet = item.get('snippet') or ''
		return SearchResult(
			title=item.get('title') or '',
			url=(item.get('link') or '') if options.include_urls else '',
			snippet=snippet if options.include_snippets else '',
			content=snippet if options.include_content else '',
		)


class TavilySearchTool(HttpSearchTool):
	endpoint = 'https://api.tavily.com/search'

	def __init__(
		self,
		api_key: str,
		client: httpx.AsyncClient | None = None,
		search_depth: str = 'basic',
		max_results: int = 5,
	):
		if not api_key:
			raise ValueError('Tavily API key cannot be empty')

		super().__init__(client, timeout=60, max_results=max_results)
		self.api_key = api_key
		self.search_depth = search_depth

	async def search(
		self, query: str, options: SearchOptions | None = None, token: CancellationToken | None = None
	) -> list[SearchResult]:
		if not query or not query.strip():
			return []

		options = options or SearchOptions(max_results=self.max_results)
		logger.info(f'Searching Tavily for: {query}')

		payload: dict[str, Any] = {
			'query': query,
			'search_depth': self.search_depth,
			'max_results': max(1, options.max_results),
			'include_raw_content': options.include_content,
			# Key is sent in both payload and header
			'api_key': self.api_key,
		}
		if options.site_filter and options.site_filter_mode != 'e':
			payload['include_domains'] = [options.site_filter]
		elif options.site_filter:
			payload['exclude_domains'] = [options.site_filter]

		data = await self._request(
			'POST',
			self.endpoint,
			token,
			json=payload,
			headers={'Content-Type': 'application/json', 'X-API-Key': self.api_key},
		)

		results = []
		for item in data.get('results', []):
			snippet = item.get('content') or ''
			results.append(
				SearchResult(
					title=item.get('title') or '',
					url=(item.get('url') or '') if options.include_urls else '',
					snippet=snippet if options.include_snippets else '',
					content=(item.get('raw_content') or snippet) if options.include_content else '',
				)
			)

		logger.info(f'Retrieved {len(results)} search results')
		return results


def create_search_tool_from_config(config: SearchConfig) -> SearchTool:
	backend = config.backend

	if backend == SearchBackend.GOOGLE.value:
		if config.api_key and config.search_engine_id:
			return GoogleSearchTool(config.api_key, config.search_engine_id, max_results=config.max_results)
		logger.warning('Google search credentials missing, search disabled')
	elif backend == SearchBackend.TAVILY.value:
		if config.api_key:
			return TavilySearchTool(config.api_key, max_results=config.max_results)
		logger.warning('Tavily API key missing, search disabled')
	elif backend != SearchBackend.NONE.value:
		logger.warning(f'Unknown search backend: {backend}, search disabled')

	return NullSearchTool()
