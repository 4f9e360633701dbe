import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from research_assistant.config.settings import SearchBackend, Settings
from research_assistant.config.settings import settings as default_settings
from research_assistant.models import ExecutionOptions, SearchOptions


class ConfigurationError(ValueError):
	pass


@dataclass
class LLMConfig:
	provider: str
	model: str
	api_key: str
	temperature: float = 0.7
	top_p: float = 1.0
	max_tokens: int = 4096


@dataclass
class SearchConfig:
	backend: str = SearchBackend.GOOGLE.value
	api_key: str | None = None
	search_engine_id: str | None = None
	max_results: int = 5


class ConfigLoader:
	def __init__(self, config_path: str | Path | None = None, settings: Settings | None = None):
		self.settings = settings or default_settings
		self.config_path = Path(config_path) if config_path else self.settings.BASE_DIR / 'config' / 'settings.yaml'
		self.data = self._load_settings()

	def _load_settings(self) -> dict[str, Any]:
		if not self.config_path.exists():
			return {}

		with open(self.config_path) as f:
			data = yaml.safe_load(f) or {}

		if not isinstance(data, dict):
			raise ConfigurationError(f'Config file must contain a mapping: {self.config_path}')

		return self._inject_env_vars(data)

	def _inject_env_vars(self, config: dict[str, Any]) -> dict[str, Any]:
		def replace_env(obj):
			if isinstance(obj, dict):
				new_obj = {}
				for key, value in obj.items():
					if key.endswith('_env') and isinstance(value, str):
						# Get env variable and create new key without _env suffix
						env_value = os.getenv(value)
						if not env_value:
							raise ConfigurationError(f'Environment variable {value} not found')
						new_key = key.removesuffix('_env')
						new_obj[new_key] = env_value
					else:
						new_obj[key] = replace_env(value)
				return new_obj
			elif isinstance(obj, list):
				return [replace_env(item) for item in obj]
			return obj

		return replace_env(config)  # type: ignore

	def get_llm_config(self) -> LLMConfig:
		block = self.data.get('llm', {})
		provider = block.get('provider', self.settings.LLM_PROVIDER)
		api_key = block.get('api_key') or self.settings.api_key_for(provider)

		if not api_key:
			raise ConfigurationError(f'No API key configured for LLM provider: {provider}')

		return LLMConfig(
			provider=provider,
			model=block.get('model', self.settings.LLM_MODEL),
			api_key=api_key,
			temperature=block.get('temperature', self.settings.LLM_TEMPERATURE),
			top_p=block.get('top_p', self.settings.LLM_TOP_P),
			max_tokens=block.get('max_tokens', self.settings.LLM_MAX_TOKENS),
		)

	def get_search_config(self) -> SearchConfig:
		block = self.data.get('search', {})
		backend = block.get('backend', self.settings.SEARCH_BACKEND)

		if backend == SearchBackend.GOOGLE.value:
			api_key = block.get('api_key', self.settings.GOOGLE_API_KEY)
		elif backend == SearchBackend.TAVILY.value:
			api_key = block.get('api_key', self.settings.TAVILY_API_KEY)
		else:
			api_key = None

		return SearchConfig(
			backend=backend,
			api_key=api_key,
			search_engine_id=block.get('search_engine_id', self.settings.GOOGLE_SEARCH_ENGINE_ID),
			max_results=block.get('max_results', 5),
		)

	def get_execution_options(self) -> ExecutionOptions:
		block = self.data.get('execution', {})
		search_block = block.get('search_options')

		search_options = None
		if search_block:
			if not isinstance(search_block, dict):
				raise ConfigurationError(f'execution.search_options must be a mapping: {self.config_path}')
			try:
				search_options = SearchOptions(**search_block)
			except TypeError as e:
				raise ConfigurationError(f'Invalid execution.search_options in {self.config_path}: {e}') from e

		return ExecutionOptions(
			max_concurrent_sections=block.get('max_concurrent_sections', self.settings.MAX_CONCURRENT_SECTIONS),
			max_search_queries_per_section=block.get(
				'max_search_queries_per_section', self.settings.MAX_SEARCH_QUERIES
			),
			include_reflection=block.get('include_reflection', True),
			pause_after_each_section=block.get('pause_after_each_section', False),
			include_non_research_sections=block.get('include_non_research_sections', False),
			search_options=search_options,
		)
