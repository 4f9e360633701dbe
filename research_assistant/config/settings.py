from enum import Enum
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class SearchBackend(Enum):
	GOOGLE = 'google'
	TAVILY = 'tavily'
	NONE = 'none'


class Settings(BaseSettings):
	# LLM settings
	LLM_PROVIDER: str = 'openai'
	LLM_MODEL: str = 'gpt-4o'
	OPENAI_API_KEY: str | None = None
	OPENROUTER_API_KEY: str | None = None
	ANTHROPIC_API_KEY: str | None = None
	LLM_TEMPERATURE: float = 0.7
	LLM_TOP_P: float = 1.0
	LLM_MAX_TOKENS: int = 4096

	# Research settings
	SEARCH_BACKEND: str = 'google'
	GOOGLE_API_KEY: str | None = None
	GOOGLE_SEARCH_ENGINE_ID: str | None = None
	TAVILY_API_KEY: str | None = None

	# Execution settings
	MAX_CONCURRENT_SECTIONS: int = 3
	MAX_SEARCH_QUERIES: int = 3

	# App Settings
	APP_NAME: str = 'Research Assistant'
	LOG_LEVEL: str = 'INFO'
	LOG_FILE: Path | None = None

	# Paths
	BASE_DIR: Path = Path(__file__).parent.parent.parent
	OUTPUT_DIR: Path = Path.cwd()

	model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore')

	def api_key_for(self, provider: str) -> str | None:
		return {
			'openai': self.OPENAI_API_KEY,
			'openrouter': self.OPENROUTER_API_KEY,
			'anthropic': self.ANTHROPIC_API_KEY,
		}.get(provider)


settings = Settings()
