from .connector import LLMConnector, ModelConnector, create_llm_connector_from_config

__all__ = ['LLMConnector', 'ModelConnector', 'create_llm_connector_from_config']
