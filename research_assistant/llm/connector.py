import json
from abc import ABC, abstractmethod
from dataclasses import asdict
from enum import Enum
from typing import Any

import anthropic
import openai
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from research_assistant.core.cancellation import CancellationToken
from research_assistant.core.config_loader import LLMConfig
from research_assistant.models import FunctionCallInfo, ModelResponse, PromptOptions, SearchOptions
from research_assistant.research.search_tool import SearchTool
from research_assistant.utils.logger import logger

CITATION_HINT = 'Include citations to the relevant information where it is referenced in the response.'
MAX_TOOL_ROUNDS = 3

TRANSIENT_ERRORS = (
	openai.APIConnectionError,
	openai.RateLimitError,
	openai.InternalServerError,
	anthropic.APIConnectionError,
	anthropic.RateLimitError,
	anthropic.InternalServerError,
)

WEB_SEARCH_TOOL = {
	'type': 'function',
	'function': {
		'name': 'web_search',
		'description': 'Search the web and return ranked results with title, URL and snippet.',
		'parameters': {
			'type': 'object',
			'properties': {'query': {'type': 'string', 'description': 'The search query'}},
			'required': ['query'],
		},
	},
}


class LLMProvider(Enum):
	OPENAI = 'openai'
	OPENROUTER = 'openrouter'
	ANTHROPIC = 'anthropic'


class ModelConnector(ABC):
	"""Text completion capability used by the planner and the section engine.

	Implementations must be safe to call from concurrent section routines.
	"""

	@abstractmethod
	async def send(
		self, prompt: str, options: PromptOptions | None = None, token: CancellationToken | None = None
	) -> ModelResponse:
		raise NotImplementedError


class LLMConnector(ModelConnector):
	def __init__(self, config: LLMConfig, search_tool: SearchTool | None = None, client: Any = None):
		self.config = config
		self.provider = LLMProvider(config.provider)
		self.model = config.model
		self.search_tool = search_tool

		self.total_input_tokens = 0
		self.total_output_tokens = 0

		self._client = client or self._initialize_client()
		logger.info(f'LLM connector initialized: {self.provider.value}/{self.model}')

	def _initialize_client(self):
		if self.provider == LLMProvider.OPENAI:
			return openai.AsyncOpenAI(api_key=self.config.api_key)
		elif self.provider == LLMProvider.OPENROUTER:
			return openai.AsyncOpenAI(base_url='https://openrouter.ai/api/v1', api_key=self.config.api_key)
		elif self.provider == LLMProvider.ANTHROPIC:
			return anthropic.AsyncAnthropic(api_key=self.config.api_key)
		else:
			raise ValueError(f'Unsupported provider: {self.provider}')

	async def send(
		self, prompt: str, options: PromptOptions | None = None, token: CancellationToken | None = None
	) -> ModelResponse:
		options = options or PromptOptions()
		full_prompt = self._build_prompt(prompt, options)
		logger.info(f'Sending prompt to {self.provider.value}: {len(full_prompt)} chars')

		call = self._generate(full_prompt, options)
		try:
			response = await token.run(call) if token else await call
		except Exception as e:
			logger.error(f'Generation failed: {e}')
			raise

		logger.info(
			f'Generation complete. Tokens used: input={self.total_input_tokens}, output={self.total_output_tokens}'
		)
		return response

	def _build_prompt(self, prompt: str, options: PromptOptions) -> str:
		parts = [prompt]

		if options.context_data:
			context_lines = '\n'.join(f'{key}: {value}' for key, value in options.context_data.items())
			parts.append(f'<Context>\n{context_lines}\n</Context>')

		if options.include_citations:
			parts.append(CITATION_HINT)

		return '\n\n'.join(parts)

	@retry(
		retry=retry_if_exception_type(TRANSIENT_ERRORS),
		stop=stop_after_attempt(3),
		wait=wait_exponential(multiplier=2, min=2, max=10),
		reraise=True,
	)
	async def _generate(self, prompt: str, options: PromptOptions) -> ModelResponse:
		temperature = options.temperature if options.temperature is not None else self.config.temperature
		top_p = options.top_p if options.top_p is not None else self.config.top_p
		max_tokens = options.max_tokens if options.max_tokens is not None else self.config.max_tokens

		if self.provider == LLMProvider.ANTHROPIC:
			return await self._generate_anthropic(prompt, temperature, top_p, max_tokens)
		return await self._generate_openai(prompt, options.search_options, temperature, top_p, max_tokens)

	async def _generate_openai(
		self, prompt: str, search_options: SearchOptions | None, temperature: float, top_p: float, max_tokens: int
	) -> ModelResponse:
		messages: list[dict[str, Any]] = [{'role': 'user', 'content': prompt}]
		kwargs: dict[str, Any] = {
			'model': self.model,
			'temperature': temperature,
			'top_p': top_p,
			'max_tokens': max_tokens,
		}

		use_tools = self.search_tool is not None and search_options is not None
		if use_tools:
			kwargs['tools'] = [WEB_SEARCH_TOOL]

		function_calls: list[FunctionCallInfo] = []
		tokens_used = 0

		for round_number in range(MAX_TOOL_ROUNDS + 1):
			if use_tools and round_number == MAX_TOOL_ROUNDS:
				# Out of tool rounds: force a plain answer
				kwargs['tool_choice'] = 'none'

			response = await self._client.chat.completions.create(messages=messages, **kwargs)
			tokens_used += self._track_openai_usage(response)

			message = response.choices[0].message
			tool_calls = getattr(message, 'tool_calls', None) or []
			if not use_tools or not tool_calls or round_number == MAX_TOOL_ROUNDS:
				return ModelResponse(
					content=message.content or '', tokens_used=tokens_used, function_calls=function_calls
				)

			messages.append(
				{
					'role': 'assistant',
					'content': message.content or '',
					'tool_calls': [
						{
							'id': call.id,
							'type': 'function',
							'function': {'name': call.function.name, 'arguments': call.function.arguments},
						}
						for call in tool_calls
					],
				}
			)

			for call in tool_calls:
				info = await self._run_tool_call(call.function.name, call.function.arguments, search_options)
				function_calls.append(info)
				messages.append({'role': 'tool', 'tool_call_id': call.id, 'content': json.dumps(info.result)})

		raise RuntimeError('Tool loop exited without a response')

	async def _run_tool_call(
		self, name: str, raw_arguments: str | None, search_options: SearchOptions | None
	) -> FunctionCallInfo:
		try:
			parameters = json.loads(raw_arguments or '{}')
		except json.JSONDecodeError:
			parameters = {}

		if name != WEB_SEARCH_TOOL['function']['name'] or self.search_tool is None:
			return FunctionCallInfo(name=name, parameters=parameters, result={'error': f'Unknown function: {name}'})

		query = str(parameters.get('query', ''))
		logger.info(f'LLM used function calling: {name}({query})')

		try:
			results = await self.search_tool.search(query, search_options)
			result: Any = [asdict(r) for r in results]
		except Exception as e:
			# Reported back to the model instead of failing the generation
			logger.warning(f'Search function call failed for "{query}": {e}')
			result = {'error': str(e)}

		return FunctionCallInfo(name=name, parameters=parameters, result=result)

	def _track_openai_usage(self, response: Any) -> int:
		usage = getattr(response, 'usage', None)
		if not usage:
			return 0

		self.total_input_tokens += usage.prompt_tokens or 0
		self.total_output_tokens += usage.completion_tokens or 0
		return usage.total_tokens or (usage.prompt_tokens or 0) + (usage.completion_tokens or 0)

	async def _generate_anthropic(self, prompt: str, temperature: float, top_p: float, max_tokens: int) -> ModelResponse:
		kwargs: dict[str, Any] = {
			'model': self.model,
			'max_tokens': max_tokens,
			'temperature': temperature,
			'messages': [{'role': 'user', 'content': prompt}],
		}
		# Anthropic rejects top_p together with temperature on newer models
		if top_p < 1.0:
			kwargs['top_p'] = top_p

		response = await self._client.messages.create(**kwargs)

		tokens_used = 0
		usage = getattr(response, 'usage', None)
		if usage:
			self.total_input_tokens += usage.input_tokens or 0
			self.total_output_tokens += usage.output_tokens or 0
			tokens_used = (usage.input_tokens or 0) + (usage.output_tokens or 0)

		text = ''.join(block.text for block in response.content if getattr(block, 'type', 'text') == 'text')
		return ModelResponse(content=text, tokens_used=tokens_used)

	def get_usage_stats(self) -> dict[str, int]:
		"""Get token usage statistics."""
		return {
			'input_tokens': self.total_input_tokens,
			'output_tokens': self.total_output_tokens,
			'total_tokens': self.total_input_tokens + self.total_output_tokens,
		}


def create_llm_connector_from_config(config: LLMConfig, search_tool: SearchTool | None = None) -> LLMConnector:
	return LLMConnector(config, search_tool=search_tool)
