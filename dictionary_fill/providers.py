"""
Translation providers.

A provider turns the single-locale JSON content of a dictionary into the same
JSON translated into another locale. Two providers exist: a direct OpenAI
chat-completion provider and the editor backend's translation endpoint.
"""
import asyncio
import json
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx
import jsonschema
import tiktoken
from aiolimiter import AsyncLimiter
from openai import (
    APIConnectionError,
    APIStatusError,
    RateLimitError,
    APITimeoutError,
    OpenAIError
)
from openai import AsyncOpenAI
from openai.types.chat import (
    ChatCompletionSystemMessageParam,
    ChatCompletionUserMessageParam
)

from dictionary_fill.app_config import AIConfig, AppConfig, ConfigurationError, EditorConfig, get_locale_name

logger = logging.getLogger(__name__)

TRANSLATE_JSON_PATH = '/api/ai/translate/json'

# Tokens kept free for the instructions and the completion itself
RESERVED_TOKENS = 2000

# The AI must answer with a JSON object whose leaves are scalars, nested in
# objects and arrays like the content it was given.
CONTENT_SCHEMA = {
    "type": "object",
    "additionalProperties": {"$ref": "#/$defs/node"},
    "$defs": {
        "node": {
            "anyOf": [
                {"type": ["string", "number", "boolean", "null"]},
                {"type": "array", "items": {"$ref": "#/$defs/node"}},
                {"type": "object", "additionalProperties": {"$ref": "#/$defs/node"}},
            ]
        }
    }
}


class TranslationError(Exception):
    """Raised when a provider could not produce a translation."""


@dataclass
class TranslationRequest:
    """Payload of one translation unit."""
    entry_file_content: Any
    preset_output_content: Any
    dictionary_description: Optional[str]
    entry_locale: str
    output_locale: str
    mode: str
    options: Dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        return {
            'entryFileContent': self.entry_file_content,
            'presetOutputContent': self.preset_output_content,
            'dictionaryDescription': self.dictionary_description,
            'entryLocale': self.entry_locale,
            'outputLocale': self.output_locale,
            'mode': self.mode,
            'aiOptions': self.options,
        }


@dataclass
class TranslationResult:
    file_content: Any


def count_tokens(text: str, model_name: str = 'gpt-4o-mini') -> int:
    """Count the number of tokens in ``text`` for ``model_name``.

    ``tiktoken.encoding_for_model`` may need to download model data. When that
    fails, ``cl100k_base`` is used, and as a last resort a whitespace split.
    """
    try:
        encoding = tiktoken.encoding_for_model(model_name)
    except Exception:
        try:
            encoding = tiktoken.get_encoding("cl100k_base")
        except Exception:
            return len(text.split())

    try:
        return len(encoding.encode(text))
    except Exception:
        return len(text.split())


async def _handle_retry(attempt: int, max_retries: int, base_delay: float, label: str,
                        api_exc: Optional[Exception] = None) -> bool:
    """
    Wait before the next attempt, with exponential backoff and jitter.

    A ``Retry-After`` header on an OpenAI error takes precedence over the backoff.

    Returns:
        bool: True if the operation should retry, False otherwise.
    """
    if attempt >= max_retries:
        logger.error(f"Translation failed for '{label}' after {max_retries} attempts.")
        return False

    delay = None
    if isinstance(api_exc, OpenAIError):
        headers = getattr(api_exc, "headers", None) or {}
        retry_after_header = headers.get("Retry-After") if hasattr(headers, "get") else None
        if retry_after_header:
            try:
                if retry_after_header.endswith("ms"):
                    delay = float(retry_after_header[:-2]) / 1000
                else:
                    delay = float(retry_after_header)
            except ValueError:
                logger.warning(f"Failed to parse Retry-After header '{retry_after_header}'. "
                               f"Falling back to exponential backoff.")
    if delay is None:
        delay = base_delay * (2 ** (attempt - 1)) + random.uniform(0, 1)

    logger.info(f"Retrying translation of '{label}' in {delay:.2f} seconds (Attempt {attempt}/{max_retries})")
    await asyncio.sleep(delay)
    return True


def _build_system_prompt(request: TranslationRequest, config: AppConfig) -> str:
    entry_language = get_locale_name(config, request.entry_locale)
    output_language = get_locale_name(config, request.output_locale)

    if request.mode == 'review':
        mode_instructions = (
            "- **Review mode**: the preset output may contain existing translations. Review them and return "
            "an improved translation for every key of the source content."
        )
    else:
        mode_instructions = (
            "- **Complete mode**: keep the values of the preset output unchanged when they exist and only "
            "translate the keys that are missing from it."
        )

    description = request.dictionary_description or ''
    application_context = config.ai.application_context or ''

    return f"""
You are an expert translator specializing in software localization. You translate the values of a JSON content file from {entry_language} ({request.entry_locale}) to {output_language} ({request.output_locale}).

**Instructions**:
- **Keep the structure**: return a JSON object with exactly the same keys and nesting as the source content. Never add or rename keys.
- **Translate values only**: do not translate keys.
- **Preserve placeholders and markup**: text such as `{{{{name}}}}`, `{{0}}`, HTML tags and markdown must stay exactly as is.
{mode_instructions}
- **Output JSON only**: no markdown fences and no explanations.

**Application context**:
{application_context}

**Dictionary description**:
{description}
"""


class OpenAITranslationProvider:
    """Translates JSON content with an OpenAI chat model."""

    def __init__(self, client: AsyncOpenAI, config: AppConfig,
                 rate_limiter: Optional[AsyncLimiter] = None, max_retries: int = 3, base_delay: float = 1):
        self.client = client
        self.config = config
        self.ai: AIConfig = config.ai
        self.rate_limiter = rate_limiter or AsyncLimiter(max_rate=self.ai.requests_per_minute, time_period=60)
        self.max_retries = max_retries
        self.base_delay = base_delay

    def _fit_preset_output(self, request: TranslationRequest, system_prompt: str) -> Any:
        """Drop the preset output hint when the prompt would not fit in the model context."""
        entry_text = json.dumps(request.entry_file_content, ensure_ascii=False)
        preset_text = json.dumps(request.preset_output_content, ensure_ascii=False)
        used_tokens = count_tokens(system_prompt + entry_text, self.ai.model_name)
        preset_tokens = count_tokens(preset_text, self.ai.model_name)
        if used_tokens + preset_tokens + RESERVED_TOKENS > self.ai.max_model_tokens:
            logger.warning(
                f"Preset {request.output_locale} content too large ({preset_tokens} tokens), "
                f"translating without it."
            )
            return {}
        return request.preset_output_content

    async def translate_json(self, request: TranslationRequest, access_token: Optional[str] = None) -> TranslationResult:
        system_prompt = _build_system_prompt(request, self.config)
        preset_output_content = self._fit_preset_output(request, system_prompt)
        user_prompt = (
            "**Source content**:\n"
            f"{json.dumps(request.entry_file_content, ensure_ascii=False, indent=2)}\n\n"
            "**Preset output content**:\n"
            f"{json.dumps(preset_output_content, ensure_ascii=False, indent=2)}\n"
        )
        model_name = request.options.get('model', self.ai.model_name)
        temperature = request.options.get('temperature', self.ai.temperature)
        label = request.output_locale

        for attempt in range(1, self.max_retries + 1):
            response_text = ''
            try:
                async with self.rate_limiter:
                    response = await self.client.chat.completions.create(
                        model=model_name,
                        messages=[
                            ChatCompletionSystemMessageParam(role="system", content=system_prompt),
                            ChatCompletionUserMessageParam(role="user", content=user_prompt),
                        ],
                        temperature=temperature,
                        response_format={"type": "json_object"},
                        timeout=60.0,
                    )
                response_text = (response.choices[0].message.content or '').strip()
                parsed_json = json.loads(response_text)
                jsonschema.validate(instance=parsed_json, schema=CONTENT_SCHEMA)
                return TranslationResult(file_content=parsed_json)

            except json.JSONDecodeError as json_exc:
                logger.error(f"Translation to {label} failed: AI did not return valid JSON. Error: {json_exc}")
                logger.debug(f"Invalid AI response (JSON Decode Error):\n---\n{response_text}\n---")
            except jsonschema.ValidationError as schema_exc:
                logger.error(f"Translation to {label} failed: AI response did not match the content schema. "
                             f"Error: {schema_exc.message}")
                logger.debug(f"Invalid AI response (Schema Error):\n---\n{response_text}\n---")
            except (RateLimitError, APITimeoutError, APIConnectionError, APIStatusError, OpenAIError) as api_exc:
                logger.warning(f"API error occurred: {api_exc.__class__.__name__} - {api_exc}")
                if not await _handle_retry(attempt, self.max_retries, self.base_delay, label, api_exc):
                    raise TranslationError(f"OpenAI request for {label} failed: {api_exc}") from api_exc
                continue

            # JSON or schema errors are retried as well
            if not await _handle_retry(attempt, self.max_retries, self.base_delay, label):
                break

        raise TranslationError(f"No valid translation returned for {label}")


class RemoteTranslationProvider:
    """Delegates translation to the editor backend's JSON translation endpoint."""

    def __init__(self, editor: EditorConfig, timeout: float = 120.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.editor = editor
        self.timeout = timeout
        self.transport = transport

    async def translate_json(self, request: TranslationRequest, access_token: Optional[str] = None) -> TranslationResult:
        headers = {'Authorization': f'Bearer {access_token}'} if access_token else {}
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(
                f"{self.editor.backend_url}{TRANSLATE_JSON_PATH}",
                json=request.to_payload(),
                headers=headers,
            )
        if response.status_code != 200:
            raise TranslationError(
                f"Translation service answered {response.status_code} for {request.output_locale}: {response.text}"
            )
        data = response.json().get('data') or {}
        return TranslationResult(file_content=data.get('fileContent'))


def create_translation_provider(config: AppConfig, ai_options: Optional[Dict[str, Any]] = None):
    """Use OpenAI directly when a key is configured, the editor backend otherwise."""
    api_key = (ai_options or {}).get("api_key")
    if api_key:
        return OpenAITranslationProvider(AsyncOpenAI(api_key=api_key), config)
    if config.openai_client is not None:
        return OpenAITranslationProvider(config.openai_client, config)
    if config.ai.api_key:
        return OpenAITranslationProvider(AsyncOpenAI(api_key=config.ai.api_key), config)
    if config.editor.has_credentials:
        return RemoteTranslationProvider(config.editor)
    raise ConfigurationError("No translation provider available: set OPENAI_API_KEY or the editor credentials.")
