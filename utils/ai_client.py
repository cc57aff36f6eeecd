import asyncio
import json
import logging
import os
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

import anthropic
import httpx
import openai
from google import genai
from google.genai import errors as genai_errors

from .config import get_api_key, get_model_config
from .error_handling import (
    BusyError,
    ConfigError,
    InputError,
    NetworkTransientError,
    NotInitializedError,
    ParseError,
    ProviderHTTPError,
    ResponseFormatError,
    get_error_message,
)
from .records import (
    AnalysisRecord,
    DevModeAnalysisRecord,
    KEEP_RECOMMENDATION,
    ProcessSample,
    TERMINATE_RECOMMENDATION,
)


logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = (429, 503)

# Last-resort markers for errors raised by opaque clients.
RETRYABLE_MESSAGE_MARKERS = (
    '503', 'Service Unavailable',
    '429', 'Too Many Requests',
    'overloaded',
    'ECONNRESET', 'ETIMEDOUT', 'ENOTFOUND', 'fetch failed',
    'Connection error', 'timed out',
)

NON_RETRYABLE_ERRORS = (ParseError, ResponseFormatError, NotInitializedError, BusyError)


def is_retryable_error(error: BaseException) -> bool:
    """
    Decide whether an error is transient.

    Typed errors set at the point of failure are checked first. Message
    inspection is only used for errors that carry no status information.
    """
    if isinstance(error, NetworkTransientError):
        return True
    if isinstance(error, ProviderHTTPError):
        return error.status in RETRYABLE_STATUS_CODES or 'overloaded' in str(error).lower()
    if isinstance(error, NON_RETRYABLE_ERRORS):
        return False

    error_str = get_error_message(error)
    return any(marker in error_str for marker in RETRYABLE_MESSAGE_MARKERS)


async def with_retry(operation: Callable[[], Awaitable[Any]], max_retries: int = 3, base_delay: float = 1.0,
                     on_retry: Optional[Callable[[int, BaseException], None]] = None,
                     sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep) -> Any:
    """
    Run an async operation with exponential backoff for transient errors.

    Waits base_delay * 3**attempt seconds between attempts (1s, 3s, 9s with
    the defaults), so there are at most max_retries + 1 attempts in total.

    Args:
        operation: Zero-argument callable returning an awaitable
        max_retries: Retries after the first attempt (default: 3)
        base_delay: Base delay in seconds (default: 1.0)
        on_retry: Called with (attempt_number, error) before each wait
        sleep: Awaitable sleep function (injectable for tests)

    Returns:
        The result of operation() if successful

    Raises:
        The last error unchanged once retries are exhausted, or immediately
        for a non-retryable error
    """
    if max_retries < 0:
        raise InputError(f"max_retries must be non-negative, got {max_retries}.")

    for attempt in range(max_retries + 1):
        try:
            return await operation()
        except Exception as e:
            if not is_retryable_error(e):
                logger.debug("Non-retryable error: %s: %s", type(e).__name__, e)
                raise
            if attempt == max_retries:
                logger.warning("Transient error persisted after %d attempts: %s", max_retries + 1, e)
                raise

            delay = base_delay * (3 ** attempt)
            if on_retry is not None:
                on_retry(attempt + 1, e)
            logger.info("Retryable error (attempt %d/%d): %s. Retrying in %.1f seconds...",
                        attempt + 1, max_retries + 1, e, delay)
            await sleep(delay)


# -----------------------------------------------------------------------------
# Response parsing
# -----------------------------------------------------------------------------

def extract_json_array(response_text: str) -> list:
    """
    Extract the JSON array from a model reply.

    Markdown fences are removed and the text between the first '[' and the
    last ']' is decoded, which tolerates prose before or after the array.

    Raises:
        ParseError: If no bracketed array is found, or it does not decode to a list
    """
    json_str = (response_text or '').replace('```json', '').replace('```', '').strip()

    array_start = json_str.find('[')
    array_end = json_str.rfind(']')
    if array_start == -1 or array_end == -1 or array_start >= array_end:
        raise ParseError('No valid JSON array found in response')

    json_str = json_str[array_start:array_end + 1]
    try:
        data = json.loads(json_str)
    except json.JSONDecodeError as e:
        logger.debug("Unparseable model output: %s", json_str)
        raise ParseError(f'Failed to parse JSON response: {e}') from e

    if not isinstance(data, list):
        raise ParseError('Model response is not a JSON array')
    return data


def _iter_named_items(data: list):
    for item in data:
        if not isinstance(item, dict):
            raise ParseError(f'Expected JSON objects in response array, got {type(item).__name__}')
        name = item.get('n')
        if not name or not isinstance(name, str):
            logger.warning("Skipping response entry without a process name: %s", item)
            continue
        yield item


def parse_analysis_response(response_text: str) -> List[AnalysisRecord]:
    """Map abbreviated {n, r, d, k} objects to AnalysisRecord."""
    return [
        AnalysisRecord(
            process_name=item['n'],
            risk_level=item.get('r', 'Unknown'),
            description=item.get('d', ''),
            recommendation=KEEP_RECOMMENDATION if item.get('k') else TERMINATE_RECOMMENDATION,
        )
        for item in _iter_named_items(extract_json_array(response_text))
    ]


def parse_dev_mode_response(response_text: str) -> List[DevModeAnalysisRecord]:
    """Map {n, type, analysis, recommendation} objects to DevModeAnalysisRecord."""
    return [
        DevModeAnalysisRecord(
            process_name=item['n'],
            type=item.get('type', 'Normal'),
            analysis=item.get('analysis', ''),
            recommendation=item.get('recommendation', ''),
        )
        for item in _iter_named_items(extract_json_array(response_text))
    ]


# -----------------------------------------------------------------------------
# Run logfile
# -----------------------------------------------------------------------------

# Single log file per run: set once at startup, reused for all model calls.
_run_logfile = None


def GetLogfile(dir_path='', log_stem='log'):
    if not os.path.isdir(dir_path):
        if os.path.isfile(dir_path):
            dir_path = os.path.dirname(dir_path)
        else:
            dir_path = os.path.abspath(os.path.curdir)
    count = 1
    while os.path.exists(os.path.join(dir_path, log_stem + str(count).zfill(4) + '.json')):
        count += 1
    return str(os.path.join(dir_path, log_stem + str(count).zfill(4) + '.json'))


def set_run_logfile(path):
    """Set the logfile path for this run. None disables exchange logging."""
    global _run_logfile
    _run_logfile = path


def get_run_logfile():
    return _run_logfile


def log_model_exchange(provider_name: str, model: str, prompt: str, response: str):
    """Append one prompt/response pair to the run logfile, if one is set."""
    logfile = get_run_logfile()
    if not logfile:
        return
    log_entry = [datetime.now(timezone.utc).isoformat(), provider_name, model, prompt, response]
    try:
        with open(logfile, "a", encoding='utf-8') as logfile_handle:
            logfile_handle.write(json.dumps(log_entry, indent=4))
    except OSError as e:
        logger.warning("Could not write to run logfile %s: %s", logfile, e)


# -----------------------------------------------------------------------------
# Providers
# -----------------------------------------------------------------------------

class BaseAIProvider(ABC):
    """
    One hosted model behind a uniform capability interface.

    Subclasses only implement the raw completion call. Classification and dev
    mode analysis share the same parsing on top of it.
    """

    name = 'Provider'
    default_model = ''

    def __init__(self, api_key: str = '', model: str = '', max_tokens: int = 8000):
        self.model = model or self.default_model
        self.max_tokens = max_tokens
        self.client = None
        if api_key:
            self.initialize(api_key)

    def initialize(self, api_key: str):
        """Create the SDK client for api_key. Empty keys are ignored."""
        if not api_key:
            return
        self.client = self._create_client(api_key)

    def is_initialized(self) -> bool:
        return self.client is not None

    @abstractmethod
    def _create_client(self, api_key: str):
        pass

    @abstractmethod
    async def _complete(self, prompt: str) -> str:
        pass

    async def get_raw_completion(self, prompt: str) -> str:
        """Send prompt as a single user message and return the reply text."""
        if not self.is_initialized():
            raise NotInitializedError(f'{self.name} API not initialized')
        text = await self._complete(prompt)
        log_model_exchange(self.name, self.model, prompt, text)
        return text

    async def analyze(self, processes: List[ProcessSample], prompt: str) -> List[AnalysisRecord]:
        text = await self.get_raw_completion(prompt)
        return parse_analysis_response(text)

    async def analyze_dev_mode(self, processes: List[ProcessSample], prompt: str) -> List[DevModeAnalysisRecord]:
        text = await self.get_raw_completion(prompt)
        return parse_dev_mode_response(text)


class OpenRouterProvider(BaseAIProvider):
    """OpenRouter chat completions through the OpenAI SDK."""

    name = 'OpenRouter'
    default_model = 'google/gemini-2.0-flash-001'
    base_url = 'https://openrouter.ai/api/v1'
    app_headers = {
        'HTTP-Referer': 'https://github.com/process-risk-analyzer',
        'X-Title': 'Process Risk Analyzer',
    }

    def _create_client(self, api_key: str):
        # SDK retries are disabled; with_retry owns the retry policy.
        return openai.AsyncOpenAI(
            api_key=api_key,
            base_url=self.base_url,
            default_headers=self.app_headers,
            max_retries=0,
        )

    async def _complete(self, prompt: str) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=self.max_tokens,
            )
        except openai.APIStatusError as e:
            raise ProviderHTTPError(self.name, e.status_code, _reason_phrase(e.response), e.message) from e
        except openai.APIConnectionError as e:
            raise NetworkTransientError(self.name, get_error_message(e)) from e

        choices = getattr(response, 'choices', None)
        if not choices or getattr(choices[0], 'message', None) is None:
            raise ResponseFormatError('Invalid response format from OpenRouter')
        return choices[0].message.content or ''


class GeminiProvider(BaseAIProvider):
    """Google Gemini through the google-genai async client."""

    name = 'Gemini'
    default_model = 'gemini-2.5-flash'

    def _create_client(self, api_key: str):
        return genai.Client(api_key=api_key)

    async def _complete(self, prompt: str) -> str:
        try:
            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=prompt,
            )
        except genai_errors.APIError as e:
            raise ProviderHTTPError(self.name, e.code, e.status or '', e.message or '') from e
        except httpx.TransportError as e:
            raise NetworkTransientError(self.name, get_error_message(e)) from e

        text = getattr(response, 'text', None)
        if text is None:
            raise ResponseFormatError('Invalid response format from Gemini')
        return text


class AnthropicProvider(BaseAIProvider):
    """Anthropic Claude messages API."""

    name = 'Claude'
    default_model = 'claude-haiku-4-5-20251001'

    def _create_client(self, api_key: str):
        return anthropic.AsyncAnthropic(api_key=api_key, max_retries=0)

    async def _complete(self, prompt: str) -> str:
        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIStatusError as e:
            raise ProviderHTTPError(self.name, e.status_code, _reason_phrase(e.response), e.message) from e
        except anthropic.APIConnectionError as e:
            raise NetworkTransientError(self.name, get_error_message(e)) from e

        if not response.content:
            raise ResponseFormatError('Invalid response format from Claude')
        return ''.join(getattr(block, 'text', '') for block in response.content)


def _reason_phrase(response) -> str:
    return getattr(response, 'reason_phrase', '') or ''


PROVIDER_CLASSES: Dict[str, type] = {
    'openrouter': OpenRouterProvider,
    'gemini': GeminiProvider,
    'claude': AnthropicProvider,
}


def create_provider(model_name: str, config: Dict[str, Any]) -> BaseAIProvider:
    """
    Factory function to create providers using model names.

    The provider is initialized when a key for its platform is available
    and left uninitialized otherwise.

    Args:
        model_name: Model name from the 'models' section (e.g., 'gemini-flash')
        config: Configuration dictionary

    Returns:
        BaseAIProvider instance
    """
    model_config = get_model_config(config, model_name)
    platform_lower = model_config['platform'].lower()

    if platform_lower not in PROVIDER_CLASSES:
        raise ConfigError(f"Unsupported platform '{model_config['platform']}' for model '{model_name}'.")

    provider = PROVIDER_CLASSES[platform_lower](
        model=model_config['model'],
        max_tokens=model_config.get('max_tokens', 8000),
    )
    api_key = get_api_key(config, platform_lower)
    if api_key:
        provider.initialize(api_key)
    else:
        logger.info("No API key configured for %s; provider left uninitialized.", provider.name)
    return provider
