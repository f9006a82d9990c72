"""Translation backend for OpenAI-compatible chat completion APIs (OpenAI, DeepSeek, Groq)."""
import logging
import math
from typing import Optional

import httpx
from aiolimiter import AsyncLimiter
from openai import (
    APIConnectionError,
    APIStatusError,
    AsyncOpenAI,
    AuthenticationError,
    BadRequestError,
    NotFoundError,
    OpenAIError,
    PermissionDeniedError,
    RateLimitError,
    UnprocessableEntityError
)
from openai.types.chat import ChatCompletionUserMessageParam

from translator_sync.cost_calculator import TokenUsage
from translator_sync.errors import TranslationFatalError, TranslationTransientError
from translator_sync.translator import BackendResponse, TranslationBackend, TranslationRequest

logger = logging.getLogger(__name__)

MIN_COMPLETION_TOKENS = 500
MAX_COMPLETION_TOKENS = 4000
DEFAULT_TEMPERATURE = 0.1

FATAL_API_ERRORS = (
    AuthenticationError,
    PermissionDeniedError,
    BadRequestError,
    NotFoundError,
    UnprocessableEntityError,
)


def calculate_max_tokens(request: TranslationRequest) -> int:
    """Completion budget: source characters scaled for expansion and token ratio, kept within bounds."""
    total_chars = sum(len(text) for text in request.texts)
    estimated_tokens = math.ceil(total_chars * 1.5 * 1.3)
    return max(MIN_COMPLETION_TOKENS, min(MAX_COMPLETION_TOKENS, estimated_tokens))


def parse_retry_after(headers: Optional[httpx.Headers]) -> Optional[float]:
    """
    Read the server-requested delay from a response's headers.

    Supports ``retry-after-ms`` and ``retry-after`` given in seconds or with an
    ``ms`` suffix. Unparseable values are ignored.
    """
    if not headers:
        return None
    try:
        retry_after_ms = headers.get("retry-after-ms")
        if retry_after_ms:
            return float(retry_after_ms) / 1000
        retry_after_header = headers.get("retry-after")
        if retry_after_header:
            if retry_after_header.endswith("ms"):
                return float(retry_after_header[:-2]) / 1000
            return float(retry_after_header)
    except ValueError as exc:
        logger.warning(f"Failed to parse Retry-After header: {exc}. Falling back to exponential backoff.")
    return None


def classify_api_error(api_exc: OpenAIError, provider: str) -> Exception:
    """Map an ``openai`` exception onto the transient/fatal taxonomy."""
    message = f"{provider} API error: {api_exc.__class__.__name__} - {api_exc}"
    if isinstance(api_exc, FATAL_API_ERRORS):
        return TranslationFatalError(message)
    if isinstance(api_exc, RateLimitError):
        return TranslationTransientError(message, retry_after=parse_retry_after(api_exc.response.headers))
    if isinstance(api_exc, APIStatusError):
        if api_exc.status_code >= 500 or api_exc.status_code in (408, 409):
            return TranslationTransientError(message, retry_after=parse_retry_after(api_exc.response.headers))
        return TranslationFatalError(message)
    if isinstance(api_exc, APIConnectionError):
        # Includes APITimeoutError.
        return TranslationTransientError(message)
    return TranslationFatalError(message)


class OpenAIBackend(TranslationBackend):
    """
    Sends each translation request as a single chat completion.

    The client is created with ``max_retries=0``: retries belong to the
    ``TranslationOrchestrator`` so that every attempt is visible to it.

    Args:
        api_key: API key for the provider.
        model: Model identifier, e.g. ``gpt-4o-mini``.
        base_url: Base URL of the OpenAI-compatible API.
        timeout: Per-request timeout in seconds.
        provider: Name used in log and error messages.
        temperature: Sampling temperature.
        rate_limiter: Limits the rate of API calls.
        client: Pre-built client; mainly for tests.
    """

    def __init__(
            self,
            api_key: Optional[str],
            model: str,
            base_url: Optional[str] = None,
            timeout: float = 30.0,
            provider: str = "openai",
            temperature: float = DEFAULT_TEMPERATURE,
            rate_limiter: Optional[AsyncLimiter] = None,
            client: Optional[AsyncOpenAI] = None
    ):
        self.name = provider
        self.model_name = model
        self.temperature = temperature
        self.rate_limiter = rate_limiter or AsyncLimiter(max_rate=60, time_period=60)
        self.client = client or AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0)

    async def translate(self, request: TranslationRequest) -> BackendResponse:
        async with self.rate_limiter:
            try:
                response = await self.client.chat.completions.create(
                    model=self.model_name,
                    messages=[ChatCompletionUserMessageParam(role="user", content=request.prompt)],
                    temperature=self.temperature,
                    max_tokens=calculate_max_tokens(request),
                )
            except OpenAIError as api_exc:
                logger.error(f"API error occurred: {api_exc.__class__.__name__} - {api_exc}")
                raise classify_api_error(api_exc, self.name) from api_exc

        usage = TokenUsage()
        if response.usage is not None:
            usage = TokenUsage(
                prompt_tokens=response.usage.prompt_tokens or 0,
                completion_tokens=response.usage.completion_tokens or 0
            )

        content = ""
        if response.choices:
            content = response.choices[0].message.content or ""
        if not content.strip():
            raise TranslationTransientError(f"{self.name} returned an empty response", usage=usage)

        logger.debug(
            f"{self.name} translated {len(request.texts)} text(s) to '{request.target_lang}' "
            f"({usage.prompt_tokens} input / {usage.completion_tokens} output tokens)"
        )
        return BackendResponse(content=content, usage=usage)
