"""Build the translation backend and orchestrator described by an ``AppConfig``."""
import logging
from dataclasses import dataclass
from typing import Dict

from aiolimiter import AsyncLimiter

from translator_sync.app_config import AppConfig
from translator_sync.errors import ConfigurationError
from translator_sync.openai_backend import OpenAIBackend
from translator_sync.translator import MockTranslationBackend, TranslationBackend, TranslationOrchestrator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderDefaults:
    base_url: str
    model: str
    timeout: float


PROVIDER_DEFAULTS: Dict[str, ProviderDefaults] = {
    "openai": ProviderDefaults("https://api.openai.com/v1", "gpt-4o-mini", 30.0),
    "deepseek": ProviderDefaults("https://api.deepseek.com/v1", "deepseek-chat", 60.0),
    "groq": ProviderDefaults("https://api.groq.com/openai/v1", "llama-3-8b-instant", 30.0),
}


def create_backend(config: AppConfig) -> TranslationBackend:
    """
    Create the backend for ``config.provider``.

    Raises:
        ConfigurationError: If the provider is unknown or needs an API key that is not set.
    """
    if config.provider == "mock":
        logger.info("Using the mock translation backend")
        return MockTranslationBackend()

    defaults = PROVIDER_DEFAULTS.get(config.provider)
    if defaults is None:
        raise ConfigurationError(f"Unknown provider '{config.provider}'")

    if not config.api_key:
        raise ConfigurationError(
            f"No API key configured for provider '{config.provider}'. "
            "Set TRANSLATOR_API_KEY or use the 'mock' provider."
        )

    model = config.model_name or defaults.model
    rate_limiter = AsyncLimiter(max_rate=config.rate_limit_per_minute, time_period=60)
    logger.info(f"Using {config.provider} backend with model {model}")
    return OpenAIBackend(
        api_key=config.api_key,
        model=model,
        base_url=config.base_url or defaults.base_url,
        timeout=config.timeout or defaults.timeout,
        provider=config.provider,
        rate_limiter=rate_limiter,
    )


def create_orchestrator(config: AppConfig) -> TranslationOrchestrator:
    return TranslationOrchestrator(create_backend(config), max_attempts=config.max_attempts)
