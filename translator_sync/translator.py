"""
Batch translation through a pluggable backend.

``TranslationOrchestrator.translate_batch`` deduplicates the texts, sends one
request per call, retries transient failures with exponential backoff and maps
every requested text to a translation (or to ``UNAVAILABLE_TRANSLATION``).

Each call walks the states

    PENDING -> ATTEMPTING -> SUCCESS
                          -> RETRYABLE_FAILURE -> (delay) ATTEMPTING
                          -> FATAL_FAILURE

and a retryable failure becomes fatal once ``max_attempts`` is spent.
"""
import asyncio
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional

from translator_sync.cost_calculator import CostResult, TokenUsage, calculate_cost
from translator_sync.errors import TranslationFatalError, TranslationTransientError
from translator_sync.variables import get_variable_instructions

logger = logging.getLogger(__name__)

UNAVAILABLE_TRANSLATION = "[Translation unavailable]"
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 1.0
MIN_DESCRIPTION_LENGTH = 10

LANGUAGE_NAMES: Dict[str, str] = {
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "pt": "Portuguese",
    "ru": "Russian",
    "ja": "Japanese",
    "ko": "Korean",
    "zh": "Chinese",
    "ar": "Arabic",
    "hi": "Hindi",
    "nl": "Dutch",
    "sv": "Swedish",
    "no": "Norwegian",
    "da": "Danish",
    "fi": "Finnish",
    "pl": "Polish",
    "cs": "Czech",
    "hu": "Hungarian",
    "tr": "Turkish",
}

DOMAIN_INSTRUCTIONS: Dict[str, str] = {
    "technical": "Use technical terminology and precise language.",
    "marketing": "Use engaging, persuasive language suitable for marketing.",
    "ui": "Use concise, clear language suitable for user interfaces.",
    "legal": "Use formal, precise legal terminology.",
    "medical": "Use appropriate medical terminology.",
}

TONE_INSTRUCTIONS: Dict[str, str] = {
    "formal": "Use formal, professional language.",
    "casual": "Use casual, friendly language.",
    "professional": "Use business-professional language.",
    "conversational": "Use natural, conversational language.",
}


class BatchState(Enum):
    PENDING = "pending"
    ATTEMPTING = "attempting"
    SUCCESS = "success"
    RETRYABLE_FAILURE = "retryable_failure"
    FATAL_FAILURE = "fatal_failure"


@dataclass
class TranslationContext:
    """Free-text and structured guidance passed along with a batch."""
    custom_instructions: Optional[str] = None
    domain: Optional[str] = None
    tone: Optional[str] = None
    preserve_variables: bool = True
    preserve_length: bool = False
    max_length: Optional[int] = None


@dataclass
class TranslationRequest:
    """One backend call. ``texts`` are the distinct texts as sent, one line each."""
    source_lang: str
    target_lang: str
    texts: List[str]
    prompt: str


@dataclass
class BackendResponse:
    content: str
    usage: TokenUsage = field(default_factory=TokenUsage)


@dataclass
class UsageStats:
    """Token counters accumulated over the lifetime of one orchestrator."""
    input_tokens: int = 0
    output_tokens: int = 0

    def add(self, usage: Optional[TokenUsage]) -> None:
        if usage is None:
            return
        self.input_tokens += usage.prompt_tokens
        self.output_tokens += usage.completion_tokens

    def as_token_usage(self) -> TokenUsage:
        return TokenUsage(prompt_tokens=self.input_tokens, completion_tokens=self.output_tokens)


class TranslationBackend(ABC):
    """
    The external translation capability: one request in, one line per text out.

    Implementations raise ``TranslationTransientError`` for failures worth
    retrying and ``TranslationFatalError`` for everything that is not.
    """
    name = "backend"
    model_name = "unknown"

    @abstractmethod
    async def translate(self, request: TranslationRequest) -> BackendResponse:
        raise NotImplementedError


class MockTranslationBackend(TranslationBackend):
    """Returns ``translated: <text>`` for every text. For tests and dry runs."""
    name = "mock"
    model_name = "mock"

    async def translate(self, request: TranslationRequest) -> BackendResponse:
        return BackendResponse(content="\n".join(f"translated: {text}" for text in request.texts))


def language_name(code: str) -> str:
    return LANGUAGE_NAMES.get(code.split('-')[0].split('_')[0].lower(), code)


def build_project_context(description: Optional[str]) -> Optional[str]:
    """Turn a project description into prompt instructions; short descriptions are ignored."""
    if not description or len(description.strip()) < MIN_DESCRIPTION_LENGTH:
        return None
    return (
        f"PROJECT CONTEXT: {description.strip()}\n\n"
        "Based on this project context, adapt your translations to match the appropriate:\n"
        "- Language style and tone\n"
        "- Target audience expectations\n"
        "- Domain-specific terminology\n"
        "- Professional vs casual language\n"
        "- Length constraints for UI elements\n"
        "- Cultural and contextual appropriateness"
    )


def build_context_instructions(context: TranslationContext) -> str:
    instructions: List[str] = []
    if context.custom_instructions:
        instructions.append(context.custom_instructions)
    if context.domain in DOMAIN_INSTRUCTIONS:
        instructions.append(DOMAIN_INSTRUCTIONS[context.domain])
    if context.tone in TONE_INSTRUCTIONS:
        instructions.append(TONE_INSTRUCTIONS[context.tone])
    if context.preserve_variables:
        instructions.append("CRITICAL: Preserve ALL variables and placeholders exactly as written.")
    if context.preserve_length:
        instructions.append(
            "CRITICAL: Match the character length of the original text as closely as possible. "
            "If an exact match is impossible, stay within the original length rather than expanding."
        )
    if context.max_length:
        instructions.append(f"CRITICAL: Keep translations under {context.max_length} characters.")
    return "CONTEXT:\n" + "\n\n".join(instructions) + "\n" if instructions else ""


def build_prompt(source_lang: str, target_lang: str, texts: List[str], context: TranslationContext) -> str:
    """Build the single prompt covering every text of a batch."""
    variable_instructions = "\n".join(
        dict.fromkeys(instruction for instruction in (get_variable_instructions(text) for text in texts) if instruction)
    )
    numbered = "\n".join(f"{i + 1}. {text}" for i, text in enumerate(texts))
    variable_section = f"VARIABLE PRESERVATION:\n{variable_instructions}\n" if variable_instructions else ""

    return f"""You are a professional translator. Translate the following texts from {language_name(source_lang)} to {language_name(target_lang)}.

{build_context_instructions(context)}
CRITICAL REQUIREMENTS:
- Preserve ALL variables and placeholders EXACTLY as they appear in the source
- A literal \\n inside a text is a line break: keep it as \\n at the same place
- Return translations in the same order as input
- Be culturally appropriate for the target language
- Do not add explanations or comments
- Each line of output should correspond to one input text

{variable_section}
Input texts (one per line):
{numbered}

Output format (one translation per line, same order, no numbers):"""


def encode_text(text: str) -> str:
    """Keep a multi-line text on one prompt line."""
    return text.replace("\n", "\\n")


def decode_text(translated: str, original: str) -> str:
    if "\n" in original:
        return translated.replace("\\n", "\n")
    return translated


def clean_translated_text(translated_text: str, original_text: str) -> str:
    """
    Remove quotes or square brackets the model wrapped around a translation
    when the original text was not wrapped in them.
    """
    if len(translated_text) >= 2 and translated_text.startswith('"') and translated_text.endswith('"') and not (
            original_text.startswith('"') and original_text.endswith('"')):
        translated_text = translated_text[1:-1]
    if len(translated_text) >= 2 and translated_text.startswith('[') and translated_text.endswith(']') and not (
            original_text.startswith('[') and original_text.endswith(']')):
        translated_text = translated_text[1:-1]
    return translated_text


def parse_response(original_texts: List[str], response: str) -> Dict[str, str]:
    """
    Match the response lines to ``original_texts`` by position.

    Blank lines are ignored. A text without a corresponding line maps to
    ``UNAVAILABLE_TRANSLATION`` so every requested text has an entry.
    """
    lines = [line.strip() for line in response.split("\n") if line.strip()]
    result: Dict[str, str] = {}
    for i, original in enumerate(original_texts):
        if i >= len(lines):
            result[original] = UNAVAILABLE_TRANSLATION
            continue
        line = lines[i]
        if not re.match(rf'^{i + 1}\.\s', original):
            line = re.sub(rf'^{i + 1}\.\s*', '', line)
        if not re.match(r'^[-*]\s', original):
            line = re.sub(r'^[-*]\s+', '', line)
        translation = decode_text(clean_translated_text(line.strip(), original), original)
        result[original] = translation or UNAVAILABLE_TRANSLATION
    return result


class TranslationOrchestrator:
    """
    Drives one backend: batching, retries and usage accounting.

    Args:
        backend: The translation capability.
        max_attempts: Total attempts per batch, including the first one.
        base_delay: Delay before the first retry, in seconds; doubled on each retry.
        sleep: Coroutine used to wait between attempts. Tests inject a fake clock here.
    """

    def __init__(
            self,
            backend: TranslationBackend,
            max_attempts: int = DEFAULT_MAX_ATTEMPTS,
            base_delay: float = DEFAULT_BASE_DELAY,
            sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.backend = backend
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._sleep = sleep
        self.usage = UsageStats()
        self.state = BatchState.PENDING
        self.state_history: List[BatchState] = []

    def _transition(self, state: BatchState) -> None:
        self.state = state
        self.state_history.append(state)
        logger.debug(f"Batch state -> {state.value}")

    def backoff_delay(self, attempt: int) -> float:
        """Delay after failed ``attempt`` (1-based): 1s, 2s, 4s with the default base."""
        return self.base_delay * (2 ** (attempt - 1))

    async def _dispatch(self, request: TranslationRequest) -> BackendResponse:
        self.state_history = []
        self._transition(BatchState.PENDING)
        attempt = 0
        while True:
            attempt += 1
            self._transition(BatchState.ATTEMPTING)
            try:
                response = await self.backend.translate(request)
            except TranslationFatalError as fatal_exc:
                self.usage.add(fatal_exc.usage)
                self._transition(BatchState.FATAL_FAILURE)
                logger.error(f"Translation to '{request.target_lang}' failed and will not be retried: {fatal_exc}")
                raise
            except TranslationTransientError as transient_exc:
                self.usage.add(transient_exc.usage)
                self._transition(BatchState.RETRYABLE_FAILURE)
                if attempt >= self.max_attempts:
                    self._transition(BatchState.FATAL_FAILURE)
                    logger.error(f"Translation to '{request.target_lang}' failed after {attempt} attempts.")
                    raise TranslationFatalError(
                        f"Translation to '{request.target_lang}' failed after {attempt} attempts: {transient_exc}"
                    ) from transient_exc
                delay = self.backoff_delay(attempt)
                if transient_exc.retry_after:
                    delay = max(delay, transient_exc.retry_after)
                logger.info(
                    f"Transient error ({transient_exc}). Retrying in {delay:.2f} seconds "
                    f"(Attempt {attempt}/{self.max_attempts})"
                )
                await self._sleep(delay)
                continue

            self.usage.add(response.usage)
            self._transition(BatchState.SUCCESS)
            return response

    async def translate_batch(
            self,
            source_lang: str,
            target_lang: str,
            texts: List[str],
            context: Optional[TranslationContext] = None
    ) -> Dict[str, str]:
        """
        Translate ``texts`` in a single backend request.

        Args:
            source_lang: Source language code, e.g. ``en``.
            target_lang: Target language code, e.g. ``es``.
            texts: Texts to translate; duplicates are sent once.
            context: Optional guidance for the backend.

        Returns:
            Dict[str, str]: source text -> translated text, for every input text.

        Raises:
            TranslationFatalError: On a non-retryable failure or once retries are exhausted.
        """
        if not texts:
            return {}

        unique_texts = list(dict.fromkeys(texts))
        if len(unique_texts) < len(texts):
            logger.debug(f"Deduplicated {len(texts)} texts to {len(unique_texts)} distinct texts")

        # Blank texts map to themselves and are never sent to the backend.
        translations = {text: text for text in unique_texts if not text.strip()}
        pending = [text for text in unique_texts if text.strip()]
        if not pending:
            return translations

        encoded_texts = [encode_text(text) for text in pending]
        request = TranslationRequest(
            source_lang=source_lang,
            target_lang=target_lang,
            texts=encoded_texts,
            prompt=build_prompt(source_lang, target_lang, encoded_texts, context or TranslationContext())
        )
        response = await self._dispatch(request)
        translations.update(parse_response(pending, response.content))
        return {text: translations[text] for text in unique_texts}

    async def translate_with_context(
            self,
            source_lang: str,
            target_lang: str,
            texts: List[str],
            project_description: Optional[str] = None,
            context: Optional[TranslationContext] = None
    ) -> Dict[str, str]:
        """Like ``translate_batch``, with the project description merged into the custom instructions."""
        context = context or TranslationContext()
        project_context = build_project_context(project_description)
        combined = "\n\n".join(part for part in (context.custom_instructions, project_context) if part)
        return await self.translate_batch(
            source_lang,
            target_lang,
            texts,
            replace(context, custom_instructions=combined or None)
        )

    def get_usage_stats(self) -> UsageStats:
        return replace(self.usage)

    def estimate_cost(self) -> CostResult:
        return calculate_cost(self.backend.model_name, self.usage.as_token_usage())
