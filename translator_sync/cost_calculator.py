"""Token counting and cost estimation for translation backends. All prices are USD per 1M tokens."""
import logging
import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

import tiktoken

logger = logging.getLogger(__name__)

DEFAULT_PRICING_MODEL = "gpt-4.1-nano"
PROMPT_OVERHEAD_TOKENS = 200
DEFAULT_EXPANSION_FACTOR = 1.1


@dataclass(frozen=True)
class ModelPricing:
    input_price: float
    output_price: float


@dataclass
class TokenUsage:
    """Token counts reported for one or more backend calls."""
    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


@dataclass(frozen=True)
class CostResult:
    input_cost: float
    output_cost: float
    total_cost: float
    currency: str = "USD"


MODEL_PRICING: Dict[str, ModelPricing] = {
    # Recommended
    "gpt-4.1-nano": ModelPricing(0.15, 0.6),
    "deepseek-v3": ModelPricing(0.14, 0.28),
    "llama-4-maverick": ModelPricing(0.05, 0.1),

    # Aliases and older models
    "gpt-4o-mini": ModelPricing(0.15, 0.6),
    "deepseek-chat": ModelPricing(0.14, 0.28),
    "deepseek-v2": ModelPricing(0.14, 0.28),
    "gpt-3.5-turbo": ModelPricing(0.5, 1.5),
    "gpt-3.5-turbo-0125": ModelPricing(0.5, 1.5),

    # Premium
    "gpt-4o": ModelPricing(5.0, 15.0),
    "claude-3.5-sonnet": ModelPricing(3.0, 15.0),

    "llama-3-70b": ModelPricing(0.59, 0.79),
    "llama-3-70b-8192": ModelPricing(0.59, 0.79),
    "llama-3-8b": ModelPricing(0.05, 0.1),
    "llama-3-8b-8192": ModelPricing(0.05, 0.1),
    "llama-3-8b-instant": ModelPricing(0.05, 0.1),
    "mixtral-8x7b": ModelPricing(0.27, 0.27),
    "mixtral-8x7b-32768": ModelPricing(0.27, 0.27),
}

# Typical length of a translation relative to its English source.
LANGUAGE_EXPANSION_FACTORS: Dict[str, float] = {
    "es": 1.1,
    "fr": 1.15,
    "it": 1.1,
    "pt": 1.1,
    "de": 1.25,
    "nl": 1.15,
    "ja": 0.8,
    "ko": 0.9,
    "zh": 0.7,
    "ru": 1.2,
    "ar": 1.0,
    "hi": 1.1,
}


def _calculate_with_pricing(pricing: ModelPricing, usage: TokenUsage) -> CostResult:
    input_cost = (usage.prompt_tokens / 1_000_000) * pricing.input_price
    output_cost = (usage.completion_tokens / 1_000_000) * pricing.output_price
    return CostResult(input_cost=input_cost, output_cost=output_cost, total_cost=input_cost + output_cost)


def calculate_cost(model: str, usage: TokenUsage) -> CostResult:
    """
    Calculate the cost of API usage.

    Unknown models are priced like ``gpt-4.1-nano`` and logged; cost estimation
    never blocks a translation run.

    Args:
        model: The model identifier.
        usage: Prompt and completion token counts.

    Returns:
        CostResult: Input, output and total cost in USD.
    """
    pricing = MODEL_PRICING.get(model)
    if pricing is None:
        logger.warning(f"Unknown model for pricing: {model}. Using {DEFAULT_PRICING_MODEL} pricing.")
        pricing = MODEL_PRICING[DEFAULT_PRICING_MODEL]
    return _calculate_with_pricing(pricing, usage)


def count_tokens(text: str, model_name: str = DEFAULT_PRICING_MODEL) -> int:
    """Count the number of tokens in ``text`` for ``model_name``.

    ``tiktoken.encoding_for_model`` may try to download encoding data, which is
    not possible in every environment, and it does not know non-OpenAI models.
    In that case ``cl100k_base`` is tried, and as a last resort the usual
    approximation of one token per four characters is used.
    """
    try:
        encoding = tiktoken.encoding_for_model(model_name)
    except Exception:
        try:
            encoding = tiktoken.get_encoding("cl100k_base")
        except Exception:
            return math.ceil(len(text) / 4)

    try:
        return len(encoding.encode(text))
    except Exception:
        return math.ceil(len(text) / 4)


def get_language_expansion_factor(target_language: str) -> float:
    return LANGUAGE_EXPANSION_FACTORS.get(target_language.split('-')[0].split('_')[0].lower(), DEFAULT_EXPANSION_FACTOR)


def estimate_translation_cost(model: str, source_texts: Iterable[str], target_language: str = "es") -> CostResult:
    """
    Estimate the cost of translating ``source_texts`` before calling the backend.

    Input tokens are the texts plus a fixed prompt overhead; output tokens are
    the input scaled by the target language's expansion factor.
    """
    estimated_input = count_tokens(" ".join(source_texts), model) + PROMPT_OVERHEAD_TOKENS
    estimated_output = math.ceil(estimated_input * get_language_expansion_factor(target_language))
    return calculate_cost(model, TokenUsage(prompt_tokens=estimated_input, completion_tokens=estimated_output))


def get_model_pricing(model: str) -> Optional[ModelPricing]:
    return MODEL_PRICING.get(model)


def get_all_model_pricing() -> Dict[str, ModelPricing]:
    return dict(MODEL_PRICING)


def find_cheapest_model(models: List[str]) -> Optional[str]:
    """Return the known model with the lowest average of input and output price."""
    cheapest_model = None
    lowest_cost = math.inf
    for model in models:
        pricing = MODEL_PRICING.get(model)
        if pricing is None:
            continue
        average = (pricing.input_price + pricing.output_price) / 2
        if average < lowest_cost:
            lowest_cost = average
            cheapest_model = model
    return cheapest_model


def format_cost(cost: CostResult) -> str:
    if cost.total_cost < 0.001:
        return f"${cost.total_cost * 1000:.3f}‰"
    if cost.total_cost < 0.01:
        return f"${cost.total_cost:.4f}"
    return f"${cost.total_cost:.3f}"
