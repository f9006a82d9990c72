"""Unit tests for pricing and token estimation. tiktoken is patched so no encoding data is downloaded."""
import logging
from unittest.mock import MagicMock, patch

import pytest

from translator_sync.cost_calculator import (
    CostResult,
    TokenUsage,
    calculate_cost,
    count_tokens,
    estimate_translation_cost,
    find_cheapest_model,
    format_cost,
    get_all_model_pricing,
    get_language_expansion_factor,
    get_model_pricing
)


class TestCalculateCost:

    def test_known_model(self):
        cost = calculate_cost("gpt-4o-mini", TokenUsage(prompt_tokens=1_000_000, completion_tokens=1_000_000))
        assert cost.input_cost == pytest.approx(0.15)
        assert cost.output_cost == pytest.approx(0.6)
        assert cost.total_cost == pytest.approx(0.75)
        assert cost.currency == "USD"

    def test_unknown_model_falls_back_to_default_pricing(self, caplog):
        usage = TokenUsage(prompt_tokens=2_000_000, completion_tokens=0)
        with caplog.at_level(logging.WARNING):
            cost = calculate_cost("some-new-model", usage)
        assert cost.total_cost == pytest.approx(0.3)
        assert "Unknown model for pricing: some-new-model" in caplog.text

    def test_zero_usage(self):
        assert calculate_cost("deepseek-chat", TokenUsage()).total_cost == 0


class TestCountTokens:

    def test_uses_model_encoding(self):
        encoding = MagicMock()
        encoding.encode.return_value = [1, 2, 3]
        with patch("translator_sync.cost_calculator.tiktoken") as mock_tiktoken:
            mock_tiktoken.encoding_for_model.return_value = encoding
            assert count_tokens("Hello world", "gpt-4o") == 3
        mock_tiktoken.encoding_for_model.assert_called_once_with("gpt-4o")

    def test_unknown_model_uses_base_encoding(self):
        encoding = MagicMock()
        encoding.encode.return_value = [1, 2]
        with patch("translator_sync.cost_calculator.tiktoken") as mock_tiktoken:
            mock_tiktoken.encoding_for_model.side_effect = KeyError("deepseek-chat")
            mock_tiktoken.get_encoding.return_value = encoding
            assert count_tokens("Hola", "deepseek-chat") == 2
        mock_tiktoken.get_encoding.assert_called_once_with("cl100k_base")

    def test_offline_fallback(self):
        with patch("translator_sync.cost_calculator.tiktoken") as mock_tiktoken:
            mock_tiktoken.encoding_for_model.side_effect = KeyError("model")
            mock_tiktoken.get_encoding.side_effect = OSError("no network")
            assert count_tokens("x" * 9, "llama-3-8b") == 3


class TestEstimateTranslationCost:

    def test_expansion_factor_applied(self):
        with patch("translator_sync.cost_calculator.count_tokens", return_value=100):
            cost = estimate_translation_cost("gpt-4o-mini", ["Hello", "Bye"], "de")
        # 300 input tokens (texts + prompt overhead), 375 output tokens.
        assert cost.input_cost == pytest.approx(300 / 1_000_000 * 0.15)
        assert cost.output_cost == pytest.approx(375 / 1_000_000 * 0.6)

    def test_language_expansion_factors(self):
        assert get_language_expansion_factor("de") == 1.25
        assert get_language_expansion_factor("pt-BR") == 1.1
        assert get_language_expansion_factor("xx") == 1.1


class TestPricingTable:

    def test_lookup(self):
        assert get_model_pricing("gpt-4o").input_price == 5.0
        assert get_model_pricing("missing") is None

    def test_all_pricing_is_a_copy(self):
        pricing = get_all_model_pricing()
        pricing.clear()
        assert get_model_pricing("gpt-4.1-nano") is not None

    def test_find_cheapest_model(self):
        assert find_cheapest_model(["gpt-4o", "llama-3-8b", "not-a-model"]) == "llama-3-8b"
        assert find_cheapest_model(["not-a-model"]) is None


class TestFormatCost:

    def test_ranges(self):
        assert format_cost(CostResult(0.0, 0.0005, 0.0005)) == "$0.500‰"
        assert format_cost(CostResult(0.0, 0.005, 0.005)) == "$0.0050"
        assert format_cost(CostResult(0.1, 0.4, 0.5)) == "$0.500"
