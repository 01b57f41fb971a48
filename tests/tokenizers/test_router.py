"""
Tests for model classification and automatic strategy selection.

These tests verify:
1. OpenAI substrings route to the exact strategy
2. Llama substrings route to the approximate strategy
3. OpenAI wins when both sets match
4. Unknown identifiers count with the default model and log a warning
"""

import pytest as _pytest
import tiktoken as _tiktoken

import tokenmeter.tokenizers.cache as encoder_cache
import tokenmeter.tokenizers.router as router
import tokenmeter.tokenizers.strategies as strategies


class TestClassifyModel:
    """Tests for classify_model()."""

    @_pytest.mark.parametrize(
        "model",
        [
            "gpt-4",
            "GPT-4o",
            "text-embedding-3-small",
            "text-davinci-003",
            "davinci",
            "curie",
            "babbage-002",
            "ada",
            "my-gpt-finetune",
        ],
    )
    def test_openai_family(self, model: str) -> None:
        assert router.classify_model(model) is router.ModelFamily.OPENAI

    @_pytest.mark.parametrize(
        "model",
        [
            "llama-2-7b",
            "Llama-3-70B",
            "mistral-7b",
            "mixtral-8x7b",
            "codellama-13b",
            "vicuna",
            "alpaca-7b",
        ],
    )
    def test_llama_family(self, model: str) -> None:
        assert router.classify_model(model) is router.ModelFamily.LLAMA

    @_pytest.mark.parametrize("model", ["claude-3-sonnet", "gemini-pro", "some-random-model", ""])
    def test_unknown_family(self, model: str) -> None:
        assert router.classify_model(model) is router.ModelFamily.UNKNOWN

    def test_openai_checked_first(self) -> None:
        """An identifier matching both sets is OpenAI."""
        assert router.classify_model("gpt-llama-hybrid") is router.ModelFamily.OPENAI

    def test_custom_routing(self) -> None:
        routing = router.RoutingTable.create(llama_prefixes=["Qwen"])
        assert router.classify_model("qwen-72b", routing) is router.ModelFamily.LLAMA
        assert router.classify_model("mistral-7b", routing) is router.ModelFamily.UNKNOWN


class TestRoutingTable:
    """Tests for RoutingTable.create()."""

    def test_defaults(self) -> None:
        routing = router.RoutingTable.create()
        assert routing == router.DEFAULT_ROUTING
        assert routing.default_model == "gpt-4"

    def test_prefixes_are_lower_cased(self) -> None:
        routing = router.RoutingTable.create(openai_prefixes=["GPT", "O1"])
        assert routing.openai_prefixes == ("gpt", "o1")

    def test_default_model_override(self) -> None:
        routing = router.RoutingTable.create(default_model="gpt-4o")
        assert routing.default_model == "gpt-4o"


class TestSelectStrategy:
    """Tests for select_strategy()."""

    def test_openai_gets_exact_for_same_model(self) -> None:
        assert router.select_strategy("gpt-4o") == strategies.Strategy.exact("gpt-4o")

    def test_llama_gets_approximate(self) -> None:
        strategy = router.select_strategy("llama-2-7b")
        assert strategy == strategies.Strategy.approximate("llama-2-7b")

    def test_unknown_gets_exact_default_model(self, caplog: _pytest.LogCaptureFixture) -> None:
        with caplog.at_level("WARNING", logger="tokenmeter"):
            strategy = router.select_strategy("claude-3-sonnet")
        assert strategy == strategies.Strategy.exact("gpt-4")
        assert "Unknown model type 'claude-3-sonnet', defaulting to gpt-4" in caplog.text

    def test_known_models_do_not_warn(self, caplog: _pytest.LogCaptureFixture) -> None:
        with caplog.at_level("WARNING", logger="tokenmeter"):
            router.select_strategy("gpt-4")
            router.select_strategy("mistral-7b")
        assert caplog.records == []

    def test_unknown_uses_routing_default(self) -> None:
        routing = router.RoutingTable.create(default_model="gpt-4o")
        assert router.select_strategy("gemini-pro", routing) == strategies.Strategy.exact("gpt-4o")


class TestCountAuto:
    """Tests for count_auto()."""

    def test_openai_model_counts_exactly(self, cache: encoder_cache.EncoderCache) -> None:
        text = "Hello, world!"
        expected = len(_tiktoken.get_encoding("o200k_base").encode(text))
        result = router.count_auto(text, "gpt-4o", cache=cache)
        assert result.token_count == expected
        assert result.method == "exact"

    def test_llama_model_is_approximate(self, cache: encoder_cache.EncoderCache) -> None:
        text = "Hello, world!"
        expected = len(_tiktoken.get_encoding("cl100k_base").encode(text))
        result = router.count_auto(text, "llama-2-7b", cache=cache)
        assert result.token_count == expected
        assert result.method == "approximate"

    def test_unknown_model_matches_default_model(self, cache: encoder_cache.EncoderCache) -> None:
        text = "Counting for an unrecognised model."
        unknown = router.count_auto(text, "claude-3-sonnet", cache=cache)
        default = router.count_auto(text, "gpt-4", cache=cache)
        assert unknown.token_count == default.token_count
        assert unknown.method == "exact"
        assert cache.stats().models == ["gpt-4"]

    def test_failure_falls_back_to_estimate(self, broken_cache: encoder_cache.EncoderCache) -> None:
        result = router.count_auto("abcdefghi", "gpt-4", cache=broken_cache)
        assert result.token_count == 3
        assert result.method == "estimated"

    def test_elapsed_is_non_negative(self, cache: encoder_cache.EncoderCache) -> None:
        result = router.count_auto("hello", "mistral-7b", cache=cache)
        assert result.elapsed_ms >= 0
