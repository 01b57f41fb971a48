"""Tests for chat message token accounting."""

import typing as _typing

import pytest as _pytest
import tiktoken as _tiktoken

import tokenmeter.tokenizers.cache as encoder_cache
import tokenmeter.tokenizers.chat as chat


class TestCountChatTokens:
    """Tests for count_chat_tokens()."""

    def test_empty_list_is_base_overhead(self, fake_cache: encoder_cache.EncoderCache) -> None:
        assert chat.count_chat_tokens([], cache=fake_cache) == 3

    def test_overhead_formula(self, fake_cache: encoder_cache.EncoderCache) -> None:
        """Fake encoders give one token per character, so the sum is exact."""
        messages = [
            {"role": "system", "content": "Be brief."},
            {"role": "user", "content": "hi"},
        ]
        expected = 3 + (4 + 6 + 9) + (4 + 4 + 2)
        assert chat.count_chat_tokens(messages, cache=fake_cache) == expected

    def test_empty_content_still_costs_overhead(
        self, fake_cache: encoder_cache.EncoderCache
    ) -> None:
        messages = [{"role": "user", "content": ""}]
        assert chat.count_chat_tokens(messages, cache=fake_cache) == 3 + 4 + 4

    def test_matches_tiktoken(self, cache: encoder_cache.EncoderCache) -> None:
        messages = [
            chat.ChatMessage(role="system", content="You are a helpful assistant."),
            chat.ChatMessage(role="user", content="What is the capital of France?"),
        ]
        encoder = _tiktoken.get_encoding("o200k_base")
        expected = 3 + sum(
            4 + len(encoder.encode(m.role)) + len(encoder.encode(m.content)) for m in messages
        )
        assert chat.count_chat_tokens(messages, "gpt-4o", cache=cache) == expected

    def test_default_model_is_gpt_4(
        self,
        fake_cache: encoder_cache.EncoderCache,
        recording_loader: _typing.Any,
    ) -> None:
        chat.count_chat_tokens([], cache=fake_cache)
        assert fake_cache.stats().models == ["gpt-4"]
        assert recording_loader.calls == ["cl100k_base"]

    def test_accepts_generators(self, fake_cache: encoder_cache.EncoderCache) -> None:
        messages = ({"role": "user", "content": c} for c in ["a", "bb"])
        assert chat.count_chat_tokens(messages, cache=fake_cache) == 3 + (4 + 4 + 1) + (4 + 4 + 2)

    def test_load_failure_propagates(self, broken_cache: encoder_cache.EncoderCache) -> None:
        with _pytest.raises(encoder_cache.EncoderLoadError):
            chat.count_chat_tokens([{"role": "user", "content": "hi"}], cache=broken_cache)

    def test_malformed_message_rejected(self, fake_cache: encoder_cache.EncoderCache) -> None:
        with _pytest.raises(ValueError, match="role"):
            chat.count_chat_tokens([{"content": "no role"}], cache=fake_cache)

    @_pytest.mark.parametrize("message", ["hello", 1, None, ["user", "hi"]])
    def test_non_mapping_message_rejected(
        self, fake_cache: encoder_cache.EncoderCache, message: _typing.Any
    ) -> None:
        with _pytest.raises(ValueError, match="must be a mapping"):
            chat.count_chat_tokens([message], cache=fake_cache)


class TestChatMessage:
    """Tests for ChatMessage.from_dict()."""

    def test_from_dict(self) -> None:
        message = chat.ChatMessage.from_dict({"role": "user", "content": "hi", "name": "x"})
        assert message == chat.ChatMessage(role="user", content="hi")

    def test_non_string_content_rejected(self) -> None:
        with _pytest.raises(ValueError):
            chat.ChatMessage.from_dict({"role": "user", "content": None})
