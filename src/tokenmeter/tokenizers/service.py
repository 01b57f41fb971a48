"""
TokenCounter: the composition root for token counting.

A TokenCounter owns one EncoderCache plus the routing table and estimate
settings, and exposes every counting operation against them. Callers that
need isolation (tests, multi-tenant services) create their own; everyone
else can share the process-wide instance from ``get_default_counter()``.
"""

from __future__ import annotations

import logging as _logging
import threading as _threading
import typing as _typing

import tokenmeter.constants as _constants
import tokenmeter.tokenizers.cache as encoder_cache
import tokenmeter.tokenizers.chat as chat
import tokenmeter.tokenizers.encodings as encodings
import tokenmeter.tokenizers.router as router
import tokenmeter.tokenizers.strategies as strategies

if _typing.TYPE_CHECKING:
    import tokenmeter.config as _config

_logger = _logging.getLogger(__name__)


class TokenCounter:
    """
    Token counting bound to one encoder cache.

    Usage:
        counter = TokenCounter()
        counter.count_auto("Hello, world!", "gpt-4o")        # exact, o200k_base
        counter.count_auto("Hello, world!", "llama-2-7b")    # approximate
        counter.count_chat_tokens([{"role": "user", "content": "hi"}])
        counter.clear_cache()
    """

    def __init__(
        self,
        cache: encoder_cache.EncoderCache | None = None,
        *,
        routing: router.RoutingTable | None = None,
        chars_per_token: int = _constants.DEFAULT_CHARS_PER_TOKEN,
    ) -> None:
        """
        Initialize a counter.

        Args:
            cache: Encoder cache to use. A new one is created if omitted.
            routing: Routing table (defaults to the built-in prefix sets).
            chars_per_token: Divisor for the fallback estimate.
        """
        if chars_per_token < 1:
            raise ValueError(f"chars_per_token must be at least 1, got {chars_per_token}")
        self._cache = cache if cache is not None else encoder_cache.EncoderCache()
        self._routing = routing or router.DEFAULT_ROUTING
        self._chars_per_token = chars_per_token

    @classmethod
    def from_settings(cls, settings: _config.Settings) -> TokenCounter:
        """Build a counter from loaded settings."""
        table = encodings.build_encoding_table(settings.models.encodings)
        cache = encoder_cache.EncoderCache(
            table=table,
            max_entries=settings.cache.max_entries,
        )
        routing = router.RoutingTable.create(
            openai_prefixes=settings.routing.openai_prefixes,
            llama_prefixes=settings.routing.llama_prefixes,
            default_model=settings.models.default,
        )
        return cls(
            cache,
            routing=routing,
            chars_per_token=settings.estimate.chars_per_token,
        )

    @property
    def cache(self) -> encoder_cache.EncoderCache:
        return self._cache

    @property
    def routing(self) -> router.RoutingTable:
        return self._routing

    # =========================================================================
    # Counting
    # =========================================================================

    def count_exact(self, text: str, model: str) -> strategies.TokenizerResult:
        """Count with the model's own encoding. Falls back to an estimate."""
        return strategies.count_exact(
            text, model, cache=self._cache, chars_per_token=self._chars_per_token
        )

    def count_approximate(
        self, text: str, model: str | None = None
    ) -> strategies.TokenizerResult:
        """Approximate a Llama-family count. Falls back to an estimate."""
        return strategies.count_approximate(
            text, model, cache=self._cache, chars_per_token=self._chars_per_token
        )

    def count_auto(self, text: str, model: str) -> strategies.TokenizerResult:
        """Count with whichever strategy the model routes to."""
        return router.count_auto(
            text,
            model,
            cache=self._cache,
            routing=self._routing,
            chars_per_token=self._chars_per_token,
        )

    def count_many(
        self, text: str, models: _typing.Iterable[str]
    ) -> dict[str, strategies.TokenizerResult]:
        """Auto-count the same text for several models, keyed by model."""
        return {model: self.count_auto(text, model) for model in models}

    def count_chat_tokens(
        self,
        messages: _typing.Iterable[chat.MessageLike],
        model: str | None = None,
    ) -> int:
        """
        Count tokens for a chat message list.

        Raises:
            EncoderLoadError: If the model's encoder cannot be loaded.
            ValueError: If a message is malformed.
        """
        return chat.count_chat_tokens(
            messages, model or self._routing.default_model, cache=self._cache
        )

    # =========================================================================
    # Encode / decode diagnostics
    # =========================================================================

    def classify(self, model: str) -> router.ModelFamily:
        return router.classify_model(model, self._routing)

    def encode(self, text: str, model: str) -> list[int]:
        """
        Encode text with the model's routed strategy.

        Raises:
            EncoderLoadError: If the encoder cannot be loaded.
            ValueError: If tiktoken rejects the text (e.g. special tokens).
        """
        strategy = router.select_strategy(model, self._routing)
        return strategies.encode(strategy, text, cache=self._cache)

    def decode(self, tokens: _typing.Iterable[int], model: str) -> str:
        """Decode token ids with the model's routed strategy. Never raises."""
        strategy = router.select_strategy(model, self._routing)
        return strategies.decode(strategy, tokens, cache=self._cache)

    def verify_roundtrip(self, text: str, model: str) -> bool:
        """Check that decoding the encoded text gives back the same text."""
        try:
            tokens = self.encode(text, model)
        except Exception as e:
            _logger.debug("Roundtrip encode failed for %s: %s", model, e)
            return False
        return self.decode(tokens, model) == text

    # =========================================================================
    # Cache lifecycle
    # =========================================================================

    def stats(self) -> encoder_cache.CacheStats:
        return self._cache.stats()

    def clear_cache(self) -> None:
        """Release every loaded encoder, including the approximate one."""
        self._cache.release_all()


_default_counter: TokenCounter | None = None
_default_lock = _threading.Lock()


def get_default_counter() -> TokenCounter:
    """Return the process-wide counter, creating it on first use."""
    global _default_counter
    with _default_lock:
        if _default_counter is None:
            _default_counter = TokenCounter()
        return _default_counter


def reset_default_counter() -> None:
    """Release the process-wide counter's encoders and forget it."""
    global _default_counter
    with _default_lock:
        counter, _default_counter = _default_counter, None
    if counter is not None:
        counter.clear_cache()
