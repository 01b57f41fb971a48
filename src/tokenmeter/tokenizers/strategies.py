"""
Tokenization strategies.

A Strategy is a tagged variant:

- ``Strategy.exact(model)`` encodes with the tiktoken encoding the model
  resolves to (OpenAI-family models).
- ``Strategy.approximate(model)`` encodes with the cache's shared
  approximate encoder (Llama-family models). The count is an estimate of the
  real tokenizer's count, typically 70-85% accurate.

Both reduce to "load an encoder from the cache and encode". When that fails
for any reason, counting falls back to a length-based estimate instead of
raising, and the result is tagged ``"estimated"``.
"""

from __future__ import annotations

import array as _array
import dataclasses as _dataclasses
import logging as _logging
import math as _math
import time as _time
import typing as _typing

import tokenmeter.constants as _constants
import tokenmeter.tokenizers.cache as encoder_cache
import tokenmeter.tokenizers.normalize as normalize

_logger = _logging.getLogger(__name__)

StrategyKind = _typing.Literal["exact", "approximate"]
CountMethod = _typing.Literal["exact", "approximate", "estimated"]


@_dataclasses.dataclass(frozen=True)
class TokenizerResult:
    """Token count for one piece of text, with how long it took."""

    token_count: int
    elapsed_ms: float
    """Wall time in milliseconds, rounded to 2 decimal places."""

    method: CountMethod = "exact"
    """Which path produced the count."""

    @property
    def is_estimated(self) -> bool:
        """True if the count came from the length-based fallback."""
        return self.method == "estimated"

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert to JSON-serializable dict."""
        return {
            "token_count": self.token_count,
            "elapsed_ms": self.elapsed_ms,
            "method": self.method,
        }


@_dataclasses.dataclass(frozen=True)
class Strategy:
    """How to tokenize text for a model."""

    kind: StrategyKind
    model: str

    @classmethod
    def exact(cls, model: str) -> Strategy:
        return cls(kind="exact", model=model)

    @classmethod
    def approximate(cls, model: str) -> Strategy:
        return cls(kind="approximate", model=model)

    def load(self, cache: encoder_cache.EncoderCache) -> _typing.Any:
        """
        Get this strategy's encoder handle from the cache.

        Raises:
            EncoderLoadError: If the encoder cannot be instantiated.
        """
        if self.kind == "approximate":
            return cache.get_approximate(self.model)
        return cache.get_or_load(self.model)


def elapsed_ms(start: float) -> float:
    """Milliseconds since a ``time.perf_counter()`` reading, rounded."""
    return round((_time.perf_counter() - start) * 1000, _constants.ELAPSED_MS_PRECISION)


def estimate_tokens(
    text: str,
    chars_per_token: int = _constants.DEFAULT_CHARS_PER_TOKEN,
) -> int:
    """
    Cheap length-based token estimate.

    Returns:
        ``max(1, ceil(len(text) / chars_per_token))``
    """
    return max(_constants.MIN_ESTIMATED_TOKENS, _math.ceil(len(text) / chars_per_token))


def count(
    strategy: Strategy,
    text: str,
    *,
    cache: encoder_cache.EncoderCache,
    chars_per_token: int = _constants.DEFAULT_CHARS_PER_TOKEN,
) -> TokenizerResult:
    """
    Count tokens in text using a strategy.

    Never raises: any load or encode failure yields the fallback estimate.
    """
    start = _time.perf_counter()
    try:
        encoder = strategy.load(cache)
        tokens = normalize.normalize_encoded(encoder.encode(text))
    except Exception as e:
        _logger.warning(
            "%s tokenization failed for %s, using length estimate: %s",
            strategy.kind.capitalize(),
            strategy.model,
            e,
        )
        return TokenizerResult(
            token_count=estimate_tokens(text, chars_per_token),
            elapsed_ms=elapsed_ms(start),
            method="estimated",
        )

    return TokenizerResult(
        token_count=len(tokens),
        elapsed_ms=elapsed_ms(start),
        method=strategy.kind,
    )


def count_exact(
    text: str,
    model: str,
    *,
    cache: encoder_cache.EncoderCache,
    chars_per_token: int = _constants.DEFAULT_CHARS_PER_TOKEN,
) -> TokenizerResult:
    """Count tokens with the encoding the model resolves to."""
    return count(Strategy.exact(model), text, cache=cache, chars_per_token=chars_per_token)


def count_approximate(
    text: str,
    model: str | None = None,
    *,
    cache: encoder_cache.EncoderCache,
    chars_per_token: int = _constants.DEFAULT_CHARS_PER_TOKEN,
) -> TokenizerResult:
    """
    Approximate a Llama-family token count.

    The model identifier does not affect the count; every Llama-family model
    shares the same approximate encoder.
    """
    strategy = Strategy.approximate(model or "llama")
    return count(strategy, text, cache=cache, chars_per_token=chars_per_token)


def encode(
    strategy: Strategy,
    text: str,
    *,
    cache: encoder_cache.EncoderCache,
) -> list[int]:
    """
    Encode text to token ids.

    Unlike ``count``, failures propagate.
    """
    return normalize.normalize_encoded(strategy.load(cache).encode(text))


def decode(
    strategy: Strategy,
    tokens: _typing.Iterable[int],
    *,
    cache: encoder_cache.EncoderCache,
) -> str:
    """
    Reconstruct text from token ids.

    Returns:
        Decoded text, or an empty string if loading or decoding fails
        (including ids outside the unsigned 32-bit range).
    """
    try:
        ids = _array.array("I", tokens)
        raw = strategy.load(cache).decode_bytes(ids.tolist())
    except Exception as e:
        _logger.debug("Decode failed for %s: %s", strategy.model, e)
        return ""
    return normalize.normalize_decoded(raw)
