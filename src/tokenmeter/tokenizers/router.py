"""
Automatic strategy selection from a model identifier.

Model identifiers are classified by case-insensitive substring match:

- OpenAI family (gpt, text-, davinci, curie, babbage, ada) → exact strategy
- Llama family (llama, mistral, mixtral, codellama, vicuna, alpaca) → approximate strategy
- Anything else → exact strategy with the routing table's default model

The OpenAI check runs first, so an identifier matching both sets is OpenAI.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import enum as _enum
import logging as _logging
import time as _time
import typing as _typing

import tokenmeter.constants as _constants
import tokenmeter.tokenizers.cache as encoder_cache
import tokenmeter.tokenizers.strategies as strategies

_logger = _logging.getLogger(__name__)

OPENAI_PREFIXES: tuple[str, ...] = ("gpt", "text-", "davinci", "curie", "babbage", "ada")
LLAMA_PREFIXES: tuple[str, ...] = ("llama", "mistral", "mixtral", "codellama", "vicuna", "alpaca")


class ModelFamily(_enum.Enum):
    """Tokenizer family a model identifier belongs to."""

    OPENAI = "openai"
    LLAMA = "llama"
    UNKNOWN = "unknown"


@_dataclasses.dataclass(frozen=True)
class RoutingTable:
    """Substring sets and fallback model used to route identifiers."""

    openai_prefixes: tuple[str, ...] = OPENAI_PREFIXES
    llama_prefixes: tuple[str, ...] = LLAMA_PREFIXES
    default_model: str = _constants.DEFAULT_MODEL
    """Model counted with when an identifier matches neither family."""

    @classmethod
    def create(
        cls,
        *,
        openai_prefixes: _typing.Iterable[str] | None = None,
        llama_prefixes: _typing.Iterable[str] | None = None,
        default_model: str | None = None,
    ) -> RoutingTable:
        """Build a table, lower-casing the given prefixes."""
        return cls(
            openai_prefixes=(
                tuple(p.lower() for p in openai_prefixes)
                if openai_prefixes is not None
                else OPENAI_PREFIXES
            ),
            llama_prefixes=(
                tuple(p.lower() for p in llama_prefixes)
                if llama_prefixes is not None
                else LLAMA_PREFIXES
            ),
            default_model=default_model or _constants.DEFAULT_MODEL,
        )


DEFAULT_ROUTING = RoutingTable()


def classify_model(model: str, routing: RoutingTable | None = None) -> ModelFamily:
    """
    Classify a model identifier into a tokenizer family.

    Args:
        model: Model identifier (case-insensitive).
        routing: Routing table (defaults to DEFAULT_ROUTING).

    Returns:
        OPENAI if any OpenAI substring matches, else LLAMA if any Llama
        substring matches, else UNKNOWN.
    """
    routing = routing or DEFAULT_ROUTING
    lowered = model.lower()
    if any(prefix in lowered for prefix in routing.openai_prefixes):
        return ModelFamily.OPENAI
    if any(prefix in lowered for prefix in routing.llama_prefixes):
        return ModelFamily.LLAMA
    return ModelFamily.UNKNOWN


def select_strategy(model: str, routing: RoutingTable | None = None) -> strategies.Strategy:
    """Pick the tokenization strategy for a model identifier."""
    routing = routing or DEFAULT_ROUTING
    family = classify_model(model, routing)
    if family is ModelFamily.OPENAI:
        return strategies.Strategy.exact(model)
    if family is ModelFamily.LLAMA:
        return strategies.Strategy.approximate(model)

    _logger.warning(
        "Unknown model type '%s', defaulting to %s", model, routing.default_model
    )
    return strategies.Strategy.exact(routing.default_model)


def count_auto(
    text: str,
    model: str,
    *,
    cache: encoder_cache.EncoderCache,
    routing: RoutingTable | None = None,
    chars_per_token: int = _constants.DEFAULT_CHARS_PER_TOKEN,
) -> strategies.TokenizerResult:
    """
    Count tokens with whichever strategy the model routes to.

    The reported elapsed time covers routing as well as counting.
    """
    start = _time.perf_counter()
    strategy = select_strategy(model, routing)
    result = strategies.count(strategy, text, cache=cache, chars_per_token=chars_per_token)
    return _dataclasses.replace(result, elapsed_ms=strategies.elapsed_ms(start))
