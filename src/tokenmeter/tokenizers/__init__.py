"""
Model-aware token counting.

Routes a (text, model) pair to an exact tiktoken encoding or to the shared
Llama-family approximation, caches loaded encoders, and falls back to a
length-based estimate when tokenization fails.
"""

from tokenmeter.tokenizers.cache import (
    ApproximateEncoder,
    CacheEntry,
    CacheStats,
    EncoderCache,
    EncoderLoadError,
)
from tokenmeter.tokenizers.chat import ChatMessage, count_chat_tokens
from tokenmeter.tokenizers.encodings import (
    DEFAULT_ENCODING,
    MODEL_ENCODINGS,
    EncodingScheme,
    build_encoding_table,
    resolve_encoding,
)
from tokenmeter.tokenizers.normalize import normalize_decoded, normalize_encoded
from tokenmeter.tokenizers.router import (
    DEFAULT_ROUTING,
    ModelFamily,
    RoutingTable,
    classify_model,
    count_auto,
    select_strategy,
)
from tokenmeter.tokenizers.service import (
    TokenCounter,
    get_default_counter,
    reset_default_counter,
)
from tokenmeter.tokenizers.strategies import (
    Strategy,
    TokenizerResult,
    count_approximate,
    count_exact,
    decode,
    encode,
    estimate_tokens,
)

__all__ = [
    "ApproximateEncoder",
    "CacheEntry",
    "CacheStats",
    "ChatMessage",
    "DEFAULT_ENCODING",
    "DEFAULT_ROUTING",
    "EncoderCache",
    "EncoderLoadError",
    "EncodingScheme",
    "MODEL_ENCODINGS",
    "ModelFamily",
    "RoutingTable",
    "Strategy",
    "TokenCounter",
    "TokenizerResult",
    "build_encoding_table",
    "classify_model",
    "count_approximate",
    "count_auto",
    "count_chat_tokens",
    "count_exact",
    "decode",
    "encode",
    "estimate_tokens",
    "get_default_counter",
    "normalize_decoded",
    "normalize_encoded",
    "reset_default_counter",
    "resolve_encoding",
    "select_strategy",
]
