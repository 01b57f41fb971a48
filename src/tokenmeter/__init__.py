"""
tokenmeter - model-aware token counting

Routes text to the right tokenizer for a model identifier, caches loaded
encoders, and degrades to a length estimate when exact counting fails.
"""

import importlib.metadata as _metadata

# Version is defined in pyproject.toml - read it and parse into tuple (primary representation)
_raw_version = _metadata.version("tokenmeter")
__version_info__: tuple[int, int, int] = tuple(int(x) for x in _raw_version.split(".")[:3])  # type: ignore[assignment]
__version__: str = ".".join(str(x) for x in __version_info__)
__author__ = "tokenmeter Contributors"

from tokenmeter.config import Settings  # noqa: E402
from tokenmeter.tokenizers import (  # noqa: E402
    EncoderCache,
    TokenCounter,
    TokenizerResult,
    get_default_counter,
)

__all__ = [
    "__version__",
    "__version_info__",
    "EncoderCache",
    "Settings",
    "TokenCounter",
    "TokenizerResult",
    "get_default_counter",
]
