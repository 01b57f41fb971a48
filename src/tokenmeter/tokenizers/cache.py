"""
Encoder cache.

Loading a tiktoken encoding is the only expensive step in counting tokens,
so loaded encoders are kept in an EncoderCache keyed by the lower-cased model
identifier. The cache is an explicit object: whoever composes the counting
pipeline owns one and passes it to the strategies. ``service.get_default_counter``
provides a process-wide instance for callers that do not want to own one.

Two identifiers that resolve to the same encoding get independent entries,
so per-model metadata (load time, timing) is preserved.

The cache also owns the approximate encoder used for Llama-family models.
There is at most one per cache, bound to the default encoding, and it is
shared by every Llama-family identifier.

Thread safety: lookup and insert happen under a single lock, so concurrent
first use of a key creates exactly one entry.

Release: a loader may hand back the same handle for several encodings or
models (tiktoken returns one shared Encoding per name). Within a cache each
handle is released at most once, and never while another entry or the
approximate encoder still holds it. Handles are assumed not to be shared
with other caches; tiktoken encodings have no release hook, so this only
matters for custom loaders.
"""

from __future__ import annotations

import collections as _collections
import dataclasses as _dataclasses
import logging as _logging
import threading as _threading
import time as _time
import typing as _typing

import tiktoken as _tiktoken

import tokenmeter.tokenizers.encodings as encodings

_logger = _logging.getLogger(__name__)

EncoderLoader = _typing.Callable[[str], _typing.Any]
"""Callable that instantiates an encoder for an encoding name."""


class EncoderLoadError(Exception):
    """Raised when the encoder for a model cannot be instantiated."""

    def __init__(self, model: str, encoding: encodings.EncodingScheme, reason: str) -> None:
        self.model = model
        self.encoding = encoding
        self.reason = reason
        super().__init__(
            f"Failed to load encoder '{encoding.value}' for model '{model}': {reason}"
        )


class ApproximateEncoder:
    """
    Encoder handle used for Llama-family models.

    Wraps a single encoding and uses it for every Llama-family identifier.
    Counts typically land within 70-85% of the model family's real
    tokenizer (±15-25%), so callers must not treat them as exact.
    """

    def __init__(self, encoding: _typing.Any) -> None:
        self._encoding = encoding

    @property
    def encoding(self) -> _typing.Any:
        """The wrapped encoder handle."""
        return self._encoding

    @property
    def name(self) -> str:
        """Name of the wrapped encoding."""
        return str(self._encoding.name)

    def encode(self, text: str) -> list[int]:
        """Encode text to token ids."""
        return list(self._encoding.encode(text))

    def decode_bytes(self, tokens: _typing.Sequence[int]) -> bytes:
        """Decode token ids to raw UTF-8 bytes."""
        return self._encoding.decode_bytes(tokens)  # type: ignore[no-any-return]

    def decode(self, tokens: _typing.Sequence[int]) -> str:
        """Decode token ids to text."""
        return self.decode_bytes(tokens).decode("utf-8", errors="replace")


@_dataclasses.dataclass(frozen=True)
class CacheEntry:
    """A loaded encoder and when it was loaded."""

    encoder: _typing.Any
    model: str
    """Lower-cased model identifier (the cache key)."""

    encoding: encodings.EncodingScheme
    loaded_at_ms: int
    """Wall-clock time of the load, in epoch milliseconds."""

    load_ms: float = 0.0
    """How long the load took."""


@_dataclasses.dataclass(frozen=True)
class CacheStats:
    """Read-only snapshot of cache contents for diagnostics."""

    entry_count: int
    approximate_loaded: bool
    models: list[str]
    """Cached model identifiers, oldest load first."""

    oldest_loaded_at_ms: int | None

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert to JSON-serializable dict."""
        return {
            "entry_count": self.entry_count,
            "approximate_loaded": self.approximate_loaded,
            "models": list(self.models),
            "oldest_loaded_at_ms": self.oldest_loaded_at_ms,
        }


def _load_tiktoken(encoding_name: str) -> _typing.Any:
    return _tiktoken.get_encoding(encoding_name)


def _release(encoder: _typing.Any) -> None:
    """Best-effort release of an encoder handle that exposes one."""
    free = getattr(encoder, "free", None)
    if not callable(free):
        return
    try:
        free()
    except Exception as e:
        _logger.debug("Ignoring failure releasing encoder %r: %s", encoder, e)


class EncoderCache:
    """
    Keyed store of loaded encoders.

    Usage:
        cache = EncoderCache()
        encoder = cache.get_or_load("GPT-4o")   # loads o200k_base
        encoder = cache.get_or_load("gpt-4o")   # same handle, no reload
        cache.release_all()
    """

    def __init__(
        self,
        *,
        table: _typing.Mapping[str, encodings.EncodingScheme] | None = None,
        loader: EncoderLoader | None = None,
        max_entries: int | None = None,
    ) -> None:
        """
        Initialize an empty cache.

        Args:
            table: Model → scheme table (defaults to the built-in table).
            loader: Encoder factory taking an encoding name. Defaults to
                ``tiktoken.get_encoding``.
            max_entries: Upper bound on cached models. When exceeded, the
                oldest loaded entry is evicted. None means unbounded.
        """
        if max_entries is not None and max_entries < 1:
            raise ValueError(f"max_entries must be at least 1, got {max_entries}")
        self._table = table if table is not None else encodings.MODEL_ENCODINGS
        self._loader = loader if loader is not None else _load_tiktoken
        self._max_entries = max_entries
        self._entries: _collections.OrderedDict[str, CacheEntry] = _collections.OrderedDict()
        self._approximate: ApproximateEncoder | None = None
        self._lock = _threading.Lock()

    @property
    def table(self) -> _typing.Mapping[str, encodings.EncodingScheme]:
        """Model → scheme table used on cache misses."""
        return self._table

    @property
    def max_entries(self) -> int | None:
        return self._max_entries

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, model: object) -> bool:
        return isinstance(model, str) and model.lower() in self._entries

    def resolve(self, model: str) -> encodings.EncodingScheme:
        """Resolve a model identifier against this cache's table."""
        return encodings.resolve_encoding(model, self._table)

    def get_entry(self, model: str) -> CacheEntry | None:
        """Return the cached entry for a model without loading it."""
        with self._lock:
            return self._entries.get(model.lower())

    def get_or_load(self, model: str) -> _typing.Any:
        """
        Return the encoder for a model, loading it on first use.

        Args:
            model: Model identifier (case-insensitive).

        Returns:
            The cached encoder handle.

        Raises:
            EncoderLoadError: If the encoder cannot be instantiated. The cache
                is left unchanged.
        """
        key = model.lower()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                _logger.debug("Encoder for %s served from cache", key)
                return entry.encoder

            scheme = encodings.resolve_encoding(key, self._table)
            start = _time.perf_counter()
            try:
                encoder = self._loader(scheme.value)
            except Exception as e:
                raise EncoderLoadError(model, scheme, str(e)) from e
            load_ms = (_time.perf_counter() - start) * 1000

            self._entries[key] = CacheEntry(
                encoder=encoder,
                model=key,
                encoding=scheme,
                loaded_at_ms=int(_time.time() * 1000),
                load_ms=load_ms,
            )
            self._evict_overflow()

        _logger.debug("Loaded encoder %s for %s in %.2fms", scheme.value, key, load_ms)
        return encoder

    def get_approximate(self, model: str | None = None) -> ApproximateEncoder:
        """
        Return the shared approximate encoder, creating it on first use.

        Args:
            model: Requesting model, used only in error messages and logs.

        Raises:
            EncoderLoadError: If the underlying encoding cannot be instantiated.
        """
        with self._lock:
            if self._approximate is not None:
                return self._approximate

            scheme = encodings.DEFAULT_ENCODING
            try:
                self._approximate = ApproximateEncoder(self._loader(scheme.value))
            except Exception as e:
                raise EncoderLoadError(model or "<approximate>", scheme, str(e)) from e
            approximate = self._approximate

        _logger.debug(
            "Created approximate encoder (%s) on behalf of %s", scheme.value, model or "caller"
        )
        return approximate

    def release_all(self) -> None:
        """
        Release every cached encoder and empty the cache.

        Release failures on individual handles are ignored. Safe to call on
        an empty cache.
        """
        with self._lock:
            handles = [entry.encoder for entry in self._entries.values()]
            if self._approximate is not None:
                handles.append(self._approximate.encoding)
            entry_count = len(self._entries)
            self._entries.clear()
            self._approximate = None

        released: set[int] = set()
        for handle in handles:
            if id(handle) in released:
                continue
            released.add(id(handle))
            _release(handle)
        _logger.info(
            "Encoder cache cleared (%d entries, %d distinct handles released)",
            entry_count,
            len(released),
        )

    def stats(self) -> CacheStats:
        """Snapshot the cache for diagnostics. Does not load anything."""
        with self._lock:
            entries = list(self._entries.values())
            approximate_loaded = self._approximate is not None

        return CacheStats(
            entry_count=len(entries),
            approximate_loaded=approximate_loaded,
            models=[entry.model for entry in entries],
            oldest_loaded_at_ms=min((e.loaded_at_ms for e in entries), default=None),
        )

    def _evict_overflow(self) -> None:
        """Drop the oldest entries beyond max_entries. Caller holds the lock."""
        if self._max_entries is None:
            return
        while len(self._entries) > self._max_entries:
            key, evicted = self._entries.popitem(last=False)
            _logger.debug("Evicting encoder for %s (cache bound %d)", key, self._max_entries)
            if self._holds(evicted.encoder):
                _logger.debug("Encoder for %s is still shared, not releasing", key)
                continue
            _release(evicted.encoder)

    def _holds(self, handle: _typing.Any) -> bool:
        """True if a live entry or the approximate encoder uses handle. Caller holds the lock."""
        if self._approximate is not None and self._approximate.encoding is handle:
            return True
        return any(entry.encoder is handle for entry in self._entries.values())
