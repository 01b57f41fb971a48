"""
Shared pytest fixtures for tokenmeter tests.

This file is automatically loaded by pytest. Fixtures defined here are
available to all test files without explicit imports.
"""

import os as _os
import pathlib as _pathlib
import typing as _typing
import unittest.mock as _mock

import pytest as _pytest

import tokenmeter.tokenizers as tokenizers

# Environment keys that would leak user configuration into tests
ENV_PREFIX = "TOKENMETER_"


class FakeEncoder:
    """Stand-in encoder handle that records release calls."""

    def __init__(self, name: str, *, fail_on_free: bool = False) -> None:
        self.name = name
        self.freed = False
        self.free_calls = 0
        self._fail_on_free = fail_on_free

    def encode(self, text: str) -> list[int]:
        return [ord(ch) for ch in text]

    def decode_bytes(self, tokens: _typing.Sequence[int]) -> bytes:
        return "".join(chr(t) for t in tokens).encode("utf-8")

    def free(self) -> None:
        self.freed = True
        self.free_calls += 1
        if self._fail_on_free:
            raise RuntimeError("release failed")


class RecordingLoader:
    """Loader that hands out FakeEncoders and remembers what it was asked for."""

    def __init__(self, *, fail_on_free: bool = False) -> None:
        self.calls: list[str] = []
        self.created: list[FakeEncoder] = []
        self._fail_on_free = fail_on_free

    def __call__(self, encoding_name: str) -> FakeEncoder:
        self.calls.append(encoding_name)
        encoder = FakeEncoder(encoding_name, fail_on_free=self._fail_on_free)
        self.created.append(encoder)
        return encoder


class SharedLoader(RecordingLoader):
    """Loader that returns one shared handle per encoding name, like tiktoken."""

    def __init__(self) -> None:
        super().__init__()
        self._handles: dict[str, FakeEncoder] = {}

    def __call__(self, encoding_name: str) -> FakeEncoder:
        if encoding_name not in self._handles:
            self._handles[encoding_name] = super().__call__(encoding_name)
        return self._handles[encoding_name]


def failing_loader(encoding_name: str) -> _typing.Any:
    """Loader that always fails, simulating an unavailable encoding."""
    raise ValueError(f"Unknown encoding {encoding_name}")


@_pytest.fixture
def clean_env() -> dict[str, str]:
    """
    Return environment dict with TOKENMETER_* keys removed.

    Use with mock.patch.dict to isolate tests from the actual environment.
    """
    return {k: v for k, v in _os.environ.items() if not k.startswith(ENV_PREFIX)}


@_pytest.fixture
def isolated_env(clean_env: dict[str, str], tmp_path: _pathlib.Path):
    """
    Context manager that isolates tests from environment and user config.

    The user config directory points at an empty temp directory.

    Usage:
        def test_something(isolated_env):
            with isolated_env:
                settings = config.Settings.construct_without_dotenv()
    """
    env = dict(clean_env)
    env["TOKENMETER_CONFIG_DIR"] = str(tmp_path / "user-config")
    return _mock.patch.dict(_os.environ, env, clear=True)


@_pytest.fixture
def cache() -> _typing.Iterator[tokenizers.EncoderCache]:
    """Fresh tiktoken-backed encoder cache, released after the test."""
    encoder_cache = tokenizers.EncoderCache()
    yield encoder_cache
    encoder_cache.release_all()


@_pytest.fixture
def counter(cache: tokenizers.EncoderCache) -> tokenizers.TokenCounter:
    """TokenCounter over the fresh cache."""
    return tokenizers.TokenCounter(cache)


@_pytest.fixture
def recording_loader() -> RecordingLoader:
    return RecordingLoader()


@_pytest.fixture
def fake_cache(recording_loader: RecordingLoader) -> tokenizers.EncoderCache:
    """Encoder cache whose encoders are FakeEncoders."""
    return tokenizers.EncoderCache(loader=recording_loader)


@_pytest.fixture
def broken_cache() -> tokenizers.EncoderCache:
    """Encoder cache that cannot load any encoder."""
    return tokenizers.EncoderCache(loader=failing_loader)


@_pytest.fixture
def shared_loader() -> SharedLoader:
    return SharedLoader()


@_pytest.fixture
def failing_release_loader() -> RecordingLoader:
    """Loader whose encoders raise when released."""
    return RecordingLoader(fail_on_free=True)
