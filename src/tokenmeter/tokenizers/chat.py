"""
Token accounting for chat message lists.

Each message costs its role and content tokens plus a fixed framing
overhead, and the conversation as a whole costs a fixed base overhead:

    total = 3 + sum(4 + tokens(role) + tokens(content) for each message)
"""

from __future__ import annotations

import collections.abc as _abc
import dataclasses as _dataclasses
import typing as _typing

import tokenmeter.constants as _constants
import tokenmeter.tokenizers.cache as encoder_cache
import tokenmeter.tokenizers.normalize as normalize


@_dataclasses.dataclass(frozen=True)
class ChatMessage:
    """A single chat message."""

    role: str
    content: str

    @classmethod
    def from_dict(cls, data: _typing.Mapping[str, _typing.Any]) -> ChatMessage:
        """
        Build a message from a ``{"role": ..., "content": ...}`` mapping.

        Raises:
            ValueError: If either key is missing or not a string.
        """
        role = data.get("role")
        content = data.get("content")
        if not isinstance(role, str) or not isinstance(content, str):
            raise ValueError(
                f"Chat message needs string 'role' and 'content', got {dict(data)!r}"
            )
        return cls(role=role, content=content)


MessageLike = ChatMessage | _typing.Mapping[str, _typing.Any]


def _as_message(message: MessageLike) -> ChatMessage:
    if isinstance(message, ChatMessage):
        return message
    if not isinstance(message, _abc.Mapping):
        raise ValueError(
            f"Chat message must be a mapping with 'role' and 'content', got {message!r}"
        )
    return ChatMessage.from_dict(message)


def count_chat_tokens(
    messages: _typing.Iterable[MessageLike],
    model: str = _constants.DEFAULT_MODEL,
    *,
    cache: encoder_cache.EncoderCache,
) -> int:
    """
    Count the tokens a chat message list consumes.

    Args:
        messages: Messages as ChatMessage objects or role/content mappings.
        model: Model whose encoding to count with.
        cache: Encoder cache to load the encoder from.

    Returns:
        Total tokens including per-message and per-conversation overhead.

    Raises:
        EncoderLoadError: If the model's encoder cannot be loaded. There is
            no estimate fallback here.
        ValueError: If a message is not a mapping with string 'role' and
            'content' values.
    """
    encoder = cache.get_or_load(model)

    total = _constants.CHAT_BASE_OVERHEAD
    for item in messages:
        message = _as_message(item)
        total += _constants.CHAT_MESSAGE_OVERHEAD
        total += len(normalize.normalize_encoded(encoder.encode(message.role)))
        total += len(normalize.normalize_encoded(encoder.encode(message.content)))
    return total
