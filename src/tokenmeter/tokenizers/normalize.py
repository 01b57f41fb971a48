"""
Normalization of raw encoder output.

Encoder implementations disagree on the concrete types they hand back for
the same logical values: token ids may arrive as a list, a tuple, a
fixed-width unsigned ``array.array`` or a raw byte buffer, and decoded text
may arrive as ``str`` or as UTF-8 bytes. Everything downstream of the encoder
goes through these two functions and only ever sees ``list[int]`` and ``str``.

Neither function raises. Input that cannot be coerced becomes an empty
sequence or an empty string.
"""

import array as _array
import typing as _typing

# array.array typecodes for unsigned 8/16/32/64-bit buffers
_UNSIGNED_TYPECODES = frozenset("BHILQ")

_BYTE_BUFFER_TYPES = (bytes, bytearray, memoryview)

# struct format characters for integer memoryview items
_INTEGER_FORMATS = frozenset("bBhHiIlLqQ")


def normalize_encoded(raw: _typing.Any) -> list[int]:
    """
    Coerce an encoder's token output to a plain list of ints.

    Args:
        raw: Output of an encode call.

    Returns:
        ``raw`` itself if it is already a list, otherwise a new list of ints.
        Empty list if ``raw`` cannot be coerced.
    """
    if isinstance(raw, list):
        return raw

    if isinstance(raw, _array.array) and raw.typecode in _UNSIGNED_TYPECODES:
        return raw.tolist()

    if isinstance(raw, memoryview):
        # Covers typed views over buffers (e.g. cast("I")) as well as bytes
        if raw.format.lstrip("@=<>!") not in _INTEGER_FORMATS:
            return []
        try:
            return [int(value) for value in raw.tolist()]
        except (TypeError, ValueError, NotImplementedError):
            return []

    if raw is None or isinstance(raw, str):
        return []

    try:
        return [int(value) for value in raw]
    except Exception:
        return []


def normalize_decoded(raw: _typing.Any) -> str:
    """
    Coerce a decoder's output to text.

    Args:
        raw: Output of a decode call.

    Returns:
        ``raw`` if it is already a string, UTF-8 text for byte buffers
        (invalid sequences replaced), ``str(raw)`` otherwise.
        Empty string if coercion fails.
    """
    if isinstance(raw, str):
        return raw

    if isinstance(raw, _BYTE_BUFFER_TYPES):
        try:
            return bytes(raw).decode("utf-8", errors="replace")
        except (TypeError, ValueError):
            return ""

    if raw is None:
        return ""

    try:
        return str(raw)
    except Exception:
        return ""
