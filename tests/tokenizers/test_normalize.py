"""Tests for encoder output normalization."""

import array as _array
import typing as _typing

import tokenmeter.tokenizers.normalize as normalize


class _Unprintable:
    def __str__(self) -> str:
        raise RuntimeError("no string form")


def _exploding_iterable() -> _typing.Iterator[int]:
    yield 1
    raise RuntimeError("iteration failed")


class TestNormalizeEncoded:
    """Tests for normalize_encoded()."""

    def test_list_returned_as_is(self) -> None:
        tokens = [1, 2, 3]
        assert normalize.normalize_encoded(tokens) is tokens

    def test_uint32_array_converted(self) -> None:
        result = normalize.normalize_encoded(_array.array("I", [15339, 1917]))
        assert result == [15339, 1917]
        assert type(result) is list

    def test_uint8_and_uint16_arrays_converted(self) -> None:
        assert normalize.normalize_encoded(_array.array("B", [1, 255])) == [1, 255]
        assert normalize.normalize_encoded(_array.array("H", [7, 65535])) == [7, 65535]

    def test_bytes_treated_as_uint8_buffer(self) -> None:
        assert normalize.normalize_encoded(b"\x01\x02\xff") == [1, 2, 255]

    def test_typed_memoryview_converted(self) -> None:
        view = memoryview(_array.array("I", [10, 20]))
        assert normalize.normalize_encoded(view) == [10, 20]

    def test_tuple_and_generator_coerced(self) -> None:
        assert normalize.normalize_encoded((4, 5)) == [4, 5]
        assert normalize.normalize_encoded(x for x in range(3)) == [0, 1, 2]

    def test_none_becomes_empty(self) -> None:
        assert normalize.normalize_encoded(None) == []

    def test_string_becomes_empty(self) -> None:
        assert normalize.normalize_encoded("123") == []

    def test_non_iterable_becomes_empty(self) -> None:
        assert normalize.normalize_encoded(object()) == []
        assert normalize.normalize_encoded(42) == []

    def test_failing_iteration_becomes_empty(self) -> None:
        assert normalize.normalize_encoded(_exploding_iterable()) == []

    def test_non_integer_elements_become_empty(self) -> None:
        assert normalize.normalize_encoded(("a", "b")) == []

    def test_float_memoryview_becomes_empty(self) -> None:
        """Float buffers are not token ids, so nothing is truncated."""
        assert normalize.normalize_encoded(memoryview(_array.array("d", [1.5, 2.7]))) == []

    def test_signed_memoryview_converted(self) -> None:
        assert normalize.normalize_encoded(memoryview(_array.array("i", [3, 4]))) == [3, 4]


class TestNormalizeDecoded:
    """Tests for normalize_decoded()."""

    def test_string_returned_as_is(self) -> None:
        text = "hello world"
        assert normalize.normalize_decoded(text) is text

    def test_bytes_decoded_as_utf8(self) -> None:
        assert normalize.normalize_decoded("café".encode()) == "café"

    def test_bytearray_and_memoryview_decoded(self) -> None:
        assert normalize.normalize_decoded(bytearray(b"abc")) == "abc"
        assert normalize.normalize_decoded(memoryview(b"xyz")) == "xyz"

    def test_invalid_utf8_replaced(self) -> None:
        assert normalize.normalize_decoded(b"ok\xff") == "ok�"

    def test_other_values_stringified(self) -> None:
        assert normalize.normalize_decoded(42) == "42"

    def test_none_becomes_empty(self) -> None:
        assert normalize.normalize_decoded(None) == ""

    def test_unprintable_becomes_empty(self) -> None:
        assert normalize.normalize_decoded(_Unprintable()) == ""
