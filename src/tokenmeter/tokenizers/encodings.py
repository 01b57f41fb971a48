"""
Model identifier to encoding scheme resolution.

Maps a (case-insensitive) model identifier to the tiktoken encoding it is
bound to. Identifiers missing from the table resolve to the encoding used by
general-purpose OpenAI-family models, so resolution never fails.

Model → Encoding mapping:
- gpt-4o, gpt-4o-mini, gpt-4.1* → o200k_base
- gpt-4*, gpt-3.5-turbo, text-embedding-* → cl100k_base
- text-davinci-002/003, code-davinci-002 → p50k_base
- davinci, curie, babbage, ada → r50k_base
- Others → cl100k_base
"""

from __future__ import annotations

import enum as _enum
import typing as _typing

import tokenmeter.constants as _constants


class EncodingScheme(_enum.Enum):
    """Encoding vocabularies understood by the exact strategy."""

    O200K_BASE = "o200k_base"
    CL100K_BASE = "cl100k_base"
    P50K_BASE = "p50k_base"
    R50K_BASE = "r50k_base"

    @classmethod
    def from_name(cls, name: str) -> EncodingScheme:
        """
        Look up a scheme by its tiktoken encoding name.

        Raises:
            ValueError: If the name is not a known scheme.
        """
        try:
            return cls(name.strip().lower())
        except ValueError:
            known = ", ".join(scheme.value for scheme in cls)
            raise ValueError(f"Unknown encoding '{name}' (expected one of: {known})") from None


DEFAULT_ENCODING = EncodingScheme(_constants.DEFAULT_ENCODING_NAME)
"""Scheme returned for any identifier missing from the table."""

MODEL_ENCODINGS: _typing.Mapping[str, EncodingScheme] = {
    # GPT-4o family
    "gpt-4o": EncodingScheme.O200K_BASE,
    "gpt-4o-mini": EncodingScheme.O200K_BASE,
    "gpt-4.1": EncodingScheme.O200K_BASE,
    "gpt-4.1-mini": EncodingScheme.O200K_BASE,
    # GPT-4 / GPT-3.5 family
    "gpt-4": EncodingScheme.CL100K_BASE,
    "gpt-4-32k": EncodingScheme.CL100K_BASE,
    "gpt-4-turbo": EncodingScheme.CL100K_BASE,
    "gpt-3.5-turbo": EncodingScheme.CL100K_BASE,
    "text-embedding-ada-002": EncodingScheme.CL100K_BASE,
    "text-embedding-3-small": EncodingScheme.CL100K_BASE,
    "text-embedding-3-large": EncodingScheme.CL100K_BASE,
    # Codex / InstructGPT
    "text-davinci-003": EncodingScheme.P50K_BASE,
    "text-davinci-002": EncodingScheme.P50K_BASE,
    "code-davinci-002": EncodingScheme.P50K_BASE,
    # GPT-3 base models
    "davinci": EncodingScheme.R50K_BASE,
    "curie": EncodingScheme.R50K_BASE,
    "babbage": EncodingScheme.R50K_BASE,
    "ada": EncodingScheme.R50K_BASE,
}
"""Built-in model → scheme table. Keys are lower-case."""


def build_encoding_table(
    overrides: _typing.Mapping[str, EncodingScheme | str] | None = None,
) -> dict[str, EncodingScheme]:
    """
    Merge extra model → scheme entries over the built-in table.

    Args:
        overrides: Additional or replacement entries. Keys are lower-cased;
            values may be schemes or encoding names.

    Returns:
        A new table; MODEL_ENCODINGS itself is never modified.

    Raises:
        ValueError: If an override names an unknown encoding.
    """
    table = dict(MODEL_ENCODINGS)
    for model, scheme in (overrides or {}).items():
        if not isinstance(scheme, EncodingScheme):
            scheme = EncodingScheme.from_name(scheme)
        table[model.lower()] = scheme
    return table


def resolve_encoding(
    model: str,
    table: _typing.Mapping[str, EncodingScheme] | None = None,
) -> EncodingScheme:
    """
    Resolve a model identifier to its encoding scheme.

    Args:
        model: Model identifier (case-insensitive).
        table: Lookup table to use instead of MODEL_ENCODINGS.

    Returns:
        The table's scheme for the model, or DEFAULT_ENCODING.
    """
    if table is None:
        table = MODEL_ENCODINGS
    return table.get(model.lower(), DEFAULT_ENCODING)
