"""Configuration type definitions for tokenmeter settings.

This module defines the Pydantic models used to represent configuration
structures. These are "config section" types nested within the main
Settings class:

- ModelsConfig: default model, extra model → encoding entries
- RoutingConfig: substring sets that classify model families
- CacheConfig: encoder cache bound
- EstimateConfig: fallback estimate divisor
- LoggingConfig: log level

All types use `extra="allow"` to preserve unknown fields, so a config can
be audited for typos with `collect_all_extra_fields()`.
"""

import typing as _typing

import pydantic as _pydantic

import tokenmeter.constants as _constants
import tokenmeter.tokenizers.encodings as encodings
import tokenmeter.tokenizers.router as router

# =============================================================================
# Base class with introspection
# =============================================================================


class ConfigBase(_pydantic.BaseModel):
    """
    Base class for all config types.

    Unknown fields are kept rather than dropped so they can be reported.
    """

    model_config = _pydantic.ConfigDict(extra="allow")

    def get_extra_fields(self) -> dict[str, _typing.Any]:
        """Return fields that were provided but are not in the schema."""
        return dict(self.model_extra) if self.model_extra else {}

    def collect_all_extra_fields(
        self,
        prefix: str = "",
    ) -> dict[str, _typing.Any]:
        """
        Recursively collect extra fields from this config and nested configs.

        Returns a flat dict with dotted paths as keys, e.g.:
            {"routing.openai_prefxes": ["gpt"]}
        """
        result: dict[str, _typing.Any] = {}

        for key, value in self.get_extra_fields().items():
            path = f"{prefix}.{key}" if prefix else key
            result[path] = value

        for field_name in self.__class__.model_fields:
            value = getattr(self, field_name, None)
            if isinstance(value, ConfigBase):
                child_prefix = f"{prefix}.{field_name}" if prefix else field_name
                result.update(value.collect_all_extra_fields(child_prefix))

        return result


# =============================================================================
# Model Settings
# =============================================================================


class ModelsConfig(ConfigBase):
    """
    Model-related configuration.

    YAML section: models.*
    """

    default: str = _constants.DEFAULT_MODEL
    """Model used for unrecognised identifiers and for chat counting."""

    encodings: dict[str, str] = _pydantic.Field(default_factory=dict)
    """Extra model → encoding entries layered over the built-in table."""

    @_pydantic.field_validator("encodings", mode="before")
    @classmethod
    def _validate_encodings(
        cls,
        v: dict[str, _typing.Any] | None,
    ) -> dict[str, str]:
        """Lower-case model keys and reject unknown encoding names."""
        if v is None:
            return {}
        result: dict[str, str] = {}
        for model, name in v.items():
            result[str(model).lower()] = encodings.EncodingScheme.from_name(str(name)).value
        return result


# =============================================================================
# Routing Settings
# =============================================================================


class RoutingConfig(ConfigBase):
    """
    Model family classification.

    YAML section: routing.*
    """

    openai_prefixes: list[str] = _pydantic.Field(
        default_factory=lambda: list(router.OPENAI_PREFIXES)
    )
    """Substrings marking an OpenAI-family model (exact counting)."""

    llama_prefixes: list[str] = _pydantic.Field(
        default_factory=lambda: list(router.LLAMA_PREFIXES)
    )
    """Substrings marking a Llama-family model (approximate counting)."""

    @_pydantic.field_validator("openai_prefixes", "llama_prefixes")
    @classmethod
    def _lowercase(cls, v: list[str]) -> list[str]:
        return [prefix.lower() for prefix in v if prefix]


# =============================================================================
# Cache Settings
# =============================================================================


class CacheConfig(ConfigBase):
    """
    Encoder cache settings.

    YAML section: cache.*
    """

    max_entries: int | None = _pydantic.Field(default=None, ge=1)
    """Maximum cached models before the oldest is evicted. None = unbounded."""


# =============================================================================
# Estimate Settings
# =============================================================================


class EstimateConfig(ConfigBase):
    """
    Fallback estimate settings.

    YAML section: estimate.*
    """

    chars_per_token: int = _pydantic.Field(default=_constants.DEFAULT_CHARS_PER_TOKEN, ge=1)
    """Characters per token assumed when exact counting fails."""


# =============================================================================
# Logging Settings
# =============================================================================


class LoggingConfig(ConfigBase):
    """
    Logging settings.

    YAML section: logging.*
    """

    level: _typing.Literal["debug", "info", "warning", "error"] = "warning"
    """Log level for the CLI's root handler."""

    @_pydantic.field_validator("level", mode="before")
    @classmethod
    def _lowercase_level(cls, v: _typing.Any) -> _typing.Any:
        return v.lower() if isinstance(v, str) else v
