"""
Settings configuration using pydantic-settings.

Loads configuration from:
1. Constructor arguments (highest precedence)
2. Environment variables with TOKENMETER_ prefix
3. .env file (if TOKENMETER_ENV_FILE points at one)
4. Layered YAML config files:
   - Project config: .tokenmeter/config.yaml (highest)
   - User config: ~/.config/tokenmeter/config.yaml
   - Built-in defaults: bundled defaults/config.yaml (lowest)

Nested config uses double underscore delimiter:
  TOKENMETER_MODELS__DEFAULT=gpt-4o
  TOKENMETER_CACHE__MAX_ENTRIES=16
"""

import logging as _logging
import os as _os
import pathlib as _pathlib
import typing as _typing

import pydantic as _pydantic
import pydantic_settings as _pydantic_settings

import tokenmeter.config.sources as sources
import tokenmeter.config.types as types

_PROJECT_MARKERS = (sources.PROJECT_CONFIG_DIR, "pyproject.toml", "setup.cfg", ".git")


def _get_env_file() -> str | None:
    """Return TOKENMETER_ENV_FILE if it is set and exists, else None."""
    if env_file := _os.environ.get("TOKENMETER_ENV_FILE"):
        if _pathlib.Path(env_file).exists():
            return env_file
    return None


def find_project_root(start_path: _pathlib.Path | None = None) -> _pathlib.Path:
    """
    Find the project root directory.

    Walks up from start_path looking for a .tokenmeter directory,
    pyproject.toml, setup.cfg or .git. Falls back to the current directory.
    """
    if start_path is None:
        start_path = _pathlib.Path.cwd()

    current = start_path.resolve()
    while current != current.parent:
        if any((current / marker).exists() for marker in _PROJECT_MARKERS):
            return current
        current = current.parent

    return _pathlib.Path.cwd()


class Settings(_pydantic_settings.BaseSettings):
    """
    tokenmeter configuration settings.

    All settings can be overridden via environment variables with TOKENMETER_ prefix.
    For nested config, use double underscore: TOKENMETER_ESTIMATE__CHARS_PER_TOKEN=3

    Config precedence (highest to lowest):
    1. Constructor arguments
    2. Environment variables (TOKENMETER_*)
    3. .env file
    4. Project config (.tokenmeter/config.yaml)
    5. User config (~/.config/tokenmeter/config.yaml)
    6. Built-in defaults
    """

    model_config = _pydantic_settings.SettingsConfigDict(
        env_prefix="TOKENMETER_",
        env_file=_get_env_file(),
        env_file_encoding="utf-8",
        env_nested_delimiter="__",  # TOKENMETER_CACHE__MAX_ENTRIES
        extra="allow",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[_pydantic_settings.BaseSettings],
        init_settings: _pydantic_settings.PydanticBaseSettingsSource,
        env_settings: _pydantic_settings.PydanticBaseSettingsSource,
        dotenv_settings: _pydantic_settings.PydanticBaseSettingsSource,
        file_secret_settings: _pydantic_settings.PydanticBaseSettingsSource,
    ) -> tuple[_pydantic_settings.PydanticBaseSettingsSource, ...]:
        """
        Configure settings sources with precedence:
        1. init_settings (constructor args), highest
        2. env_settings (TOKENMETER_* env vars)
        3. dotenv_settings (.env file)
        4. YAML config layers
        5. (defaults via Field definitions), lowest
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            sources.LayeredYamlSettingsSource(settings_cls, find_project_root()),
            file_secret_settings,
        )

    @classmethod
    def construct_without_dotenv(cls, **kwargs: _typing.Any) -> "Settings":
        """Create Settings from environment variables only, without loading .env file.

        Useful for test isolation and for reproducing issues without
        .env interference.
        """
        return cls(_env_file=None, **kwargs)  # type: ignore[call-arg]

    # =========================================================================
    # Config version (for future migrations)
    # =========================================================================

    version: int = _pydantic.Field(default=1, description="Config schema version")

    # =========================================================================
    # Nested config sections
    # =========================================================================

    models: types.ModelsConfig = _pydantic.Field(default_factory=types.ModelsConfig)
    """Default model and extra model → encoding entries."""

    routing: types.RoutingConfig = _pydantic.Field(default_factory=types.RoutingConfig)
    """Model family substrings."""

    cache: types.CacheConfig = _pydantic.Field(default_factory=types.CacheConfig)
    """Encoder cache bound."""

    estimate: types.EstimateConfig = _pydantic.Field(default_factory=types.EstimateConfig)
    """Fallback estimate settings."""

    logging: types.LoggingConfig = _pydantic.Field(default_factory=types.LoggingConfig)
    """Logging settings."""

    # =========================================================================
    # Convenience accessors
    # =========================================================================

    @property
    def model(self) -> str:
        """Default model (alias to models.default)."""
        return self.models.default

    @property
    def log_level(self) -> int:
        """Configured log level as a ``logging`` constant."""
        return int(_logging.getLevelName(self.logging.level.upper()))

    def get_unknown_fields(self) -> dict[str, _typing.Any]:
        """
        Collect every unrecognised key, top-level and nested, by dotted path.

        Useful for spotting typos in config files.
        """
        result: dict[str, _typing.Any] = dict(self.model_extra or {})
        for section_name in ("models", "routing", "cache", "estimate", "logging"):
            section: types.ConfigBase = getattr(self, section_name)
            result.update(section.collect_all_extra_fields(section_name))
        return result

    def to_dict(self) -> dict[str, _typing.Any]:
        """Known settings as a plain, JSON-serializable dict."""
        return self.model_dump(
            mode="json",
            include={"version", "models", "routing", "cache", "estimate", "logging"},
        )
