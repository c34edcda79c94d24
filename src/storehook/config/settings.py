"""
Settings configuration using pydantic-settings.

Loads configuration from:
1. Constructor arguments (highest precedence)
2. Environment variables with STOREHOOK_ prefix
3. .env file (if STOREHOOK_ENV_FILE is set)
4. YAML config file: $STOREHOOK_CONFIG_FILE, or ./storehook.yaml if present

Nested config uses double underscore delimiter:
  STOREHOOK_SCHEDULER__DEFAULT_MAX_RETRIES=5
  STOREHOOK_LOGGING__ENABLED=false
"""

import os as _os
import pathlib as _pathlib
import typing as _typing

import pydantic as _pydantic
import pydantic_settings as _pydantic_settings

import storehook.config.types as types

DEFAULT_CONFIG_FILENAME = "storehook.yaml"


def _get_env_file() -> str | None:
    """Return STOREHOOK_ENV_FILE if it points at an existing file."""
    if env_file := _os.environ.get("STOREHOOK_ENV_FILE"):
        if _pathlib.Path(env_file).exists():
            return env_file
    return None


def get_config_file() -> _pathlib.Path | None:
    """
    Determine which YAML config file to load.

    Priority:
    1. STOREHOOK_CONFIG_FILE if set (no fallback when it does not exist)
    2. storehook.yaml in the current directory
    3. None (defaults + environment only)
    """
    if config_file := _os.environ.get("STOREHOOK_CONFIG_FILE"):
        path = _pathlib.Path(config_file).expanduser()
        return path if path.exists() else None

    local = _pathlib.Path.cwd() / DEFAULT_CONFIG_FILENAME
    if local.exists():
        return local
    return None


class Settings(_pydantic_settings.BaseSettings):
    """
    storehook configuration settings.

    All settings can be overridden via environment variables with the
    STOREHOOK_ prefix. For nested config, use double underscore:
    STOREHOOK_SCHEDULER__DEFAULT_RETRY_DELAY=10
    """

    model_config = _pydantic_settings.SettingsConfigDict(
        env_prefix="STOREHOOK_",
        env_file=_get_env_file(),
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
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
        2. env_settings (STOREHOOK_* env vars)
        3. dotenv_settings (.env file)
        4. YAML config file
        5. (defaults via Field definitions), lowest
        """
        sources: list[_pydantic_settings.PydanticBaseSettingsSource] = [
            init_settings,
            env_settings,
            dotenv_settings,
        ]
        config_file = get_config_file()
        if config_file is not None:
            sources.append(
                _pydantic_settings.YamlConfigSettingsSource(settings_cls, yaml_file=config_file)
            )
        sources.append(file_secret_settings)
        return tuple(sources)

    @classmethod
    def construct_without_dotenv(cls, **kwargs: _typing.Any) -> "Settings":
        """Create Settings from environment variables only, without loading .env file.

        Useful for test isolation.
        """
        return cls(_env_file=None, **kwargs)  # type: ignore[call-arg]

    # =========================================================================
    # Nested config sections
    # =========================================================================

    scheduler: types.SchedulerConfig = _pydantic.Field(default_factory=types.SchedulerConfig)
    """Retry scheduler settings."""

    executor: types.ExecutorConfig = _pydantic.Field(default_factory=types.ExecutorConfig)
    """Action executor settings."""

    logging: types.LoggingConfig = _pydantic.Field(default_factory=types.LoggingConfig)
    """Logging settings."""

    # =========================================================================
    # Flat fields
    # =========================================================================

    hooks_file: str | None = _pydantic.Field(
        default=None,
        description="YAML file of hook definitions to register at start-up",
    )

    def to_display_dict(self) -> dict[str, _typing.Any]:
        """Full configuration as a JSON-serializable dict."""
        return self.model_dump(mode="json")
