"""Configuration type definitions for storehook settings.

These are the "config section" models nested within the main Settings
class:

- SchedulerConfig: retry ceiling, retry delay, retention, console delay
- ExecutorConfig: handler timeout
- LoggingConfig: action log file, directory, level, history size

All types use `extra="allow"` so unknown keys are preserved rather than
silently dropped; `get_extra_fields()` exposes them for config auditing.
"""

import typing as _typing

import pydantic as _pydantic

import storehook.constants as constants


class ConfigBase(_pydantic.BaseModel):
    """
    Base class for all config types.

    Unknown fields are kept so typos can be reported.
    """

    model_config = _pydantic.ConfigDict(extra="allow")

    def get_extra_fields(self) -> dict[str, _typing.Any]:
        """Return fields that were provided but not in the schema."""
        return dict(self.model_extra) if self.model_extra else {}

    def has_extra_fields(self) -> bool:
        """Check if this config has any unrecognized fields."""
        return bool(self.model_extra)


# =============================================================================
# Scheduler Settings
# =============================================================================


class SchedulerConfig(ConfigBase):
    """
    Retry scheduler settings.

    YAML section: scheduler.*
    """

    default_max_retries: int = _pydantic.Field(default=constants.DEFAULT_MAX_RETRIES, ge=0)
    """Retries allowed after the first attempt of a scheduled action."""

    default_retry_delay: float = _pydantic.Field(default=constants.DEFAULT_RETRY_DELAY, ge=0)
    """Seconds before a retry when the handler does not ask for a delay."""

    cleanup_max_age: float = _pydantic.Field(default=constants.CLEANUP_MAX_AGE, gt=0)
    """Scheduled actions older than this (seconds) are removed by cleanup."""

    command_delay: float = _pydantic.Field(default=constants.DEFAULT_COMMAND_DELAY, gt=0)
    """Delay used by the console schedule command when none is given."""


# =============================================================================
# Executor Settings
# =============================================================================


class ExecutorConfig(ConfigBase):
    """
    Action executor settings.

    YAML section: executor.*
    """

    handler_timeout: float | None = _pydantic.Field(
        default=constants.DEFAULT_HANDLER_TIMEOUT,
        gt=0,
    )
    """Timeout in seconds for async handlers. None disables the timeout."""


# =============================================================================
# Logging Settings
# =============================================================================


class LoggingConfig(ConfigBase):
    """
    Logging settings.

    YAML section: logging.*
    """

    enabled: bool = True
    """Write the JSONL action log."""

    dir: str | None = None
    """Log directory. None = use default."""

    file: str | None = None
    """Explicit log file path (overrides dir + auto filename)."""

    level: _typing.Literal["debug", "info", "warning", "error"] = "info"
    """Diagnostic log level."""

    private: bool = True
    """Lock log directory to owner-only (drwx------)."""

    history_size: int = _pydantic.Field(default=constants.DEFAULT_HISTORY_SIZE, ge=1)
    """Recent action records kept in memory for the console."""
