"""
Hook types, action kinds and result dataclasses.

These define the core data structures for the hook system:
- ActionKind: The store actions a hook can handle (purchase, remove, renew)
- Hook: A named bundle of optional handlers, one per action kind
- ActionResult: The normalized outcome of one handler invocation
"""

from __future__ import annotations

import dataclasses as _dataclasses
import enum as _enum
import math as _math
import typing as _typing

import storehook.constants as constants


class ActionKind(_enum.Enum):
    """
    Store actions that can trigger a hook handler.

    Each kind maps to exactly one optional handler on a Hook.
    """

    PURCHASE = "purchase"
    """A package was bought."""

    REMOVE = "remove"
    """A package was refunded, charged back or expired."""

    RENEW = "renew"
    """A subscription package was renewed."""

    @property
    def handler_name(self) -> str:
        """Name of the Hook attribute holding the handler for this kind."""
        return _HANDLER_NAMES[self]

    @property
    def title(self) -> str:
        """Capitalized kind for log messages ("Purchase")."""
        return self.value.capitalize()

    @classmethod
    def parse(cls, value: str | ActionKind) -> ActionKind:
        """
        Parse an action kind from its string value.

        Raises:
            ValueError: If the value is not a known action kind.
        """
        if isinstance(value, ActionKind):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Action must be a string, got {type(value).__name__}")
        try:
            return cls(value.strip().lower())
        except ValueError:
            valid = ", ".join(k.value for k in cls)
            raise ValueError(f"Unknown action '{value}' (expected one of: {valid})") from None


_HANDLER_NAMES: dict[ActionKind, str] = {
    ActionKind.PURCHASE: "on_purchase",
    ActionKind.REMOVE: "on_remove",
    ActionKind.RENEW: "on_renew",
}


HandlerFn = _typing.Callable[["Hook", str, list[str]], _typing.Any]
"""Handler signature: (hook, subject_id, args) -> ActionResult | dict | None | Any.

Handlers may be plain functions or coroutine functions.
"""


@_dataclasses.dataclass(frozen=True)
class Hook:
    """
    A named bundle of store action handlers.

    Attributes:
        id: Unique identifier, immutable once registered.
        label: Human-readable label.
        on_purchase: Optional purchase handler.
        on_remove: Optional removal handler.
        on_renew: Optional renewal handler.
    """

    id: str
    label: str
    on_purchase: HandlerFn | None = None
    on_remove: HandlerFn | None = None
    on_renew: HandlerFn | None = None

    def handler_for(self, action: ActionKind) -> HandlerFn | None:
        """Return the handler for an action kind, or None if not provided."""
        handler: HandlerFn | None = getattr(self, action.handler_name)
        return handler

    @property
    def actions(self) -> list[ActionKind]:
        """Action kinds this hook has handlers for."""
        return [kind for kind in ActionKind if self.handler_for(kind) is not None]


@_dataclasses.dataclass
class ActionResult:
    """
    Normalized result of a handler invocation.

    Attributes:
        success: Whether the action succeeded.
        message: Optional message describing the result.
        data: Optional free-form payload.
        retry: Whether a failed scheduled action should be retried.
        retry_delay: Seconds to wait before the retry (None = action default).
    """

    success: bool = True
    message: str | None = None
    data: _typing.Any = None
    retry: bool = False
    retry_delay: float | None = None

    @classmethod
    def ok(cls, message: str | None = None, data: _typing.Any = None) -> ActionResult:
        """Create a successful result."""
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(
        cls,
        message: str | None = None,
        *,
        retry: bool = False,
        retry_delay: float | None = None,
        data: _typing.Any = None,
    ) -> ActionResult:
        """Create a failed result, optionally asking for a retry."""
        return cls(
            success=False,
            message=message,
            data=data,
            retry=retry,
            retry_delay=retry_delay,
        )

    @classmethod
    def from_dict(cls, data: _typing.Mapping[str, _typing.Any]) -> ActionResult:
        """
        Build a result from a handler-returned mapping.

        Missing ``success`` defaults to True. ``retryDelay`` is accepted
        as an alias for ``retry_delay``.
        """
        success = data.get("success")
        retry_delay = data.get("retry_delay", data.get("retryDelay"))
        message = data.get("message")
        return cls(
            success=True if success is None else bool(success),
            message=None if message is None else str(message),
            data=data.get("data"),
            retry=_coerce_retry(data.get("retry")),
            retry_delay=_coerce_retry_delay(retry_delay),
        )

    @classmethod
    def from_handler_value(cls, value: _typing.Any) -> ActionResult:
        """
        Normalize whatever a handler returned into an ActionResult.

        - None: success
        - ActionResult: re-validated retry fields
        - mapping: see from_dict
        - anything else: success with ``str(value)`` as the message
        """
        if value is None:
            return cls.ok("Handler completed successfully")
        if isinstance(value, ActionResult):
            return _dataclasses.replace(
                value,
                success=bool(value.success),
                retry=_coerce_retry(value.retry),
                retry_delay=_coerce_retry_delay(value.retry_delay),
            )
        if isinstance(value, _typing.Mapping):
            return cls.from_dict(value)
        return cls.ok(str(value))

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert to a JSON-serializable dict (the log ``result`` field)."""
        return {
            "success": self.success,
            "message": self.message,
            "data": self.data,
            "retry": self.retry,
            "retry_delay": self.retry_delay,
        }


def _coerce_retry(value: _typing.Any) -> bool:
    """Only a real boolean True requests a retry."""
    return value is True


def _coerce_retry_delay(value: _typing.Any) -> float | None:
    """Invalid, negative or non-finite delays fall back to the default retry delay."""
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return constants.DEFAULT_RETRY_DELAY
    if not _math.isfinite(value) or value < 0:
        return constants.DEFAULT_RETRY_DELAY
    return float(value)
