"""
Hook registry - named hook storage and lookup.

The registry owns every Hook. Nothing else inserts or removes hooks; the
executor and scheduler only look them up by id.
"""

from __future__ import annotations

import logging as _logging
import types as _types
import typing as _typing

import storehook.errors as errors
import storehook.hooks.events as events

_logger = _logging.getLogger(__name__)


class HookRegistry:
    """
    Registry of store hooks keyed by id.

    Registration validates the hook and rejects duplicate ids without
    touching the existing entry.
    """

    def __init__(self) -> None:
        self._hooks: dict[str, events.Hook] = {}

    def register(
        self,
        hook_id: str,
        label: str,
        *,
        on_purchase: events.HandlerFn | None = None,
        on_remove: events.HandlerFn | None = None,
        on_renew: events.HandlerFn | None = None,
    ) -> events.Hook:
        """
        Register a new hook.

        Args:
            hook_id: Unique hook identifier.
            label: Human-readable label.
            on_purchase: Optional purchase handler.
            on_remove: Optional removal handler.
            on_renew: Optional renewal handler.

        Returns:
            The registered Hook.

        Raises:
            HookValidationError: If id/label are empty or a handler is not callable.
            DuplicateHookError: If a hook with this id is already registered.
        """
        hook = events.Hook(
            id=hook_id,
            label=label,
            on_purchase=on_purchase,
            on_remove=on_remove,
            on_renew=on_renew,
        )
        return self.register_hook(hook)

    def register_hook(self, hook: events.Hook) -> events.Hook:
        """Register a pre-built Hook (same validation as register)."""
        _validate_hook(hook)
        if hook.id in self._hooks:
            raise errors.DuplicateHookError(hook.id)

        self._hooks[hook.id] = hook
        _logger.debug("Registered hook: %s (%s)", hook.id, hook.label)
        return hook

    def get(self, hook_id: str) -> events.Hook | None:
        """Get a hook by id, or None if not registered."""
        if not isinstance(hook_id, str):
            _logger.error("Hook ID must be a string, got %s", type(hook_id).__name__)
            return None
        return self._hooks.get(hook_id)

    def get_all(self) -> _typing.Mapping[str, events.Hook]:
        """Return a read-only view of all hooks keyed by id."""
        return _types.MappingProxyType(self._hooks)

    def remove(self, hook_id: str) -> events.Hook | None:
        """
        Remove a hook by id.

        Returns:
            The removed hook, or None if it was not registered.
        """
        hook = self._hooks.pop(hook_id, None)
        if hook is None:
            _logger.warning("Cannot remove hook %s: not registered", hook_id)
        return hook

    def __contains__(self, hook_id: object) -> bool:
        return hook_id in self._hooks

    def __len__(self) -> int:
        return len(self._hooks)


def _validate_hook(hook: events.Hook) -> None:
    """Check id, label and handlers of a hook before registration."""
    if not isinstance(hook.id, str) or not hook.id.strip():
        raise errors.HookValidationError("Hook ID is required")
    if not isinstance(hook.label, str) or not hook.label.strip():
        raise errors.HookValidationError("Hook label is required")

    for kind in events.ActionKind:
        handler = hook.handler_for(kind)
        if handler is not None and not callable(handler):
            raise errors.HookValidationError(
                f"Handler {kind.handler_name} must be callable"
            )
