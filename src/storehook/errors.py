"""
Exception hierarchy for storehook.

Registry and scheduler operations raise these synchronously. Handler
faults are never raised; the executor converts them into failed results.
"""


class StoreHookError(Exception):
    """Base class for all storehook errors."""

    pass


class HookValidationError(StoreHookError, ValueError):
    """Raised when a hook, action or argument is malformed."""

    pass


class DuplicateHookError(StoreHookError):
    """Raised when registering a hook id that already exists."""

    def __init__(self, hook_id: str) -> None:
        super().__init__(f"Hook with ID {hook_id} already exists")
        self.hook_id = hook_id


class HookNotFoundError(StoreHookError, LookupError):
    """Raised when an operation names a hook that is not registered."""

    def __init__(self, hook_id: str) -> None:
        super().__init__(f"Hook {hook_id} not found")
        self.hook_id = hook_id


class InvalidDelayError(HookValidationError):
    """Raised when a schedule delay is not a positive number."""

    pass
