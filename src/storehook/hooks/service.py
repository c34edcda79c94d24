"""
Hook service - central coordinator for store hook actions.

The HookService owns the hook registry, the action executor and the retry
scheduler, and is the programmatic API the console and embedding code use.
Construct one per process and pass it where it is needed.
"""

from __future__ import annotations

import logging as _logging
import pathlib as _pathlib
import time as _time
import typing as _typing

import storehook.constants as constants
import storehook.hooks.config as hooks_config
import storehook.hooks.events as events
import storehook.hooks.executor as executor
import storehook.hooks.registry as registry
import storehook.hooks.scheduler as scheduler
import storehook.hooks.stats as stats
import storehook.logging as action_logging

if _typing.TYPE_CHECKING:
    import storehook.config as config

_logger = _logging.getLogger(__name__)


class HookService:
    """
    Central service for store hooks.

    Registers hooks, executes actions immediately, schedules them with
    retries, and reports statistics. All state is in memory and is lost
    when the process exits.
    """

    def __init__(
        self,
        *,
        action_log: action_logging.ActionLogger | None = None,
        handler_timeout: float | None = constants.DEFAULT_HANDLER_TIMEOUT,
        default_max_retries: int = constants.DEFAULT_MAX_RETRIES,
        default_retry_delay: float = constants.DEFAULT_RETRY_DELAY,
        cleanup_max_age: float = constants.CLEANUP_MAX_AGE,
        clock: _typing.Callable[[], float] = _time.time,
    ) -> None:
        """
        Initialize the service.

        Args:
            action_log: Action logger (default: in-memory history only).
            handler_timeout: Seconds an awaitable handler may take.
            default_max_retries: Retry ceiling for scheduled actions.
            default_retry_delay: Retry delay when a handler gives none.
            cleanup_max_age: Retention window for cleanup().
            clock: Wall-clock source (unix seconds).
        """
        self._action_log = action_log or action_logging.ActionLogger(enabled=False)
        self._cleanup_max_age = cleanup_max_age
        self._registry = registry.HookRegistry()
        self._executor = executor.ActionExecutor(
            self._action_log,
            handler_timeout=handler_timeout,
            clock=clock,
        )
        self._scheduler = scheduler.RetryScheduler(
            self._registry,
            self._executor,
            self._action_log,
            default_max_retries=default_max_retries,
            default_retry_delay=default_retry_delay,
            clock=clock,
        )

    @classmethod
    def from_settings(cls, settings: config.Settings) -> HookService:
        """
        Create a HookService from settings.

        Opens the action log and, if ``hooks_file`` is set, registers the
        hooks it defines.
        """
        action_log = action_logging.ActionLogger(
            log_dir=settings.logging.dir,
            log_file=settings.logging.file,
            private_mode=settings.logging.private,
            enabled=settings.logging.enabled,
            history_size=settings.logging.history_size,
        )
        service = cls(
            action_log=action_log,
            handler_timeout=settings.executor.handler_timeout,
            default_max_retries=settings.scheduler.default_max_retries,
            default_retry_delay=settings.scheduler.default_retry_delay,
            cleanup_max_age=settings.scheduler.cleanup_max_age,
        )
        if settings.hooks_file:
            service.load_hooks_file(_pathlib.Path(settings.hooks_file))
        return service

    @property
    def registry(self) -> registry.HookRegistry:
        return self._registry

    @property
    def executor(self) -> executor.ActionExecutor:
        return self._executor

    @property
    def scheduler(self) -> scheduler.RetryScheduler:
        return self._scheduler

    @property
    def action_log(self) -> action_logging.ActionLogger:
        return self._action_log

    def initialize(self) -> None:
        """Log service start-up."""
        self._action_log.log_event(
            "system_initialized",
            hooks=len(self._registry),
            cleanup_max_age=self._cleanup_max_age,
        )

    def close(self) -> None:
        """Release the action log."""
        self._action_log.close()

    # =========================================================================
    # Hooks
    # =========================================================================

    def register_hook(
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

        Raises:
            HookValidationError: If the definition is invalid.
            DuplicateHookError: If the id is already registered.
        """
        hook = self._registry.register(
            hook_id,
            label,
            on_purchase=on_purchase,
            on_remove=on_remove,
            on_renew=on_renew,
        )
        self._log_registered(hook)
        return hook

    def load_hooks_file(self, path: _pathlib.Path) -> list[events.Hook]:
        """Register the hooks defined in a YAML hooks file."""
        hooks = hooks_config.register_from_file(self._registry, path)
        for hook in hooks:
            self._log_registered(hook)
        _logger.info("Loaded %d hook(s) from %s", len(hooks), path)
        return hooks

    def _log_registered(self, hook: events.Hook) -> None:
        self._action_log.log_event(
            "hook_registered",
            hook_id=hook.id,
            label=hook.label,
            actions=[kind.value for kind in hook.actions],
        )

    def get_hook(self, hook_id: str) -> events.Hook | None:
        return self._registry.get(hook_id)

    def get_all_hooks(self) -> _typing.Mapping[str, events.Hook]:
        return self._registry.get_all()

    def remove_hook(self, hook_id: str) -> None:
        """Remove a hook. Pending scheduled actions for it fail when due."""
        hook = self._registry.remove(hook_id)
        if hook is not None:
            self._action_log.log_event("hook_removed", hook_id=hook.id, label=hook.label)

    # =========================================================================
    # Actions
    # =========================================================================

    async def execute_action(
        self,
        hook_id: str,
        action: events.ActionKind | str,
        subject_id: str,
        args: _typing.Sequence[str] = (),
    ) -> executor.ExecutionOutcome:
        """
        Execute an action immediately.

        Returns:
            Tuple of (result, error text or None). Never raises for handler
            or validation problems; an unknown hook is a failed result.
        """
        return await self._executor.execute(
            self._registry.get(hook_id),
            action,
            subject_id,
            args,
            scheduled=False,
            hook_id=hook_id,
        )

    def schedule_action(
        self,
        hook_id: str,
        action: events.ActionKind | str,
        subject_id: str,
        args: _typing.Sequence[str],
        delay: float,
        max_retries: int | None = None,
    ) -> str:
        """
        Schedule an action for later execution with retries.

        Returns:
            The scheduled action id.

        Raises:
            HookNotFoundError, InvalidDelayError, HookValidationError
        """
        return self._scheduler.schedule(hook_id, action, subject_id, args, delay, max_retries)

    def get_scheduled_action(self, action_id: str) -> scheduler.ScheduledAction | None:
        return self._scheduler.get(action_id)

    def get_scheduled_actions(self) -> _typing.Mapping[str, scheduler.ScheduledAction]:
        return self._scheduler.get_all()

    def cancel_scheduled_action(self, action_id: str) -> bool:
        return self._scheduler.cancel(action_id)

    async def run_pending(self) -> int:
        """Process scheduled actions that are due now."""
        return await self._scheduler.run_pending()

    async def run_forever(self) -> None:
        """Run the scheduler loop until cancelled."""
        await self._scheduler.run_forever()

    # =========================================================================
    # Introspection and maintenance
    # =========================================================================

    def get_stats(self) -> stats.ActionStats:
        return stats.compute_stats(self._registry, self._scheduler)

    def cleanup(self, max_age: float | None = None) -> int:
        """Delete scheduled actions older than the retention window."""
        return self._scheduler.cleanup(self._cleanup_max_age if max_age is None else max_age)
