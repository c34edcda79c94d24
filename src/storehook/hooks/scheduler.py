"""
Retry scheduler - deferred execution of hook actions with bounded retries.

Scheduled actions live in a table keyed by id. Due times are kept in a
min-heap drained by a single scheduler loop, so every attempt runs on the
same event loop and finishes before the next one starts.

Lifecycle of a ScheduledAction:

    PENDING -> EXECUTING -> completed (success)
                         -> failed    (retry disabled, retries exhausted,
                                       or hook removed)
                         -> PENDING   (retryable failure, re-armed)

A retry re-arms the same record at ``now + delay``; there is no fixed
interval timer. Terminal states delete the record.
"""

from __future__ import annotations

import asyncio as _asyncio
import contextlib as _contextlib
import dataclasses as _dataclasses
import heapq as _heapq
import itertools as _itertools
import logging as _logging
import math as _math
import time as _time
import types as _types
import typing as _typing

import storehook.constants as constants
import storehook.errors as errors
import storehook.hooks.events as events

if _typing.TYPE_CHECKING:
    import storehook.hooks.executor as executor_module
    import storehook.hooks.registry as registry_module
    import storehook.logging as action_logging

_logger = _logging.getLogger(__name__)


@_dataclasses.dataclass
class ScheduledAction:
    """
    A pending deferred execution of a hook action.

    Attributes:
        id: Unique action id.
        hook_id: Hook to execute (looked up again at each attempt).
        action: Action kind to run.
        subject_id: Subject (player) id.
        args: Command arguments.
        execute_at: Unix timestamp of the next attempt.
        retries: Retries already made (0 before the first retry).
        max_retries: Retry ceiling.
        retry_delay: Seconds before a retry when the handler gives no delay.
        created: Unix timestamp when the action was first scheduled.
    """

    id: str
    hook_id: str
    action: events.ActionKind
    subject_id: str
    args: list[str]
    execute_at: float
    retries: int = 0
    max_retries: int = constants.DEFAULT_MAX_RETRIES
    retry_delay: float = constants.DEFAULT_RETRY_DELAY
    created: float = 0.0

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert to JSON-serializable dict."""
        return {
            "id": self.id,
            "hook_id": self.hook_id,
            "action": self.action.value,
            "subject_id": self.subject_id,
            "args": list(self.args),
            "execute_at": self.execute_at,
            "retries": self.retries,
            "max_retries": self.max_retries,
            "retry_delay": self.retry_delay,
            "created": self.created,
        }


class RetryScheduler:
    """
    Schedules hook actions for later execution and retries failures.

    The scheduler never calls handlers itself; each attempt goes through
    the ActionExecutor with ``scheduled=True``.
    """

    def __init__(
        self,
        registry: registry_module.HookRegistry,
        executor: executor_module.ActionExecutor,
        action_log: action_logging.ActionLogger,
        *,
        default_max_retries: int = constants.DEFAULT_MAX_RETRIES,
        default_retry_delay: float = constants.DEFAULT_RETRY_DELAY,
        clock: _typing.Callable[[], float] = _time.time,
    ) -> None:
        """
        Initialize the scheduler.

        Args:
            registry: Hook registry used to resolve hooks at each attempt.
            executor: Executor that runs the handlers.
            action_log: Sink for scheduler events.
            default_max_retries: Retry ceiling when schedule() is given none.
            default_retry_delay: Retry delay when the handler gives none.
            clock: Wall-clock source (unix seconds).
        """
        self._registry = registry
        self._executor = executor
        self._action_log = action_log
        self._default_max_retries = default_max_retries
        self._default_retry_delay = default_retry_delay
        self._clock = clock

        self._actions: dict[str, ScheduledAction] = {}
        self._queue: list[tuple[float, int, str]] = []
        self._sequence = _itertools.count()
        self._id_counter = 0
        self._wakeup = _asyncio.Event()

    # =========================================================================
    # Scheduling
    # =========================================================================

    def schedule(
        self,
        hook_id: str,
        action: events.ActionKind | str,
        subject_id: str,
        args: _typing.Sequence[str],
        delay: float,
        max_retries: int | None = None,
    ) -> str:
        """
        Schedule an action to run after ``delay`` seconds.

        Args:
            hook_id: Hook to execute.
            action: Action kind (enum or string value).
            subject_id: Subject (player) id.
            args: Command arguments.
            delay: Seconds until the first attempt (must be > 0).
            max_retries: Retry ceiling (default from settings).

        Returns:
            The new action id.

        Raises:
            HookNotFoundError: If the hook is not registered.
            InvalidDelayError: If delay is not a positive number.
            HookValidationError: If action, subject, args or max_retries are invalid.
        """
        if not isinstance(hook_id, str):
            raise errors.HookValidationError("Hook ID must be a string")
        if hook_id not in self._registry:
            raise errors.HookNotFoundError(hook_id)
        if isinstance(delay, bool) or not isinstance(delay, (int, float)):
            raise errors.InvalidDelayError("Delay must be a positive number")
        if not _math.isfinite(delay) or delay <= 0:
            raise errors.InvalidDelayError("Delay must be a positive number")

        try:
            kind = events.ActionKind.parse(action)
        except ValueError as e:
            raise errors.HookValidationError(str(e)) from e
        if not isinstance(subject_id, str) or not subject_id:
            raise errors.HookValidationError("Subject ID must be a non-empty string")
        if not isinstance(args, (list, tuple)):
            raise errors.HookValidationError("Args must be a list")

        if max_retries is None:
            max_retries = self._default_max_retries
        if isinstance(max_retries, bool) or not isinstance(max_retries, int) or max_retries < 0:
            raise errors.HookValidationError("max_retries must be a non-negative integer")

        now = self._clock()
        scheduled = ScheduledAction(
            id=self._generate_id(now),
            hook_id=hook_id,
            action=kind,
            subject_id=subject_id,
            args=list(args),
            execute_at=now + delay,
            max_retries=max_retries,
            retry_delay=self._default_retry_delay,
            created=now,
        )
        self._actions[scheduled.id] = scheduled
        self._arm(scheduled)

        self._action_log.log_event(
            "action_scheduled",
            action_id=scheduled.id,
            hook_id=hook_id,
            action=kind.value,
            subject_id=subject_id,
            delay=delay,
        )
        return scheduled.id

    def _generate_id(self, now: float) -> str:
        """Generate a process-unique action id."""
        self._id_counter += 1
        return f"action_{int(now)}_{self._id_counter}"

    def _arm(self, scheduled: ScheduledAction) -> None:
        """Push the action's due time onto the queue and wake the loop."""
        _heapq.heappush(
            self._queue,
            (scheduled.execute_at, next(self._sequence), scheduled.id),
        )
        self._wakeup.set()

    # =========================================================================
    # Processing
    # =========================================================================

    async def process(self, action_id: str) -> None:
        """
        Run one attempt of a scheduled action and decide what happens next.

        Does nothing if the action no longer exists (cancelled or cleaned up).
        """
        scheduled = self._actions.get(action_id)
        if scheduled is None:
            _logger.debug("Scheduled action %s no longer exists", action_id)
            return

        hook = self._registry.get(scheduled.hook_id)
        if hook is None:
            _logger.error("Hook %s not found for scheduled action %s", scheduled.hook_id, action_id)
            del self._actions[action_id]
            self._finish(scheduled, "failed", reason="hook not found")
            return

        result, error = await self._executor.execute(
            hook,
            scheduled.action,
            scheduled.subject_id,
            scheduled.args,
            scheduled=True,
            hook_id=scheduled.hook_id,
        )

        if self._actions.get(action_id) is not scheduled:
            # Cancelled while the handler was running
            _logger.debug("Scheduled action %s cancelled during execution", action_id)
            return

        if not result.success and result.retry and scheduled.retries < scheduled.max_retries:
            scheduled.retries += 1
            delay = result.retry_delay if result.retry_delay is not None else scheduled.retry_delay
            scheduled.execute_at = self._clock() + delay
            self._arm(scheduled)
            self._action_log.log_event(
                "retry_scheduled",
                action_id=action_id,
                hook_id=scheduled.hook_id,
                retries=scheduled.retries,
                delay=delay,
            )
            return

        del self._actions[action_id]
        status = "completed" if result.success else "failed"
        self._finish(scheduled, status, reason=error or result.message)

    def _finish(self, scheduled: ScheduledAction, status: str, *, reason: str | None) -> None:
        """Log a terminal state."""
        self._action_log.log_event(
            "scheduled_action_finished",
            action_id=scheduled.id,
            hook_id=scheduled.hook_id,
            action=scheduled.action.value,
            subject_id=scheduled.subject_id,
            status=status,
            retries=scheduled.retries,
            reason=reason,
        )

    async def run_pending(self) -> int:
        """
        Process every action whose due time has passed.

        Returns:
            Number of attempts made.
        """
        now = self._clock()
        processed = 0
        while self._queue and self._queue[0][0] <= now:
            execute_at, _, action_id = _heapq.heappop(self._queue)
            scheduled = self._actions.get(action_id)
            if scheduled is None or scheduled.execute_at != execute_at:
                # Cancelled, cleaned up, or re-armed at a different time
                continue

            try:
                await self.process(action_id)
            except Exception:
                _logger.exception("Scheduled action %s failed unexpectedly; dropping it", action_id)
                self._actions.pop(action_id, None)
            processed += 1
        return processed

    def seconds_until_next(self) -> float | None:
        """Seconds until the earliest queued due time (None if idle)."""
        while self._queue:
            execute_at, _, action_id = self._queue[0]
            scheduled = self._actions.get(action_id)
            if scheduled is None or scheduled.execute_at != execute_at:
                _heapq.heappop(self._queue)
                continue
            return max(execute_at - self._clock(), 0.0)
        return None

    async def run_forever(self) -> None:
        """
        Scheduler loop: sleep until the next due time, then process.

        Woken early whenever a new action is armed. Runs until cancelled.
        """
        while True:
            self._wakeup.clear()
            await self.run_pending()
            timeout = self.seconds_until_next()
            with _contextlib.suppress(TimeoutError):
                await _asyncio.wait_for(self._wakeup.wait(), timeout=timeout)

    # =========================================================================
    # Introspection and maintenance
    # =========================================================================

    def get(self, action_id: str) -> ScheduledAction | None:
        """Get a scheduled action by id."""
        if not isinstance(action_id, str):
            _logger.error("Action ID must be a string")
            return None
        return self._actions.get(action_id)

    def get_all(self) -> _typing.Mapping[str, ScheduledAction]:
        """Return a read-only view of all pending actions keyed by id."""
        return _types.MappingProxyType(self._actions)

    def cancel(self, action_id: str) -> bool:
        """
        Cancel a scheduled action.

        An attempt already running is allowed to finish but is not re-armed.

        Returns:
            True if the action existed and was removed.
        """
        scheduled = self._actions.pop(action_id, None) if isinstance(action_id, str) else None
        if scheduled is None:
            _logger.warning("Scheduled action %s not found", action_id)
            return False

        self._action_log.log_event(
            "scheduled_action_cancelled",
            action_id=action_id,
            hook_id=scheduled.hook_id,
            action=scheduled.action.value,
        )
        return True

    def cleanup(self, max_age: float = constants.CLEANUP_MAX_AGE) -> int:
        """
        Delete every action created more than ``max_age`` seconds ago.

        Applies regardless of the action's state.

        Returns:
            Number of actions removed.
        """
        now = self._clock()
        stale = [
            action_id
            for action_id, scheduled in self._actions.items()
            if now - scheduled.created > max_age
        ]
        for action_id in stale:
            del self._actions[action_id]

        self._action_log.log_event(
            "cleanup_performed",
            actions_removed=len(stale),
            remaining_actions=len(self._actions),
        )
        return len(stale)

    def __len__(self) -> int:
        return len(self._actions)
