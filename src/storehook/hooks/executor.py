"""
Action executor - runs a hook handler with failure isolation.

The executor validates the request, invokes the handler, times it,
normalizes whatever it returned, and reports the attempt to the action
log. A handler fault never escapes: it becomes a retryable failed result.
"""

from __future__ import annotations

import asyncio as _asyncio
import inspect as _inspect
import logging as _logging
import time as _time
import typing as _typing

import storehook.constants as constants
import storehook.hooks.events as events
import storehook.logging as action_logging

_logger = _logging.getLogger(__name__)

ExecutionOutcome = tuple[events.ActionResult, str | None]
"""(normalized result, error text or None)."""


class ActionExecutor:
    """
    Executes hook handlers and normalizes their results.

    Awaitable handler results are awaited with timeout enforcement.
    Synchronous handlers run inline on the caller's event loop and
    cannot be interrupted.
    """

    def __init__(
        self,
        action_log: action_logging.ActionLogger,
        *,
        handler_timeout: float | None = constants.DEFAULT_HANDLER_TIMEOUT,
        clock: _typing.Callable[[], float] = _time.time,
    ) -> None:
        """
        Initialize the executor.

        Args:
            action_log: Sink for per-attempt action records.
            handler_timeout: Seconds an awaitable handler may take (None = unbounded).
            clock: Wall-clock source for record timestamps.
        """
        self._action_log = action_log
        self._handler_timeout = handler_timeout
        self._clock = clock

    async def execute(
        self,
        hook: events.Hook | None,
        action: events.ActionKind | str,
        subject_id: str,
        args: _typing.Sequence[str],
        *,
        scheduled: bool = False,
        hook_id: str | None = None,
    ) -> ExecutionOutcome:
        """
        Run the hook's handler for an action.

        Never raises. Validation failures return a non-retryable failure
        without calling the handler; handler faults return a retryable one.

        Args:
            hook: The hook to run (None is reported as a validation failure).
            action: Action kind (enum or its string value).
            subject_id: Subject (player) id.
            args: Command arguments.
            scheduled: True when called from the scheduler.
            hook_id: Requested hook id, recorded when the hook lookup failed.

        Returns:
            Tuple of (normalized result, error text or None).
        """
        problem, kind, handler = _validate(hook, action, subject_id, args)
        if problem is not None:
            _logger.error("Handler validation failed: %s", problem)
            result = events.ActionResult.fail("Handler validation failed")
            self._report(
                hook, action, subject_id, args, result, problem, scheduled, None, hook_id=hook_id
            )
            return result, problem

        assert hook is not None and kind is not None and handler is not None
        arg_list = list(args)

        start = _time.perf_counter()
        try:
            raw = handler(hook, subject_id, arg_list)
        except Exception as e:
            return self._handler_error(hook, kind, subject_id, arg_list, scheduled, start, e)

        if _inspect.isawaitable(raw):
            deadline = _asyncio.timeout(self._handler_timeout)
            try:
                async with deadline:
                    raw = await raw
            except TimeoutError as e:
                if not deadline.expired():
                    # Raised by the handler itself
                    return self._handler_error(
                        hook, kind, subject_id, arg_list, scheduled, start, e
                    )
                elapsed_ms = (_time.perf_counter() - start) * 1000
                error = f"Handler timed out after {self._handler_timeout}s"
                _logger.warning("Hook %s %s handler timed out", hook.id, kind.value)
                return self._fault(
                    hook,
                    kind,
                    subject_id,
                    arg_list,
                    scheduled,
                    elapsed_ms,
                    error,
                    message="Handler timed out",
                )
            except Exception as e:
                return self._handler_error(hook, kind, subject_id, arg_list, scheduled, start, e)
        elapsed_ms = (_time.perf_counter() - start) * 1000

        result = events.ActionResult.from_handler_value(raw)
        self._report(hook, kind, subject_id, arg_list, result, None, scheduled, elapsed_ms)
        return result, None

    def _handler_error(
        self,
        hook: events.Hook,
        kind: events.ActionKind,
        subject_id: str,
        args: list[str],
        scheduled: bool,
        start: float,
        exc: Exception,
    ) -> ExecutionOutcome:
        elapsed_ms = (_time.perf_counter() - start) * 1000
        _logger.warning(
            "Hook %s %s handler failed with error: %s",
            hook.id,
            kind.value,
            exc,
            exc_info=exc,
        )
        return self._fault(hook, kind, subject_id, args, scheduled, elapsed_ms, str(exc))

    def _fault(
        self,
        hook: events.Hook,
        kind: events.ActionKind,
        subject_id: str,
        args: list[str],
        scheduled: bool,
        elapsed_ms: float,
        error: str,
        *,
        message: str = "Handler execution failed",
    ) -> ExecutionOutcome:
        """Convert a handler fault into a retryable failed result."""
        result = events.ActionResult.fail(
            message,
            retry=True,
            data={"error": error, "execution_time": elapsed_ms},
        )
        # Faults are logged without a result payload, only the error
        self._report(hook, kind, subject_id, args, None, error, scheduled, elapsed_ms)
        return result, error

    def _report(
        self,
        hook: events.Hook | None,
        action: events.ActionKind | str,
        subject_id: _typing.Any,
        args: _typing.Any,
        result: events.ActionResult | None,
        error: str | None,
        scheduled: bool,
        elapsed_ms: float | None,
        *,
        hook_id: str | None = None,
    ) -> None:
        """Send one attempt to the action log."""
        action_name = action.value if isinstance(action, events.ActionKind) else str(action)
        record = action_logging.ActionRecord(
            action=action_name,
            hook_id=hook.id if hook is not None else (hook_id if isinstance(hook_id, str) else ""),
            subject_id=str(subject_id) if subject_id is not None else "",
            args=[str(a) for a in args] if isinstance(args, (list, tuple)) else [],
            success=bool(result and result.success),
            timestamp=self._clock(),
            scheduled=scheduled,
            execution_time_ms=elapsed_ms,
            result=result,
            error=error,
        )
        self._action_log.log_action(record)


def _validate(
    hook: events.Hook | None,
    action: events.ActionKind | str,
    subject_id: _typing.Any,
    args: _typing.Any,
) -> tuple[str | None, events.ActionKind | None, events.HandlerFn | None]:
    """
    Check an execution request.

    Returns:
        (problem, kind, handler); problem is None when the request is valid.
    """
    if hook is None:
        return "Hook not found", None, None
    if not hook.id:
        return "Hook ID is missing or empty", None, None

    try:
        kind = events.ActionKind.parse(action)
    except ValueError as e:
        return str(e), None, None

    if not isinstance(subject_id, str) or not subject_id or subject_id == constants.NO_SUBJECT:
        return "Subject ID is invalid", kind, None
    if not isinstance(args, (list, tuple)):
        return "Args must be a list", kind, None

    handler = hook.handler_for(kind)
    if handler is None:
        return f"Handler {kind.handler_name} not found in hook {hook.id}", kind, None

    return None, kind, handler
