"""
Action logger for storehook.

Logs every handler attempt and scheduler event to a JSONL file, and keeps
a bounded in-memory history of recent action records for the console.
"""

from __future__ import annotations

import collections as _collections
import dataclasses as _dataclasses
import datetime as _datetime
import json as _json
import logging as _logging
import os as _os
import pathlib as _pathlib
import typing as _typing

import storehook.constants as constants

if _typing.TYPE_CHECKING:
    import storehook.hooks.events as events

_logger = _logging.getLogger(__name__)


@_dataclasses.dataclass
class ActionRecord:
    """
    One handler attempt, as reported to the action log.

    Attributes:
        action: Action kind value ("purchase", "remove", "renew").
        hook_id: Hook the action ran against.
        subject_id: Subject (player) id.
        args: Command arguments.
        success: Whether the attempt succeeded.
        timestamp: Wall-clock unix seconds when the attempt finished.
        scheduled: True when run by the scheduler (including retries).
        execution_time_ms: Handler duration in milliseconds.
        result: Normalized result, if the handler returned.
        error: Error text for validation failures and handler faults.
    """

    action: str
    hook_id: str
    subject_id: str
    args: list[str]
    success: bool
    timestamp: float
    scheduled: bool = False
    execution_time_ms: float | None = None
    result: events.ActionResult | None = None
    error: str | None = None

    @property
    def summary(self) -> str:
        """One-line description, e.g. "Purchase - vip (Scheduled)"."""
        suffix = " (Scheduled)" if self.scheduled else ""
        return f"{self.action.capitalize()} - {self.hook_id}{suffix}"

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert to JSON-serializable dict."""
        data: dict[str, _typing.Any] = {
            "action": self.action,
            "hook_id": self.hook_id,
            "subject_id": self.subject_id,
            "args": list(self.args),
            "success": self.success,
            "timestamp": self.timestamp,
            "scheduled": self.scheduled,
            "execution_time_ms": self.execution_time_ms,
        }
        if self.result is not None:
            data["result"] = {
                "message": self.result.message,
                "data": self.result.data,
                "retry": self.result.retry,
                "retry_delay": self.result.retry_delay,
            }
        if self.error is not None:
            data["error"] = self.error
        return data


class ActionLogger:
    """
    Logs store hook activity to a JSONL file.

    Each line in the file is a JSON object representing an event:
    - action: One handler attempt (see ActionRecord)
    - hook_registered / hook_removed: Registry changes
    - action_scheduled / retry_scheduled: Scheduler arming an action
    - scheduled_action_finished: Terminal state ("completed" or "failed")
    - scheduled_action_cancelled: Explicit cancellation
    - cleanup_performed: Retention sweep
    - system_initialized: Service start

    Usage:
        logger = ActionLogger(log_dir="/tmp")
        logger.log_action(record)
        logger.log_event("hook_registered", hook_id="vip", label="VIP")
        logger.close()
    """

    def __init__(
        self,
        *,
        log_dir: _pathlib.Path | str | None = None,
        log_file: _pathlib.Path | str | None = None,
        private_mode: bool = True,
        enabled: bool = True,
        history_size: int = constants.DEFAULT_HISTORY_SIZE,
    ) -> None:
        """
        Initialize the action logger.

        Args:
            log_dir: Directory for log files (default: /tmp/storehook-logs).
            log_file: Explicit log file path (overrides log_dir + auto name).
            private_mode: If True, set log directory to drwx------ (0o700).
            enabled: Whether file logging is enabled. History is always kept.
            history_size: Number of recent action records kept in memory.
        """
        self._enabled = enabled
        self._file: _typing.TextIO | None = None
        self._file_path: _pathlib.Path | None = None
        self._event_count = 0
        self._history: _collections.deque[ActionRecord] = _collections.deque(
            maxlen=max(history_size, 1)
        )

        if not enabled:
            return

        if log_file:
            self._file_path = _pathlib.Path(log_file)
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
        else:
            base_dir = _pathlib.Path(log_dir) if log_dir else _pathlib.Path("/tmp/storehook-logs")
            base_dir.mkdir(parents=True, exist_ok=True)

            # Lock down permissions if private_mode (drwx------)
            if private_mode:
                _os.chmod(base_dir, 0o700)

            stamp = _datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
            self._file_path = base_dir / f"storehook_{stamp}.jsonl"

        # Held as instance state, closed in close()
        self._file = open(self._file_path, "a", encoding="utf-8")  # noqa: SIM115

    @property
    def file_path(self) -> _pathlib.Path | None:
        """Path of the JSONL file, or None when file logging is disabled."""
        return self._file_path

    @property
    def enabled(self) -> bool:
        return self._enabled

    def _write_event(self, event_type: str, data: dict[str, _typing.Any]) -> None:
        """Write an event to the log file."""
        if not self._enabled or not self._file:
            return

        self._event_count += 1
        event = {
            "timestamp": _datetime.datetime.now().isoformat(),
            "event_number": self._event_count,
            "event_type": event_type,
            **data,
        }

        try:
            self._file.write(_json.dumps(event, default=str) + "\n")
            self._file.flush()
        except OSError:
            # Logging must never break action execution
            _logger.debug("Failed to write action log event %s", event_type, exc_info=True)

    def log_action(self, record: ActionRecord) -> None:
        """Log one handler attempt."""
        self._history.append(record)
        level = _logging.INFO if record.success else _logging.WARNING
        _logger.log(
            level,
            "%s subject=%s success=%s (%.1fms)",
            record.summary,
            record.subject_id,
            record.success,
            record.execution_time_ms or 0.0,
        )
        self._write_event("action", record.to_dict())

    def log_event(self, event_type: str, **data: _typing.Any) -> None:
        """Log a registry or scheduler event."""
        _logger.debug("%s %s", event_type, data)
        self._write_event(event_type, data)

    def recent(self, limit: int | None = None) -> list[ActionRecord]:
        """Return recent action records, oldest first."""
        records = list(self._history)
        if limit is not None:
            records = records[-limit:] if limit > 0 else []
        return records

    def close(self) -> None:
        """Close the log file."""
        if self._file:
            self._file.close()
            self._file = None

    def __enter__(self) -> ActionLogger:
        return self

    def __exit__(self, *args: _typing.Any) -> None:
        self.close()
