"""
Console command interpreter.

Parses store console commands and dispatches them to a HookService. Every
command produces a reply: a status line, a JSON block or a table. Errors
become failed replies; nothing raises out of dispatch().

Commands:
    run <hook>.<kind> <subject> [args...]
    schedule <hook>.<kind> <subject> [delay] [args...]
    <kind>_<hook> <subject> [args...]
    <kind>_<hook>_scheduled <subject> [delay] [args...]
    cancel <action_id>
    list | hooks | history [n] | stats | cleanup | help | quit
"""

from __future__ import annotations

import dataclasses as _dataclasses
import datetime as _datetime
import json as _json
import logging as _logging
import math as _math
import re as _re
import shlex as _shlex
import typing as _typing

import rich.console as _rich_console
import rich.table as _rich_table

import storehook.constants as constants
import storehook.errors as errors
import storehook.hooks.events as events

if _typing.TYPE_CHECKING:
    import storehook.hooks.service as service_module

_logger = _logging.getLogger(__name__)

PREFIX = "[store]"

_KIND_PATTERN = "|".join(kind.value for kind in events.ActionKind)
_HOOK_COMMAND = _re.compile(rf"^(?P<kind>{_KIND_PATTERN})_(?P<hook>.+?)(?P<scheduled>_scheduled)?$")

HELP_TEXT = """\
Commands:
  run <hook>.<kind> <subject> [args...]                Execute an action now
  schedule <hook>.<kind> <subject> [delay] [args...]   Execute later, with retries
  <kind>_<hook> <subject> [args...]                    Same as run
  <kind>_<hook>_scheduled <subject> [delay] [args...]  Same as schedule
  cancel <action_id>                                   Cancel a scheduled action
  list                                                 Show scheduled actions
  hooks                                                Show registered hooks
  history [n]                                          Show recent action attempts
  stats                                                Show statistics as JSON
  cleanup                                              Remove scheduled actions older than 24h
  help                                                 Show this help
  quit                                                 Leave the console

<kind> is one of: purchase, remove, renew"""


@_dataclasses.dataclass
class ConsoleReply:
    """
    Result of one console command.

    Attributes:
        output: Status line, JSON text or a rich renderable.
        ok: False when the command failed.
        quit: True when the console should exit.
    """

    output: _rich_console.RenderableType | None = None
    ok: bool = True
    quit: bool = False

    @classmethod
    def success(cls, text: str) -> ConsoleReply:
        return cls(output=f"{PREFIX} {text}")

    @classmethod
    def failure(cls, text: str) -> ConsoleReply:
        return cls(output=f"{PREFIX} {text}", ok=False)


class ConsoleCommands:
    """Interpreter for store console commands."""

    def __init__(
        self,
        service: service_module.HookService,
        *,
        command_delay: float = constants.DEFAULT_COMMAND_DELAY,
    ) -> None:
        """
        Initialize the interpreter.

        Args:
            service: Hook service the commands operate on.
            command_delay: Delay for schedule commands that give none.
        """
        self._service = service
        self._command_delay = command_delay

    async def dispatch(self, line: str) -> ConsoleReply:
        """Parse and run one command line."""
        try:
            tokens = _shlex.split(line)
        except ValueError as e:
            return ConsoleReply.failure(f"Could not parse command: {e}")
        if not tokens:
            return ConsoleReply()

        name, rest = tokens[0], tokens[1:]
        try:
            return await self._dispatch(name, rest)
        except Exception as e:
            _logger.exception("Console command %s failed", name)
            return ConsoleReply.failure(f"Command {name} failed: {e}")

    async def _dispatch(self, name: str, rest: list[str]) -> ConsoleReply:
        command = name.lower()
        if command == "run":
            return await self._run_target(rest, scheduled=False)
        if command == "schedule":
            return await self._run_target(rest, scheduled=True)
        if command == "cancel":
            return self._cancel(rest)
        if command == "list":
            return ConsoleReply(output=self._scheduled_table())
        if command == "hooks":
            return ConsoleReply(output=self._hooks_table())
        if command == "history":
            return self._history(rest)
        if command == "stats":
            stats = self._service.get_stats()
            return ConsoleReply(output=_json.dumps(stats.to_dict(), indent=2, default=str))
        if command == "cleanup":
            cleaned = self._service.cleanup()
            return ConsoleReply.success(f"Cleaned up {cleaned} old scheduled actions")
        if command == "help":
            return ConsoleReply(output=HELP_TEXT)
        if command in ("quit", "exit"):
            return ConsoleReply(quit=True)

        match = _HOOK_COMMAND.match(name)
        if match and match.group("hook") in self._service.registry:
            kind = events.ActionKind(match.group("kind"))
            scheduled = match.group("scheduled") is not None
            return await self._run(match.group("hook"), kind, rest, scheduled=scheduled)

        return ConsoleReply.failure(f"Unknown command: {name} (try 'help')")

    # =========================================================================
    # Actions
    # =========================================================================

    async def _run_target(self, rest: list[str], *, scheduled: bool) -> ConsoleReply:
        """Handle run/schedule, whose first argument is <hook>.<kind>."""
        if not rest:
            return ConsoleReply.failure("Usage: run|schedule <hook>.<kind> <subject> [args...]")

        hook_id, sep, kind_name = rest[0].rpartition(".")
        if not sep or not hook_id:
            return ConsoleReply.failure(f"Expected <hook>.<kind>, got '{rest[0]}'")
        try:
            kind = events.ActionKind.parse(kind_name)
        except ValueError as e:
            return ConsoleReply.failure(str(e))

        return await self._run(hook_id, kind, rest[1:], scheduled=scheduled)

    async def _run(
        self,
        hook_id: str,
        kind: events.ActionKind,
        rest: list[str],
        *,
        scheduled: bool,
    ) -> ConsoleReply:
        subject_id = rest[0] if rest else ""
        if not subject_id or subject_id == constants.NO_SUBJECT:
            return ConsoleReply.failure(f"A subject id is required to {kind.value} hook {hook_id}")

        if scheduled:
            delay, args = _split_delay(rest[1:], self._command_delay)
            return self._schedule(hook_id, kind, subject_id, args, delay)

        result, error = await self._service.execute_action(hook_id, kind, subject_id, rest[1:])
        return execution_reply(hook_id, kind.value, subject_id, result, error)

    def _schedule(
        self,
        hook_id: str,
        kind: events.ActionKind,
        subject_id: str,
        args: list[str],
        delay: float,
    ) -> ConsoleReply:
        try:
            action_id = self._service.schedule_action(hook_id, kind, subject_id, args, delay)
        except errors.StoreHookError as e:
            return ConsoleReply.failure(
                f"Failed to schedule {kind.value} for hook {hook_id} (subject: {subject_id}): {e}"
            )
        return ConsoleReply.success(
            f"Scheduled {kind.value} for hook {hook_id} (subject: {subject_id}) "
            f"in {delay:g} seconds (ID: {action_id})"
        )

    def _cancel(self, rest: list[str]) -> ConsoleReply:
        if len(rest) != 1:
            return ConsoleReply.failure("Usage: cancel <action_id>")
        if self._service.cancel_scheduled_action(rest[0]):
            return ConsoleReply.success(f"Cancelled scheduled action {rest[0]}")
        return ConsoleReply.failure(f"Scheduled action {rest[0]} not found")

    # =========================================================================
    # Introspection
    # =========================================================================

    def _history(self, rest: list[str]) -> ConsoleReply:
        limit = 10
        if rest:
            try:
                limit = int(rest[0])
            except ValueError:
                return ConsoleReply.failure(f"History size must be a number, got '{rest[0]}'")

        table = _rich_table.Table(title="Recent actions")
        for column in ("Time", "Action", "Subject", "Status", "Duration", "Detail"):
            table.add_column(column)
        for record in self._service.action_log.recent(limit):
            detail = record.error or (record.result.message if record.result else "") or ""
            table.add_row(
                _format_time(record.timestamp),
                record.summary,
                record.subject_id,
                "ok" if record.success else "failed",
                f"{record.execution_time_ms:.1f}ms" if record.execution_time_ms is not None else "-",
                detail,
            )
        return ConsoleReply(output=table)

    def _scheduled_table(self) -> _rich_table.Table:
        table = _rich_table.Table(title="Scheduled actions")
        for column in ("ID", "Hook", "Action", "Subject", "Due", "Retries"):
            table.add_column(column)
        pending = sorted(self._service.get_scheduled_actions().values(), key=lambda a: a.execute_at)
        for scheduled in pending:
            table.add_row(
                scheduled.id,
                scheduled.hook_id,
                scheduled.action.value,
                scheduled.subject_id,
                _format_time(scheduled.execute_at),
                f"{scheduled.retries}/{scheduled.max_retries}",
            )
        return table

    def _hooks_table(self) -> _rich_table.Table:
        return hooks_table(self._service.get_all_hooks().values())


def execution_reply(
    hook_id: str,
    kind: str,
    subject_id: str,
    result: events.ActionResult,
    error: str | None,
) -> ConsoleReply:
    """Status line for an immediate execution."""
    if result.success:
        detail = f" - {result.message}" if result.message else ""
        return ConsoleReply.success(
            f"Successfully executed {kind} for hook {hook_id} (subject: {subject_id}){detail}"
        )
    reason = error or result.message or "Unknown error"
    return ConsoleReply.failure(
        f"Failed to execute {kind} for hook {hook_id} (subject: {subject_id}): {reason}"
    )


def hooks_table(hooks: _typing.Iterable[events.Hook]) -> _rich_table.Table:
    """Render hooks as a table of id, label and handled actions."""
    table = _rich_table.Table(title="Hooks")
    table.add_column("ID")
    table.add_column("Label")
    table.add_column("Actions")
    for hook in hooks:
        table.add_row(hook.id, hook.label, ", ".join(kind.value for kind in hook.actions))
    return table


def _split_delay(tokens: list[str], default: float) -> tuple[float, list[str]]:
    """
    Take a leading delay token off a schedule command's arguments.

    A missing or non-numeric token gives the default delay; a non-numeric
    token stays an argument.
    """
    if tokens:
        try:
            delay = float(tokens[0])
        except ValueError:
            return default, tokens
        if _math.isfinite(delay):
            return delay, tokens[1:]
    return default, tokens


def _format_time(timestamp: float) -> str:
    return _datetime.datetime.fromtimestamp(timestamp).strftime("%Y-%m-%d %H:%M:%S")
