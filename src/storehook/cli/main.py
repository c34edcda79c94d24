"""
Main CLI entry point for storehook.

Provides the command-line interface using Click. The ``console`` command
runs the interactive store console with the retry scheduler in the
background; ``run`` executes a single action and exits.
"""

import asyncio as _asyncio
import contextlib as _contextlib
import json as _json
import logging as _logging
import sys as _sys
import typing as _typing

import click as _click
import pydantic as _pydantic
import rich.console as _rich_console

import storehook
import storehook.cli.console as console
import storehook.config as config
import storehook.errors as errors
import storehook.hooks as hooks

# Custom Click context settings for better help formatting
CONTEXT_SETTINGS: dict[str, _typing.Any] = {
    "help_option_names": ["-h", "--help"],
    "max_content_width": 100,
}

_logger = _logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _run_async(coro: _typing.Coroutine[_typing.Any, _typing.Any, _typing.Any]) -> _typing.Any:
    """Run an async coroutine synchronously."""
    return _asyncio.run(coro)


def _load_settings(hooks_file: str | None) -> config.Settings:
    """Load settings, letting --hooks-file override the configured file."""
    overrides: dict[str, _typing.Any] = {}
    if hooks_file:
        overrides["hooks_file"] = hooks_file
    try:
        return config.Settings(**overrides)
    except _pydantic.ValidationError as e:
        _click.echo(f"Invalid configuration: {e}", err=True)
        raise SystemExit(1) from None


def _build_service(settings: config.Settings) -> hooks.HookService:
    """Create the hook service, reporting hooks-file problems as CLI errors."""
    try:
        return hooks.HookService.from_settings(settings)
    except (FileNotFoundError, ValueError) as e:
        _logger.debug("Could not build hook service", exc_info=True)
        _click.echo(f"Error: {e}", err=True)
        raise SystemExit(1) from None


def _print_reply(out: _rich_console.Console, reply: console.ConsoleReply) -> None:
    """Print a console reply, colouring status lines by outcome."""
    if reply.output is None:
        return
    if isinstance(reply.output, str):
        style = None if reply.ok else "red"
        out.print(reply.output, style=style, markup=False, highlight=False, soft_wrap=True)
    else:
        out.print(reply.output)


@_click.group(context_settings=CONTEXT_SETTINGS)
@_click.version_option(storehook.__version__, "-v", "--version", prog_name="storehook")
@_click.option(
    "--hooks-file",
    type=_click.Path(dir_okay=False),
    default=None,
    help="YAML file of hook definitions (overrides STOREHOOK_HOOKS_FILE)",
)
@_click.option("--verbose", is_flag=True, help="Enable debug logging")
@_click.pass_context
def cli(ctx: _click.Context, hooks_file: str | None, verbose: bool) -> None:
    """
    storehook - store purchase hooks for game servers.

    Runs purchase, removal and renewal handlers for store packages,
    immediately or on a schedule with bounded retries.
    """
    ctx.ensure_object(dict)
    settings = _load_settings(hooks_file)
    level = "debug" if verbose else settings.logging.level
    _logging.getLogger("storehook").setLevel(level.upper())
    ctx.obj["settings"] = settings


@cli.command(name="console")
@_click.pass_context
def console_cmd(ctx: _click.Context) -> None:
    """Run the interactive store console.

    Reads commands from stdin (one per line) until 'quit' or end of input.
    Scheduled actions run in the background while the console is open and
    are lost when it exits.
    """
    settings: config.Settings = ctx.obj["settings"]
    service = _build_service(settings)
    commands = console.ConsoleCommands(service, command_delay=settings.scheduler.command_delay)
    out = _rich_console.Console()

    out.print(
        f"storehook {storehook.__version__} - {len(service.registry)} hook(s) loaded. "
        "Type 'help' for commands.",
        highlight=False,
        soft_wrap=True,
    )
    _run_async(_console_loop(service, commands, out))


async def _console_loop(
    service: hooks.HookService,
    commands: console.ConsoleCommands,
    out: _rich_console.Console,
) -> None:
    """Read and dispatch commands while the scheduler loop runs."""
    service.initialize()
    scheduler_task = _asyncio.create_task(service.run_forever())
    try:
        while True:
            line = await _asyncio.to_thread(_sys.stdin.readline)
            if not line:
                break
            reply = await commands.dispatch(line)
            _print_reply(out, reply)
            if reply.quit:
                break
    finally:
        scheduler_task.cancel()
        with _contextlib.suppress(_asyncio.CancelledError):
            await scheduler_task
        pending = len(service.get_scheduled_actions())
        if pending:
            out.print(
                f"{console.PREFIX} Discarding {pending} scheduled action(s)",
                style="yellow",
                markup=False,
            )
        service.close()


@cli.command(name="run")
@_click.argument("target")
@_click.argument("subject")
@_click.argument("args", nargs=-1)
@_click.option("--json", "json_output", is_flag=True, help="Output the result as JSON")
@_click.pass_context
def run_cmd(
    ctx: _click.Context,
    target: str,
    subject: str,
    args: tuple[str, ...],
    json_output: bool,
) -> None:
    """Execute one action immediately.

    TARGET is <hook>.<kind>, e.g. vip.purchase. Exits with status 1 if the
    action fails.
    """
    settings: config.Settings = ctx.obj["settings"]
    hook_id, sep, kind = target.rpartition(".")
    if not sep or not hook_id:
        raise _click.BadParameter("expected <hook>.<kind>", param_hint="TARGET")

    service = _build_service(settings)
    try:
        result, error = _run_async(service.execute_action(hook_id, kind, subject, list(args)))
    finally:
        service.close()

    if json_output:
        _click.echo(_json.dumps({**result.to_dict(), "error": error}, indent=2, default=str))
    else:
        reply = console.execution_reply(hook_id, kind, subject, result, error)
        _click.echo(reply.output, err=not reply.ok)

    if not result.success:
        raise SystemExit(1)


@cli.command(name="hooks")
@_click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@_click.pass_context
def hooks_cmd(ctx: _click.Context, json_output: bool) -> None:
    """List the hooks defined in the hooks file."""
    settings: config.Settings = ctx.obj["settings"]
    if not settings.hooks_file:
        _click.echo("No hooks file configured (use --hooks-file or STOREHOOK_HOOKS_FILE)", err=True)
        raise SystemExit(1)

    service = _build_service(settings)
    try:
        registered = list(service.get_all_hooks().values())
    finally:
        service.close()

    if json_output:
        data = [
            {"id": h.id, "label": h.label, "actions": [k.value for k in h.actions]}
            for h in registered
        ]
        _click.echo(_json.dumps(data, indent=2))
        return
    _rich_console.Console().print(console.hooks_table(registered))


@cli.command(name="config")
@_click.pass_context
def config_cmd(ctx: _click.Context) -> None:
    """Show the effective configuration as JSON."""
    settings: config.Settings = ctx.obj["settings"]
    data = settings.to_display_dict()
    config_file = config.get_config_file()
    data["config_file"] = str(config_file) if config_file else None
    _click.echo(_json.dumps(data, indent=2))


def main() -> None:
    """Main entry point with correct program name."""
    _logging.basicConfig(level=_logging.WARNING, format=_LOG_FORMAT)
    try:
        cli(prog_name="storehook")
    except errors.StoreHookError as e:
        _click.echo(f"Error: {e}", err=True)
        raise SystemExit(1) from None


if __name__ == "__main__":
    main()
