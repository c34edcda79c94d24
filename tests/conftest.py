"""
Shared pytest fixtures for storehook tests.

This file is automatically loaded by pytest. Fixtures defined here are
available to all test files without explicit imports.
"""

import os as _os
import typing as _typing
import unittest.mock as _mock

import pytest as _pytest

import storehook.config as config
import storehook.hooks as hooks
import storehook.logging as action_logging

# Environment keys that should be cleared for isolated tests
ENV_PREFIX_TO_CLEAR = "STOREHOOK_"

START_TIME = 1_700_000_000.0
"""Fake clock start (unix seconds)."""


class FakeClock:
    """
    Manually advanced wall clock.

    Pass as ``clock=`` to the service, executor or scheduler so due times
    can be reached without sleeping.
    """

    def __init__(self, start: float = START_TIME) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class HandlerSpy:
    """
    Callable handler that records calls and returns queued values.

    Each call pops the next value from ``returns``; when the queue is
    empty the last value is repeated. Exceptions in the queue are raised.
    """

    def __init__(self, *returns: _typing.Any) -> None:
        self.returns = list(returns) or [None]
        self.calls: list[tuple[str, list[str]]] = []

    def __call__(self, hook: hooks.Hook, subject_id: str, args: list[str]) -> _typing.Any:
        self.calls.append((subject_id, list(args)))
        value = self.returns.pop(0) if len(self.returns) > 1 else self.returns[0]
        if isinstance(value, BaseException):
            raise value
        return value

    @property
    def call_count(self) -> int:
        return len(self.calls)


@_pytest.fixture
def clock() -> FakeClock:
    """A fake clock starting at START_TIME."""
    return FakeClock()


@_pytest.fixture
def action_log() -> action_logging.ActionLogger:
    """Action logger with file output disabled (history only)."""
    return action_logging.ActionLogger(enabled=False)


@_pytest.fixture
def service(clock: FakeClock, action_log: action_logging.ActionLogger) -> hooks.HookService:
    """HookService on a fake clock with an in-memory action log."""
    return hooks.HookService(action_log=action_log, clock=clock)


@_pytest.fixture
def clean_env() -> dict[str, str]:
    """
    Return environment dict with storehook keys removed.

    Use with mock.patch.dict to isolate tests from the actual environment.
    """
    return {k: v for k, v in _os.environ.items() if not k.startswith(ENV_PREFIX_TO_CLEAR)}


@_pytest.fixture
def isolated_env(clean_env: dict[str, str]):
    """
    Context manager that isolates tests from environment variables.

    Usage:
        def test_something(isolated_env):
            with isolated_env:
                settings = config.Settings.construct_without_dotenv()
    """
    return _mock.patch.dict(_os.environ, clean_env, clear=True)


@_pytest.fixture
def clean_settings(isolated_env, tmp_path, monkeypatch) -> config.Settings:
    """
    Settings instance isolated from environment, .env and config files.

    This fixture ensures tests get predictable default settings.
    """
    monkeypatch.chdir(tmp_path)
    with isolated_env:
        return config.Settings.construct_without_dotenv()
