"""Tests for RetryScheduler: scheduling, retries, cancellation and cleanup."""

import asyncio as _asyncio
import contextlib as _contextlib

import pytest as _pytest

import storehook.errors as errors
import storehook.hooks as hooks
import storehook.hooks.events as events
import storehook.logging as action_logging
import tests.conftest as conftest


class TestSchedule:
    """Tests for schedule() validation and bookkeeping."""

    def test_schedule_returns_unique_ids(
        self,
        service: hooks.HookService,
        clock: conftest.FakeClock,
    ) -> None:
        """Ids embed the creation second and a counter."""
        service.register_hook("vip", "VIP", on_purchase=conftest.HandlerSpy())

        first = service.schedule_action("vip", "purchase", "42", [], 10)
        second = service.schedule_action("vip", "purchase", "43", [], 10)

        assert first != second
        assert first.startswith(f"action_{int(clock.now)}_")

        scheduled = service.get_scheduled_action(first)
        assert scheduled is not None
        assert scheduled.action is events.ActionKind.PURCHASE
        assert scheduled.execute_at == clock.now + 10
        assert scheduled.created == clock.now
        assert scheduled.retries == 0
        assert scheduled.max_retries == 3

    def test_unknown_hook(self, service: hooks.HookService) -> None:
        """Scheduling for an unregistered hook raises."""
        with _pytest.raises(errors.HookNotFoundError, match="Hook ghost not found"):
            service.schedule_action("ghost", "purchase", "42", [], 10)
        assert len(service.get_scheduled_actions()) == 0

    @_pytest.mark.parametrize(
        "delay", [0, -5, "10", True, None, float("nan"), float("inf"), float("-inf")]
    )
    def test_invalid_delay(self, service: hooks.HookService, delay: object) -> None:
        """Delay must be a finite positive number."""
        service.register_hook("vip", "VIP", on_purchase=conftest.HandlerSpy())
        with _pytest.raises(errors.InvalidDelayError):
            service.schedule_action("vip", "purchase", "42", [], delay)  # type: ignore[arg-type]
        assert len(service.get_scheduled_actions()) == 0

    def test_invalid_action(self, service: hooks.HookService) -> None:
        """Unknown action kinds are rejected at schedule time."""
        service.register_hook("vip", "VIP", on_purchase=conftest.HandlerSpy())
        with _pytest.raises(errors.HookValidationError, match="Unknown action"):
            service.schedule_action("vip", "refund", "42", [], 10)

    def test_invalid_max_retries(self, service: hooks.HookService) -> None:
        """max_retries must be a non-negative integer."""
        service.register_hook("vip", "VIP", on_purchase=conftest.HandlerSpy())
        with _pytest.raises(errors.HookValidationError, match="max_retries"):
            service.schedule_action("vip", "purchase", "42", [], 10, max_retries=-1)

    def test_schedule_is_logged(
        self,
        tmp_path,
        clock: conftest.FakeClock,
    ) -> None:
        """Scheduling writes an action_scheduled event."""
        log = action_logging.ActionLogger(log_file=tmp_path / "actions.jsonl")
        service = hooks.HookService(action_log=log, clock=clock)
        service.register_hook("vip", "VIP", on_purchase=conftest.HandlerSpy())
        service.schedule_action("vip", "purchase", "42", [], 10)
        log.close()

        content = (tmp_path / "actions.jsonl").read_text()
        assert '"event_type": "action_scheduled"' in content


class TestProcessing:
    """Tests for due-time processing and the retry lifecycle."""

    @_pytest.mark.asyncio
    async def test_not_run_before_due(
        self,
        service: hooks.HookService,
        clock: conftest.FakeClock,
    ) -> None:
        """Nothing runs before the due time."""
        spy = conftest.HandlerSpy()
        service.register_hook("vip", "VIP", on_purchase=spy)
        service.schedule_action("vip", "purchase", "42", ["gold"], 10)

        clock.advance(9)
        assert await service.run_pending() == 0
        assert spy.call_count == 0

    @_pytest.mark.asyncio
    async def test_success_runs_once_and_deletes(
        self,
        service: hooks.HookService,
        clock: conftest.FakeClock,
        action_log: action_logging.ActionLogger,
    ) -> None:
        """A successful scheduled action runs exactly once."""
        spy = conftest.HandlerSpy()
        service.register_hook("vip", "VIP", on_purchase=spy)
        action_id = service.schedule_action("vip", "purchase", "42", ["gold"], 10)

        clock.advance(10)
        assert await service.run_pending() == 1
        clock.advance(1000)
        assert await service.run_pending() == 0

        assert spy.calls == [("42", ["gold"])]
        assert service.get_scheduled_action(action_id) is None
        [record] = action_log.recent()
        assert record.scheduled
        assert record.success

    @_pytest.mark.asyncio
    async def test_non_retryable_failure_deletes(
        self,
        service: hooks.HookService,
        clock: conftest.FakeClock,
    ) -> None:
        """A failure without retry is terminal."""
        spy = conftest.HandlerSpy({"success": False, "message": "no such player"})
        service.register_hook("vip", "VIP", on_purchase=spy)
        action_id = service.schedule_action("vip", "purchase", "42", [], 5)

        clock.advance(5)
        await service.run_pending()

        assert spy.call_count == 1
        assert service.get_scheduled_action(action_id) is None

    @_pytest.mark.asyncio
    async def test_retry_bound(
        self,
        service: hooks.HookService,
        clock: conftest.FakeClock,
    ) -> None:
        """A handler that always asks for retry runs max_retries + 1 times."""
        spy = conftest.HandlerSpy({"success": False, "retry": True, "retry_delay": 5})
        service.register_hook("vip", "VIP", on_purchase=spy)
        action_id = service.schedule_action("vip", "purchase", "42", [], 10, max_retries=3)

        for _ in range(10):
            clock.advance(10)
            await service.run_pending()

        assert spy.call_count == 4
        assert service.get_scheduled_action(action_id) is None

    @_pytest.mark.asyncio
    async def test_zero_max_retries_runs_once(
        self,
        service: hooks.HookService,
        clock: conftest.FakeClock,
    ) -> None:
        """max_retries=0 means exactly one attempt."""
        spy = conftest.HandlerSpy({"success": False, "retry": True})
        service.register_hook("vip", "VIP", on_purchase=spy)
        service.schedule_action("vip", "purchase", "42", [], 1, max_retries=0)

        for _ in range(5):
            clock.advance(100)
            await service.run_pending()

        assert spy.call_count == 1
        assert len(service.get_scheduled_actions()) == 0

    @_pytest.mark.asyncio
    async def test_retry_uses_handler_delay(
        self,
        service: hooks.HookService,
        clock: conftest.FakeClock,
    ) -> None:
        """The retry is re-armed at now + the handler's retry_delay."""
        spy = conftest.HandlerSpy(
            {"success": False, "retry": True, "retry_delay": 7},
            {"success": True},
        )
        service.register_hook("vip", "VIP", on_purchase=spy)
        action_id = service.schedule_action("vip", "purchase", "42", [], 10)

        clock.advance(10)
        await service.run_pending()

        scheduled = service.get_scheduled_action(action_id)
        assert scheduled is not None
        assert scheduled.retries == 1
        assert scheduled.execute_at == clock.now + 7

        clock.advance(6)
        assert await service.run_pending() == 0
        clock.advance(1)
        assert await service.run_pending() == 1
        assert spy.call_count == 2
        assert service.get_scheduled_action(action_id) is None

    @_pytest.mark.asyncio
    async def test_retry_without_delay_uses_default(
        self,
        service: hooks.HookService,
        clock: conftest.FakeClock,
    ) -> None:
        """Without a handler delay the default of 30 seconds applies."""
        spy = conftest.HandlerSpy({"success": False, "retry": True})
        service.register_hook("vip", "VIP", on_purchase=spy)
        action_id = service.schedule_action("vip", "purchase", "42", [], 10)

        clock.advance(10)
        await service.run_pending()

        scheduled = service.get_scheduled_action(action_id)
        assert scheduled is not None
        assert scheduled.execute_at == clock.now + 30

    @_pytest.mark.asyncio
    async def test_non_finite_retry_delay_uses_default(
        self,
        service: hooks.HookService,
        clock: conftest.FakeClock,
    ) -> None:
        """A NaN retry_delay from the handler re-arms the retry 30 seconds out."""
        spy = conftest.HandlerSpy(
            {"success": False, "retry": True, "retry_delay": float("nan")},
            {"success": True},
        )
        service.register_hook("vip", "VIP", on_purchase=spy)
        action_id = service.schedule_action("vip", "purchase", "42", [], 10)

        clock.advance(10)
        await service.run_pending()

        scheduled = service.get_scheduled_action(action_id)
        assert scheduled is not None
        assert scheduled.execute_at == clock.now + 30

        clock.advance(30)
        assert await service.run_pending() == 1
        assert service.get_scheduled_action(action_id) is None

    @_pytest.mark.asyncio
    async def test_handler_exception_is_retried(
        self,
        service: hooks.HookService,
        clock: conftest.FakeClock,
    ) -> None:
        """Handler faults are retryable and the scheduler keeps going."""
        spy = conftest.HandlerSpy(RuntimeError("boom"), None)
        service.register_hook("vip", "VIP", on_purchase=spy)
        action_id = service.schedule_action("vip", "purchase", "42", [], 1)

        clock.advance(1)
        await service.run_pending()
        assert service.get_scheduled_action(action_id) is not None

        clock.advance(30)
        await service.run_pending()
        assert spy.call_count == 2
        assert service.get_scheduled_action(action_id) is None

    @_pytest.mark.asyncio
    async def test_removed_hook_fails_without_retry(
        self,
        service: hooks.HookService,
        clock: conftest.FakeClock,
    ) -> None:
        """Removing the hook makes its pending actions fail when due."""
        spy = conftest.HandlerSpy()
        service.register_hook("vip", "VIP", on_purchase=spy)
        action_id = service.schedule_action("vip", "purchase", "42", [], 5)
        service.remove_hook("vip")

        clock.advance(5)
        await service.run_pending()

        assert spy.call_count == 0
        assert service.get_scheduled_action(action_id) is None

    @_pytest.mark.asyncio
    async def test_due_actions_run_in_time_order(
        self,
        service: hooks.HookService,
        clock: conftest.FakeClock,
    ) -> None:
        """Earlier due times run first."""
        spy = conftest.HandlerSpy()
        service.register_hook("vip", "VIP", on_purchase=spy)
        service.schedule_action("vip", "purchase", "late", [], 20)
        service.schedule_action("vip", "purchase", "early", [], 5)

        clock.advance(20)
        await service.run_pending()

        assert [subject for subject, _ in spy.calls] == ["early", "late"]


class TestCancel:
    """Tests for cancellation."""

    @_pytest.mark.asyncio
    async def test_cancel_prevents_execution(
        self,
        service: hooks.HookService,
        clock: conftest.FakeClock,
    ) -> None:
        """A cancelled action never runs."""
        spy = conftest.HandlerSpy()
        service.register_hook("vip", "VIP", on_purchase=spy)
        action_id = service.schedule_action("vip", "purchase", "42", [], 10)

        assert service.cancel_scheduled_action(action_id) is True
        assert service.cancel_scheduled_action(action_id) is False

        clock.advance(10)
        assert await service.run_pending() == 0
        assert spy.call_count == 0

    def test_cancel_unknown(self, service: hooks.HookService) -> None:
        """Cancelling an unknown id reports False."""
        assert service.cancel_scheduled_action("action_0_0") is False

    @_pytest.mark.asyncio
    async def test_cancel_during_execution_is_not_rearmed(
        self,
        service: hooks.HookService,
        clock: conftest.FakeClock,
    ) -> None:
        """Cancelling while the handler runs lets it finish but stops retries."""
        calls = []
        action_ids: list[str] = []

        async def handler(hook, subject_id, args):  # noqa: ARG001
            calls.append(subject_id)
            service.cancel_scheduled_action(action_ids[0])
            return {"success": False, "retry": True}

        service.register_hook("vip", "VIP", on_purchase=handler)
        action_ids.append(service.schedule_action("vip", "purchase", "42", [], 1))

        clock.advance(1)
        await service.run_pending()
        clock.advance(100)
        await service.run_pending()

        assert calls == ["42"]
        assert len(service.get_scheduled_actions()) == 0


class TestCleanup:
    """Tests for retention cleanup."""

    def test_cleanup_removes_old_actions(
        self,
        service: hooks.HookService,
        clock: conftest.FakeClock,
    ) -> None:
        """Actions created more than max_age ago are deleted."""
        service.register_hook("vip", "VIP", on_purchase=conftest.HandlerSpy())
        old = service.schedule_action("vip", "purchase", "1", [], 1_000_000)
        clock.advance(86_000)
        recent = service.schedule_action("vip", "purchase", "2", [], 1_000_000)
        clock.advance(401)

        assert service.cleanup() == 1
        assert service.get_scheduled_action(old) is None
        assert service.get_scheduled_action(recent) is not None

    def test_cleanup_custom_age(
        self,
        service: hooks.HookService,
        clock: conftest.FakeClock,
    ) -> None:
        """max_age overrides the configured retention."""
        service.register_hook("vip", "VIP", on_purchase=conftest.HandlerSpy())
        service.schedule_action("vip", "purchase", "1", [], 1_000)
        clock.advance(61)

        assert service.cleanup(max_age=60) == 1
        assert service.cleanup(max_age=60) == 0


class TestRunForever:
    """Tests for the background scheduler loop."""

    @_pytest.mark.asyncio
    async def test_loop_runs_due_actions(self) -> None:
        """The loop wakes for newly armed actions and runs them when due."""
        service = hooks.HookService()
        done = _asyncio.Event()

        def handler(hook, subject_id, args):  # noqa: ARG001
            done.set()

        service.register_hook("vip", "VIP", on_purchase=handler)
        task = _asyncio.create_task(service.run_forever())
        try:
            await _asyncio.sleep(0)
            service.schedule_action("vip", "purchase", "42", [], 0.01)
            await _asyncio.wait_for(done.wait(), timeout=2)
        finally:
            task.cancel()
            with _contextlib.suppress(_asyncio.CancelledError):
                await task

        assert len(service.get_scheduled_actions()) == 0


class TestFaultIsolation:
    """One hook failing must not affect another."""

    @_pytest.mark.asyncio
    async def test_raising_handler_does_not_block_other_hooks(
        self,
        service: hooks.HookService,
        clock: conftest.FakeClock,
    ) -> None:
        """A raising handler does not stop another hook's action from succeeding."""
        broken = conftest.HandlerSpy(RuntimeError("boom"))
        healthy = conftest.HandlerSpy({"success": True})
        service.register_hook("broken", "Broken", on_purchase=broken)
        service.register_hook("kit", "Starter Kit", on_purchase=healthy)
        service.schedule_action("broken", "purchase", "1", [], 5, max_retries=2)
        kit_id = service.schedule_action("kit", "purchase", "2", [], 10)

        clock.advance(5)
        await service.run_pending()
        clock.advance(5)
        await service.run_pending()

        assert broken.call_count == 1
        assert healthy.call_count == 1
        assert service.get_scheduled_action(kit_id) is None

        for _ in range(5):
            clock.advance(30)
            await service.run_pending()
        assert broken.call_count == 3
        assert len(service.get_scheduled_actions()) == 0

    @_pytest.mark.asyncio
    async def test_rejected_nan_delay_does_not_stall_valid_action(
        self,
        service: hooks.HookService,
        clock: conftest.FakeClock,
    ) -> None:
        """A NaN delay is refused and a valid action still runs when due."""
        spy = conftest.HandlerSpy()
        service.register_hook("vip", "VIP", on_purchase=spy)

        with _pytest.raises(errors.InvalidDelayError):
            service.schedule_action("vip", "purchase", "1", [], float("nan"))
        good = service.schedule_action("vip", "purchase", "2", [], 5)

        clock.advance(10)
        assert await service.run_pending() == 1
        assert spy.calls == [("2", [])]
        assert service.get_scheduled_action(good) is None

    @_pytest.mark.asyncio
    async def test_nan_retry_delay_does_not_stall_other_actions(
        self,
        service: hooks.HookService,
        clock: conftest.FakeClock,
    ) -> None:
        """A handler asking for a NaN retry delay does not block later due actions."""
        flaky = conftest.HandlerSpy({"success": False, "retry": True, "retryDelay": float("nan")})
        healthy = conftest.HandlerSpy()
        service.register_hook("flaky", "Flaky", on_purchase=flaky)
        service.register_hook("kit", "Starter Kit", on_purchase=healthy)
        service.schedule_action("flaky", "purchase", "1", [], 5)
        kit_id = service.schedule_action("kit", "purchase", "2", [], 10)

        clock.advance(5)
        await service.run_pending()
        clock.advance(5)
        assert await service.run_pending() == 1

        assert healthy.call_count == 1
        assert service.get_scheduled_action(kit_id) is None
