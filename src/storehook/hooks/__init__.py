"""
Store hook system.

Hooks bundle handlers for store actions (purchase, remove, renew). The
HookService runs them immediately or schedules them with bounded retries.

Example usage:
    from storehook.hooks import ActionResult, HookService

    def grant_vip(hook, subject_id, args):
        return ActionResult.ok(f"VIP granted to {subject_id}")

    service = HookService()
    service.register_hook("vip", "VIP Membership", on_purchase=grant_vip)
    result, error = await service.execute_action("vip", "purchase", "42", [])

    # Run later, retrying up to 3 times if the handler asks for it
    action_id = service.schedule_action("vip", "purchase", "42", [], delay=60)
    await service.run_forever()
"""

from storehook.hooks.events import (
    ActionKind,
    ActionResult,
    HandlerFn,
    Hook,
)
from storehook.hooks.executor import ActionExecutor
from storehook.hooks.registry import HookRegistry
from storehook.hooks.scheduler import RetryScheduler, ScheduledAction
from storehook.hooks.service import HookService
from storehook.hooks.stats import ActionStats, compute_stats

__all__ = [
    "ActionExecutor",
    "ActionKind",
    "ActionResult",
    "ActionStats",
    "HandlerFn",
    "Hook",
    "HookRegistry",
    "HookService",
    "RetryScheduler",
    "ScheduledAction",
    "compute_stats",
]
