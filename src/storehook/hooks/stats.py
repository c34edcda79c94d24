"""Statistics over registered hooks and pending scheduled actions."""

from __future__ import annotations

import dataclasses as _dataclasses
import typing as _typing

import storehook.hooks.registry as registry
import storehook.hooks.scheduler as scheduler


@_dataclasses.dataclass
class HookUsage:
    """Per-hook counters."""

    label: str
    scheduled_count: int = 0


@_dataclasses.dataclass
class ActionStats:
    """
    Snapshot of hook and scheduler state.

    Recomputed from the registry and scheduler on every call; nothing is
    stored between calls.
    """

    total_hooks: int = 0
    scheduled_actions: int = 0
    actions_by_hook: dict[str, HookUsage] = _dataclasses.field(default_factory=dict)
    actions_by_type: dict[str, int] = _dataclasses.field(default_factory=dict)
    oldest_scheduled_action: scheduler.ScheduledAction | None = None
    newest_scheduled_action: scheduler.ScheduledAction | None = None

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert to JSON-serializable dict."""
        return {
            "total_hooks": self.total_hooks,
            "scheduled_actions": self.scheduled_actions,
            "actions_by_hook": {
                hook_id: _dataclasses.asdict(usage)
                for hook_id, usage in self.actions_by_hook.items()
            },
            "actions_by_type": dict(self.actions_by_type),
            "oldest_scheduled_action": (
                self.oldest_scheduled_action.to_dict()
                if self.oldest_scheduled_action
                else None
            ),
            "newest_scheduled_action": (
                self.newest_scheduled_action.to_dict()
                if self.newest_scheduled_action
                else None
            ),
        }


def compute_stats(
    hook_registry: registry.HookRegistry,
    retry_scheduler: scheduler.RetryScheduler,
) -> ActionStats:
    """Aggregate counts over the current registry and scheduler state."""
    stats = ActionStats()

    for hook_id, hook in hook_registry.get_all().items():
        stats.total_hooks += 1
        stats.actions_by_hook[hook_id] = HookUsage(label=hook.label)

    for pending in retry_scheduler.get_all().values():
        stats.scheduled_actions += 1

        # Actions whose hook was removed still count in the totals
        usage = stats.actions_by_hook.get(pending.hook_id)
        if usage is not None:
            usage.scheduled_count += 1

        kind = pending.action.value
        stats.actions_by_type[kind] = stats.actions_by_type.get(kind, 0) + 1

        oldest = stats.oldest_scheduled_action
        if oldest is None or pending.created < oldest.created:
            stats.oldest_scheduled_action = pending

        newest = stats.newest_scheduled_action
        if newest is None or pending.created > newest.created:
            stats.newest_scheduled_action = pending

    return stats
