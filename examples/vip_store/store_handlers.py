"""
Example store handlers for a VIP membership package.

Grants are kept in memory; a real server would call its permission
system here. Register them with ``storehook --hooks-file hooks.yaml``.
"""

import asyncio as _asyncio
import logging as _logging

import storehook.hooks.events as events

_logger = _logging.getLogger(__name__)

VIP_MEMBERS: set[str] = set()


def grant_vip(hook: events.Hook, subject_id: str, args: list[str]) -> events.ActionResult:
    """Add the player to the VIP group."""
    if subject_id in VIP_MEMBERS:
        return events.ActionResult.ok(f"{subject_id} is already VIP")
    VIP_MEMBERS.add(subject_id)
    _logger.info("Granted %s to %s", hook.label, subject_id)
    return events.ActionResult.ok(f"VIP granted to {subject_id}", data={"tier": args[:1]})


def revoke_vip(hook: events.Hook, subject_id: str, args: list[str]) -> dict:
    """Remove the player from the VIP group; ask for a retry if they are online."""
    if "online" in args:
        return {"success": False, "message": "player is online", "retry": True, "retry_delay": 10}
    VIP_MEMBERS.discard(subject_id)
    return {"success": True, "message": f"VIP revoked from {subject_id}"}


async def renew_vip(hook: events.Hook, subject_id: str, args: list[str]) -> None:
    """Extend the membership (simulated I/O)."""
    await _asyncio.sleep(0.1)
    VIP_MEMBERS.add(subject_id)
