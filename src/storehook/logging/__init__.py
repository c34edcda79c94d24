"""
Action logging for storehook.

Provides JSONL logging of every hook action attempt and scheduler event,
with a bounded in-memory history for console introspection.
"""

from storehook.logging.action_logger import ActionLogger, ActionRecord

__all__ = [
    "ActionLogger",
    "ActionRecord",
]
