"""
storehook - store purchase hooks for game servers.

Runs purchase, removal and renewal handlers for store packages, with
scheduled execution and bounded retries.
"""

import importlib.metadata as _metadata

# Version is defined in pyproject.toml - read it and parse into tuple (primary representation)
_raw_version = _metadata.version("storehook")
__version_info__: tuple[int, int, int] = tuple(int(x) for x in _raw_version.split(".")[:3])  # type: ignore[assignment]
__version__: str = ".".join(str(x) for x in __version_info__)
__author__ = "storehook Contributors"

from storehook.config import Settings  # noqa: E402
from storehook.errors import (  # noqa: E402
    DuplicateHookError,
    HookNotFoundError,
    HookValidationError,
    InvalidDelayError,
    StoreHookError,
)
from storehook.hooks import ActionKind, ActionResult, Hook, HookService  # noqa: E402

__all__ = [
    "__version__",
    "__version_info__",
    "ActionKind",
    "ActionResult",
    "DuplicateHookError",
    "Hook",
    "HookNotFoundError",
    "HookService",
    "HookValidationError",
    "InvalidDelayError",
    "Settings",
    "StoreHookError",
]
