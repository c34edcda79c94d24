"""
Shared constants for storehook.

This module provides a single source of truth for default values
that are used across multiple modules.
"""

# Retry defaults
DEFAULT_RETRY_DELAY = 30.0
"""Seconds to wait before retrying a failed scheduled action."""

DEFAULT_MAX_RETRIES = 3
"""Maximum retries for a scheduled action after its first attempt."""

# Console defaults
DEFAULT_COMMAND_DELAY = 60.0
"""Delay used by the console ``schedule`` command when none is given."""

# Maintenance
CLEANUP_MAX_AGE = 86_400
"""Scheduled actions older than this (seconds) are swept by ``cleanup``."""

# Executor defaults
DEFAULT_HANDLER_TIMEOUT = 30.0
"""Timeout in seconds for awaitable handlers."""

NO_SUBJECT = "0"
"""Subject id sent by the store when there is no purchasing player."""

# Action log
DEFAULT_HISTORY_SIZE = 100
"""Number of recent action records kept in memory."""
