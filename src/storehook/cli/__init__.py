"""
CLI module for storehook.

Provides the command-line interface using Click and the store console
command interpreter.
"""

from storehook.cli.main import cli, main

__all__ = ["main", "cli"]
