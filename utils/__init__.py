"""Shared utilities package for calendarbar"""

from .storage import JsonFileStorage
from .debug_console import (
    DebugCapturingConsole,
    create_debug_console,
    setup_logging,
)

__all__ = [
    "JsonFileStorage",
    "DebugCapturingConsole",
    "create_debug_console",
    "setup_logging",
]
