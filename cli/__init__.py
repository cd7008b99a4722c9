"""CLI package for calendarbar

This package provides the command-line front-end: login, logout, token
refresh, status, and today's events.
"""

from cli.cli_app import CalendarBarCLI

__all__ = [
    "CalendarBarCLI",
]
