"""Logging setup and a Rich console that mirrors its output into the debug log.

With ``--debug`` every module logger writes to the debug log file, and
everything printed to the console is appended there as plain text so a
login session can be replayed from one file.
"""

import io
import logging
import os
from typing import Optional
from rich.console import Console as RichConsole

CONSOLE_LOGGER_NAME = "calendarbar.console"

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class DebugCapturingConsole(RichConsole):
    """Rich Console that also logs a plain-text copy of what it prints"""

    def __init__(self, debug_logger: Optional[logging.Logger] = None, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.debug_logger = debug_logger

    def print(self, *objects, **kwargs):
        super().print(*objects, **kwargs)

        if self.debug_logger and self.debug_logger.isEnabledFor(logging.DEBUG):
            plain_text = self._render_plain(*objects, **kwargs)
            if plain_text:
                self.debug_logger.debug(f"[CONSOLE] {plain_text}")

    def _render_plain(self, *objects, **kwargs) -> str:
        # A non-terminal console renders markup and tables without ANSI codes
        buffer = io.StringIO()
        plain_console = RichConsole(
            file=buffer,
            force_terminal=False,
            color_system=None,
            width=self.width,
        )
        plain_console.print(*objects, **kwargs)
        return buffer.getvalue().rstrip()


def create_debug_console(debug_enabled: bool = False,
                         debug_logger: Optional[logging.Logger] = None) -> RichConsole:
    """
    Create the console for the CLI.

    Returns:
        DebugCapturingConsole if debug enabled, regular Console otherwise
    """
    if debug_enabled and debug_logger:
        return DebugCapturingConsole(debug_logger=debug_logger)
    return RichConsole()


def setup_logging(debug: bool = False, level: str = "info",
                  log_file: str = "calendarbar_debug.log") -> Optional[logging.Logger]:
    """
    Configure the root logger.

    Without debug, warnings and above (or ``level``) go to stderr. With
    debug, everything goes to ``log_file`` in append mode and a dedicated
    console logger is returned for :class:`DebugCapturingConsole`.

    Args:
        debug: Whether debug mode is enabled
        level: Log level name used when debug is off
        log_file: Path to debug log file

    Returns:
        The console capture logger in debug mode, otherwise None
    """
    root_logger = logging.getLogger()

    # Clear existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT)

    if not debug:
        root_logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
        stream_handler = logging.StreamHandler()
        stream_handler.setLevel(logging.WARNING)
        stream_handler.setFormatter(formatter)
        root_logger.addHandler(stream_handler)
        return None

    root_logger.setLevel(logging.DEBUG)
    log_path = os.path.abspath(log_file)
    file_handler = logging.FileHandler(log_path, mode='a', encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    console_logger = logging.getLogger(CONSOLE_LOGGER_NAME)
    console_logger.setLevel(logging.DEBUG)
    for handler in console_logger.handlers[:]:
        console_logger.removeHandler(handler)
    console_handler = logging.FileHandler(log_path, mode='a', encoding='utf-8')
    console_handler.setFormatter(logging.Formatter('%(asctime)s - %(message)s'))
    console_logger.addHandler(console_handler)
    # Prevent propagation to avoid duplicate lines in the same file
    console_logger.propagate = False

    logging.getLogger(__name__).info(f"Debug logging enabled - appending to {log_path}")
    return console_logger
