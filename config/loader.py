"""Configuration loader for calendarbar

Settings come from, in order of precedence: the process environment, a
``.env`` file (``$CALENDARBAR_ENV_FILE`` or ``./.env``), then the defaults
given in ``settings.py``.
"""

import logging
import os
from pathlib import Path
from typing import Any, Callable, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

ENV_FILE_VAR = "CALENDARBAR_ENV_FILE"

_TRUE_VALUES = frozenset({"true", "1", "yes", "on"})


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() in _TRUE_VALUES


class ConfigLoader:
    """Reads typed settings from the environment, seeded from a .env file"""

    def __init__(self, env_path: Optional[str] = None):
        """
        Args:
            env_path: .env file to seed the environment from. Falls back to
                ``$CALENDARBAR_ENV_FILE``, then ``.env`` in the working directory.
        """
        chosen = env_path or os.getenv(ENV_FILE_VAR)
        self.env_path = Path(chosen).expanduser() if chosen else Path(".env")
        self._seed_environment()

    def _seed_environment(self):
        if not self.env_path.exists():
            logger.debug(f"No .env file at {self.env_path}; using the environment and defaults")
            return
        # override=False: variables already exported by the shell win over the file
        load_dotenv(dotenv_path=self.env_path, override=False)
        logger.debug(f"Seeded environment from {self.env_path}")

    def _converter(self, default: Any) -> Optional[Callable[[str], Any]]:
        # bool is checked first since it is a subclass of int
        if isinstance(default, bool):
            return _parse_bool
        if isinstance(default, int):
            return int
        if isinstance(default, float):
            return float
        return None

    def get(self, env_var: str, default: Any) -> Any:
        """Look up ``env_var``, parsed to the type of ``default``

        Unparseable numbers log a warning and fall back to ``default``.
        String values starting with ``~/`` are expanded.
        """
        raw = os.getenv(env_var)
        if raw is None:
            return self._expand(default)

        convert = self._converter(default)
        if convert is None:
            return self._expand(raw)
        try:
            return convert(raw)
        except ValueError:
            logger.warning(f"Ignoring {env_var}={raw!r}: expected {type(default).__name__}, using {default}")
            return default

    def get_path(self, env_var: str, default: str) -> Path:
        """Filesystem path setting, ``~`` expanded"""
        return Path(str(self.get(env_var, default))).expanduser()

    @staticmethod
    def _expand(value: Any) -> Any:
        if isinstance(value, str) and value.startswith("~/"):
            return str(Path(value).expanduser())
        return value


_loader: Optional[ConfigLoader] = None


def get_config_loader() -> ConfigLoader:
    """Process-wide loader, created on first use"""
    global _loader
    if _loader is None:
        _loader = ConfigLoader()
    return _loader


def reset_config_loader() -> None:
    """Forget the cached loader so the next call re-reads the .env file"""
    global _loader
    _loader = None
