"""Persisted display preferences"""

import logging
import os
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from utils.storage import JsonFileStorage

logger = logging.getLogger(__name__)

TIMEZONE_KEY = "selectedTimezone"
SHOW_OTHER_EVENTS_KEY = "showOtherEvents"


def local_timezone_name() -> str:
    """Best-effort IANA name of the machine's timezone, "UTC" if unknown"""
    tz_env = os.getenv("TZ")
    if tz_env and is_valid_timezone(tz_env.lstrip(":")):
        return tz_env.lstrip(":")

    localtime = Path("/etc/localtime")
    try:
        target = str(localtime.resolve())
    except OSError:
        return "UTC"
    if "zoneinfo/" in target:
        name = target.split("zoneinfo/", 1)[1]
        if is_valid_timezone(name):
            return name
    return "UTC"


def is_valid_timezone(name: str) -> bool:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


class Preferences:
    """Selected timezone and display mode, stored as flat JSON keys"""

    def __init__(self, path: Path, backend: Optional[JsonFileStorage] = None):
        self._backend = backend or JsonFileStorage(path)

    @property
    def timezone(self) -> str:
        value = self._read(TIMEZONE_KEY)
        if isinstance(value, str) and value:
            return value
        return local_timezone_name()

    @timezone.setter
    def timezone(self, name: str) -> None:
        if not is_valid_timezone(name):
            raise ValueError(f"Unknown timezone: {name}")
        self._backend.set(TIMEZONE_KEY, name)

    @property
    def show_other_events(self) -> bool:
        return bool(self._read(SHOW_OTHER_EVENTS_KEY))

    @show_other_events.setter
    def show_other_events(self, value: bool) -> None:
        self._backend.set(SHOW_OTHER_EVENTS_KEY, bool(value))

    def _read(self, key: str):
        try:
            return self._backend.get(key)
        except OSError as e:
            logger.error(f"Failed to read preferences: {e}")
            return None
