import json
import logging
import os
import platform
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class JsonFileStorage:
    """Flat key-value storage in a JSON file with owner-only permissions"""

    def __init__(self, path: Path):
        self.path = Path(path)

    def _ensure_secure_directory(self):
        """Create parent directory with secure permissions"""
        parent_dir = self.path.parent
        if not parent_dir.exists():
            parent_dir.mkdir(parents=True, exist_ok=True)
            # Set directory permissions to 700 on Unix-like systems
            if platform.system() != "Windows":
                os.chmod(parent_dir, 0o700)

    def read(self) -> Dict[str, Any]:
        """Return all stored keys, or an empty dict if the file is missing or corrupt

        Raises:
            OSError: If the file exists but cannot be read
        """
        if not self.path.exists():
            return {}

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            logger.warning(f"Ignoring corrupt storage file {self.path}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Ignoring storage file {self.path}: expected an object")
            return {}
        return data

    def write(self, data: Dict[str, Any]) -> None:
        """Replace the stored keys

        The file is written next to the target and renamed over it so a crash
        never leaves a half-written file behind.

        Raises:
            OSError: If the file cannot be written
        """
        self._ensure_secure_directory()
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")

        # Set file permissions to 600 on Unix-like systems
        if platform.system() != "Windows":
            os.chmod(tmp_path, 0o600)
        os.replace(tmp_path, self.path)

    def get(self, key: str, default: Optional[Any] = None) -> Any:
        return self.read().get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = self.read()
        data[key] = value
        self.write(data)

    def remove(self, *keys: str) -> None:
        data = self.read()
        for key in keys:
            data.pop(key, None)
        if data:
            self.write(data)
        elif self.path.exists():
            self.path.unlink()

    def delete(self) -> None:
        """Remove the backing file"""
        if self.path.exists():
            self.path.unlink()
