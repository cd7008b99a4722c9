"""Persistent storage for the user's OAuth tokens"""

import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from utils.storage import JsonFileStorage
from .errors import TokenStoreUnavailable
from .models import TokenSet

logger = logging.getLogger(__name__)

TOKEN_KEYS = ("accessToken", "refreshToken", "expiresAt")


class TokenStore:
    """Holds the access token, refresh token and expiry on disk

    The store has no locking of its own. The flow controller is its only
    writer and serializes calls.
    """

    def __init__(self, token_file: Path, backend: Optional[JsonFileStorage] = None):
        self._backend = backend or JsonFileStorage(token_file)

    @property
    def token_file(self) -> Path:
        return self._backend.path

    def save(self, tokens: TokenSet) -> None:
        """Persist the token set, replacing whatever was stored

        Raises:
            TokenStoreUnavailable: If the backing file cannot be written
        """
        try:
            self._backend.write(tokens.to_dict())
        except OSError as e:
            raise TokenStoreUnavailable(f"Failed to save tokens to {self.token_file}: {e}") from e
        logger.debug(f"Saved tokens to {self.token_file}")

    def load(self) -> Optional[TokenSet]:
        """Load the stored token set

        Returns:
            TokenSet, or None if nothing usable is stored

        Raises:
            TokenStoreUnavailable: If the backing file exists but cannot be read
        """
        try:
            data = self._backend.read()
        except OSError as e:
            raise TokenStoreUnavailable(f"Failed to read tokens from {self.token_file}: {e}") from e
        if not data:
            return None
        return TokenSet.from_dict(data)

    def clear(self) -> None:
        """Remove stored tokens

        Raises:
            TokenStoreUnavailable: If the backing file cannot be removed
        """
        try:
            self._backend.remove(*TOKEN_KEYS)
        except OSError as e:
            raise TokenStoreUnavailable(f"Failed to clear tokens in {self.token_file}: {e}") from e
        logger.info("Tokens cleared")

    def get_status(self) -> Dict[str, Any]:
        """Get token status without exposing secrets"""
        try:
            tokens = self.load()
        except TokenStoreUnavailable as e:
            logger.error(str(e))
            tokens = None

        if not tokens:
            return {
                "has_tokens": False,
                "has_refresh_token": False,
                "is_expired": True,
                "expires_at": None,
                "time_until_expiry": "No tokens",
            }

        status: Dict[str, Any] = {
            "has_tokens": True,
            "has_refresh_token": bool(tokens.refresh_token),
            "is_expired": tokens.is_expired(skew=0),
            "expires_at": None,
            "time_until_expiry": "Unknown",
        }
        if tokens.expires_at is None:
            return status

        status["expires_at"] = datetime.fromtimestamp(tokens.expires_at).isoformat(timespec="seconds")
        remaining = int(tokens.expires_at - time.time())
        if remaining <= 0:
            ago = -remaining
            hours, mins = ago // 3600, (ago % 3600) // 60
            status["time_until_expiry"] = f"{hours}h {mins}m ago" if hours else f"{mins}m ago"
        else:
            hours, mins = remaining // 3600, (remaining % 3600) // 60
            status["time_until_expiry"] = f"{hours}h {mins}m" if hours else f"{mins}m"
            status["expires_in_seconds"] = remaining
        return status
