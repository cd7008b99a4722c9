"""Data models for Google OAuth authentication"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional

from .constants import EXPIRY_SKEW_SECONDS


class FlowState(str, Enum):
    """States of the OAuth flow controller"""
    IDLE = "Idle"
    AWAITING_CALLBACK = "AwaitingCallback"
    EXCHANGING_CODE = "ExchangingCode"
    AUTHENTICATED = "Authenticated"
    FAILED = "Failed"


@dataclass
class TokenSet:
    """OAuth tokens for the signed-in user

    Attributes:
        access_token: Bearer token for Calendar API calls
        refresh_token: Long-lived token used to mint new access tokens
        expires_at: Unix timestamp when the access token expires, if known
    """
    access_token: str
    refresh_token: str
    expires_at: Optional[float] = None

    def is_expired(self, skew: float = EXPIRY_SKEW_SECONDS, now: Optional[float] = None) -> bool:
        """True if the access token expires within ``skew`` seconds

        Tokens with unknown expiry are never considered expired.
        """
        if self.expires_at is None:
            return False
        current = time.time() if now is None else now
        return current >= self.expires_at - skew

    def to_dict(self) -> Dict[str, object]:
        """Convert to the persisted key layout"""
        data: Dict[str, object] = {
            "accessToken": self.access_token,
            "refreshToken": self.refresh_token,
        }
        if self.expires_at is not None:
            data["expiresAt"] = self.expires_at
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> Optional["TokenSet"]:
        """Load from the persisted key layout, None if required keys are missing"""
        access_token = data.get("accessToken")
        refresh_token = data.get("refreshToken")
        if not isinstance(access_token, str) or not access_token:
            return None
        if not isinstance(refresh_token, str):
            refresh_token = ""

        expires_at = data.get("expiresAt")
        if isinstance(expires_at, bool) or not isinstance(expires_at, (int, float)):
            expires_at = None

        return cls(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=float(expires_at) if expires_at is not None else None,
        )


@dataclass(frozen=True)
class AuthorizationRequest:
    """Parameters of the browser authorization request"""
    client_id: str
    redirect_uri: str
    scope: str
    response_type: str = "code"
    access_type: str = "offline"
    prompt: str = "consent"

    def to_params(self) -> Dict[str, str]:
        return {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": self.response_type,
            "scope": self.scope,
            "access_type": self.access_type,
            "prompt": self.prompt,
        }


@dataclass(frozen=True)
class CallbackResult:
    """What the loopback listener saw in the redirect request

    Attributes:
        code: Authorization code, None when the request carried none
        error: Provider ``error`` parameter (e.g. ``access_denied``), if any
    """
    code: Optional[str] = None
    error: Optional[str] = field(default=None)

    @property
    def ok(self) -> bool:
        return bool(self.code)
