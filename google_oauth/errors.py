"""Authentication error types"""

from enum import Enum
from typing import Optional


class FailureReason(str, Enum):
    """Why an authentication flow or refresh did not succeed"""
    PORT_UNAVAILABLE = "PortUnavailable"
    NO_CODE_IN_REQUEST = "NoCodeInRequest"
    CALLBACK_TIMEOUT = "CallbackTimeout"
    CODE_EXCHANGE_FAILED = "CodeExchangeFailed"
    REFRESH_FAILED = "RefreshFailed"
    TOKEN_STORE_UNAVAILABLE = "TokenStoreUnavailable"
    CANCELLED = "Cancelled"


class AuthError(Exception):
    """Base class for authentication failures

    Attributes:
        reason: Machine-readable failure kind
        status_code: HTTP status from the token endpoint, when there was one
    """
    reason: FailureReason

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PortUnavailable(AuthError):
    reason = FailureReason.PORT_UNAVAILABLE


class NoCodeInRequest(AuthError):
    reason = FailureReason.NO_CODE_IN_REQUEST


class CallbackTimeout(AuthError):
    reason = FailureReason.CALLBACK_TIMEOUT


class CodeExchangeFailed(AuthError):
    reason = FailureReason.CODE_EXCHANGE_FAILED


class RefreshFailed(AuthError):
    reason = FailureReason.REFRESH_FAILED


class TokenStoreUnavailable(AuthError):
    reason = FailureReason.TOKEN_STORE_UNAVAILABLE


class FlowCancelled(AuthError):
    reason = FailureReason.CANCELLED
