"""
Google OAuth authentication for the calendar feed
"""
from .constants import (
    AUTHORIZE_URL,
    TOKEN_URL,
    SCOPE,
    REDIRECT_URI,
    OAUTH_CALLBACK_PORT,
    OAUTH_CALLBACK_PATH,
)
from .errors import (
    FailureReason,
    AuthError,
    PortUnavailable,
    NoCodeInRequest,
    CallbackTimeout,
    CodeExchangeFailed,
    RefreshFailed,
    TokenStoreUnavailable,
    FlowCancelled,
)
from .models import (
    FlowState,
    TokenSet,
    AuthorizationRequest,
    CallbackResult,
)
from .authorization import AuthorizationURLBuilder
from .callback_listener import (
    CallbackListener,
    ListenerHandle,
    LoopbackCallbackListener,
    parse_callback_request,
)
from .callback_server import AiohttpCallbackListener
from .token_exchange import (
    exchange_code_for_tokens,
    refresh_access_token,
)
from .token_store import TokenStore
from .flow import OAuthFlowController

__all__ = [
    # Constants
    "AUTHORIZE_URL",
    "TOKEN_URL",
    "SCOPE",
    "REDIRECT_URI",
    "OAUTH_CALLBACK_PORT",
    "OAUTH_CALLBACK_PATH",
    # Errors
    "FailureReason",
    "AuthError",
    "PortUnavailable",
    "NoCodeInRequest",
    "CallbackTimeout",
    "CodeExchangeFailed",
    "RefreshFailed",
    "TokenStoreUnavailable",
    "FlowCancelled",
    # Models
    "FlowState",
    "TokenSet",
    "AuthorizationRequest",
    "CallbackResult",
    # Authorization
    "AuthorizationURLBuilder",
    # Callback listeners
    "CallbackListener",
    "ListenerHandle",
    "LoopbackCallbackListener",
    "AiohttpCallbackListener",
    "parse_callback_request",
    # Token endpoint
    "exchange_code_for_tokens",
    "refresh_access_token",
    # Storage and flow
    "TokenStore",
    "OAuthFlowController",
]
