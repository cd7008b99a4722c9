"""Google token endpoint calls: code exchange and refresh"""

import logging
import time
from typing import Any, Dict, Optional, Type, Union

import httpx

from .constants import TOKEN_URL
from .errors import AuthError, CodeExchangeFailed, RefreshFailed
from .models import TokenSet

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = httpx.Timeout(30.0, connect=10.0)

TimeoutTypes = Union[float, httpx.Timeout]


def _expires_at(payload: Dict[str, Any]) -> Optional[float]:
    expires_in = payload.get("expires_in")
    if isinstance(expires_in, bool):
        return None
    try:
        return time.time() + float(expires_in)
    except (TypeError, ValueError):
        return None


async def _post_token_request(
    data: Dict[str, str],
    error_cls: Type[AuthError],
    http_client: Optional[httpx.AsyncClient],
    token_url: str,
    timeout: TimeoutTypes,
) -> Dict[str, Any]:
    """POST a form-encoded request to the token endpoint

    Returns:
        The decoded JSON object

    Raises:
        error_cls: On transport errors, non-2xx responses or a non-object body
    """
    headers = {"Content-Type": "application/x-www-form-urlencoded"}
    grant_type = data.get("grant_type")

    try:
        if http_client is None:
            async with httpx.AsyncClient(timeout=timeout) as client:
                response = await client.post(token_url, data=data, headers=headers)
        else:
            response = await http_client.post(token_url, data=data, headers=headers, timeout=timeout)
    except httpx.TimeoutException as e:
        raise error_cls(f"Token request ({grant_type}) timed out: {e}") from e
    except httpx.RequestError as e:
        raise error_cls(f"Token request ({grant_type}) failed: {e}") from e

    logger.debug(f"Token endpoint response status: {response.status_code}")

    if not response.is_success:
        raise error_cls(
            f"Token request ({grant_type}) failed: {response.status_code} - {response.text}",
            status_code=response.status_code,
        )

    try:
        payload = response.json()
    except ValueError as e:
        raise error_cls(f"Failed to parse token response: {e}", status_code=response.status_code) from e

    if not isinstance(payload, dict):
        raise error_cls("Token response is not a JSON object", status_code=response.status_code)

    return payload


async def exchange_code_for_tokens(
    code: str,
    client_id: str,
    client_secret: str,
    redirect_uri: str,
    http_client: Optional[httpx.AsyncClient] = None,
    token_url: str = TOKEN_URL,
    timeout: TimeoutTypes = DEFAULT_TIMEOUT,
) -> TokenSet:
    """Exchange authorization code for access and refresh tokens

    Authorization codes are single use, so nothing here retries.

    Args:
        code: Authorization code from the callback
        client_id: OAuth client ID
        client_secret: OAuth client secret
        redirect_uri: Redirect URI used in the authorization request
        http_client: Shared client; a short-lived one is created if omitted

    Returns:
        TokenSet with both tokens

    Raises:
        CodeExchangeFailed: If the request fails or the response lacks a token
    """
    logger.info(f"Exchanging authorization code for tokens at {token_url}")
    payload = await _post_token_request(
        {
            "code": code,
            "client_id": client_id,
            "client_secret": client_secret,
            "redirect_uri": redirect_uri,
            "grant_type": "authorization_code",
        },
        CodeExchangeFailed,
        http_client,
        token_url,
        timeout,
    )

    access_token = payload.get("access_token")
    refresh_token = payload.get("refresh_token")
    if not isinstance(access_token, str) or not access_token:
        raise CodeExchangeFailed("Token exchange response missing access_token")
    if not isinstance(refresh_token, str) or not refresh_token:
        raise CodeExchangeFailed("Token exchange response missing refresh_token")

    logger.info("Successfully exchanged authorization code for tokens")
    return TokenSet(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_at=_expires_at(payload),
    )


async def refresh_access_token(
    refresh_token: str,
    client_id: str,
    client_secret: str,
    http_client: Optional[httpx.AsyncClient] = None,
    token_url: str = TOKEN_URL,
    timeout: TimeoutTypes = DEFAULT_TIMEOUT,
) -> TokenSet:
    """Mint a new access token from a refresh token

    Args:
        refresh_token: Stored refresh token

    Returns:
        TokenSet carrying the new access token. Its refresh token is the one
        the provider returned, or the one passed in when none was returned.

    Raises:
        RefreshFailed: If the request fails or the response lacks an access token
    """
    if not refresh_token:
        raise RefreshFailed("No refresh token available")

    logger.info("Attempting to refresh access token...")
    payload = await _post_token_request(
        {
            "client_id": client_id,
            "client_secret": client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        },
        RefreshFailed,
        http_client,
        token_url,
        timeout,
    )

    access_token = payload.get("access_token")
    if not isinstance(access_token, str) or not access_token:
        raise RefreshFailed("Token refresh response missing access_token")

    new_refresh_token = payload.get("refresh_token")
    if isinstance(new_refresh_token, str) and new_refresh_token:
        logger.info("Provider rotated the refresh token")
    else:
        new_refresh_token = refresh_token

    logger.info("Successfully refreshed access token")
    return TokenSet(
        access_token=access_token,
        refresh_token=new_refresh_token,
        expires_at=_expires_at(payload),
    )
