"""Token endpoint tests: code exchange and refresh against a mock transport"""

import time

import httpx
import pytest

from google_oauth import CodeExchangeFailed, RefreshFailed, exchange_code_for_tokens, refresh_access_token
from tests.oauth_test_helpers import TokenEndpoint

TOKEN_URL = "https://oauth2.example.test/token"


class TestExchangeCode:

    @pytest.mark.asyncio
    async def test_success_sends_form_and_returns_tokens(self):
        endpoint = TokenEndpoint((200, {"access_token": "AT1", "refresh_token": "RT1", "expires_in": 3599}))
        async with endpoint.client() as client:
            before = time.time()
            tokens = await exchange_code_for_tokens(
                "CODE", "cid", "secret", "http://localhost:8080/oauth/callback",
                http_client=client, token_url=TOKEN_URL,
            )

        assert tokens.access_token == "AT1"
        assert tokens.refresh_token == "RT1"
        assert before + 3599 <= tokens.expires_at <= time.time() + 3599
        assert endpoint.requests == [{
            "code": "CODE",
            "client_id": "cid",
            "client_secret": "secret",
            "redirect_uri": "http://localhost:8080/oauth/callback",
            "grant_type": "authorization_code",
        }]

    @pytest.mark.asyncio
    async def test_error_status(self):
        endpoint = TokenEndpoint((400, {"error": "invalid_grant"}))
        async with endpoint.client() as client:
            with pytest.raises(CodeExchangeFailed) as exc_info:
                await exchange_code_for_tokens("CODE", "cid", "secret", "uri", http_client=client)
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_missing_refresh_token(self):
        endpoint = TokenEndpoint((200, {"access_token": "AT1", "expires_in": 3600}))
        async with endpoint.client() as client:
            with pytest.raises(CodeExchangeFailed):
                await exchange_code_for_tokens("CODE", "cid", "secret", "uri", http_client=client)

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        endpoint = TokenEndpoint((200, "<html>oops</html>"))
        async with endpoint.client() as client:
            with pytest.raises(CodeExchangeFailed):
                await exchange_code_for_tokens("CODE", "cid", "secret", "uri", http_client=client)

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def fail(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(fail)) as client:
            with pytest.raises(CodeExchangeFailed):
                await exchange_code_for_tokens("CODE", "cid", "secret", "uri", http_client=client)

    @pytest.mark.asyncio
    async def test_timeout(self):
        def slow(request):
            raise httpx.ReadTimeout("timed out", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(slow)) as client:
            with pytest.raises(CodeExchangeFailed, match="timed out"):
                await exchange_code_for_tokens("CODE", "cid", "secret", "uri", http_client=client)


class TestRefresh:

    @pytest.mark.asyncio
    async def test_keeps_refresh_token_when_none_returned(self):
        endpoint = TokenEndpoint((200, {"access_token": "AT2", "expires_in": 3600}))
        async with endpoint.client() as client:
            tokens = await refresh_access_token("RT1", "cid", "secret", http_client=client)

        assert (tokens.access_token, tokens.refresh_token) == ("AT2", "RT1")
        assert endpoint.requests[0]["grant_type"] == "refresh_token"
        assert endpoint.requests[0]["refresh_token"] == "RT1"

    @pytest.mark.asyncio
    async def test_uses_rotated_refresh_token(self):
        endpoint = TokenEndpoint((200, {"access_token": "AT2", "refresh_token": "RT2", "expires_in": 3600}))
        async with endpoint.client() as client:
            tokens = await refresh_access_token("RT1", "cid", "secret", http_client=client)
        assert tokens.refresh_token == "RT2"

    @pytest.mark.asyncio
    async def test_missing_expires_in_leaves_expiry_unknown(self):
        endpoint = TokenEndpoint((200, {"access_token": "AT2"}))
        async with endpoint.client() as client:
            tokens = await refresh_access_token("RT1", "cid", "secret", http_client=client)
        assert tokens.expires_at is None

    @pytest.mark.asyncio
    async def test_invalid_grant(self):
        endpoint = TokenEndpoint((400, {"error": "invalid_grant"}))
        async with endpoint.client() as client:
            with pytest.raises(RefreshFailed) as exc_info:
                await refresh_access_token("RT1", "cid", "secret", http_client=client)
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_empty_refresh_token_makes_no_request(self):
        endpoint = TokenEndpoint()
        async with endpoint.client() as client:
            with pytest.raises(RefreshFailed):
                await refresh_access_token("", "cid", "secret", http_client=client)
        assert endpoint.requests == []
