"""
Loopback callback listener tests.

Covers request parsing and the real socket lifecycle: one request handled,
fixed HTML answer, port released after stop.
"""

import asyncio
import socket

import pytest

from google_oauth import LoopbackCallbackListener, PortUnavailable, parse_callback_request
from google_oauth.callback_listener import NO_CODE_PAGE, SUCCESS_PAGE, build_response
from tests.oauth_test_helpers import redirect_request, send_raw_request


class TestParseCallbackRequest:

    def test_extracts_code(self):
        result = parse_callback_request(redirect_request("/oauth/callback?code=ABC123&state=xyz"))
        assert result.code == "ABC123"
        assert result.ok

    def test_code_as_last_parameter(self):
        result = parse_callback_request(redirect_request("/oauth/callback?state=xyz&code=4/0AbC"))
        assert result.code == "4/0AbC"

    def test_code_is_percent_decoded(self):
        result = parse_callback_request(redirect_request("/oauth/callback?code=4%2F0AX_y-z&scope=x"))
        assert result.code == "4/0AX_y-z"

    def test_no_code(self):
        result = parse_callback_request(redirect_request("/oauth/callback?state=xyz"))
        assert result.code is None
        assert not result.ok

    def test_empty_code_counts_as_missing(self):
        result = parse_callback_request(redirect_request("/oauth/callback?code=&state=xyz"))
        assert result.code is None

    def test_provider_error_is_carried(self):
        result = parse_callback_request(redirect_request("/oauth/callback?error=access_denied"))
        assert result.code is None
        assert result.error == "access_denied"

    def test_similar_parameter_names_are_not_code(self):
        result = parse_callback_request(redirect_request("/oauth/callback?auth_code=nope&xcode=no"))
        assert result.code is None

    def test_code_in_header_is_ignored(self):
        raw = (
            b"GET /oauth/callback HTTP/1.1\r\n"
            b"Referer: http://localhost/?code=FROM_HEADER\r\n"
            b"\r\n"
        )
        assert parse_callback_request(raw).code is None

    def test_lf_line_endings(self):
        raw = b"GET /oauth/callback?code=ABC123 HTTP/1.1\nHost: x\n\n"
        assert parse_callback_request(raw).code == "ABC123"

    @pytest.mark.parametrize("raw", [b"", b"garbage", b"\xff\xfe\x00", b"GET"])
    def test_malformed_requests_never_raise(self, raw):
        assert parse_callback_request(raw).code is None


def test_build_response_has_length_and_closes():
    response = build_response(SUCCESS_PAGE)
    head, body = response.split(b"\r\n\r\n", 1)
    assert head.startswith(b"HTTP/1.1 200 OK")
    assert b"Connection: close" in head
    assert f"Content-Length: {len(body)}".encode() in head
    assert b"Authentication Successful" in body


class TestLoopbackListener:

    @pytest.mark.asyncio
    async def test_receives_code_and_answers_success_page(self):
        results = []
        handle = await LoopbackCallbackListener().start(0, results.append)
        try:
            response = await send_raw_request(
                handle.port, redirect_request("/oauth/callback?code=ABC123&state=xyz")
            )
        finally:
            await handle.stop()

        assert response.startswith(b"HTTP/1.1 200 OK")
        assert SUCCESS_PAGE.encode() in response
        assert [r.code for r in results] == ["ABC123"]

    @pytest.mark.asyncio
    async def test_request_without_code_gets_failure_page(self):
        results = []
        handle = await LoopbackCallbackListener().start(0, results.append)
        try:
            response = await send_raw_request(handle.port, redirect_request("/oauth/callback?state=xyz"))
        finally:
            await handle.stop()

        assert NO_CODE_PAGE.encode() in response
        assert len(results) == 1
        assert results[0].code is None

    @pytest.mark.asyncio
    async def test_only_first_connection_is_handled(self):
        results = []
        handle = await LoopbackCallbackListener().start(0, results.append)
        port = handle.port
        try:
            await send_raw_request(port, redirect_request("/oauth/callback?code=FIRST"))
            with pytest.raises(OSError):
                await send_raw_request(port, redirect_request("/oauth/callback?code=SECOND"))
        finally:
            await handle.stop()

        assert [r.code for r in results] == ["FIRST"]

    @pytest.mark.asyncio
    async def test_stop_releases_port(self):
        handle = await LoopbackCallbackListener().start(0, lambda result: None)
        port = handle.port
        assert handle.is_serving

        await handle.stop()
        await handle.stop()
        assert not handle.is_serving

        # Rebinding the same port works once the listener is gone
        again = await LoopbackCallbackListener().start(port, lambda result: None)
        assert again.port == port
        await again.stop()

    @pytest.mark.asyncio
    async def test_busy_port_raises_port_unavailable(self):
        blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        blocker.bind(("127.0.0.1", 0))
        blocker.listen(1)
        try:
            with pytest.raises(PortUnavailable):
                await LoopbackCallbackListener().start(blocker.getsockname()[1], lambda result: None)
        finally:
            blocker.close()

    @pytest.mark.asyncio
    async def test_stop_while_client_is_connected(self):
        results = []
        handle = await LoopbackCallbackListener(read_timeout=5.0).start(0, results.append)

        reader, writer = await asyncio.open_connection("127.0.0.1", handle.port)
        writer.write(b"GET /oauth/callback?code=LATE")  # no header terminator
        await writer.drain()
        await asyncio.sleep(0.05)

        await asyncio.wait_for(handle.stop(), timeout=2.0)
        writer.close()

        assert results == []

    @pytest.mark.asyncio
    async def test_lf_only_request_is_answered_without_waiting(self):
        results = []
        handle = await LoopbackCallbackListener(read_timeout=30.0).start(0, results.append)
        raw = b"GET /oauth/callback?code=ABC123 HTTP/1.1\nHost: x\n\n"
        try:
            response = await asyncio.wait_for(send_raw_request(handle.port, raw), timeout=2.0)
        finally:
            await handle.stop()

        assert SUCCESS_PAGE.encode() in response
        assert [r.code for r in results] == ["ABC123"]

    @pytest.mark.asyncio
    async def test_partial_request_is_parsed_after_read_timeout(self):
        results = []
        handle = await LoopbackCallbackListener(read_timeout=0.2).start(0, results.append)
        try:
            reader, writer = await asyncio.open_connection("127.0.0.1", handle.port)
            writer.write(b"GET /oauth/callback?code=SLOW HTTP/1.1\r\n")  # headers never follow
            await writer.drain()
            response = await asyncio.wait_for(reader.read(), timeout=2.0)
            writer.close()
            await writer.wait_closed()
        finally:
            await handle.stop()

        assert SUCCESS_PAGE.encode() in response
        assert [r.code for r in results] == ["SLOW"]

    @pytest.mark.asyncio
    async def test_handler_exception_does_not_break_response(self):
        def explode(result):
            raise RuntimeError("boom")

        handle = await LoopbackCallbackListener().start(0, explode)
        try:
            response = await send_raw_request(handle.port, redirect_request("/oauth/callback?code=X"))
        finally:
            await handle.stop()
        assert response.startswith(b"HTTP/1.1 200 OK")
