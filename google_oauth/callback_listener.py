"""
One-shot loopback listener for the OAuth redirect.

The listener binds a single port on the loopback interface, accepts exactly
one connection, pulls the ``code`` query parameter out of the request line,
answers with a fixed HTML page and closes. The only client is the user's own
browser following the Google redirect, so the request is parsed by hand
instead of through a full HTTP server.
"""
import asyncio
import logging
import re
from abc import ABC, abstractmethod
from typing import Callable, Optional
from urllib.parse import unquote_plus

from .constants import MAX_REQUEST_BYTES, OAUTH_CALLBACK_HOST
from .errors import PortUnavailable
from .models import CallbackResult

logger = logging.getLogger(__name__)

ResultCallback = Callable[[CallbackResult], None]

# Query parameter value ends at '&', a fragment, or whitespace (the " HTTP/1.1" suffix)
_PARAM_PATTERN = r"(?:^|[?&]){name}=([^&#\s]*)"
_CODE_RE = re.compile(_PARAM_PATTERN.format(name="code"))
_ERROR_RE = re.compile(_PARAM_PATTERN.format(name="error"))

# Blank line ending the headers, CRLF or bare LF
_HEADER_END = re.compile(rb"\r?\n\r?\n")

SUCCESS_PAGE = (
    "<html><body>"
    "<h1>Authentication Successful!</h1>"
    "<p>You can close this window and return to the app.</p>"
    "</body></html>"
)

NO_CODE_PAGE = (
    "<html><body>"
    "<h1>Authentication Failed</h1>"
    "<p>No authorization code was received. Close this window and try signing in again.</p>"
    "</body></html>"
)


def build_response(page: str) -> bytes:
    body = page.encode("utf-8")
    head = (
        "HTTP/1.1 200 OK\r\n"
        "Content-Type: text/html; charset=utf-8\r\n"
        f"Content-Length: {len(body)}\r\n"
        "Connection: close\r\n"
        "\r\n"
    )
    return head.encode("ascii") + body


def _request_target(raw: bytes) -> str:
    """Return the target of the request line (``/path?query``), or "" if malformed"""
    text = raw[:MAX_REQUEST_BYTES].decode("utf-8", errors="replace")
    request_line = text.split("\n", 1)[0].strip()
    parts = request_line.split()
    if len(parts) >= 2:
        return parts[1]
    return ""


def _query_param(pattern: re.Pattern, target: str) -> Optional[str]:
    match = pattern.search(target.split("?", 1)[1] if "?" in target else "")
    if not match or not match.group(1):
        return None
    return unquote_plus(match.group(1))


def parse_callback_request(raw: bytes) -> CallbackResult:
    """Extract the authorization code from a raw redirect request

    Only the request line is inspected, so a ``code=`` inside a header
    (a Referer, say) is never picked up. Never raises.

    Args:
        raw: Bytes read from the browser connection

    Returns:
        CallbackResult with ``code`` set, or with ``code=None`` when the
        request carried no usable code
    """
    target = _request_target(raw)
    return CallbackResult(
        code=_query_param(_CODE_RE, target),
        error=_query_param(_ERROR_RE, target),
    )


class ListenerHandle(ABC):
    """A running listener; stopping it releases the port"""

    port: int

    @abstractmethod
    async def stop(self) -> None:
        """Stop listening and release the port. Safe to call more than once."""

    @property
    @abstractmethod
    def is_serving(self) -> bool:
        ...


class CallbackListener(ABC):
    """Receives a single OAuth redirect on a loopback port"""

    @abstractmethod
    async def start(self, port: int, on_result: ResultCallback) -> ListenerHandle:
        """Bind ``port`` and start waiting for the redirect in the background

        ``on_result`` fires at most once, with whatever the first request
        carried.

        Raises:
            PortUnavailable: If the port cannot be bound
        """


class _LoopbackHandle(ListenerHandle):

    def __init__(self, port: int, on_result: ResultCallback, read_timeout: float):
        self.port = port
        self._on_result = on_result
        self._read_timeout = read_timeout
        self._server: Optional[asyncio.AbstractServer] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._buffer = bytearray()
        self._handled = False
        self._stopped = False

    @property
    def is_serving(self) -> bool:
        return self._server is not None and self._server.is_serving()

    async def _read_request(self, reader: asyncio.StreamReader) -> None:
        # Kept on the handle so a read timeout still leaves what arrived
        while len(self._buffer) < MAX_REQUEST_BYTES and not _HEADER_END.search(self._buffer):
            chunk = await reader.read(1024)
            if not chunk:
                break
            self._buffer += chunk

    async def handle_connection(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        if self._handled or self._stopped:
            writer.close()
            return
        self._handled = True
        self._writer = writer

        # One connection only: stop accepting before doing anything else
        if self._server is not None:
            self._server.close()

        try:
            await asyncio.wait_for(self._read_request(reader), timeout=self._read_timeout)
        except (asyncio.TimeoutError, ConnectionError) as e:
            logger.warning(f"Callback request incomplete ({e!r}), parsing the {len(self._buffer)} bytes received")

        result = parse_callback_request(bytes(self._buffer[:MAX_REQUEST_BYTES]))
        page = SUCCESS_PAGE if result.ok else NO_CODE_PAGE

        try:
            writer.write(build_response(page))
            await writer.drain()
        except ConnectionError as e:
            logger.warning(f"Browser closed the callback connection early: {e!r}")
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except ConnectionError:
                pass
            self._writer = None

        if self._stopped:
            return

        if result.ok:
            logger.info(f"Received authorization code: {result.code[:10]}...")
        else:
            logger.warning(f"Callback request carried no authorization code (error={result.error})")

        try:
            self._on_result(result)
        except Exception:
            logger.exception("Callback result handler raised")

    async def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True

        if self._writer is not None:
            self._writer.transport.abort()
            self._writer = None

        if self._server is not None:
            server, self._server = self._server, None
            server.close()
            try:
                await asyncio.wait_for(server.wait_closed(), timeout=5.0)
            except asyncio.TimeoutError:
                logger.warning(f"Callback listener on port {self.port} did not close in time")
            logger.debug(f"Callback listener on port {self.port} stopped")


class LoopbackCallbackListener(CallbackListener):
    """Raw asyncio stream listener for the OAuth redirect"""

    def __init__(self, host: str = OAUTH_CALLBACK_HOST, read_timeout: float = 10.0):
        self.host = host
        self.read_timeout = read_timeout

    async def start(self, port: int, on_result: ResultCallback) -> ListenerHandle:
        handle = _LoopbackHandle(port, on_result, self.read_timeout)
        try:
            handle._server = await asyncio.start_server(
                handle.handle_connection,
                host=self.host,
                port=port,
                reuse_address=True,
            )
        except OSError as e:
            raise PortUnavailable(f"Cannot listen on {self.host}:{port}: {e}") from e

        # Port 0 asks the OS for a free port
        handle.port = handle._server.sockets[0].getsockname()[1]
        logger.info(f"OAuth callback listener on {self.host}:{handle.port}")
        return handle
