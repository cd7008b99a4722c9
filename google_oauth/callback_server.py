"""
aiohttp implementation of the OAuth callback listener
"""
import asyncio
import logging
from typing import Optional

from aiohttp import web

from .callback_listener import (
    NO_CODE_PAGE,
    SUCCESS_PAGE,
    CallbackListener,
    ListenerHandle,
    ResultCallback,
)
from .constants import OAUTH_CALLBACK_HOST
from .errors import PortUnavailable
from .models import CallbackResult

logger = logging.getLogger(__name__)


class _AiohttpHandle(ListenerHandle):
    """Running aiohttp site serving a single redirect"""

    def __init__(self, port: int, on_result: ResultCallback):
        self.port = port
        self._on_result = on_result
        self._handled = False
        self._stopped = False
        self._shutdown_task: Optional[asyncio.Task] = None
        self._cleanup_task: Optional[asyncio.Task] = None
        self.app = web.Application()
        self.runner: Optional[web.AppRunner] = None

        # Path is not validated; any GET reaching the port is the redirect
        self.app.router.add_get("/{tail:.*}", self._handle_callback)

    @property
    def is_serving(self) -> bool:
        return self.runner is not None and not self._stopped

    @property
    def shutdown_task(self) -> Optional[asyncio.Task]:
        return self._shutdown_task

    async def _handle_callback(self, request: web.Request) -> web.Response:
        """Handle OAuth callback request"""
        if self._handled:
            return web.Response(text=NO_CODE_PAGE, content_type="text/html")
        self._handled = True

        result = CallbackResult(
            code=request.query.get("code") or None,
            error=request.query.get("error") or None,
        )

        if result.ok:
            logger.info(f"Received authorization code: {result.code[:10]}...")
        else:
            logger.warning(f"Callback request carried no authorization code (error={result.error})")

        # Shut the site down once this response has gone out
        self._shutdown_task = asyncio.get_running_loop().create_task(self.stop())

        try:
            self._on_result(result)
        except Exception:
            logger.exception("Callback result handler raised")

        return web.Response(
            text=SUCCESS_PAGE if result.ok else NO_CODE_PAGE,
            content_type="text/html",
        )

    async def start(self, host: str) -> None:
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        site = web.TCPSite(self.runner, host=host, port=self.port, reuse_address=True)
        try:
            await site.start()
        except OSError as e:
            await self.runner.cleanup()
            self.runner = None
            raise PortUnavailable(f"Cannot listen on {host}:{self.port}: {e}") from e

        if self.port == 0:
            self.port = self.runner.addresses[0][1]
        logger.info(f"OAuth callback server listening on port {self.port}")

    async def _cleanup(self) -> None:
        if self.runner:
            await self.runner.cleanup()
            self.runner = None
            logger.debug(f"OAuth callback server on port {self.port} stopped")

    async def stop(self) -> None:
        # Every caller waits for the same cleanup, so the port is free on return
        self._stopped = True
        if self._cleanup_task is None:
            self._cleanup_task = asyncio.get_running_loop().create_task(self._cleanup())
        await asyncio.shield(self._cleanup_task)


class AiohttpCallbackListener(CallbackListener):
    """Callback listener backed by an aiohttp web application"""

    def __init__(self, host: str = OAUTH_CALLBACK_HOST):
        self.host = host

    async def start(self, port: int, on_result: ResultCallback) -> ListenerHandle:
        handle = _AiohttpHandle(port, on_result)
        await handle.start(self.host)
        return handle
