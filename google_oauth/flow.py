"""OAuth flow controller: the login state machine and token lifecycle

All state lives on one asyncio event loop. Listener callbacks, token
endpoint responses and user actions are handled as tasks on that loop, and
every write to the token store happens under a single lock, so a save and a
clear never interleave.
"""

import asyncio
import logging
import webbrowser
from typing import Optional

import httpx

from .authorization import AuthorizationURLBuilder, BrowserOpener
from .callback_listener import CallbackListener, ListenerHandle, LoopbackCallbackListener
from .constants import (
    AUTHORIZE_URL,
    DEFAULT_CALLBACK_TIMEOUT,
    EXPIRY_SKEW_SECONDS,
    OAUTH_CALLBACK_PORT,
    REDIRECT_URI,
    SCOPE,
    TOKEN_URL,
)
from .errors import (
    AuthError,
    CallbackTimeout,
    CodeExchangeFailed,
    FailureReason,
    FlowCancelled,
    NoCodeInRequest,
    PortUnavailable,
    RefreshFailed,
    TokenStoreUnavailable,
)
from .models import CallbackResult, FlowState, TokenSet
from .token_exchange import DEFAULT_TIMEOUT, TimeoutTypes, exchange_code_for_tokens, refresh_access_token
from .token_store import TokenStore

logger = logging.getLogger(__name__)

IN_FLIGHT_STATES = (FlowState.AWAITING_CALLBACK, FlowState.EXCHANGING_CODE)


class OAuthFlowController:
    """Runs the authorization-code flow and owns the stored tokens

    Construct one per application and pass it to whatever needs tokens.

    Attributes:
        last_error: Reason for the most recent failed flow or refresh
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        store: TokenStore,
        listener: Optional[CallbackListener] = None,
        port: int = OAUTH_CALLBACK_PORT,
        redirect_uri: str = REDIRECT_URI,
        callback_timeout: float = DEFAULT_CALLBACK_TIMEOUT,
        http_client: Optional[httpx.AsyncClient] = None,
        http_timeout: TimeoutTypes = DEFAULT_TIMEOUT,
        browser_opener: BrowserOpener = webbrowser.open,
        token_url: str = TOKEN_URL,
        authorize_url: str = AUTHORIZE_URL,
        expiry_skew: float = EXPIRY_SKEW_SECONDS,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.store = store
        self.listener = listener or LoopbackCallbackListener()
        self.port = port
        self.redirect_uri = redirect_uri
        self.callback_timeout = callback_timeout
        self.http_client = http_client
        self.http_timeout = http_timeout
        self.token_url = token_url
        self.expiry_skew = expiry_skew
        self.auth_builder = AuthorizationURLBuilder(
            client_id,
            redirect_uri=redirect_uri,
            scope=SCOPE,
            authorize_url=authorize_url,
            browser_opener=browser_opener,
        )

        self.last_error: Optional[FailureReason] = None
        self._lock = asyncio.Lock()
        self._flow_task: Optional[asyncio.Task] = None
        self._refresh_task: Optional[asyncio.Task] = None
        self._code_future: Optional[asyncio.Future] = None
        self._handle: Optional[ListenerHandle] = None
        # Bumped whenever the stored tokens are replaced or cleared outside a
        # refresh; a refresh that started under an older generation is dropped
        self._generation = 0

        has_tokens = self.has_valid_tokens()
        self._state = FlowState.AUTHENTICATED if has_tokens else FlowState.IDLE
        self._needs_authentication = not has_tokens

    @property
    def state(self) -> FlowState:
        return self._state

    @property
    def needs_authentication(self) -> bool:
        """True when there are no tokens or the last refresh failed"""
        return self._needs_authentication

    @property
    def in_progress(self) -> bool:
        return self._flow_task is not None and not self._flow_task.done()

    def _set_state(self, state: FlowState) -> None:
        if state != self._state:
            logger.debug(f"Flow state {self._state.value} -> {state.value}")
            self._state = state

    def _load_tokens(self) -> Optional[TokenSet]:
        try:
            return self.store.load()
        except TokenStoreUnavailable as e:
            logger.error(str(e))
            return None

    # Login flow

    async def authenticate(self) -> bool:
        """Run the browser login flow

        At most one flow runs at a time. A call made while a flow is waiting
        for the redirect or exchanging the code starts nothing and returns
        the outcome of the running flow.

        Returns:
            True if tokens were obtained and saved, False otherwise
        """
        if self.in_progress:
            logger.info("Authentication already in progress, waiting for it to finish")
        else:
            self._flow_task = asyncio.get_running_loop().create_task(self._run_flow())
        return await asyncio.shield(self._flow_task)

    def cancel(self) -> bool:
        """Abandon a flow that is waiting for the browser redirect

        Returns:
            True if a waiting flow was cancelled
        """
        if self._state != FlowState.AWAITING_CALLBACK:
            return False
        if self._code_future is None or self._code_future.done():
            return False
        self._code_future.set_exception(FlowCancelled("Authentication cancelled"))
        return True

    def _on_callback(self, result: CallbackResult) -> None:
        future = self._code_future
        if future is None or future.done():
            logger.warning("Ignoring callback result for a flow that already moved on")
            return
        future.set_result(result)

    def _fail(self, error: AuthError) -> bool:
        logger.error(f"Authentication failed ({error.reason.value}): {error}")
        self.last_error = error.reason
        self._set_state(FlowState.FAILED)
        return False

    async def _stop_listener(self) -> None:
        handle, self._handle = self._handle, None
        if handle is not None:
            await handle.stop()

    async def _run_flow(self) -> bool:
        self.last_error = None
        self._code_future = asyncio.get_running_loop().create_future()
        try:
            try:
                self._handle = await self.listener.start(self.port, self._on_callback)
            except PortUnavailable as e:
                return self._fail(e)

            self._set_state(FlowState.AWAITING_CALLBACK)
            self.auth_builder.start_login_flow()

            try:
                result = await asyncio.wait_for(self._code_future, timeout=self.callback_timeout)
            except asyncio.TimeoutError:
                return self._fail(CallbackTimeout(f"No redirect received within {self.callback_timeout:g}s"))
            except FlowCancelled as e:
                return self._fail(e)
            finally:
                await self._stop_listener()

            if not result.ok:
                detail = f" (provider error: {result.error})" if result.error else ""
                return self._fail(NoCodeInRequest(f"Redirect request carried no authorization code{detail}"))

            self._set_state(FlowState.EXCHANGING_CODE)
            try:
                tokens = await exchange_code_for_tokens(
                    result.code,
                    self.client_id,
                    self.client_secret,
                    self.redirect_uri,
                    http_client=self.http_client,
                    token_url=self.token_url,
                    timeout=self.http_timeout,
                )
            except CodeExchangeFailed as e:
                return self._fail(e)

            # Persist before reporting success
            async with self._lock:
                try:
                    self.store.save(tokens)
                except TokenStoreUnavailable as e:
                    return self._fail(e)
                # A refresh started with the old refresh token must not overwrite these
                self._generation += 1
                self._needs_authentication = False
                self._set_state(FlowState.AUTHENTICATED)

            logger.info("Authentication complete")
            return True
        finally:
            self._code_future = None
            await self._stop_listener()

    # Token access

    def has_valid_tokens(self) -> bool:
        """True if an access token is stored (expiry is not checked)"""
        tokens = self._load_tokens()
        return tokens is not None and bool(tokens.access_token)

    async def get_access_token(self) -> Optional[str]:
        """Return the stored access token, refreshing it first if it has expired

        Returns:
            Access token, or None when there are no tokens or an expired
            token could not be refreshed
        """
        tokens = self._load_tokens()
        if tokens is None:
            return None

        if not tokens.is_expired(self.expiry_skew):
            return tokens.access_token

        logger.info("Access token expired, attempting automatic refresh...")
        if not await self.refresh_access_token():
            return None

        tokens = self._load_tokens()
        return tokens.access_token if tokens else None

    async def refresh_access_token(self) -> bool:
        """Exchange the refresh token for a new access token

        Concurrent calls share one request. On failure the stored tokens are
        kept and ``needs_authentication`` is raised; the caller decides
        whether to log out.

        Returns:
            True if a new access token was stored
        """
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.get_running_loop().create_task(self._run_refresh())
        return await asyncio.shield(self._refresh_task)

    def _refresh_failed(self, error: AuthError) -> bool:
        logger.error(f"Token refresh failed ({error.reason.value}): {error}")
        self.last_error = error.reason
        self._needs_authentication = True
        return False

    async def _run_refresh(self) -> bool:
        generation = self._generation
        try:
            tokens = self.store.load()
        except TokenStoreUnavailable as e:
            return self._refresh_failed(e)

        if tokens is None or not tokens.refresh_token:
            return self._refresh_failed(RefreshFailed("No refresh token available"))

        try:
            refreshed = await refresh_access_token(
                tokens.refresh_token,
                self.client_id,
                self.client_secret,
                http_client=self.http_client,
                token_url=self.token_url,
                timeout=self.http_timeout,
            )
        except RefreshFailed as e:
            return self._refresh_failed(e)

        async with self._lock:
            if generation != self._generation:
                logger.warning("Tokens were replaced or cleared during refresh, discarding the refreshed token")
                # A login that landed meanwhile still leaves the caller a usable token
                current = self._load_tokens()
                return current is not None and bool(current.access_token) and not current.is_expired(self.expiry_skew)
            try:
                self.store.save(refreshed)
            except TokenStoreUnavailable as e:
                return self._refresh_failed(e)
            self._needs_authentication = False
            self.last_error = None
            if self._state not in IN_FLIGHT_STATES:
                self._set_state(FlowState.AUTHENTICATED)

        return True

    async def clear_tokens(self) -> bool:
        """Log out: remove stored tokens regardless of flow state

        Returns:
            True if the store was cleared
        """
        async with self._lock:
            self._generation += 1
            self._needs_authentication = True
            if self._state not in IN_FLIGHT_STATES:
                self._set_state(FlowState.IDLE)
            try:
                self.store.clear()
            except TokenStoreUnavailable as e:
                logger.error(str(e))
                self.last_error = e.reason
                return False
        return True

    async def aclose(self) -> None:
        """Abandon any waiting flow and release the callback port"""
        self.cancel()
        if self._flow_task is not None and not self._flow_task.done():
            await asyncio.shield(self._flow_task)
        await self._stop_listener()
