"""OAuth authorization URL construction"""

import logging
import webbrowser
from typing import Callable
from urllib.parse import urlencode

from .constants import AUTHORIZE_URL, REDIRECT_URI, SCOPE
from .models import AuthorizationRequest

logger = logging.getLogger(__name__)

BrowserOpener = Callable[[str], bool]


class AuthorizationURLBuilder:
    """Builds the Google consent URL and hands it to the system browser"""

    def __init__(
        self,
        client_id: str,
        redirect_uri: str = REDIRECT_URI,
        scope: str = SCOPE,
        authorize_url: str = AUTHORIZE_URL,
        browser_opener: BrowserOpener = webbrowser.open,
    ):
        self.client_id = client_id
        self.redirect_uri = redirect_uri
        self.scope = scope
        self.authorize_url = authorize_url
        self.browser_opener = browser_opener

    def build_request(self) -> AuthorizationRequest:
        return AuthorizationRequest(
            client_id=self.client_id,
            redirect_uri=self.redirect_uri,
            scope=self.scope,
        )

    def get_authorize_url(self) -> str:
        """Construct the authorization URL

        Requests offline access with a forced consent prompt so Google
        always returns a refresh token.

        Returns:
            Full authorization URL
        """
        return f"{self.authorize_url}?{urlencode(self.build_request().to_params())}"

    def start_login_flow(self) -> str:
        """Open the authorization URL in the default browser

        Returns:
            Authorization URL that was opened (or should be opened manually)
        """
        auth_url = self.get_authorize_url()

        try:
            opened = self.browser_opener(auth_url)
        except Exception as e:
            # webbrowser backends can raise on broken desktop setups
            logger.warning(f"Could not launch browser: {e}")
            opened = False

        if not opened:
            logger.warning(f"Could not open browser automatically, open this URL manually: {auth_url}")

        return auth_url
