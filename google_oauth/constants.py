"""
Google OAuth endpoints and fixed request parameters
"""

AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
SCOPE = "https://www.googleapis.com/auth/calendar.readonly"

# Loopback callback listener
OAUTH_CALLBACK_HOST = "127.0.0.1"
OAUTH_CALLBACK_PORT = 8080
OAUTH_CALLBACK_PATH = "/oauth/callback"
REDIRECT_URI = f"http://localhost:{OAUTH_CALLBACK_PORT}{OAUTH_CALLBACK_PATH}"

# Request line plus headers from a browser redirect fit well inside this
MAX_REQUEST_BYTES = 8192

# Seconds to wait for the redirect before the flow fails
DEFAULT_CALLBACK_TIMEOUT = 300.0

# Refresh this many seconds before the provider-reported expiry
EXPIRY_SKEW_SECONDS = 60
