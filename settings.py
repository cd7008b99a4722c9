from pathlib import Path
from config.loader import get_config_loader

# Get the config loader instance
config = get_config_loader()

LOG_LEVEL = config.get("LOG_LEVEL", "info")

# Google OAuth client (desktop app credentials from the Google Cloud console)
GOOGLE_CLIENT_ID = config.get("GOOGLE_CLIENT_ID", "")
GOOGLE_CLIENT_SECRET = config.get("GOOGLE_CLIENT_SECRET", "")

# Loopback redirect. The port must match the redirect URI registered for the client.
CALLBACK_PORT = config.get("CALLBACK_PORT", 8080)
CALLBACK_PATH = "/oauth/callback"
REDIRECT_URI = f"http://localhost:{CALLBACK_PORT}{CALLBACK_PATH}"
# Seconds to wait for the browser redirect before giving up
CALLBACK_TIMEOUT = config.get("CALLBACK_TIMEOUT", 300.0)

# Timeout configuration for token endpoint and Calendar API calls
CONNECT_TIMEOUT = config.get("CONNECT_TIMEOUT", 10.0)
REQUEST_TIMEOUT = config.get("REQUEST_TIMEOUT", 30.0)

# Calendar feed
CALENDAR_ID = config.get("CALENDAR_ID", "primary")
EVENTS_REFRESH_INTERVAL = config.get("EVENTS_REFRESH_INTERVAL", 30 * 60.0)
CYCLE_INTERVAL = config.get("CYCLE_INTERVAL", 10.0)

# Storage
DATA_DIR = config.get_path("CALENDARBAR_DATA_DIR", str(Path.home() / ".calendarbar"))
TOKEN_FILE = config.get_path("TOKEN_FILE", str(DATA_DIR / "tokens.json"))
PREFERENCES_FILE = config.get_path("PREFERENCES_FILE", str(DATA_DIR / "preferences.json"))

DEBUG_LOG_FILE = config.get("DEBUG_LOG_FILE", "calendarbar_debug.log")

# Which callback listener implementation to use: "loopback" (raw asyncio streams) or "aiohttp"
CALLBACK_SERVER = config.get("CALLBACK_SERVER", "loopback")
