"""Status and event display for CLI"""

from typing import List

from rich.table import Table

from calendar_feed import CalendarEvent
from google_oauth import OAuthFlowController, TokenStore


def get_auth_status(store: TokenStore, auth: OAuthFlowController) -> tuple[str, str]:
    """
    Get authentication status and expiry info

    Args:
        store: TokenStore instance
        auth: Flow controller, for the needs-authentication flag

    Returns:
        Tuple of (status, detail_message)
    """
    status = store.get_status()

    if not status["has_tokens"]:
        return "NO AUTH", "No tokens available"

    if auth.needs_authentication:
        return "LOGIN REQUIRED", "Last token refresh failed"

    if status["is_expired"]:
        return "EXPIRED", f"Expired {status['time_until_expiry']} (refreshed on next use)"

    return "VALID", f"Expires in {status['time_until_expiry']}"


def status_style(auth_status: str) -> str:
    if auth_status == "VALID":
        return "green"
    if auth_status == "EXPIRED":
        return "yellow"
    return "red"


def show_token_status(store: TokenStore, auth: OAuthFlowController, console):
    """
    Display detailed token status

    Args:
        store: TokenStore instance
        auth: OAuthFlowController instance
        console: Rich console for output
    """
    status = store.get_status()

    table = Table(title="Token Status Details")
    table.add_column("Property", style="cyan")
    table.add_column("Value")

    table.add_row("Has Tokens", "Yes" if status["has_tokens"] else "No")
    table.add_row("Has Refresh Token", "Yes" if status["has_refresh_token"] else "No")
    table.add_row("Is Expired", "Yes" if status["is_expired"] else "No")

    if status["expires_at"]:
        table.add_row("Expires At", status["expires_at"])
        table.add_row("Time Until Expiry", status["time_until_expiry"])

    table.add_row("Flow State", auth.state.value)
    table.add_row("Needs Authentication", "Yes" if auth.needs_authentication else "No")
    if auth.last_error:
        table.add_row("Last Error", auth.last_error.value)
    table.add_row("Token File", str(store.token_file))

    console.print(table)


def show_events(title: str, events: List[CalendarEvent], timezone: str, console):
    """
    Display today's events

    Args:
        title: Current one-line title
        events: Today's events, in display order
        timezone: Selected timezone name
        console: Rich console for output
    """
    console.print(f"[bold]{title}[/bold]")

    if not events:
        return

    table = Table(title=f"Today's all-day events ({timezone})")
    table.add_column("#", style="dim")
    table.add_column("Event")
    table.add_column("Days", justify="right")

    for index, event in enumerate(events, start=1):
        table.add_row(str(index), event.display_title, str(event.duration_in_days))

    console.print(table)
