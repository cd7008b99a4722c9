"""Authentication handlers for CLI"""

from rich.prompt import Confirm

from calendar_feed import CalendarFeedManager
from google_oauth import FailureReason, OAuthFlowController, TokenStore

FAILURE_HINTS = {
    FailureReason.PORT_UNAVAILABLE: "The callback port is busy. Is another login already running?",
    FailureReason.NO_CODE_IN_REQUEST: "The browser redirect carried no authorization code. Did you deny access?",
    FailureReason.CALLBACK_TIMEOUT: "Timed out waiting for the browser. Please try again.",
    FailureReason.CODE_EXCHANGE_FAILED: "Google rejected the authorization code. Please try again.",
    FailureReason.TOKEN_STORE_UNAVAILABLE: "Could not write the token file. Check permissions.",
    FailureReason.CANCELLED: "Login cancelled.",
}


def login(manager: CalendarFeedManager, loop, console) -> bool:
    """
    Handle the login flow

    Args:
        manager: Feed manager; fetches events after a successful login
        loop: Event loop for async operations
        console: Rich console for output

    Returns:
        True if authentication succeeded
    """
    auth = manager.auth
    if not auth.client_id or not auth.client_secret:
        console.print("[red]ERROR:[/red] GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET must be set (environment or .env)")
        return False

    console.print("Starting Google login flow...")
    console.print(f"[dim]Waiting for the browser redirect on port {auth.port}. Press Ctrl+C to cancel.[/dim]")

    try:
        success = loop.run_until_complete(manager.authenticate())
    except KeyboardInterrupt:
        auth.cancel()
        loop.run_until_complete(auth.aclose())
        console.print("\n[yellow]Authentication cancelled by user[/yellow]")
        return False

    if success:
        console.print("[green]Authentication successful![/green]")
        console.print(f"[bold]{manager.title}[/bold]")
    else:
        console.print("[red]Authentication failed[/red]")
        hint = FAILURE_HINTS.get(auth.last_error)
        if hint:
            console.print(hint)
    return success


def refresh_token(store: TokenStore, auth: OAuthFlowController, loop, console) -> bool:
    """
    Attempt to refresh the access token

    Args:
        store: TokenStore instance
        auth: OAuthFlowController instance
        loop: Event loop for async operations
        console: Rich console for output
    """
    console.print("Attempting to refresh token...")

    status = store.get_status()
    if not status["has_refresh_token"]:
        console.print("[red]No refresh token available - please login first[/red]")
        return False

    success = loop.run_until_complete(auth.refresh_access_token())
    if success:
        console.print("[green]Token refreshed successfully![/green]")
        new_status = store.get_status()
        console.print(f"Token valid for: {new_status.get('time_until_expiry', 'unknown')}")
    else:
        console.print("[red]Token refresh failed - please login again[/red]")
        console.print("Stored tokens were kept; logout clears them.")
    return success


def logout(manager: CalendarFeedManager, loop, console, confirm: bool = True) -> bool:
    """
    Clear stored tokens

    Args:
        manager: Feed manager
        loop: Event loop for async operations
        console: Rich console for output
        confirm: Ask before clearing
    """
    if confirm and not Confirm.ask("Are you sure you want to clear all tokens?"):
        console.print("Logout cancelled")
        return False

    loop.run_until_complete(manager.logout())
    if manager.auth.has_valid_tokens():
        console.print("[red]ERROR:[/red] Could not clear the token file")
        return False

    console.print("[green]Tokens cleared successfully[/green]")
    return True
