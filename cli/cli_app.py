"""Main CLI application class for calendarbar"""

import asyncio
import logging
from typing import Optional

import httpx
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt

import settings
from calendar_feed import CalendarClient, CalendarFeedManager, Preferences
from google_oauth import AiohttpCallbackListener, CallbackListener, LoopbackCallbackListener, OAuthFlowController, TokenStore
from utils.debug_console import create_debug_console, setup_logging
from cli import auth_handlers
from cli.status_display import get_auth_status, show_events, show_token_status, status_style

logger = logging.getLogger(__name__)


def create_listener(kind: str) -> CallbackListener:
    """Pick the OAuth callback listener named by the CALLBACK_SERVER setting"""
    if kind == "aiohttp":
        return AiohttpCallbackListener()
    if kind != "loopback":
        logger.warning(f"Unknown CALLBACK_SERVER '{kind}', using the loopback listener")
    return LoopbackCallbackListener()


class CalendarBarCLI:
    """Terminal front-end: wires the flow controller, calendar client and feed manager"""

    def __init__(self, debug: bool = False, console: Optional[Console] = None):
        self.debug = debug
        console_logger = setup_logging(debug=debug, level=settings.LOG_LEVEL, log_file=settings.DEBUG_LOG_FILE)
        self.console = console or create_debug_console(debug_enabled=debug, debug_logger=console_logger)

        if debug:
            self.console.print(f"[yellow]Debug mode enabled - verbose logging will be written to {settings.DEBUG_LOG_FILE}[/yellow]")

        self.loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self.loop)

        timeout = httpx.Timeout(settings.REQUEST_TIMEOUT, connect=settings.CONNECT_TIMEOUT)
        self.http_client = httpx.AsyncClient(timeout=timeout)

        self.store = TokenStore(settings.TOKEN_FILE)
        self.preferences = Preferences(settings.PREFERENCES_FILE)
        self.auth = OAuthFlowController(
            client_id=settings.GOOGLE_CLIENT_ID,
            client_secret=settings.GOOGLE_CLIENT_SECRET,
            store=self.store,
            listener=create_listener(settings.CALLBACK_SERVER),
            port=settings.CALLBACK_PORT,
            redirect_uri=settings.REDIRECT_URI,
            callback_timeout=settings.CALLBACK_TIMEOUT,
            http_client=self.http_client,
            http_timeout=timeout,
        )
        self.calendar = CalendarClient(
            self.auth,
            calendar_id=settings.CALENDAR_ID,
            http_client=self.http_client,
            timeout=timeout,
        )
        self.manager = CalendarFeedManager(
            self.auth,
            self.calendar,
            self.preferences,
            refresh_interval=settings.EVENTS_REFRESH_INTERVAL,
            cycle_interval=settings.CYCLE_INTERVAL,
        )

    def close(self):
        """Stop timers, release the callback port and close the HTTP client"""
        self.loop.run_until_complete(self.manager.aclose())
        self.loop.run_until_complete(self.auth.aclose())
        self.loop.run_until_complete(self.http_client.aclose())
        self.loop.close()
        asyncio.set_event_loop(None)

    # One-shot commands

    def login(self) -> bool:
        return auth_handlers.login(self.manager, self.loop, self.console)

    def logout(self, confirm: bool = True) -> bool:
        return auth_handlers.logout(self.manager, self.loop, self.console, confirm=confirm)

    def refresh(self) -> bool:
        return auth_handlers.refresh_token(self.store, self.auth, self.loop, self.console)

    def status(self) -> bool:
        show_token_status(self.store, self.auth, self.console)
        return True

    def events(self) -> bool:
        self.loop.run_until_complete(self.manager.start())
        self._show_events()
        if self.manager.needs_authentication:
            self.console.print("[yellow]Login required - run 'calendarbar login'[/yellow]")
            return False
        return True

    def watch(self):
        """Keep the feed running and print the title whenever it changes"""
        last_title = None

        def on_change(manager: CalendarFeedManager):
            nonlocal last_title
            if manager.title != last_title:
                last_title = manager.title
                self.console.print(f"[bold]{manager.title}[/bold]")

        self.manager.on_change = on_change
        self.console.print("[dim]Watching today's events. Press Ctrl+C to stop.[/dim]")
        try:
            self.loop.run_until_complete(self.manager.start())
            self.loop.run_forever()
        except KeyboardInterrupt:
            self.console.print("\n[yellow]Stopped[/yellow]")
        finally:
            self.manager.on_change = None

    # Interactive menu

    def _show_events(self):
        show_events(self.manager.title, self.manager.today_events, self.preferences.timezone, self.console)

    def display_header(self):
        self.console.print(Panel.fit(
            "[bold cyan]calendarbar[/bold cyan]\n"
            "[dim]Today's Google Calendar events in your terminal[/dim]",
            border_style="cyan"
        ))

    def display_menu(self):
        auth_status, auth_detail = get_auth_status(self.store, self.auth)
        style = status_style(auth_status)
        self.console.print(f" Google Auth: [{style}]{auth_status}[/{style}] ({auth_detail})")
        self.console.print(f" Timezone: {self.preferences.timezone}")
        self.console.print(f" Show other events: {'on' if self.preferences.show_other_events else 'off'}")
        self.console.print("-" * 50)
        self.console.print(" 1. Login / Re-authenticate")
        self.console.print(" 2. Show today's events")
        self.console.print(" 3. Refresh token")
        self.console.print(" 4. Show token status")
        self.console.print(" 5. Change timezone")
        self.console.print(" 6. Toggle show other events")
        self.console.print(" 7. Logout")
        self.console.print(" 8. Exit")
        self.console.print("=" * 50)

    def change_timezone(self):
        name = Prompt.ask("Timezone (IANA name)", default=self.preferences.timezone)
        try:
            self.loop.run_until_complete(self.manager.set_timezone(name))
        except ValueError as e:
            self.console.print(f"[red]ERROR:[/red] {e}")
            return
        self.console.print(f"[green]Timezone set to {name}[/green]")

    def run(self):
        """Interactive menu loop"""
        actions = {
            "1": self.login,
            "2": self.events,
            "3": self.refresh,
            "4": self.status,
            "5": self.change_timezone,
            "6": lambda: self.manager.set_show_other_events(not self.preferences.show_other_events),
            "7": self.logout,
        }

        while True:
            self.console.clear()
            self.display_header()
            self.display_menu()

            choice = Prompt.ask("Select option", choices=[*actions.keys(), "8"], default="2")
            if choice == "8":
                self.console.print("Goodbye!")
                break

            try:
                actions[choice]()
            except Exception as e:
                logger.exception("Menu action failed")
                self.console.print(f"[red]ERROR:[/red] {e}")

            self.console.print("\nPress Enter to continue...")
            input()
