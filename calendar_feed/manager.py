"""Feed manager: what the menu bar shows and when it updates"""

import asyncio
import logging
from typing import Callable, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from google_oauth import OAuthFlowController
from .client import AuthenticationRequired, CalendarClient, CalendarError
from .models import CalendarEvent
from .preferences import Preferences

logger = logging.getLogger(__name__)

LOGIN_REQUIRED = "Login Required"
AUTH_FAILED = "Auth Failed"
NO_EVENTS = "No Events Today"
LOADING = "Loading..."


class CalendarFeedManager:
    """Keeps today's events and the one-line title up to date

    Events are re-fetched every ``refresh_interval`` seconds while signed in.
    With "show other events" on and more than one event, the title cycles
    through them every ``cycle_interval`` seconds.
    """

    def __init__(
        self,
        auth: OAuthFlowController,
        client: CalendarClient,
        preferences: Preferences,
        refresh_interval: float = 30 * 60,
        cycle_interval: float = 10,
    ):
        self.auth = auth
        self.client = client
        self.preferences = preferences
        self.refresh_interval = refresh_interval
        self.cycle_interval = cycle_interval

        self.today_events: List[CalendarEvent] = []
        self.title = LOADING
        self.needs_authentication = False
        self.current_index = 0
        self.on_change: Optional[Callable[["CalendarFeedManager"], None]] = None

        self._refresh_task: Optional[asyncio.Task] = None
        self._cycle_task: Optional[asyncio.Task] = None

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change(self)

    async def start(self) -> None:
        """Fetch events if signed in, otherwise ask for login"""
        if self.auth.has_valid_tokens():
            logger.info("Has tokens, fetching events")
            await self.fetch_events()
            self._start_refresh_timer()
        else:
            logger.info("No tokens, need authentication")
            self.needs_authentication = True
            self.title = LOGIN_REQUIRED
            self._changed()

    async def authenticate(self) -> bool:
        success = await self.auth.authenticate()
        if success:
            logger.info("Authentication successful")
            self.needs_authentication = False
            await self.fetch_events()
            self._start_refresh_timer()
        else:
            reason = self.auth.last_error.value if self.auth.last_error else "unknown"
            logger.warning(f"Authentication failed: {reason}")
            self.title = AUTH_FAILED
            self._changed()
        return success

    async def fetch_events(self) -> bool:
        """Fetch and show today's events

        Returns:
            True if the event list was updated
        """
        try:
            tz = ZoneInfo(self.preferences.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            logger.error(f"Invalid timezone: {self.preferences.timezone}")
            return False

        try:
            events = await self.client.fetch_today(tz)
        except AuthenticationRequired as e:
            logger.warning(f"Calendar needs authentication: {e}")
            self.needs_authentication = True
            self._changed()
            return False
        except CalendarError as e:
            # Keep showing the previous events
            logger.error(f"Failed to fetch events: {e}")
            return False

        self.needs_authentication = False
        self._update(events)
        return True

    async def refresh_now(self) -> bool:
        logger.info("Manual refresh triggered")
        return await self.fetch_events()

    async def logout(self) -> None:
        logger.info("Logging out")
        await self.auth.clear_tokens()
        self._cancel(self._refresh_task)
        self._refresh_task = None
        self.needs_authentication = True
        self.today_events = []
        self.current_index = 0
        self._update_cycle_timer()
        self.title = LOGIN_REQUIRED
        self._changed()

    async def set_timezone(self, name: str) -> None:
        """Persist the timezone and re-fetch

        Raises:
            ValueError: If the name is not a known IANA timezone
        """
        self.preferences.timezone = name
        await self.fetch_events()

    def set_show_other_events(self, value: bool) -> None:
        self.preferences.show_other_events = value
        self._update_cycle_timer()
        self._update_title()

    def _update(self, events: List[CalendarEvent]) -> None:
        self.today_events = events
        self.current_index = 0
        self._update_title()
        self._update_cycle_timer()

    def _update_title(self) -> None:
        if not self.today_events:
            self.title = NO_EVENTS
        elif self.preferences.show_other_events and len(self.today_events) > 1:
            event = self.today_events[self.current_index]
            self.title = f"{event.display_title} ({self.current_index + 1}/{len(self.today_events)})"
        else:
            # Events are sorted longest first
            self.title = self.today_events[0].display_title
        self._changed()

    def cycle_to_next_event(self) -> None:
        if not self.today_events:
            return
        self.current_index = (self.current_index + 1) % len(self.today_events)
        self._update_title()

    # Timers

    @staticmethod
    def _cancel(task: Optional[asyncio.Task]) -> None:
        if task is not None and not task.done():
            task.cancel()

    def _start_refresh_timer(self) -> None:
        self._cancel(self._refresh_task)
        self._refresh_task = asyncio.get_running_loop().create_task(self._refresh_loop())

    async def _refresh_loop(self) -> None:
        while True:
            await asyncio.sleep(self.refresh_interval)
            logger.info("Timer triggered - refreshing events")
            try:
                await self.fetch_events()
            except Exception:
                logger.exception("Scheduled refresh failed")

    def _update_cycle_timer(self) -> None:
        self._cancel(self._cycle_task)
        self._cycle_task = None
        if self.preferences.show_other_events and len(self.today_events) > 1:
            self._cycle_task = asyncio.get_running_loop().create_task(self._cycle_loop())

    async def _cycle_loop(self) -> None:
        while True:
            await asyncio.sleep(self.cycle_interval)
            self.cycle_to_next_event()

    async def aclose(self) -> None:
        """Stop timers"""
        tasks = [t for t in (self._refresh_task, self._cycle_task) if t is not None]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._refresh_task = None
        self._cycle_task = None
