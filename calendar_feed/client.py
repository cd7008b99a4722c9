"""Google Calendar API client.

Fetches one calendar's events for a time window using the flow
controller's access token. A 401 triggers one token refresh and one retry.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, tzinfo
from typing import Any, AsyncIterator, Dict, List, Optional
from urllib.parse import quote

import httpx

from google_oauth import OAuthFlowController
from .models import CalendarEvent, select_today_events

logger = logging.getLogger(__name__)

CALENDAR_API_BASE = "https://www.googleapis.com/calendar/v3"


class CalendarError(Exception):
    """Events could not be fetched"""


class AuthenticationRequired(CalendarError):
    """No usable access token; the user has to sign in again"""


class CalendarClient:
    """Reads events from a single Google calendar"""

    def __init__(
        self,
        auth: OAuthFlowController,
        calendar_id: str = "primary",
        http_client: Optional[httpx.AsyncClient] = None,
        base_url: str = CALENDAR_API_BASE,
        timeout: Any = 30.0,
    ):
        self.auth = auth
        self.calendar_id = calendar_id
        self.http_client = http_client
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @property
    def events_url(self) -> str:
        return f"{self.base_url}/calendars/{quote(self.calendar_id, safe='@.')}/events"

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self.http_client is not None:
            yield self.http_client
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                yield client

    async def _get_events(self, client: httpx.AsyncClient, params: Dict[str, str], token: str) -> httpx.Response:
        try:
            return await client.get(
                self.events_url,
                params=params,
                headers={"Authorization": f"Bearer {token}"},
                timeout=self.timeout,
            )
        except httpx.RequestError as e:
            raise CalendarError(f"Calendar request failed: {e}") from e

    async def fetch_events(self, time_min: datetime, time_max: datetime) -> List[CalendarEvent]:
        """Fetch single (expanded) events between two instants, ordered by start time

        Raises:
            AuthenticationRequired: If there is no token or a refresh did not help
            CalendarError: On transport errors, other HTTP errors or a bad body
        """
        token = await self.auth.get_access_token()
        if not token:
            raise AuthenticationRequired("No access token available")

        params = {
            "timeMin": time_min.isoformat(),
            "timeMax": time_max.isoformat(),
            "singleEvents": "true",
            "orderBy": "startTime",
        }

        logger.info(f"Fetching events from calendar '{self.calendar_id}'")
        async with self._client() as client:
            response = await self._get_events(client, params, token)

            if response.status_code == 401:
                logger.warning("Calendar API rejected the access token, refreshing and retrying once")
                if not await self.auth.refresh_access_token():
                    raise AuthenticationRequired("Access token rejected and refresh failed")
                token = await self.auth.get_access_token()
                if not token:
                    raise AuthenticationRequired("No access token after refresh")
                response = await self._get_events(client, params, token)
                if response.status_code == 401:
                    raise AuthenticationRequired("Access token rejected after refresh")

        if not response.is_success:
            raise CalendarError(f"Calendar API error {response.status_code}: {response.text}")

        try:
            payload = response.json()
        except ValueError as e:
            raise CalendarError(f"Failed to parse calendar response: {e}") from e

        items = payload.get("items") if isinstance(payload, dict) else None
        events = [CalendarEvent.from_api(item) for item in items or [] if isinstance(item, dict)]
        logger.info(f"Received {len(events)} events from calendar '{self.calendar_id}'")
        return events

    async def fetch_today(self, tz: tzinfo, now: Optional[datetime] = None) -> List[CalendarEvent]:
        """Today's all-day events in ``tz``, sorted for display"""
        current = now.astimezone(tz) if now is not None else datetime.now(tz)
        start_of_day = current.replace(hour=0, minute=0, second=0, microsecond=0)
        end_of_day = start_of_day + timedelta(days=1)

        events = await self.fetch_events(start_of_day, end_of_day)
        today_events = select_today_events(events, tz, start_of_day.date())
        logger.info(f"Found {len(today_events)} all-day events for today")
        return today_events
