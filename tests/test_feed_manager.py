"""Feed manager and preferences tests"""

import asyncio
from datetime import date, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from calendar_feed import AuthenticationRequired, CalendarError, CalendarEvent, CalendarFeedManager, Preferences
from calendar_feed.manager import AUTH_FAILED, LOADING, LOGIN_REQUIRED, NO_EVENTS
from google_oauth import FailureReason


def event(summary, days=1, description=None, event_id=None):
    return CalendarEvent(
        id=event_id or summary,
        summary=summary,
        description=description,
        start_date=date(2024, 3, 15),
        end_date=date(2024, 3, 15) + timedelta(days=days),
    )


@pytest.fixture
def preferences(tmp_path):
    prefs = Preferences(tmp_path / "preferences.json")
    prefs.timezone = "UTC"
    return prefs


@pytest.fixture
def auth():
    auth = MagicMock()
    auth.has_valid_tokens.return_value = True
    auth.authenticate = AsyncMock(return_value=True)
    auth.clear_tokens = AsyncMock(return_value=True)
    auth.last_error = None
    return auth


@pytest.fixture
def client():
    client = MagicMock()
    client.fetch_today = AsyncMock(return_value=[event("Vacation", days=3), event("Dentist")])
    return client


@pytest.fixture
def titles():
    return []


@pytest_asyncio.fixture
async def manager(auth, client, preferences, titles):
    manager = CalendarFeedManager(auth, client, preferences, refresh_interval=3600, cycle_interval=0.01)
    manager.on_change = lambda m: titles.append(m.title)
    yield manager
    await manager.aclose()


class TestPreferences:

    def test_defaults(self, tmp_path):
        prefs = Preferences(tmp_path / "p.json")
        assert prefs.show_other_events is False
        assert prefs.timezone

    def test_persisted(self, tmp_path):
        path = tmp_path / "p.json"
        prefs = Preferences(path)
        prefs.timezone = "Europe/Berlin"
        prefs.show_other_events = True

        reloaded = Preferences(path)
        assert reloaded.timezone == "Europe/Berlin"
        assert reloaded.show_other_events is True

    def test_invalid_timezone_rejected(self, preferences):
        with pytest.raises(ValueError):
            preferences.timezone = "Mars/Olympus_Mons"
        assert preferences.timezone == "UTC"


class TestFeedManager:

    def test_initial_title(self, auth, client, preferences):
        assert CalendarFeedManager(auth, client, preferences).title == LOADING

    @pytest.mark.asyncio
    async def test_start_without_tokens_asks_for_login(self, manager, auth, client):
        auth.has_valid_tokens.return_value = False
        await manager.start()
        assert manager.needs_authentication
        assert manager.title == LOGIN_REQUIRED
        client.fetch_today.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_start_with_tokens_shows_longest_event(self, manager, titles):
        await manager.start()
        assert manager.title == "Vacation"
        assert not manager.needs_authentication
        assert titles[-1] == "Vacation"

    @pytest.mark.asyncio
    async def test_no_events(self, manager, client):
        client.fetch_today.return_value = []
        await manager.fetch_events()
        assert manager.title == NO_EVENTS

    @pytest.mark.asyncio
    async def test_show_other_events_counter(self, manager, preferences):
        await manager.fetch_events()
        manager.set_show_other_events(True)
        assert preferences.show_other_events
        assert manager.title == "Vacation (1/2)"

        manager.cycle_to_next_event()
        assert manager.title == "Dentist (2/2)"
        manager.cycle_to_next_event()
        assert manager.title == "Vacation (1/2)"

    @pytest.mark.asyncio
    async def test_cycle_timer_rotates_titles(self, manager, titles):
        await manager.fetch_events()
        manager.set_show_other_events(True)
        await asyncio.sleep(0.05)
        assert "Dentist (2/2)" in titles

    @pytest.mark.asyncio
    async def test_single_event_does_not_cycle(self, manager, client):
        client.fetch_today.return_value = [event("Vacation", days=3)]
        manager.set_show_other_events(True)
        await manager.fetch_events()
        assert manager.title == "Vacation"

    @pytest.mark.asyncio
    async def test_authentication_required_flags_login(self, manager, client):
        await manager.fetch_events()
        client.fetch_today.side_effect = AuthenticationRequired("expired")
        assert await manager.fetch_events() is False
        assert manager.needs_authentication

    @pytest.mark.asyncio
    async def test_calendar_error_keeps_previous_events(self, manager, client):
        await manager.fetch_events()
        client.fetch_today.side_effect = CalendarError("500")
        assert await manager.refresh_now() is False
        assert manager.title == "Vacation"
        assert len(manager.today_events) == 2

    @pytest.mark.asyncio
    async def test_authenticate_success_fetches(self, manager, auth, client):
        assert await manager.authenticate() is True
        auth.authenticate.assert_awaited_once()
        client.fetch_today.assert_awaited()
        assert manager.title == "Vacation"

    @pytest.mark.asyncio
    async def test_authenticate_failure_title(self, manager, auth):
        auth.authenticate.return_value = False
        auth.last_error = FailureReason.CALLBACK_TIMEOUT
        assert await manager.authenticate() is False
        assert manager.title == AUTH_FAILED

    @pytest.mark.asyncio
    async def test_logout_clears_everything(self, manager, auth):
        await manager.start()
        await manager.logout()
        auth.clear_tokens.assert_awaited_once()
        assert manager.today_events == []
        assert manager.needs_authentication
        assert manager.title == LOGIN_REQUIRED

    @pytest.mark.asyncio
    async def test_set_timezone_refetches(self, manager, client, preferences):
        await manager.set_timezone("Asia/Tokyo")
        assert preferences.timezone == "Asia/Tokyo"
        assert client.fetch_today.await_args.args[0].key == "Asia/Tokyo"

    @pytest.mark.asyncio
    async def test_set_invalid_timezone(self, manager, client):
        with pytest.raises(ValueError):
            await manager.set_timezone("Not/AZone")
        client.fetch_today.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_refresh_timer_refetches(self, auth, client, preferences):
        manager = CalendarFeedManager(auth, client, preferences, refresh_interval=0.01)
        try:
            await manager.start()
            await asyncio.sleep(0.05)
        finally:
            await manager.aclose()
        assert client.fetch_today.await_count >= 2
