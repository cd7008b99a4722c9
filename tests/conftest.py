"""
Shared pytest fixtures for calendarbar tests.

Nothing here talks to Google: the token endpoint and Calendar API are served
by httpx.MockTransport handlers, and the OAuth redirect is either delivered
through a fake listener or sent to a real loopback socket on a free port.
"""

import json
import os
import sys
import time

import pytest

# Flat layout: make the top-level packages importable without installing
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Keep settings away from the developer's real config and home directory
os.environ.setdefault("CALENDARBAR_ENV_FILE", os.path.join(os.path.dirname(__file__), "missing.env"))

from google_oauth import PortUnavailable, TokenSet, TokenStore
from tests.oauth_test_helpers import FakeListener


@pytest.fixture
def token_file(tmp_path):
    return tmp_path / "tokens.json"


@pytest.fixture
def token_store(token_file):
    return TokenStore(token_file)


@pytest.fixture
def stored_tokens(token_store):
    """Store {AT1, RT1} with an hour left"""
    tokens = TokenSet(access_token="AT1", refresh_token="RT1", expires_at=time.time() + 3600)
    token_store.save(tokens)
    return tokens


@pytest.fixture
def expired_tokens(token_store):
    """Store {AT1, RT1} that expired a minute ago"""
    tokens = TokenSet(access_token="AT1", refresh_token="RT1", expires_at=time.time() - 60)
    token_store.save(tokens)
    return tokens


@pytest.fixture
def read_token_file(token_file):
    def _read():
        if not token_file.exists():
            return None
        return json.loads(token_file.read_text())
    return _read


@pytest.fixture
def fake_listener():
    return FakeListener()


@pytest.fixture
def busy_listener():
    return FakeListener(fail_with=PortUnavailable("Cannot listen on 127.0.0.1:8080: in use"))


@pytest.fixture
def opened_urls():
    return []


@pytest.fixture
def browser_opener(opened_urls):
    def _open(url):
        opened_urls.append(url)
        return True
    return _open
