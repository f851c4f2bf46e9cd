"""
Shared pytest fixtures.

Key design decisions:
- TestConfig class with every setting pinned (avoids class-level os.environ.get timing issues).
- TESTING env var prevents the console hub from starting inside create_app;
  route tests that need it use the ``console_hub`` fixture.
- No real network: requests.* and websockets.connect are patched per test,
  FakeSocket stands in for a live WebSocket connection.
"""
import asyncio
import os
import urllib.parse
from unittest.mock import MagicMock

import pytest


REST_ADDRESS = 'http://cloudnet.test:2812/api/v3'
ACCESS_TOKEN = 'test-access-token'


class TestConfig:
    SECRET_KEY = 'pytest-secret'
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SECURE = False
    PERMANENT_SESSION_LIFETIME = 3600
    BEHIND_PROXY = False
    LOG_LEVEL = 'DEBUG'

    REST_ADDRESS = REST_ADDRESS
    REST_TIMEOUT = 5

    AUTH_PATH = '/auth'
    TICKET_PATH = '/api/auth/ticket'
    LOG_LINES_PATH = '/service/{id}/logLines'
    EXECUTE_PATH = '/service/{id}/execute'
    SERVICE_CONSOLE_PATH = '/service/{id}/liveLog'
    NODE_CONSOLE_PATH = '/node/liveConsole'

    CONSOLE_MAX_LINES = 500
    TICKET_TIMEOUT = 5
    SOCKET_OPEN_TIMEOUT = 5
    CONSOLE_IDLE_SECONDS = 0
    HUB_CALL_TIMEOUT = 25

    def console_path(self, scope, target):
        template = self.SERVICE_CONSOLE_PATH if scope == 'service' else self.NODE_CONSOLE_PATH
        return template.format(id=target)


_CLOSE = object()


class FakeSocket:
    """In-memory stand-in for a websockets client connection.

    Frames given up front (or pushed later from the same event loop) are
    yielded in order; an exception instance is raised when reached. The
    iterator blocks until ``close()`` once the frames run out.
    """

    def __init__(self, frames=()):
        self._pending = list(frames)
        self._queue = None
        self.closed = False
        self.close_calls = 0

    def _q(self):
        if self._queue is None:
            self._queue = asyncio.Queue()
            for frame in self._pending:
                self._queue.put_nowait(frame)
            self._pending = []
        return self._queue

    def push(self, frame):
        self._q().put_nowait(frame)

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self._q().get()
        if item is _CLOSE:
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self):
        self.closed = True
        self.close_calls += 1
        self._q().put_nowait(_CLOSE)


def make_response(status=200, body=None, text=None):
    """requests.Response-like mock; ``body`` is returned by .json()."""
    import json
    resp = MagicMock()
    resp.status_code = status
    resp.ok = 200 <= status < 300
    if text is None:
        text = json.dumps(body) if body is not None else ''
    resp.text = text
    if body is not None:
        resp.json.return_value = body
    else:
        resp.json.side_effect = ValueError('No JSON')
    return resp


async def settle(rounds=10):
    """Let pending loop callbacks (reader tasks) run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture()
def cfg():
    return TestConfig()


@pytest.fixture()
def credentials():
    from cloudnet_admin.services.session import SessionCredentials
    return SessionCredentials(
        access_token=ACCESS_TOKEN,
        add=urllib.parse.quote(REST_ADDRESS, safe=''),
    )


@pytest.fixture(scope='session')
def app():
    """Session-scoped Flask test application (console hub not started)."""
    os.environ['TESTING'] = '1'

    from cloudnet_admin import create_app
    flask_app = create_app(config_class=TestConfig)
    flask_app.config['TESTING'] = True
    return flask_app


@pytest.fixture(scope='session')
def console_hub(app):
    """Start the app's console hub for route tests that open consoles."""
    app.console_hub.start()
    yield app.console_hub
    app.console_hub.stop()


@pytest.fixture()
def client(app):
    """Flask test client (unauthenticated)."""
    return app.test_client()


@pytest.fixture()
def auth_client(app):
    """Flask test client with a logged-in REST session."""
    c = app.test_client()
    with c.session_transaction() as sess:
        sess['logged_in'] = True
        sess['username'] = 'admin'
        sess['at'] = ACCESS_TOKEN
        sess['add'] = urllib.parse.quote(REST_ADDRESS, safe='')
    return c
