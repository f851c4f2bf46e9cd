import asyncio
import logging
import time
from collections import deque

from ..errors import CacheUnavailable, CommandFailure, ConsoleError
from ..extensions import ANSI_ESCAPE
from .commands import CommandChannel
from .connection import ConnectionManager, ConnectionState
from .log_buffer import ALL, LogBuffer
from .rest import rest_call
from .tickets import TicketAuthClient, TicketScope

log = logging.getLogger(__name__)


def strip_ansi(text):
    return ANSI_ESCAPE.sub('', text)


def line_level(text):
    """Display level of an already-stripped line: info, warn, error or None."""
    if 'INFO' in text:
        return 'info'
    if 'WARN' in text:
        return 'warn'
    if 'ERROR' in text:
        return 'error'
    return None


def render_entry(entry):
    clean = strip_ansi(entry.text)
    return {'seq': entry.sequence, 'text': clean, 'level': line_level(clean)}


async def fetch_cached_tail(service_id, credentials, cfg):
    """Return the service's cached log lines or raise CacheUnavailable."""
    path = cfg.LOG_LINES_PATH.format(id=service_id)
    try:
        body = await asyncio.to_thread(rest_call, path, credentials, cfg)
    except ConsoleError as e:
        raise CacheUnavailable(str(e)) from e
    lines = body.get('lines') if isinstance(body, dict) else None
    if not isinstance(lines, list):
        raise CacheUnavailable(f'Malformed log cache response: {body!r}')
    return [str(line) for line in lines]


class ConsoleController:
    """One operator's console on one service or node.

    Seeds the buffer from the cached tail (services only), then opens the live
    stream. Use as an async context manager, or call ``dispose()``; the
    connection is disposed exactly once either way.
    """

    def __init__(self, scope, target, credentials, cfg, commands_enabled=None):
        self.scope = TicketScope(scope)
        self.target = target
        self._cfg = cfg
        self.buffer = LogBuffer(max_lines=cfg.CONSOLE_MAX_LINES)
        self.tickets = TicketAuthClient(credentials, cfg)
        self.commands = CommandChannel(credentials, cfg)
        self.credentials = credentials
        self.connection = ConnectionManager(
            self.tickets,
            self.scope,
            cfg.console_path(self.scope.value, target),
            endpoint_source=lambda: self.credentials.endpoint(),
            on_line=self.buffer.append,
            on_error=self.notify,
            ticket_timeout=cfg.TICKET_TIMEOUT,
            open_timeout=cfg.SOCKET_OPEN_TIMEOUT,
        )
        if commands_enabled is None:
            commands_enabled = self.scope is TicketScope.SERVICE
        self.commands_enabled = commands_enabled
        self.notices = deque(maxlen=50)
        self.last_seen = time.monotonic()
        self._started = False
        self._disposed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.dispose()
        return False

    @property
    def state(self):
        return self.connection.state

    @property
    def blocked(self):
        return self.connection.state is ConnectionState.GUARD_BLOCKED

    def touch(self):
        self.last_seen = time.monotonic()

    def notify(self, err):
        self.notices.append({'level': 'error', 'message': err.notice})

    def drain_notices(self):
        notices = list(self.notices)
        self.notices.clear()
        return notices

    def _set_credentials(self, credentials):
        self.credentials = credentials
        self.tickets.credentials = credentials
        self.commands.credentials = credentials

    async def _seed(self):
        if self.scope is not TicketScope.SERVICE:
            return
        try:
            lines = await fetch_cached_tail(self.target, self.credentials, self._cfg)
        except CacheUnavailable as e:
            log.warning('No cached log lines for %s: %s', self.target, e)
            self.notify(e)
            lines = []
        self.buffer.seed(lines)

    async def start(self, page_origin):
        """Seed history, then connect. Runs once; later calls are no-ops."""
        if self._started or self._disposed:
            return self.state
        self._started = True
        await self._seed()
        return await self.connection.connect(page_origin)

    async def reconnect(self, credentials, page_origin):
        """Manual retry with the session's current credentials."""
        self._set_credentials(credentials)
        if not self._started:
            return await self.start(page_origin)
        return await self.connection.connect(page_origin)

    async def send_command(self, text):
        try:
            if not self.commands_enabled:
                raise CommandFailure('Commands are disabled for this console')
            await self.commands.send(self.target, text)
        except CommandFailure as e:
            self.notify(e)
            raise

    def view(self, predicate=ALL, since=None):
        return self.buffer.view(predicate, since=since)

    def clear(self):
        self.buffer.clear()

    def export(self):
        return self.buffer.export()

    def poll(self, since=None, predicate=ALL):
        self.touch()
        return {
            'lines': [render_entry(e) for e in self.view(predicate, since=since)],
            'total': self.buffer.total,
            'state': self.state.value,
            'blocked': self.blocked,
            'commands': self.commands_enabled,
            'notices': self.drain_notices(),
        }

    async def dispose(self):
        if self._disposed:
            return
        self._disposed = True
        await self.connection.dispose()
