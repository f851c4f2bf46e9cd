import asyncio
import enum
import logging
import urllib.parse

import websockets

from ..errors import AuthFailure, ConsoleError, IllegalTransition, SocketFailure, TransportBlocked
from . import guard
from .session import Scheme

log = logging.getLogger(__name__)


class ConnectionState(enum.Enum):
    IDLE            = 'idle'
    FETCHING_TICKET = 'fetching_ticket'
    GUARD_BLOCKED   = 'guard_blocked'
    OPENING         = 'opening'
    STREAMING       = 'streaming'
    ERRORED         = 'errored'
    CLOSED          = 'closed'


S = ConnectionState

_EDGES = {
    S.IDLE:            {S.FETCHING_TICKET, S.CLOSED},
    S.FETCHING_TICKET: {S.OPENING, S.GUARD_BLOCKED, S.ERRORED, S.CLOSED},
    S.OPENING:         {S.STREAMING, S.ERRORED, S.CLOSED},
    S.STREAMING:       {S.ERRORED, S.CLOSED},
    S.GUARD_BLOCKED:   {S.IDLE, S.CLOSED},
    S.ERRORED:         {S.IDLE, S.CLOSED},
    S.CLOSED:          set(),
}

# connect() is a no-op while one of these is current.
_IN_FLIGHT = {S.FETCHING_TICKET, S.OPENING, S.STREAMING}


class ConnectionManager:
    """Owns the push-stream socket of one console session.

    Lifecycle: ticket -> endpoint lookup -> protocol guard -> socket open ->
    streaming. The socket lives only in ``_socket``; every inbound frame goes
    to ``on_line`` in delivery order, failures go to ``on_error``. Nothing
    that arrives after ``dispose()`` reaches either callback.
    """

    def __init__(self, tickets, scope, websocket_path, endpoint_source, on_line,
                 on_error=None, ticket_timeout=None, open_timeout=None):
        self._tickets = tickets
        self._scope = scope
        self._path = websocket_path
        self._endpoint_source = endpoint_source
        self._on_line = on_line
        self._on_error = on_error or (lambda err: None)
        self._ticket_timeout = ticket_timeout or None
        self._open_timeout = open_timeout or None
        self._state = S.IDLE
        self._attempt = 0
        self._socket = None
        self._reader = None
        self.last_error = None
        self.transitions = [S.IDLE]

    @property
    def state(self):
        return self._state

    def _transition(self, new):
        if new not in _EDGES[self._state]:
            raise IllegalTransition(f'{self._state.name} -> {new.name}')
        log.debug('console %s: %s -> %s', self._path, self._state.name, new.name)
        self._state = new
        self.transitions.append(new)

    def _live(self, attempt):
        return self._state is not S.CLOSED and attempt == self._attempt

    def _fail(self, attempt, err, cause=None):
        if not self._live(attempt):
            return self._state
        if cause is not None:
            err.__cause__ = cause
        log.warning('console %s: %s', self._path, err)
        self.last_error = err
        self._transition(S.ERRORED)
        self._on_error(err)
        return self._state

    def socket_url(self, endpoint, ticket):
        sep = '&' if '?' in self._path else '?'
        return (f'{guard.socket_scheme(endpoint)}://{endpoint.host}{self._path}'
                f'{sep}ticket={urllib.parse.quote(ticket.value, safe="")}')

    async def connect(self, page_origin):
        """Run one connection attempt up to STREAMING or a terminal state."""
        if self._state in _IN_FLIGHT or self._state is S.CLOSED:
            return self._state
        stale = None
        if self._state is not S.IDLE:
            stale, self._socket = self._socket, None
            self._transition(S.IDLE)

        self._attempt += 1
        attempt = self._attempt
        self.last_error = None
        self._transition(S.FETCHING_TICKET)

        if stale is not None:
            await self._close(stale)
            if not self._live(attempt):
                return self._state

        try:
            ticket = await asyncio.wait_for(
                self._tickets.request_ticket(self._scope), self._ticket_timeout
            )
            endpoint = self._endpoint_source()
        except asyncio.TimeoutError as e:
            return self._fail(attempt, AuthFailure('Ticket request timed out'), e)
        except ConsoleError as e:
            return self._fail(attempt, e)
        if not self._live(attempt):
            return self._state

        if guard.approve(endpoint, page_origin) is guard.Verdict.BLOCKED:
            err = TransportBlocked(
                f'{endpoint.declared_scheme.value} endpoint from a '
                f'{Scheme.of(page_origin).value} page'
            )
            log.warning('console %s: %s', self._path, err)
            self.last_error = err
            self._transition(S.GUARD_BLOCKED)
            self._on_error(err)
            return self._state

        self._transition(S.OPENING)
        try:
            socket = await websockets.connect(
                self.socket_url(endpoint, ticket),
                open_timeout=self._open_timeout,
                close_timeout=5,
            )
        except (OSError, asyncio.TimeoutError, websockets.exceptions.WebSocketException) as e:
            return self._fail(attempt, SocketFailure(f'Socket open failed: {e}'), e)

        if not self._live(attempt):
            # Disposed while the handshake was in flight.
            await socket.close()
            return self._state

        self._socket = socket
        self._transition(S.STREAMING)
        self._reader = asyncio.create_task(self._read(attempt, socket))
        return self._state

    async def _read(self, attempt, socket):
        err = SocketFailure('Connection closed by remote')
        try:
            async for frame in socket:
                if not self._live(attempt):
                    return
                if isinstance(frame, bytes):
                    frame = frame.decode('utf-8', errors='replace')
                self._on_line(frame)
        except (websockets.exceptions.ConnectionClosed, OSError) as e:
            err = SocketFailure(f'Connection lost: {e}')
            err.__cause__ = e
        if self._live(attempt):
            # The reader is leaving STREAMING; it unsubscribes itself.
            self._reader = None
            self._fail(attempt, err)

    async def _unsubscribe(self):
        reader, self._reader = self._reader, None
        if reader is None or reader is asyncio.current_task():
            return
        reader.cancel()
        try:
            await reader
        except asyncio.CancelledError:
            pass

    async def _drop_socket(self):
        socket, self._socket = self._socket, None
        if socket is not None:
            await self._close(socket)

    async def _close(self, socket):
        try:
            await socket.close()
        except Exception as e:
            log.debug('console %s: close failed: %s', self._path, e)

    async def dispose(self):
        """Close for good. Safe to call repeatedly and mid-connect."""
        if self._state is S.CLOSED:
            return
        self._transition(S.CLOSED)
        await self._unsubscribe()
        await self._drop_socket()
