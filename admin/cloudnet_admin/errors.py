"""Error kinds raised by the live console.

Every error is contained to a single console session; none of them is fatal
to the dashboard process.
"""


class ConsoleError(Exception):
    """Base class; ``notice`` is the text shown to the operator."""

    notice = 'Console error'


class Unauthorized(ConsoleError):
    notice = 'Not logged in to the REST API'


class AuthFailure(ConsoleError):
    notice = 'Could not connect to the console'


class TransportBlocked(ConsoleError):
    notice = ('The dashboard and the REST API use different protocols (http/https). '
              'Browsers block this connection; serve both over the same protocol.')


class SocketFailure(ConsoleError):
    notice = 'Could not connect to the console'


class CommandFailure(ConsoleError):
    notice = 'Failed to send command'


class CacheUnavailable(ConsoleError):
    notice = 'Failed to fetch cached log lines'


class RestError(ConsoleError):
    """Non-success or unreadable response from the REST API."""

    def __init__(self, message, status=None):
        super().__init__(message)
        self.status = status


class IllegalTransition(RuntimeError):
    """A ConnectionManager state change outside the transition table."""
