import asyncio
import enum
import logging
from dataclasses import dataclass, field

from ..errors import AuthFailure, RestError
from .rest import rest_call

log = logging.getLogger(__name__)


class TicketScope(str, enum.Enum):
    SERVICE = 'service'
    NODE = 'node'


@dataclass(frozen=True)
class Ticket:
    value: str
    scope: TicketScope
    single_use: bool = field(default=True, init=False)


class TicketAuthClient:
    """Trades the operator's session for a single-use push-stream ticket."""

    def __init__(self, credentials, cfg):
        self.credentials = credentials
        self._cfg = cfg

    async def request_ticket(self, scope):
        scope = TicketScope(scope)
        # Fails with Unauthorized before any network call.
        self.credentials.require()
        try:
            body = await asyncio.to_thread(
                rest_call, self._cfg.TICKET_PATH, self.credentials, self._cfg,
                method='POST', data={'type': scope.value},
            )
        except RestError as e:
            raise AuthFailure(f'Ticket request rejected: {e}') from e
        value = body.get('value') if isinstance(body, dict) else None
        if not isinstance(value, str) or not value:
            raise AuthFailure(f'Malformed ticket response: {body!r}')
        log.debug('Issued %s ticket', scope.value)
        return Ticket(value=value, scope=scope)
