import enum
import urllib.parse
from dataclasses import dataclass

from ..errors import Unauthorized


class Scheme(str, enum.Enum):
    HTTP = 'http'
    HTTPS = 'https'

    @classmethod
    def of(cls, value):
        """Classify an origin/address/socket scheme string as http or https."""
        lower = (value or '').lower()
        if lower.startswith(('https', 'wss')):
            return cls.HTTPS
        return cls.HTTP


@dataclass(frozen=True)
class EndpointDescriptor:
    host: str
    declared_scheme: Scheme

    @classmethod
    def from_cookie(cls, add):
        """Build from the url-encoded session address, e.g. ``https%3A%2F%2Fnode%3A2812``."""
        address = urllib.parse.unquote(add or '')
        if not address:
            raise Unauthorized('No REST address in session')
        host = address
        for prefix in ('https://', 'http://'):
            if address.startswith(prefix):
                host = address[len(prefix):]
                break
        return cls(host=host, declared_scheme=Scheme.of(address))


@dataclass(frozen=True)
class SessionCredentials:
    """Bearer token (``at``) and url-encoded REST address (``add``) of a login."""

    access_token: str = ''
    add: str = ''

    @classmethod
    def from_session(cls, session):
        return cls(access_token=session.get('at', ''), add=session.get('add', ''))

    @property
    def address(self):
        return urllib.parse.unquote(self.add or '').rstrip('/')

    def require(self):
        """Return ``(token, address)`` or raise Unauthorized."""
        if not self.access_token or not self.address:
            raise Unauthorized('Missing access token or REST address')
        return self.access_token, self.address

    def endpoint(self):
        return EndpointDescriptor.from_cookie(self.add)
