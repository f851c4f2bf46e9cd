import enum

from .session import Scheme


class Verdict(enum.Enum):
    ALLOWED = 'allowed'
    BLOCKED = 'blocked'


def approve(endpoint, page_origin):
    """Allow the socket only when page and endpoint agree on http vs https.

    Browsers refuse mixed active content, so a mismatch is a hard stop.
    """
    if Scheme.of(page_origin) is endpoint.declared_scheme:
        return Verdict.ALLOWED
    return Verdict.BLOCKED


def socket_scheme(endpoint):
    return 'wss' if endpoint.declared_scheme is Scheme.HTTPS else 'ws'
