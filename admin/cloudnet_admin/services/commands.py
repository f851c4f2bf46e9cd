import asyncio
import logging

from ..errors import CommandFailure, ConsoleError
from .rest import rest_call

log = logging.getLogger(__name__)


class CommandChannel:
    """One-shot command submission; output, if any, shows up on the stream."""

    def __init__(self, credentials, cfg):
        self.credentials = credentials
        self._cfg = cfg

    async def send(self, target, text):
        if not (text or '').strip():
            raise CommandFailure('Empty command')
        path = self._cfg.EXECUTE_PATH.format(id=target)
        try:
            await asyncio.to_thread(
                rest_call, path, self.credentials, self._cfg,
                method='POST', data={'command': text}, expect_body=False,
            )
        except ConsoleError as e:
            log.warning('Command to %s rejected: %s', target, e)
            raise CommandFailure(str(e)) from e
