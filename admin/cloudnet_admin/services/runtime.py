import asyncio
import inspect
import logging
import threading
import time

from .console import ConsoleController
from .log_buffer import ALL

log = logging.getLogger(__name__)


class ConsoleNotOpen(LookupError):
    pass


class ConsoleHub:
    """Event-loop thread hosting every live console of the dashboard.

    Flask request threads never touch a controller directly: each operation is
    handed to the hub loop with ``call()``, so buffer and connection state are
    only mutated on that one thread. Consoles are keyed by
    ``(browser session id, scope, target)``.
    """

    def __init__(self, cfg):
        self._cfg = cfg
        self._loop = None
        self._thread = None
        self._reaper = None
        self._consoles = {}

    @property
    def running(self):
        return self._thread is not None

    def start(self):
        if self._thread is not None:
            return
        loop = asyncio.new_event_loop()
        ready = threading.Event()

        def _run():
            asyncio.set_event_loop(loop)
            loop.call_soon(ready.set)
            loop.run_forever()
            loop.close()

        self._loop = loop
        self._thread = threading.Thread(target=_run, daemon=True, name='console-hub')
        self._thread.start()
        ready.wait(timeout=5)
        if self._cfg.CONSOLE_IDLE_SECONDS > 0:
            self.call(self._start_reaper)
        log.info('Console hub started')

    def stop(self):
        if self._thread is None:
            return
        try:
            self.call(self._shutdown)
        finally:
            self._loop.call_soon_threadsafe(self._loop.stop)
            self._thread.join(timeout=5)
            self._thread = None
            self._loop = None
        log.info('Console hub stopped')

    def call(self, fn, *args):
        """Run ``fn(*args)`` on the hub loop and wait for the result."""
        if self._loop is None:
            raise RuntimeError('Console hub is not running')

        async def _invoke():
            result = fn(*args)
            if inspect.isawaitable(result):
                result = await result
            return result

        future = asyncio.run_coroutine_threadsafe(_invoke(), self._loop)
        return future.result(timeout=self._cfg.HUB_CALL_TIMEOUT)

    # ── loop-side helpers ────────────────────────────────────────────────────

    def _start_reaper(self):
        self._reaper = asyncio.get_running_loop().create_task(self._reap())

    async def _reap(self):
        idle = self._cfg.CONSOLE_IDLE_SECONDS
        while True:
            await asyncio.sleep(min(30, idle))
            cutoff = time.monotonic() - idle
            for key, controller in list(self._consoles.items()):
                if controller.last_seen < cutoff:
                    log.info('Disposing idle console %s/%s', key[1], key[2])
                    try:
                        await self._dispose(key)
                    except Exception:
                        log.exception('Failed to dispose idle console %s/%s', key[1], key[2])

    async def _shutdown(self):
        if self._reaper is not None:
            self._reaper.cancel()
            self._reaper = None
        for key in list(self._consoles):
            await self._dispose(key)

    async def _dispose(self, key):
        controller = self._consoles.pop(key, None)
        if controller is not None:
            await controller.dispose()

    def _get(self, key):
        controller = self._consoles.get(key)
        if controller is None:
            raise ConsoleNotOpen(f'No console open for {key[1]}/{key[2]}')
        return controller

    async def _open(self, key, credentials, page_origin):
        controller = self._consoles.get(key)
        if controller is None:
            _, scope, target = key
            controller = ConsoleController(scope, target, credentials, self._cfg)
            self._consoles[key] = controller
        controller.touch()
        await controller.start(page_origin)
        return controller.poll(since=controller.buffer.total)

    async def _reconnect(self, key, credentials, page_origin):
        controller = self._get(key)
        controller.touch()
        return (await controller.reconnect(credentials, page_origin)).value

    async def _send(self, key, text):
        await self._get(key).send_command(text)

    # ── thread-side API ──────────────────────────────────────────────────────

    def open(self, sid, scope, target, credentials, page_origin):
        """Create (or reuse) a console and run its seed-then-connect start."""
        return self.call(self._open, (sid, scope, target), credentials, page_origin)

    def poll(self, sid, scope, target, since=None, predicate=ALL):
        return self.call(lambda: self._get((sid, scope, target)).poll(since, predicate))

    def send(self, sid, scope, target, text):
        return self.call(self._send, (sid, scope, target), text)

    def clear(self, sid, scope, target):
        return self.call(lambda: self._get((sid, scope, target)).clear())

    def export(self, sid, scope, target):
        return self.call(lambda: self._get((sid, scope, target)).export())

    def reconnect(self, sid, scope, target, credentials, page_origin):
        return self.call(self._reconnect, (sid, scope, target), credentials, page_origin)

    def dispose(self, sid, scope, target):
        return self.call(self._dispose, (sid, scope, target))

    def dispose_session(self, sid):
        async def _dispose_all():
            for key in [k for k in self._consoles if k[0] == sid]:
                await self._dispose(key)
        return self.call(_dispose_all)
