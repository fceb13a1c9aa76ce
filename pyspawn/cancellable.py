"""cancellation tokens

A Cancellable is handed to asynchronous operations; cancelling it aborts
whatever is in flight and makes the operation raise Cancelled. It may be
cancelled from any thread.

>>> c = Cancellable()
>>> calls = []
>>> handle = c.connect(lambda: calls.append('first'))
>>> c.cancel(); c.cancel()
>>> calls, c.cancelled
(['first'], True)

Callbacks connected after the fact run immediately:

>>> _ = c.connect(lambda: calls.append('late'))
>>> calls
['first', 'late']
>>> c.raise_if_cancelled()
Traceback (most recent call last):
    ...
pyspawn.errors.Cancelled: Operation was cancelled
"""

__all__ = 'Cancellable', 'guard'

import asyncio
import itertools
import logging
from threading import Lock

from .errors import Cancelled

logger = logging.getLogger(__name__)


class Cancellable:
    """a thread-safe, one-shot cancellation token"""
    def __init__(self):
        self._lock = Lock()
        self._cancelled = False
        self._callbacks = {}
        self._ids = itertools.count(1)

    @property
    def cancelled(self):
        return self._cancelled

    def cancel(self):
        """fire the token; only the first call has any effect"""
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            callbacks = list(self._callbacks.values())
            self._callbacks.clear()
        logger.debug('cancelling %r (%d callbacks)', self, len(callbacks))
        for callback in callbacks:
            callback()

    def connect(self, callback):
        """run callback() on cancellation; returns an id for disconnect()"""
        with self._lock:
            if not self._cancelled:
                handle = next(self._ids)
                self._callbacks[handle] = callback
                return handle
        callback()
        return 0

    def disconnect(self, handle):
        with self._lock:
            self._callbacks.pop(handle, None)

    def raise_if_cancelled(self):
        if self._cancelled:
            raise Cancelled()


async def guard(awaitable, cancellable=None):
    """await something, turning a fired cancellable into Cancelled

    The awaitable is wrapped in a future on the running loop; cancelling
    the token (from any thread) cancels that future.
    """
    future = asyncio.ensure_future(awaitable)
    if cancellable is None:
        return await future
    if cancellable.cancelled:
        future.cancel()
        raise Cancelled()
    loop = asyncio.get_running_loop()

    def on_cancel():
        if not loop.is_closed():
            loop.call_soon_threadsafe(future.cancel)

    handle = cancellable.connect(on_cancel)
    try:
        return await future
    except asyncio.CancelledError:
        if cancellable.cancelled:
            raise Cancelled() from None
        raise
    finally:
        cancellable.disconnect(handle)
