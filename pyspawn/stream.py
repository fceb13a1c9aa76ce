"""asynchronous byte streams over pipes, and splicing between them

These are the parent's ends of a child's pipes. They are non-blocking and
driven by the running asyncio loop, so many of them can make progress at
the same time without threads.

>>> import asyncio
>>> from pyspawn.pipe import Pipe
>>> async def demo():
...     p = Pipe()
...     source, sink = InputStream(p.read_fd), OutputStream(p.write_fd)
...     await sink.write_all(b'spliced')
...     sink.close()
...     target = MemoryOutputStream()
...     n = await splice(target, source, SpliceFlags.CLOSE_SOURCE)
...     return n, target.getvalue(), source.closed
...
>>> asyncio.run(demo())
(7, b'spliced', True)
"""

__all__ = (
    'SpliceFlags', 'InputStream', 'OutputStream',
    'MemoryInputStream', 'MemoryOutputStream', 'splice',
)

import asyncio
import logging
import os
from enum import Flag
from errno import EBADF

from .cancellable import guard
from .errors import StreamError, UsageError
from .fd import FD

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1 << 16


class SpliceFlags(Flag):
    NONE = 0
    CLOSE_SOURCE = 1
    CLOSE_TARGET = 2


def _wake(future):
    if not future.done():
        future.set_result(None)


class _FDStream:
    """common bits of the pipe-backed streams"""
    mode = None

    def __init__(self, fd):
        self._fd = fd if isinstance(fd, FD) else FD(fd, self.mode)
        self._fd.blocking = False
        self._waiter = None
        self._loop = None

    def fileno(self):
        return self._fd.fileno()

    @property
    def closed(self):
        return self._fd.closed

    def close(self):
        """close the stream; calling it again does nothing"""
        if self._fd.closed:
            return
        if self._waiter is not None and not self._waiter.done():
            self._unregister()
            self._waiter.set_exception(StreamError(EBADF, 'Stream was closed'))
        self._fd.close()

    async def _ready(self, cancellable):
        if self._waiter is not None:
            raise UsageError(f'{self!r} already has an operation pending')
        fd = self.fileno()
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self._register(loop, fd, future)
        self._waiter, self._loop = future, loop
        try:
            await guard(future, cancellable)
        finally:
            if not self._fd.closed:
                self._unregister()
            self._waiter = self._loop = None

    def _register(self, loop, fd, future):
        raise NotImplementedError

    def _unregister(self):
        raise NotImplementedError

    def __repr__(self):
        return f'{type(self).__name__}({self._fd!r})'


class InputStream(_FDStream):
    """readable end of a pipe

    Iterating asynchronously yields chunks as they arrive, until EOF.
    """
    mode = 'rb'

    def _register(self, loop, fd, future):
        loop.add_reader(fd, _wake, future)

    def _unregister(self):
        self._loop.remove_reader(self._fd.fd)

    async def read(self, size=CHUNK_SIZE, cancellable=None):
        """read up to size bytes; b'' means EOF"""
        while True:
            try:
                return os.read(self.fileno(), size)
            except BlockingIOError:
                await self._ready(cancellable)
            except ValueError as e:
                raise StreamError(EBADF, str(e)) from e
            except OSError as e:
                raise StreamError.from_os_error(e, 'Error reading from pipe') from e

    async def read_all(self, cancellable=None):
        """read until EOF"""
        chunks = []
        async for chunk in self.iter_chunks(cancellable=cancellable):
            chunks.append(chunk)
        return b''.join(chunks)

    async def iter_chunks(self, size=CHUNK_SIZE, cancellable=None):
        while True:
            chunk = await self.read(size, cancellable)
            if not chunk:
                return
            yield chunk

    def __aiter__(self):
        return self.iter_chunks()


class OutputStream(_FDStream):
    """writable end of a pipe"""
    mode = 'wb'

    def _register(self, loop, fd, future):
        loop.add_writer(fd, _wake, future)

    def _unregister(self):
        self._loop.remove_writer(self._fd.fd)

    async def write(self, data, cancellable=None):
        """write some of data, returning how much was written"""
        while True:
            try:
                return os.write(self.fileno(), data)
            except BlockingIOError:
                await self._ready(cancellable)
            except ValueError as e:
                raise StreamError(EBADF, str(e)) from e
            except OSError as e:
                raise StreamError.from_os_error(e, 'Error writing to pipe') from e

    async def write_all(self, data, cancellable=None):
        view = memoryview(data).cast('B')
        total = 0
        while total < len(view):
            total += await self.write(view[total:total + CHUNK_SIZE], cancellable)
        return total


class MemoryInputStream:
    """readable stream over a bytes-like object

    >>> import asyncio
    >>> asyncio.run(MemoryInputStream(b'abc').read_all())
    b'abc'
    """
    def __init__(self, data=b''):
        self._view = memoryview(data).cast('B')
        self._offset = 0
        self.closed = False

    async def read(self, size=CHUNK_SIZE, cancellable=None):
        if cancellable is not None:
            cancellable.raise_if_cancelled()
        if self.closed:
            raise StreamError(EBADF, 'Stream is already closed')
        chunk = bytes(self._view[self._offset:self._offset + size])
        self._offset += len(chunk)
        return chunk

    async def read_all(self, cancellable=None):
        return await self.read(len(self._view) - self._offset, cancellable)

    def close(self):
        self.closed = True


class MemoryOutputStream:
    """growable in-memory buffer that can be spliced into"""
    def __init__(self):
        self._buffer = bytearray()
        self.closed = False

    async def write(self, data, cancellable=None):
        if cancellable is not None:
            cancellable.raise_if_cancelled()
        if self.closed:
            raise StreamError(EBADF, 'Stream is already closed')
        self._buffer += data
        return len(data)

    async def write_all(self, data, cancellable=None):
        return await self.write(data, cancellable)

    def getvalue(self):
        return bytes(self._buffer)

    def __len__(self):
        return len(self._buffer)

    def close(self):
        self.closed = True


async def splice(target, source, flags=SpliceFlags.NONE, cancellable=None):
    """copy source into target until EOF, returning the number of bytes

    Whatever the outcome, source and/or target are closed if flags say so.
    """
    total = 0
    try:
        while True:
            chunk = await source.read(CHUNK_SIZE, cancellable)
            if not chunk:
                break
            await target.write_all(chunk, cancellable)
            total += len(chunk)
        logger.debug('spliced %d bytes from %r into %r', total, source, target)
        return total
    finally:
        if SpliceFlags.CLOSE_SOURCE in flags:
            source.close()
        if SpliceFlags.CLOSE_TARGET in flags:
            target.close()
