"""running processes and how they end

A Process is what launch() returns. It knows the pid, owns the parent's end
of every pipe, and learns about termination through watchers:

>>> from pyspawn import launch, ProcessSpec
>>> p = launch(ProcessSpec(['sh', '-c', 'exit 7']))
>>> p.state
<State.RUNNING: 'running'>
>>> p.wait()
ExitStatus(EXITED, code=7)
>>> p.state, p.status.returncode
(<State.TERMINATED: 'terminated'>, 7)

Any number of watchers can be registered; the child is still reaped only
once and they all see the same status:

>>> import asyncio
>>> async def watch_twice(p):
...     seen = []
...     done = asyncio.Event()
...     def callback(process):
...         seen.append(process.status)
...         if len(seen) == 2:
...             done.set()
...     p.watch(callback); p.watch(callback)
...     await done.wait()
...     return seen
...
>>> asyncio.run(watch_twice(launch(ProcessSpec('true'))))
[ExitStatus(EXITED, code=0), ExitStatus(EXITED, code=0)]

Exiting can be requested or forced:

>>> p = launch(ProcessSpec('sleep 10'))
>>> p.request_exit()
True
>>> p.wait()
ExitStatus(SIGNALED, signal=15)
>>> p = launch(ProcessSpec('sleep 10')); p.force_exit(); p.wait()
ExitStatus(SIGNALED, signal=9)
"""

__all__ = 'State', 'ReapTicket', 'Watch', 'Process', 'Result', 'get_signal'

import asyncio
import logging
import os
import signal
from enum import Enum
from sys import platform
from threading import Event, Lock
from time import sleep

from . import posix_wait, reaper
from .cancellable import guard
from .errors import ExitAbnormal, UsageError
from .fd import FD
from .status import ExitStatus, Kind
from .sync import run_sync
from .thread import Thread

logger = logging.getLogger(__name__)

# backoff of the exit-polling thread, in seconds
POLL_MIN, POLL_MAX = 0.001, 0.05


def get_signal(sig):
    """turn a signal name or number into a signal.Signals

    >>> get_signal('term'), get_signal('SIGKILL'), get_signal(2)
    (<Signals.SIGTERM: 15>, <Signals.SIGKILL: 9>, <Signals.SIGINT: 2>)
    """
    if isinstance(sig, str):
        sig = sig.upper()
        return signal.Signals[sig if sig.startswith('SIG') else f'SIG{sig}']
    return signal.Signals(sig)


class State(Enum):
    RUNNING = 'running'
    TERMINATED = 'terminated'


class ReapTicket:
    """the right to reap one pid; claim() succeeds exactly once

    >>> ticket = ReapTicket()
    >>> ticket.claim(), ticket.claim(), ticket.claimed
    (True, False, True)
    """
    def __init__(self):
        self._lock = Lock()
        self._claimed = False

    def claim(self):
        with self._lock:
            if self._claimed:
                return False
            self._claimed = True
            return True

    @property
    def claimed(self):
        return self._claimed


class Watch:
    """one registered interest in a process's termination

    The callback runs on the loop the watch was registered on, receives the
    process and may read its status.
    """
    def __init__(self, process, callback, loop):
        self.process = process
        self.callback = callback
        self.loop = loop
        self._pidfd = None
        self._active = True

    @property
    def active(self):
        return self._active

    def _start(self):
        process = self.process
        if not process._listen(self):
            self.loop.call_soon(self._fire)
            return
        pidfd = posix_wait.open_pidfd(process.pid)
        if pidfd is not None:
            self._pidfd = FD(pidfd, 'rb')
            self.loop.add_reader(pidfd, self._on_exit)
        else:
            process._start_exit_thread()

    def _on_exit(self):
        # the pidfd only says the child exited; collecting is up to the process
        self._close_pidfd()
        self.process._collect()

    def _notify(self):
        try:
            self.loop.call_soon_threadsafe(self._fire)
        except RuntimeError:
            logger.debug('loop of %r is closed, dropping notification', self)

    def _fire(self):
        if not self._active:
            return
        self._active = False
        self._close_pidfd()
        self.callback(self.process)

    def _close_pidfd(self):
        if self._pidfd is not None and not self._pidfd.closed:
            self.loop.remove_reader(self._pidfd.fileno())
            self._pidfd.close()

    def cancel(self):
        """stop watching; the callback will not be called"""
        if not self._active:
            return
        self._active = False
        self._close_pidfd()
        self.process._unlisten(self)

    def __repr__(self):
        return f'{type(self).__name__}({self.process!r}, {self.callback!r})'


class Process:
    """a launched child process

    Use launch() to get one. The pipe streams of the child are available as
    .stdin, .stdout and .stderr when they were set up as PIPE; take_pipe()
    hands one over to the caller for good.
    """
    def __init__(self, argv, pid, pipes, backend, input=None):
        self.argv = argv
        self.pid = pid
        self.backend = backend
        self.input = input
        self._pipes = dict(pipes)
        self._pipe_names = frozenset(pipes)
        self._lock = Lock()
        self._ticket = ReapTicket()
        self._status = None
        self._terminated = Event()
        self._listeners = []
        self._exit_thread = None
        self._reaped = False

    @property
    def state(self):
        return State.RUNNING if self._status is None else State.TERMINATED

    @property
    def status(self):
        """the ExitStatus; only available once the process has terminated"""
        if self._status is None:
            raise UsageError(f'{self!r} is still running')
        return self._status

    # pipes

    def _pipe(self, name):
        if name not in self._pipe_names:
            raise UsageError(f'{name} was not set up as a PIPE')
        stream = self._pipes.get(name)
        if stream is None:
            raise UsageError(f'{name} was already taken')
        return stream

    @property
    def stdin(self):
        return self._pipe('stdin')

    @property
    def stdout(self):
        return self._pipe('stdout')

    @property
    def stderr(self):
        return self._pipe('stderr')

    @property
    def pipe_names(self):
        """the streams that were set up as PIPE, taken or not"""
        return self._pipe_names

    def has_pipe(self, name):
        return self._pipes.get(name) is not None

    def take_pipe(self, name):
        """transfer ownership of a pipe stream to the caller"""
        stream = self._pipe(name)
        self._pipes[name] = None
        return stream

    def take_stdin(self):
        return self.take_pipe('stdin')

    def take_stdout(self):
        return self.take_pipe('stdout')

    def take_stderr(self):
        return self.take_pipe('stderr')

    def close_pipes(self):
        """close the pipe streams still owned by the process"""
        for name, stream in self._pipes.items():
            if stream is not None:
                stream.close()

    # termination

    def _listen(self, watch):
        with self._lock:
            if self._status is not None:
                return False
            self._listeners.append(watch)
            return True

    def _unlisten(self, watch):
        with self._lock:
            if watch in self._listeners:
                self._listeners.remove(watch)

    def _store(self, raw):
        if raw is None:
            status = ExitStatus(None, Kind.UNKNOWN, pid=self.pid)
        else:
            status = ExitStatus.from_raw(raw, self.pid)
        with self._lock:
            self._status = status
            listeners, self._listeners = self._listeners, []
        self._terminated.set()
        logger.debug('%s', status)
        for watch in listeners:
            watch._notify()
        return status

    def _reap_locked(self, block):
        """the one destructive reap; self._lock must be held"""
        try:
            raw = self.backend.wait(self.pid) if block else self.backend.try_wait(self.pid)
        except ChildProcessError:
            logger.warning('pid %d was reaped behind our back', self.pid)
            raw = None
        else:
            if raw is None:
                return False, None
        self._reaped = True
        return True, raw

    def _collect(self):
        """reap a child known to have exited, or wait for whoever holds the ticket"""
        with self._lock:
            if self._status is not None:
                return self._status
            owner = self._ticket.claim()
            if owner:
                # it has exited, so this doesn't block
                _, raw = self._reap_locked(block=True)
        if owner:
            return self._store(raw)
        self._terminated.wait()
        return self._status

    def _try_reap(self):
        """reap the child if it has exited; never blocks"""
        with self._lock:
            if self._status is not None or self._ticket.claimed:
                return self._status
            reaped, raw = self._reap_locked(block=False)
            if not reaped:
                return None
            self._ticket.claim()
        return self._store(raw)

    def _start_exit_thread(self):
        """fall back to a thread when there's no pidfd to hand to the loop"""
        with self._lock:
            if self._exit_thread is not None or self._status is not None:
                return
            if posix_wait.HAVE_WNOWAIT:
                target = self._peek_then_collect
            else:
                target = self._poll_until_exit
            self._exit_thread = Thread(target, name=f'exit-watch-{self.pid}', daemon=True).start()

    def _peek_then_collect(self):
        posix_wait.peek(self.pid, block=True)
        return self._collect()

    def _poll_until_exit(self):
        # no way to wait without reaping: poll, so that signals can still go
        # out in between
        delay = POLL_MIN
        while self._try_reap() is None:
            if self._ticket.claimed:
                return self._terminated.wait()
            sleep(delay)
            delay = min(delay * 2, POLL_MAX)

    def watch(self, callback, loop=None):
        """call callback(process) on loop once the process has terminated

        loop defaults to the running loop. Returns a Watch that can be
        cancelled.
        """
        if loop is None:
            loop = asyncio.get_running_loop()
        watch = Watch(self, callback, loop)
        watch._start()
        return watch

    def poll(self):
        """the status if the process has terminated, else None; never blocks"""
        if self._status is None and not self._ticket.claimed:
            if not posix_wait.HAVE_WNOWAIT:
                self._try_reap()
            elif posix_wait.peek(self.pid):
                self._collect()
        return self._status

    async def wait_async(self, cancellable=None):
        """wait for the process to terminate and return its ExitStatus"""
        if self._status is not None:
            return self._status
        loop = asyncio.get_running_loop()
        future = loop.create_future()

        def on_exit(process):
            if not future.done():
                future.set_result(process.status)

        watch = self.watch(on_exit, loop)
        try:
            return await guard(future, cancellable)
        finally:
            watch.cancel()

    def wait(self, cancellable=None, timeout=None):
        """block until the process terminates; returns its ExitStatus

        timeout raises TimeoutError, cancellable raises Cancelled; neither
        does anything to the process itself.
        """
        if self._status is not None:
            return self._status
        return run_sync(_wait_for, self.wait_async(cancellable), timeout)

    def wait_check(self, cancellable=None, timeout=None):
        """wait(), then raise ExitAbnormal unless the process exited with 0"""
        status = self.wait(cancellable, timeout)
        Result(self.argv, status).check()
        return status

    def check(self):
        """raise ExitAbnormal unless the (terminated) process exited with 0"""
        Result(self.argv, self.status).check()
        return self

    def send_signal(self, sig, dead_okay=True):
        """send a signal, given by name or number, unless the process was reaped

        returns whether the signal was sent
        """
        sig = get_signal(sig)
        with self._lock:
            if self._reaped or self._status is not None:
                return False
            try:
                os.kill(self.pid, sig)
            except ProcessLookupError:
                if not dead_okay:
                    raise
                return False
        logger.debug('sent %s to pid %d', sig.name, self.pid)
        return True

    def request_exit(self):
        """ask the process to exit (SIGTERM)

        Returns whether this is supported on the platform, not whether the
        process exited.
        """
        if platform == 'win32':
            return False
        self.send_signal(signal.SIGTERM)
        return True

    def force_exit(self):
        """terminate the process immediately (SIGKILL); it still has to be waited on"""
        self.send_signal(getattr(signal, 'SIGKILL', signal.SIGTERM))

    # I/O

    async def communicate_async(self, input=None, cancellable=None, check=False):
        from .communicate import communicate
        return await communicate(self, input, cancellable, check)

    def communicate(self, input=None, cancellable=None, check=False):
        """feed input to stdin and collect stdout/stderr; returns a Result

        See pyspawn.communicate.communicate.
        """
        from .communicate import communicate
        return run_sync(communicate, self, input, cancellable, check)

    def communicate_utf8(self, input=None, cancellable=None, check=False):
        from .communicate import communicate_utf8
        return run_sync(communicate_utf8, self, input, cancellable, check)

    # lifetime

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close_pipes()
        self.wait()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_value, traceback):
        self.close_pipes()
        await self.wait_async()

    def __del__(self):
        if getattr(self, '_status', True) is not None:
            return
        with self._lock:
            if self._status is not None or not self._ticket.claim():
                return
        reaper.adopt(self.pid, self.backend.wait)

    def __repr__(self):
        return f'{type(self).__name__}({self.argv!r}, pid={self.pid})'


async def _wait_for(awaitable, timeout):
    if timeout is None:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout)
    except asyncio.TimeoutError:
        # not the builtin before 3.11
        raise TimeoutError(f'no exit within {timeout} s') from None


class Result:
    """the outcome of a process: its status and whatever output was collected

    >>> Result(['true'], ExitStatus.exited(0), b'').check()
    Result(argv=['true'], status=ExitStatus(EXITED, code=0), stdout=b'')
    >>> Result(['false'], ExitStatus.exited(1, pid=5)).check()
    Traceback (most recent call last):
        ...
    pyspawn.errors.ExitAbnormal: Child process 5 exited with code 1
    """
    def __init__(self, argv, status, stdout=None, stderr=None):
        self.argv = argv
        self.status = status
        self.stdout = stdout
        self.stderr = stderr

    def __repr__(self):
        param_str = ', '.join(
            f'{n}={repr(a)}'
            for n, a in vars(self).items()
            if a is not None
        )
        return f'{type(self).__name__}({param_str})'

    @property
    def returncode(self):
        return self.status.returncode

    def check(self):
        """raise ExitAbnormal unless the process exited with status 0"""
        if not self.status.success:
            raise ExitAbnormal(self)
        return self

