"""low-level exit notification: peek at, reap and get notified about children

peek() uses waitid(WNOWAIT) where the platform has it, so finding out that a
child died leaves it in the process table; reap() is the one destructive
call and must happen exactly once per child.

>>> import os
>>> pid = os.posix_spawnp('sh', ['sh', '-c', 'exit 3'], os.environ)
>>> peek(pid, block=True)
True
>>> peek(pid)
True
>>> os.WEXITSTATUS(reap(pid))
3
"""

__all__ = 'HAVE_WNOWAIT', 'HAVE_PIDFD', 'peek', 'reap', 'wait', 'try_wait', 'open_pidfd'

import logging
import os

logger = logging.getLogger(__name__)

HAVE_WNOWAIT = hasattr(os, 'waitid') and hasattr(os, 'WNOWAIT')
HAVE_PIDFD = hasattr(os, 'pidfd_open')


def peek(pid, block=False):
    """check whether pid has exited without reaping it

    Only available where HAVE_WNOWAIT is set.
    """
    flags = os.WEXITED | os.WNOWAIT
    if not block:
        flags |= os.WNOHANG
    try:
        result = os.waitid(os.P_PID, pid, flags)
    except ChildProcessError:
        # someone else reaped it
        return True
    return result is not None and result.si_pid == pid


def reap(pid, block=True):
    """collect the raw status of pid, or None if it is still running"""
    pid_, status = os.waitpid(pid, 0 if block else os.WNOHANG)
    if pid_ == 0:
        return None
    if pid_ != pid:
        raise RuntimeError(f'pid is {pid_}, expected {pid}')
    logger.debug('reaped pid %d with status 0x%04x', pid, status)
    return status


def wait(pid):
    """wait on a pid to complete and return its raw status

    >>> from pyspawn.status import ExitStatus
    >>> pid = os.posix_spawnp('sleep', ['sleep', '0.1'], os.environ)
    >>> ExitStatus.from_raw(wait(pid))
    ExitStatus(EXITED, code=0)
    """
    return reap(pid, block=True)


def try_wait(pid):
    """the raw status of pid if it has exited, else None; never blocks

    >>> pid = os.posix_spawnp('sleep', ['sleep', '10'], os.environ)
    >>> try_wait(pid) is None
    True
    >>> os.kill(pid, 9); os.WTERMSIG(wait(pid))
    9
    """
    return reap(pid, block=False)


def open_pidfd(pid):
    """a descriptor that becomes readable when pid exits, or None"""
    if not HAVE_PIDFD:
        return None
    try:
        return os.pidfd_open(pid)
    except OSError as e:
        logger.debug('pidfd_open(%d) failed: %s', pid, e)
        return None
