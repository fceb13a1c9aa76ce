"""background reaping for processes nobody is waiting on anymore

When a Process is released while its child is still running, the child
still has to be reaped eventually or it lingers as a zombie. adopt() hands
it to a daemon thread that blocks in wait() so the releasing thread never
does.

>>> import os
>>> from pyspawn import posix_wait
>>> pid = os.posix_spawnp('true', ['true'], os.environ)
>>> adopt(pid, posix_wait.wait).join()
0
>>> pid in adopted
False
"""

__all__ = 'adopt', 'adopted'

import logging
from functools import partial
from threading import Lock

from .thread import Thread

logger = logging.getLogger(__name__)

adopted = set()
_lock = Lock()


def _reap(pid, wait):
    try:
        return wait(pid)
    except ChildProcessError:
        logger.warning('pid %d was reaped by someone else', pid)
    finally:
        with _lock:
            adopted.discard(pid)


def adopt(pid, wait):
    """reap pid on a daemon thread using wait(pid); returns the thread"""
    with _lock:
        adopted.add(pid)
    logger.info('handing pid %d to the background reaper', pid)
    return Thread(partial(_reap, pid, wait), name=f'reaper-{pid}', daemon=True).start()
