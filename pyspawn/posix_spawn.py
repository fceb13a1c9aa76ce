"""spawn backend using os.posix_spawn

It contains spawn() and wait() like every backend. posix_spawn cannot
change directory or run Python code in the child, which FEATURES says.
Inheritable descriptors are closed by listing /dev/fd, so without it
the child keeps them.

>>> import os
>>> from tempfile import TemporaryDirectory
>>> with TemporaryDirectory() as dir:
...     with open(f'{dir}/file', 'wb') as file:
...         os.WEXITSTATUS(wait(spawn(['echo', 'hello world'], streams={1: file.fileno()})))
...     with open(f'{dir}/file') as file:
...         print(file.read(), end='')
...
0
hello world
"""

__all__ = 'FEATURES', 'AVAILABLE', 'spawn', 'wait', 'try_wait'

import os

from .posix import DEFAULT_SIGNALS
from .posix_wait import try_wait, wait
from .spawn_util import STDOUT, get_streams, inheritable_fds

AVAILABLE = hasattr(os, 'posix_spawnp')
# closing inherited descriptors means finding them first
FD_DIR = '/dev/fd'
FEATURES = frozenset({'new_session'} | ({'close_fds'} if os.path.isdir(FD_DIR) else set()))


def spawn(
    argv, env=None, streams={},
    *, cwd=None, search_path=True, new_session=False, child_setup=None, executable=None,
    close_fds=True,
):
    """spawn a process and return its pid

    >>> from time import time
    >>> start = time(); pid = spawn(['sleep', '0.2']); wait(pid); print(time() - start >= 0.2)
    0
    True
    """
    if cwd is not None:
        raise NotImplementedError('posix_spawn cannot change the working directory')
    if child_setup is not None:
        raise NotImplementedError('posix_spawn cannot run child setup hooks')

    if env is None:
        env = os.environ

    file_actions = [
        (os.POSIX_SPAWN_DUP2, 1 if source == STDOUT else source, child_fd)
        for child_fd, source in get_streams(streams)
    ]
    if close_fds:
        file_actions.extend((os.POSIX_SPAWN_CLOSE, fd) for fd in inheritable_fds(FD_DIR))

    kwargs = dict(file_actions=file_actions, setsigdef=DEFAULT_SIGNALS)
    if new_session:
        kwargs['setsid'] = True

    spawn = os.posix_spawnp if search_path else os.posix_spawn
    return spawn(executable or argv[0], list(argv), env, **kwargs)
