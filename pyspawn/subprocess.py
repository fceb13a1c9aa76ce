"""spawn backend using subprocess.Popen

It contains spawn() and wait() like every backend. This is the only backend
that works on Windows. The Popen objects are kept until their process is
reaped so that subprocess never reaps on its own.

>>> import os
>>> from tempfile import TemporaryDirectory
>>> with TemporaryDirectory() as dir:
...     with open(f'{dir}/file', 'wb') as file:
...         pid = spawn(['sh', '-c', 'echo out; echo err >&2'], streams={1: file.fileno(), 2: STDOUT})
...         os.WEXITSTATUS(wait(pid))
...     with open(f'{dir}/file') as file:
...         print(file.read(), end='')
...
0
out
err
"""

__all__ = 'FEATURES', 'AVAILABLE', 'spawn', 'wait', 'try_wait'

import os
import subprocess
from subprocess import Popen
from sys import platform

from . import posix_wait
from .spawn_util import STDOUT, STD_NAMES, get_streams
from .status import ExitStatus

AVAILABLE = True
FEATURES = frozenset({'cwd', 'new_session', 'child_setup', 'close_fds'})

spawned = {}


def spawn(
    argv, env=None, streams={},
    *, cwd=None, search_path=True, new_session=False, child_setup=None, executable=None,
    close_fds=True,
):
    kwargs = dict.fromkeys(STD_NAMES)
    kwargs.update(
        (name, subprocess.STDOUT if source == STDOUT else source)
        for name, source in get_streams(streams, std_names=True)
    )

    executable = os.fspath(executable or argv[0])
    if not search_path and not os.path.dirname(executable):
        executable = os.path.join(os.curdir, executable)

    try:
        popen = Popen(
            list(argv), executable=executable, env=env, cwd=cwd,
            start_new_session=new_session, preexec_fn=child_setup, close_fds=close_fds,
            **kwargs,
        )
    except subprocess.SubprocessError as e:
        raise OSError(None, f'{e}', executable) from e
    spawned[popen.pid] = popen
    return popen.pid


def wait(pid):
    popen = spawned.pop(pid, None)
    if platform == 'win32':
        return popen.wait()
    return _settle(popen, posix_wait.wait(pid))


def try_wait(pid):
    """the raw status if pid has exited, else None; never blocks"""
    if platform == 'win32':
        status = spawned[pid].poll()
        if status is not None:
            del spawned[pid]
        return status
    status = posix_wait.try_wait(pid)
    if status is None:
        return None
    return _settle(spawned.pop(pid, None), status)


def _settle(popen, status):
    if popen is not None:
        # tell Popen it's been taken care of
        returncode = ExitStatus.from_raw(status, popen.pid).returncode
        popen.returncode = -1 if returncode is None else returncode
    return status
