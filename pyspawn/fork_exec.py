"""spawn backend using os.fork and os.exec

It contains spawn() and wait() like every backend. The child reports any
failure before exec back to the parent through a close-on-exec pipe, so
spawn() raises in the parent and leaves no process behind.

>>> import os
>>> from tempfile import TemporaryDirectory
>>> with TemporaryDirectory() as dir:
...     with open(f'{dir}/file', 'wb') as file:
...         os.WEXITSTATUS(wait(spawn(['pwd'], streams={1: file.fileno()}, cwd='/')))
...     with open(f'{dir}/file') as file:
...         print(file.read(), end='')
...
0
/
>>> spawn(['/nonexistent/program'])
Traceback (most recent call last):
    ...
FileNotFoundError: [Errno 2] No such file or directory: '/nonexistent/program'
"""

__all__ = 'FEATURES', 'AVAILABLE', 'spawn', 'wait', 'try_wait'

import os
from ast import literal_eval

from .pipe import Pipe
from .posix import reset_signals
from .posix_wait import try_wait, wait
from .spawn_util import rewire

AVAILABLE = hasattr(os, 'fork')
FEATURES = frozenset({'cwd', 'new_session', 'child_setup', 'close_fds'})
MAXFD = os.sysconf('SC_OPEN_MAX') if hasattr(os, 'sysconf') else 256


def spawn(
    argv, env=None, streams={},
    *, cwd=None, search_path=True, new_session=False, child_setup=None, executable=None,
    close_fds=True,
):
    executable = executable or argv[0]
    argv = list(argv)
    env = dict(os.environ if env is None else env)
    launch_pipe = Pipe()

    pid = os.fork()
    if pid:
        launch_pipe.write_fd.close()
        error = launch_pipe.read()
        if error:
            # the child has exited or is about to; don't leave a zombie
            os.waitpid(pid, 0)
            name, errno, message = error.decode(errors='replace').split('\n', maxsplit=2)
            errno = literal_eval(errno)
            if errno is not None:
                raise OSError(errno, os.strerror(errno), executable)
            raise OSError(None, f'{name} in child setup: {message}', executable)
        return pid

    try:
        launch_pipe.read_fd.close()
        reset_signals()
        if new_session:
            os.setsid()
        rewire(streams)
        if close_fds:
            # everything but 0, 1, 2 and the launch pipe
            report_fd = launch_pipe.write_fd.fileno()
            os.closerange(3, report_fd)
            os.closerange(report_fd + 1, MAXFD)
        if cwd is not None:
            os.chdir(cwd)
        if child_setup is not None:
            child_setup()
        if search_path:
            os.execvpe(executable, argv, env)
        else:
            os.execve(executable, argv, env)
        raise RuntimeError('failed to launch process')
    except BaseException as e:
        launch_pipe.write('\n'.join((
            type(e).__name__,
            repr(getattr(e, 'errno', None)),
            str(e),
        )).encode())
    finally:
        os._exit(127)
