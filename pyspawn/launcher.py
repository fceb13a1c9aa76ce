"""turning a ProcessSpec into a running Process

>>> from pyspawn.spec import ProcessSpec
>>> from pyspawn.disposition import PIPE
>>> p = launch(ProcessSpec(['echo', 'hi'], stdout=PIPE))
>>> p.communicate().stdout
b'hi\\n'

The backend is picked per launch: the first one in order of preference
whose FEATURES cover everything the spec asks for. posix_spawn is the
cheapest, but it can't do everything:

>>> sorted(get_backend('posix_spawn').FEATURES), sorted(get_backend('fork_exec').FEATURES)
(['close_fds', 'new_session'], ['child_setup', 'close_fds', 'cwd', 'new_session'])

A default can be forced with PYSPAWN_BACKEND=name in the environment or
with change_default_backend().
"""

__all__ = 'BACKENDS', 'get_backend', 'change_default_backend', 'needed_features', 'find_executable', 'launch'

import logging
import os
import shutil
from errno import ENOENT
from sys import platform

from .disposition import STREAM_NAMES, Kind
from .errors import SpawnError, UsageError
from .fd import FD
from .pipe import Pipe
from .posix import HAVE_PDEATHSIG, chain, set_parent_death_signal
from .process import Process
from .spawn_util import STDOUT
from .spec import ProcessSpec, SpawnFlags
from .stream import InputStream, OutputStream

logger = logging.getLogger(__name__)

if platform == 'win32':
    BACKENDS = 'subprocess',
else:
    BACKENDS = 'posix_spawn', 'subprocess', 'fork_exec'


def get_backend(name='default', features=()):
    """get a backend module by name

    'default' is whatever change_default_backend() or PYSPAWN_BACKEND set,
    otherwise the preferred available backend providing features.
    """
    if name == 'subprocess':
        from . import subprocess as backend
        return backend
    if name == 'posix_spawn':
        from . import posix_spawn as backend
        return backend
    if name == 'fork_exec':
        from . import fork_exec as backend
        return backend
    if name == 'default':
        if get_backend.default is not None:
            return get_backend.default
        features = frozenset(features)
        for candidate in BACKENDS:
            backend = get_backend(candidate)
            if backend.AVAILABLE and features <= backend.FEATURES:
                return backend
        raise UsageError(f'no backend can do all of: {", ".join(sorted(features))}')
    raise UsageError(f'unknown backend: {name}')


get_backend.default = None
if 'PYSPAWN_BACKEND' in os.environ:
    get_backend.default = get_backend(os.environ['PYSPAWN_BACKEND'])


def change_default_backend(name_or_namespace):
    """force a backend for every launch; None goes back to picking one per launch"""
    if name_or_namespace is None or isinstance(name_or_namespace, str) and name_or_namespace == 'default':
        get_backend.default = None
    elif isinstance(name_or_namespace, str):
        get_backend.default = get_backend(name_or_namespace)
    else:
        name_or_namespace.spawn
        name_or_namespace.wait
        name_or_namespace.try_wait
        get_backend.default = name_or_namespace
    return get_backend.default


def needed_features(spec):
    """the backend features a spec depends on

    >>> sorted(needed_features(ProcessSpec('ls', cwd='/', flags=SpawnFlags.NEW_SESSION)))
    ['close_fds', 'cwd', 'new_session']
    """
    features = set()
    if spec.cwd is not None:
        features.add('cwd')
    if spec.child_setup is not None or SpawnFlags.KILL_WITH_PARENT in spec.flags:
        features.add('child_setup')
    if SpawnFlags.NEW_SESSION in spec.flags:
        features.add('new_session')
    if SpawnFlags.LEAVE_DESCRIPTORS_OPEN not in spec.flags:
        features.add('close_fds')
    return features


def find_executable(spec):
    """the program to run: argv[0], looked up in PATH if the flags say so

    SEARCH_PATH uses our PATH, SEARCH_PATH_FROM_ENVP the child's (and
    ours if the child has none). Every backend gets the result, so they
    all find the same program.

    >>> find_executable(ProcessSpec('sh')) == shutil.which('sh')
    True
    >>> find_executable(ProcessSpec('sh', flags=SpawnFlags.NONE))
    'sh'
    >>> find_executable(ProcessSpec('./sh'))
    './sh'
    >>> find_executable(ProcessSpec('no-such-program-here'))
    Traceback (most recent call last):
        ...
    pyspawn.errors.SpawnError: [Errno 2] No such file or directory: 'no-such-program-here'
    """
    executable = spec.executable
    flags = spec.flags
    if os.path.dirname(executable) or not flags & (SpawnFlags.SEARCH_PATH | SpawnFlags.SEARCH_PATH_FROM_ENVP):
        return executable

    path = None
    if SpawnFlags.SEARCH_PATH_FROM_ENVP in flags:
        env = spec.child_env()
        path = (os.environ if env is None else env).get('PATH')
    if path is None:
        path = os.environ.get('PATH', os.defpath)
    found = shutil.which(executable, path=path)
    if found is None:
        raise SpawnError(ENOENT, os.strerror(ENOENT), executable)
    return found


def _backend_name(backend):
    return getattr(backend, '__name__', repr(backend))


def _open(name, disposition, parents, opened):
    """the source for one of the child's streams; parent ends go in parents"""
    kind = disposition.kind
    if kind is Kind.INHERIT:
        return None
    if kind is Kind.MERGE:
        return STDOUT
    if kind is Kind.PIPE:
        parent, child = Pipe().ends(name)
        parents[name] = parent
        opened.append(child)
        return child.fileno()

    if kind is Kind.DISCARD:
        target = os.devnull
    elif disposition.is_path:
        target = disposition.target
    elif isinstance(disposition.target, int):
        return disposition.target
    else:
        return disposition.target.fileno()

    flags = os.O_RDONLY if name == 'stdin' else os.O_WRONLY | os.O_CREAT | os.O_TRUNC
    try:
        fd = FD(os.open(target, flags, 0o666), 'rb' if name == 'stdin' else 'wb')
    except OSError as e:
        raise SpawnError.from_os_error(e, target) from e
    opened.append(fd)
    return fd.fileno()


def launch(spec, backend='default'):
    """start the process described by spec

    The spec is frozen by this. Pipes are set up, the child is spawned
    and the child's ends of everything are closed in the parent again;
    on failure nothing is left open.

    >>> launch(ProcessSpec('/nonexistent/program'))
    Traceback (most recent call last):
        ...
    pyspawn.errors.SpawnError: [Errno 2] No such file or directory: '/nonexistent/program'
    """
    if not isinstance(spec, ProcessSpec):
        raise UsageError(f'expected a ProcessSpec, not {type(spec)}')
    spec.freeze()

    features = needed_features(spec)
    if isinstance(backend, str):
        backend = get_backend(backend, features)
    missing = features - getattr(backend, 'FEATURES', features)
    if missing:
        raise UsageError(f'{_backend_name(backend)} cannot do: {", ".join(sorted(missing))}')

    child_setup = spec.child_setup
    if SpawnFlags.KILL_WITH_PARENT in spec.flags:
        if not HAVE_PDEATHSIG:
            raise UsageError('KILL_WITH_PARENT is only supported on Linux')
        child_setup = chain(set_parent_death_signal, child_setup)

    executable = find_executable(spec)

    streams, parents, opened = {}, {}, []
    try:
        for child_fd, name in enumerate(STREAM_NAMES):
            streams[child_fd] = _open(name, spec.disposition(name), parents, opened)
        try:
            pid = backend.spawn(
                spec.child_argv, spec.child_env(), streams,
                cwd=spec.cwd,
                search_path=False,
                new_session=SpawnFlags.NEW_SESSION in spec.flags,
                child_setup=child_setup,
                executable=executable,
                close_fds=SpawnFlags.LEAVE_DESCRIPTORS_OPEN not in spec.flags,
            )
        except OSError as e:
            raise SpawnError.from_os_error(e) from e
    except BaseException:
        for fd in parents.values():
            fd.close()
        raise
    finally:
        for fd in opened:
            fd.close()

    logger.debug('launched %r as pid %d using %s', spec, pid, _backend_name(backend))
    pipes = {
        name: (OutputStream if name == 'stdin' else InputStream)(fd)
        for name, fd in parents.items()
    }
    return Process(spec.argv, pid, pipes, backend, input=spec.input)
