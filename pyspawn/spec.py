"""configuration of a process before it is launched

>>> spec = ProcessSpec('tr a-z A-Z', stdin=PIPE, stdout=PIPE)
>>> spec
ProcessSpec(['tr', 'a-z', 'A-Z'], stdin=Disposition(PIPE), stdout=Disposition(PIPE))

Things can be added bit by bit, too:

>>> spec = ProcessSpec(['printenv'])
>>> spec.append_args('HOME', 'LANG')
>>> spec.setenv('LANG', 'C')
>>> spec.child_env()['LANG']
'C'
>>> spec.argv
['printenv', 'HOME', 'LANG']

Each stream gets exactly one disposition:

>>> spec.set_stdout(PIPE)
>>> spec.set_stdout(DEVNULL)
Traceback (most recent call last):
    ...
pyspawn.errors.UsageError: stdout was already set to Disposition(PIPE)
>>> from pyspawn.disposition import STDOUT
>>> ProcessSpec('cat', stdin=STDOUT)
Traceback (most recent call last):
    ...
pyspawn.errors.UsageError: STDOUT can only be used for stderr, not stdin
"""

__all__ = 'SpawnFlags', 'ProcessSpec'

import os
from enum import Flag, auto
from shlex import split

from .disposition import DEVNULL, INHERIT, PIPE, STREAM_NAMES, Kind, get_disposition
from .errors import UsageError

DEFAULTS = dict(stdin=DEVNULL, stdout=INHERIT, stderr=INHERIT)


class SpawnFlags(Flag):
    NONE = 0
    SEARCH_PATH = auto()
    NEW_SESSION = auto()
    KILL_WITH_PARENT = auto()
    SEARCH_PATH_FROM_ENVP = auto()
    LEAVE_DESCRIPTORS_OPEN = auto()


class ProcessSpec:
    """everything needed to launch a process

    argv:   the program and its arguments; a str is run through shlex.split()
            (there is never a shell involved)
    stdin, stdout, stderr:
            a Disposition (DEVNULL, INHERIT, PIPE, STDOUT, File(...)), or a
            path, file descriptor or file-like object to redirect to;
            stdin defaults to DEVNULL, the others to INHERIT; None, here
            or in set_stdin() and friends, means the default
    cwd:    working directory of the child, None to inherit
    env:    complete environment of the child, None to inherit
    flags:  SpawnFlags; SEARCH_PATH looks argv[0] up in our PATH,
            SEARCH_PATH_FROM_ENVP in the child's, LEAVE_DESCRIPTORS_OPEN
            lets the child inherit descriptors marked inheritable
    child_setup:
            callable run in the child right before exec (POSIX only)

    A spec can be launched once; after that it is frozen.
    """
    def __init__(
        self,
        argv, stdin=None, stdout=None, stderr=None,
        *,
        cwd=None, env=None, flags=SpawnFlags.SEARCH_PATH, child_setup=None,
    ):
        if isinstance(argv, str):
            argv = split(argv)
        argv = [os.fspath(arg) for arg in argv]
        if not argv:
            raise UsageError('argv must not be empty')

        self._argv = argv
        self._argv0 = None
        self._cwd = None if cwd is None else os.fspath(cwd)
        self._env = None if env is None else dict(env)
        self._env_edited = False
        self._flags = SpawnFlags(flags)
        self._child_setup = child_setup
        self._input = None
        self._streams = {}
        self._launched = False

        for name, value in zip(STREAM_NAMES, (stdin, stdout, stderr)):
            if value is not None:
                self._set_stream(name, value)

    def _check_building(self):
        if self._launched:
            raise UsageError(f'{self!r} was already launched')

    def _set_stream(self, name, value):
        self._check_building()
        if value is None:
            value = DEFAULTS[name]
        disposition = get_disposition(value).validate(name)
        if name in self._streams:
            raise UsageError(f'{name} was already set to {self._streams[name]}')
        self._streams[name] = disposition

    @property
    def argv(self):
        return list(self._argv)

    @property
    def executable(self):
        """what gets executed: argv[0], even if set_argv0() was used"""
        return self._argv[0]

    @property
    def child_argv(self):
        """the argv the child sees"""
        if self._argv0 is None:
            return self.argv
        return [self._argv0] + self._argv[1:]

    @property
    def cwd(self):
        return self._cwd

    @property
    def flags(self):
        return self._flags

    @property
    def child_setup(self):
        return self._child_setup

    @property
    def input(self):
        """data to feed to stdin, if set_input() was used"""
        return self._input

    @property
    def launched(self):
        return self._launched

    def disposition(self, name):
        """the effective disposition of stdin, stdout or stderr"""
        return self._streams.get(name, DEFAULTS[name])

    @property
    def dispositions(self):
        return {name: self.disposition(name) for name in STREAM_NAMES}

    def child_env(self):
        """the environment for the child; None means inherit"""
        return None if self._env is None else dict(self._env)

    def append_args(self, *args):
        self._check_building()
        self._argv.extend(os.fspath(arg) for arg in args)

    def set_argv0(self, name):
        """run argv[0], but have the child see name as its argv[0]"""
        self._check_building()
        self._argv0 = os.fspath(name)

    def set_cwd(self, cwd):
        self._check_building()
        self._cwd = None if cwd is None else os.fspath(cwd)

    def set_flags(self, flags):
        self._check_building()
        self._flags = SpawnFlags(flags)

    def set_child_setup(self, child_setup):
        self._check_building()
        self._child_setup = child_setup

    def set_stdin(self, value):
        self._set_stream('stdin', value)

    def set_stdout(self, value):
        self._set_stream('stdout', value)

    def set_stderr(self, value):
        self._set_stream('stderr', value)

    def set_input(self, data):
        """feed data (bytes or str) to the child's stdin, which becomes a PIPE

        >>> spec = ProcessSpec('cat'); spec.set_input('abc'); spec.input, spec.disposition('stdin')
        (b'abc', Disposition(PIPE))
        """
        if isinstance(data, str):
            data = data.encode()
        data = bytes(memoryview(data))
        self.set_stdin(PIPE)
        self._input = data

    def setenv(self, name, value, overwrite=True):
        """set a variable in the child's environment (a copy of ours by default)"""
        self._check_building()
        self._edit_env()
        if overwrite or name not in self._env:
            self._env[name] = value

    def unsetenv(self, name):
        self._check_building()
        self._edit_env()
        self._env.pop(name, None)

    def _edit_env(self):
        if self._env is not None and not self._env_edited:
            raise UsageError('cannot edit an environment that was replaced wholesale')
        if self._env is None:
            self._env = dict(os.environ)
        self._env_edited = True

    def set_environment(self, env):
        """replace the child's environment entirely

        >>> spec = ProcessSpec('env'); spec.unsetenv('HOME'); spec.set_environment({})
        Traceback (most recent call last):
            ...
        pyspawn.errors.UsageError: cannot replace an environment that was already edited
        """
        self._check_building()
        if self._env_edited:
            raise UsageError('cannot replace an environment that was already edited')
        self._env = dict(env)

    def freeze(self):
        """mark the spec as launched; a second call is a UsageError"""
        self._check_building()
        validate(self)
        self._launched = True

    def __repr__(self):
        params = [repr(self.argv)] + [
            f'{name}={disposition}'
            for name, disposition in self._streams.items()
        ]
        if self._cwd is not None:
            params.append(f'cwd={self._cwd!r}')
        return f'{type(self).__name__}({", ".join(params)})'


def validate(spec):
    """check a spec for combinations that can't work, without touching the OS"""
    for name, disposition in spec.dispositions.items():
        disposition.validate(name)
    if spec.input is not None and spec.disposition('stdin').kind is not Kind.PIPE:
        raise UsageError('input needs stdin to be a PIPE')
    if spec.child_setup is not None and not callable(spec.child_setup):
        raise UsageError('child_setup must be callable')
