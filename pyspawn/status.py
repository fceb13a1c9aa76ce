"""decoding of raw wait statuses

>>> ExitStatus.exited(3)
ExitStatus(EXITED, code=3)
>>> ExitStatus.exited(3).returncode
3
>>> s = ExitStatus.signaled(9)
>>> s, s.returncode, s.success
(ExitStatus(SIGNALED, signal=9), -9, False)
>>> print(ExitStatus.exited(1, pid=12))
Child process 12 exited with code 1

On POSIX the raw value from waitpid() is decoded:

>>> ExitStatus.from_raw(0x0100)
ExitStatus(EXITED, code=1)
>>> ExitStatus.from_raw(0x0009)
ExitStatus(SIGNALED, signal=9)
>>> ExitStatus.from_raw(0x137f)
ExitStatus(STOPPED, signal=19)
"""

__all__ = 'Kind', 'ExitStatus'

import os
from enum import Enum
from sys import platform


class Kind(Enum):
    EXITED = 'exited'
    SIGNALED = 'signaled'
    STOPPED = 'stopped'
    UNKNOWN = 'unknown'


class ExitStatus:
    """how a child process ended

    Exactly one of code (EXITED) or signal (SIGNALED, STOPPED) is set;
    UNKNOWN has neither.
    """
    __slots__ = 'raw', 'kind', 'code', 'signal', 'pid'

    def __init__(self, raw, kind, code=None, signal=None, pid=None):
        self.raw = raw
        self.kind = kind
        self.code = code
        self.signal = signal
        self.pid = pid

    @classmethod
    def from_raw(cls, raw, pid=None):
        """decode a platform status (waitpid() on POSIX, exit code on Windows)"""
        if platform == 'win32':
            return cls(raw, Kind.EXITED, code=raw, pid=pid)
        if os.WIFEXITED(raw):
            return cls(raw, Kind.EXITED, code=os.WEXITSTATUS(raw), pid=pid)
        if os.WIFSIGNALED(raw):
            return cls(raw, Kind.SIGNALED, signal=os.WTERMSIG(raw), pid=pid)
        if os.WIFSTOPPED(raw):
            return cls(raw, Kind.STOPPED, signal=os.WSTOPSIG(raw), pid=pid)
        return cls(raw, Kind.UNKNOWN, pid=pid)

    @classmethod
    def exited(cls, code, pid=None):
        return cls(code << 8, Kind.EXITED, code=code, pid=pid)

    @classmethod
    def signaled(cls, signal, pid=None):
        return cls(signal, Kind.SIGNALED, signal=signal, pid=pid)

    @property
    def success(self):
        return self.kind is Kind.EXITED and self.code == 0

    @property
    def returncode(self):
        """subprocess-style: the exit code, or minus the signal number"""
        if self.kind is Kind.EXITED:
            return self.code
        if self.signal is not None:
            return -self.signal
        return None

    def check(self):
        """raise ExitAbnormal unless the process exited with status 0"""
        if not self.success:
            from .process import Result
            from .errors import ExitAbnormal
            raise ExitAbnormal(Result(None, self))
        return self

    def __eq__(self, other):
        if not isinstance(other, ExitStatus):
            return NotImplemented
        return (self.kind, self.code, self.signal) == (other.kind, other.code, other.signal)

    def __hash__(self):
        return hash((self.kind, self.code, self.signal))

    def __repr__(self):
        if self.kind is Kind.EXITED:
            detail = f', code={self.code}'
        elif self.signal is not None:
            detail = f', signal={self.signal}'
        else:
            detail = f', raw={self.raw}'
        return f'{type(self).__name__}({self.kind.name}{detail})'

    def __str__(self):
        who = 'Child process' if self.pid is None else f'Child process {self.pid}'
        if self.kind is Kind.EXITED:
            return f'{who} exited with code {self.code}'
        if self.kind is Kind.SIGNALED:
            return f'{who} killed by signal {self.signal}'
        if self.kind is Kind.STOPPED:
            return f'{who} stopped by signal {self.signal}'
        return f'{who} exited abnormally'
