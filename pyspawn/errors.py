"""exceptions raised by pyspawn

Every failure is one of a few kinds, so callers can tell apart a process
that never started, one that ran and failed, trouble talking to it and a
cancelled operation:

>>> issubclass(SpawnError, OSError), issubclass(StreamError, OSError)
(True, True)
>>> issubclass(UsageError, ValueError)
True
>>> str(Cancelled())
'Operation was cancelled'
"""

__all__ = (
    'Error', 'UsageError', 'SpawnError', 'ExitAbnormal',
    'StreamError', 'Cancelled', 'InvalidData',
)


class Error(Exception):
    """base class for everything raised by pyspawn"""


class UsageError(Error, ValueError):
    """a precondition was violated; this is a programming error"""


class SpawnError(Error, OSError):
    """the process could not be created at all

    >>> e = SpawnError.from_os_error(FileNotFoundError(2, 'No such file', 'nope'))
    >>> e.errno, e.filename
    (2, 'nope')
    """
    @classmethod
    def from_os_error(cls, error, filename=None):
        if filename is None:
            filename = error.filename
        return cls(error.errno, error.strerror, filename)


class ExitAbnormal(Error):
    """the process ran, but did not exit successfully

    Carries the result it was raised for, including any output collected.
    """
    def __init__(self, result):
        super().__init__(result)
        self.result = result

    @property
    def status(self):
        return self.result.status

    def __str__(self):
        return str(self.result.status)


class StreamError(Error, OSError):
    """I/O with the process failed (broken pipe, device error, ...)"""
    @classmethod
    def from_os_error(cls, error, context=None):
        strerror = error.strerror or str(error)
        if context:
            strerror = f'{context}: {strerror}'
        return cls(error.errno, strerror)


class Cancelled(Error):
    """the caller's Cancellable fired during an asynchronous operation"""
    def __init__(self, message='Operation was cancelled'):
        super().__init__(message)


class InvalidData(Error, ValueError):
    """process output could not be decoded"""
