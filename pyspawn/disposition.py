"""what happens to each standard stream of a child process

A Disposition is an immutable value. There are a few ready-made ones:

>>> DEVNULL, INHERIT, PIPE, STDOUT
(Disposition(DISCARD), Disposition(INHERIT), Disposition(PIPE), Disposition(MERGE))

and files are described with File(), which takes a path, a file
descriptor or anything with a fileno() method:

>>> File('/tmp/log')
Disposition(FILE, '/tmp/log')
>>> File(1)
Disposition(FILE, 1)

get_disposition() turns the loose values accepted by ProcessSpec into one:

>>> get_disposition(None)
Disposition(INHERIT)
>>> get_disposition('out.txt')
Disposition(FILE, 'out.txt')
>>> get_disposition(STDOUT).validate('stderr')
Disposition(MERGE)
>>> get_disposition(STDOUT).validate('stdin')
Traceback (most recent call last):
    ...
pyspawn.errors.UsageError: STDOUT can only be used for stderr, not stdin
"""

__all__ = 'Kind', 'Disposition', 'File', 'DEVNULL', 'INHERIT', 'PIPE', 'STDOUT', 'get_disposition'

import os
from enum import Enum

from .errors import UsageError

STREAM_NAMES = 'stdin', 'stdout', 'stderr'


class Kind(Enum):
    DISCARD = 'discard'
    INHERIT = 'inherit'
    PIPE = 'pipe'
    FILE = 'file'
    MERGE = 'merge'


class Disposition:
    """the fate of one standard stream"""
    __slots__ = 'kind', 'target'

    def __init__(self, kind, target=None):
        if (kind is Kind.FILE) != (target is not None):
            raise UsageError('a target is required for FILE dispositions and only for them')
        object.__setattr__(self, 'kind', kind)
        object.__setattr__(self, 'target', target)

    def __setattr__(self, name, value):
        raise AttributeError(f'{type(self).__name__} is immutable')

    def __eq__(self, other):
        if not isinstance(other, Disposition):
            return NotImplemented
        return (self.kind, self.target) == (other.kind, other.target)

    def __hash__(self):
        return hash(self.kind)

    def __repr__(self):
        if self.kind is Kind.FILE:
            return f'{type(self).__name__}({self.kind.name}, {self.target!r})'
        return f'{type(self).__name__}({self.kind.name})'

    @property
    def is_path(self):
        """whether the target must be opened by name"""
        return isinstance(self.target, (str, bytes, os.PathLike))

    def validate(self, stream):
        """check this disposition makes sense for the named stream"""
        if stream not in STREAM_NAMES:
            raise UsageError(f'unknown stream: {stream!r}')
        if self.kind is Kind.MERGE and stream != 'stderr':
            raise UsageError(f'STDOUT can only be used for stderr, not {stream}')
        return self


DEVNULL = Disposition(Kind.DISCARD)
INHERIT = Disposition(Kind.INHERIT)
PIPE = Disposition(Kind.PIPE)
STDOUT = Disposition(Kind.MERGE)


def File(target):
    """redirect a stream to a path, a file descriptor or a file-like object

    Paths are opened read-only for stdin and write/create/truncate for
    stdout and stderr at launch time. Descriptors and file objects are
    used as is and stay owned by the caller.
    """
    if isinstance(target, bool) or target is None:
        raise UsageError(f'not a file: {target!r}')
    if isinstance(target, int):
        if target < 0:
            raise UsageError(f'invalid file descriptor: {target}')
        return Disposition(Kind.FILE, target)
    if isinstance(target, (str, bytes, os.PathLike)) or hasattr(target, 'fileno'):
        return Disposition(Kind.FILE, target)
    raise UsageError(f'not sure how to redirect to {target!r} of type {type(target)}')


def get_disposition(value):
    """normalize anything accepted for stdin/stdout/stderr into a Disposition"""
    if value is None:
        return INHERIT
    if isinstance(value, Disposition):
        return value
    return File(value)
