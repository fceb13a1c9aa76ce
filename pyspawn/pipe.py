__all__ = 'Pipe',

import os

from .fd import FD


class Pipe:
    """wrapper around os.pipe

    Both ends are owned FDs and are not inherited by children unless they
    are explicitly wired to a standard stream.

    >>> p = Pipe()
    >>> p.write(b'hello')
    5
    >>> p.read()
    b'hello'
    >>> p.read_fd.closed and p.write_fd.closed
    True
    """
    def __init__(self):
        r, w = os.pipe()
        self.read_fd = FD(r, 'rb')
        self.write_fd = FD(w, 'wb')

    def ends(self, stream):
        """return (parent end, child end) for a child's standard stream

        The child reads from stdin and writes to stdout/stderr:

        >>> p = Pipe()
        >>> parent, child = p.ends('stdin')
        >>> parent is p.write_fd, child is p.read_fd
        (True, True)
        >>> p.close()
        """
        if stream == 'stdin':
            return self.write_fd, self.read_fd
        return self.read_fd, self.write_fd

    def close(self):
        for fd in self.read_fd, self.write_fd:
            fd.close()

    def write(self, data):
        """write all of data to the write end and close it"""
        with self.write_fd.open() as file:
            return file.write(data)

    def read(self):
        """read the read end until EOF and close it"""
        with self.read_fd.open() as file:
            return file.read()

    def __repr__(self):
        return f'{type(self).__name__}()<{self.read_fd}, {self.write_fd}>'
