__all__ = 'FD',

import os
from errno import EBADF


class FD:
    """file descriptor wrapper

    A glorified integer that knows whether it owns the descriptor and closes
    it exactly once.

    >>> from os import pipe
    >>> r, w = pipe()
    >>> rfd, wfd = FD(r, 'rb'), FD(w, 'wb')
    >>> with wfd.open() as file: file.write(b'test')
    ...
    4
    >>> wfd.closed
    True
    >>> with rfd.open() as file: file.read()
    ...
    b'test'
    >>> rfd.closed
    True
    >>> rfd.close(); rfd.close()

    Descriptors that are not owned are never closed:

    >>> FD(1, 'wb', owned=False).close()
    >>> os.fstat(1) is not None
    True
    """
    def __init__(self, fd, mode='rb', owned=True):
        self.fd = int(fd)
        self.mode = mode
        self.owned = owned
        self._closed = False

    def fileno(self):
        if self._closed:
            raise ValueError(f'{self!r} is closed')
        return self.fd

    def open(self):
        """wrap in a file object, which takes over ownership"""
        file = open(self.fileno(), self.mode, closefd=self.owned)
        self.detach()
        return file

    def detach(self):
        """give up ownership without closing"""
        fd = self.fileno()
        self._closed = True
        return fd

    def close(self):
        if self._closed:
            return
        self._closed = True
        if not self.owned:
            return
        try:
            os.close(self.fd)
        except OSError as e:
            if e.errno != EBADF:
                raise

    @property
    def closed(self):
        return self._closed

    @property
    def blocking(self):
        return os.get_blocking(self.fileno())

    @blocking.setter
    def blocking(self, value):
        os.set_blocking(self.fileno(), value)

    def __repr__(self):
        return f'{type(self).__name__}({self.fd}, {repr(self.mode)})'

    def __int__(self):
        return self.fileno()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, exc_traceback):
        self.close()

    def __del__(self):
        if not getattr(self, '_closed', True) and self.owned:
            self.close()
