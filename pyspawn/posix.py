"""POSIX-only helpers that run in the child between fork and exec

Nothing here may allocate much or take locks: the child is a copy of a
possibly multithreaded parent.
"""

__all__ = 'HAVE_PDEATHSIG', 'set_parent_death_signal', 'reset_signals', 'chain'

import ctypes
import ctypes.util
import signal
from sys import platform

PR_SET_PDEATHSIG = 1

HAVE_PDEATHSIG = platform.startswith('linux')

if HAVE_PDEATHSIG:
    _libc = ctypes.CDLL(ctypes.util.find_library('c') or 'libc.so.6', use_errno=True)
    _prctl = _libc.prctl
    _prctl.argtypes = ctypes.c_int, ctypes.c_ulong, ctypes.c_ulong, ctypes.c_ulong, ctypes.c_ulong
    _prctl.restype = ctypes.c_int


def set_parent_death_signal(sig=None):
    """have the kernel send sig (SIGKILL by default) to this process when its parent dies"""
    if not HAVE_PDEATHSIG:
        raise NotImplementedError('parent death signals need Linux')
    if sig is None:
        sig = signal.SIGKILL
    if _prctl(PR_SET_PDEATHSIG, int(sig), 0, 0, 0) != 0:
        errno = ctypes.get_errno()
        raise OSError(errno, 'prctl(PR_SET_PDEATHSIG) failed')


# Python ignores these in the parent; children expect the defaults
DEFAULT_SIGNALS = [
    sig for sig in (getattr(signal, name, None) for name in ('SIGPIPE', 'SIGXFZ', 'SIGXFSZ'))
    if sig is not None
]


def reset_signals():
    for sig in DEFAULT_SIGNALS:
        signal.signal(sig, signal.SIG_DFL)


def chain(*hooks):
    """combine child setup hooks, skipping Nones; None if there are none"""
    hooks = [hook for hook in hooks if hook is not None]
    if not hooks:
        return None
    if len(hooks) == 1:
        return hooks[0]

    def run_all():
        for hook in hooks:
            hook()
    return run_all
