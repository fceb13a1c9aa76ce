"""shared fixtures for the pyspawn tests"""

import os
import sys

import pytest

from pyspawn import posix_wait
from pyspawn.launcher import BACKENDS, get_backend

AVAILABLE_BACKENDS = [name for name in BACKENDS if get_backend(name).AVAILABLE]


def open_fds():
    """the number of descriptors this process has open"""
    return len(os.listdir('/proc/self/fd'))


@pytest.fixture(params=AVAILABLE_BACKENDS)
def backend(request):
    """every spawn backend this platform has"""
    return get_backend(request.param)


@pytest.fixture
def python():
    """argv prefix running a snippet with the current interpreter"""
    return [sys.executable, '-c']


class CountingBackend:
    """wraps a backend and counts destructive reaps"""

    def __init__(self, backend):
        self.backend = backend
        self.FEATURES = backend.FEATURES
        self.reaps = []

    def spawn(self, *args, **kwargs):
        return self.backend.spawn(*args, **kwargs)

    def wait(self, pid):
        self.reaps.append(pid)
        return self.backend.wait(pid)

    def try_wait(self, pid):
        status = self.backend.try_wait(pid)
        if status is not None:
            self.reaps.append(pid)
        return status


@pytest.fixture
def counting_backend(backend):
    return CountingBackend(backend)


@pytest.fixture
def fd_count():
    """call it to count open descriptors; compare before and after"""
    return open_fds


# (pidfd, waitid(WNOWAIT)) for each way of finding out about an exit
EXIT_STRATEGIES = {
    'pidfd': (True, True),
    'peek-thread': (False, True),
    'poll-thread': (False, False),
}


@pytest.fixture(params=list(EXIT_STRATEGIES))
def exit_strategy(request, monkeypatch):
    """pretend the platform only has what one exit strategy needs"""
    have_pidfd, have_wnowait = EXIT_STRATEGIES[request.param]
    if have_pidfd and not posix_wait.HAVE_PIDFD:
        pytest.skip('no pidfd_open() here')
    if have_wnowait and not posix_wait.HAVE_WNOWAIT:
        pytest.skip('no waitid(WNOWAIT) here')
    monkeypatch.setattr(posix_wait, 'HAVE_PIDFD', have_pidfd)
    monkeypatch.setattr(posix_wait, 'HAVE_WNOWAIT', have_wnowait)
    return request.param
