"""helpers shared by the spawn backends

Backends get the child's standard streams as a mapping of
{child_fd: source}, where source is a descriptor the parent opened or
STDOUT to make stderr a copy of whatever stdout ended up being. Streams
that are left out are inherited.

>>> list(get_streams({2: STDOUT, 0: 5, 1: 6}))
[(0, 5), (1, 6), (2, -2)]
>>> list(get_streams({1: 6}, std_names=True))
[('stdout', 6)]
"""

__all__ = 'STDOUT', 'STD_NAMES', 'get_streams', 'rewire', 'inheritable_fds'

import os

try:
    import fcntl
except ImportError:
    fcntl = None

STDOUT = -2
STD_NAMES = 'stdin', 'stdout', 'stderr'


def get_streams(streams, std_names=False):
    """yield (child_fd, source) pairs in the order they must be applied

    stdin, stdout and stderr always come first and in that order, so that
    a merged stderr sees stdout already in place.
    """
    for child_fd in sorted(streams):
        source = streams[child_fd]
        if source is None:
            continue
        if source == STDOUT and child_fd != 2:
            raise ValueError(f'only stderr can be merged into stdout, not fd {child_fd}')
        yield (STD_NAMES[child_fd] if std_names and child_fd < 3 else child_fd), source


def rewire(streams):
    """make the streams the child's descriptors; runs in the child before exec

    Sources that happen to sit on 0, 1 or 2 are moved out of the way
    first so that an earlier dup2() cannot clobber a later source.
    """
    pairs = list(get_streams(streams))
    moved = {}
    for child_fd, source in pairs:
        if source != STDOUT and source < 3 and source != child_fd:
            moved[child_fd] = fcntl.fcntl(source, fcntl.F_DUPFD, 3)
    for child_fd, source in pairs:
        if source == STDOUT:
            os.dup2(1, child_fd)
        elif source == child_fd:
            os.set_inheritable(source, True)
        else:
            os.dup2(moved.get(child_fd, source), child_fd)
    for fd in moved.values():
        os.close(fd)


def inheritable_fds(fd_dir='/dev/fd'):
    """the descriptors above 2 that a child would inherit right now

    >>> r, w = os.pipe(); os.set_inheritable(w, True)
    >>> w in inheritable_fds(), r in inheritable_fds()
    (True, False)
    >>> os.close(r); os.close(w)
    """
    fds = []
    for name in os.listdir(fd_dir):
        fd = int(name)
        if fd < 3:
            continue
        try:
            if os.get_inheritable(fd):
                fds.append(fd)
        except OSError:
            # the descriptor listdir() used for fd_dir itself
            continue
    return sorted(fds)
