from doctest import testmod, ELLIPSIS
import pyspawn
from . import (
    errors, disposition, status, spec, fd, pipe, thread, cancellable, stream, spawn_util,
    posix_wait, posix_spawn, fork_exec, subprocess, reaper, process, launcher,
    communicate, sync, util,
)
from .launcher import change_default_backend, get_backend

print('checking building blocks...')
for mod in errors, disposition, status, spec, fd, pipe, thread, cancellable, stream, spawn_util, sync:
    print(f'\t{mod.__name__}...')
    testmod(mod)
print()

print('checking backends...')
for mod in posix_wait, posix_spawn, fork_exec, subprocess, reaper:
    print(f'\t{mod.__name__}...')
    testmod(mod)
print()

for backend in 'posix_spawn', 'fork_exec', 'subprocess':
    change_default_backend(backend)
    print(f'with backend {get_backend.default.__name__}...')
    for mod in process, launcher, communicate, util, pyspawn:
        print(f'\t{mod.__name__}...')
        testmod(mod, optionflags=ELLIPSIS)
    print()
