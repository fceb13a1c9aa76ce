r"""pyspawn - launch child processes and talk to them, with asyncio underneath

A process is described by a ProcessSpec and started with launch():

>>> spec = ProcessSpec(['cat'], stdin=PIPE, stdout=PIPE)
>>> p = launch(spec)
>>> p.communicate(b'hello, world!')
Result(argv=['cat'], status=ExitStatus(EXITED, code=0), stdout=b'hello, world!')

Each standard stream gets one disposition: DEVNULL, INHERIT, PIPE,
STDOUT (stderr only) or File(path, descriptor or file object). stdin
defaults to DEVNULL, stdout and stderr are inherited.

>>> run('sh -c "echo out; echo err >&2"', stdout=PIPE, stderr=STDOUT).stdout
b'out\nerr\n'

Exit statuses are decoded and can be checked:

>>> run('false').status
ExitStatus(EXITED, code=1)
>>> run('false', check=True)  # doctest: +ELLIPSIS
Traceback (most recent call last):
    ...
pyspawn.errors.ExitAbnormal: Child process ... exited with code 1

Everything that blocks has an asynchronous variant that doesn't, and those
can be cancelled with a Cancellable:

>>> import asyncio
>>> async def main():
...     p = launch(ProcessSpec('sleep 10'))
...     token = Cancellable()
...     asyncio.get_running_loop().call_later(0.1, token.cancel)
...     try:
...         await p.wait_async(token)
...     except Cancelled:
...         p.force_exit()
...     return await p.wait_async()
...
>>> asyncio.run(main())
ExitStatus(SIGNALED, signal=9)

Output that's meant to be text:

>>> launch(ProcessSpec('tr a-z A-Z', stdin=PIPE, stdout=PIPE)).communicate_utf8('abc').stdout
'ABC'
"""

from .errors import *  # noqa: F401 F403
from .disposition import DEVNULL, INHERIT, PIPE, STDOUT, Disposition, File  # noqa: F401
from .status import ExitStatus  # noqa: F401
from .spec import ProcessSpec, SpawnFlags  # noqa: F401
from .cancellable import Cancellable  # noqa: F401
from .stream import InputStream, OutputStream, MemoryInputStream, MemoryOutputStream, SpliceFlags, splice  # noqa: F401
from .process import Process, Result, State  # noqa: F401
from .launcher import launch, get_backend, change_default_backend  # noqa: F401
from .communicate import communicate, communicate_utf8  # noqa: F401
from .sync import run_sync  # noqa: F401
from .util import spawn, run, check_output  # noqa: F401
