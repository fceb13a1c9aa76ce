"""feeding a process its input and collecting its output, all at once

Writing stdin while reading stdout and stderr has to happen concurrently,
or a child that fills one pipe while we block on another deadlocks both of
us. Each pipe gets its own task on the running loop:

>>> import asyncio
>>> from pyspawn import launch, ProcessSpec, PIPE
>>> async def shout(text):
...     p = launch(ProcessSpec('tr a-z A-Z', stdin=PIPE, stdout=PIPE))
...     return await communicate_utf8(p, text)
...
>>> asyncio.run(shout('hello'))
Result(argv=['tr', 'a-z', 'A-Z'], status=ExitStatus(EXITED, code=0), stdout='HELLO')
"""

__all__ = 'communicate', 'communicate_utf8'

import asyncio
import logging

from .errors import InvalidData, UsageError
from .process import Result
from .stream import MemoryInputStream, MemoryOutputStream, SpliceFlags, splice

logger = logging.getLogger(__name__)

OUTPUT_NAMES = 'stdout', 'stderr'


async def _run_all(tasks):
    """wait for tasks; on the first failure cancel the rest and raise it"""
    if not tasks:
        return
    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    except asyncio.CancelledError:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
    for task in pending:
        task.cancel()
    await asyncio.gather(*pending, return_exceptions=True)
    for task in tasks:
        if task in done and task.exception() is not None:
            raise task.exception()


async def communicate(process, input=None, cancellable=None, check=False):
    """write input to the process's stdin and read its stdout and stderr

    input:  bytes (or str, encoded as UTF-8) or an InputStream to copy
            from; defaults to what ProcessSpec.set_input() gave. Without
            input, a piped stdin is simply closed.
    cancellable:
            a Cancellable; if it fires, all transfers stop, every pipe is
            closed, the partial output is discarded and Cancelled is raised.
            The process keeps running.
    check:  raise ExitAbnormal unless the process exits with 0

    Returns a Result once the process has terminated; stdout and stderr are
    None unless they were piped. Any pipe used here is consumed.
    """
    if input is None:
        input = process.input
    if isinstance(input, str):
        input = input.encode()

    names = [name for name in ('stdin',) + OUTPUT_NAMES if name in process.pipe_names]
    if input is not None and 'stdin' not in names:
        raise UsageError('input needs stdin to be a PIPE')
    for name in names:
        if not process.has_pipe(name):
            raise UsageError(f'{name} was already taken')
    streams = {name: process.take_pipe(name) for name in names}

    legs = []
    if 'stdin' in streams:
        if input is None:
            streams['stdin'].close()
        else:
            source = input if hasattr(input, 'read') else MemoryInputStream(input)
            flags = SpliceFlags.CLOSE_SOURCE | SpliceFlags.CLOSE_TARGET
            legs.append(splice(streams['stdin'], source, flags, cancellable))
    outputs = {}
    for name in OUTPUT_NAMES:
        if name in streams:
            outputs[name] = MemoryOutputStream()
            legs.append(splice(outputs[name], streams[name], SpliceFlags.CLOSE_SOURCE, cancellable))

    tasks = [asyncio.ensure_future(leg) for leg in legs]
    try:
        await _run_all(tasks)
    finally:
        for stream in streams.values():
            stream.close()

    status = await process.wait_async(cancellable)
    result = Result(
        process.argv, status,
        *(outputs[name].getvalue() if name in outputs else None for name in OUTPUT_NAMES),
    )
    logger.debug('communicated with pid %d: %r', process.pid, result)
    if check:
        result.check()
    return result


def _decode(name, data):
    if data is None:
        return None
    try:
        return data.decode('utf-8')
    except UnicodeDecodeError as e:
        raise InvalidData(f'{name} is not valid UTF-8: {e}') from e


async def communicate_utf8(process, input=None, cancellable=None, check=False):
    """communicate() with str in and str out

    Output that isn't valid UTF-8 raises InvalidData.
    """
    result = await communicate(process, input, cancellable)
    result = Result(result.argv, result.status, _decode('stdout', result.stdout), _decode('stderr', result.stderr))
    if check:
        result.check()
    return result
