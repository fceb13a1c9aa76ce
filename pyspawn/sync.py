__all__ = 'run_sync',

import asyncio

from .errors import UsageError


def run_sync(func, *args, **kwargs):
    """run the coroutine function func to completion on a private event loop

    The loop is created for this call only and closed afterwards, so the
    caller's own loops are never involved. Calling this from inside a
    running loop would block that loop, so it's refused:

    >>> async def add(a, b):
    ...     return a + b
    >>> run_sync(add, 1, b=2)
    3
    >>> async def nested():
    ...     return run_sync(add, 1, 2)
    >>> run_sync(nested)
    Traceback (most recent call last):
        ...
    pyspawn.errors.UsageError: blocking calls cannot be made from a running event loop; await the async variant instead
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        pass
    else:
        for arg in args:
            if asyncio.iscoroutine(arg):
                arg.close()
        raise UsageError('blocking calls cannot be made from a running event loop; await the async variant instead')

    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(func(*args, **kwargs))
    finally:
        try:
            loop.run_until_complete(loop.shutdown_asyncgens())
        finally:
            loop.close()
