"""Communicator tests.

Test coverage:
- Echo through cat, small and large
- Merged and separate stderr
- Input from a spec, from bytes, from another process
- Cancellation mid-transfer leaves nothing open
- UTF-8 decoding
- check=True carries the output
"""

import asyncio
import signal

import pytest

from pyspawn import (
    PIPE, STDOUT, Cancellable, Cancelled, ExitAbnormal, InvalidData, ProcessSpec, StreamError,
    UsageError, communicate, communicate_utf8, launch,
)


class TestEcho:
    @pytest.mark.asyncio
    async def test_hello(self, backend):
        process = launch(ProcessSpec('cat', stdin=PIPE, stdout=PIPE), backend)
        result = await communicate(process, b'hello, world!')
        assert result.stdout == b'hello, world!'
        assert result.stderr is None
        assert result.status.success

    @pytest.mark.asyncio
    async def test_large(self, backend):
        data = bytes(range(256)) * (4 * 1024)
        process = launch(ProcessSpec('cat', stdin=PIPE, stdout=PIPE), backend)
        result = await communicate(process, data)
        assert len(result.stdout) == 1024 * 1024
        assert result.stdout == data

    @pytest.mark.asyncio
    async def test_large_both_ways(self):
        # the child writes to stderr while we're still writing its stdin
        data = b'x' * (640 * 1024)
        process = launch(ProcessSpec(['sh', '-c', 'tee /dev/stderr'], stdin=PIPE, stdout=PIPE, stderr=PIPE))
        result = await communicate(process, data)
        assert result.stdout == data
        assert result.stderr == data

    def test_sync(self):
        process = launch(ProcessSpec('cat', stdin=PIPE, stdout=PIPE))
        assert process.communicate(b'sync').stdout == b'sync'

    def test_input_from_spec(self):
        spec = ProcessSpec('tr a-z A-Z', stdout=PIPE)
        spec.set_input(b'abc')
        assert launch(spec).communicate().stdout == b'ABC'

    @pytest.mark.asyncio
    async def test_no_input_closes_stdin(self):
        process = launch(ProcessSpec('cat', stdin=PIPE, stdout=PIPE))
        result = await asyncio.wait_for(communicate(process), 5)
        assert result.stdout == b''

    @pytest.mark.asyncio
    async def test_input_stream(self):
        producer = launch(ProcessSpec('echo abc', stdout=PIPE))
        consumer = launch(ProcessSpec('tr a-z A-Z', stdin=PIPE, stdout=PIPE))
        result = await communicate(consumer, producer.take_stdout())
        assert result.stdout == b'ABC\n'
        assert (await producer.wait_async()).success

    @pytest.mark.asyncio
    async def test_input_without_pipe(self):
        process = launch(ProcessSpec('cat', stdout=PIPE))
        with pytest.raises(UsageError):
            await communicate(process, b'abc')
        process.force_exit()
        await process.wait_async()


class TestStderr:
    @pytest.mark.asyncio
    async def test_merged(self, backend):
        spec = ProcessSpec(['sh', '-c', 'echo out; echo err >&2'], stdout=PIPE, stderr=STDOUT)
        result = await communicate(launch(spec, backend))
        assert result.stdout == b'out\nerr\n'
        assert result.stderr is None

    @pytest.mark.asyncio
    async def test_separate(self, backend):
        spec = ProcessSpec(['sh', '-c', 'echo out; echo err >&2'], stdout=PIPE, stderr=PIPE)
        result = await communicate(launch(spec, backend))
        assert result.stdout == b'out\n'
        assert result.stderr == b'err\n'


class TestFailures:
    @pytest.mark.asyncio
    async def test_cancel_mid_transfer(self, fd_count):
        before = fd_count()
        process = launch(ProcessSpec('sleep 10', stdin=PIPE, stdout=PIPE))
        token = Cancellable()
        asyncio.get_running_loop().call_later(0.1, token.cancel)
        with pytest.raises(Cancelled):
            await communicate(process, b'x' * (1024 * 1024), token)

        process.force_exit()
        assert (await process.wait_async()).signal == signal.SIGKILL
        assert fd_count() == before

    @pytest.mark.asyncio
    async def test_already_cancelled(self):
        process = launch(ProcessSpec('cat', stdin=PIPE, stdout=PIPE))
        token = Cancellable()
        token.cancel()
        with pytest.raises(Cancelled):
            await communicate(process, b'abc', token)
        await process.wait_async()

    @pytest.mark.asyncio
    async def test_broken_pipe(self):
        process = launch(ProcessSpec('true', stdin=PIPE))
        await process.wait_async()
        with pytest.raises(StreamError):
            await communicate(process, b'x' * (1024 * 1024))

    @pytest.mark.asyncio
    async def test_consumed_pipes(self):
        process = launch(ProcessSpec('echo abc', stdout=PIPE))
        await communicate(process)
        with pytest.raises(UsageError, match='already taken'):
            await communicate(process)

    @pytest.mark.asyncio
    async def test_check(self):
        process = launch(ProcessSpec(['sh', '-c', 'echo partial; exit 3'], stdout=PIPE))
        with pytest.raises(ExitAbnormal) as info:
            await communicate(process, check=True)
        assert info.value.status.code == 3
        assert info.value.result.stdout == b'partial\n'


class TestUtf8:
    @pytest.mark.asyncio
    async def test_roundtrip(self):
        process = launch(ProcessSpec('cat', stdin=PIPE, stdout=PIPE))
        result = await communicate_utf8(process, 'grüße, 世界')
        assert result.stdout == 'grüße, 世界'

    @pytest.mark.asyncio
    async def test_invalid(self):
        process = launch(ProcessSpec(['printf', '\\377'], stdout=PIPE))
        with pytest.raises(InvalidData):
            await communicate_utf8(process)

    def test_sync(self):
        process = launch(ProcessSpec(['sh', '-c', 'printf é >&2'], stderr=PIPE))
        assert process.communicate_utf8().stderr == 'é'
