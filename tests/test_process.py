"""Process handle tests.

Test coverage:
- Exit statuses (codes, signals)
- Any number of watchers, exactly one reap, with every exit strategy
- Polling, signals, and states
- Releasing a running process to the background reaper
- Blocking calls vs running loops
"""

import asyncio
import gc
import os
import signal
import threading
import time

import pytest

from pyspawn import (
    PIPE, Cancellable, Cancelled, ExitAbnormal, ExitStatus, ProcessSpec, State, UsageError, launch,
)
from pyspawn import reaper
from pyspawn.process import ReapTicket


class TestExitStatus:
    @pytest.mark.parametrize('code', [0, 1, 42, 255])
    def test_exit_code(self, backend, code):
        process = launch(ProcessSpec(['sh', '-c', f'exit {code}']), backend)
        status = process.wait()
        assert status == ExitStatus.exited(code)
        assert status.returncode == code
        assert status.success == (code == 0)

    def test_force_exit(self, backend, exit_strategy):
        process = launch(ProcessSpec('sleep 10'), backend)
        process.force_exit()
        assert process.wait() == ExitStatus.signaled(signal.SIGKILL)
        assert process.status.returncode == -signal.SIGKILL

    def test_request_exit(self, backend, exit_strategy):
        process = launch(ProcessSpec('sleep 10'), backend)
        assert process.request_exit()
        assert process.wait() == ExitStatus.signaled(signal.SIGTERM)

    @pytest.mark.asyncio
    async def test_force_exit_after_cancelled_wait(self, backend, exit_strategy):
        process = launch(ProcessSpec('sleep 10'), backend)
        token = Cancellable()
        asyncio.get_running_loop().call_later(0.05, token.cancel)
        with pytest.raises(Cancelled):
            await process.wait_async(token)
        assert process.send_signal(signal.SIGKILL)
        status = await asyncio.wait_for(process.wait_async(), 5)
        assert status.signal == signal.SIGKILL

    def test_wait_check(self):
        process = launch(ProcessSpec(['sh', '-c', 'exit 3']))
        with pytest.raises(ExitAbnormal) as info:
            process.wait_check()
        assert info.value.status.code == 3
        assert str(info.value) == f'Child process {process.pid} exited with code 3'

    def test_status_check(self):
        assert ExitStatus.exited(0).check().success
        with pytest.raises(ExitAbnormal) as info:
            ExitStatus.signaled(9, pid=12).check()
        assert str(info.value) == 'Child process 12 killed by signal 9'
        assert info.value.result.stdout is None

    def test_check(self):
        process = launch(ProcessSpec('true'))
        process.wait()
        assert process.check() is process


class TestState:
    def test_status_while_running(self):
        process = launch(ProcessSpec('sleep 10'))
        assert process.state is State.RUNNING
        with pytest.raises(UsageError):
            process.status
        process.force_exit()
        process.wait()
        assert process.state is State.TERMINATED

    def test_poll(self, exit_strategy):
        process = launch(ProcessSpec('sleep 0.2'))
        assert process.poll() is None
        process.wait()
        assert process.poll() == ExitStatus.exited(0)

    def test_poll_after_exit(self, exit_strategy):
        process = launch(ProcessSpec('true'))
        for _ in range(100):
            if process.poll() is not None:
                break
            time.sleep(0.05)
        assert process.state is State.TERMINATED

    def test_no_signal_after_reap(self, exit_strategy):
        process = launch(ProcessSpec('true'))
        process.wait()
        assert not process.send_signal('term')
        assert process.request_exit()

    def test_signal_by_name(self):
        process = launch(ProcessSpec('sleep 10'))
        assert process.send_signal('kill')
        assert process.wait().signal == signal.SIGKILL

    def test_unpiped_streams(self):
        process = launch(ProcessSpec('true', stdout=PIPE))
        with pytest.raises(UsageError, match='not set up as a PIPE'):
            process.stdin
        stdout = process.take_stdout()
        with pytest.raises(UsageError, match='already taken'):
            process.stdout
        stdout.close()
        process.wait()

    def test_wait_timeout(self, exit_strategy):
        process = launch(ProcessSpec('sleep 10'))
        with pytest.raises(TimeoutError, match='no exit within 0.1 s'):
            process.wait(timeout=0.1)
        assert process.state is State.RUNNING
        process.force_exit()
        process.wait()

    def test_context_manager(self):
        with launch(ProcessSpec('cat', stdin=PIPE)) as process:
            pass
        assert process.status.success


class TestWatchers:
    @pytest.mark.asyncio
    async def test_many_watchers_one_reap(self, counting_backend, exit_strategy):
        process = launch(ProcessSpec('sleep 0.1'), counting_backend)
        seen = []
        done = asyncio.Event()

        def callback(p):
            seen.append(p.status)
            if len(seen) == 5:
                done.set()

        for _ in range(5):
            process.watch(callback)
        statuses = await asyncio.gather(*(process.wait_async() for _ in range(3)))
        await asyncio.wait_for(done.wait(), 5)
        assert process.poll() == ExitStatus.exited(0)

        assert counting_backend.reaps == [process.pid]
        assert set(seen) == {ExitStatus.exited(0)}
        assert set(statuses) == {ExitStatus.exited(0)}

    def test_racing_polls_reap_once(self, counting_backend, exit_strategy):
        process = launch(ProcessSpec('sleep 0.1'), counting_backend)
        deadline = time.monotonic() + 5

        def spin():
            while process.poll() is None and time.monotonic() < deadline:
                time.sleep(0.001)

        threads = [threading.Thread(target=spin) for _ in range(4)]
        for thread in threads:
            thread.start()
        status = process.wait()
        for thread in threads:
            thread.join()
        assert status == ExitStatus.exited(0)
        assert counting_backend.reaps == [process.pid]

    @pytest.mark.asyncio
    async def test_watch_after_exit(self, exit_strategy):
        process = launch(ProcessSpec('true'))
        await process.wait_async()
        fired = asyncio.Event()
        process.watch(lambda p: fired.set())
        await asyncio.wait_for(fired.wait(), 1)

    @pytest.mark.asyncio
    async def test_cancelled_watch(self, exit_strategy):
        process = launch(ProcessSpec('sleep 0.1'))
        calls = []
        watch = process.watch(calls.append)
        watch.cancel()
        assert not watch.active
        await process.wait_async()
        await asyncio.sleep(0)
        assert calls == []

    @pytest.mark.asyncio
    async def test_failing_callback(self):
        loop = asyncio.get_running_loop()
        errors = []
        loop.set_exception_handler(lambda loop, context: errors.append(context['exception']))
        process = launch(ProcessSpec('true'))

        def explode(p):
            raise RuntimeError('boom')

        process.watch(explode)
        status = await process.wait_async()
        await asyncio.sleep(0.01)
        assert status.success
        assert [str(e) for e in errors] == ['boom']

    @pytest.mark.asyncio
    async def test_wait_cancelled(self, exit_strategy):
        process = launch(ProcessSpec('sleep 10'))
        token = Cancellable()
        asyncio.get_running_loop().call_later(0.05, token.cancel)
        with pytest.raises(Cancelled):
            await process.wait_async(token)
        assert process.state is State.RUNNING
        process.force_exit()
        assert (await process.wait_async()).signal == signal.SIGKILL

    @pytest.mark.asyncio
    async def test_cancel_from_thread(self, exit_strategy):
        process = launch(ProcessSpec('sleep 10'))
        token = Cancellable()
        threading.Timer(0.05, token.cancel).start()
        with pytest.raises(Cancelled):
            await process.wait_async(token)
        process.force_exit()
        await process.wait_async()

    @pytest.mark.asyncio
    async def test_blocking_wait_in_loop(self):
        process = launch(ProcessSpec('true'))
        with pytest.raises(UsageError):
            process.wait()
        await process.wait_async()


class TestRelease:
    def test_running_process_is_adopted(self, monkeypatch):
        threads = []
        adopt = reaper.adopt
        monkeypatch.setattr(reaper, 'adopt', lambda pid, wait: threads.append(adopt(pid, wait)))
        process = launch(ProcessSpec('sleep 0.1'))
        pid = process.pid
        del process
        gc.collect()

        assert len(threads) == 1
        assert os.WIFEXITED(threads[0].join(5))
        with pytest.raises(ChildProcessError):
            os.waitpid(pid, os.WNOHANG)
        assert pid not in reaper.adopted

    def test_reaped_process_is_not_adopted(self, monkeypatch):
        adopted = []
        monkeypatch.setattr(reaper, 'adopt', lambda pid, wait: adopted.append(pid))
        process = launch(ProcessSpec('true'))
        process.wait()
        del process
        gc.collect()
        assert adopted == []


class TestReapTicket:
    def test_single_owner(self):
        ticket = ReapTicket()
        barrier = threading.Barrier(8)
        results = []

        def claim():
            barrier.wait()
            results.append(ticket.claim())

        threads = [threading.Thread(target=claim) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert sorted(results) == [False] * 7 + [True]
