import asyncio
from unittest.mock import Mock

import pytest

from polite_retry.resilience import observers
from polite_retry.resilience.observers import notify


def test_none_callback_is_ignored():
    notify(None, "anything")


def test_sync_callback_receives_arguments():
    callback = Mock()

    notify(callback, 1, "two")

    callback.assert_called_once_with(1, "two")


def test_callback_errors_are_swallowed():
    callback = Mock(side_effect=RuntimeError("observer down"))

    notify(callback, "open")

    callback.assert_called_once()


def test_coroutine_without_loop_is_closed():
    ran = []

    async def observer():
        ran.append(True)

    notify(observer)

    assert ran == []


@pytest.mark.asyncio
async def test_coroutine_is_scheduled_on_running_loop():
    done = asyncio.Event()

    async def observer(value):
        assert value == "half_open"
        done.set()

    notify(observer, "half_open")

    await asyncio.wait_for(done.wait(), timeout=1.0)


@pytest.mark.asyncio
async def test_failing_coroutine_does_not_propagate():
    async def observer():
        raise RuntimeError("observer down")

    notify(observer)
    await asyncio.sleep(0.01)


@pytest.mark.asyncio
async def test_scheduled_coroutine_is_referenced_until_done():
    release = asyncio.Event()

    async def observer():
        await release.wait()

    before = set(observers._pending)
    notify(observer)
    (task,) = observers._pending - before
    assert not task.done()

    release.set()
    await task
    await asyncio.sleep(0)

    assert task not in observers._pending


@pytest.mark.asyncio
async def test_coroutine_from_worker_thread_runs_on_given_loop():
    done = asyncio.Event()
    loop = asyncio.get_running_loop()

    async def observer(value):
        assert value == "open"
        done.set()

    await asyncio.to_thread(notify, observer, "open", loop=loop)

    await asyncio.wait_for(done.wait(), timeout=1.0)
