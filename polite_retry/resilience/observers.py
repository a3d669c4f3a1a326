from __future__ import annotations

import asyncio
import inspect
from typing import Any, Callable, Optional, Set

from polite_retry.utils.logger import get_logger

logger = get_logger(__name__)

# Scheduled observer coroutines, held until done so they are not collected.
_pending: Set[Any] = set()


def running_loop() -> Optional[asyncio.AbstractEventLoop]:
    """Return the running event loop, or None outside of one."""
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


def notify(
    callback: Optional[Callable[..., Any]],
    *args: Any,
    loop: Optional[asyncio.AbstractEventLoop] = None,
) -> None:
    """
    Invoke an observer callback fire-and-forget.

    Observer failures are logged and dropped so they never corrupt component
    state or mask the error being handled. An awaitable returned by the
    callback is scheduled on the running loop and never awaited. Outside a
    running loop (e.g. on a worker thread) a coroutine is handed to `loop`
    when that loop is running, and dropped otherwise.
    """
    if callback is None:
        return
    name = getattr(callback, "__name__", repr(callback))
    try:
        result = callback(*args)
    except Exception as exc:  # noqa: BLE001 - observers must not break the caller
        logger.warning("observer_callback_failed", callback=name, error=str(exc))
        return

    if not inspect.isawaitable(result):
        return

    current = running_loop()
    if current is not None:
        _track(asyncio.ensure_future(result, loop=current), name)
        return

    if loop is not None and loop.is_running() and inspect.iscoroutine(result):
        try:
            _track(asyncio.run_coroutine_threadsafe(result, loop), name)
            return
        except RuntimeError:
            pass  # loop closed in between

    if inspect.iscoroutine(result):
        result.close()
    logger.warning("observer_callback_dropped", callback=name, reason="no_loop")


def _track(future: Any, name: str) -> None:
    _pending.add(future)
    future.add_done_callback(lambda f: _finish(f, name))


def _finish(future: Any, name: str) -> None:
    _pending.discard(future)
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.warning("observer_callback_failed", callback=name, error=str(exc))
