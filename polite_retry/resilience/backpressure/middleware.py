"""
Server-side emission of backpressure headers for Starlette/FastAPI apps.

The counterpart of `BackpressureTracker.record_from_headers`: a service under
load advertises it so well-behaved callers stop retrying into it.
"""

from __future__ import annotations

import inspect
from typing import Awaitable, Callable, Union

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from polite_retry.utils.logger import get_logger

from .load import RequestCounter
from .tracker import BACKPRESSURE_HEADERS

logger = get_logger(__name__)

LoadLevelGetter = Callable[[], Union[float, Awaitable[float]]]


class BackpressureMiddleware(BaseHTTPMiddleware):
    """
    Adds `X-Backpressure` to every response and, at or above
    `overload_threshold`, `X-Load-Shedding: true` plus `Retry-After`.
    """

    def __init__(
        self,
        app: ASGIApp,
        get_load_level: LoadLevelGetter,
        overload_threshold: float = 0.8,
        retry_after_seconds: int = 5,
    ) -> None:
        super().__init__(app)
        self.get_load_level = get_load_level
        self.overload_threshold = overload_threshold
        self.retry_after_seconds = retry_after_seconds

    async def _load_level(self) -> float:
        level = self.get_load_level()
        if inspect.isawaitable(level):
            level = await level
        return float(level)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        load_level = await self._load_level()
        response = await call_next(request)

        response.headers[BACKPRESSURE_HEADERS.LOAD_LEVEL] = f"{load_level:.2f}"
        if load_level >= self.overload_threshold:
            response.headers[BACKPRESSURE_HEADERS.SHEDDING] = "true"
            response.headers[BACKPRESSURE_HEADERS.RETRY_AFTER] = str(
                self.retry_after_seconds
            )
            logger.info(
                "backpressure_shedding",
                path=request.url.path,
                load_level=round(load_level, 2),
            )
        return response


class RequestCounterMiddleware(BaseHTTPMiddleware):
    """Keeps `counter` equal to the number of requests currently in flight."""

    def __init__(self, app: ASGIApp, counter: RequestCounter) -> None:
        super().__init__(app)
        self.counter = counter

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        self.counter.increment()
        try:
            return await call_next(request)
        finally:
            self.counter.decrement()
