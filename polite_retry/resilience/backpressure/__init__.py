from .load import RequestCounter, create_load_level_calculator
from .middleware import BackpressureMiddleware, RequestCounterMiddleware
from .tracker import BACKPRESSURE_HEADERS, BackpressureSignal, BackpressureTracker

__all__ = [
    "BACKPRESSURE_HEADERS",
    "BackpressureSignal",
    "BackpressureTracker",
    "BackpressureMiddleware",
    "RequestCounter",
    "RequestCounterMiddleware",
    "create_load_level_calculator",
]
