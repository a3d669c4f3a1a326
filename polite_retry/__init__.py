"""Polite Retry - retries that don't overwhelm your servers."""

from polite_retry.resilience import *  # noqa: F401,F403
from polite_retry.resilience import __all__

__version__ = "0.1.0"
