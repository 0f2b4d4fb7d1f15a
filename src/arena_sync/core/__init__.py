"""Remote-call primitives and the concrete Are.na / Sanity clients."""

from .arena_client import ArenaClient
from .async_utils import (
    OperationTimeoutError,
    RetryExhaustedError,
    fetch_with_timeout,
    retry,
    run_sync,
    with_timeout,
)
from .sanity_client import SanityClient

__all__ = [
    "ArenaClient",
    "OperationTimeoutError",
    "RetryExhaustedError",
    "SanityClient",
    "fetch_with_timeout",
    "retry",
    "run_sync",
    "with_timeout",
]
