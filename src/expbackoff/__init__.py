"""Retry with exponential backoff for transiently failing operations."""

from .backoff import (
    DEFAULT_GROWTH_FACTOR,
    DEFAULT_INITIAL_WAIT_PERIOD,
    DEFAULT_MAX_RETRIES,
    ExponentialBackoff,
)
from .errors import (
    BackoffError,
    ErrorCode,
    InvalidBackoffConfigError,
    RetriableOperationFailedError,
)

__all__ = [
    "BackoffError",
    "DEFAULT_GROWTH_FACTOR",
    "DEFAULT_INITIAL_WAIT_PERIOD",
    "DEFAULT_MAX_RETRIES",
    "ErrorCode",
    "ExponentialBackoff",
    "InvalidBackoffConfigError",
    "RetriableOperationFailedError",
]
