"""Exponential backoff policy for operations that fail transiently."""

from __future__ import annotations

import functools
import logging as py_logging
import math
import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field, replace
from datetime import timedelta
from typing import TYPE_CHECKING, TypeVar

from expbackoff.errors import InvalidBackoffConfigError, RetriableOperationFailedError

if TYPE_CHECKING:
    from expbackoff.config import BackoffSettings

logger = py_logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 3
DEFAULT_INITIAL_WAIT_PERIOD = timedelta(milliseconds=100)
DEFAULT_GROWTH_FACTOR = 2.0
MIN_INITIAL_WAIT_PERIOD = timedelta(microseconds=1)
MAX_INITIAL_WAIT_PERIOD = timedelta(days=999_999_999)


def coerce_wait_period(value: object) -> timedelta:
    if isinstance(value, bool):
        raise InvalidBackoffConfigError(
            "Initial wait period must be a duration.",
            hint="Pass a timedelta or a number of seconds.",
        )
    if isinstance(value, timedelta):
        period = value
    elif isinstance(value, (int, float)):
        if not math.isfinite(value):
            raise InvalidBackoffConfigError(
                f"Initial wait period must be finite, got {value!r}.",
                hint="Pass a positive number of seconds.",
            )
        if value <= 0:
            raise InvalidBackoffConfigError(
                f"Initial wait period must be positive, got {value!r} seconds.",
                hint="Use a wait period greater than zero.",
            )
        try:
            period = timedelta(seconds=value)
        except OverflowError as exc:
            raise InvalidBackoffConfigError(
                f"Initial wait period of {value!r} seconds is too large.",
                hint=f"Use at most {MAX_INITIAL_WAIT_PERIOD.total_seconds():.0f} seconds.",
            ) from exc
        if period < MIN_INITIAL_WAIT_PERIOD:
            raise InvalidBackoffConfigError(
                f"Initial wait period must be at least 1 microsecond, got {value!r} seconds.",
                hint="Use a wait period of 1 microsecond or more.",
            )
    else:
        raise InvalidBackoffConfigError(
            f"Initial wait period must be a duration, got {type(value).__name__}.",
            hint="Pass a timedelta or a number of seconds.",
        )
    if period <= timedelta(0):
        raise InvalidBackoffConfigError(
            f"Initial wait period must be positive, got {period!r}.",
            hint="Use a wait period greater than zero.",
        )
    if period > MAX_INITIAL_WAIT_PERIOD:
        raise InvalidBackoffConfigError(
            f"Initial wait period of {value!r} is too large.",
            hint=f"Use at most {MAX_INITIAL_WAIT_PERIOD.total_seconds():.0f} seconds.",
        )
    return period


def _validate_max_retries(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidBackoffConfigError(
            f"Max retries must be an integer, got {type(value).__name__}.",
            hint="Pass a whole number of retries.",
        )
    if value < 0:
        raise InvalidBackoffConfigError(
            f"Max retries must be zero or greater, got {value}.",
            hint="Use 0 to disable retries.",
        )
    return value


def _validate_growth_factor(value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidBackoffConfigError(
            f"Growth factor must be a number, got {type(value).__name__}.",
            hint="Use 2 for doubling waits.",
        )
    if not math.isfinite(value) or value < 1:
        raise InvalidBackoffConfigError(
            f"Growth factor must be a finite number of at least 1, got {value!r}.",
            hint="Use 1 for constant waits or 2 for doubling waits.",
        )
    return float(value)


def _operation_name(operation: Callable[..., object]) -> str:
    return getattr(operation, "__qualname__", None) or repr(operation)


@dataclass(frozen=True)
class ExponentialBackoff:
    """Immutable retry policy; each ``with_*`` call returns a new policy.

    An operation gets ``max_retries + 1`` attempts. The wait before the
    second attempt is ``initial_wait_period`` and every later wait is the
    previous one multiplied by ``growth_factor``.
    """

    max_retries: int = DEFAULT_MAX_RETRIES
    initial_wait_period: timedelta = DEFAULT_INITIAL_WAIT_PERIOD
    growth_factor: float = DEFAULT_GROWTH_FACTOR
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False, compare=False)

    def __post_init__(self) -> None:
        _validate_max_retries(self.max_retries)
        object.__setattr__(
            self, "initial_wait_period", coerce_wait_period(self.initial_wait_period)
        )
        object.__setattr__(self, "growth_factor", _validate_growth_factor(self.growth_factor))
        if not callable(self.sleep):
            raise InvalidBackoffConfigError("Sleep function must be callable.")

    @classmethod
    def get(cls) -> ExponentialBackoff:
        return cls()

    @classmethod
    def from_settings(cls, settings: BackoffSettings) -> ExponentialBackoff:
        return cls(
            max_retries=settings.max_retries,
            initial_wait_period=settings.initial_wait_ms / 1000,
            growth_factor=settings.growth_factor,
        )

    def with_max_retries(self, max_retries: int) -> ExponentialBackoff:
        return replace(self, max_retries=max_retries)

    def with_initial_wait_period(self, period: timedelta | float) -> ExponentialBackoff:
        return replace(self, initial_wait_period=period)

    def with_growth_factor(self, factor: float) -> ExponentialBackoff:
        return replace(self, growth_factor=factor)

    def with_sleep(self, sleep: Callable[[float], None]) -> ExponentialBackoff:
        return replace(self, sleep=sleep)

    def wait_periods(self) -> Iterator[float]:
        """Yield the waits, in seconds, an always-failing operation would go through.

        Seconds are floats so long schedules keep growing past the range of
        ``timedelta``; they reach ``inf`` rather than raising.
        """
        seconds = self.initial_wait_period.total_seconds()
        for _ in range(self.max_retries):
            yield seconds
            seconds *= self.growth_factor

    def execute(self, operation: Callable[[], object]) -> None:
        self._run(operation)

    def supply(self, operation: Callable[[], T]) -> T:
        return self._run(operation)

    def wrap(self, func: Callable[..., T]) -> Callable[..., T]:
        """Decorate ``func`` so every call runs under this policy."""

        @functools.wraps(func)
        def wrapper(*args: object, **kwargs: object) -> T:
            return self._run(functools.partial(func, *args, **kwargs), name=_operation_name(func))

        return wrapper

    def _run(self, operation: Callable[[], T], *, name: str | None = None) -> T:
        label = name or _operation_name(operation)
        total = self.max_retries + 1
        attempt = 0
        wait_seconds = self.initial_wait_period.total_seconds()

        while True:
            logger.debug("Running operation=%s attempt=%s/%s", label, attempt + 1, total)
            try:
                result = operation()
            except Exception as exc:
                last_failure = exc
            else:
                logger.debug("Operation succeeded operation=%s attempt=%s", label, attempt + 1)
                return result

            if attempt == self.max_retries:
                break

            attempt += 1
            logger.warning(
                "Operation failed operation=%s attempt=%s/%s error=%r; retrying in %.3fs",
                label,
                attempt,
                total,
                last_failure,
                wait_seconds,
            )
            self.sleep(wait_seconds)
            wait_seconds *= self.growth_factor

        error = RetriableOperationFailedError(
            f"Operation {label} failed after {total} attempt(s).",
            hint=f"Inspect the cause: {last_failure!r}",
            attempts=total,
        )
        logger.error("Operation exhausted retries: %s", error.describe())
        raise error from last_failure
