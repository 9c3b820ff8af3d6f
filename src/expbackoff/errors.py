"""Deterministic error model for backoff configuration and exhaustion."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class ErrorCode(IntEnum):
    SUCCESS = 0
    CONFIG_ERROR = 3
    RETRIES_EXHAUSTED = 4


@dataclass
class BackoffError(Exception):
    message: str
    code: ErrorCode = ErrorCode.RETRIES_EXHAUSTED
    hint: str = ""

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message} Hint: {self.hint}"
        return self.message

    def describe(self) -> str:
        return user_facing_error(self.message, hint=self.hint, code=self.code)


@dataclass
class InvalidBackoffConfigError(BackoffError, ValueError):
    """Rejected policy setting; raised while configuring, never retried."""

    code: ErrorCode = ErrorCode.CONFIG_ERROR


@dataclass
class RetriableOperationFailedError(BackoffError):
    """Every attempt failed; ``__cause__`` holds the error of the final attempt."""

    attempts: int = 0

    @property
    def cause(self) -> BaseException | None:
        return self.__cause__


def user_facing_error(message: str, *, hint: str = "", code: ErrorCode | None = None) -> str:
    """One-line text for people: ``Error (CODE): message. Next step: hint``."""
    prefix = "Error" if code is None else f"Error ({code.name})"
    text = f"{prefix}: {message.rstrip('.')}."
    if hint:
        text += f" Next step: {hint}"
    return text
