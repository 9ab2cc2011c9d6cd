from dataclasses import dataclass
from enum import Enum
from functools import wraps
from typing import Any, Coroutine, Generic, Optional, TypeVar

from loguru import logger
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

T = TypeVar("T")

# --- Error taxonomy ---

class ErrorKind(str, Enum):
    """What went wrong, from the caller's point of view."""
    NETWORK = "network"
    VALIDATION = "validation"
    AUTH = "auth"
    NOT_FOUND = "not_found"
    UNKNOWN = "unknown"


class RecruitingError(Exception):
    """Base error for everything the recruiting client can report."""
    kind = ErrorKind.UNKNOWN

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status = status

    def __str__(self):
        return f"[{self.kind.value.upper()}] {self.message}"


class NetworkError(RecruitingError):
    """The request did not complete (connection refused, timeout...)."""
    kind = ErrorKind.NETWORK


class ValidationError(RecruitingError):
    """4xx with a message meant for the user."""
    kind = ErrorKind.VALIDATION


class AuthError(RecruitingError):
    """401/403, or the session no longer matches the backend."""
    kind = ErrorKind.AUTH


class NotFoundError(RecruitingError):
    """The referenced entity is missing or archived."""
    kind = ErrorKind.NOT_FOUND


class UnknownError(RecruitingError):
    """5xx or a response we could not make sense of."""
    kind = ErrorKind.UNKNOWN


@dataclass(frozen=True)
class ActionResult(Generic[T]):
    """
    Outcome of a user action (status change, upload...).

    Failures are values, not exceptions: the caller shows them as a
    notice and the user may simply try again.
    """
    value: Optional[T] = None
    error: Optional[RecruitingError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "ActionResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: RecruitingError) -> "ActionResult[T]":
        return cls(error=error)


# --- Decorators ---

def api_retry_handler(attempts: int = 3, min_wait: float = 1.0, max_wait: float = 8.0):
    """
    Retry decorator for idempotent API reads.

    Only transport failures are retried; a 4xx/5xx answer is a real
    answer and goes straight back to the caller.
    """
    def decorator(func: Coroutine) -> Coroutine:
        @wraps(func)
        @retry(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
            retry=retry_if_exception_type(NetworkError),
            reraise=True,
        )
        async def wrapper(*args, **kwargs) -> Any:
            try:
                return await func(*args, **kwargs)
            except NetworkError as e:
                logger.warning(f"API call will be retried: {func.__name__}, error: {e}")
                raise
        return wrapper
    return decorator
