from __future__ import annotations

import functools
import logging
import time
from typing import Any, Callable, TypeVar

from psycopg2 import InterfaceError, OperationalError

T = TypeVar("T")

logger = logging.getLogger(__name__)

DB_RETRYABLE_ERRORS: tuple[type[Exception], ...] = (OperationalError, InterfaceError)
DB_RETRY_DELAY_SEC = 0.7


def db_retry(
    *,
    retries: int = 1,
    delay_sec: float = DB_RETRY_DELAY_SEC,
    backoff: float = 1.0,
    exceptions: tuple[type[Exception], ...] = DB_RETRYABLE_ERRORS,
    label: str | None = None,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Retry a read on transient database errors.

    Typical usage:
        @db_retry(retries=2, delay_sec=1.0)
        def fetch_something(...):
            with get_connection() as conn:
                ...

    Args:
        retries: extra attempts after the first one.
        delay_sec: pause before the first retry.
        backoff: delay multiplier between retries (1.0 keeps it constant).
        exceptions: errors that trigger a retry; anything else propagates at once.
        label: operation name for the logs (defaults to the function name).
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            attempt = 0
            current_delay = delay_sec
            while True:
                try:
                    return func(*args, **kwargs)
                except exceptions as exc:
                    if attempt >= retries:
                        raise
                    attempt += 1
                    logger.warning(
                        "Errore durante %s, nuovo tentativo tra %.2f s (tentativo %d/%d): %s",
                        label or func.__name__,
                        current_delay,
                        attempt,
                        retries + 1,
                        exc,
                    )
                    time.sleep(current_delay)
                    current_delay *= backoff

        return wrapper

    return decorator


__all__ = ["DB_RETRYABLE_ERRORS", "db_retry"]
