"""
Retry decorators with exponential backoff

Used for the two kinds of transient failures a run can hit:
- DynamoDB scan pages throttled or dropped (retry_with_backoff)
- PostgreSQL count queries hitting connection/timeout errors
  (retry_database_operation)

Retries only smooth over transient errors. Once they are exhausted the
adapters translate the error into SourceUnavailable, which is fatal.

Usage:
    from utils.retry import retry_with_backoff

    @retry_with_backoff(max_retries=3, retryable_exceptions=(ClientError,))
    def scan_page(client, **kwargs):
        return client.scan(**kwargs)
"""

import logging
import random
import time
from functools import wraps
from typing import Any, Callable, Optional, Tuple, Type

logger = logging.getLogger(__name__)

RETRYABLE_PATTERNS = (
    "connection",
    "timeout",
    "timed out",
    "deadlock",
    "throttl",
    "provisionedthroughputexceeded",
    "requestlimitexceeded",
    "server closed the connection",
    "could not connect",
    "connection refused",
    "connection reset",
    "broken pipe",
)

RETRYABLE_EXCEPTION_NAMES = (
    "connectionerror",
    "timeouterror",
    "operationalerror",
    "interfaceerror",
    "endpointconnectionerror",
    "readtimeouterror",
)


def _backoff_delay(attempt: int, base_delay: float, max_delay: float,
                   exponential_base: float, jitter: bool) -> float:
    delay = min(base_delay * (exponential_base ** attempt), max_delay)
    if jitter:
        jitter_amount = delay * 0.25
        delay = max(0.1, delay + random.uniform(-jitter_amount, jitter_amount))
    return delay


def _retry_loop(
    func: Callable,
    should_retry: Callable[[Exception], bool],
    max_retries: int,
    delay_for: Callable[[int], float],
    on_retry: Optional[Callable[[int, Exception, float], None]],
) -> Callable:
    @wraps(func)
    def wrapper(*args, **kwargs) -> Any:
        func_name = getattr(func, "__name__", "function")

        for attempt in range(max_retries + 1):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                if not should_retry(e):
                    logger.error(
                        f"Non-retryable error in {func_name}: {type(e).__name__}: {e}"
                    )
                    raise

                if attempt == max_retries:
                    logger.error(
                        f"Max retries ({max_retries}) exceeded for {func_name}: "
                        f"{type(e).__name__}: {e}"
                    )
                    raise

                delay = delay_for(attempt)
                logger.warning(
                    f"Attempt {attempt + 1}/{max_retries} failed for {func_name}: "
                    f"{type(e).__name__}: {e}. Retrying in {delay:.2f}s..."
                )

                if on_retry:
                    try:
                        on_retry(attempt + 1, e, delay)
                    except Exception as callback_error:
                        logger.error(f"Error in retry callback: {callback_error}")

                time.sleep(delay)

        raise RuntimeError(f"Unexpected error in retry logic for {func_name}")

    return wrapper


def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    retryable_exceptions: Optional[Tuple[Type[Exception], ...]] = None,
    on_retry: Optional[Callable[[int, Exception, float], None]] = None,
):
    """
    Decorator that retries a function with exponential backoff

    Args:
        max_retries: Maximum number of retry attempts (default: 3)
        base_delay: Initial delay in seconds (default: 1.0)
        max_delay: Maximum delay in seconds (default: 60.0)
        exponential_base: Base for exponential backoff (default: 2.0)
        jitter: Add +/-25% random jitter (default: True)
        retryable_exceptions: Exception types to retry (default: all)
        on_retry: Callback(attempt, exception, delay) invoked before sleeping

    Returns:
        Decorated function with retry logic
    """
    def should_retry(e: Exception) -> bool:
        return not retryable_exceptions or isinstance(e, retryable_exceptions)

    def decorator(func: Callable) -> Callable:
        return _retry_loop(
            func,
            should_retry,
            max_retries,
            lambda attempt: _backoff_delay(
                attempt, base_delay, max_delay, exponential_base, jitter
            ),
            on_retry,
        )

    return decorator


def is_retryable_db_exception(exception: Exception) -> bool:
    """
    Determine whether a store exception looks transient

    Matches connection, timeout, deadlock and throttling errors by message
    or exception type name. Constraint violations and syntax errors are not
    retryable.
    """
    exception_str = str(exception).lower()
    exception_type = type(exception).__name__.lower()

    if exception_type in RETRYABLE_EXCEPTION_NAMES:
        return True

    return any(
        pattern in exception_str or pattern in exception_type
        for pattern in RETRYABLE_PATTERNS
    )


def retry_database_operation(
    max_retries: int = 3,
    base_delay: float = 1.0,
    on_retry: Optional[Callable[[int, Exception, float], None]] = None,
):
    """
    Decorator for store operations that only retries transient errors

    Example:
        @retry_database_operation(max_retries=5)
        def execute_count(cursor, query, params):
            cursor.execute(query, params)
            return cursor.fetchone()[0]
    """
    def decorator(func: Callable) -> Callable:
        return _retry_loop(
            func,
            is_retryable_db_exception,
            max_retries,
            lambda attempt: _backoff_delay(attempt, base_delay, 60.0, 2.0, True),
            on_retry,
        )

    return decorator
