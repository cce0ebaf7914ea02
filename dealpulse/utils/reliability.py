"""
Reliability patterns for DealPulse.

Provides retry with exponential backoff and performance tracking for both
plain and coroutine functions.
"""

import asyncio
import time
from functools import wraps
from typing import Callable, Tuple, Type

import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

logger = structlog.get_logger(__name__)


def with_retry(
    max_attempts: int = 3,
    backoff_min: float = 0.5,
    backoff_max: float = 30.0,
    retry_exceptions: Tuple[Type[BaseException], ...] = (Exception,),
):
    """Decorator to add retry logic with exponential backoff.

    The last exception is re-raised unchanged once attempts are exhausted.
    """

    def decorator(func: Callable) -> Callable:
        retrying = retry(
            stop=stop_after_attempt(max(1, max_attempts)),
            wait=wait_exponential(multiplier=1, min=backoff_min, max=backoff_max),
            retry=retry_if_exception_type(retry_exceptions),
            reraise=True,
        )

        def _log(e: BaseException) -> None:
            logger.warning(
                "Retrying operation",
                function=func.__name__,
                error=str(e),
                error_type=type(e).__name__,
            )

        if asyncio.iscoroutinefunction(func):

            @retrying
            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                try:
                    return await func(*args, **kwargs)
                except retry_exceptions as e:
                    _log(e)
                    raise

            return async_wrapper

        @retrying
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except retry_exceptions as e:
                _log(e)
                raise

        return wrapper

    return decorator


def track_performance(operation_name: str):
    """
    Decorator to track performance metrics for operations.

    Args:
        operation_name: Name of the operation for logging
    """

    def decorator(func: Callable) -> Callable:
        def _started() -> Tuple[float, str]:
            start_time = time.time()
            operation_id = f"{operation_name}_{int(start_time)}"
            logger.info(
                "Performance tracking started", operation=operation_name, operation_id=operation_id
            )
            return start_time, operation_id

        def _finished(start_time: float, operation_id: str, error: Exception = None) -> None:
            duration = time.time() - start_time
            if error is None:
                logger.info(
                    "Performance tracking completed",
                    operation=operation_name,
                    operation_id=operation_id,
                    duration_seconds=duration,
                    status="success",
                )
            else:
                logger.error(
                    "Performance tracking failed",
                    operation=operation_name,
                    operation_id=operation_id,
                    duration_seconds=duration,
                    status="failed",
                    error=str(error),
                )

        if asyncio.iscoroutinefunction(func):

            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                start_time, operation_id = _started()
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    _finished(start_time, operation_id, e)
                    raise
                _finished(start_time, operation_id)
                return result

            return async_wrapper

        @wraps(func)
        def wrapper(*args, **kwargs):
            start_time, operation_id = _started()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _finished(start_time, operation_id, e)
                raise
            _finished(start_time, operation_id)
            return result

        return wrapper

    return decorator
