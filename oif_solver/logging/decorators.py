import asyncio
import functools
import logging
import time

logger = logging.getLogger("oif_solver.timing")


def log_timing(func):
    """Decorator to log function execution time"""
    name = func.__qualname__

    @functools.wraps(func)
    async def async_wrapper(*args, **kwargs):
        start = time.perf_counter()
        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            duration = (time.perf_counter() - start) * 1000
            logger.error(
                f"{name} failed",
                extra={"extra_data": {"duration_ms": round(duration, 2), "error": str(e)}},
            )
            raise
        duration = (time.perf_counter() - start) * 1000
        logger.debug(f"{name} completed", extra={"extra_data": {"duration_ms": round(duration, 2)}})
        return result

    @functools.wraps(func)
    def sync_wrapper(*args, **kwargs):
        start = time.perf_counter()
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            duration = (time.perf_counter() - start) * 1000
            logger.error(
                f"{name} failed",
                extra={"extra_data": {"duration_ms": round(duration, 2), "error": str(e)}},
            )
            raise
        duration = (time.perf_counter() - start) * 1000
        logger.debug(f"{name} completed", extra={"extra_data": {"duration_ms": round(duration, 2)}})
        return result

    if asyncio.iscoroutinefunction(func):
        return async_wrapper
    return sync_wrapper
