"""Request timing decorator"""
import time
from functools import wraps
from typing import Any, Callable


def profile_request(func: Callable) -> Callable:
    """
    Measure an OpenSea client coroutine.

    Reports the elapsed time on the instance's console as a debug line,
    including failed calls.
    """
    @wraps(func)
    async def wrapper(self, *args, **kwargs) -> Any:
        start_time = time.perf_counter()
        try:
            return await func(self, *args, **kwargs)
        finally:
            target = args[0] if args else kwargs.get("endpoint", "")
            self.console.debug(
                f"{func.__name__} {target}: {(time.perf_counter() - start_time):.4f}s"
            )
    return wrapper
