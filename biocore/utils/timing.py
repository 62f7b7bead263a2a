import time
from functools import wraps
from typing import Callable, Any
import logging

logger = logging.getLogger(__name__)

def time_function(func: Callable) -> Callable:
    """
    Decorator that logs how long a pipeline entry point took.

    Args:
        func: Function to time

    Returns:
        Wrapped function that logs execution time at debug level
    """
    @wraps(func)
    def wrapper(*args, **kwargs) -> Any:
        start_time = time.time()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed_time = time.time() - start_time
            logger.debug(f"{func.__name__} completed in {elapsed_time:.6f} seconds")
    return wrapper

class Timer:
    """
    Context manager for timing code blocks.
    """
    def __init__(self, name: str = "Operation", log: bool = True):
        """
        Initialize the timer.

        Args:
            name: Name of the operation being timed
            log: Whether to log the elapsed time on exit
        """
        self.name = name
        self.log = log
        self.start_time = None
        self.elapsed_time = None

    def __enter__(self) -> 'Timer':
        self.start_time = time.time()
        return self

    def elapsed(self) -> float:
        """Seconds since the context was entered."""
        if self.start_time is None:
            return 0.0
        return time.time() - self.start_time

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.elapsed_time = self.elapsed()
        if self.log and exc_type is None:
            logger.info(f"{self.name} time (sec): {self.elapsed_time:.3f}")
