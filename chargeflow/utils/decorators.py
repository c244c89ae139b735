"""
Decorators and locking helpers for chargeflow: timing and reader/writer
synchronization of shared registries.
"""
import functools
import threading
import time
from contextlib import contextmanager
from typing import Any, Callable, Optional, TypeVar

from chargeflow.utils.logger import setup_logger
from chargeflow.utils.metrics import get_metrics_collector

# Type variable for decorated functions
F = TypeVar('F', bound=Callable[..., Any])


class ReadWriteLock:
    """Lock allowing many concurrent readers or a single writer.

    Writers are preferred: once a writer is waiting, new readers queue behind it.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read_lock(self):
        """Hold the lock in shared mode for the duration of the block."""
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write_lock(self):
        """Hold the lock in exclusive mode for the duration of the block."""
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()


def _get_rw_lock(obj: Any, lock_name: str) -> ReadWriteLock:
    lock = getattr(obj, lock_name, None)
    if lock is None:
        raise AttributeError(f"{type(obj).__name__} has no read/write lock '{lock_name}'")
    return lock


def read_locked(lock_name: str = '_rw_lock'):
    """Decorator to run a method while holding the instance's lock in shared mode.

    Args:
        lock_name: Name of the ReadWriteLock attribute

    Returns:
        Decorated method
    """
    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(self, *args, **kwargs):
            with _get_rw_lock(self, lock_name).read_lock():
                return func(self, *args, **kwargs)

        return wrapper
    return decorator


def write_locked(lock_name: str = '_rw_lock'):
    """Decorator to run a method while holding the instance's lock exclusively.

    Args:
        lock_name: Name of the ReadWriteLock attribute

    Returns:
        Decorated method
    """
    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(self, *args, **kwargs):
            with _get_rw_lock(self, lock_name).write_lock():
                return func(self, *args, **kwargs)

        return wrapper
    return decorator


def timer(metric_name: Optional[str] = None, log_result: bool = True):
    """Decorator to time function execution.

    Args:
        metric_name: Name for the metric (defaults to function name)
        log_result: Whether to log the timing result

    Returns:
        Decorated function
    """
    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            start_time = time.perf_counter()
            success = False
            try:
                result = func(*args, **kwargs)
                success = True
                return result
            finally:
                duration = time.perf_counter() - start_time

                name = metric_name or func.__name__
                get_metrics_collector().record_timer(name, duration)

                if log_result:
                    logger = setup_logger(func.__module__)
                    if success:
                        logger.debug(f"{func.__name__} completed in {duration:.3f}s")
                    else:
                        logger.warning(f"{func.__name__} failed after {duration:.3f}s")

        return wrapper
    return decorator
