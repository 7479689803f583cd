"""
Operation Decorators

Privilege checks and timing for sysfs-touching entry points.
"""

from __future__ import annotations

import functools
import logging
import os
import time
from typing import Callable

logger = logging.getLogger(__name__)


def require_root(func: Callable) -> Callable:
    """
    Decorator that requires root privileges.

    Driver bind/unbind control files are writable by root only.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        if os.geteuid() != 0:
            raise PermissionError(
                f"{func.__name__} requires root privileges. Run with sudo."
            )
        return func(*args, **kwargs)
    return wrapper


def timed(func: Callable) -> Callable:
    """
    Decorator to log function execution time.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed = time.perf_counter() - start
            logger.debug(f"{func.__name__} completed in {elapsed:.3f}s")
    return wrapper
