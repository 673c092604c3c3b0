"""
Bounded thread pool for blocking file reads.

Document sources hand every blocking open/read call to a ``ReaderPool`` so the
event loop serving HTTP responses never waits on the filesystem.
"""

import asyncio
import functools
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional, TypeVar

from mdstream.app_logger import AppLogger, LogContext, get_default_logger

T = TypeVar("T")


class ReaderPool:
    """
    Wraps a ThreadPoolExecutor for awaiting blocking calls from async code.

    Key Features:
    -------------
    - Fixed worker count shared by all pipeline runs
    - Active call tracking for metrics and graceful shutdown
    - Rejects new work once shut down
    """

    def __init__(self, max_workers: int = 4, logger: Optional[AppLogger] = None):
        """
        Initialise the reader pool.

        Args:
            max_workers: Maximum number of reader threads
            logger: Optional AppLogger, defaults to the application logger
        """
        self._max_workers = max_workers
        self._logger = logger or get_default_logger()
        self._context = LogContext(component="ReaderPool")
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="mdstream-reader"
        )
        self._active = 0
        self._lock = threading.Lock()
        self._running = True

    async def run(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """
        Run a blocking callable on a reader thread and await its result.

        Raises:
            RuntimeError: If the pool has been shut down
        """
        if not self._running:
            raise RuntimeError("Reader pool is shut down")

        loop = asyncio.get_running_loop()
        with self._lock:
            self._active += 1
        try:
            return await loop.run_in_executor(
                self._executor, functools.partial(fn, *args, **kwargs)
            )
        finally:
            with self._lock:
                self._active -= 1

    def is_running(self) -> bool:
        return self._running

    def get_capacity(self) -> int:
        return self._max_workers

    def get_active_count(self) -> int:
        with self._lock:
            return self._active

    def get_metrics(self) -> Dict[str, Any]:
        """Get current pool statistics."""
        with self._lock:
            return {
                "max_workers": self._max_workers,
                "active_reads": self._active,
                "is_running": self._running,
                "utilisation": self._active / self._max_workers,
            }

    def shutdown(self, wait: bool = True) -> None:
        """
        Shut down the pool.

        Args:
            wait: Whether to wait for in-flight reads to complete
        """
        if not self._running:
            return
        self._running = False
        self._logger.info(
            "Shutting down reader pool",
            context=self._context.for_operation("shutdown"),
            active_reads=self.get_active_count(),
            wait_for_completion=wait,
        )
        self._executor.shutdown(wait=wait)
