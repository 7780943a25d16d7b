"""Graceful shutdown handling for long-running sync runs.

The first SIGINT/SIGTERM only raises a flag that the walker polls between
pages, so the page being processed is persisted before the run stops. A
second signal forces the process out.
"""

import signal
import sys
import threading
from typing import Optional

from catalog_sync.logging_config import get_logger

__all__ = [
    "ShutdownHandler",
    "get_shutdown_handler",
    "shutdown_requested",
    "request_shutdown",
]

logger = get_logger("shutdown")


class ShutdownHandler:
    """Process-wide stop flag fed by signals or by an explicit request.

    Usage:
        handler = get_shutdown_handler().install()
        while not handler.shutdown_requested:
            ...
    """

    _instance: Optional["ShutdownHandler"] = None
    _lock = threading.Lock()

    def __init__(self) -> None:
        self._shutdown_requested = threading.Event()
        self._original_sigint = None
        self._original_sigterm = None
        self._installed = False

    @classmethod
    def get_instance(cls) -> "ShutdownHandler":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def install(self) -> "ShutdownHandler":
        """Install signal handlers. Only valid from the main thread.

        Returns:
            Self for chaining
        """
        if self._installed:
            return self
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not in main thread, signal handlers not installed")
            return self

        self._original_sigint = signal.getsignal(signal.SIGINT)
        self._original_sigterm = signal.getsignal(signal.SIGTERM)
        signal.signal(signal.SIGINT, self._handle_signal)
        signal.signal(signal.SIGTERM, self._handle_signal)
        self._installed = True
        return self

    def uninstall(self) -> None:
        """Restore original signal handlers."""
        if not self._installed:
            return
        if self._original_sigint is not None:
            signal.signal(signal.SIGINT, self._original_sigint)
        if self._original_sigterm is not None:
            signal.signal(signal.SIGTERM, self._original_sigterm)
        self._installed = False

    def _handle_signal(self, signum: int, frame) -> None:
        signal_name = "SIGINT" if signum == signal.SIGINT else "SIGTERM"
        logger.warning(f"Received {signal_name}, finishing the current page before stopping")
        logger.warning("Send the signal again to force quit")
        self._shutdown_requested.set()
        signal.signal(signum, self._force_exit)

    def _force_exit(self, signum: int, frame) -> None:
        logger.error("Force quitting")
        sys.exit(1)

    @property
    def shutdown_requested(self) -> bool:
        return self._shutdown_requested.is_set()

    def request(self) -> None:
        """Ask running walks to stop at the next page boundary."""
        if not self._shutdown_requested.is_set():
            logger.info("Stop requested")
        self._shutdown_requested.set()

    def reset(self) -> None:
        """Clear the stop flag before a new run."""
        self._shutdown_requested.clear()


def get_shutdown_handler() -> ShutdownHandler:
    return ShutdownHandler.get_instance()


def shutdown_requested() -> bool:
    return get_shutdown_handler().shutdown_requested


def request_shutdown() -> None:
    get_shutdown_handler().request()
