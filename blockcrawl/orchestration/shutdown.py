"""Termination-signal handling.

``ShutdownCoordinator`` moves through Idle -> Handling -> Terminated exactly
once per process. The first SIGINT/SIGTERM sets the terminating flag,
removes the handlers, runs the cleanup callback synchronously and exits
with status 0. Cleanup errors are logged and never block the exit.

In-flight page work is not awaited; only state already in memory is
flushed by the callback.
"""

import asyncio
import signal
import sys
import threading
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import structlog

logger = structlog.get_logger()

HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class ShutdownState(str, Enum):
    IDLE = "idle"
    HANDLING = "handling"
    TERMINATED = "terminated"


class ShutdownCoordinator:
    """Single-shot signal handler that flushes state before exit."""

    def __init__(
        self,
        cleanup: Callable[[], None],
        exit_func: Callable[[int], Any] = sys.exit,
    ):
        """
        Args:
            cleanup: Blocking callback that persists state
            exit_func: Called with 0 once cleanup finished or failed
        """
        self._cleanup = cleanup
        self._exit = exit_func
        self._state = ShutdownState.IDLE
        # Acquired once, never released: later signals find it taken
        self._guard = threading.Lock()

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._loop_signals: List[int] = []
        self._previous: Dict[int, Any] = {}

    @property
    def state(self) -> ShutdownState:
        return self._state

    def is_terminating(self) -> bool:
        return self._state != ShutdownState.IDLE

    @property
    def installed(self) -> bool:
        return bool(self._loop_signals or self._previous)

    def install(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """Register handlers, through the event loop when one is running."""
        if self.installed:
            return

        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None

        for sig in HANDLED_SIGNALS:
            if loop is not None:
                try:
                    loop.add_signal_handler(sig, self.handle_signal, sig)
                    self._loop = loop
                    self._loop_signals.append(sig)
                    continue
                except (NotImplementedError, RuntimeError):
                    pass  # e.g. Windows event loops
            self._previous[sig] = signal.signal(sig, self._on_signal)

        logger.debug("shutdown_handlers_installed", via_loop=bool(self._loop_signals))

    def uninstall(self) -> None:
        """Remove handlers and restore whatever was there before."""
        if self._loop is not None:
            for sig in self._loop_signals:
                self._loop.remove_signal_handler(sig)
        for sig, previous in self._previous.items():
            signal.signal(sig, previous)

        self._loop = None
        self._loop_signals = []
        self._previous = {}

    def _on_signal(self, signum: int, frame: Any) -> None:
        self.handle_signal(signum)

    def handle_signal(self, signum: int) -> None:
        """Idle -> Handling -> Terminated. Later calls are no-ops."""
        if not self._guard.acquire(blocking=False):
            logger.debug("shutdown_signal_ignored", signal=signal.Signals(signum).name)
            return

        self._state = ShutdownState.HANDLING
        logger.warning("shutdown_signal_received", signal=signal.Signals(signum).name)

        had_handlers = self.installed
        self.uninstall()
        if had_handlers:
            # Further deliveries must not interrupt the synchronous flush
            for sig in HANDLED_SIGNALS:
                signal.signal(sig, signal.SIG_IGN)

        try:
            self._cleanup()
            logger.info("shutdown_state_saved")
        except Exception as e:
            logger.error("shutdown_cleanup_failed", error=str(e), exc_info=True)
        finally:
            self._state = ShutdownState.TERMINATED
            self._exit(0)
