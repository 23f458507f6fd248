"""Cooperative shutdown on SIGINT/SIGTERM or a wall-clock deadline."""

import asyncio
import enum
import logging
import signal

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_DEADLINE = 124
EXIT_INTERRUPTED = 130

HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class StopReason(enum.Enum):
    SIGNAL = "signal"
    DEADLINE = "deadline"


class CancellationController:
    """Owns the cancellation token shared by the scheduler and probers.

    Use as an async context manager inside the running loop; signal handlers
    and the deadline timer are removed on exit.
    """

    def __init__(self, deadline: float | None = None) -> None:
        self.token = asyncio.Event()
        self.reason: StopReason | None = None
        self._deadline = deadline
        self._timer: asyncio.TimerHandle | None = None
        self._installed: list[signal.Signals] = []

    @property
    def cancelled(self) -> bool:
        return self.token.is_set()

    @property
    def exit_code(self) -> int:
        if self.reason is StopReason.SIGNAL:
            return EXIT_INTERRUPTED
        if self.reason is StopReason.DEADLINE:
            return EXIT_DEADLINE
        return EXIT_OK

    def cancel(self, reason: StopReason) -> None:
        if self.token.is_set():
            return
        self.reason = reason
        self.token.set()

    def _on_signal(self, sig: signal.Signals) -> None:
        logger.warning("Received %s, finishing in-flight hosts and saving results...", sig.name)
        self.cancel(StopReason.SIGNAL)

    def _on_deadline(self) -> None:
        logger.warning("Deadline of %.0fs reached, stopping scan", self._deadline)
        self.cancel(StopReason.DEADLINE)

    async def __aenter__(self) -> "CancellationController":
        loop = asyncio.get_running_loop()
        for sig in HANDLED_SIGNALS:
            try:
                loop.add_signal_handler(sig, self._on_signal, sig)
            except (NotImplementedError, RuntimeError):
                # Not supported on this platform or outside the main thread
                continue
            self._installed.append(sig)
        if self._deadline is not None:
            self._timer = loop.call_later(self._deadline, self._on_deadline)
        return self

    async def __aexit__(self, *exc_info) -> None:
        loop = asyncio.get_running_loop()
        for sig in self._installed:
            loop.remove_signal_handler(sig)
        self._installed.clear()
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
