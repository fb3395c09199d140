from __future__ import annotations

import asyncio
import logging
import signal
import threading


logger = logging.getLogger(__name__)


class CancellationToken:
    """Interrupt flag the apply workflow checks only between steps.

    Setting it never aborts an in-flight AWS call; the workflow notices it at
    its next safe point.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self.signal_name: str | None = None

    def cancel(self, signal_name: str | None = None) -> None:
        if not self._event.is_set():
            self.signal_name = signal_name
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


def install_interrupt_handler(token: CancellationToken, *, loop: asyncio.AbstractEventLoop) -> None:
    """Route SIGINT to ``token`` instead of raising KeyboardInterrupt."""

    def _on_sigint() -> None:
        logger.warning("received %s; finishing the current step before stopping", signal.SIGINT.name)
        token.cancel(signal.SIGINT.name)

    loop.add_signal_handler(signal.SIGINT, _on_sigint)


def remove_interrupt_handler(*, loop: asyncio.AbstractEventLoop) -> None:
    loop.remove_signal_handler(signal.SIGINT)
