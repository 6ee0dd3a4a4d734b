"""
Optional OS signal wiring around ShelfDB.close().
"""

from __future__ import annotations

import logging
import signal
from collections.abc import Iterable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .engine import ShelfDB

logger = logging.getLogger(__name__)

DEFAULT_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def install_shutdown_handlers(
    db: "ShelfDB", signals: Iterable[signal.Signals] = DEFAULT_SIGNALS
) -> dict[signal.Signals, object]:
    """
    Close db on the first of signals, then exit with status 0. A signal that
    lands inside an operation closes once that operation returns.

    Must be called from the main thread. Returns the previous handlers.
    """
    shutting_down = False

    def _exit() -> None:
        raise SystemExit(0)

    def _handler(signum: int, frame: object) -> None:
        nonlocal shutting_down
        if shutting_down:
            return
        shutting_down = True
        logger.info("Received %s, performing graceful shutdown", signal.Signals(signum).name)
        try:
            db.close_when_idle(_exit)
        except Exception:
            logger.exception("Error during database shutdown")
            raise SystemExit(0)

    previous = {}
    for sig in signals:
        previous[sig] = signal.signal(sig, _handler)
    return previous
