"""Signal handling for the gateway process."""

from __future__ import annotations

import asyncio
import signal
from collections.abc import Callable, Sequence

import structlog

logger = structlog.get_logger()

STOP_SIGNALS = (signal.SIGTERM, signal.SIGINT)


def install_signal_handlers(
    shutdown_event: asyncio.Event,
    signals: Sequence[signal.Signals] = STOP_SIGNALS,
) -> Callable[[], None]:
    """Set *shutdown_event* on any of *signals*.

    Must be called from inside the running event loop.  Returns a callable
    that removes the handlers again.  Repeated signals while the gateway is
    already stopping are logged and otherwise ignored.
    """
    loop = asyncio.get_running_loop()
    received = 0

    def _on_signal(sig: signal.Signals) -> None:
        nonlocal received
        received += 1
        if received == 1:
            logger.info("gateway_shutdown_requested", signal=sig.name)
        else:
            logger.warning("gateway_already_stopping", signal=sig.name, signals_received=received)
        shutdown_event.set()

    for sig in signals:
        loop.add_signal_handler(sig, _on_signal, sig)

    def remove() -> None:
        for sig in signals:
            loop.remove_signal_handler(sig)

    return remove
