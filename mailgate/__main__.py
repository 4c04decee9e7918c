"""Entry point for the gateway.

Usage::

    python -m mailgate

All settings come from the environment (``GATEWAY_*``, ``IMAP_*``,
``SMTP_*``, ``RETRY_*``).
"""

from __future__ import annotations

import asyncio

from .actions import default_registry
from .config import GatewayConfig
from .dispatcher import MailDispatcher


def main() -> None:
    config = GatewayConfig()
    dispatcher = MailDispatcher(config)
    dispatcher.on_message_receive(default_registry().handle)
    asyncio.run(dispatcher.run())


if __name__ == "__main__":
    main()
