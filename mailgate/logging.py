"""structlog wiring for the gateway process.

Every record, including those from imapclient, aiosmtplib and uvicorn, goes
through one stdlib handler so request ids bound in contextvars show up on
library lines too.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterable
from typing import IO, Any

import structlog

# imapclient logs every IMAP command at INFO.
DEFAULT_QUIET_LOGGERS = ("imapclient", "aiosmtplib", "uvicorn.access")

_SECRET_KEYS = frozenset({"password", "secret", "token", "authorization"})
REDACTED = "***"


def redact_secrets(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Mask values of credential-like keys such as ``password``."""
    for key in event_dict:
        if key.lower() in _SECRET_KEYS:
            event_dict[key] = REDACTED
    return event_dict


def _renderer(json: bool) -> structlog.types.Processor:
    if json:
        return structlog.processors.JSONRenderer(ensure_ascii=False)
    return structlog.dev.ConsoleRenderer()


def setup_logging(
    *,
    json: bool = True,
    level: str = "INFO",
    app_name: str | None = None,
    quiet_loggers: Iterable[str] = DEFAULT_QUIET_LOGGERS,
    stream: IO[str] | None = None,
) -> None:
    """Configure structlog and the root stdlib logger.

    Parameters
    ----------
    json:
        JSON lines when *True*, the console renderer otherwise.
    level:
        Root log level name, case-insensitive.
    app_name:
        When given, added to every record as ``app``.
    quiet_loggers:
        Library loggers capped at WARNING.
    stream:
        Output stream, stdout by default.
    """
    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        redact_secrets,
    ]
    if app_name:
        pre_chain.append(_bind_app(app_name))
    pre_chain += [
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[
            *pre_chain,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(json),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level.upper())

    for name in quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)


def _bind_app(app_name: str) -> structlog.types.Processor:
    def add_app(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        event_dict.setdefault("app", app_name)
        return event_dict

    return add_app
