"""Error taxonomy shared by the pipeline and request handlers.

Handlers raise :class:`NormalError` for conditions the user should read
about verbatim; anything else is reported to the user as a generic server
error and logged in full.
"""

from __future__ import annotations

SERVER_ERROR_MESSAGE = "Server error"


class GatewayError(Exception):
    """Base class for all gateway errors."""


class ProgramError(GatewayError):
    """Unexpected internal fault. The detail is logged, never shown."""


class NormalError(GatewayError):
    """Expected fault carrying a human-readable message for the sender."""


class MailParseError(ProgramError):
    """A fetched message could not be reconstructed or classified."""


class MailSendError(ProgramError):
    """A reply could not be transmitted."""


class HandlerTimeoutError(NormalError):
    """The request handler did not finish within its time budget."""

    def __init__(self, message: str = "Request timed out") -> None:
        super().__init__(message)


def describe_error(exc: BaseException) -> tuple[str, str]:
    """Return ``(user_message, log_message)`` for *exc*."""
    if isinstance(exc, NormalError):
        return str(exc), ""
    if isinstance(exc, ProgramError):
        return SERVER_ERROR_MESSAGE, str(exc)
    return SERVER_ERROR_MESSAGE, f"{type(exc).__name__}: {exc!r}"
