"""mailgate: drive a request handler purely by email.

IMAP in, one isolated request task per mail, SMTP reply out.
"""

from .actions import ActionRegistry, default_registry
from .config import GatewayConfig, ImapConfig, RetryConfig, SmtpConfig
from .contents import (
    ByteContent,
    Contents,
    FileContent,
    HTMLContent,
    Tag,
    TextContent,
    error_reply,
)
from .dispatcher import MailDispatcher, RequestOutcome, build_contents
from .envelope import build_mail
from .errors import (
    GatewayError,
    HandlerTimeoutError,
    MailParseError,
    MailSendError,
    NormalError,
    ProgramError,
)
from .imap_client import AsyncImapClient, MailboxListener
from .models import Attach, BodyStructure, Content, ContentKind, FetchedMail, Mail, User
from .smtp_client import SmtpSender
from .users import UserStore

__all__ = [
    "ActionRegistry",
    "AsyncImapClient",
    "Attach",
    "BodyStructure",
    "ByteContent",
    "Content",
    "ContentKind",
    "Contents",
    "FetchedMail",
    "FileContent",
    "GatewayConfig",
    "GatewayError",
    "HTMLContent",
    "HandlerTimeoutError",
    "ImapConfig",
    "Mail",
    "MailDispatcher",
    "MailParseError",
    "MailSendError",
    "MailboxListener",
    "NormalError",
    "ProgramError",
    "RequestOutcome",
    "RetryConfig",
    "SmtpConfig",
    "SmtpSender",
    "Tag",
    "TextContent",
    "User",
    "UserStore",
    "build_contents",
    "build_mail",
    "default_registry",
    "error_reply",
]
