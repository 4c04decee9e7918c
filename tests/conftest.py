"""Shared test fixtures for the mailgate test suite."""

from __future__ import annotations

from email import encoders
from email.message import Message
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from mailgate.config import GatewayConfig, ImapConfig, RetryConfig, SmtpConfig
from mailgate.dispatcher import MailDispatcher
from mailgate.models import BodyStructure, FetchedMail, User
from mailgate.users import UserStore

ALICE = User(id="u-alice", name="Alice", email="alice@example.com")
BOB = User(id="u-bob", name="Bob", email="bob@example.com")


@pytest.fixture
def imap_config() -> ImapConfig:
    return ImapConfig(
        host="imap.test.com",
        port=993,
        use_ssl=True,
        username="gateway@test.com",
        password="imap-secret",
        mailbox="INBOX",
        poll_interval_seconds=0.01,
    )


@pytest.fixture
def smtp_config() -> SmtpConfig:
    return SmtpConfig(
        host="smtp.test.com",
        port=465,
        username="gateway@test.com",
        password="smtp-secret",
    )


@pytest.fixture
def retry_config() -> RetryConfig:
    return RetryConfig(
        max_attempts=2,
        initial_wait_seconds=0.01,
        max_wait_seconds=0.02,
        multiplier=1.0,
    )


@pytest.fixture
def gateway_config(
    imap_config: ImapConfig,
    smtp_config: SmtpConfig,
    retry_config: RetryConfig,
) -> GatewayConfig:
    return GatewayConfig(
        app_name="mailgate-test",
        handler_timeout_seconds=5.0,
        health_port=18080,
        users=[ALICE, BOB],
        imap=imap_config,
        smtp=smtp_config,
        retry=retry_config,
    )


@pytest.fixture
def users() -> UserStore:
    return UserStore([ALICE, BOB])


@pytest.fixture
def sender() -> AsyncMock:
    mock = AsyncMock()
    mock.push = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def dispatcher(gateway_config: GatewayConfig, users: UserStore, sender: AsyncMock) -> MailDispatcher:
    return MailDispatcher(gateway_config, users, listener=MagicMock(), sender=sender)


# ------------------------------------------------------------------
# Fetch builders
# ------------------------------------------------------------------


def split_fetch(msg: Message) -> tuple[BodyStructure, bytes]:
    """Turn a complete message into what an IMAP BODYSTRUCTURE + BODY[TEXT]
    fetch would return: a structure description and the body without headers.
    """
    raw = msg.as_bytes()
    _, _, body = raw.partition(b"\n\n")
    if msg.is_multipart():
        structure = BodyStructure(
            media_type=msg.get_content_type(),
            params={"boundary": msg.get_boundary()},
        )
        return structure, body

    params = {}
    if msg.get_content_charset():
        params["charset"] = msg.get_content_charset()
    structure = BodyStructure(
        media_type=msg.get_content_type(),
        params=params,
        encoding=str(msg.get("Content-Transfer-Encoding", "7bit")).lower(),
    )
    return structure, body


def build_multipart(
    *,
    body_text: str = "Plain body",
    body_html: str = "<p>HTML body</p>",
    attachments: list[tuple[str, str, bytes]] | None = None,
) -> MIMEMultipart:
    """A mixed message: text/html alternative followed by attachments."""
    msg = MIMEMultipart("mixed")

    alt = MIMEMultipart("alternative")
    alt.attach(MIMEText(body_text, "plain"))
    alt.attach(MIMEText(body_html, "html"))
    msg.attach(alt)

    for filename, content_type, payload in attachments or []:
        maintype, subtype = content_type.split("/", 1)
        part = MIMEBase(maintype, subtype)
        part.set_payload(payload)
        encoders.encode_base64(part)
        part.add_header("Content-Disposition", "attachment", filename=filename)
        msg.attach(part)

    return msg


def make_fetched(
    msg: Message | None = None,
    *,
    uid: int = 100,
    sender: tuple[str, str] | None = ("alice@example.com", "Alice"),
    subject: str = "Hello World",
) -> FetchedMail:
    """A FetchedMail as the listener would produce it."""
    structure, body = split_fetch(msg if msg is not None else MIMEText("Hello, World!", "plain"))
    return FetchedMail(
        uid=uid,
        seq_num=uid,
        message_id=f"<msg-{uid}@example.com>",
        subject=subject,
        from_=[sender] if sender else [],
        to=[("gateway@test.com", "Gateway")],
        internal_date=datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc),
        body_structure=structure,
        body=body,
    )
