"""Outbound mail sender: formats a Contents reply and sends it over SMTP."""

from __future__ import annotations

import mimetypes
from email.message import EmailMessage
from email.utils import formataddr, formatdate, make_msgid

import aiosmtplib
import structlog

from .config import SmtpConfig
from .contents import ByteContent, Contents, FileContent, HTMLContent, Tag, TextContent
from .errors import MailSendError
from .models import User

logger = structlog.get_logger()


class SmtpSender:
    """Send reply mails through one SMTP account.

    Every ``push`` opens its own connection; nothing is pooled and nothing
    is retried.
    """

    def __init__(self, config: SmtpConfig, app_name: str) -> None:
        self._config = config
        self._app_name = app_name

    @property
    def subject(self) -> str:
        return f"[{self._app_name}] Response"

    async def push(self, user: User, address: str, contents: Contents) -> None:
        """Format *contents* and send it to *address*.

        Raises :class:`MailSendError` on any transport failure.
        """
        message = self.build_message(user, address, contents)
        try:
            await aiosmtplib.send(
                message,
                hostname=self._config.host,
                port=self._config.port,
                username=self._config.username,
                password=self._config.password.get_secret_value(),
                use_tls=self._config.use_tls,
                start_tls=self._config.start_tls,
                timeout=self._config.timeout_seconds,
            )
        except (aiosmtplib.SMTPException, OSError) as exc:
            raise MailSendError(f"failed to send reply to {address}: {exc}") from exc
        logger.debug("reply_sent", to=address, items=len(contents))

    def build_message(self, user: User, address: str, contents: Contents) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = self.subject
        msg["From"] = formataddr((self._app_name, self._config.username))
        msg["To"] = formataddr((user.name, address))
        msg["Date"] = formatdate(localtime=True)
        msg["Message-ID"] = make_msgid()

        text_parts: list[str] = []
        html_parts: list[str] = []
        files: list[FileContent] = []
        for index, item in enumerate(contents):
            if isinstance(item, FileContent):
                files.append(item)
            elif isinstance(item, ByteContent):
                files.append(FileContent(f"content-{index + 1}{item.ext_name}", item))
            elif isinstance(item, HTMLContent):
                html_parts.append(item.html)
            else:
                text_parts.append(_render_text(item))

        msg.set_content("\n\n".join(text_parts))
        if html_parts:
            msg.add_alternative("\n".join(html_parts), subtype="html")

        for file in files:
            _attach(msg, file)
        return msg


def _render_text(item: TextContent) -> str:
    if item.tag is Tag.TITLE:
        return f"{item.text}\n{'=' * len(item.text)}"
    return item.text


def _attach(msg: EmailMessage, file: FileContent) -> None:
    inner = file.content
    if isinstance(inner, TextContent):
        msg.add_attachment(inner.text, subtype="plain", filename=file.filename)
    elif isinstance(inner, HTMLContent):
        msg.add_attachment(inner.html, subtype="html", filename=file.filename)
    else:
        guessed, _ = mimetypes.guess_type(file.filename)
        maintype, _, subtype = (guessed or "application/octet-stream").partition("/")
        msg.add_attachment(inner.data, maintype=maintype, subtype=subtype, filename=file.filename)
