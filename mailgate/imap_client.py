"""Mailbox listener: async IMAP polling wrapping the blocking IMAPClient
with ``asyncio.to_thread``.
"""

from __future__ import annotations

import asyncio
from email.header import decode_header, make_header
from typing import Any

import structlog
from imapclient import IMAPClient

from .config import ImapConfig, RetryConfig
from .models import Address, BodyStructure, FetchedMail
from .retry import CONNECTION_ERRORS, with_retry

logger = structlog.get_logger()

# BODY[TEXT] (not BODY.PEEK) so the server flags fetched messages \Seen and
# the next UNSEEN search skips them.
FETCH_ITEMS = ["ENVELOPE", "BODYSTRUCTURE", "BODY[TEXT]", "INTERNALDATE"]


class MailboxError(Exception):
    """A listener-level failure reported through the error queue."""


class AsyncImapClient:
    """Async-friendly IMAP client.

    All blocking ``IMAPClient`` operations run in a worker thread.
    """

    def __init__(self, config: ImapConfig) -> None:
        self._config = config
        self._conn: IMAPClient | None = None
        self._last_uid: int = 0

    @property
    def last_uid(self) -> int:
        return self._last_uid

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Connect, login, and select the configured mailbox."""
        await asyncio.to_thread(self._connect_sync)
        logger.info(
            "imap_connected",
            host=self._config.host,
            mailbox=self._config.mailbox,
        )

    def _connect_sync(self) -> None:
        conn = IMAPClient(self._config.host, port=self._config.port, ssl=self._config.use_ssl)
        conn.login(self._config.username, self._config.password.get_secret_value())
        conn.select_folder(self._config.mailbox)
        self._conn = conn

    async def disconnect(self) -> None:
        """Logout and drop the connection."""
        if self._conn is not None:
            conn, self._conn = self._conn, None
            try:
                await asyncio.to_thread(conn.logout)
            except CONNECTION_ERRORS:
                pass
            logger.info("imap_disconnected")

    async def is_connected(self) -> bool:
        """Check connection liveness with a NOOP command."""
        if self._conn is None:
            return False
        try:
            await asyncio.to_thread(self._conn.noop)
            return True
        except CONNECTION_ERRORS:
            return False

    # ------------------------------------------------------------------
    # Message retrieval
    # ------------------------------------------------------------------

    async def poll_new_messages(self) -> list[FetchedMail]:
        """Fetch unseen messages with a UID above the polling cursor."""
        if self._conn is None:
            raise MailboxError("not connected")
        return await asyncio.to_thread(self._search_and_fetch)

    def _search_and_fetch(self) -> list[FetchedMail]:
        assert self._conn is not None
        criteria = ["UNSEEN", "UID", f"{self._last_uid + 1}:*"]
        # "n:*" always matches the highest UID, even when it is below n.
        uids = sorted(uid for uid in self._conn.search(criteria) if uid > self._last_uid)
        if not uids:
            return []

        response = self._conn.fetch(uids, FETCH_ITEMS)
        results: list[FetchedMail] = []
        for uid in uids:
            data = response.get(uid)
            if not data:
                continue
            results.append(fetched_mail_from_imap(uid, data))
            self._last_uid = max(self._last_uid, uid)

        logger.debug("imap_poll_complete", fetched=len(results), last_uid=self._last_uid)
        return results


class MailboxListener:
    """Polls the mailbox forever, feeding the mail and error queues.

    Queue ``put`` calls block when a queue is full, which throttles polling
    until the dispatcher catches up.  Processed messages are never deleted;
    the UID cursor and the server's \\Seen flag keep them from being fetched
    twice.
    """

    def __init__(
        self,
        config: ImapConfig,
        retry_config: RetryConfig | None = None,
        client: AsyncImapClient | None = None,
    ) -> None:
        self._config = config
        self._retry_config = retry_config or RetryConfig()
        self._client = client or AsyncImapClient(config)
        self.polls: int = 0

    @property
    def client(self) -> AsyncImapClient:
        return self._client

    async def listen(
        self,
        mail_queue: asyncio.Queue[FetchedMail],
        error_queue: asyncio.Queue[Exception],
    ) -> None:
        connected = False
        try:
            while True:
                try:
                    if not connected:
                        await self._connect()
                        connected = True
                    fetched = await self._client.poll_new_messages()
                except (*CONNECTION_ERRORS, MailboxError) as exc:
                    connected = False
                    await self._client.disconnect()
                    await error_queue.put(MailboxError(f"mailbox poll failed: {exc}"))
                    await asyncio.sleep(self._config.poll_interval_seconds)
                    continue

                self.polls += 1
                for mail in fetched:
                    await mail_queue.put(mail)

                await asyncio.sleep(self._config.poll_interval_seconds)
        finally:
            await self._client.disconnect()

    async def _connect(self) -> None:
        @with_retry(self._retry_config)
        async def _attempt() -> None:
            await self._client.connect()

        await _attempt()


# ------------------------------------------------------------------
# IMAPClient response conversion
# ------------------------------------------------------------------


def fetched_mail_from_imap(uid: int, data: dict[bytes, Any]) -> FetchedMail:
    """Convert one IMAPClient FETCH response into a :class:`FetchedMail`."""
    envelope = data.get(b"ENVELOPE")
    structure = data.get(b"BODYSTRUCTURE")
    return FetchedMail(
        uid=uid,
        seq_num=int(data.get(b"SEQ", 0)),
        message_id=_text(envelope.message_id) if envelope else "",
        subject=_decode_words(envelope.subject) if envelope else "",
        from_=_addresses(envelope.from_) if envelope else [],
        to=_addresses(envelope.to) if envelope else [],
        internal_date=data.get(b"INTERNALDATE"),
        body_structure=body_structure_from_imap(structure) if structure else None,
        body=data.get(b"BODY[TEXT]"),
    )


def body_structure_from_imap(bs: Any) -> BodyStructure:
    """Convert an IMAPClient ``BodyData`` into a :class:`BodyStructure`."""
    if bs.is_multipart:
        subtype = _text(bs[1]).lower()
        params = _params(bs[2]) if len(bs) > 2 else {}
        return BodyStructure(media_type=f"multipart/{subtype}", params=params)

    maintype = _text(bs[0]).lower()
    subtype = _text(bs[1]).lower()
    encoding = _text(bs[5]).lower() if len(bs) > 5 else ""
    return BodyStructure(
        media_type=f"{maintype}/{subtype}",
        params=_params(bs[2]),
        encoding=encoding,
    )


def _params(raw: Any) -> dict[str, str]:
    if not raw or not isinstance(raw, (tuple, list)):
        return {}
    items = list(raw)
    return {_text(k).lower(): _text(v) for k, v in zip(items[::2], items[1::2])}


def _addresses(raw: Any) -> list[Address]:
    result: list[Address] = []
    for addr in raw or ():
        # Group-syntax markers carry no mailbox/host pair.
        if addr.mailbox is None or addr.host is None:
            continue
        result.append((f"{_text(addr.mailbox)}@{_text(addr.host)}", _decode_words(addr.name)))
    return result


def _decode_words(value: Any) -> str:
    """Decode RFC 2047 encoded words (``=?utf-8?b?...?=``) in a header value."""
    text = _text(value)
    if not text:
        return ""
    try:
        return str(make_header(decode_header(text)))
    except (LookupError, UnicodeDecodeError, ValueError):
        return text


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)
