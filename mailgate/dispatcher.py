"""MailDispatcher: drains the listener queues and runs one isolated
request task per inbound mail.
"""

from __future__ import annotations

import asyncio
import contextvars
import functools
import inspect
import time
import uuid
from collections.abc import Awaitable, Callable
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Any, Union

import structlog
import uvicorn

from .commands import parse_subject
from .config import GatewayConfig
from .contents import (
    ByteContent,
    Contents,
    FileContent,
    HTMLContent,
    Tag,
    TextContent,
    error_reply,
)
from .envelope import build_mail
from .errors import (
    HandlerTimeoutError,
    MailParseError,
    MailSendError,
    NormalError,
    ProgramError,
    describe_error,
)
from .health import create_health_app
from .imap_client import MailboxListener
from .logging import setup_logging
from .models import Attach, Content, ContentKind, FetchedMail, GatewayStatus, Mail, User
from .shutdown import install_signal_handlers
from .smtp_client import SmtpSender
from .users import UserStore

logger = structlog.get_logger()

UNKNOWN_REQUEST_ID = "<unknown>"

MessageHandler = Callable[[str, str, User, Contents], Union[Awaitable[Contents], Contents]]
BatchUserChangeHandler = Callable[..., Any]


class RequestOutcome(str, Enum):
    """How a single request task ended."""

    REPLIED = "replied"
    IGNORED = "ignored"
    PARSE_FAILED = "parse_failed"
    SEND_FAILED = "send_failed"
    FAILED = "failed"


def build_contents(mail: Mail) -> Contents:
    """Handler input: subject commands, then inline body, then attachments."""
    contents: Contents = parse_subject(mail.subject)
    contents.extend(_body_item(content) for content in mail.contents)
    contents.extend(FileContent(attach.filename, _attach_item(attach)) for attach in mail.attaches)
    return contents


def _body_item(content: Content) -> TextContent | HTMLContent | ByteContent:
    if content.kind is ContentKind.TEXT:
        return TextContent(Tag.BODY, content.text)
    if content.kind is ContentKind.HTML:
        return HTMLContent(Tag.BODY, content.text)
    return ByteContent(Tag.BODY, content.raw)


def _attach_item(attach: Attach) -> TextContent | HTMLContent | ByteContent:
    if attach.kind is ContentKind.TEXT:
        return TextContent(Tag.BODY, attach.data.decode("utf-8", errors="replace"))
    if attach.kind is ContentKind.HTML:
        return HTMLContent(Tag.BODY, attach.data.decode("utf-8", errors="replace"))
    return ByteContent(Tag.BODY, attach.data)


class MailDispatcher:
    """Email access point for a request handler.

    ``run()`` starts the following concurrently via
    :class:`asyncio.TaskGroup`:

    * the mailbox listener, filling ``mails`` and ``errors``
    * the dispatch loop, spawning one task per mail
    * the FastAPI health server

    Each request task is admitted through a semaphore sized by
    ``max_concurrent_requests``; when every slot is taken the dispatch loop
    waits, the mail queue fills and the listener stops polling.
    """

    def __init__(
        self,
        config: GatewayConfig,
        users: UserStore | None = None,
        *,
        listener: MailboxListener | None = None,
        sender: SmtpSender | None = None,
    ) -> None:
        self.config = config
        self.status: GatewayStatus = GatewayStatus.STARTING
        self.start_time: float = time.monotonic()

        self._users = users if users is not None else UserStore(config.users)
        self._listener = listener or MailboxListener(config.imap, config.retry)
        self._sender = sender or SmtpSender(config.smtp, config.app_name)
        self._handler: MessageHandler | None = None

        self.mails: asyncio.Queue[FetchedMail] = asyncio.Queue(maxsize=config.mail_queue_size)
        self.errors: asyncio.Queue[Exception] = asyncio.Queue(maxsize=config.error_queue_size)
        self._slots = asyncio.Semaphore(config.max_concurrent_requests)
        self._tasks: set[asyncio.Task[RequestOutcome]] = set()
        self._shutdown_event = asyncio.Event()
        self._handler_pool = ThreadPoolExecutor(
            max_workers=config.handler_threads,
            thread_name_prefix="mailgate-handler",
        )

        self.mails_received: int = 0
        self.replies_sent: int = 0

    # ------------------------------------------------------------------
    # Registration hooks
    # ------------------------------------------------------------------

    def on_message_receive(self, handler: MessageHandler) -> None:
        """Register the request handler, replacing any previous one."""
        self._handler = handler

    def on_batch_user_change(self, handler: BatchUserChangeHandler) -> None:
        """Bulk user-list changes are not supported; the handler is ignored."""

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    # ------------------------------------------------------------------
    # Dispatch loop
    # ------------------------------------------------------------------

    async def dispatch_loop(self) -> None:
        """Wait on both queues forever; never exits on a listener error.

        A received mail is held until a request slot frees up.  No further
        mail is taken meanwhile, but listener errors are still logged.
        """
        mail_get: asyncio.Task[FetchedMail] | None = None
        error_get: asyncio.Task[Exception] | None = None
        slot_get: asyncio.Task[bool] | None = None
        waiting: FetchedMail | None = None
        try:
            while True:
                if error_get is None:
                    error_get = asyncio.create_task(self.errors.get())
                if waiting is None and mail_get is None:
                    mail_get = asyncio.create_task(self.mails.get())
                if waiting is not None and slot_get is None:
                    slot_get = asyncio.create_task(self._slots.acquire())

                done, _ = await asyncio.wait(
                    {task for task in (mail_get, error_get, slot_get) if task is not None},
                    return_when=asyncio.FIRST_COMPLETED,
                )

                if error_get in done:
                    logger.error("mailbox_listener_error", error=str(error_get.result()))
                    error_get = None
                if mail_get in done:
                    waiting = mail_get.result()
                    mail_get = None
                if slot_get in done:
                    self._spawn(waiting)
                    slot_get = None
                    waiting = None
        finally:
            for pending in (mail_get, error_get, slot_get):
                if pending is not None:
                    pending.cancel()

    def _spawn(self, fetched: FetchedMail) -> None:
        """Start a request task; the caller already holds a slot for it."""
        self.mails_received += 1
        task = asyncio.create_task(self._run_request(fetched), name=f"mail-{fetched.uid}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_request(self, fetched: FetchedMail) -> RequestOutcome:
        try:
            return await self.handle_mail(fetched)
        finally:
            self._slots.release()

    # ------------------------------------------------------------------
    # Request task
    # ------------------------------------------------------------------

    async def handle_mail(self, fetched: FetchedMail) -> RequestOutcome:
        """Process one mail end to end.

        Never raises: every failure is logged and mapped to an outcome.
        """
        with structlog.contextvars.bound_contextvars(
            request_id=UNKNOWN_REQUEST_ID,
            imap_uid=fetched.uid,
        ):
            try:
                return await self._handle(fetched)
            except MailParseError as exc:
                logger.error("mail_parse_failed", error=str(exc))
                return RequestOutcome.PARSE_FAILED
            except Exception as exc:
                user_message, error = describe_error(exc)
                logger.exception("request_failed", user_message=user_message, error=error)
                return RequestOutcome.FAILED

    async def _handle(self, fetched: FetchedMail) -> RequestOutcome:
        mail = build_mail(fetched)

        if mail.sender is None:
            logger.warning("mail_without_sender_skipped", message_id=mail.id)
            return RequestOutcome.IGNORED
        address, display_name = mail.sender

        user = self._users.find(address)
        if user is None:
            logger.warning("unknown_sender_skipped", address=address, name=display_name)
            return RequestOutcome.IGNORED

        request_id = str(uuid.uuid4())
        structlog.contextvars.bind_contextvars(request_id=request_id)
        logger.info("request_started", user=user.name, address=address)

        contents = build_contents(mail)
        reply = await self._invoke_handler(user, request_id, contents)

        outcome = RequestOutcome.REPLIED
        try:
            await self._sender.push(user, address, reply)
            self.replies_sent += 1
        except MailSendError as exc:
            logger.error("reply_send_failed", error=str(exc))
            outcome = RequestOutcome.SEND_FAILED

        logger.info("request_finished", user=user.name, address=address, outcome=outcome.value)
        return outcome

    async def _invoke_handler(self, user: User, request_id: str, contents: Contents) -> Contents:
        """Call the handler; any failure becomes a two-item ERROR reply."""
        try:
            if self._handler is None:
                raise ProgramError("no message handler registered")
            try:
                return await asyncio.wait_for(
                    self._call_handler(self._handler, user, request_id, contents),
                    timeout=self.config.handler_timeout_seconds,
                )
            except TimeoutError as exc:
                raise HandlerTimeoutError() from exc
        except Exception as exc:
            user_message, error = describe_error(exc)
            logger.error(
                "handler_failed",
                user_message=user_message,
                error=error,
                exc_info=not isinstance(exc, NormalError),
            )
            return error_reply(user_message)

    async def _call_handler(
        self,
        handler: MessageHandler,
        user: User,
        request_id: str,
        contents: Contents,
    ) -> Contents:
        """Await a coroutine handler, or run a plain one on the handler pool.

        A timed-out plain handler cannot be interrupted: it keeps its pool
        thread until it returns.  The pool is separate from the default
        executor that runs the IMAP calls.
        """
        if inspect.iscoroutinefunction(handler):
            result = await handler(user.id, request_id, user, contents)
        else:
            loop = asyncio.get_running_loop()
            context = contextvars.copy_context()
            result = await loop.run_in_executor(
                self._handler_pool,
                functools.partial(context.run, handler, user.id, request_id, user, contents),
            )
            if inspect.isawaitable(result):
                result = await result
        return list(result or [])

    # ------------------------------------------------------------------
    # Health server
    # ------------------------------------------------------------------

    async def _run_health_server(self) -> None:
        app = create_health_app(self)
        config = uvicorn.Config(
            app,
            host="0.0.0.0",
            port=self.config.health_port,
            log_level="warning",
        )
        server = uvicorn.Server(config)

        serve_task = asyncio.create_task(server.serve())
        await self._shutdown_event.wait()
        server.should_exit = True
        await serve_task

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def run(self) -> None:
        """Run until SIGTERM/SIGINT::

            asyncio.run(dispatcher.run())
        """
        setup_logging(
            json=self.config.log_json,
            level=self.config.log_level,
            app_name=self.config.app_name,
        )
        remove_signal_handlers = install_signal_handlers(self._shutdown_event)
        self.start_time = time.monotonic()
        logger.info("gateway_starting", app=self.config.app_name, users=len(self._users))

        try:
            async with asyncio.TaskGroup() as tg:
                listen_task = tg.create_task(self._listener.listen(self.mails, self.errors))
                dispatch_task = tg.create_task(self.dispatch_loop())
                tg.create_task(self._run_health_server())
                self.status = GatewayStatus.RUNNING

                await self._shutdown_event.wait()
                self.status = GatewayStatus.STOPPING
                listen_task.cancel()
                dispatch_task.cancel()
        except* Exception:
            logger.exception("gateway_task_group_error")
        finally:
            self.status = GatewayStatus.STOPPING
            await self._drain()
            remove_signal_handlers()
            self.status = GatewayStatus.STOPPED
            logger.info("gateway_stopped", mails_received=self.mails_received)

    async def _drain(self) -> None:
        """Give in-flight requests one handler timeout to finish, then cancel.

        The handler pool is shut down without waiting; threads still inside
        a plain handler finish on their own.
        """
        if self._tasks:
            _, pending = await asyncio.wait(
                set(self._tasks),
                timeout=self.config.handler_timeout_seconds,
            )
            for task in pending:
                task.cancel()
            logger.info("in_flight_requests_drained", cancelled=len(pending))
        self._handler_pool.shutdown(wait=False, cancel_futures=True)
