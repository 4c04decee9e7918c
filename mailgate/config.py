"""Gateway configuration loaded from environment variables.

Every component receives its config object through its constructor, so
tests can inject fixtures instead of touching process-wide state.
"""

from __future__ import annotations

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings

from .models import User


class ImapConfig(BaseSettings):
    """IMAP mailbox the listener polls."""

    model_config = {"env_prefix": "IMAP_"}

    host: str = Field(description="IMAP server hostname")
    port: int = Field(default=993, description="IMAP server port")
    use_ssl: bool = Field(default=True, description="Use SSL/TLS connection")
    username: str = Field(description="IMAP login username")
    password: SecretStr = Field(description="IMAP login password")
    mailbox: str = Field(default="INBOX", description="IMAP mailbox/folder to poll")
    poll_interval_seconds: float = Field(
        default=5.0,
        description="Seconds between IMAP poll cycles",
    )


class SmtpConfig(BaseSettings):
    """SMTP server used to send replies."""

    model_config = {"env_prefix": "SMTP_"}

    host: str = Field(description="SMTP server hostname")
    port: int = Field(default=465, description="SMTP server port")
    use_tls: bool = Field(default=True, description="Connect with implicit TLS")
    start_tls: bool = Field(default=False, description="Upgrade a plain connection with STARTTLS")
    username: str = Field(description="SMTP login username, also used as the From address")
    password: SecretStr = Field(description="SMTP login password")
    timeout_seconds: float = Field(default=60.0, description="SMTP operation timeout")


class RetryConfig(BaseSettings):
    """Backoff settings for IMAP reconnection, driven by Tenacity."""

    model_config = {"env_prefix": "RETRY_"}

    max_attempts: int = Field(default=5, description="Maximum reconnect attempts per outage")
    initial_wait_seconds: float = Field(
        default=1.0,
        description="Initial backoff wait in seconds",
    )
    max_wait_seconds: float = Field(
        default=60.0,
        description="Maximum backoff wait in seconds",
    )
    multiplier: float = Field(default=2.0, description="Exponential backoff multiplier")


class GatewayConfig(BaseSettings):
    """Root configuration for a gateway instance.

    Nested configs are populated from their own env-var prefixes.
    ``users`` is read as JSON, e.g.
    ``GATEWAY_USERS='[{"id": "u1", "name": "Alice", "email": "alice@example.com"}]'``.
    """

    model_config = {"env_prefix": "GATEWAY_"}

    app_name: str = Field(default="mailgate", description="Name used in reply subjects")
    mail_queue_size: int = Field(default=20, description="Capacity of the fetched-mail queue")
    error_queue_size: int = Field(default=1, description="Capacity of the listener error queue")
    max_concurrent_requests: int = Field(
        default=32,
        ge=1,
        description="Maximum number of request tasks in flight at once",
    )
    handler_timeout_seconds: float = Field(
        default=300.0,
        description="Upper bound on a single handler invocation",
    )
    handler_threads: int = Field(
        default=64,
        ge=1,
        description="Worker threads reserved for plain (non-async) handlers",
    )
    health_port: int = Field(default=8080, description="Port for health probe endpoints")
    log_json: bool = Field(default=True, description="Emit JSON log lines")
    log_level: str = Field(default="INFO", description="Root log level")
    users: list[User] = Field(default_factory=list, description="Known users allowed to send requests")

    imap: ImapConfig = Field(default_factory=ImapConfig)
    smtp: SmtpConfig = Field(default_factory=SmtpConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
