"""Data model for fetched and parsed mail."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class GatewayStatus(str, Enum):
    """Runtime status of the gateway process."""

    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


class ContentKind(str, Enum):
    """Classification of a MIME part's payload."""

    TEXT = "text"
    HTML = "html"
    OTHER = "other"


@dataclass(frozen=True)
class Content:
    """An inline body part."""

    kind: ContentKind
    length: int
    text: str
    raw: bytes = b""


@dataclass(frozen=True)
class Attach:
    """A named attachment part."""

    kind: ContentKind
    filename: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


Address = tuple[str, str]


@dataclass(frozen=True)
class Mail:
    """One inbound message, envelope plus classified body."""

    id: str
    seq_num: int
    from_: tuple[Address, ...]
    to: tuple[Address, ...]
    date: datetime | None
    subject: str
    contents: tuple[Content, ...] = ()
    attaches: tuple[Attach, ...] = ()

    @property
    def sender(self) -> Address | None:
        return self.from_[0] if self.from_ else None


@dataclass(frozen=True)
class BodyStructure:
    """Description of a fetched body as reported by the server.

    ``media_type`` is lower-cased ``type/subtype``; ``params`` keys are
    lower-cased.  ``encoding`` is the transfer encoding of a single-part
    body and empty for multipart bodies.
    """

    media_type: str
    params: dict[str, str] = field(default_factory=dict)
    encoding: str = ""

    @property
    def is_multipart(self) -> bool:
        return self.media_type.startswith("multipart/")


@dataclass
class FetchedMail:
    """Raw fetch result pushed by the mailbox listener."""

    uid: int
    seq_num: int
    message_id: str = ""
    subject: str = ""
    from_: list[Address] = field(default_factory=list)
    to: list[Address] = field(default_factory=list)
    internal_date: datetime | None = None
    body_structure: BodyStructure | None = None
    body: bytes | None = None


class User(BaseModel):
    """A known user who may drive the gateway by email."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Stable user identifier passed to the handler")
    name: str = Field(description="Display name")
    email: str = Field(description="Address the user sends requests from")
