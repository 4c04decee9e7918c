"""Content items exchanged between the pipeline, handlers and the sender.

A ``Contents`` value is a plain ordered list of these items: command items
first, then body items, then file-wrapped attachments.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Tag(str, Enum):
    """Role of a content item within a request or reply."""

    TITLE = "title"
    BODY = "body"
    ERROR = "error"
    COMMAND = "command"


@dataclass(frozen=True)
class TextContent:
    tag: Tag
    text: str

    media_type = "text/plain"
    ext_name = ".txt"

    def __len__(self) -> int:
        return len(self.to_bytes())

    def to_bytes(self) -> bytes:
        return self.text.encode("utf-8")

    def to_string(self) -> str:
        return self.text


@dataclass(frozen=True)
class HTMLContent:
    tag: Tag
    html: str

    media_type = "text/html"
    ext_name = ".html"

    def __len__(self) -> int:
        return len(self.to_bytes())

    def to_bytes(self) -> bytes:
        return self.html.encode("utf-8")

    def to_string(self) -> str:
        return self.html


@dataclass(frozen=True)
class ByteContent:
    tag: Tag
    data: bytes

    media_type = "application/octet-stream"
    ext_name = ".bin"

    def __len__(self) -> int:
        return len(self.data)

    def to_bytes(self) -> bytes:
        return self.data

    def to_string(self) -> str:
        return self.data.decode("utf-8", errors="replace")


ContentItem = TextContent | HTMLContent | ByteContent


@dataclass(frozen=True)
class FileContent:
    """Wraps another item with the filename it arrived (or leaves) as."""

    filename: str
    content: ContentItem

    @property
    def tag(self) -> Tag:
        return self.content.tag

    @property
    def media_type(self) -> str:
        return self.content.media_type

    @property
    def ext_name(self) -> str:
        _, dot, ext = self.filename.rpartition(".")
        return f".{ext}" if dot else self.content.ext_name

    def __len__(self) -> int:
        return len(self.content)

    def to_bytes(self) -> bytes:
        return self.content.to_bytes()

    def to_string(self) -> str:
        return self.content.to_string()


Contents = list[ContentItem | FileContent]


def error_reply(message: str) -> Contents:
    """The two-item reply sent when a request fails."""
    return [TextContent(Tag.TITLE, "ERROR"), TextContent(Tag.ERROR, message)]
