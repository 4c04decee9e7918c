"""Rebuild a parseable MIME document from a partial IMAP fetch and classify
its parts.

The server hands us a BODYSTRUCTURE description and the raw ``BODY[TEXT]``
bytes, not a complete RFC 822 document.  We synthesize the missing top-level
header block and re-parse.  For multipart bodies the sender-chosen boundary
is rewritten to :data:`BOUNDARY_MARKER` everywhere in the byte stream before
parsing.

Known limitation: the rewrite is a plain byte substitution, so a body that
contains the boundary string as ordinary text (or a nested multipart whose
own boundary contains it) is rewritten too.
"""

from __future__ import annotations

import email
import email.errors
import email.policy
from collections.abc import Iterator
from email.message import EmailMessage, Message

from .errors import MailParseError
from .models import Attach, BodyStructure, Content, ContentKind

BOUNDARY_MARKER = "MAILGATE-BOUNDARY-7f3c9a"

_KINDS = {
    "text/plain": ContentKind.TEXT,
    "text/html": ContentKind.HTML,
}

_FATAL_DEFECTS = (
    email.errors.NoBoundaryInMultipartDefect,
    email.errors.StartBoundaryNotFoundDefect,
    email.errors.MultipartInvariantViolationDefect,
)


# ------------------------------------------------------------------
# Reconstruction
# ------------------------------------------------------------------


def reconstruct(structure: BodyStructure, body: bytes) -> EmailMessage:
    """Synthesize headers for *body* and parse it into a message tree."""
    if structure.is_multipart:
        raw = _multipart_document(structure, body)
    else:
        raw = _single_part_document(structure, body)

    msg = email.message_from_bytes(raw, policy=email.policy.default)

    fatal = [d for d in msg.defects if isinstance(d, _FATAL_DEFECTS)]
    if fatal:
        raise MailParseError(
            f"malformed {structure.media_type} body: {type(fatal[0]).__name__}"
        )
    return msg  # type: ignore[return-value]


def _multipart_document(structure: BodyStructure, body: bytes) -> bytes:
    boundary = structure.params.get("boundary", "")
    if not boundary:
        raise MailParseError(f"{structure.media_type} body declares no boundary")

    header = (
        "MIME-Version: 1.0\r\n"
        f'Content-Type: {structure.media_type}; boundary="{BOUNDARY_MARKER}"\r\n'
        "\r\n"
    )
    rewritten = body.replace(boundary.encode("utf-8"), BOUNDARY_MARKER.encode("ascii"))
    return header.encode("ascii") + rewritten


def _single_part_document(structure: BodyStructure, body: bytes) -> bytes:
    # set_param quotes and escapes server-supplied parameter values.
    header = EmailMessage()
    header["Content-Type"] = structure.media_type
    for key, value in structure.params.items():
        header.set_param(key, _single_line(value))
    header["Content-Transfer-Encoding"] = _single_line(structure.encoding or "7bit")
    return header.as_bytes() + body


def _single_line(value: str) -> str:
    return " ".join(str(value).splitlines())


def iter_parts(msg: Message) -> Iterator[Message]:
    """Yield every leaf part.

    Only ``multipart/*`` containers are descended into.  An embedded
    ``message/*`` part (a forwarded mail) is a single leaf.
    """
    if msg.get_content_maintype() == "multipart" and msg.is_multipart():
        for child in msg.get_payload():
            yield from iter_parts(child)
    else:
        yield msg


# ------------------------------------------------------------------
# Classification
# ------------------------------------------------------------------


def classify_part(part: Message) -> Content | Attach:
    """Turn one leaf part into exactly one :class:`Content` or :class:`Attach`."""
    kind = _KINDS.get(part.get_content_type(), ContentKind.OTHER)
    data = _read_payload(part)

    if part.get_content_disposition() == "attachment":
        return Attach(kind=kind, filename=part.get_filename() or "unnamed", data=data)

    return Content(
        kind=kind,
        length=_declared_length(part, data),
        text=_decode_text(part, data, strict=kind is not ContentKind.OTHER),
        raw=data,
    )


def _read_payload(part: Message) -> bytes:
    if part.get_content_maintype() == "message" and part.is_multipart():
        # The embedded message is kept whole, headers included.
        return b"".join(inner.as_bytes() for inner in part.get_payload())

    payload = part.get_payload(decode=True)
    if payload is None:
        raise MailParseError(f"unreadable {part.get_content_type()} part")
    return payload


def _decode_text(part: Message, data: bytes, *, strict: bool) -> str:
    """Decode with the part's charset.

    Text and HTML parts must decode cleanly; other parts only get a
    best-effort rendering next to their raw bytes.
    """
    charset = part.get_content_charset() or "utf-8"
    try:
        return data.decode(charset, errors="strict" if strict else "replace")
    except LookupError as exc:
        raise MailParseError(f"unknown charset {charset!r}") from exc
    except UnicodeDecodeError as exc:
        raise MailParseError(
            f"undecodable {part.get_content_type()} part ({charset}): {exc.reason}"
        ) from exc


def _declared_length(part: Message, data: bytes) -> int:
    declared = part.get("Content-Length")
    if declared is not None and str(declared).strip().isdigit():
        return int(str(declared).strip())
    return len(data)


def read_body(
    structure: BodyStructure | None,
    body: bytes | None,
) -> tuple[tuple[Content, ...], tuple[Attach, ...]]:
    """Reconstruct, walk and classify a fetched body.

    Returns ``(contents, attaches)`` in part order.  A fetch without a body
    section yields two empty tuples.
    """
    if body is None:
        return (), ()
    if structure is None:
        raise MailParseError("body fetched without a body structure")

    contents: list[Content] = []
    attaches: list[Attach] = []
    for part in iter_parts(reconstruct(structure, body)):
        item = classify_part(part)
        if isinstance(item, Attach):
            attaches.append(item)
        else:
            contents.append(item)
    return tuple(contents), tuple(attaches)
