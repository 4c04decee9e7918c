"""Assemble a :class:`Mail` from a raw fetch result."""

from __future__ import annotations

from collections.abc import Iterable

from .mime import read_body
from .models import Address, FetchedMail, Mail


def read_address(addresses: Iterable[Address]) -> tuple[Address, ...]:
    """Normalize ``(address, name)`` pairs, dropping entries without an address."""
    return tuple((addr.strip(), (name or "").strip()) for addr, name in addresses if addr)


def build_mail(fetched: FetchedMail) -> Mail:
    """Combine envelope fields with the classified body.

    Raises :class:`~mailgate.errors.MailParseError` when the body cannot
    be reconstructed.
    """
    contents, attaches = read_body(fetched.body_structure, fetched.body)
    return Mail(
        id=fetched.message_id,
        seq_num=fetched.seq_num,
        from_=read_address(fetched.from_),
        to=read_address(fetched.to),
        date=fetched.internal_date,
        subject=fetched.subject,
        contents=contents,
        attaches=attaches,
    )
