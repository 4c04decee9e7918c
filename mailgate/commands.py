"""Subject line to command items."""

from __future__ import annotations

import re

from .contents import Contents, Tag, TextContent

# Reply/forward prefixes added by mail clients, possibly stacked ("Re: Fwd: ...").
_PREFIX_RE = re.compile(r"^\s*(?:(?:re|fw|fwd|回复|答复|转发)\s*[:：]\s*)+", re.IGNORECASE)

COMMAND_SEPARATOR = ";"


def parse_subject(subject: str) -> Contents:
    """Split a subject into leading ``COMMAND`` items.

    ``"Re: Hello World; verbose"`` becomes two commands,
    ``"Hello World"`` and ``"verbose"``.
    """
    stripped = _PREFIX_RE.sub("", subject or "")
    return [
        TextContent(Tag.COMMAND, token.strip())
        for token in stripped.split(COMMAND_SEPARATOR)
        if token.strip()
    ]
