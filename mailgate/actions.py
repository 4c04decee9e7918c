"""Minimal command-to-action registry usable as the gateway's handler.

Actions are plain functions ``(session_key, user, text) -> str`` registered
under one or more names.  The first ``COMMAND`` item of a request selects
the action; the request's plain-text body is passed as ``text``.
"""

from __future__ import annotations

import re
from collections.abc import Callable

import structlog

from .contents import Contents, Tag, TextContent
from .errors import NormalError
from .models import User

logger = structlog.get_logger()

ActionFunc = Callable[[str, User, str], str]

_SEPARATORS_RE = re.compile(r"[\s\-_,，]+")

BANNER = "mailgate: email in, answers out."


def normalize_name(name: str) -> str:
    return _SEPARATORS_RE.sub("", name).lower()


class ActionRegistry:
    def __init__(self) -> None:
        self._actions: dict[str, tuple[str, ActionFunc]] = {}

    def register(self, func: ActionFunc, name: str, *aliases: str) -> None:
        """Register *func* under *name* and every alias; later wins."""
        for key in (name, *aliases):
            self._actions[normalize_name(key)] = (name, func)

    def names(self) -> list[str]:
        return sorted({name for name, _ in self._actions.values()})

    def handle(self, user_id: str, request_id: str, user: User, contents: Contents) -> Contents:
        command = next(
            (item for item in contents if item.tag is Tag.COMMAND and isinstance(item, TextContent)),
            None,
        )
        if command is None:
            raise NormalError("Invalid command")

        entry = self._actions.get(normalize_name(command.text))
        if entry is None:
            raise NormalError("Invalid command")
        name, func = entry

        text = "\n".join(
            item.text
            for item in contents
            if isinstance(item, TextContent) and item.tag is Tag.BODY
        )
        logger.debug("action_selected", action=name, request_id=request_id)
        result = func(user_id, user, text)
        return [TextContent(Tag.TITLE, name), TextContent(Tag.BODY, result)]


def hello_world(session_key: str, user: User, text: str) -> str:
    return f"{BANNER}\nHello, {user.name}!\n"


def default_registry() -> ActionRegistry:
    registry = ActionRegistry()
    registry.register(hello_world, "Hello-World", "HelloWorld", "Hello World", "你好世界", "你好，世界")
    return registry
