"""Read-only lookup of known users by email address."""

from __future__ import annotations

from collections.abc import Iterable

from .models import User


class UserStore:
    """Immutable index of users keyed by lower-cased address."""

    def __init__(self, users: Iterable[User] = ()) -> None:
        self._by_email = {user.email.strip().lower(): user for user in users}

    def find(self, email: str) -> User | None:
        return self._by_email.get((email or "").strip().lower())

    def __len__(self) -> int:
        return len(self._by_email)
