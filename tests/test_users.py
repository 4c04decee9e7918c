"""Tests for mailgate.users."""

from __future__ import annotations

from mailgate.users import UserStore

from tests.conftest import ALICE, BOB


class TestUserStore:
    def test_find_known(self, users: UserStore):
        assert users.find("alice@example.com") == ALICE

    def test_find_is_case_insensitive(self, users: UserStore):
        assert users.find("  Bob@Example.COM ") == BOB

    def test_find_unknown(self, users: UserStore):
        assert users.find("mallory@example.com") is None

    def test_find_empty(self, users: UserStore):
        assert users.find("") is None

    def test_len(self, users: UserStore):
        assert len(users) == 2
        assert len(UserStore()) == 0
