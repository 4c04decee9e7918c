"""Tests for mailgate.errors."""

from __future__ import annotations

from mailgate.errors import (
    SERVER_ERROR_MESSAGE,
    HandlerTimeoutError,
    MailParseError,
    NormalError,
    ProgramError,
    describe_error,
)


class TestDescribeError:
    def test_normal_error_shown_to_user(self):
        assert describe_error(NormalError("Invalid command")) == ("Invalid command", "")

    def test_program_error_hidden(self):
        user_message, log_message = describe_error(ProgramError("db down"))
        assert user_message == SERVER_ERROR_MESSAGE
        assert log_message == "db down"

    def test_parse_error_is_program_error(self):
        user_message, log_message = describe_error(MailParseError("bad boundary"))
        assert user_message == SERVER_ERROR_MESSAGE
        assert "bad boundary" in log_message

    def test_unclassified_error(self):
        user_message, log_message = describe_error(KeyError("missing"))
        assert user_message == SERVER_ERROR_MESSAGE
        assert log_message.startswith("KeyError")
        assert "missing" in log_message

    def test_timeout_is_normal(self):
        assert describe_error(HandlerTimeoutError())[0] == "Request timed out"
