"""Tests for mailgate.contents."""

from __future__ import annotations

from mailgate.contents import (
    ByteContent,
    FileContent,
    HTMLContent,
    Tag,
    TextContent,
    error_reply,
)


class TestContentItems:
    def test_text_length_is_utf8_bytes(self):
        item = TextContent(Tag.BODY, "héllo")
        assert len(item) == 6
        assert item.to_string() == "héllo"
        assert item.media_type == "text/plain"

    def test_html(self):
        item = HTMLContent(Tag.BODY, "<p>x</p>")
        assert item.to_bytes() == b"<p>x</p>"
        assert item.ext_name == ".html"

    def test_bytes(self):
        item = ByteContent(Tag.BODY, b"\xff\x00")
        assert len(item) == 2
        assert item.to_string() == "�\x00"


class TestFileContent:
    def test_delegates_to_inner(self):
        file = FileContent("report.pdf", ByteContent(Tag.BODY, b"%PDF"))
        assert file.tag is Tag.BODY
        assert file.to_bytes() == b"%PDF"
        assert len(file) == 4
        assert file.ext_name == ".pdf"

    def test_ext_name_falls_back_to_inner(self):
        file = FileContent("README", TextContent(Tag.BODY, "read me"))
        assert file.ext_name == ".txt"
        assert file.media_type == "text/plain"


class TestErrorReply:
    def test_two_items(self):
        reply = error_reply("Invalid command")
        assert reply == [
            TextContent(Tag.TITLE, "ERROR"),
            TextContent(Tag.ERROR, "Invalid command"),
        ]
