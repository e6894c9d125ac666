"""Tests for umbrella_eml.models."""

from __future__ import annotations

import json

from umbrella_eml.config import ParserConfig
from umbrella_eml.message import Message
from umbrella_eml.models import MessageSummary, PartSummary, summarize


class TestSummarize:
    def test_part_tree(self, nested_eml):
        with Message.open(nested_eml) as message:
            summary = summarize(message)

        assert isinstance(summary, MessageSummary)
        assert summary.subject == "Multipart Email"
        assert summary.size == nested_eml.stat().st_size
        assert [(p.depth, p.mime_type) for p in summary.parts] == [
            (0, "multipart/mixed"),
            (1, "multipart/alternative"),
            (2, "text/plain"),
            (2, "text/html"),
            (1, "application/pdf"),
            (1, "text/csv"),
        ]
        assert [a.filename for a in summary.attachments] == ["report.pdf", "data.csv"]
        assert all(a.transfer_encoding == "base64" for a in summary.attachments)

    def test_text_part_charsets(self, nested_eml):
        with Message.open(nested_eml) as message:
            summary = summarize(message, ParserConfig(default_text_charset="latin-1"))
        charsets = {p.mime_type: p.charset for p in summary.parts}
        assert charsets["text/plain"] == "ascii"
        assert charsets["text/csv"] == "latin-1"
        assert charsets["application/pdf"] is None

    def test_children_released(self, nested_eml):
        with Message.open(nested_eml) as message:
            summarize(message)
            assert message.body.source.ref_count == 1

    def test_max_depth_respected(self, nested_eml):
        with Message.open(nested_eml) as message:
            summary = summarize(message, ParserConfig(max_depth=1))
        assert max(p.depth for p in summary.parts) == 1

    def test_plain_message(self, plain_eml):
        with Message.open(plain_eml) as message:
            summary = summarize(message)
        (root,) = summary.parts
        assert root.depth == 0
        assert root.mime_type == "text/plain"
        assert root.body_size == len(b"Hello, World!")
        assert summary.attachments == []

    def test_json_round_trip(self, multipart_eml):
        with Message.open(multipart_eml) as message:
            summary = summarize(message)
        payload = json.loads(summary.model_dump_json())
        assert payload["sender"] == "sender@example.com"
        assert payload["parts"][-1]["filename"] == "report.pdf"
        assert MessageSummary.model_validate(payload) == summary


class TestPartSummary:
    def test_optional_fields_default_to_none(self):
        part = PartSummary(
            depth=0,
            mime_type="text/plain",
            is_multipart=False,
            is_attachment=False,
            body_offset=10,
            body_size=5,
        )
        assert part.filename is None
        assert part.transfer_encoding is None
