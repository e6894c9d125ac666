"""Tests for the umbrella-eml command line."""

from __future__ import annotations

import json

import pytest

from umbrella_eml.__main__ import build_parser, main
from tests.conftest import PDF_BYTES


class TestSummaryCommand:
    def test_text_output(self, multipart_eml, capsys):
        assert main(["summary", str(multipart_eml)]) == 0
        out = capsys.readouterr().out
        assert "Subject: Multipart Email" in out
        assert "multipart/mixed" in out
        assert "attachment: report.pdf" in out

    def test_json_output(self, nested_eml, capsys):
        assert main(["summary", str(nested_eml), "--json"]) == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["subject"] == "Multipart Email"
        assert len(payload["parts"]) == 6

    def test_missing_file(self, tmp_path, capsys):
        assert main(["summary", str(tmp_path / "missing.eml")]) == 1
        assert "Cannot read" in capsys.readouterr().err


class TestExtractCommand:
    def test_extracts_attachments(self, multipart_eml, tmp_path, capsys):
        dest = tmp_path / "out"
        assert main(["extract", str(multipart_eml), str(dest)]) == 0
        assert (dest / "report.pdf").read_bytes() == PDF_BYTES
        assert str(dest / "report.pdf") in capsys.readouterr().out

    def test_raw_flag(self, multipart_eml, tmp_path):
        dest = tmp_path / "raw"
        assert main(["extract", str(multipart_eml), str(dest), "--raw"]) == 0
        assert (dest / "report.pdf").read_bytes() != PDF_BYTES


class TestArgumentParsing:
    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_log_options(self):
        args = build_parser().parse_args(["--log-level", "DEBUG", "--log-json", "summary", "f.eml"])
        assert args.log_level == "DEBUG"
        assert args.log_json is True
        assert args.command == "summary"
