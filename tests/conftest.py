"""Shared test fixtures for the EML reader test suite."""

from __future__ import annotations

import io
from collections.abc import Callable, Iterator
from email import encoders, policy
from email.mime.application import MIMEApplication
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.message import Message as StdlibMessage
from pathlib import Path

import pytest

from umbrella_eml.stream import SharedSource, WindowedStream

PDF_BYTES = (
    b"%PDF-1.4\n%\xe2\xe3\xcf\xd3\n"
    b"1 0 obj << /Type /Catalog /Pages 2 0 R >> endobj\r\n"
    b"\x00\x01\x02\xff binary tail\r"
    b"trailer << /Root 1 0 R >>\n%%EOF\n"
)


class CountingBytesIO(io.BytesIO):
    """In-memory file that records how often it was closed."""

    def __init__(self, data: bytes) -> None:
        super().__init__(data)
        self.close_calls = 0

    def close(self) -> None:
        self.close_calls += 1
        super().close()


def memory_stream(data: bytes, name: str = "memory") -> WindowedStream:
    """A root window over *data* without touching the filesystem."""
    return WindowedStream(SharedSource(CountingBytesIO(data), name, len(data)), 0, len(data))


# ------------------------------------------------------------------
# Sample EML builders
# ------------------------------------------------------------------


def _as_bytes(msg: StdlibMessage, crlf: bool) -> bytes:
    linesep = "\r\n" if crlf else "\n"
    return msg.as_bytes(policy=policy.compat32.clone(linesep=linesep))


def _build_plain_email(
    *,
    subject: str = "Test Subject",
    from_addr: str = "sender@example.com",
    to_addr: str = "recipient@example.com",
    body: str = "Hello, World!",
    crlf: bool = False,
) -> bytes:
    """Build a simple plain-text email as raw bytes."""
    msg = MIMEText(body, "plain")
    msg["Subject"] = subject
    msg["From"] = from_addr
    msg["To"] = to_addr
    msg["Message-ID"] = "<test-001@example.com>"
    msg["Date"] = "Mon, 01 Jun 2025 12:00:00 +0000"
    return _as_bytes(msg, crlf)


def _attachment_part(filename: str | tuple[str, str, str], content_type: str, payload: bytes) -> MIMEBase:
    maintype, subtype = content_type.split("/", 1)
    part = MIMEApplication(payload, subtype) if maintype == "application" else MIMEBase(maintype, subtype)
    if maintype != "application":
        part.set_payload(payload)
        encoders.encode_base64(part)
    part.add_header("Content-Disposition", "attachment", filename=filename)
    return part


def _build_multipart_email(
    *,
    body_text: str = "Plain body",
    body_html: str = "<p>HTML body</p>",
    attachments: list[tuple[str | tuple[str, str, str], str, bytes]] | None = None,
    nested: bool = False,
    crlf: bool = False,
) -> bytes:
    """Build a multipart/mixed email: text, HTML, then attachments.

    With ``nested=True`` text and HTML sit in a multipart/alternative
    child instead of directly under the root.
    """
    msg = MIMEMultipart("mixed")
    msg["Subject"] = "Multipart Email"
    msg["From"] = "sender@example.com"
    msg["To"] = "recipient@example.com"
    msg["Message-ID"] = "<multi-001@example.com>"
    msg["Date"] = "Mon, 01 Jun 2025 12:00:00 +0000"

    if nested:
        alt = MIMEMultipart("alternative")
        alt.attach(MIMEText(body_text, "plain"))
        alt.attach(MIMEText(body_html, "html"))
        msg.attach(alt)
    else:
        msg.attach(MIMEText(body_text, "plain"))
        msg.attach(MIMEText(body_html, "html"))

    for filename, content_type, payload in attachments or []:
        msg.attach(_attachment_part(filename, content_type, payload))

    return _as_bytes(msg, crlf)


# ------------------------------------------------------------------
# Fixtures
# ------------------------------------------------------------------


@pytest.fixture
def write_eml(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing raw bytes to an ``.eml`` file under ``tmp_path``."""

    def _write(data: bytes, name: str = "message.eml") -> Path:
        path = tmp_path / name
        path.write_bytes(data)
        return path

    return _write


@pytest.fixture
def plain_eml(write_eml: Callable[..., Path]) -> Path:
    return write_eml(_build_plain_email(), "plain.eml")


@pytest.fixture
def multipart_eml(write_eml: Callable[..., Path]) -> Path:
    """Text + HTML alternative + one PDF attachment, all directly under the root."""
    return write_eml(
        _build_multipart_email(
            attachments=[("report.pdf", "application/pdf", PDF_BYTES)],
        ),
        "multipart.eml",
    )


@pytest.fixture
def nested_eml(write_eml: Callable[..., Path]) -> Path:
    return write_eml(
        _build_multipart_email(
            nested=True,
            attachments=[
                ("report.pdf", "application/pdf", PDF_BYTES),
                ("data.csv", "text/csv", b"col1,col2\na,b\n"),
            ],
        ),
        "nested.eml",
    )


@pytest.fixture
def stream_factory() -> Iterator[Callable[[bytes], WindowedStream]]:
    """Factory for in-memory root windows; sources are closed at teardown."""
    created: list[WindowedStream] = []

    def _make(data: bytes) -> WindowedStream:
        stream = memory_stream(data)
        created.append(stream)
        return stream

    yield _make
    for stream in created:
        stream.force_close()


@pytest.fixture(autouse=True)
def _reset_warning_capture() -> Iterator[None]:
    """Undo ``logging.captureWarnings`` left enabled by ``setup_logging`` so tests stay isolated."""
    yield
    import logging

    logging.captureWarnings(False)
