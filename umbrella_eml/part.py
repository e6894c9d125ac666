"""MIME part model: header lines plus a body window."""

from __future__ import annotations

import base64
import binascii
import codecs
import quopri
import re
from collections.abc import Iterator
from typing import BinaryIO

import structlog

from .errors import TransferDecodingError
from .headers import find_header, get_parameter_value, unfold_headers
from .stream import TO_END, BodyStream

logger = structlog.get_logger()

DEFAULT_CHUNK_SIZE = 64 * 1024

_IDENTITY_ENCODINGS = frozenset({"7bit", "8bit", "binary"})
_NOT_BASE64 = re.compile(rb"[^A-Za-z0-9+/=]")


class MimePart:
    """One MIME part: its unfolded header lines and its body window.

    Content type, transfer encoding, boundary and filename are derived
    from the header lines on every access.  Only the body cursor is
    mutable.  Closing the part releases its body window.
    """

    def __init__(self, headers: list[str], body: BodyStream) -> None:
        self._headers = tuple(headers)
        self._body = body
        content_type = self.content_type or ""
        self._multipart = content_type.lower().startswith("multipart/")
        self._attachment = not self._multipart and _disposition_type(
            self.get_header("Content-Disposition")
        ) == "attachment"

    @property
    def headers(self) -> tuple[str, ...]:
        return self._headers

    @property
    def body(self) -> BodyStream:
        return self._body

    @property
    def is_multipart(self) -> bool:
        return self._multipart

    @property
    def is_attachment(self) -> bool:
        return self._attachment

    def get_header(self, name: str) -> str | None:
        """Raw value of the first header called *name*, or ``None``."""
        return find_header(self._headers, name)

    @property
    def content_type(self) -> str | None:
        """Full ``Content-Type`` value, parameters included."""
        return self.get_header("Content-Type")

    @property
    def mime_type(self) -> str:
        """Lower-cased ``type/subtype``; ``text/plain`` when undeclared."""
        content_type = self.content_type
        if not content_type:
            return "text/plain"
        return content_type.split(";", 1)[0].strip().lower()

    @property
    def transfer_encoding(self) -> str | None:
        return self.get_header("Content-Transfer-Encoding")

    @property
    def boundary(self) -> str | None:
        if not self._multipart:
            return None
        return get_parameter_value(self.content_type or "", "boundary") or None

    @property
    def filename(self) -> str | None:
        """Decoded attachment filename, falling back to ``Content-Type; name``."""
        if not self._attachment:
            return None
        name = get_parameter_value(self.get_header("Content-Disposition") or "", "filename")
        if not name:
            name = get_parameter_value(self.content_type or "", "name")
        return name or None

    @property
    def is_text(self) -> bool:
        return self.mime_type.startswith("text/")

    def get_charset(self, default: str = "utf-8") -> str:
        """Declared charset if Python knows it, otherwise *default*."""
        charset = get_parameter_value(self.content_type or "", "charset")
        if not charset:
            return default
        try:
            return codecs.lookup(charset).name
        except LookupError:
            logger.warning("unknown_part_charset", charset=charset, fallback=default)
            return default

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    def iter_content(
        self, *, decode: bool = True, chunk_size: int = DEFAULT_CHUNK_SIZE
    ) -> Iterator[bytes]:
        """Yield the body bytes from the start, transfer-decoded by default."""
        self._body.seek(0)
        encoding = (self.transfer_encoding or "").lower()
        if not decode or self._multipart or not encoding or encoding in _IDENTITY_ENCODINGS:
            yield from _iter_raw(self._body, chunk_size)
        elif encoding == "base64":
            yield from _iter_base64(self._body, chunk_size)
        elif encoding == "quoted-printable":
            yield quopri.decodestring(self._body.read())
        else:
            logger.warning("unknown_transfer_encoding", encoding=encoding)
            yield from _iter_raw(self._body, chunk_size)

    def read_content(self, *, decode: bool = True) -> bytes:
        return b"".join(self.iter_content(decode=decode))

    def get_text(self, default_charset: str = "utf-8") -> str:
        """Decoded body as text, using the part's charset."""
        return self.read_content().decode(self.get_charset(default_charset), errors="replace")

    def write_to(
        self,
        fileobj: BinaryIO,
        *,
        decode: bool = True,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> int:
        """Copy the body into *fileobj*.  Returns the number of bytes written."""
        written = 0
        for chunk in self.iter_content(decode=decode, chunk_size=chunk_size):
            fileobj.write(chunk)
            written += len(chunk)
        return written

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        self._body.close()

    def __enter__(self) -> MimePart:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        if self._attachment:
            label = f"[Attachment: {self.filename}]"
        elif self._multipart:
            label = f"[Multipart: {self.boundary}]"
        else:
            label = self.mime_type
        return f"<{type(self).__name__} {label} body={self._body!r}>"


def parse_part(stream: BodyStream, start: int, end: int = TO_END) -> MimePart:
    """Build the part found at ``[start, end)`` of *stream*.

    The header block is read from the front of the range and the rest
    becomes the body window.  The cursor of *stream* is not moved.
    """
    window = stream.new_stream(start, end)
    with window:
        headers = unfold_headers(window)
        body = window.new_stream(window.tell())
    return MimePart(headers, body)


def _disposition_type(value: str | None) -> str:
    if not value:
        return ""
    return value.split(";", 1)[0].strip().lower()


def _iter_raw(body: BodyStream, chunk_size: int) -> Iterator[bytes]:
    while chunk := body.read(chunk_size):
        yield chunk


def _iter_base64(body: BodyStream, chunk_size: int) -> Iterator[bytes]:
    pending = b""
    try:
        while chunk := body.read(chunk_size):
            pending += _NOT_BASE64.sub(b"", chunk)
            usable = len(pending) - len(pending) % 4
            if usable:
                yield base64.b64decode(pending[:usable])
                pending = pending[usable:]
        if pending:
            yield base64.b64decode(pending + b"=" * (-len(pending) % 4))
    except binascii.Error as exc:
        raise TransferDecodingError("Invalid base64 body", {"error": str(exc)}) from exc
