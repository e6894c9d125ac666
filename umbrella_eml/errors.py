"""Exception taxonomy for the EML reader.

Structural failures (I/O, use after close, bad ranges) raise.  Header
decoding problems never do; the decoders log and fall back to the
literal value instead.
"""

from __future__ import annotations

from typing import Any


class EmlError(Exception):
    """Base exception for all EML reader errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} (Details: {details_str})"
        return self.message


class StreamIOError(EmlError, OSError):
    """Open, seek, read or close of the underlying file failed."""


class StreamClosedError(EmlError, ValueError):
    """Operation on a window that is closed or whose source was force-closed."""


class InvalidRangeError(EmlError, ValueError):
    """Negative window start or seek offset."""


class TransferDecodingError(EmlError, ValueError):
    """A part body could not be decoded from its transfer encoding."""


class PartialParseError(StreamIOError):
    """An I/O failure interrupted a multipart boundary scan.

    ``parts`` holds the children that were fully resolved before the
    failure, in byte order.  They are still open; the caller owns them.
    """

    def __init__(
        self,
        message: str,
        parts: list | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.parts = parts or []
