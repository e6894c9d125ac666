"""Top-level EML message: the root part plus its envelope fields."""

from __future__ import annotations

import os

import structlog

from .config import ParserConfig
from .headers import decode_encoded_word, split_header, unfold_headers
from .part import MimePart
from .stream import BodyStream, WindowedStream

logger = structlog.get_logger()

_ENVELOPE_FIELDS = ("from", "to", "subject")


class Message(MimePart):
    """An opened ``.eml`` file.

    The message owns the one real file handle; every part split out of
    it holds a lease on that handle.  :meth:`close` force-closes the
    file, after which any part still open fails with
    :class:`~umbrella_eml.errors.StreamClosedError`.
    """

    def __init__(
        self,
        headers: list[str],
        body: BodyStream,
        *,
        path: str,
        size: int,
        sender: str | None = None,
        recipient: str | None = None,
        subject: str | None = None,
    ) -> None:
        super().__init__(headers, body)
        self._path = path
        self._size = size
        self._sender = sender
        self._recipient = recipient
        self._subject = subject

    @classmethod
    def open(
        cls, path: str | os.PathLike[str], config: ParserConfig | None = None
    ) -> Message:
        """Open *path*, read its header block and wrap the rest as the body.

        Raises :class:`~umbrella_eml.errors.StreamIOError` if the file
        cannot be opened or read; no partial message is returned.
        """
        config = config or ParserConfig()
        root = WindowedStream.open(path)
        try:
            headers = unfold_headers(root)
            body = root.new_stream(root.tell())
        except BaseException:
            root.force_close()
            raise
        # The body window holds its own lease on the file.
        root.close()

        found: dict[str, str] = {}
        for header in headers:
            name, value = split_header(header)
            key = name.lower()
            if key in _ENVELOPE_FIELDS and key not in found:
                found[key] = value
                if len(found) == len(_ENVELOPE_FIELDS):
                    break

        charset = config.header_charset
        subject = found.get("subject")
        message = cls(
            headers,
            body,
            path=root.source.name,
            size=root.size,
            sender=_redecode(found.get("from"), charset),
            recipient=_redecode(found.get("to"), charset),
            subject=decode_encoded_word(_redecode(subject, charset)) if subject else subject,
        )
        logger.debug(
            "message_opened",
            path=message.path,
            size=message.size,
            multipart=message.is_multipart,
        )
        return message

    @property
    def path(self) -> str:
        return self._path

    @property
    def size(self) -> int:
        """Total file length in bytes, captured at open time."""
        return self._size

    @property
    def sender(self) -> str | None:
        return self._sender

    @property
    def recipient(self) -> str | None:
        return self._recipient

    @property
    def subject(self) -> str | None:
        return self._subject

    def close(self) -> None:
        """Close the underlying file, whatever parts are still open."""
        self._body.force_close()


def _redecode(value: str | None, charset: str) -> str | None:
    """Re-read a byte-per-char header value as *charset* text."""
    if value is None:
        return None
    return value.encode("latin-1").decode(charset, errors="replace")
