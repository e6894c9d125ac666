"""Header block unfolding and MIME parameter decoding.

Header lines are kept as read: one character per byte, with folded
continuation lines joined to their header by ``"\\n"`` so substring
scans still see every token.  Parameter values are decoded from RFC 2047
encoded-words and RFC 2231 extended / continued parameters.

Decoding problems never raise.  They are logged and the literal value
is returned.
"""

from __future__ import annotations

import re
from email.errors import HeaderParseError
from email.header import decode_header, make_header
from typing import Protocol
from urllib.parse import unquote_to_bytes

import structlog

logger = structlog.get_logger()

_PARAM_START = r"(?:^|(?<=[ \t\r\n;:]))"
_VALUE_END = re.compile(r"[;\s]")
_FOLD = re.compile(r"\r?\n[ \t]*")


class LineReader(Protocol):
    def read_line(self, charset: str | None = None) -> str | None: ...


def unfold_headers(stream: LineReader) -> list[str]:
    """Read a header block up to the first blank line or end of window.

    A line starting with a space or tab continues the previous header
    and is appended to it after a ``"\\n"``.
    """
    headers: list[str] = []
    while (line := stream.read_line()) is not None:
        if not line:
            break
        if line[0] in " \t" and headers:
            headers[-1] = f"{headers[-1]}\n{line}"
        else:
            headers.append(line)
    return headers


def split_header(header: str) -> tuple[str, str]:
    """Split ``"Name: value"`` into ``(name, value)`` with the value stripped."""
    name, _, value = header.partition(":")
    return name.strip(), value.strip()


def find_header(headers: list[str] | tuple[str, ...], name: str) -> str | None:
    """Value of the first header called *name* (case-insensitive), or ``None``."""
    wanted = name.lower()
    for header in headers:
        field, value = split_header(header)
        if field.lower() == wanted:
            return value
    return None


def decode_encoded_word(value: str) -> str:
    """Decode RFC 2047 encoded-words in *value*.

    Returns *value* unchanged when it has none, or when decoding fails
    (bad base64, unknown charset, undecodable bytes).
    """
    if "=?" not in value:
        return value
    try:
        return str(make_header(decode_header(value)))
    except (HeaderParseError, LookupError, UnicodeError) as exc:
        logger.warning("encoded_word_decode_failed", value=value, error=str(exc))
        return value


def get_parameter_value(header: str, name: str) -> str:
    """Return the value of parameter *name* in *header*, or ``""``.

    ``name=value`` (bare, ``"quoted"`` or ``'quoted'``) wins and is
    encoded-word decoded.  Otherwise the RFC 2231 forms are tried:
    ``name*=charset'lang'value`` and the ``name*0*=`` / ``name*1*=`` ...
    continuations, whose segments are joined in order and
    percent-decoded with the charset of segment 0.
    """
    if not header:
        return ""
    pos = _find_param(header, f"{name}=")
    if pos >= 0:
        value = _read_value(header, pos)
        if value is not None:
            return decode_encoded_word(value)
    return _extended_value(header, name)


def _find_param(header: str, key: str) -> int:
    """Offset in *header* just past *key* where it begins a parameter, or -1.

    Matching is ASCII case-insensitive on *header* as given, and *key*
    must follow a separator, so ``name=`` is not found inside
    ``filename=``.
    """
    match = re.search(_PARAM_START + re.escape(key), header, re.IGNORECASE | re.ASCII)
    return match.end() if match else -1


def _read_value(header: str, pos: int) -> str | None:
    """Read a parameter value at *pos*; ``None`` for an unterminated quote."""
    if pos >= len(header):
        return ""
    quote = header[pos]
    if quote in "\"'":
        close = header.find(quote, pos + 1)
        if close < 0:
            return None
        return header[pos + 1 : close]
    match = _VALUE_END.search(header, pos)
    return header[pos : match.start()] if match else header[pos:]


def _read_segment(header: str, pos: int) -> str:
    """Read an RFC 2231 segment value, which runs to the next ``;``."""
    if pos < len(header) and header[pos] == '"':
        close = header.find('"', pos + 1)
        if close >= 0:
            return header[pos + 1 : close]
    end = header.find(";", pos)
    raw = header[pos:] if end < 0 else header[pos:end]
    return _FOLD.sub("", raw).strip().strip('"')


def _extended_value(header: str, name: str) -> str:
    pos = _find_param(header, f"{name}*=")
    if pos >= 0:
        return _decode_segments([(True, _read_segment(header, pos))])

    segments: list[tuple[bool, str]] = []
    index = 0
    while True:
        for key, extended in ((f"{name}*{index}*=", True), (f"{name}*{index}=", False)):
            pos = _find_param(header, key)
            if pos >= 0:
                segments.append((extended, _read_segment(header, pos)))
                break
        else:
            break
        index += 1
    if not segments:
        return ""
    return _decode_segments(segments)


def _decode_segments(segments: list[tuple[bool, str]]) -> str:
    """Join RFC 2231 segments and decode them with segment 0's charset."""
    charset = ""
    extended, first = segments[0]
    if extended:
        fields = first.split("'", 2)
        if len(fields) == 3:
            charset, _language, first = fields
    segments = [(extended, first), *segments[1:]]
    charset = charset or "utf-8"
    try:
        data = b"".join(
            unquote_to_bytes(text) if ext else text.encode(charset)
            for ext, text in segments
        )
        return data.decode(charset)
    except (LookupError, UnicodeError) as exc:
        literal = "".join(text for _, text in segments)
        logger.warning(
            "extended_parameter_decode_failed",
            charset=charset,
            value=literal,
            error=str(exc),
        )
        return literal
