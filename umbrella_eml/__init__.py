"""Umbrella EML reader: zero-copy MIME part trees over ``.eml`` files.

Public API re-exported here for convenience::

    from umbrella_eml import Message, MultipartParser

    with Message.open("mail.eml") as message:
        for part in MultipartParser().parse(message):
            print(part.content_type, part.filename)
"""

from .config import ParserConfig
from .errors import (
    EmlError,
    InvalidRangeError,
    PartialParseError,
    StreamClosedError,
    StreamIOError,
    TransferDecodingError,
)
from .extract import extract_attachments, iter_attachments, save_attachment
from .headers import (
    decode_encoded_word,
    find_header,
    get_parameter_value,
    split_header,
    unfold_headers,
)
from .logging import setup_logging
from .message import Message
from .models import MessageSummary, PartSummary, summarize
from .multipart import MultipartParser, ScanState, walk
from .part import MimePart, parse_part
from .stream import EMPTY_STREAM, TO_END, EmptyStream, SharedSource, WindowedStream

__all__ = [
    "EMPTY_STREAM",
    "EmlError",
    "EmptyStream",
    "InvalidRangeError",
    "Message",
    "MessageSummary",
    "MimePart",
    "MultipartParser",
    "ParserConfig",
    "PartSummary",
    "PartialParseError",
    "ScanState",
    "SharedSource",
    "StreamClosedError",
    "StreamIOError",
    "TO_END",
    "TransferDecodingError",
    "WindowedStream",
    "decode_encoded_word",
    "extract_attachments",
    "find_header",
    "get_parameter_value",
    "iter_attachments",
    "parse_part",
    "save_attachment",
    "setup_logging",
    "split_header",
    "summarize",
    "unfold_headers",
    "walk",
]
