"""Serialisable summaries of a parsed message."""

from __future__ import annotations

from pydantic import BaseModel, Field

from .config import ParserConfig
from .message import Message
from .multipart import walk
from .part import MimePart


class PartSummary(BaseModel):
    """One node of the part tree, flattened with its depth."""

    depth: int = Field(description="Nesting depth; 0 is the message itself")
    mime_type: str = Field(description="Lower-cased type/subtype")
    transfer_encoding: str | None = Field(
        default=None,
        description="Content-Transfer-Encoding as declared",
    )
    is_multipart: bool = Field(description="Whether the part is a multipart container")
    is_attachment: bool = Field(description="Whether Content-Disposition is attachment")
    filename: str | None = Field(default=None, description="Decoded attachment filename")
    charset: str | None = Field(default=None, description="Effective charset of a text part")
    body_offset: int = Field(description="Absolute file offset of the body window")
    body_size: int = Field(description="Body window length in bytes")

    @classmethod
    def from_part(
        cls, part: MimePart, depth: int, default_charset: str = "utf-8"
    ) -> PartSummary:
        return cls(
            depth=depth,
            mime_type=part.mime_type,
            transfer_encoding=part.transfer_encoding,
            is_multipart=part.is_multipart,
            is_attachment=part.is_attachment,
            filename=part.filename,
            charset=part.get_charset(default_charset) if part.is_text else None,
            body_offset=part.body.start,
            body_size=part.body.size,
        )


class MessageSummary(BaseModel):
    """Envelope fields and part tree of one ``.eml`` file."""

    path: str = Field(description="File the message was read from")
    size: int = Field(description="Total file length in bytes")
    sender: str | None = Field(default=None, description="From header")
    recipient: str | None = Field(default=None, description="To header")
    subject: str | None = Field(default=None, description="Decoded Subject header")
    parts: list[PartSummary] = Field(
        default_factory=list,
        description="Depth-first part tree, the message itself first",
    )

    @property
    def attachments(self) -> list[PartSummary]:
        return [p for p in self.parts if p.is_attachment]


def summarize(message: Message, config: ParserConfig | None = None) -> MessageSummary:
    """Walk *message* and describe every part.  Child parts are closed."""
    config = config or ParserConfig()
    parts: list[PartSummary] = []
    for depth, part in walk(message, config):
        parts.append(PartSummary.from_part(part, depth, config.default_text_charset))
        if part is not message and not part.is_multipart:
            part.close()
    return MessageSummary(
        path=message.path,
        size=message.size,
        sender=message.sender,
        recipient=message.recipient,
        subject=message.subject,
        parts=parts,
    )
