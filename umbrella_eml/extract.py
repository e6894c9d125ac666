"""Attachment extraction: copy attachment parts out of a message to disk."""

from __future__ import annotations

import os
import re
from collections.abc import Iterator
from pathlib import Path

import structlog

from .config import ParserConfig
from .message import Message
from .multipart import walk
from .part import DEFAULT_CHUNK_SIZE, MimePart

logger = structlog.get_logger()


def iter_attachments(
    part: MimePart, config: ParserConfig | None = None
) -> Iterator[MimePart]:
    """Yield every attachment part below *part*, in byte order.

    Parts that are not attachments are closed as the walk passes them.
    """
    for _, child in walk(part, config):
        if child.is_attachment:
            yield child
        elif child is not part and not child.is_multipart:
            child.close()


def save_attachment(
    part: MimePart,
    directory: str | os.PathLike[str],
    *,
    decode: bool = True,
    filename: str | None = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> Path:
    """Write *part*'s body into *directory* and return the new file's path.

    The name comes from *filename* or the part's own filename, made safe
    for the filesystem; an existing file is never overwritten.  With
    ``decode=False`` the raw transfer-encoded byte range is copied.
    """
    target_dir = Path(directory)
    target_dir.mkdir(parents=True, exist_ok=True)
    target = _unique_path(target_dir, _sanitize_filename(filename or part.filename or "unnamed"))
    with target.open("xb") as fh:
        written = part.write_to(fh, decode=decode, chunk_size=chunk_size)
    logger.info("attachment_saved", path=str(target), size=written, decoded=decode)
    return target


def extract_attachments(
    message: Message,
    directory: str | os.PathLike[str],
    config: ParserConfig | None = None,
    *,
    decode: bool = True,
) -> list[Path]:
    """Save every attachment of *message* into *directory*.

    Returns the written paths in attachment order.
    """
    config = config or ParserConfig()
    paths: list[Path] = []
    for part in iter_attachments(message, config):
        with part:
            paths.append(
                save_attachment(
                    part,
                    directory,
                    decode=decode,
                    chunk_size=config.copy_chunk_size,
                )
            )
    return paths


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _sanitize_filename(name: str) -> str:
    """Remove characters unsafe for file names."""
    cleaned = re.sub(r"[^\w.\-]", "_", os.path.basename(name.replace("\\", "/")))
    return cleaned.lstrip(".") or "unnamed"


def _unique_path(directory: Path, name: str) -> Path:
    candidate = directory / name
    stem, suffix = candidate.stem, candidate.suffix
    counter = 1
    while candidate.exists():
        candidate = directory / f"{stem} ({counter}){suffix}"
        counter += 1
    return candidate
