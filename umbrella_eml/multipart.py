"""Multipart body splitting.

:class:`MultipartParser` scans a multipart part's body line by line for
``--boundary`` delimiter lines and turns each delimited byte range into
a child :class:`~umbrella_eml.part.MimePart`.  Children come out in byte
order.  A nested multipart child is split the same way when its own
children are asked for, see :func:`walk`.
"""

from __future__ import annotations

from collections.abc import Iterator
from enum import Enum

import structlog

from .config import ParserConfig
from .errors import PartialParseError, StreamIOError
from .part import MimePart, parse_part
from .stream import BodyStream

logger = structlog.get_logger()


class ScanState(str, Enum):
    """Position of the boundary scan within a multipart body."""

    SEEKING_FIRST_BOUNDARY = "seeking_first_boundary"
    IN_PART = "in_part"
    DONE = "done"


class MultipartParser:
    """Split multipart bodies into child parts.

    By default a delimiter line may carry stray bytes before
    ``--boundary``; they are kept with the child that precedes it.  With
    ``strict=True`` the line must start with the delimiter, as RFC 2046
    requires.  Trailing spaces and tabs after a delimiter are always
    ignored.
    """

    def __init__(self, *, strict: bool = False) -> None:
        self._strict = strict

    @classmethod
    def from_config(cls, config: ParserConfig) -> MultipartParser:
        return cls(strict=config.strict_boundaries)

    @property
    def strict(self) -> bool:
        return self._strict

    def parse(self, part: MimePart) -> list[MimePart]:
        """Return all children of *part*; ``[]`` when it is not splittable.

        An I/O failure mid-scan raises :class:`PartialParseError` holding
        the children resolved before it.
        """
        parts: list[MimePart] = []
        try:
            for child in self.iter_parts(part):
                parts.append(child)
        except StreamIOError as exc:
            logger.warning(
                "multipart_parse_aborted",
                boundary=part.boundary,
                resolved_parts=len(parts),
                error=str(exc),
            )
            raise PartialParseError(
                f"Multipart scan aborted: {exc.message}",
                parts=parts,
                details=exc.details,
            ) from exc
        return parts

    def iter_parts(self, part: MimePart) -> Iterator[MimePart]:
        """Yield the children of *part* one by one as their ranges close."""
        if not part.is_multipart:
            return
        boundary = part.boundary
        if not boundary:
            logger.debug("multipart_boundary_missing", content_type=part.content_type)
            return
        yield from self._scan(part.body, boundary)

    def _scan(self, body: BodyStream, boundary: str) -> Iterator[MimePart]:
        # Lines come from a private window; the cursor of body may move
        # between yields.
        scan = body.new_stream(0)
        try:
            yield from self._split(scan, body, boundary)
        finally:
            scan.close()

    def _split(
        self, scan: BodyStream, body: BodyStream, boundary: str
    ) -> Iterator[MimePart]:
        delimiter = f"--{boundary}"
        close_delimiter = f"{delimiter}--"
        state = ScanState.SEEKING_FIRST_BOUNDARY
        start = 0
        end: int | None = None

        while state is not ScanState.DONE:
            line_start = scan.tell()
            line = scan.read_line()
            if line is None:
                break
            if not line:
                continue
            candidate = line.rstrip(" \t")

            if self._matches(candidate, close_delimiter):
                stray = len(candidate) - len(close_delimiter)
                if stray and state is ScanState.IN_PART:
                    end = line_start + stray
                if state is ScanState.IN_PART and end is not None:
                    yield parse_part(body, start, end)
                state = ScanState.DONE
                continue

            if self._matches(candidate, delimiter):
                stray = len(candidate) - len(delimiter)
                if stray and state is ScanState.IN_PART:
                    end = line_start + stray
                if state is ScanState.IN_PART and end is not None:
                    yield parse_part(body, start, end)
                start = scan.tell()
                end = None
                state = ScanState.IN_PART
                continue

            end = line_start + len(line)

        if state is ScanState.IN_PART and end is not None:
            yield parse_part(body, start, end)

    def _matches(self, line: str, delimiter: str) -> bool:
        if self._strict:
            return line == delimiter
        return line.endswith(delimiter)


def walk(
    part: MimePart,
    config: ParserConfig | None = None,
    *,
    parser: MultipartParser | None = None,
) -> Iterator[tuple[int, MimePart]]:
    """Yield ``(depth, part)`` depth-first in byte order, *part* first at 0.

    Nested multiparts are split on the way down, to at most
    ``config.max_depth`` levels below *part*.  Leaf parts are yielded
    open and belong to the caller; nested multipart containers are
    closed once their children have been walked.
    """
    config = config or ParserConfig()
    parser = parser or MultipartParser.from_config(config)
    yield from _walk(part, 0, config.max_depth, parser)


def _walk(
    part: MimePart, depth: int, max_depth: int, parser: MultipartParser
) -> Iterator[tuple[int, MimePart]]:
    yield depth, part
    if not part.is_multipart:
        return
    if depth >= max_depth:
        logger.warning("multipart_max_depth_reached", depth=depth, boundary=part.boundary)
        return
    for child in parser.iter_parts(part):
        try:
            yield from _walk(child, depth + 1, max_depth, parser)
        finally:
            if child.is_multipart:
                child.close()
