"""Windowed, reference-counted views over one shared random-access file.

A message file is opened once.  Every MIME part then reads its bytes
through a :class:`WindowedStream`, a ``[start, start + size)`` window
with its own cursor over the same :class:`SharedSource`.  Windows are
leases: the file is closed when the last lease is released, or at once
when the owner calls :meth:`WindowedStream.force_close`.

Each seek+read pair runs under the source's lock, so sibling windows may
be read from different threads.
"""

from __future__ import annotations

import os
import re
import threading
import warnings
from typing import BinaryIO

import structlog

from .errors import InvalidRangeError, StreamClosedError, StreamIOError

logger = structlog.get_logger()

#: ``end`` sentinel for :meth:`WindowedStream.new_stream`: up to the end of the window.
TO_END = -1

_READ_CHUNK = 8192
_EOL = re.compile(rb"[\r\n]")


class SharedSource:
    """Ownership record for one open file shared by many windows.

    Holds the file object, the number of live windows and the closed
    flag.  Windows keep a reference to this record rather than to the
    file, so use after close is detected here.
    """

    def __init__(self, fileobj: BinaryIO, name: str, length: int) -> None:
        self._file = fileobj
        self.name = name
        self.length = length
        self.lock = threading.RLock()
        self._refs = 1
        self._closed = False

    @classmethod
    def open(cls, path: str | os.PathLike[str]) -> SharedSource:
        """Open *path* for random byte access with one live lease."""
        name = os.fspath(path)
        try:
            fileobj = open(name, "rb")
        except OSError as exc:
            raise StreamIOError(
                f"Cannot open {name}: {exc.strerror or exc}",
                {"path": name},
            ) from exc
        try:
            length = os.fstat(fileobj.fileno()).st_size
        except OSError as exc:
            fileobj.close()
            raise StreamIOError(f"Cannot stat {name}", {"path": name}) from exc
        return cls(fileobj, name, length)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def ref_count(self) -> int:
        return self._refs

    # ------------------------------------------------------------------
    # Leases
    # ------------------------------------------------------------------

    def acquire(self) -> None:
        with self.lock:
            self.ensure_open()
            self._refs += 1

    def release(self) -> None:
        """Drop one lease; the file is closed when the last one goes."""
        with self.lock:
            if self._closed:
                return
            self._refs -= 1
            if self._refs <= 0:
                self._close()

    def force_close(self) -> None:
        """Close the file now, whatever leases are still outstanding."""
        with self.lock:
            if self._closed:
                try:
                    self._file.close()
                except OSError:
                    pass
                return
            outstanding = self._refs
            self._refs = 0
            self._close()
            if outstanding > 1:
                logger.debug(
                    "shared_source_force_closed",
                    source=self.name,
                    outstanding_windows=outstanding - 1,
                )

    def _close(self) -> None:
        self._closed = True
        try:
            self._file.close()
        except OSError as exc:
            raise StreamIOError(f"Cannot close {self.name}", {"path": self.name}) from exc
        logger.debug("shared_source_closed", source=self.name)

    def ensure_open(self) -> None:
        if self._closed:
            raise StreamClosedError("Stream closed", {"source": self.name})

    # ------------------------------------------------------------------
    # Positioned reads
    # ------------------------------------------------------------------

    def read_at(self, pos: int, size: int) -> bytes:
        """Read up to *size* bytes starting at absolute offset *pos*."""
        with self.lock:
            self.ensure_open()
            try:
                self._file.seek(pos)
                return self._file.read(size)
            except OSError as exc:
                raise StreamIOError(
                    f"Read failed on {self.name}",
                    {"path": self.name, "offset": pos},
                ) from exc

    def read_line_at(self, pos: int, end: int) -> tuple[bytes, int] | None:
        """Read one line from absolute offset *pos*, never past *end*.

        Returns ``(line, next_pos)`` with the terminator (``\\n``, ``\\r``
        or ``\\r\\n``) stripped, or ``None`` when no byte is left before
        *end*.  A line running into *end* is cut there.
        """
        with self.lock:
            self.ensure_open()
            if pos >= end:
                return None
            try:
                return self._scan_line(pos, end)
            except OSError as exc:
                raise StreamIOError(
                    f"Read failed on {self.name}",
                    {"path": self.name, "offset": pos},
                ) from exc

    def _scan_line(self, pos: int, end: int) -> tuple[bytes, int] | None:
        self._file.seek(pos)
        line = bytearray()
        cursor = pos
        while cursor < end:
            chunk = self._file.read(min(_READ_CHUNK, end - cursor))
            if not chunk:
                break
            match = _EOL.search(chunk)
            if match is None:
                line += chunk
                cursor += len(chunk)
                continue
            cut = match.start()
            line += chunk[:cut]
            cursor += cut + 1
            if chunk[cut] == 0x0D and cursor < end:
                if cut + 1 < len(chunk):
                    if chunk[cut + 1] == 0x0A:
                        cursor += 1
                elif self._file.read(1) == b"\n":
                    cursor += 1
            return bytes(line), cursor
        if cursor == pos:
            # The file is shorter than the window claims.
            return None
        return bytes(line), cursor


class WindowedStream:
    """A seekable ``[start, start + size)`` view over a :class:`SharedSource`.

    Offsets passed to :meth:`seek` and :meth:`new_stream` and returned by
    :meth:`tell` are relative to the window start.
    """

    def __init__(self, source: SharedSource, start: int, size: int) -> None:
        self._source = source
        self._start = start
        self._size = size
        self._pos = start
        self._mark = start
        self._closed = False

    @classmethod
    def open(cls, path: str | os.PathLike[str]) -> WindowedStream:
        """Open *path* as a window spanning the whole file."""
        source = SharedSource.open(path)
        return cls(source, 0, source.length)

    @property
    def source(self) -> SharedSource:
        return self._source

    @property
    def start(self) -> int:
        """Absolute file offset of the window's first byte."""
        return self._start

    @property
    def size(self) -> int:
        return self._size

    @property
    def closed(self) -> bool:
        return self._closed or self._source.closed

    @property
    def file_pointer(self) -> int:
        """Absolute file offset of the cursor."""
        self._ensure_open()
        return self._pos

    def _ensure_open(self) -> None:
        if self._closed:
            raise StreamClosedError("Stream closed", {"source": self._source.name})
        self._source.ensure_open()

    # ------------------------------------------------------------------
    # Windows
    # ------------------------------------------------------------------

    def new_stream(self, start: int, end: int = TO_END) -> WindowedStream | EmptyStream:
        """Return a window over ``[start, end)`` of this one, sharing the file.

        *end* defaults to the end of this window and is clamped to it.
        An empty range yields :data:`EMPTY_STREAM`, which holds no lease.
        """
        self._ensure_open()
        if start < 0:
            raise InvalidRangeError("start < 0", {"start": start})
        if end == TO_END or end > self._size:
            end = self._size
        size = end - start
        if size <= 0:
            return EMPTY_STREAM
        self._source.acquire()
        return WindowedStream(self._source, self._start + start, size)

    # ------------------------------------------------------------------
    # Cursor
    # ------------------------------------------------------------------

    def seek(self, offset: int) -> None:
        self._ensure_open()
        if offset < 0:
            raise InvalidRangeError("negative seek offset", {"offset": offset})
        self._pos = self._start + min(offset, self._size)

    def tell(self) -> int:
        self._ensure_open()
        return self._pos - self._start

    def mark(self) -> None:
        """Remember the cursor.  There is no read-ahead limit."""
        self._mark = self._pos

    def reset(self) -> None:
        """Move the cursor back to the last :meth:`mark`."""
        self._ensure_open()
        self._pos = self._mark

    def available(self) -> int:
        self._ensure_open()
        return self._start + self._size - self._pos

    def skip(self, n: int) -> int:
        self._ensure_open()
        if n <= 0:
            return 0
        skipped = min(n, self.available())
        self._pos += skipped
        return skipped

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def read_line(self, charset: str | None = None) -> str | None:
        """Read the next line without its terminator.

        Each byte becomes one character (latin-1).  With *charset* the
        line bytes are re-decoded against it instead.  Returns ``None``
        at the end of the window.
        """
        self._ensure_open()
        result = self._source.read_line_at(self._pos, self._start + self._size)
        if result is None:
            return None
        line, self._pos = result
        if charset is None:
            return line.decode("latin-1")
        return line.decode(charset, errors="replace")

    def read(self, size: int = -1) -> bytes:
        self._ensure_open()
        available = self._start + self._size - self._pos
        if size < 0 or size > available:
            size = available
        if size <= 0:
            return b""
        data = self._source.read_at(self._pos, size)
        self._pos += len(data)
        return data

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Release this window's lease.  Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._source.release()

    def force_close(self) -> None:
        """Close the shared file now; every sibling window becomes unusable."""
        self._closed = True
        self._source.force_close()

    def __enter__(self) -> WindowedStream:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __del__(self) -> None:
        if getattr(self, "_closed", True) or self._source.closed:
            return
        warnings.warn(f"unclosed {self!r}", ResourceWarning, stacklevel=2)
        self.close()

    def __repr__(self) -> str:
        return (
            f"<WindowedStream source={self._source.name!r} "
            f"start={self._start} size={self._size} pos={self._pos - self._start}>"
        )


class EmptyStream:
    """Stateless zero-length window.

    Returned for empty ranges instead of a real window so that no lease
    is held.  It owns no file, so it always reports ``closed``; every
    read still reports end of window and closing is a no-op.
    """

    __slots__ = ()

    start = 0
    size = 0
    closed = True
    file_pointer = 0

    def new_stream(self, start: int, end: int = TO_END) -> EmptyStream:
        if start < 0:
            raise InvalidRangeError("start < 0", {"start": start})
        return self

    def seek(self, offset: int) -> None:
        if offset < 0:
            raise InvalidRangeError("negative seek offset", {"offset": offset})

    def tell(self) -> int:
        return 0

    def mark(self) -> None:
        pass

    def reset(self) -> None:
        pass

    def available(self) -> int:
        return 0

    def skip(self, n: int) -> int:
        return 0

    def read_line(self, charset: str | None = None) -> str | None:
        return None

    def read(self, size: int = -1) -> bytes:
        return b""

    def close(self) -> None:
        pass

    def force_close(self) -> None:
        pass

    def __enter__(self) -> EmptyStream:
        return self

    def __exit__(self, *exc_info: object) -> None:
        pass

    def __repr__(self) -> str:
        return "<EmptyStream>"


EMPTY_STREAM = EmptyStream()

BodyStream = WindowedStream | EmptyStream
