"""Memory-mapped line offset table for one file."""

from __future__ import annotations

import logging
import mmap
import os
from array import array
from pathlib import Path

from grepview.errors import DecodeError, FileReadError

logger = logging.getLogger(__name__)

NEWLINE = b"\n"


def scan_line_offsets(source: mmap.mmap | bytes) -> array:
    """Return the start offset of every line in one linear pass."""
    offsets = array("Q", [0])
    position = source.find(NEWLINE)
    while position != -1:
        offsets.append(position + 1)
        position = source.find(NEWLINE, position + 1)
    return offsets


def strip_line_ending(raw: bytes) -> bytes:
    """Strip a single trailing LF, CRLF or CR."""
    if raw.endswith(b"\r\n"):
        return raw[:-2]
    if raw.endswith(b"\n") or raw.endswith(b"\r"):
        return raw[:-1]
    return raw


class LineIndex:
    """Byte offsets of every line start over a read-only view of one file.

    The index owns its memory map. Offsets are plain integers into that map,
    so a window of lines is sliced and decoded on demand without re-scanning.
    Zero-length files cannot be mapped and are backed by an empty ``bytes``.
    """

    def __init__(self, path: Path, source: mmap.mmap | bytes, line_offsets: array) -> None:
        self._path = path
        self._source = source
        self._line_offsets = line_offsets

    @classmethod
    def build(cls, path: Path) -> LineIndex:
        """Map ``path`` read-only and record where every line begins."""
        try:
            with path.open("rb") as handle:
                size = os.fstat(handle.fileno()).st_size
                source: mmap.mmap | bytes
                if size == 0:
                    source = b""
                else:
                    source = mmap.mmap(handle.fileno(), 0, access=mmap.ACCESS_READ)
        except (OSError, ValueError) as error:
            raise FileReadError(f"Failed to index file {path}: {error}") from error
        offsets = scan_line_offsets(source)
        logger.debug("Indexed %s: %d lines, %d bytes", path, len(offsets), size)
        return cls(path=path, source=source, line_offsets=offsets)

    @property
    def path(self) -> Path:
        """Return the indexed file path."""
        return self._path

    @property
    def line_count(self) -> int:
        return len(self._line_offsets)

    @property
    def size(self) -> int:
        return len(self._source)

    @property
    def line_offsets(self) -> memoryview:
        """Return a read-only view of the offset table."""
        return memoryview(self._line_offsets).toreadonly()

    def byte_range(self, line: int) -> tuple[int, int]:
        """Return the ``[start, end)`` byte range of a zero-based line."""
        start = self._line_offsets[line]
        if line + 1 < len(self._line_offsets):
            return start, self._line_offsets[line + 1]
        return start, len(self._source)

    def get_lines(self, start: int, count: int, errors: str = "replace") -> list[str]:
        """Return lines ``[start, start + count)`` clamped to the end of file."""
        if start < 0 or count <= 0:
            return []
        end = min(start + count, self.line_count)
        lines: list[str] = []
        for line in range(start, end):
            begin, stop = self.byte_range(line)
            raw = strip_line_ending(self._source[begin:stop])
            lines.append(self._decode(raw, line, errors))
        return lines

    def close(self) -> None:
        """Release the memory map."""
        if isinstance(self._source, mmap.mmap) and not self._source.closed:
            self._source.close()

    def __enter__(self) -> LineIndex:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _decode(self, raw: bytes, line: int, errors: str) -> str:
        if errors != "strict":
            return raw.decode("utf-8", errors="replace")
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as error:
            raise DecodeError(
                f"Line {line + 1} of {self._path} is not valid UTF-8: {error.reason}"
            ) from error
