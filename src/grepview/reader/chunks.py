"""Paginated line reads for incremental file viewing."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from grepview.config import Limits, ReaderConfig
from grepview.errors import InvalidInputError

if TYPE_CHECKING:
    from grepview.session import SearchSession

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ChunkResult:
    """One window of lines plus the cursor for the next read."""

    path: str
    lines: list[str]
    next_offset: int
    has_more: bool
    total_lines: int


class ChunkReader:
    """Reads windows of lines through the session's index cache.

    Calling ``read_chunk`` again with ``offset=result.next_offset`` until
    ``has_more`` is False yields every line of the file exactly once.
    """

    def __init__(
        self,
        session: SearchSession,
        limits: Limits | None = None,
        reader_config: ReaderConfig | None = None,
    ) -> None:
        self._session = session
        self._limits = limits or Limits()
        self._reader_config = reader_config or ReaderConfig()

    def read_chunk(self, path: str, offset: int, count: int) -> ChunkResult:
        """Return up to ``count`` lines starting at zero-based line ``offset``."""
        if offset < 0:
            raise InvalidInputError("offset must be >= 0.")
        if count < 0:
            raise InvalidInputError("count must be >= 0.")
        count = min(count, self._limits.max_chunk_lines)

        index = self._session.cache.get_or_build(path, self._session.base_dir)
        total_lines = index.line_count
        lines = index.get_lines(offset, count, errors=self._reader_config.decode_errors)
        next_offset = offset + len(lines)
        logger.debug(
            "Read %s offset=%d count=%d -> %d lines of %d",
            index.path,
            offset,
            count,
            len(lines),
            total_lines,
        )
        return ChunkResult(
            path=index.path.as_posix(),
            lines=lines,
            next_offset=next_offset,
            has_more=next_offset < total_lines,
            total_lines=total_lines,
        )
