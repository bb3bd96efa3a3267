"""Process-lifetime registry of line indexes."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from pathlib import Path

from grepview.errors import FileReadError, NotFoundError
from grepview.reader.line_index import LineIndex
from grepview.reader.paths import canonical_key, resolve_session_path

logger = logging.getLogger(__name__)

IndexFactory = Callable[[Path], LineIndex]


class IndexCache:
    """Maps canonical file paths to their LineIndex.

    Lookup and build share one lock, so concurrent first requests for the
    same path build exactly one index. Entries are never refreshed; a file
    changed on disk keeps its original offsets until ``clear()``.
    """

    def __init__(self, index_factory: IndexFactory = LineIndex.build) -> None:
        self._entries: dict[str, LineIndex] = {}
        self._lock = threading.Lock()
        self._builds = 0
        self._index_factory = index_factory

    @property
    def builds(self) -> int:
        """Return how many indexes this cache has built."""
        return self._builds

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def paths(self) -> tuple[str, ...]:
        """Return cached keys in sorted order."""
        with self._lock:
            return tuple(sorted(self._entries))

    def get_or_build(self, candidate: str, base_dir: Path) -> LineIndex:
        """Resolve ``candidate`` against ``base_dir`` and return its index."""
        resolved = resolve_session_path(base_dir, candidate)
        logger.debug("Resolved %r against %s -> %s", candidate, base_dir, resolved)
        if not resolved.exists():
            raise NotFoundError(f"File does not exist: {resolved}")
        if not resolved.is_file():
            raise FileReadError(f"Path is not a regular file: {resolved}")

        key = canonical_key(resolved)
        with self._lock:
            index = self._entries.get(key)
            if index is None:
                index = self._index_factory(Path(key))
                self._entries[key] = index
                self._builds += 1
            return index

    def clear(self) -> None:
        """Drop every entry and release its memory map."""
        with self._lock:
            entries = list(self._entries.values())
            self._entries.clear()
        for index in entries:
            index.close()
