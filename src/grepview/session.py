"""Search session state shared by the search and reader tools."""

from __future__ import annotations

from pathlib import Path

from grepview.reader.cache import IndexCache


class SearchSession:
    """Holds the line-index cache and the root of the most recent search.

    The reader resolves relative paths against ``base_dir``, which is the last
    search root once a search has run. Reads therefore depend on which search
    ran before them; concurrent searches from different callers race on it.
    """

    def __init__(self, default_root: Path, cache: IndexCache | None = None) -> None:
        self._default_root = default_root
        self._last_search_root: Path | None = None
        self._cache = cache if cache is not None else IndexCache()

    @property
    def cache(self) -> IndexCache:
        return self._cache

    @property
    def last_search_root(self) -> Path | None:
        return self._last_search_root

    @property
    def base_dir(self) -> Path:
        """Return the directory relative read paths resolve against."""
        if self._last_search_root is not None:
            return self._last_search_root
        return self._default_root

    def record_search_root(self, root: Path) -> None:
        self._last_search_root = root

    def close(self) -> None:
        self._cache.clear()
