"""Path resolution against the most recent search root."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Final

from grepview.errors import InvalidInputError

WINDOWS_ABSOLUTE_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[a-zA-Z]:[\\/]")


def _normalize_input(candidate: str) -> tuple[str, bool]:
    """Normalize path separators and detect absolute-style inputs."""
    normalized = candidate.replace("\\", "/")
    if normalized.startswith("/"):
        return normalized, True
    if WINDOWS_ABSOLUTE_PATTERN.match(normalized):
        return normalized, True
    return normalized, False


def resolve_session_path(base_dir: Path, candidate: str) -> Path:
    """Resolve a reported or user-supplied path.

    Absolute inputs pass through unchanged. Relative inputs, including the
    ``./``-prefixed paths the search tool prints, are joined onto ``base_dir``.
    """
    normalized, is_absolute_style = _normalize_input(candidate.strip())
    if not normalized:
        raise InvalidInputError("Path is empty.")
    if is_absolute_style:
        return Path(normalized)
    while normalized.startswith("./"):
        normalized = normalized[2:]
    return base_dir / normalized


def canonical_key(path: Path) -> str:
    """Return the cache key for a resolved path."""
    return path.resolve(strict=False).as_posix()
