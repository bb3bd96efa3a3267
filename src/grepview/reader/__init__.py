"""Indexed, paginated file reading."""

from .cache import IndexCache, IndexFactory
from .chunks import ChunkReader, ChunkResult
from .line_index import LineIndex, scan_line_offsets, strip_line_ending
from .paths import canonical_key, resolve_session_path

__all__ = [
    "ChunkReader",
    "ChunkResult",
    "IndexCache",
    "IndexFactory",
    "LineIndex",
    "canonical_key",
    "resolve_session_path",
    "scan_line_offsets",
    "strip_line_ending",
]
