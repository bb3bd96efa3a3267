"""Typed models for search requests and normalized results."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True, frozen=True)
class SearchRequest:
    """One search over a directory tree."""

    pattern: str
    root: str
    file_filter: str | None = None
    case_sensitive: bool = False
    whole_phrase: bool = False
    whole_word: bool = False


@dataclass(slots=True)
class SearchStats:
    """Aggregate counters parsed from the tool's summary block."""

    total_matches: int = 0
    matched_lines: int = 0
    files_with_matches: int = 0
    files_searched: int = 0
    search_time_ms: float = 0.0
    total_time_ms: float = 0.0


@dataclass(slots=True, frozen=True)
class MatchRecord:
    """One normalized hit; ``content`` is already markup-escaped."""

    file: str
    line: int
    content: str


@dataclass(slots=True, frozen=True)
class FileMatches:
    """Matches of one file in output order."""

    file: str
    matches: tuple[MatchRecord, ...]


@dataclass(slots=True, frozen=True)
class SearchResult:
    """Normalized output of one search."""

    matches: list[MatchRecord]
    stats: SearchStats = field(default_factory=SearchStats)


@dataclass(slots=True, frozen=True)
class CompletedSearch:
    """Raw outcome of one search tool run."""

    root: str
    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def output(self) -> str:
        """Return stdout followed by stderr."""
        if not self.stderr:
            return self.stdout
        if self.stdout and not self.stdout.endswith("\n"):
            return f"{self.stdout}\n{self.stderr}"
        return f"{self.stdout}{self.stderr}"
