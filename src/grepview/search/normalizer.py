"""Line classification and normalization of raw search tool output.

Every output line is exactly one of three kinds:

- ``blank``: empty or whitespace only, ignored.
- ``stats``: contains one of ``STATS_LABELS`` and starts with a number, as
  printed by ``rg --stats`` after the match stream.
- ``match``: anything else; kept only if it parses as ``file:line:content``
  and its content passes ``is_displayable``.

The label set is versioned by ``NORMALIZER_FORMAT_VERSION``. A change in the
tool's summary wording needs a new version, not a silent edit.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass

from grepview.search.models import FileMatches, MatchRecord, SearchResult, SearchStats

logger = logging.getLogger(__name__)

NORMALIZER_FORMAT_VERSION = 1
MAX_CONTENT_CHARS = 1_000

LINE_BLANK = "blank"
LINE_STATS = "stats"
LINE_MATCH = "match"

# Checked in order: the first label contained in the line wins.
STATS_LABELS: tuple[tuple[str, str], ...] = (
    ("matched lines", "matched_lines"),
    ("files contained matches", "files_with_matches"),
    ("matches", "total_matches"),
    ("files searched", "files_searched"),
    ("seconds spent searching", "search_time_ms"),
    (" seconds", "total_time_ms"),
)
_MILLISECOND_FIELDS = frozenset({"search_time_ms", "total_time_ms"})

_ESCAPES: tuple[tuple[str, str], ...] = (
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&apos;"),
)


@dataclass(slots=True, frozen=True)
class ClassifiedLine:
    """Kind of one output line and, for stats lines, its parsed value."""

    kind: str
    field: str | None = None
    value: float | int | None = None


def classify_line(line: str) -> ClassifiedLine:
    """Classify one raw output line."""
    stripped = line.strip()
    if not stripped:
        return ClassifiedLine(kind=LINE_BLANK)
    token = stripped.split(None, 1)[0]
    for label, field_name in STATS_LABELS:
        if label not in line:
            continue
        value = _parse_stats_value(token, field_name)
        if value is None:
            break
        return ClassifiedLine(kind=LINE_STATS, field=field_name, value=value)
    return ClassifiedLine(kind=LINE_MATCH)


def _parse_stats_value(token: str, field_name: str) -> float | int | None:
    if field_name in _MILLISECOND_FIELDS:
        try:
            return float(token) * 1000.0
        except ValueError:
            return None
    if not token.isascii() or not token.isdigit():
        return None
    return int(token)


def escape_content(text: str) -> str:
    """Escape text for embedding in markup."""
    for raw, escaped in _ESCAPES:
        text = text.replace(raw, escaped)
    return text


def unescape_content(text: str) -> str:
    """Reverse ``escape_content``."""
    for raw, escaped in reversed(_ESCAPES):
        text = text.replace(escaped, raw)
    return text


def is_displayable(content: str, max_chars: int = MAX_CONTENT_CHARS) -> bool:
    """Return False for overlong or non-ASCII content.

    This is a heuristic against binary false positives. It also rejects
    legitimate non-English text.
    """
    if len(content) > max_chars:
        return False
    return all(char.isascii() or char.isspace() for char in content)


def parse_match_line(line: str, max_content_chars: int = MAX_CONTENT_CHARS) -> MatchRecord | None:
    """Split ``file:line:content`` at the first two colons."""
    first_colon = line.find(":")
    if first_colon <= 0:
        return None
    second_colon = line.find(":", first_colon + 1)
    if second_colon == -1:
        return None

    file_name = line[:first_colon].strip().replace("\\", "/")
    number_text = line[first_colon + 1 : second_colon].strip()
    if not file_name or not number_text.isascii() or not number_text.isdigit():
        return None
    line_number = int(number_text)
    if line_number < 1:
        return None

    content = line[second_colon + 1 :].strip()
    if not is_displayable(content, max_content_chars):
        return None
    return MatchRecord(file=file_name, line=line_number, content=escape_content(content))


def iter_output_lines(raw_output: str) -> Iterator[str]:
    """Yield LF-delimited lines, dropping one trailing CR from each.

    Other control characters belong to the line, since ``--text`` passes them through.
    """
    for line in raw_output.split("\n"):
        yield line[:-1] if line.endswith("\r") else line


def normalize_output(raw_output: str, max_content_chars: int = MAX_CONTENT_CHARS) -> SearchResult:
    """Parse raw tool output into stats and ordered match records."""
    stats = SearchStats()
    matches: list[MatchRecord] = []
    dropped = 0
    for line in iter_output_lines(raw_output):
        classified = classify_line(line)
        if classified.kind == LINE_BLANK:
            continue
        if classified.kind == LINE_STATS and classified.field is not None:
            setattr(stats, classified.field, classified.value)
            continue
        record = parse_match_line(line, max_content_chars)
        if record is None:
            dropped += 1
            continue
        matches.append(record)
    logger.debug(
        "Normalized output: %d matches kept, %d lines dropped, stats=%s",
        len(matches),
        dropped,
        stats,
    )
    return SearchResult(matches=matches, stats=stats)


def group_by_file(matches: list[MatchRecord]) -> list[FileMatches]:
    """Group matches by file, keeping first-seen file order."""
    grouped: dict[str, list[MatchRecord]] = {}
    for record in matches:
        grouped.setdefault(record.file, []).append(record)
    return [FileMatches(file=name, matches=tuple(records)) for name, records in grouped.items()]


def render_markup(matches: list[MatchRecord]) -> str:
    """Render matches as ``<line file=".." num="..">content</line>`` rows."""
    return "\n".join(
        f'<line file="{escape_content(record.file)}" num="{record.line}">{record.content}</line>'
        for record in matches
    )
