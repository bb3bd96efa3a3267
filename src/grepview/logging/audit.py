"""Structured JSONL audit log of tool requests.

Each line records what a tool was asked and what it returned, never the
search pattern or any file content.
"""

from __future__ import annotations

import json
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from pathlib import Path

_TEXT_KEYS = frozenset({"path", "root", "file_filter", "since", "tool"})
_COUNT_KEYS = frozenset({"offset", "count", "limit", "raw_line_length"})
_FLAG_KEYS = frozenset({"case_sensitive", "whole_phrase", "whole_word"})


@dataclass(slots=True, frozen=True)
class AuditEvent:
    """One tool request: sanitized arguments in, result summary out."""

    timestamp: str
    request_id: str
    tool: str
    ok: bool
    error_code: str | None
    duration_ms: int
    metadata: dict[str, object]
    outcome: dict[str, object] = field(default_factory=dict)


def utc_timestamp() -> str:
    """Return an ISO-8601 UTC timestamp."""
    return datetime.now(tz=UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def sanitize_arguments(arguments: dict[str, object]) -> dict[str, object]:
    """Reduce tool arguments to loggable metadata.

    The pattern is recorded by length only. Keys no tool accepts, and known
    keys with the wrong type, are listed by name without their values.
    """
    sanitized: dict[str, object] = {}
    rejected: list[str] = []
    for key in sorted(arguments):
        value = arguments[key]
        if key == "pattern" and isinstance(value, str):
            sanitized["pattern_length"] = len(value)
        elif key in _TEXT_KEYS and isinstance(value, str):
            sanitized[key] = value
        elif key in _COUNT_KEYS and isinstance(value, int) and not isinstance(value, bool):
            sanitized[key] = value
        elif key in _FLAG_KEYS and isinstance(value, bool):
            sanitized[key] = value
        else:
            rejected.append(key)
    if rejected:
        sanitized["rejected_keys"] = rejected
    return sanitized


def summarize_result(tool: str, result: dict[str, object]) -> dict[str, object]:
    """Pick the counters worth auditing from a successful tool result."""
    if tool == "search.run":
        matches = result.get("matches")
        files = result.get("files")
        stats = result.get("stats")
        summary: dict[str, object] = {
            "match_count": len(matches) if isinstance(matches, list) else 0,
            "file_count": len(files) if isinstance(files, list) else 0,
            "exit_code": result.get("exit_code"),
        }
        if isinstance(stats, dict):
            summary["total_matches"] = stats.get("total_matches")
            summary["files_searched"] = stats.get("files_searched")
        return summary
    if tool == "file.read_chunk":
        lines = result.get("lines")
        return {
            "lines_returned": len(lines) if isinstance(lines, list) else 0,
            "next_offset": result.get("next_offset"),
            "has_more": result.get("has_more"),
            "total_lines": result.get("total_lines"),
        }
    return {}


class JsonlAuditLogger:
    """Append-only JSONL audit log with a tail reader."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    def append(self, event: AuditEvent) -> None:
        """Write ``event`` as one JSON line."""
        line = json.dumps(asdict(event), sort_keys=True)
        with self._path.open("a", encoding="utf-8") as handle:
            handle.write(f"{line}\n")

    def read(
        self,
        since: str | None = None,
        limit: int = 50,
        tool: str | None = None,
    ) -> list[dict[str, object]]:
        """Return the last ``limit`` events at or after ``since``, optionally for one tool."""
        if limit < 1 or not self._path.exists():
            return []
        recent: deque[dict[str, object]] = deque(maxlen=limit)
        with self._path.open("r", encoding="utf-8") as handle:
            for line in handle:
                record = _parse_record(line)
                if record is None:
                    continue
                if tool is not None and record.get("tool") != tool:
                    continue
                if since is not None and not _is_at_or_after(record, since):
                    continue
                recent.append(record)
        return list(recent)


def _parse_record(line: str) -> dict[str, object] | None:
    stripped = line.strip()
    if not stripped:
        return None
    try:
        record = json.loads(stripped)
    except json.JSONDecodeError:
        return None
    return record if isinstance(record, dict) else None


def _is_at_or_after(record: dict[str, object], since: str) -> bool:
    timestamp = record.get("timestamp")
    return isinstance(timestamp, str) and timestamp >= since
