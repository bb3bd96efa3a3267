from __future__ import annotations

import json
from pathlib import Path

from grepview.logging import AuditEvent, JsonlAuditLogger
from grepview.server import create_server


def test_audit_log_writes_jsonl_schema(tmp_path: Path) -> None:
    server = create_server(root=str(tmp_path))
    server.handle_payload({"id": "req-100", "method": "server.status", "params": {}})

    audit_path = tmp_path / ".grepview" / "audit.jsonl"
    assert audit_path.exists()

    lines = audit_path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    event = json.loads(lines[-1])

    assert set(event.keys()) == {
        "duration_ms",
        "error_code",
        "metadata",
        "ok",
        "outcome",
        "request_id",
        "timestamp",
        "tool",
    }
    assert event["request_id"] == "req-100"
    assert event["tool"] == "server.status"
    assert event["ok"] is True
    assert event["error_code"] is None
    assert isinstance(event["duration_ms"], int)
    assert event["timestamp"].endswith("Z")
    assert event["outcome"] == {}


def test_failed_request_records_error_code(tmp_path: Path) -> None:
    server = create_server(root=str(tmp_path))
    server.handle_payload(
        {"id": "req-101", "method": "file.read_chunk", "params": {"path": "missing.txt"}}
    )

    audit_path = tmp_path / ".grepview" / "audit.jsonl"
    event = json.loads(audit_path.read_text(encoding="utf-8").splitlines()[-1])

    assert event["ok"] is False
    assert event["error_code"] == "NOT_FOUND"


def _event(request_id: str, timestamp: str, tool: str = "server.status") -> AuditEvent:
    return AuditEvent(
        timestamp=timestamp,
        request_id=request_id,
        tool=tool,
        ok=True,
        error_code=None,
        duration_ms=0,
        metadata={},
    )


def test_reader_applies_since_and_limit(tmp_path: Path) -> None:
    audit = JsonlAuditLogger(path=tmp_path / "nested" / "audit.jsonl")
    audit.append(_event("a", "2026-01-01T00:00:00.000Z"))
    audit.append(_event("b", "2026-02-01T00:00:00.000Z"))
    audit.append(_event("c", "2026-03-01T00:00:00.000Z"))
    with audit.path.open("a", encoding="utf-8") as handle:
        handle.write("not json\n\n")

    assert [entry["request_id"] for entry in audit.read()] == ["a", "b", "c"]
    assert [entry["request_id"] for entry in audit.read(limit=2)] == ["b", "c"]
    since = audit.read(since="2026-02-01T00:00:00.000Z")
    assert [entry["request_id"] for entry in since] == ["b", "c"]
    assert audit.read(limit=0) == []


def test_reader_on_missing_file_is_empty(tmp_path: Path) -> None:
    audit = JsonlAuditLogger(path=tmp_path / "audit.jsonl")

    assert audit.read() == []


def test_reader_filters_by_tool(tmp_path: Path) -> None:
    audit = JsonlAuditLogger(path=tmp_path / "audit.jsonl")
    audit.append(_event("a", "2026-01-01T00:00:00.000Z", tool="search.run"))
    audit.append(_event("b", "2026-01-02T00:00:00.000Z"))
    audit.append(_event("c", "2026-01-03T00:00:00.000Z", tool="search.run"))

    entries = audit.read(tool="search.run", limit=1)

    assert [entry["request_id"] for entry in entries] == ["c"]


def test_read_chunk_outcome_is_recorded(tmp_path: Path) -> None:
    (tmp_path / "notes.txt").write_text("a\nbb\nccc", encoding="utf-8")
    server = create_server(root=str(tmp_path))
    server.handle_payload(
        {
            "id": "req-102",
            "method": "file.read_chunk",
            "params": {"path": "notes.txt", "offset": 0, "count": 2},
        }
    )

    response = server.handle_payload(
        {"id": "req-103", "method": "server.audit_log", "params": {"tool": "file.read_chunk"}}
    )

    entries = response["result"]["entries"]
    assert [entry["request_id"] for entry in entries] == ["req-102"]
    assert entries[0]["outcome"] == {
        "lines_returned": 2,
        "next_offset": 2,
        "has_more": True,
        "total_lines": 3,
    }
    assert "bb" not in str(entries[0])
