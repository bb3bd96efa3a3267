from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

from grepview.config import CliOverrides
from grepview.server import StdioServer, create_server

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="shebang scripts need POSIX")

FAKE_OUTPUT = "\n".join(
    [
        "./src/app.txt:3:  value = a < b && c  ",
        "./src/app.txt:9:café latte",
        "./docs/readme.md:1:value",
        "",
        "3 matches",
        "3 matched lines",
        "2 files contained matches",
        "4 files searched",
        "90 bytes printed",
        "300 bytes searched",
        "0.000200 seconds spent searching",
        "0.003000 seconds",
    ]
)


def _install_fake_rg(tmp_path: Path, stderr: str = "") -> tuple[Path, Path]:
    argv_log = tmp_path / "argv.json"
    script = tmp_path / "fake-rg"
    script.write_text(
        "\n".join(
            [
                f"#!{sys.executable}",
                "import json, os, sys",
                f"with open({str(argv_log)!r}, 'w', encoding='utf-8') as handle:",
                "    json.dump({'argv': sys.argv[1:], 'cwd': os.getcwd()}, handle)",
                f"sys.stdout.buffer.write({FAKE_OUTPUT.encode('utf-8')!r})",
                f"sys.stderr.write({stderr!r})",
                "sys.exit(0)",
            ]
        )
        + "\n",
        encoding="utf-8",
    )
    script.chmod(0o755)
    return script, argv_log


def _server(tmp_path: Path, script: Path) -> tuple[StdioServer, Path]:
    root = tmp_path / "project"
    root.mkdir()
    server = create_server(
        root=str(root),
        data_dir=str(tmp_path / "data"),
        cli_overrides=CliOverrides(rg_binary=str(script)),
    )
    return server, root


def test_search_run_normalizes_tool_output(tmp_path: Path) -> None:
    script, argv_log = _install_fake_rg(tmp_path)
    server, root = _server(tmp_path, script)

    response = server.handle_payload(
        {
            "id": "req-search",
            "method": "search.run",
            "params": {"pattern": "value", "root": str(root), "file_filter": "*.txt"},
        }
    )

    assert response["ok"] is True
    assert response["warnings"] == []
    result = response["result"]
    assert result["root"] == str(root.resolve())
    assert result["format_version"] == 1
    assert result["matches"] == [
        {"file": "./src/app.txt", "line": 3, "content": "value = a &lt; b &amp;&amp; c"},
        {"file": "./docs/readme.md", "line": 1, "content": "value"},
    ]
    assert result["files"] == [
        {
            "file": "./src/app.txt",
            "lines": [{"line": 3, "content": "value = a &lt; b &amp;&amp; c"}],
        },
        {"file": "./docs/readme.md", "lines": [{"line": 1, "content": "value"}]},
    ]
    assert result["stats"]["total_matches"] == 3
    assert result["stats"]["files_with_matches"] == 2
    assert result["stats"]["files_searched"] == 4
    assert result["stats"]["search_time_ms"] == pytest.approx(0.2)
    assert result["markup"].splitlines()[0] == (
        '<line file="./src/app.txt" num="3">value = a &lt; b &amp;&amp; c</line>'
    )

    invocation = json.loads(argv_log.read_text(encoding="utf-8"))
    assert Path(invocation["cwd"]).resolve() == root.resolve()
    assert invocation["argv"][-6:] == ["--ignore-case", "--glob", "*.txt", "--", "value", "."]
    assert result["command"][1:] == invocation["argv"]
    assert result["exit_code"] == 0

    audit_lines = (tmp_path / "data" / "audit.jsonl").read_text(encoding="utf-8").splitlines()
    assert json.loads(audit_lines[-1])["outcome"] == {
        "match_count": 2,
        "file_count": 2,
        "exit_code": 0,
        "total_matches": 3,
        "files_searched": 4,
    }


def test_search_then_relative_read_uses_search_root(tmp_path: Path) -> None:
    script, _ = _install_fake_rg(tmp_path)
    server, root = _server(tmp_path, script)
    (root / "src").mkdir()
    (root / "src" / "app.txt").write_text("one\ntwo\n  value = a < b && c  \n", encoding="utf-8")
    other = tmp_path / "other"
    other.mkdir()

    server.handle_payload(
        {"id": "r1", "method": "search.run", "params": {"pattern": "value", "root": str(root)}}
    )
    chunk = server.handle_payload(
        {
            "id": "r2",
            "method": "file.read_chunk",
            "params": {"path": "./src/app.txt", "offset": 2, "count": 1},
        }
    )
    status = server.handle_payload({"id": "r3", "method": "server.status", "params": {}})

    assert chunk["result"]["lines"] == ["  value = a < b && c  "]
    assert status["result"]["last_search_root"] == str(root.resolve())


def test_tool_stderr_becomes_warnings(tmp_path: Path) -> None:
    script, _ = _install_fake_rg(tmp_path, stderr="rg: ./locked: Permission denied (os error 13)\n")
    server, root = _server(tmp_path, script)

    response = server.handle_payload(
        {"id": "r1", "method": "search.run", "params": {"pattern": "value", "root": str(root)}}
    )

    assert response["ok"] is True
    assert response["warnings"] == ["rg: ./locked: Permission denied (os error 13)"]
    assert len(response["result"]["matches"]) == 2


def test_missing_binary_is_process_error(tmp_path: Path) -> None:
    server, root = _server(tmp_path, tmp_path / "not-installed-rg")

    response = server.handle_payload(
        {"id": "r1", "method": "search.run", "params": {"pattern": "value", "root": str(root)}}
    )

    assert response["ok"] is False
    assert response["error"]["code"] == "PROCESS_ERROR"
