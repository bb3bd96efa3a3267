from __future__ import annotations

import shutil
from pathlib import Path

import pytest

from grepview.errors import InvalidInputError
from grepview.reader import ChunkReader
from grepview.search import SearchRequest, SearchToolInvoker, normalize_output
from grepview.server import StdioServer, create_server
from grepview.session import SearchSession

pytestmark = pytest.mark.skipif(shutil.which("rg") is None, reason="ripgrep is not installed")


def _project(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    (root / "src").mkdir(parents=True)
    (root / "src" / "app.py").write_text(
        "def main():\n    return foobar + foo\n\nTODO = 'Foo'\n", encoding="utf-8"
    )
    (root / "notes.txt").write_text("foo first\nnothing\n", encoding="utf-8")
    (root / ".hidden.txt").write_text("foo hidden\n", encoding="utf-8")
    (root / ".gitignore").write_text("ignored.txt\n", encoding="utf-8")
    (root / "ignored.txt").write_text("foo ignored\n", encoding="utf-8")
    return root


def _search(server: StdioServer, **params: object) -> dict[str, object]:
    response = server.handle_payload({"id": "search", "method": "search.run", "params": params})
    assert response["ok"] is True, response
    return response["result"]


def _files(result: dict[str, object]) -> set[str]:
    return {entry["file"].removeprefix("./") for entry in result["matches"]}


def test_search_includes_hidden_and_ignored_files(tmp_path: Path) -> None:
    root = _project(tmp_path)
    server = create_server(root=str(root), data_dir=str(tmp_path / "data"))

    result = _search(server, pattern="foo", root=str(root))

    assert _files(result) == {"src/app.py", "notes.txt", ".hidden.txt", "ignored.txt"}
    assert result["stats"]["matched_lines"] == len(result["matches"])
    assert result["stats"]["files_with_matches"] == 4
    assert result["stats"]["files_searched"] >= 5


def test_case_sensitivity_and_file_filter(tmp_path: Path) -> None:
    root = _project(tmp_path)
    server = create_server(root=str(root), data_dir=str(tmp_path / "data"))

    insensitive = _search(server, pattern="FOO", root=str(root), file_filter="*.py")
    sensitive = _search(server, pattern="Foo", root=str(root), case_sensitive=True)

    assert [(m["file"], m["line"]) for m in insensitive["matches"]] == [
        ("./src/app.py", 2),
        ("./src/app.py", 4),
    ]
    assert [(m["file"], m["line"]) for m in sensitive["matches"]] == [("./src/app.py", 4)]


def test_whole_word_and_literal_pattern(tmp_path: Path) -> None:
    root = tmp_path / "project"
    root.mkdir()
    (root / "words.txt").write_text("foobar foo baz\na.b axb\n", encoding="utf-8")
    server = create_server(root=str(root), data_dir=str(tmp_path / "data"))

    substring = _search(server, pattern="foo", root=str(root))
    whole_word = _search(server, pattern="foo", root=str(root), whole_word=True)
    literal = _search(server, pattern="a.b", root=str(root), whole_phrase=True)

    assert len(substring["matches"]) == 1
    assert substring["stats"]["total_matches"] == 2
    assert len(whole_word["matches"]) == 1
    assert whole_word["stats"]["total_matches"] == 1
    assert [m["line"] for m in literal["matches"]] == [2]
    assert literal["stats"]["total_matches"] == 1


def test_no_matches_returns_empty_list(tmp_path: Path) -> None:
    root = _project(tmp_path)
    server = create_server(root=str(root), data_dir=str(tmp_path / "data"))

    result = _search(server, pattern="zzz-not-present", root=str(root))

    assert result["matches"] == []
    assert result["stats"]["total_matches"] == 0


def test_every_match_can_be_paged_back(tmp_path: Path) -> None:
    root = _project(tmp_path)
    session = SearchSession(default_root=tmp_path)
    invoker = SearchToolInvoker(session)
    reader = ChunkReader(session)

    completed = invoker.run(SearchRequest(pattern="foo", root=str(root)))
    result = normalize_output(completed.output)

    assert result.matches
    for record in result.matches:
        chunk = reader.read_chunk(record.file, record.line - 1, 1)
        assert "foo" in chunk.lines[0].lower()
    assert session.cache.builds == len({record.file for record in result.matches})
    session.close()


def test_invalid_search_does_not_move_read_root(tmp_path: Path) -> None:
    root = _project(tmp_path)
    session = SearchSession(default_root=tmp_path)
    invoker = SearchToolInvoker(session)

    invoker.run(SearchRequest(pattern="foo", root=str(root)))
    with pytest.raises(InvalidInputError):
        invoker.run(SearchRequest(pattern="   ", root=str(tmp_path)))

    assert session.base_dir == root.resolve()
