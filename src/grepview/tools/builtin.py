"""Built-in tool handlers: search, chunked reads and server introspection."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import asdict
from importlib import metadata

from grepview.config import ServerConfig
from grepview.reader import ChunkReader
from grepview.search import (
    NORMALIZER_FORMAT_VERSION,
    SearchRequest,
    SearchToolInvoker,
    group_by_file,
    normalize_output,
    render_markup,
)
from grepview.session import SearchSession
from grepview.tools.registry import ToolDispatchError, ToolHandler, ToolRegistry

AuditReader = Callable[[str | None, int, str | None], list[dict[str, object]]]

PROJECT_NAME = "grepview"
PROJECT_DESCRIPTION = (
    "Searches directory trees with ripgrep and pages through large files "
    "by line without loading them into memory."
)


def register_builtin_tools(
    registry: ToolRegistry,
    config: ServerConfig,
    session: SearchSession,
    invoker: SearchToolInvoker,
    reader: ChunkReader,
    read_audit_entries: AuditReader,
) -> None:
    """Register the search, read and server tools."""
    registry.register("search.run", _search_handler(config, invoker))
    registry.register("file.read_chunk", _read_chunk_handler(config, reader))
    registry.register("server.status", _status_handler(config, session))
    registry.register("server.about", _about_handler())
    registry.register("server.audit_log", _audit_log_handler(read_audit_entries))


def _search_handler(config: ServerConfig, invoker: SearchToolInvoker) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        pattern = _string_argument(arguments, "search.run", "pattern")
        root = _string_argument(arguments, "search.run", "root")
        file_filter_value = arguments.get("file_filter")
        if file_filter_value is not None and not isinstance(file_filter_value, str):
            raise ToolDispatchError(
                code="INVALID_PARAMS",
                message="search.run file_filter must be a string.",
            )
        file_filter = file_filter_value.strip() if file_filter_value else None

        request = SearchRequest(
            pattern=pattern,
            root=root,
            file_filter=file_filter or None,
            case_sensitive=_bool_argument(arguments, "search.run", "case_sensitive"),
            whole_phrase=_bool_argument(arguments, "search.run", "whole_phrase"),
            whole_word=_bool_argument(arguments, "search.run", "whole_word"),
        )
        completed = invoker.run(request)
        result = normalize_output(completed.output, config.limits.max_content_chars)
        response: dict[str, object] = {
            "root": completed.root,
            "command": list(completed.command),
            "exit_code": completed.returncode,
            "format_version": NORMALIZER_FORMAT_VERSION,
            "matches": [asdict(record) for record in result.matches],
            "files": [
                {
                    "file": group.file,
                    "lines": [
                        {"line": record.line, "content": record.content}
                        for record in group.matches
                    ],
                }
                for group in group_by_file(result.matches)
            ],
            "stats": asdict(result.stats),
            "markup": render_markup(result.matches),
        }
        warnings = [line.strip() for line in completed.stderr.splitlines() if line.strip()]
        if warnings:
            response["__warnings__"] = warnings
        return response

    return handler


def _read_chunk_handler(config: ServerConfig, reader: ChunkReader) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        path = _string_argument(arguments, "file.read_chunk", "path")
        offset = _int_argument(arguments, "file.read_chunk", "offset", 0)
        count = _int_argument(
            arguments, "file.read_chunk", "count", config.limits.default_chunk_lines
        )
        chunk = reader.read_chunk(path, offset, count)
        return asdict(chunk)

    return handler


def _status_handler(config: ServerConfig, session: SearchSession) -> ToolHandler:
    def handler(_: dict[str, object]) -> dict[str, object]:
        last_root = session.last_search_root
        return {
            "root": str(config.root),
            "last_search_root": str(last_root) if last_root is not None else None,
            "cached_index_count": len(session.cache),
            "index_builds": session.cache.builds,
            "normalizer_format_version": NORMALIZER_FORMAT_VERSION,
            "effective_config": config.to_public_dict(),
        }

    return handler


def _about_handler() -> ToolHandler:
    def handler(_: dict[str, object]) -> dict[str, object]:
        try:
            version = metadata.version(PROJECT_NAME)
        except metadata.PackageNotFoundError:
            version = "unknown"
        return {
            "name": PROJECT_NAME,
            "version": version,
            "description": PROJECT_DESCRIPTION,
        }

    return handler


def _audit_log_handler(read_audit_entries: AuditReader) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        since_value = arguments.get("since")
        since: str | None = since_value if isinstance(since_value, str) else None
        tool_value = arguments.get("tool")
        tool: str | None = tool_value if isinstance(tool_value, str) and tool_value else None
        limit = _int_argument(arguments, "server.audit_log", "limit", 50)
        if limit < 1:
            limit = 1
        return {"entries": read_audit_entries(since, limit, tool)}

    return handler


def _string_argument(arguments: dict[str, object], tool: str, name: str) -> str:
    value = arguments.get(name, "")
    if not isinstance(value, str):
        raise ToolDispatchError(
            code="INVALID_PARAMS",
            message=f"{tool} {name} must be a string.",
        )
    return value


def _bool_argument(arguments: dict[str, object], tool: str, name: str) -> bool:
    value = arguments.get(name, False)
    if not isinstance(value, bool):
        raise ToolDispatchError(
            code="INVALID_PARAMS",
            message=f"{tool} {name} must be a boolean.",
        )
    return value


def _int_argument(arguments: dict[str, object], tool: str, name: str, default: int) -> int:
    value = arguments.get(name, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ToolDispatchError(
            code="INVALID_PARAMS",
            message=f"{tool} {name} must be an integer.",
        )
    return value
