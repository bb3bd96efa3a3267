"""STDIO JSON-lines server entrypoint."""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO

from grepview.config import DECODE_ERROR_MODES, CliOverrides, ServerConfig, load_effective_config
from grepview.errors import GrepviewError
from grepview.logging import (
    AuditEvent,
    JsonlAuditLogger,
    configure_debug_log,
    sanitize_arguments,
    summarize_result,
    utc_timestamp,
)
from grepview.reader import ChunkReader
from grepview.search import SearchToolInvoker
from grepview.session import SearchSession
from grepview.tools import ToolDispatchError, ToolRegistry, register_builtin_tools

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class Request:
    """Normalized incoming request."""

    request_id: str
    method: str
    params: dict[str, object]


def build_arg_parser() -> argparse.ArgumentParser:
    """Build argument parser for server startup configuration."""
    parser = argparse.ArgumentParser(prog="grepview")
    parser.add_argument("--root", required=False, default=".")
    parser.add_argument("--data-dir", required=False, default=None)
    parser.add_argument("--max-chunk-lines", type=int, required=False, default=None)
    parser.add_argument("--default-chunk-lines", type=int, required=False, default=None)
    parser.add_argument("--max-total-bytes-per-response", type=int, required=False, default=None)
    parser.add_argument("--rg-binary", required=False, default=None)
    parser.add_argument("--timeout-seconds", type=float, required=False, default=None)
    parser.add_argument(
        "--decode-errors", choices=DECODE_ERROR_MODES, required=False, default=None
    )
    parser.add_argument(
        "--log-level", choices=("DEBUG", "INFO", "WARNING"), required=False, default="DEBUG"
    )
    return parser


class StdioServer:
    """Routes JSON-line requests to the search and reader tools."""

    def __init__(self, config: ServerConfig, session: SearchSession | None = None) -> None:
        self._config = config
        self._limits = config.limits
        self._session = session if session is not None else SearchSession(config.root)
        self._audit_logger = JsonlAuditLogger(path=config.data_dir / "audit.jsonl")
        self._registry = ToolRegistry()
        register_builtin_tools(
            self._registry,
            config=config,
            session=self._session,
            invoker=SearchToolInvoker(self._session, config.search),
            reader=ChunkReader(self._session, config.limits, config.reader),
            read_audit_entries=self._audit_logger.read,
        )
        self._fallback_request_counter = 0

    @property
    def config(self) -> ServerConfig:
        return self._config

    @property
    def session(self) -> SearchSession:
        return self._session

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    def serve(self, in_stream: TextIO, out_stream: TextIO) -> None:
        """Process JSON-line requests from stdin and write JSON-line responses."""
        for raw_line in in_stream:
            line = raw_line.strip()
            if not line:
                continue
            response = self.handle_json_line(line)
            out_stream.write(f"{json.dumps(response, sort_keys=True)}\n")
            out_stream.flush()

    def close(self) -> None:
        """Release cached indexes."""
        self._session.close()

    def handle_json_line(self, raw_line: str) -> dict[str, object]:
        """Handle a single JSON-line request."""
        try:
            payload = json.loads(raw_line)
        except json.JSONDecodeError:
            request_id = self.next_request_id()
            response = self.error_response(
                request_id=request_id,
                code="INVALID_JSON",
                message="Request must be valid JSON.",
            )
            self.log_request(
                request_id=request_id,
                tool_name="invalid_json",
                arguments={"raw_line_length": len(raw_line)},
                response=response,
                started=time.perf_counter(),
            )
            return response
        return self.handle_payload(payload)

    def handle_payload(self, payload: object) -> dict[str, object]:
        """Validate and dispatch a parsed payload."""
        started = time.perf_counter()
        parsed = self.parse_request(payload)
        if isinstance(parsed, dict):
            request_id_value = parsed.get("request_id")
            request_id = (
                request_id_value if isinstance(request_id_value, str) else self.next_request_id()
            )
            self.log_request(
                request_id=request_id,
                tool_name="invalid_request",
                arguments={},
                response=parsed,
                started=started,
            )
            return parsed

        request = parsed
        try:
            tool_name, arguments = self._resolve_tool_call(request)
        except ToolDispatchError as error:
            return self.error_response(
                request_id=request.request_id, code=error.code, message=error.message
            )

        try:
            result = self._registry.dispatch(name=tool_name, arguments=arguments)
        except GrepviewError as error:
            logger.debug("%s failed with %s: %s", tool_name, error.code, error.message)
            response = self.error_response(
                request_id=request.request_id,
                code=error.code,
                message=error.message,
            )
            self.log_request(
                request_id=request.request_id,
                tool_name=tool_name,
                arguments=arguments,
                response=response,
                started=started,
            )
            return response
        except Exception:
            logger.exception("Unhandled error in %s", tool_name)
            response = self.error_response(
                request_id=request.request_id,
                code="INTERNAL_ERROR",
                message="Unhandled server error while executing tool.",
            )
            self.log_request(
                request_id=request.request_id,
                tool_name=tool_name,
                arguments=arguments,
                response=response,
                started=started,
            )
            return response

        warnings = _extract_result_warnings(result)
        response = self.success_response(
            request_id=request.request_id,
            result=result,
            warnings=warnings,
        )
        enforced = self.enforce_response_size_limit(
            request_id=request.request_id, response=response
        )
        self.log_request(
            request_id=request.request_id,
            tool_name=tool_name,
            arguments=arguments,
            response=enforced,
            started=started,
        )
        return enforced

    @staticmethod
    def _resolve_tool_call(request: Request) -> tuple[str, dict[str, object]]:
        if request.method != "tools/call":
            return request.method, request.params
        tool_name_value = request.params.get("name")
        arguments_value = request.params.get("arguments", {})
        if not isinstance(tool_name_value, str) or not tool_name_value:
            raise ToolDispatchError(
                code="INVALID_PARAMS",
                message="tools/call params.name must be a non-empty string.",
            )
        if not isinstance(arguments_value, dict):
            raise ToolDispatchError(
                code="INVALID_PARAMS",
                message="tools/call params.arguments must be an object.",
            )
        return tool_name_value, arguments_value

    def parse_request(self, payload: object) -> Request | dict[str, object]:
        """Validate request payload and return normalized Request."""
        if not isinstance(payload, dict):
            return self.error_response(
                request_id=self.next_request_id(),
                code="INVALID_REQUEST",
                message="Request must be an object.",
            )

        request_id = self.extract_request_id(payload.get("id"))
        method = payload.get("method")
        params = payload.get("params", {})

        if not isinstance(method, str) or not method:
            return self.error_response(
                request_id=request_id,
                code="INVALID_REQUEST",
                message="Request method must be a non-empty string.",
            )
        if not isinstance(params, dict):
            return self.error_response(
                request_id=request_id,
                code="INVALID_PARAMS",
                message="Request params must be an object.",
            )

        return Request(request_id=request_id, method=method, params=params)

    def extract_request_id(self, request_id: object) -> str:
        """Extract request ID from payload or synthesize a fallback."""
        if isinstance(request_id, str) and request_id:
            return request_id
        if isinstance(request_id, int) and not isinstance(request_id, bool):
            return str(request_id)
        return self.next_request_id()

    def next_request_id(self) -> str:
        """Generate sequential fallback request IDs for invalid/missing IDs."""
        self._fallback_request_counter += 1
        return f"req-{self._fallback_request_counter:06d}"

    @staticmethod
    def success_response(
        request_id: str,
        result: dict[str, object],
        warnings: list[str] | None = None,
    ) -> dict[str, object]:
        """Build success envelope."""
        return {
            "request_id": request_id,
            "ok": True,
            "result": result,
            "warnings": warnings or [],
        }

    @staticmethod
    def error_response(request_id: str, code: str, message: str) -> dict[str, object]:
        """Build explicit error envelope."""
        return {
            "request_id": request_id,
            "ok": False,
            "result": {},
            "warnings": [],
            "error": {"code": code, "message": message},
        }

    def enforce_response_size_limit(
        self,
        request_id: str,
        response: dict[str, object],
    ) -> dict[str, object]:
        """Replace responses that exceed max_total_bytes_per_response."""
        response_bytes = len(json.dumps(response, sort_keys=True).encode("utf-8"))
        if response_bytes <= self._limits.max_total_bytes_per_response:
            return response
        return self.error_response(
            request_id=request_id,
            code="RESPONSE_TOO_LARGE",
            message=(
                "Response exceeds max_total_bytes_per_response limit; "
                "request fewer lines or narrow the search."
            ),
        )

    def log_request(
        self,
        request_id: str,
        tool_name: str,
        arguments: dict[str, object],
        response: dict[str, object],
        started: float,
    ) -> None:
        """Log one sanitized request event."""
        error_payload = response.get("error")
        error_code: str | None = None
        outcome: dict[str, object] = {}
        if isinstance(error_payload, dict):
            code_value = error_payload.get("code")
            if isinstance(code_value, str):
                error_code = code_value
        else:
            result = response.get("result")
            if isinstance(result, dict):
                outcome = summarize_result(tool_name, result)
        event = AuditEvent(
            timestamp=utc_timestamp(),
            request_id=request_id,
            tool=tool_name,
            ok=bool(response.get("ok", False)),
            error_code=error_code,
            duration_ms=int((time.perf_counter() - started) * 1000),
            metadata=sanitize_arguments(arguments),
            outcome=outcome,
        )
        self._audit_logger.append(event)


def create_server(
    root: str,
    data_dir: str | None = None,
    cli_overrides: CliOverrides | None = None,
    session: SearchSession | None = None,
) -> StdioServer:
    """Create a configured STDIO server instance."""
    overrides = cli_overrides or CliOverrides()
    if data_dir is not None and overrides.data_dir is None:
        overrides = CliOverrides(
            data_dir=Path(data_dir).resolve(),
            max_chunk_lines=overrides.max_chunk_lines,
            default_chunk_lines=overrides.default_chunk_lines,
            max_total_bytes_per_response=overrides.max_total_bytes_per_response,
            rg_binary=overrides.rg_binary,
            timeout_seconds=overrides.timeout_seconds,
            decode_errors=overrides.decode_errors,
        )
    config = load_effective_config(root=Path(root).resolve(), overrides=overrides)
    return StdioServer(config=config, session=session)


def main(argv: list[str] | None = None) -> int:
    """Entrypoint for the grepview server process."""
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    overrides = CliOverrides(
        data_dir=Path(args.data_dir).resolve() if args.data_dir is not None else None,
        max_chunk_lines=args.max_chunk_lines,
        default_chunk_lines=args.default_chunk_lines,
        max_total_bytes_per_response=args.max_total_bytes_per_response,
        rg_binary=args.rg_binary,
        timeout_seconds=args.timeout_seconds,
        decode_errors=args.decode_errors,
    )
    server = create_server(root=args.root, cli_overrides=overrides)
    log_path = configure_debug_log(server.config.data_dir, level=getattr(logging, args.log_level))
    logger.info("grepview starting; root=%s log=%s", server.config.root, log_path)
    try:
        server.serve(in_stream=sys.stdin, out_stream=sys.stdout)
    finally:
        server.close()
    return 0


def _extract_result_warnings(result: dict[str, object]) -> list[str]:
    raw = result.pop("__warnings__", None)
    if not isinstance(raw, list):
        return []
    warnings: list[str] = []
    for item in raw:
        if isinstance(item, str):
            warnings.append(item)
    return warnings


if __name__ == "__main__":
    raise SystemExit(main())
