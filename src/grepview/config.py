"""Configuration loading and deterministic merge order."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path

CONFIG_FILE_NAME = "grepview.toml"
RG_BINARY_ENV = "GREPVIEW_RG_BINARY"

MAX_CHUNK_LINES_CAP = 100_000
MAX_TOTAL_BYTES_PER_RESPONSE_CAP = 64 * 1024 * 1024
MAX_CONTENT_CHARS_CAP = 100_000

DECODE_ERROR_MODES = ("replace", "strict")


@dataclass(slots=True, frozen=True)
class Limits:
    """Runtime limits for chunk reads and tool responses."""

    max_chunk_lines: int = 5_000
    default_chunk_lines: int = 200
    max_total_bytes_per_response: int = 8 * 1024 * 1024
    max_content_chars: int = 1_000


@dataclass(slots=True, frozen=True)
class SearchConfig:
    """External search tool settings."""

    binary: str = "rg"
    timeout_seconds: float | None = None


@dataclass(slots=True, frozen=True)
class ReaderConfig:
    """Paginated reader settings."""

    decode_errors: str = "replace"


@dataclass(slots=True, frozen=True)
class ServerConfig:
    """Fully merged server configuration."""

    root: Path
    data_dir: Path
    limits: Limits
    search: SearchConfig
    reader: ReaderConfig

    def to_public_dict(self) -> dict[str, object]:
        """Return serializable config snapshot for tool responses."""
        return {
            "root": str(self.root),
            "data_dir": str(self.data_dir),
            "limits": {
                "max_chunk_lines": self.limits.max_chunk_lines,
                "default_chunk_lines": self.limits.default_chunk_lines,
                "max_total_bytes_per_response": self.limits.max_total_bytes_per_response,
                "max_content_chars": self.limits.max_content_chars,
            },
            "search": {
                "binary": self.search.binary,
                "timeout_seconds": self.search.timeout_seconds,
            },
            "reader": {
                "decode_errors": self.reader.decode_errors,
            },
        }


@dataclass(slots=True, frozen=True)
class CliOverrides:
    """Optional startup overrides applied at highest precedence."""

    data_dir: Path | None = None
    max_chunk_lines: int | None = None
    default_chunk_lines: int | None = None
    max_total_bytes_per_response: int | None = None
    rg_binary: str | None = None
    timeout_seconds: float | None = None
    decode_errors: str | None = None


def default_config(root: Path) -> ServerConfig:
    """Build default config for a given working root."""
    resolved_root = root.resolve()
    return ServerConfig(
        root=resolved_root,
        data_dir=resolved_root / ".grepview",
        limits=Limits(),
        search=SearchConfig(),
        reader=ReaderConfig(),
    )


def load_config_file(root: Path) -> dict[str, object]:
    """Load optional grepview.toml from the working root."""
    config_path = root / CONFIG_FILE_NAME
    if not config_path.exists():
        return {}
    with config_path.open("rb") as handle:
        payload = tomllib.load(handle)
    if not isinstance(payload, dict):
        raise ValueError(f"{CONFIG_FILE_NAME} must contain a top-level table.")
    return payload


def _get_table(payload: dict[str, object], key: str) -> dict[str, object]:
    value = payload.get(key, {})
    if not isinstance(value, dict):
        raise ValueError(f"Config section '{key}' must be a table.")
    return value


def merge_config(
    base: ServerConfig, file_payload: dict[str, object], overrides: CliOverrides
) -> ServerConfig:
    """Merge defaults, config file, environment, then CLI/startup overrides."""
    limits_payload = _get_table(file_payload, "limits")
    search_payload = _get_table(file_payload, "search")
    reader_payload = _get_table(file_payload, "reader")

    limits = _build_limits(
        base.limits,
        max_chunk_lines=limits_payload.get("max_chunk_lines"),
        default_chunk_lines=limits_payload.get("default_chunk_lines"),
        max_total_bytes_per_response=limits_payload.get("max_total_bytes_per_response"),
        max_content_chars=limits_payload.get("max_content_chars"),
        prefix="limits",
    )

    binary = base.search.binary
    if "binary" in search_payload:
        binary = _non_empty_string(search_payload["binary"], "search.binary")
    env_binary = os.environ.get(RG_BINARY_ENV, "").strip()
    if env_binary:
        binary = env_binary
    timeout_seconds = _optional_positive_number(
        search_payload.get("timeout_seconds"),
        "search.timeout_seconds",
        base.search.timeout_seconds,
    )

    decode_errors = base.reader.decode_errors
    if "decode_errors" in reader_payload:
        decode_errors = _decode_mode(reader_payload["decode_errors"], "reader.decode_errors")

    merged = ServerConfig(
        root=base.root,
        data_dir=base.data_dir,
        limits=limits,
        search=SearchConfig(binary=binary, timeout_seconds=timeout_seconds),
        reader=ReaderConfig(decode_errors=decode_errors),
    )
    return apply_cli_overrides(merged, overrides)


def apply_cli_overrides(config: ServerConfig, overrides: CliOverrides) -> ServerConfig:
    """Apply startup overrides at highest precedence."""
    limits = _build_limits(
        config.limits,
        max_chunk_lines=overrides.max_chunk_lines,
        default_chunk_lines=overrides.default_chunk_lines,
        max_total_bytes_per_response=overrides.max_total_bytes_per_response,
        max_content_chars=None,
        prefix="overrides",
    )
    binary = config.search.binary
    if overrides.rg_binary is not None:
        binary = _non_empty_string(overrides.rg_binary, "overrides.rg_binary")
    timeout_seconds = _optional_positive_number(
        overrides.timeout_seconds,
        "overrides.timeout_seconds",
        config.search.timeout_seconds,
    )
    decode_errors = config.reader.decode_errors
    if overrides.decode_errors is not None:
        decode_errors = _decode_mode(overrides.decode_errors, "overrides.decode_errors")
    data_dir = overrides.data_dir or config.data_dir
    return ServerConfig(
        root=config.root,
        data_dir=data_dir.resolve(),
        limits=limits,
        search=SearchConfig(binary=binary, timeout_seconds=timeout_seconds),
        reader=ReaderConfig(decode_errors=decode_errors),
    )


def load_effective_config(root: Path, overrides: CliOverrides | None = None) -> ServerConfig:
    """Load effective config using merge order defaults -> file -> env -> overrides."""
    resolved_root = root.resolve()
    base = default_config(resolved_root)
    payload = load_config_file(resolved_root)
    return merge_config(base, payload, overrides or CliOverrides())


def _build_limits(
    base: Limits,
    *,
    max_chunk_lines: object,
    default_chunk_lines: object,
    max_total_bytes_per_response: object,
    max_content_chars: object,
    prefix: str,
) -> Limits:
    limits = Limits(
        max_chunk_lines=_optional_positive_int_with_cap(
            max_chunk_lines,
            f"{prefix}.max_chunk_lines",
            base.max_chunk_lines,
            MAX_CHUNK_LINES_CAP,
        ),
        default_chunk_lines=_optional_positive_int_with_cap(
            default_chunk_lines,
            f"{prefix}.default_chunk_lines",
            base.default_chunk_lines,
            MAX_CHUNK_LINES_CAP,
        ),
        max_total_bytes_per_response=_optional_positive_int_with_cap(
            max_total_bytes_per_response,
            f"{prefix}.max_total_bytes_per_response",
            base.max_total_bytes_per_response,
            MAX_TOTAL_BYTES_PER_RESPONSE_CAP,
        ),
        max_content_chars=_optional_positive_int_with_cap(
            max_content_chars,
            f"{prefix}.max_content_chars",
            base.max_content_chars,
            MAX_CONTENT_CHARS_CAP,
        ),
    )
    if limits.default_chunk_lines > limits.max_chunk_lines:
        raise ValueError(
            f"Config field '{prefix}.default_chunk_lines' must be <= max_chunk_lines."
        )
    return limits


def _non_empty_string(value: object, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Config field '{name}' must be a non-empty string.")
    return value.strip()


def _decode_mode(value: object, name: str) -> str:
    if value not in DECODE_ERROR_MODES:
        raise ValueError(f"Config field '{name}' must be one of: {', '.join(DECODE_ERROR_MODES)}.")
    return str(value)


def _optional_positive_number(value: object, name: str, default: float | None) -> float | None:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ValueError(f"Config field '{name}' must be a positive number.")
    return float(value)


def _optional_positive_int_with_cap(
    value: object,
    name: str,
    default: int,
    cap: int | None,
) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"Config field '{name}' must be a positive integer.")
    if cap is not None and value > cap:
        raise ValueError(f"Config field '{name}' must be <= {cap}.")
    return value
