"""Search tool orchestration and output normalization."""

from .invoker import (
    BASE_FLAGS,
    SearchTask,
    SearchToolInvoker,
    build_command,
    locate_binary,
    validate_request,
)
from .models import (
    CompletedSearch,
    FileMatches,
    MatchRecord,
    SearchRequest,
    SearchResult,
    SearchStats,
)
from .normalizer import (
    MAX_CONTENT_CHARS,
    NORMALIZER_FORMAT_VERSION,
    STATS_LABELS,
    classify_line,
    escape_content,
    group_by_file,
    is_displayable,
    iter_output_lines,
    normalize_output,
    parse_match_line,
    render_markup,
    unescape_content,
)

__all__ = [
    "BASE_FLAGS",
    "CompletedSearch",
    "FileMatches",
    "MAX_CONTENT_CHARS",
    "MatchRecord",
    "NORMALIZER_FORMAT_VERSION",
    "STATS_LABELS",
    "SearchRequest",
    "SearchResult",
    "SearchStats",
    "SearchTask",
    "SearchToolInvoker",
    "build_command",
    "classify_line",
    "escape_content",
    "group_by_file",
    "is_displayable",
    "iter_output_lines",
    "locate_binary",
    "normalize_output",
    "parse_match_line",
    "render_markup",
    "unescape_content",
    "validate_request",
]
