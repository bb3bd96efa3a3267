from __future__ import annotations

import pytest

from grepview.search import escape_content, parse_match_line, unescape_content


@pytest.mark.parametrize(
    "text",
    [
        "plain text",
        "if (a < b && c > d) { return \"ok\"; }",
        "it's <already> &amp; escaped &lt;",
        "&&&<<<>>>'''\"\"\"",
        "",
    ],
)
def test_unescape_reverses_escape(text: str) -> None:
    assert unescape_content(escape_content(text)) == text


def test_record_content_unescapes_to_filtered_source() -> None:
    record = parse_match_line("src/x.c:10:  if (a<b && s != \"&lt;\") {  ")

    assert record is not None
    assert unescape_content(record.content) == 'if (a<b && s != "&lt;") {'
