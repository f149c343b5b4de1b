from __future__ import annotations

import re
from typing import Iterator, Optional

SEPARATOR = "---"
SEPARATOR_BLOCK = f"\n{SEPARATOR}\n"
QUOTED_NOTICE = "[Prior quoted messages removed]"

_FLAGS = re.IGNORECASE | re.MULTILINE

# Applied in order; only English header labels are recognised.
BOUNDARY_MATCHERS: tuple[tuple[str, re.Pattern[str]], ...] = (
    (
        "header_block",
        re.compile(r"^From:.*\n(?:Sent|Date):.*\nTo:.*\n(?:Cc:.*\n)?Subject:.*$", _FLAGS),
    ),
    (
        "header_block_with_addresses",
        re.compile(r"^From:.*@.*\n(?:Sent|Date):.*\nTo:.*@.*\n(?:Cc:.*@.*\n)?Subject:.*$", _FLAGS),
    ),
    (
        "outlook_delimiter",
        re.compile(
            r"^(?:_{5,}[ \t]*\n.*Original Message.*\n.*From:|-{2,}[ \t]*Original Message[ \t]*-{2,}[ \t]*$)",
            _FLAGS,
        ),
    ),
    (
        "gmail_attribution",
        re.compile(r"^On[ \t](?:.*\n)?.*wrote:[ \t]*$", _FLAGS),
    ),
    (
        "from_with_nearby_header",
        re.compile(
            r"^[^-\n]{0,4}From:.*\n(?=(?:(?!---[ \t]*$).*\n){0,2}(?!---[ \t]*$).*\b(?:To|Sent|Date|Subject):)",
            _FLAGS,
        ),
    ),
    (
        "bare_from",
        re.compile(r"^[^-\n]{0,4}From:[ \t]*\S.*$", _FLAGS),
    ),
    (
        "from_sent_to",
        re.compile(r"^From: .*\n(?:Sent|Date): .*\nTo: .*$", _FLAGS),
    ),
    (
        "from_header_run",
        re.compile(r"^From:.*(?:\n(?:Sent|Date|To|Cc|Subject):.*)+", _FLAGS),
    ),
)

# Lines that belong to a boundary but sit above the header block itself.
_DELIMITER_LINE_RE = re.compile(r"^(?:_{5,}|-{5,}|-*[ \t]*Original Message[ \t]*-*)$", re.IGNORECASE)


# Lines above the one starting at ``pos``, nearest first.
def _preceding_lines(text: str, pos: int) -> Iterator[tuple[int, str]]:
    end = pos - 1
    while end >= 0:
        start = text.rfind("\n", 0, end) + 1
        yield start, text[start:end]
        end = start - 1


def _already_marked(text: str, pos: int) -> bool:
    for _, line in _preceding_lines(text, pos):
        stripped = line.strip()
        if stripped == SEPARATOR:
            return True
        if stripped and not _DELIMITER_LINE_RE.match(stripped):
            return False
    return False


def _hoist(text: str, pos: int) -> int:
    for start, line in _preceding_lines(text, pos):
        stripped = line.strip()
        if not stripped or not _DELIMITER_LINE_RE.match(stripped):
            break
        pos = start
    return pos


def _insert_separators(text: str, positions: set[int]) -> str:
    if not positions:
        return text
    parts = []
    last = 0
    for pos in sorted(positions):
        parts.append(text[last:pos])
        parts.append(f"{SEPARATOR}\n")
        last = pos
    parts.append(text[last:])
    return "".join(parts)


def apply_matcher(pattern: re.Pattern[str], text: str) -> str:
    positions = {
        _hoist(text, match.start())
        for match in pattern.finditer(text)
        if not _already_marked(text, match.start())
    }
    return _insert_separators(text, positions)


def collapse_separators(text: str) -> str:
    result: list[str] = []
    for line in text.split("\n"):
        if line.strip() != SEPARATOR:
            result.append(line)
            continue
        index = len(result)
        while index and not result[index - 1].strip():
            index -= 1
        if not index:
            continue
        if result[index - 1] == SEPARATOR:
            del result[index:]
            continue
        result.append(SEPARATOR)
    return "\n".join(result)


def mark_quoted_boundaries(text: str) -> str:
    if not isinstance(text, str) or not text:
        return ""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    for _, pattern in BOUNDARY_MATCHERS:
        text = apply_matcher(pattern, text)
    return collapse_separators(text)


def split_quoted_content(text: str) -> tuple[str, Optional[str]]:
    primary, found, remainder = (text or "").partition(SEPARATOR_BLOCK)
    if not found:
        return primary, None
    return primary, remainder


def hide_quoted_content(text: str, notice: str = QUOTED_NOTICE) -> str:
    primary, remainder = split_quoted_content(text)
    if remainder is None:
        return primary
    return f"{primary}\n\n{notice}"
