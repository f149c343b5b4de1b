from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import Any, Callable, Union

from mailtext.services.html_lists import render_bullets, render_ordered_lists
from mailtext.services.html_tables import render_tables
from mailtext.services.options import ConversionOptions, resolve_options
from mailtext.services.quote_marker import mark_quoted_boundaries
from mailtext.services.word_wrap import wrap_text

logger = logging.getLogger(__name__)

Stage = Callable[[str, ConversionOptions], str]
OptionsInput = Union[ConversionOptions, Mapping[str, Any], None]

HORIZONTAL_RULE = "-" * 28
# Heading text is bracketed until tags are gone so it can be measured afterwards.
_HEADING_OPEN = "\ue000"
_HEADING_CLOSE = "\ue001"
_MIN_UNDERLINE = 4

_NON_CONTENT_RE = re.compile(
    r"<!--[\s\S]*?(?:-->|\Z)|<(head|style|script)(?:\s[^>]*)?>[\s\S]*?</\1\s*>",
    re.IGNORECASE,
)
_NAMED_ENTITIES = (
    ("&nbsp;", " "),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&amp;", "&"),
    ("&quot;", '"'),
    ("&apos;", "'"),
)
_DECIMAL_ENTITY_RE = re.compile(r"&#(\d+);")
_HEX_ENTITY_RE = re.compile(r"&#x([0-9a-f]+);", re.IGNORECASE)

_DIV_OPEN_RE = re.compile(r"<div\s[^>]*>", re.IGNORECASE)
_BR_RE = re.compile(r"<br\s*/?>", re.IGNORECASE)
_P_OPEN_RE = re.compile(r"<p\s[^>]*>", re.IGNORECASE)
_P_CLOSE_RE = re.compile(r"</p\s*>", re.IGNORECASE)
_HEADING_OPEN_RE = re.compile(r"<h([1-6])(?:\s[^>]*)?>", re.IGNORECASE)
_HEADING_CLOSE_RE = re.compile(r"</h[1-6]\s*>", re.IGNORECASE)
_HEADING_TEXT_RE = re.compile(f"{_HEADING_OPEN}([^{_HEADING_OPEN}{_HEADING_CLOSE}]*){_HEADING_CLOSE}")
_LINK_OPEN_RE = re.compile(
    r"<a\s(?:[^<>]*?\s)?href=(?:\"([^\"<>]*)\"|'([^'<>]*)')[^<>]*>",
    re.IGNORECASE,
)
_LINK_CLOSE_RE = re.compile(r"</a\s*>", re.IGNORECASE)
_BLOCKQUOTE_OPEN_RE = re.compile(r"<blockquote(?:\s[^>]*)?>", re.IGNORECASE)
_BLOCKQUOTE_CLOSE_RE = re.compile(r"</blockquote\s*>", re.IGNORECASE)
_NESTED_QUOTE_RE = re.compile(r"\n(>+)\s+>")
_PRE_RE = re.compile(r"</?pre(?:\s[^>]*)?>", re.IGNORECASE)
_HR_RE = re.compile(r"<hr(?:\s[^>]*)?/?>", re.IGNORECASE)
_INLINE_STYLE_RE = re.compile(r"</?(?:b|strong|i|em|u|s|strike|del|mark)(?:\s[^>]*)?/?>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]*>")
_PERCENT_RE = re.compile(r"%([0-9a-f]{2})", re.IGNORECASE)
_LIST_ITEM_LINE_RE = re.compile(r"[ ]*(?:•|\d+\.) ")
_WS_RE = re.compile(r"\s+")


def _drop_non_content(text: str, options: ConversionOptions) -> str:
    return _NON_CONTENT_RE.sub("", text)


def _codepoint(value: int, original: str) -> str:
    try:
        return chr(value)
    except (ValueError, OverflowError):
        return original


def decode_entities(text: str, options: ConversionOptions | None = None) -> str:
    for entity, literal in _NAMED_ENTITIES:
        text = text.replace(entity, literal)
    text = _DECIMAL_ENTITY_RE.sub(lambda m: _codepoint(int(m.group(1)), m.group(0)), text)
    return _HEX_ENTITY_RE.sub(lambda m: _codepoint(int(m.group(1), 16), m.group(0)), text)


def _normalize_divs(text: str, options: ConversionOptions) -> str:
    return _DIV_OPEN_RE.sub("<div>", text)


def _line_breaks(text: str, options: ConversionOptions) -> str:
    text = _BR_RE.sub("\n", text)
    text = _P_OPEN_RE.sub("<p>", text)
    return _P_CLOSE_RE.sub("\n", text)


def _headings(text: str, options: ConversionOptions) -> str:
    def _open(match: re.Match[str]) -> str:
        if options.heading_style == "hashify":
            return f"\n{'#' * int(match.group(1))} {_HEADING_OPEN}"
        return f"\n{_HEADING_OPEN}"

    text = _HEADING_OPEN_RE.sub(_open, text)
    return _HEADING_CLOSE_RE.sub(f"{_HEADING_CLOSE}\n", text)


def _lists(text: str, options: ConversionOptions) -> str:
    text = render_ordered_lists(text, options.list_indent)
    return render_bullets(text, options.bullet_indent)


def _tables(text: str, options: ConversionOptions) -> str:
    if not options.tables:
        return text
    return render_tables(text)


def _link_text(url: str, inner: str) -> str:
    label = _WS_RE.sub(" ", _TAG_RE.sub("", inner)).strip()
    if not label:
        return f"[{url}]"
    if url == label or url == f"mailto:{label}":
        return label
    return f"{label} [{url}]"


def _links(text: str, options: ConversionOptions) -> str:
    if not options.preserve_href_links:
        return text
    # An anchor with no closing tag ends the scan: no later anchor can close either.
    parts: list[str] = []
    pos = 0
    while True:
        opening = _LINK_OPEN_RE.search(text, pos)
        if opening is None:
            break
        closing = _LINK_CLOSE_RE.search(text, opening.end())
        if closing is None:
            break
        url = opening.group(1) if opening.group(1) is not None else opening.group(2)
        parts.append(text[pos:opening.start()])
        parts.append(_link_text(url, text[opening.end():closing.start()]))
        pos = closing.end()
    parts.append(text[pos:])
    return "".join(parts)


def _blockquotes(text: str, options: ConversionOptions) -> str:
    text = _BLOCKQUOTE_OPEN_RE.sub("\n> ", text)
    text = _BLOCKQUOTE_CLOSE_RE.sub("\n", text)
    # Fold "> \n> " runs into one deeper marker until no adjacent pair remains.
    collapsed = _NESTED_QUOTE_RE.sub(r"\n\1>", text)
    while collapsed != text:
        text = collapsed
        collapsed = _NESTED_QUOTE_RE.sub(r"\n\1>", text)
    return text


def _preformatted(text: str, options: ConversionOptions) -> str:
    text = _PRE_RE.sub("\n", text)
    return _HR_RE.sub(f"\n{HORIZONTAL_RULE}\n", text)


def _inline_styles(text: str, options: ConversionOptions) -> str:
    return _INLINE_STYLE_RE.sub("", text)


def _strip_tags(text: str, options: ConversionOptions) -> str:
    return _TAG_RE.sub("", text)


def _heading_text(text: str, options: ConversionOptions) -> str:
    def _render(match: re.Match[str]) -> str:
        lines = [line.strip() for line in match.group(1).strip().split("\n")]
        heading = "\n".join(line for line in lines if line)
        if options.uppercase_headings:
            heading = heading.upper()
        if options.heading_style == "underline" and heading:
            width = max(_MIN_UNDERLINE, *(len(line) for line in heading.split("\n")))
            heading = f"{heading}\n{'-' * width}"
        return heading

    text = _HEADING_TEXT_RE.sub(_render, text)
    return text.replace(_HEADING_OPEN, "").replace(_HEADING_CLOSE, "")


def _decode_percent(text: str, options: ConversionOptions) -> str:
    return _PERCENT_RE.sub(lambda m: chr(int(m.group(1), 16)), text)


def _clean_whitespace(text: str, options: ConversionOptions) -> str:
    text = re.sub(r"\n\s+\n", "\n", text)
    text = re.sub(r"\n{2,}", "\n", text)
    text = text.replace("\t", "    ")
    text = re.sub(r"[ \t]+\n", "\n", text)
    # Leading blank lines go; a first list item keeps its indent.
    text = re.sub(r"\A\s*\n", "", text)
    if not _LIST_ITEM_LINE_RE.match(text):
        text = text.lstrip()
    text = text.rstrip()
    return re.sub(r"[ \t]+$", "", text, flags=re.MULTILINE)


def _word_wrap(text: str, options: ConversionOptions) -> str:
    return wrap_text(text, options.wordwrap)


PIPELINE: tuple[tuple[str, Stage], ...] = (
    ("drop_non_content", _drop_non_content),
    ("decode_entities", decode_entities),
    ("normalize_divs", _normalize_divs),
    ("line_breaks", _line_breaks),
    ("headings", _headings),
    ("lists", _lists),
    ("tables", _tables),
    ("links", _links),
    ("blockquotes", _blockquotes),
    ("preformatted", _preformatted),
    ("inline_styles", _inline_styles),
    ("strip_tags", _strip_tags),
    ("heading_text", _heading_text),
    ("decode_percent", _decode_percent),
    ("clean_whitespace", _clean_whitespace),
    ("word_wrap", _word_wrap),
)


def _run_stage(name: str, stage: Stage, text: str, options: ConversionOptions) -> str:
    try:
        return stage(text, options)
    except Exception as exc:
        logger.warning(
            "HTML conversion stage failed; passing text through",
            extra={"event": "html_stage_failed", "stage": name, "error": repr(exc)},
        )
        return text


def _trim_lines(text: str) -> str:
    return "\n".join(line.rstrip() for line in text.split("\n"))


def _prepare(html: Any) -> str:
    if not isinstance(html, str):
        return ""
    text = html.replace("\r\n", "\n").replace("\r", "\n")
    return text.replace(_HEADING_OPEN, "").replace(_HEADING_CLOSE, "")


def _render(text: str, settings: ConversionOptions) -> str:
    for name, stage in PIPELINE:
        text = _run_stage(name, stage, text, settings)
    return text


def render_html(html: str, options: OptionsInput = None) -> str:
    text = _prepare(html)
    settings = resolve_options(options)
    if "<" not in text:
        return text
    return _trim_lines(_render(text, settings))


def convert(html: str, options: OptionsInput = None) -> str:
    """Convert an HTML email body to plain text with ``---`` before each quoted message."""
    text = _prepare(html)
    settings = resolve_options(options)
    if "<" not in text:
        return text

    text = _render(text, settings)
    text = _run_stage("mark_quoted_boundaries", lambda value, _: mark_quoted_boundaries(value), text, settings)
    return _trim_lines(text)
