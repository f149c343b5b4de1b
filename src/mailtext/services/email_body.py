from __future__ import annotations

from dataclasses import dataclass

from mailtext.services.html_to_text import OptionsInput, convert
from mailtext.services.quote_marker import QUOTED_NOTICE, mark_quoted_boundaries, split_quoted_content


@dataclass(frozen=True)
class RenderedBody:
    text: str
    full_text: str
    quoted_removed: bool


def render_body(
    content: str,
    content_type: str = "html",
    *,
    options: OptionsInput = None,
    hide_quoted: bool = False,
    notice: str = QUOTED_NOTICE,
) -> RenderedBody:
    # Only html bodies are converted; text bodies are marked only to hide quotes.
    raw = content if isinstance(content, str) else ""
    is_html = (content_type or "").strip().lower() == "html"
    full_text = convert(raw, options) if is_html else raw

    if not hide_quoted:
        return RenderedBody(text=full_text, full_text=full_text, quoted_removed=False)

    marked = full_text if is_html else mark_quoted_boundaries(raw)
    primary, remainder = split_quoted_content(marked)
    if remainder is None:
        return RenderedBody(text=full_text, full_text=full_text, quoted_removed=False)
    return RenderedBody(text=f"{primary}\n\n{notice}", full_text=full_text, quoted_removed=True)
