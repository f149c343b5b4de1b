import re

BULLET = "•"

ORDERED_LIST_RE = re.compile(r"<ol(?:\s[^>]*)?>([\s\S]*?)</ol\s*>", re.IGNORECASE)
LIST_ITEM_RE = re.compile(r"<li(?:\s[^>]*)?>", re.IGNORECASE)
_LIST_ITEM_CLOSE_RE = re.compile(r"</li\s*>", re.IGNORECASE)
_ORDERED_LIST_TAG_RE = re.compile(r"</?ol(?:\s[^>]*)?>", re.IGNORECASE)


def render_ordered_lists(text: str, indent: int) -> str:
    prefix = " " * max(0, indent)

    def _render_block(match: re.Match[str]) -> str:
        counter = 0

        def _number(_: re.Match[str]) -> str:
            nonlocal counter
            counter += 1
            return f"\n{prefix}{counter}. "

        block = LIST_ITEM_RE.sub(_number, match.group(0))
        block = _ORDERED_LIST_TAG_RE.sub("\n", block)
        return _LIST_ITEM_CLOSE_RE.sub("", block)

    return ORDERED_LIST_RE.sub(_render_block, text)


def render_bullets(text: str, indent: int) -> str:
    prefix = " " * max(0, indent)
    return LIST_ITEM_RE.sub(f"\n{prefix}{BULLET} ", text)
