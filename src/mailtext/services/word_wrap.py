import re

MIN_WRAP_WIDTH = 10

_INDENT_RE = re.compile(r"^\s*")


def wrap_line(line: str, width: int) -> list[str]:
    stripped = line.strip()
    if len(line) <= width or not stripped or stripped.startswith((">", "|")):
        return [line]

    indent = _INDENT_RE.match(line).group(0)
    if width - len(indent) < MIN_WRAP_WIDTH:
        return [line]

    wrapped: list[str] = []
    current = indent
    for word in stripped.split():
        if current == indent:
            current += word
        elif len(current) + 1 + len(word) > width:
            wrapped.append(current.rstrip())
            current = indent + word
        else:
            current += " " + word
    if current.strip():
        wrapped.append(current.rstrip())
    return wrapped


def wrap_text(text: str, width: int | None) -> str:
    if not width or width < MIN_WRAP_WIDTH:
        return text

    lines: list[str] = []
    for line in text.split("\n"):
        lines.extend(wrap_line(line, width))
    return "\n".join(lines)
