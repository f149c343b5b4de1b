import re

# Narrow signature-style tables still render as a small grid.
MIN_COLUMNS = 3

TABLE_RE = re.compile(r"<table(?:\s[^>]*)?>([\s\S]*?)</table\s*>", re.IGNORECASE)
_THEAD_RE = re.compile(r"<thead(?:\s[^>]*)?>([\s\S]*?)</thead\s*>", re.IGNORECASE)
_TBODY_RE = re.compile(r"<tbody(?:\s[^>]*)?>([\s\S]*?)</tbody\s*>", re.IGNORECASE)
_ROW_RE = re.compile(r"<tr(?:\s[^>]*)?>([\s\S]*?)</tr\s*>", re.IGNORECASE)
_CELL_RE = re.compile(r"<(td|th)(?:\s[^>]*)?>([\s\S]*?)(?=</\1\s*>)", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"\s+")


def _cell_text(fragment: str) -> str:
    return _WS_RE.sub(" ", _TAG_RE.sub("", fragment)).strip()


def extract_table_rows(fragment: str) -> list[list[str]]:
    rows: list[list[str]] = []
    for row_match in _ROW_RE.finditer(fragment):
        cells = [_cell_text(cell.group(2)) for cell in _CELL_RE.finditer(row_match.group(1))]
        if cells:
            rows.append(cells)
    return rows


def _table_rows(table_html: str) -> list[list[str]]:
    rows: list[list[str]] = []
    head = _THEAD_RE.search(table_html)
    body = _TBODY_RE.search(table_html)
    if head:
        rows.extend(extract_table_rows(head.group(1)))
    if body:
        rows.extend(extract_table_rows(body.group(1)))
    elif head:
        # <thead> followed by bare <tr> rows
        rows.extend(extract_table_rows(table_html[: head.start()] + table_html[head.end() :]))
    if not rows:
        rows = extract_table_rows(table_html)
    return rows


def format_table(rows: list[list[str]]) -> str:
    columns = max([MIN_COLUMNS, *(len(row) for row in rows)])
    lines = []
    for row in rows:
        line = "| "
        for index in range(columns):
            if index < len(row):
                line += row[index]
            line += " | "
        lines.append(line.rstrip())
    return "\n" + "".join(f"{line}\n" for line in lines) + "\n"


def render_tables(text: str) -> str:
    return TABLE_RE.sub(lambda match: format_table(_table_rows(match.group(0))), text)
