from __future__ import annotations

CHROME_ROWS = 8
MIN_VISIBLE_ROWS = 5
SCROLL_MARGIN = 2
PREVIEW_PAGE_LINES = 10


def visible_rows(height: int) -> int:
    """Rows available for a list once the title, status and help lines are drawn."""
    return max(MIN_VISIBLE_ROWS, height - CHROME_ROWS)


def half_page(height: int) -> int:
    return max(1, visible_rows(height) // 2)


def clamp_cursor(cursor: int, count: int) -> int:
    if count <= 0:
        return 0
    return max(0, min(cursor, count - 1))


def adjust_scroll(
    cursor: int,
    offset: int,
    count: int,
    visible: int,
    margin: int = SCROLL_MARGIN,
) -> int:
    if count <= 0:
        return 0
    if cursor >= offset + visible - margin:
        offset = cursor - visible + margin + 1
    if cursor < offset + margin:
        offset = cursor - margin
    return max(0, min(offset, count - visible))


def max_preview_scroll(line_count: int, visible: int) -> int:
    return max(0, line_count - visible)


def clamp_preview_scroll(scroll: int, line_count: int, visible: int) -> int:
    return max(0, min(scroll, max_preview_scroll(line_count, visible)))


def visible_window(offset: int, count: int, visible: int) -> tuple[int, int]:
    start = max(0, min(offset, count))
    return start, min(count, start + visible)
