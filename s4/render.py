from __future__ import annotations

from datetime import datetime
from typing import Optional

from rich.text import Text

from .models import Entry, base_name
from .navigation import join_key
from .state import (
    DeleteAction,
    DownloadAction,
    NavigationState,
    UploadAction,
    ViewMode,
)
from .viewport import visible_rows, visible_window

ONE_MB = 1024**2
HUNDRED_MB = 100 * ONE_MB
ONE_GB = 1024**3
TEN_GB = 10 * ONE_GB

SIZE_WIDTH = 10
DATE_WIDTH = 16
ROW_CHROME = 4 + 1 + SIZE_WIDTH + 2 + DATE_WIDTH + 1
MIN_NAME_WIDTH = 10

PENDING = "..."
UNKNOWN_SIZE = "? B"
UNKNOWN_DATE = "N/A"

BROWSER_HINT = (
    "↑/k ↓/j move  enter open  ← back  y yank  p paste  c clear  "
    "r rename  x delete  d download  u upload  R refresh  ? help  q quit"
)
PREVIEW_HINT = "↑/↓ scroll  pgup/pgdn page  g/G top/bottom  esc back  q quit"
UPLOAD_HINT = "↑/↓ move  enter open/select  ← parent  esc cancel  q quit"
RENAME_HINT = "enter confirm  esc cancel"
CONFIRM_HINT = "[y] Yes  [n] No"

HELP_LINES = [
    ("Navigation", ""),
    ("↑ / k, ↓ / j", "Move up / down"),
    ("g / home, G / end", "First / last entry"),
    ("ctrl+u / ctrl+d", "Half page up / down"),
    ("enter / l / o / →", "Open directory or preview file"),
    ("backspace / h / ←", "Parent directory"),
    ("R / ctrl+r", "Refresh listing"),
    ("Files", ""),
    ("y", "Yank (mark) file for copying"),
    ("p", "Paste yanked files here"),
    ("c", "Clear yanked files"),
    ("r", "Rename file"),
    ("x", "Delete file"),
    ("d", "Download file"),
    ("u", "Upload a local file"),
    ("General", ""),
    ("?", "Toggle this help"),
    ("q / ctrl+c", "Quit"),
]


def format_size(size: int) -> str:
    units = ["B", "KB", "MB", "GB", "TB", "PB"]
    value = float(size)
    for unit in units:
        if value < 1024 or unit == units[-1]:
            if unit == "B":
                return f"{int(value)} {unit}"
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} PB"


def size_style(size: int) -> str:
    if size < ONE_MB:
        return "green"
    if size < HUNDRED_MB:
        return "#ffd700"
    if size < ONE_GB:
        return "#ff8c00"
    if size < TEN_GB:
        return "red"
    return "bold red"


def format_time(value: Optional[datetime]) -> str:
    if not value:
        return ""
    return value.strftime("%Y-%m-%d %H:%M")


def truncate(label: str, width: int) -> str:
    if width <= 0:
        return ""
    if len(label) <= width:
        return label
    if width <= 3:
        return label[:width]
    return label[: width - 3] + "..."


def name_width(width: int) -> int:
    return max(MIN_NAME_WIDTH, width - ROW_CHROME)


def range_indicator(offset: int, count: int, visible: int) -> str:
    start, end = visible_window(offset, count, visible)
    return f"({start + 1}-{end} of {count})"


def _message_line(text: Text, state: NavigationState) -> None:
    if state.error:
        text.append(f"Error: {state.error}\n", style="bold red")
    elif state.status:
        text.append(f"{state.status}\n", style="green")


def _size_cell(state: NavigationState, entry: Entry) -> tuple[str, str]:
    if not entry.is_dir:
        return format_size(entry.size), size_style(entry.size)
    stats = state.dir_stats.get(entry.key)
    if stats is None:
        return PENDING, "dim"
    if stats.size_timeout:
        return UNKNOWN_SIZE, "dim"
    return format_size(stats.size), size_style(stats.size)


def _date_cell(state: NavigationState, entry: Entry) -> str:
    if not entry.is_dir:
        return format_time(entry.last_modified)
    stats = state.dir_stats.get(entry.key)
    if stats is None:
        return PENDING
    if stats.date_timeout:
        return UNKNOWN_DATE
    return format_time(stats.last_modified)


def _render_entry(
    text: Text, state: NavigationState, entry: Entry, selected: bool, width: int
) -> None:
    marked = state.is_marked(entry.key)
    label = entry.name + ("/" if entry.is_dir else "")
    label = truncate(label, width).ljust(width)
    size, size_color = _size_cell(state, entry)
    date = _date_cell(state, entry)
    row_style = "reverse" if selected else ""
    text.append("> " if selected else "  ", style=row_style)
    text.append("* " if marked else "  ", style="bold yellow")
    if entry.is_dir:
        name_style = "bold blue"
    elif marked:
        name_style = "bold yellow"
    else:
        name_style = ""
    text.append(label, style=f"{name_style} {row_style}".strip())
    text.append(" ")
    text.append(size.rjust(SIZE_WIDTH), style=size_color)
    text.append("  ")
    text.append(date.ljust(DATE_WIDTH), style="dim" if entry.is_dir else "")
    text.append("\n")


def render_browser(state: NavigationState) -> Text:
    text = Text()
    path = f"/{state.current_path}" if state.current_path else "/"
    text.append(f"S3 Browser - {state.bucket}", style="bold cyan")
    text.append(f"  Path: {path}")
    if state.marked:
        text.append(f"  Yanked: {len(state.marked)}", style="bold yellow")
    text.append("\n")
    _message_line(text, state)
    text.append("\n")

    if state.loading:
        text.append("Loading...\n", style="italic")
    elif not state.entries:
        text.append("No objects found in this location.\n", style="dim")
    else:
        width = name_width(state.width)
        header = "    " + "Name".ljust(width) + " " + "Size".rjust(SIZE_WIDTH)
        text.append(header + "  " + "Modified" + "\n", style="bold underline")
        visible = visible_rows(state.height)
        count = len(state.entries)
        start, end = visible_window(state.scroll_offset, count, visible)
        for index in range(start, end):
            _render_entry(
                text, state, state.entries[index], index == state.cursor, width
            )
        if count > visible:
            text.append(range_indicator(state.scroll_offset, count, visible) + "\n", style="dim")

    text.append("\n")
    text.append(BROWSER_HINT, style="dim")
    return text


def render_preview(state: NavigationState) -> Text:
    text = Text()
    text.append(f"Preview: {state.preview_key}\n", style="bold cyan")
    _message_line(text, state)
    text.append("\n")
    total = len(state.preview_lines)
    if total == 0:
        text.append("[Empty file]\n", style="dim")
    else:
        visible = visible_rows(state.height)
        start, end = visible_window(state.preview_scroll, total, visible)
        number_width = len(str(total))
        line_width = max(1, state.width - number_width - 3)
        for index in range(start, end):
            text.append(f"{index + 1:>{number_width}} ", style="dim")
            text.append("│ ", style="dim")
            text.append(truncate(state.preview_lines[index], line_width) + "\n")
        if total > visible:
            text.append(
                f"[Showing lines {start + 1}-{end} of {total}]\n", style="dim"
            )
    text.append("\n")
    text.append(PREVIEW_HINT, style="dim")
    return text


def render_help(state: NavigationState) -> Text:
    text = Text()
    text.append("S3 Browser - Help\n\n", style="bold cyan")
    for keys, description in HELP_LINES:
        if not description:
            text.append(f"{keys}\n", style="bold underline")
            continue
        text.append(f"  {keys:<22}", style="bold")
        text.append(f"{description}\n")
    text.append("\n")
    text.append("Press esc or ? to close", style="dim")
    return text


def render_upload(state: NavigationState) -> Text:
    text = Text()
    text.append("Upload - select a local file\n", style="bold cyan")
    text.append(f"Local: {state.local_path}\n")
    destination = join_key(state.current_path, "")
    text.append(f"Destination: s3://{state.bucket}/{destination}\n")
    _message_line(text, state)
    text.append("\n")
    if not state.local_entries:
        text.append("No files found in this directory.\n", style="dim")
    else:
        width = name_width(state.width)
        visible = visible_rows(state.height)
        count = len(state.local_entries)
        start, end = visible_window(state.local_scroll, count, visible)
        for index in range(start, end):
            entry = state.local_entries[index]
            selected = index == state.local_cursor
            row_style = "reverse" if selected else ""
            label = truncate(entry.name + ("/" if entry.is_dir else ""), width)
            text.append("> " if selected else "  ", style=row_style)
            style = "bold blue" if entry.is_dir else ""
            text.append(label.ljust(width), style=f"{style} {row_style}".strip())
            if not entry.is_dir:
                text.append(" ")
                text.append(format_size(entry.size).rjust(SIZE_WIDTH), style=size_style(entry.size))
            text.append("\n")
        if count > visible:
            text.append(range_indicator(state.local_scroll, count, visible) + "\n", style="dim")
    text.append("\n")
    text.append(UPLOAD_HINT, style="dim")
    return text


def render_rename(state: NavigationState) -> Text:
    text = Text()
    original = base_name(state.rename_original)
    text.append("Rename file\n\n", style="bold cyan")
    text.append(f"Original: {original}\n")
    text.append("New name: ")
    cursor = state.rename_cursor
    value = state.rename_text
    text.append(value[:cursor])
    text.append(value[cursor] if cursor < len(value) else " ", style="reverse")
    text.append(value[cursor + 1 :])
    text.append("\n")
    _message_line(text, state)
    text.append("\n")
    text.append(RENAME_HINT, style="dim")
    return text


def confirm_prompt(state: NavigationState) -> str:
    action = state.confirm
    if isinstance(action, DeleteAction):
        name = base_name(action.key)
        return f"Delete '{name}' from s3://{state.bucket}? This cannot be undone."
    if isinstance(action, DownloadAction):
        name = base_name(action.key)
        return f"Download '{name}'?"
    if isinstance(action, UploadAction):
        destination = join_key(state.current_path, action.name)
        return f"Upload '{action.name}' to s3://{state.bucket}/{destination}?"
    return ""


def render_confirm(state: NavigationState) -> Text:
    text = Text()
    text.append("Confirm\n\n", style="bold cyan")
    text.append(confirm_prompt(state) + "\n\n", style="bold")
    text.append(CONFIRM_HINT, style="dim")
    return text


_RENDERERS = {
    ViewMode.BROWSER: render_browser,
    ViewMode.PREVIEW: render_preview,
    ViewMode.HELP: render_help,
    ViewMode.UPLOAD: render_upload,
    ViewMode.RENAME: render_rename,
    ViewMode.CONFIRM: render_confirm,
}


def render(state: NavigationState) -> Text:
    return _RENDERERS[state.mode](state)
