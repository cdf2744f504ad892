"""Navigation state machine.

``handle_key`` and ``handle_result`` take the current :class:`NavigationState`
plus one event, update the state in place and return the commands that should
be dispatched next. Nothing in this module performs I/O.
"""

from __future__ import annotations

import logging
import os
import posixpath
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from .commands import (
    Command,
    ComputeDirStats,
    ContentFetched,
    Delete,
    Deleted,
    DirStatsComputed,
    Download,
    Downloaded,
    EntriesListed,
    FetchContent,
    ListEntries,
    ListLocal,
    LocalListed,
    Paste,
    Pasted,
    Quit,
    Rename,
    Renamed,
    Result,
    Upload,
    Uploaded,
)
from .errors import ValidationError
from .local import child_path, parent_directory
from .models import base_name
from .state import (
    DeleteAction,
    DownloadAction,
    NavigationState,
    UploadAction,
    ViewMode,
)
from .viewport import (
    PREVIEW_PAGE_LINES,
    adjust_scroll,
    clamp_cursor,
    clamp_preview_scroll,
    half_page,
    max_preview_scroll,
    visible_rows,
)

logger = logging.getLogger(__name__)

BINARY_PLACEHOLDER = "[Binary file - cannot preview]"

QUIT_KEYS = {"q", "ctrl+c"}
UP_KEYS = {"up", "k"}
DOWN_KEYS = {"down", "j"}
FIRST_KEYS = {"g", "home"}
LAST_KEYS = {"G", "end"}
OPEN_KEYS = {"enter", "l", "o", "right"}
BACK_KEYS = {"backspace", "h", "left"}
REFRESH_KEYS = {"R", "ctrl+r"}
ACCEPT_KEYS = {"y", "Y", "enter"}
DECLINE_KEYS = {"n", "N", "escape"}
HELP_DISMISS_KEYS = {"escape", "?", "enter", "backspace", "h", "left"}
PREVIEW_EXIT_KEYS = {"escape", "backspace", "h", "left"}


@dataclass(frozen=True)
class KeyPress:
    key: str
    character: Optional[str] = None

    @property
    def name(self) -> str:
        char = self.character
        if char and len(char) == 1 and char.isprintable() and char != " ":
            return char
        return self.key

    @property
    def text(self) -> Optional[str]:
        if self.key == "space":
            return " "
        char = self.character
        if char is None and len(self.key) == 1:
            char = self.key
        if char and len(char) == 1 and char.isprintable():
            return char
        return None


def join_key(path: str, name: str) -> str:
    path = path.strip("/")
    if not path:
        return name
    return f"{path}/{name}"


def parent_path(path: str) -> str:
    if "/" not in path:
        return ""
    return path.rsplit("/", 1)[0]


def copy_destination(path: str, name: str, taken: set[str]) -> str:
    destination = join_key(path, name)
    if destination not in taken:
        return destination
    stem, ext = posixpath.splitext(name)
    counter = 1
    while True:
        destination = join_key(path, f"{stem}_copy_{counter}{ext}")
        if destination not in taken:
            return destination
        counter += 1


def resolve_paste_destinations(
    marked: Iterable[str], path: str, existing: Iterable[str]
) -> list[tuple[str, str]]:
    taken = set(existing)
    pairs: list[tuple[str, str]] = []
    for source in marked:
        destination = copy_destination(path, base_name(source), taken)
        taken.add(destination)
        pairs.append((source, destination))
    return pairs


def decode_preview(data: bytes) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return BINARY_PLACEHOLDER


def preview_lines(text: str) -> list[str]:
    """Split on newlines only, so line numbers match what an editor shows.

    A trailing newline does not add an empty last line and a CR before each
    newline is dropped.
    """
    if not text:
        return []
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def start(state: NavigationState) -> list[Command]:
    state.loading = True
    return [ListEntries(state.current_path)]


def handle_resize(state: NavigationState, width: int, height: int) -> None:
    state.width = width
    state.height = height
    visible = visible_rows(height)
    state.scroll_offset = adjust_scroll(
        state.cursor, state.scroll_offset, len(state.entries), visible
    )
    state.local_scroll = adjust_scroll(
        state.local_cursor, state.local_scroll, len(state.local_entries), visible
    )
    state.preview_scroll = clamp_preview_scroll(
        state.preview_scroll, len(state.preview_lines), visible
    )


# Cursor movement


def _set_cursor(state: NavigationState, index: int) -> None:
    count = len(state.entries)
    state.cursor = clamp_cursor(index, count)
    state.scroll_offset = adjust_scroll(
        state.cursor, state.scroll_offset, count, visible_rows(state.height)
    )


def _set_local_cursor(state: NavigationState, index: int) -> None:
    count = len(state.local_entries)
    state.local_cursor = clamp_cursor(index, count)
    state.local_scroll = adjust_scroll(
        state.local_cursor, state.local_scroll, count, visible_rows(state.height)
    )


def _movement(
    key: str, cursor: int, count: int, height: int
) -> Optional[int]:
    if key in UP_KEYS:
        return cursor - 1
    if key in DOWN_KEYS:
        return cursor + 1
    if key in FIRST_KEYS:
        return 0
    if key in LAST_KEYS:
        return count - 1
    if key == "ctrl+d":
        return cursor + half_page(height)
    if key == "ctrl+u":
        return cursor - half_page(height)
    return None


# Browser mode


def _change_directory(state: NavigationState, path: str) -> list[Command]:
    state.current_path = path
    state.entries = []
    state.preview_pending = ""
    state.cursor = 0
    state.scroll_offset = 0
    state.clear_dir_stats()
    state.loading = True
    return [ListEntries(path)]


def _refresh(state: NavigationState) -> list[Command]:
    state.clear_dir_stats()
    state.loading = True
    return [ListEntries(state.current_path)]


def _open_selected(state: NavigationState) -> list[Command]:
    entry = state.selected_entry()
    if entry is None:
        return []
    if entry.is_dir:
        return _change_directory(state, entry.key)
    state.preview_pending = entry.key
    return [FetchContent(entry.key)]


def _go_up(state: NavigationState) -> list[Command]:
    if not state.current_path:
        return []
    return _change_directory(state, parent_path(state.current_path))


def _toggle_mark(state: NavigationState) -> None:
    entry = state.selected_entry()
    if entry is None or entry.is_dir:
        return
    if entry.key in state.marked:
        state.marked.remove(entry.key)
    else:
        state.marked.append(entry.key)
    state.error = None
    if state.cursor < len(state.entries) - 1:
        _set_cursor(state, state.cursor + 1)


def _clear_marks(state: NavigationState) -> None:
    if not state.marked:
        return
    count = len(state.marked)
    state.marked = []
    state.set_status(f"✓ Cleared {count} yanked file(s)")


def _paste(state: NavigationState) -> list[Command]:
    if not state.marked:
        return []
    if state.loading:
        state.set_status("Wait for the listing to load before pasting")
        return []
    pairs = resolve_paste_destinations(
        state.marked, state.current_path, state.entry_keys()
    )
    state.set_status(f"Copying {len(pairs)} file(s)...")
    return [Paste(tuple(pairs))]


def _begin_rename(state: NavigationState) -> None:
    entry = state.selected_entry()
    if entry is None or entry.is_dir:
        return
    state.rename_original = entry.key
    state.rename_text = entry.name
    state.rename_cursor = len(state.rename_text)
    state.mode = ViewMode.RENAME
    state.clear_messages()


def _begin_confirm(state: NavigationState, action) -> None:
    state.confirm = action
    state.mode = ViewMode.CONFIRM
    state.clear_messages()


def _request_local(state: NavigationState, path: str) -> list[Command]:
    state.local_request = path
    return [ListLocal(path)]


def _handle_browser_key(state: NavigationState, press: KeyPress) -> list[Command]:
    key = press.name
    if key in QUIT_KEYS:
        return [Quit()]
    target = _movement(key, state.cursor, len(state.entries), state.height)
    if target is not None:
        if state.entries:
            _set_cursor(state, target)
        return []
    if key in OPEN_KEYS:
        return _open_selected(state)
    if key in BACK_KEYS:
        return _go_up(state)
    if key in REFRESH_KEYS:
        return _refresh(state)
    if key == "y":
        _toggle_mark(state)
    elif key == "p":
        return _paste(state)
    elif key == "c":
        _clear_marks(state)
    elif key == "r":
        _begin_rename(state)
    elif key in {"x", "d"}:
        entry = state.selected_entry()
        if entry is not None and not entry.is_dir:
            action = DeleteAction(entry.key) if key == "x" else DownloadAction(entry.key)
            _begin_confirm(state, action)
    elif key == "u":
        return _request_local(state, state.local_path)
    elif key == "?":
        state.mode = ViewMode.HELP
    return []


# Preview mode


def _close_preview(state: NavigationState) -> None:
    state.mode = ViewMode.BROWSER
    state.preview_key = ""
    state.preview_lines = []
    state.preview_scroll = 0


def _handle_preview_key(state: NavigationState, press: KeyPress) -> list[Command]:
    key = press.name
    if key in QUIT_KEYS:
        return [Quit()]
    if key in PREVIEW_EXIT_KEYS:
        _close_preview(state)
        return []
    visible = visible_rows(state.height)
    total = len(state.preview_lines)
    scroll = state.preview_scroll
    if key in UP_KEYS:
        scroll -= 1
    elif key in DOWN_KEYS:
        scroll += 1
    elif key in {"pageup", "u"}:
        scroll -= PREVIEW_PAGE_LINES
    elif key in {"pagedown", "d"}:
        scroll += PREVIEW_PAGE_LINES
    elif key in FIRST_KEYS:
        scroll = 0
    elif key in LAST_KEYS:
        scroll = max_preview_scroll(total, visible)
    else:
        return []
    state.preview_scroll = clamp_preview_scroll(scroll, total, visible)
    return []


# Help mode


def _handle_help_key(state: NavigationState, press: KeyPress) -> list[Command]:
    key = press.name
    if key in QUIT_KEYS:
        return [Quit()]
    if key in HELP_DISMISS_KEYS:
        state.mode = ViewMode.BROWSER
    return []


# Upload picker


def _handle_upload_key(state: NavigationState, press: KeyPress) -> list[Command]:
    key = press.name
    if key in QUIT_KEYS:
        return [Quit()]
    if key == "escape":
        state.local_request = None
        state.mode = ViewMode.BROWSER
        return []
    target = _movement(
        key, state.local_cursor, len(state.local_entries), state.height
    )
    if target is not None:
        if state.local_entries:
            _set_local_cursor(state, target)
        return []
    if key in OPEN_KEYS:
        entry = state.selected_local_entry()
        if entry is None:
            return []
        if entry.is_dir:
            return _request_local(state, child_path(state.local_path, entry.name))
        source_path = os.path.join(state.local_path, entry.name)
        _begin_confirm(state, UploadAction(name=entry.name, source_path=source_path))
        return []
    if key in BACK_KEYS:
        return _request_local(state, parent_directory(state.local_path))
    return []


# Rename dialog


def _close_rename(state: NavigationState) -> None:
    state.mode = ViewMode.BROWSER
    state.rename_original = ""
    state.rename_text = ""
    state.rename_cursor = 0


def validate_rename(state: NavigationState, name: str) -> str:
    """Return the new key for ``name`` or raise ``ValidationError``."""
    if not name:
        raise ValidationError("new name cannot be empty")
    if "/" in name:
        raise ValidationError("new name cannot contain '/'")
    new_key = join_key(parent_path(state.rename_original), name)
    if new_key in state.entry_keys():
        raise ValidationError(f"file '{name}' already exists")
    return new_key


def _submit_rename(state: NavigationState) -> list[Command]:
    name = state.rename_text
    original_name = base_name(state.rename_original)
    if name == original_name:
        _close_rename(state)
        return []
    try:
        new_key = validate_rename(state, name)
    except ValidationError as exc:
        state.set_error(str(exc))
        return []
    old_key = state.rename_original
    _close_rename(state)
    state.set_status(f"Renaming '{original_name}'...")
    return [Rename(old_key=old_key, new_key=new_key)]


def _delete_word_left(text: str, cursor: int) -> tuple[str, int]:
    start = cursor - 1
    while start >= 0 and text[start] == " ":
        start -= 1
    while start >= 0 and text[start] != " ":
        start -= 1
    start += 1
    return text[:start] + text[cursor:], start


def _handle_rename_key(state: NavigationState, press: KeyPress) -> list[Command]:
    key = press.key
    text = state.rename_text
    cursor = state.rename_cursor
    if key == "ctrl+c":
        return [Quit()]
    if key == "escape":
        _close_rename(state)
        return []
    if key == "enter":
        return _submit_rename(state)
    if key == "backspace":
        if cursor > 0:
            text = text[: cursor - 1] + text[cursor:]
            cursor -= 1
    elif key == "delete":
        if cursor < len(text):
            text = text[:cursor] + text[cursor + 1 :]
    elif key == "left":
        cursor -= 1
    elif key == "right":
        cursor += 1
    elif key in {"home", "ctrl+a"}:
        cursor = 0
    elif key in {"end", "ctrl+e"}:
        cursor = len(text)
    elif key == "ctrl+u":
        text = text[cursor:]
        cursor = 0
    elif key == "ctrl+w":
        if cursor > 0:
            text, cursor = _delete_word_left(text, cursor)
    else:
        char = press.text
        if char is not None:
            text = text[:cursor] + char + text[cursor:]
            cursor += 1
    state.rename_text = text
    state.rename_cursor = max(0, min(cursor, len(text)))
    return []


# Confirm dialog


def _accept_confirm(state: NavigationState) -> list[Command]:
    action = state.confirm
    state.confirm = None
    state.mode = ViewMode.BROWSER
    if isinstance(action, DeleteAction):
        state.set_status(f"Deleting '{base_name(action.key)}'...")
        return [Delete(action.key)]
    if isinstance(action, DownloadAction):
        state.set_status(f"Downloading '{base_name(action.key)}'...")
        return [Download(action.key)]
    if isinstance(action, UploadAction):
        state.set_status(f"Uploading '{action.name}'...")
        key = join_key(state.current_path, action.name)
        return [Upload(source_path=action.source_path, key=key)]
    return []


def _handle_confirm_key(state: NavigationState, press: KeyPress) -> list[Command]:
    key = press.name
    if key in QUIT_KEYS:
        return [Quit()]
    if key in ACCEPT_KEYS:
        return _accept_confirm(state)
    if key in DECLINE_KEYS:
        state.confirm = None
        state.mode = ViewMode.BROWSER
    return []


_KEY_HANDLERS: dict[ViewMode, Callable[[NavigationState, KeyPress], list[Command]]] = {
    ViewMode.BROWSER: _handle_browser_key,
    ViewMode.PREVIEW: _handle_preview_key,
    ViewMode.HELP: _handle_help_key,
    ViewMode.UPLOAD: _handle_upload_key,
    ViewMode.RENAME: _handle_rename_key,
    ViewMode.CONFIRM: _handle_confirm_key,
}


def handle_key(state: NavigationState, press: KeyPress) -> list[Command]:
    return _KEY_HANDLERS[state.mode](state, press)


# Results


def _reload(state: NavigationState) -> list[Command]:
    return [ListEntries(state.current_path)]


def _on_entries_listed(state: NavigationState, result: EntriesListed) -> list[Command]:
    if result.path != state.current_path:
        logger.debug("Dropping listing for %r, now at %r", result.path, state.current_path)
        return []
    state.loading = False
    if result.error is not None:
        state.set_error(result.error)
        return []
    previous = state.selected_entry()
    state.entries = list(result.entries)
    state.error = None
    index = 0
    if previous is not None:
        keys = [entry.key for entry in state.entries]
        if previous.key in keys:
            index = keys.index(previous.key)
        else:
            index = state.cursor
    state.cursor = clamp_cursor(index, len(state.entries))
    state.scroll_offset = adjust_scroll(
        state.cursor, state.scroll_offset, len(state.entries), visible_rows(state.height)
    )
    commands: list[Command] = []
    for entry in state.entries:
        if not entry.is_dir:
            continue
        if entry.key in state.dir_stats or entry.key in state.stats_pending:
            continue
        state.stats_pending.add(entry.key)
        commands.append(ComputeDirStats(entry.key))
    return commands


def _on_content_fetched(state: NavigationState, result: ContentFetched) -> list[Command]:
    if result.key != state.preview_pending:
        logger.debug("Dropping content for %r, no longer requested", result.key)
        return []
    state.preview_pending = ""
    if result.error is not None:
        state.set_error(result.error)
        return []
    if state.mode is not ViewMode.BROWSER:
        return []
    state.preview_key = result.key
    state.preview_lines = preview_lines(decode_preview(result.data))
    state.preview_scroll = 0
    state.mode = ViewMode.PREVIEW
    state.error = None
    return []


def _on_downloaded(state: NavigationState, result: Downloaded) -> list[Command]:
    if result.error is not None:
        state.set_error(result.error)
        return []
    state.set_status(f"✓ Downloaded '{base_name(result.key)}' successfully")
    return []


def _on_uploaded(state: NavigationState, result: Uploaded) -> list[Command]:
    if result.error is not None:
        state.set_error(result.error)
        return []
    state.set_status(f"✓ Uploaded '{base_name(result.key)}' successfully")
    return _reload(state)


def _on_deleted(state: NavigationState, result: Deleted) -> list[Command]:
    if result.error is not None:
        state.set_error(result.error)
        return []
    if result.key in state.marked:
        state.marked.remove(result.key)
    state.set_status(f"✓ Deleted '{base_name(result.key)}' successfully")
    return _reload(state)


def _on_pasted(state: NavigationState, result: Pasted) -> list[Command]:
    copied_names = ", ".join(base_name(destination) for _, destination in result.copied)
    if result.failed:
        reasons = ", ".join(
            f"{base_name(source)}: {reason}" for source, reason in result.failed
        )
        message = f"Failed to copy {len(result.failed)} file(s): {reasons}"
        if result.copied:
            message += f". Successfully copied: {copied_names}"
        state.set_error(message)
    else:
        state.set_status(
            f"✓ Copied {len(result.copied)} file(s) successfully: {copied_names}"
        )
    if result.copied:
        return _reload(state)
    return []


def _on_renamed(state: NavigationState, result: Renamed) -> list[Command]:
    if result.error is not None:
        state.set_error(result.error)
        return _reload(state) if result.copied else []
    state.marked = [
        result.new_key if key == result.old_key else key for key in state.marked
    ]
    state.set_status(
        f"✓ Renamed '{base_name(result.old_key)}' to "
        f"'{base_name(result.new_key)}' successfully"
    )
    return _reload(state)


def _on_local_listed(state: NavigationState, result: LocalListed) -> list[Command]:
    if state.local_request is None or result.requested != state.local_request:
        logger.debug("Dropping local listing for %r", result.path)
        return []
    state.local_request = None
    if result.error is not None:
        state.set_error(result.error)
        return []
    if state.mode not in {ViewMode.BROWSER, ViewMode.UPLOAD}:
        return []
    state.local_path = result.path
    state.local_entries = list(result.entries)
    state.local_cursor = 0
    state.local_scroll = 0
    state.mode = ViewMode.UPLOAD
    state.error = None
    return []


def _on_dir_stats(state: NavigationState, result: DirStatsComputed) -> list[Command]:
    if result.dir_key not in state.stats_pending:
        return []
    state.stats_pending.discard(result.dir_key)
    state.dir_stats[result.dir_key] = result.stats
    return []


_RESULT_HANDLERS: dict[type, Callable[[NavigationState, Result], list[Command]]] = {
    EntriesListed: _on_entries_listed,
    ContentFetched: _on_content_fetched,
    Downloaded: _on_downloaded,
    Uploaded: _on_uploaded,
    Deleted: _on_deleted,
    Pasted: _on_pasted,
    Renamed: _on_renamed,
    LocalListed: _on_local_listed,
    DirStatsComputed: _on_dir_stats,
}


def handle_result(state: NavigationState, result: Result) -> list[Command]:
    handler = _RESULT_HANDLERS.get(type(result))
    if handler is None:
        raise TypeError(f"unsupported result: {result!r}")
    return handler(state, result)
