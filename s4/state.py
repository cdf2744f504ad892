from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from .models import DirectoryStats, Entry, LocalEntry


class ViewMode(Enum):
    BROWSER = "browser"
    PREVIEW = "preview"
    HELP = "help"
    UPLOAD = "upload"
    RENAME = "rename"
    CONFIRM = "confirm"


@dataclass(frozen=True)
class DeleteAction:
    key: str


@dataclass(frozen=True)
class DownloadAction:
    key: str


@dataclass(frozen=True)
class UploadAction:
    name: str
    source_path: str


ConfirmAction = Union[DeleteAction, DownloadAction, UploadAction]


@dataclass
class NavigationState:
    bucket: str
    current_path: str = ""
    entries: list[Entry] = field(default_factory=list)
    cursor: int = 0
    scroll_offset: int = 0
    width: int = 80
    height: int = 24
    mode: ViewMode = ViewMode.BROWSER
    loading: bool = True
    preview_key: str = ""
    preview_pending: str = ""
    preview_lines: list[str] = field(default_factory=list)
    preview_scroll: int = 0
    local_path: str = "."
    local_request: Optional[str] = None
    local_entries: list[LocalEntry] = field(default_factory=list)
    local_cursor: int = 0
    local_scroll: int = 0
    rename_original: str = ""
    rename_text: str = ""
    rename_cursor: int = 0
    confirm: Optional[ConfirmAction] = None
    marked: list[str] = field(default_factory=list)
    dir_stats: dict[str, DirectoryStats] = field(default_factory=dict)
    stats_pending: set[str] = field(default_factory=set)
    error: Optional[str] = None
    status: Optional[str] = None

    def set_error(self, message: str) -> None:
        self.error = message
        self.status = None

    def set_status(self, message: str) -> None:
        self.status = message
        self.error = None

    def clear_messages(self) -> None:
        self.error = None
        self.status = None

    def clear_dir_stats(self) -> None:
        self.dir_stats = {}
        self.stats_pending = set()

    def selected_entry(self) -> Optional[Entry]:
        if not self.entries:
            return None
        return self.entries[self.cursor]

    def selected_local_entry(self) -> Optional[LocalEntry]:
        if not self.local_entries:
            return None
        return self.local_entries[self.local_cursor]

    def is_marked(self, key: str) -> bool:
        return key in self.marked

    def entry_keys(self) -> set[str]:
        return {entry.key for entry in self.entries}
