"""Commands issued by the navigation state machine and the results they produce.

Each command type maps to exactly one result type. Results carry an
``error`` string that is ``None`` on success.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from .models import DirectoryStats, Entry, LocalEntry


@dataclass(frozen=True)
class ListEntries:
    path: str


@dataclass(frozen=True)
class FetchContent:
    key: str


@dataclass(frozen=True)
class Download:
    key: str


@dataclass(frozen=True)
class Upload:
    source_path: str
    key: str


@dataclass(frozen=True)
class Delete:
    key: str


@dataclass(frozen=True)
class Paste:
    pairs: tuple[tuple[str, str], ...]


@dataclass(frozen=True)
class Rename:
    old_key: str
    new_key: str


@dataclass(frozen=True)
class ListLocal:
    path: str


@dataclass(frozen=True)
class ComputeDirStats:
    dir_key: str


@dataclass(frozen=True)
class Quit:
    pass


Command = Union[
    ListEntries,
    FetchContent,
    Download,
    Upload,
    Delete,
    Paste,
    Rename,
    ListLocal,
    ComputeDirStats,
    Quit,
]


@dataclass(frozen=True)
class EntriesListed:
    path: str
    entries: tuple[Entry, ...] = ()
    error: Optional[str] = None


@dataclass(frozen=True)
class ContentFetched:
    key: str
    data: bytes = b""
    error: Optional[str] = None


@dataclass(frozen=True)
class Downloaded:
    key: str
    destination: str = ""
    error: Optional[str] = None


@dataclass(frozen=True)
class Uploaded:
    source_path: str
    key: str
    error: Optional[str] = None


@dataclass(frozen=True)
class Deleted:
    key: str
    error: Optional[str] = None


@dataclass(frozen=True)
class Pasted:
    copied: tuple[tuple[str, str], ...] = ()
    failed: tuple[tuple[str, str], ...] = ()

    @property
    def error(self) -> Optional[str]:
        if not self.failed:
            return None
        return "; ".join(f"{source}: {reason}" for source, reason in self.failed)


@dataclass(frozen=True)
class Renamed:
    old_key: str
    new_key: str
    error: Optional[str] = None
    copied: bool = False


@dataclass(frozen=True)
class LocalListed:
    path: str
    entries: tuple[LocalEntry, ...] = ()
    error: Optional[str] = None
    requested: str = ""


@dataclass(frozen=True)
class DirStatsComputed:
    dir_key: str
    stats: DirectoryStats


Result = Union[
    EntriesListed,
    ContentFetched,
    Downloaded,
    Uploaded,
    Deleted,
    Pasted,
    Renamed,
    LocalListed,
    DirStatsComputed,
]
