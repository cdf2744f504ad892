from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

PARENT_ENTRY_NAME = ".."


@dataclass(frozen=True)
class Entry:
    key: str
    is_dir: bool
    size: int = 0
    last_modified: Optional[datetime] = None

    @property
    def name(self) -> str:
        return base_name(self.key)


@dataclass(frozen=True)
class LocalEntry:
    name: str
    is_dir: bool
    size: int = 0


@dataclass(frozen=True)
class DirectoryStats:
    size: int
    last_modified: Optional[datetime]
    size_timeout: bool
    date_timeout: bool


def base_name(key: str) -> str:
    return key.rstrip("/").rsplit("/", 1)[-1]


def sort_entries(entries: Iterable[Entry]) -> list[Entry]:
    return sorted(entries, key=lambda entry: (not entry.is_dir, entry.key))


def sort_local_entries(entries: Iterable[LocalEntry]) -> list[LocalEntry]:
    return sorted(entries, key=lambda entry: (not entry.is_dir, entry.name))
