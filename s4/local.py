from __future__ import annotations

import asyncio
import logging
import os

from .models import PARENT_ENTRY_NAME, LocalEntry, sort_local_entries

logger = logging.getLogger(__name__)


def list_local_entries(path: str) -> list[LocalEntry]:
    """List a local directory for the upload picker.

    Hidden names are skipped, as are entries whose metadata cannot be read.
    The result always starts with a ``..`` entry so the user can climb above
    the starting directory.
    """
    entries: list[LocalEntry] = []
    with os.scandir(path) as iterator:
        for item in iterator:
            if item.name.startswith("."):
                continue
            try:
                is_dir = item.is_dir()
                size = 0 if is_dir else item.stat().st_size
            except OSError as exc:
                logger.debug("Skipping unreadable entry %s: %s", item.path, exc)
                continue
            entries.append(LocalEntry(name=item.name, is_dir=is_dir, size=size))
    return [LocalEntry(name=PARENT_ENTRY_NAME, is_dir=True)] + sort_local_entries(entries)


async def list_local_entries_async(path: str) -> list[LocalEntry]:
    return await asyncio.to_thread(list_local_entries, path)


def parent_directory(path: str) -> str:
    return os.path.dirname(os.path.abspath(path))


def child_path(path: str, name: str) -> str:
    if name == PARENT_ENTRY_NAME:
        return parent_directory(path)
    return os.path.join(os.path.abspath(path), name)
