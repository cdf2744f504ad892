from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Optional, TypeVar

from .config import DEFAULT_DATE_DEADLINE, DEFAULT_SIZE_DEADLINE
from .models import DirectoryStats

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _discard_late_result(task: asyncio.Future) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug("Late statistics call failed after its deadline: %s", exc)


async def settle_within(
    awaitable: Awaitable[T], deadline: float
) -> tuple[Optional[T], bool]:
    """Race ``awaitable`` against ``deadline`` seconds.

    Returns ``(value, True)`` when it finished in time, ``(None, False)`` when
    it failed or the deadline passed first. A late call is left running and
    whatever it eventually produces is dropped.
    """
    task = asyncio.ensure_future(awaitable)
    done, _ = await asyncio.wait({task}, timeout=max(0.0, deadline))
    if task not in done:
        task.add_done_callback(_discard_late_result)
        return None, False
    if task.cancelled():
        return None, False
    exc = task.exception()
    if exc is not None:
        logger.debug("Statistics call failed: %s", exc)
        return None, False
    return task.result(), True


class StatisticsAggregator:
    def __init__(
        self,
        store,
        bucket: str,
        size_deadline: float = DEFAULT_SIZE_DEADLINE,
        date_deadline: float = DEFAULT_DATE_DEADLINE,
    ) -> None:
        self.store = store
        self.bucket = bucket
        self.size_deadline = size_deadline
        self.date_deadline = date_deadline

    async def _total_size(self, prefix: str) -> int:
        objects = await self.store.list_descendants(self.bucket, prefix)
        return sum(obj.size for obj in objects if not obj.is_dir)

    async def _latest_modified(self, prefix: str) -> Optional[datetime]:
        objects = await self.store.list_descendants(self.bucket, prefix)
        return max(
            (obj.last_modified for obj in objects if not obj.is_dir and obj.last_modified),
            default=None,
        )

    async def compute(self, dir_key: str) -> DirectoryStats:
        prefix = f"{dir_key.rstrip('/')}/"
        (size, size_ok), (latest, date_ok) = await asyncio.gather(
            settle_within(self._total_size(prefix), self.size_deadline),
            settle_within(self._latest_modified(prefix), self.date_deadline),
        )
        if not size_ok:
            logger.debug("Size of %s unresolved within %.2fs", prefix, self.size_deadline)
        if not date_ok:
            logger.debug("Date of %s unresolved within %.2fs", prefix, self.date_deadline)
        return DirectoryStats(
            size=size if size_ok and size is not None else 0,
            last_modified=latest if date_ok else None,
            size_timeout=not size_ok,
            date_timeout=not date_ok,
        )
