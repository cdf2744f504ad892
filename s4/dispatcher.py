from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path

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
    Rename,
    Renamed,
    Result,
    Upload,
    Uploaded,
)
from .local import list_local_entries_async
from .models import base_name
from .stats import StatisticsAggregator

logger = logging.getLogger(__name__)


def listing_prefix(path: str) -> str:
    if path and not path.endswith("/"):
        return f"{path}/"
    return path


def _describe(exc: Exception) -> str:
    text = str(exc)
    return text or type(exc).__name__


class CommandDispatcher:
    """Runs commands against the store and the local filesystem.

    ``execute`` never raises; failures are folded into the returned result so
    every command yields exactly one result.
    """

    def __init__(
        self,
        store,
        bucket: str,
        aggregator: StatisticsAggregator,
        download_dir: str = ".",
    ) -> None:
        self.store = store
        self.bucket = bucket
        self.aggregator = aggregator
        self.download_dir = download_dir

    async def execute(self, command: Command) -> Result:
        if isinstance(command, ListEntries):
            return await self._list_entries(command)
        if isinstance(command, FetchContent):
            return await self._fetch_content(command)
        if isinstance(command, Download):
            return await self._download(command)
        if isinstance(command, Upload):
            return await self._upload(command)
        if isinstance(command, Delete):
            return await self._delete(command)
        if isinstance(command, Paste):
            return await self._paste(command)
        if isinstance(command, Rename):
            return await self._rename(command)
        if isinstance(command, ListLocal):
            return await self._list_local(command)
        if isinstance(command, ComputeDirStats):
            return await self._compute_dir_stats(command)
        raise TypeError(f"unsupported command: {command!r}")

    async def _list_entries(self, command: ListEntries) -> EntriesListed:
        try:
            entries = await self.store.list_entries(
                self.bucket, listing_prefix(command.path)
            )
        except Exception as exc:
            logger.warning("Listing %r failed: %s", command.path, exc)
            return EntriesListed(path=command.path, error=_describe(exc))
        return EntriesListed(path=command.path, entries=tuple(entries))

    async def _fetch_content(self, command: FetchContent) -> ContentFetched:
        try:
            data = await self.store.get_content(self.bucket, command.key)
        except Exception as exc:
            logger.warning("Fetching %r failed: %s", command.key, exc)
            return ContentFetched(key=command.key, error=_describe(exc))
        return ContentFetched(key=command.key, data=data)

    async def _download(self, command: Download) -> Downloaded:
        destination = Path(self.download_dir) / base_name(command.key)
        try:
            data = await self.store.get_content(self.bucket, command.key)
        except Exception as exc:
            logger.warning("Downloading %r failed: %s", command.key, exc)
            return Downloaded(key=command.key, error=_describe(exc))
        try:
            await asyncio.to_thread(destination.write_bytes, data)
        except OSError as exc:
            logger.warning("Writing %s failed: %s", destination, exc)
            return Downloaded(
                key=command.key,
                error=f"failed to write file '{destination}': {_describe(exc)}",
            )
        logger.info("Downloaded %s to %s", command.key, destination)
        return Downloaded(key=command.key, destination=str(destination))

    async def _upload(self, command: Upload) -> Uploaded:
        try:
            data = await asyncio.to_thread(Path(command.source_path).read_bytes)
        except OSError as exc:
            logger.warning("Reading %s failed: %s", command.source_path, exc)
            return Uploaded(
                source_path=command.source_path,
                key=command.key,
                error=f"failed to read file '{command.source_path}': {_describe(exc)}",
            )
        try:
            await self.store.put_content(self.bucket, command.key, data)
        except Exception as exc:
            logger.warning("Uploading %r failed: %s", command.key, exc)
            return Uploaded(
                source_path=command.source_path, key=command.key, error=_describe(exc)
            )
        logger.info("Uploaded %s to %s", command.source_path, command.key)
        return Uploaded(source_path=command.source_path, key=command.key)

    async def _delete(self, command: Delete) -> Deleted:
        try:
            await self.store.delete_entry(self.bucket, command.key)
        except Exception as exc:
            logger.warning("Deleting %r failed: %s", command.key, exc)
            return Deleted(key=command.key, error=_describe(exc))
        logger.info("Deleted %s", command.key)
        return Deleted(key=command.key)

    async def _paste(self, command: Paste) -> Pasted:
        tasks = [
            self.store.copy_entry(self.bucket, source, destination)
            for source, destination in command.pairs
        ]
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)
        copied: list[tuple[str, str]] = []
        failed: list[tuple[str, str]] = []
        for (source, destination), outcome in zip(command.pairs, outcomes):
            if isinstance(outcome, Exception):
                logger.warning("Copying %r to %r failed: %s", source, destination, outcome)
                failed.append((source, _describe(outcome)))
                continue
            copied.append((source, destination))
        return Pasted(copied=tuple(copied), failed=tuple(failed))

    async def _rename(self, command: Rename) -> Renamed:
        try:
            await self.store.copy_entry(self.bucket, command.old_key, command.new_key)
        except Exception as exc:
            logger.warning("Rename copy %r failed: %s", command.old_key, exc)
            return Renamed(
                old_key=command.old_key,
                new_key=command.new_key,
                error=f"failed to copy object during rename: {_describe(exc)}",
            )
        try:
            await self.store.delete_entry(self.bucket, command.old_key)
        except Exception as exc:
            # The copy at new_key is left in place.
            logger.warning("Rename delete %r failed: %s", command.old_key, exc)
            return Renamed(
                old_key=command.old_key,
                new_key=command.new_key,
                error=f"failed to delete original object during rename: {_describe(exc)}",
                copied=True,
            )
        logger.info("Renamed %s to %s", command.old_key, command.new_key)
        return Renamed(old_key=command.old_key, new_key=command.new_key, copied=True)

    async def _list_local(self, command: ListLocal) -> LocalListed:
        path = os.path.abspath(command.path)
        try:
            entries = await list_local_entries_async(path)
        except OSError as exc:
            logger.warning("Listing local directory %s failed: %s", path, exc)
            return LocalListed(
                path=path, error=_describe(exc), requested=command.path
            )
        return LocalListed(
            path=path, entries=tuple(entries), requested=command.path
        )

    async def _compute_dir_stats(self, command: ComputeDirStats) -> DirStatsComputed:
        stats = await self.aggregator.compute(command.dir_key)
        return DirStatsComputed(dir_key=command.dir_key, stats=stats)
