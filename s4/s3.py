from __future__ import annotations

import asyncio
import functools
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from .config import S3Config
from .errors import StoreError
from .models import Entry, sort_entries

logger = logging.getLogger(__name__)

BUCKET_MISSING_CODES = {"404", "NoSuchBucket", "NotFound"}

# Recursive listings for directory statistics run on their own pool so they
# never queue ahead of user commands in the default one.
STATS_WORKERS = 4


def _error_message(exc: Exception) -> str:
    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {}) if isinstance(exc.response, dict) else {}
        code = error.get("Code") or ""
        message = error.get("Message") or ""
        if code and message:
            return f"{code}: {message}"
        if code or message:
            return code or message
    return str(exc)


def _error_code(exc: Exception) -> str:
    if not isinstance(exc, ClientError):
        return ""
    error = exc.response.get("Error", {}) if isinstance(exc.response, dict) else {}
    return str(error.get("Code") or "")


def _directory_prefix(prefix: str) -> str:
    if prefix and not prefix.endswith("/"):
        return f"{prefix}/"
    return prefix


class S3Service:
    def __init__(self, config: Optional[S3Config] = None, client=None) -> None:
        self._config = config
        self._client_instance = client
        self._stats_executor = ThreadPoolExecutor(
            max_workers=STATS_WORKERS, thread_name_prefix="s4-stats"
        )

    def close(self) -> None:
        self._stats_executor.shutdown(wait=False, cancel_futures=True)

    def _client(self):
        if self._client_instance is not None:
            return self._client_instance
        if self._config is None:
            session = boto3.session.Session()
            self._client_instance = session.client("s3")
            return self._client_instance
        session = boto3.session.Session(
            aws_access_key_id=self._config.access_key,
            aws_secret_access_key=self._config.secret_key,
            region_name=self._config.region,
        )
        boto_config = BotoConfig(
            signature_version="s3" if self._config.signature_v2 else "s3v4",
            s3={"addressing_style": "path"},
        )
        self._client_instance = session.client(
            "s3",
            endpoint_url=self._config.endpoint_url,
            config=boto_config,
        )
        return self._client_instance

    def bucket_accessible(self, bucket: str) -> None:
        client = self._client()
        try:
            client.head_bucket(Bucket=bucket)
        except (ClientError, BotoCoreError) as exc:
            if _error_code(exc) in BUCKET_MISSING_CODES:
                raise StoreError(f"bucket '{bucket}' does not exist") from exc
            raise StoreError(
                f"failed to access bucket '{bucket}': {_error_message(exc)}"
            ) from exc

    async def list_entries(self, bucket: str, prefix: str) -> list[Entry]:
        return await asyncio.to_thread(self._list_entries, bucket, prefix)

    def _list_entries(self, bucket: str, prefix: str) -> list[Entry]:
        client = self._client()
        base_prefix = _directory_prefix(prefix)
        entries: list[Entry] = []
        continuation: Optional[str] = None
        while True:
            kwargs = {
                "Bucket": bucket,
                "Delimiter": "/",
                "Prefix": base_prefix,
                "MaxKeys": 1000,
            }
            if continuation:
                kwargs["ContinuationToken"] = continuation
            try:
                response = client.list_objects_v2(**kwargs)
            except (ClientError, BotoCoreError) as exc:
                raise StoreError(f"failed to list objects: {_error_message(exc)}") from exc
            for item in response.get("CommonPrefixes", []):
                key = (item.get("Prefix") or "").rstrip("/")
                if key:
                    entries.append(Entry(key=key, is_dir=True))
            for item in response.get("Contents", []):
                key = item.get("Key")
                if not key or key.endswith("/"):
                    continue
                entries.append(
                    Entry(
                        key=key,
                        is_dir=False,
                        size=int(item.get("Size", 0)),
                        last_modified=item.get("LastModified"),
                    )
                )
            if response.get("IsTruncated"):
                continuation = response.get("NextContinuationToken")
            else:
                break
        logger.debug("Listed %d entries under s3://%s/%s", len(entries), bucket, base_prefix)
        return sort_entries(entries)

    async def list_descendants(self, bucket: str, prefix: str) -> list[Entry]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self._stats_executor,
            functools.partial(self._list_descendants, bucket, prefix),
        )

    def _list_descendants(self, bucket: str, prefix: str) -> list[Entry]:
        client = self._client()
        base_prefix = _directory_prefix(prefix)
        continuation: Optional[str] = None
        objects: list[Entry] = []
        while True:
            kwargs = {
                "Bucket": bucket,
                "Prefix": base_prefix,
                "MaxKeys": 1000,
            }
            if continuation:
                kwargs["ContinuationToken"] = continuation
            try:
                response = client.list_objects_v2(**kwargs)
            except (ClientError, BotoCoreError) as exc:
                raise StoreError(f"failed to list objects: {_error_message(exc)}") from exc
            for item in response.get("Contents", []):
                key = item.get("Key")
                if not key or key.endswith("/"):
                    continue
                objects.append(
                    Entry(
                        key=key,
                        is_dir=False,
                        size=int(item.get("Size", 0)),
                        last_modified=item.get("LastModified"),
                    )
                )
            if response.get("IsTruncated"):
                continuation = response.get("NextContinuationToken")
            else:
                break
        return objects

    async def get_content(self, bucket: str, key: str) -> bytes:
        return await asyncio.to_thread(self._get_content, bucket, key)

    def _get_content(self, bucket: str, key: str) -> bytes:
        client = self._client()
        try:
            response = client.get_object(Bucket=bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:
            raise StoreError(f"failed to get object: {_error_message(exc)}") from exc
        body = response.get("Body")
        if body is None:
            return b""
        try:
            return body.read()
        except (BotoCoreError, OSError) as exc:
            raise StoreError(f"failed to read object data: {exc}") from exc
        finally:
            try:
                body.close()
            except Exception:
                pass

    async def put_content(self, bucket: str, key: str, data: bytes) -> None:
        await asyncio.to_thread(self._put_content, bucket, key, data)

    def _put_content(self, bucket: str, key: str, data: bytes) -> None:
        client = self._client()
        try:
            client.put_object(Bucket=bucket, Key=key, Body=data)
        except (ClientError, BotoCoreError) as exc:
            raise StoreError(f"failed to put object: {_error_message(exc)}") from exc

    async def delete_entry(self, bucket: str, key: str) -> None:
        await asyncio.to_thread(self._delete_entry, bucket, key)

    def _delete_entry(self, bucket: str, key: str) -> None:
        client = self._client()
        try:
            client.delete_object(Bucket=bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:
            raise StoreError(f"failed to delete object: {_error_message(exc)}") from exc

    async def copy_entry(self, bucket: str, source_key: str, dest_key: str) -> None:
        await asyncio.to_thread(self._copy_entry, bucket, source_key, dest_key)

    def _copy_entry(self, bucket: str, source_key: str, dest_key: str) -> None:
        client = self._client()
        try:
            client.copy_object(
                Bucket=bucket,
                Key=dest_key,
                CopySource={"Bucket": bucket, "Key": source_key},
            )
        except (ClientError, BotoCoreError) as exc:
            raise StoreError(f"failed to copy object: {_error_message(exc)}") from exc
