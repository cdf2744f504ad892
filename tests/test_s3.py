import asyncio
import io
import threading
import unittest
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

from botocore.exceptions import ClientError

from s4.config import S3Config
from s4.errors import StoreError
from s4.s3 import S3Service


def _client_error(code: str, message: str = "", operation: str = "ListObjectsV2") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


class _StubClient:
    def __init__(self, pages=None, error=None) -> None:
        self.pages = list(pages or [])
        self.error = error
        self.calls: list[tuple[str, dict]] = []

    def _call(self, name: str, kwargs: dict):
        self.calls.append((name, kwargs))
        if self.error is not None:
            raise self.error

    def list_objects_v2(self, **kwargs):
        self._call("list_objects_v2", kwargs)
        return self.pages.pop(0)

    def get_object(self, **kwargs):
        self._call("get_object", kwargs)
        return {"Body": io.BytesIO(b"hello")}

    def put_object(self, **kwargs):
        self._call("put_object", kwargs)
        return {}

    def delete_object(self, **kwargs):
        self._call("delete_object", kwargs)
        return {}

    def copy_object(self, **kwargs):
        self._call("copy_object", kwargs)
        return {}

    def head_bucket(self, **kwargs):
        self._call("head_bucket", kwargs)
        return {}


WHEN = datetime(2024, 3, 4, 5, 6, tzinfo=timezone.utc)


class TestS3Service(unittest.TestCase):
    def test_list_entries_paginates_and_sorts(self) -> None:
        client = _StubClient(
            [
                {
                    "IsTruncated": True,
                    "NextContinuationToken": "token-1",
                    "CommonPrefixes": [{"Prefix": "docs/sub/"}],
                    "Contents": [
                        {"Key": "docs/", "Size": 0},
                        {"Key": "docs/b.txt", "Size": 3, "LastModified": WHEN},
                    ],
                },
                {
                    "IsTruncated": False,
                    "Contents": [{"Key": "docs/a.txt", "Size": 1, "LastModified": WHEN}],
                },
            ]
        )
        service = S3Service(client=client)
        entries = asyncio.run(service.list_entries("bucket", "docs"))
        self.assertEqual(
            [(entry.key, entry.is_dir) for entry in entries],
            [("docs/sub", True), ("docs/a.txt", False), ("docs/b.txt", False)],
        )
        self.assertEqual(entries[2].size, 3)
        self.assertEqual(entries[2].last_modified, WHEN)
        first, second = (kwargs for _, kwargs in client.calls)
        self.assertEqual(first["Prefix"], "docs/")
        self.assertEqual(first["Delimiter"], "/")
        self.assertNotIn("ContinuationToken", first)
        self.assertEqual(second["ContinuationToken"], "token-1")

    def test_list_descendants_is_recursive(self) -> None:
        client = _StubClient(
            [
                {
                    "Contents": [
                        {"Key": "logs/a", "Size": 2},
                        {"Key": "logs/deep/", "Size": 0},
                        {"Key": "logs/deep/b", "Size": 3},
                    ]
                }
            ]
        )
        service = S3Service(client=client)
        objects = asyncio.run(service.list_descendants("bucket", "logs/"))
        self.assertEqual([obj.key for obj in objects], ["logs/a", "logs/deep/b"])
        self.assertNotIn("Delimiter", client.calls[0][1])

    def test_list_errors_are_wrapped(self) -> None:
        client = _StubClient(error=_client_error("AccessDenied", "Access Denied"))
        service = S3Service(client=client)
        with self.assertRaises(StoreError) as ctx:
            asyncio.run(service.list_entries("bucket", ""))
        self.assertEqual(str(ctx.exception), "failed to list objects: AccessDenied: Access Denied")

    def test_object_operations(self) -> None:
        client = _StubClient()
        service = S3Service(client=client)
        self.assertEqual(asyncio.run(service.get_content("bucket", "a.txt")), b"hello")
        asyncio.run(service.put_content("bucket", "b.txt", b"data"))
        asyncio.run(service.copy_entry("bucket", "a.txt", "c.txt"))
        asyncio.run(service.delete_entry("bucket", "a.txt"))
        self.assertEqual(
            [name for name, _ in client.calls],
            ["get_object", "put_object", "copy_object", "delete_object"],
        )
        self.assertEqual(
            client.calls[2][1],
            {"Bucket": "bucket", "Key": "c.txt", "CopySource": {"Bucket": "bucket", "Key": "a.txt"}},
        )
        self.assertEqual(client.calls[1][1]["Body"], b"data")

    def test_object_errors_are_wrapped(self) -> None:
        client = _StubClient(error=_client_error("NoSuchKey", "", "GetObject"))
        service = S3Service(client=client)
        with self.assertRaises(StoreError) as ctx:
            asyncio.run(service.get_content("bucket", "a.txt"))
        self.assertEqual(str(ctx.exception), "failed to get object: NoSuchKey")
        with self.assertRaises(StoreError) as ctx:
            asyncio.run(service.copy_entry("bucket", "a.txt", "b.txt"))
        self.assertTrue(str(ctx.exception).startswith("failed to copy object"))

    def test_missing_bucket(self) -> None:
        client = _StubClient(error=_client_error("404", "Not Found", "HeadBucket"))
        service = S3Service(client=client)
        with self.assertRaises(StoreError) as ctx:
            service.bucket_accessible("photos")
        self.assertEqual(str(ctx.exception), "bucket 'photos' does not exist")

    def test_forbidden_bucket(self) -> None:
        client = _StubClient(error=_client_error("403", "Forbidden", "HeadBucket"))
        service = S3Service(client=client)
        with self.assertRaises(StoreError) as ctx:
            service.bucket_accessible("photos")
        self.assertEqual(str(ctx.exception), "failed to access bucket 'photos': 403: Forbidden")

    def test_client_uses_config(self) -> None:
        config = S3Config(
            access_key="AK",
            secret_key="SK",
            host_base="localhost:9000",
            use_https=False,
            signature_v2=True,
            region="eu-west-1",
        )
        with patch("s4.s3.boto3.session.Session") as session_cls:
            session = MagicMock()
            session_cls.return_value = session
            service = S3Service(config)
            service._client()
            service._client()

        session_cls.assert_called_once_with(
            aws_access_key_id="AK",
            aws_secret_access_key="SK",
            region_name="eu-west-1",
        )
        session.client.assert_called_once()
        args, kwargs = session.client.call_args
        self.assertEqual(args, ("s3",))
        self.assertEqual(kwargs["endpoint_url"], "http://localhost:9000")
        self.assertEqual(kwargs["config"].signature_version, "s3")
        self.assertEqual(kwargs["config"].s3, {"addressing_style": "path"})


class _SlowRecursiveClient:
    """Answers delimiter listings at once and holds recursive ones until released."""

    def __init__(self) -> None:
        self.release = threading.Event()

    def list_objects_v2(self, **kwargs):
        if "Delimiter" not in kwargs:
            self.release.wait(timeout=10)
            return {"Contents": [{"Key": "logs/a", "Size": 1}]}
        return {"CommonPrefixes": [{"Prefix": "logs/"}]}


class TestStatsPool(unittest.IsolatedAsyncioTestCase):
    async def test_listing_is_not_queued_behind_statistics(self) -> None:
        client = _SlowRecursiveClient()
        service = S3Service(client=client)
        self.addCleanup(service.close)
        pending = [
            asyncio.ensure_future(service.list_descendants("bucket", f"dir{i}/"))
            for i in range(40)
        ]
        try:
            await asyncio.sleep(0.05)
            entries = await asyncio.wait_for(service.list_entries("bucket", ""), timeout=2.0)
            self.assertEqual([entry.key for entry in entries], ["logs"])
            self.assertFalse(any(task.done() for task in pending))
        finally:
            client.release.set()
            await asyncio.gather(*pending)


if __name__ == "__main__":
    unittest.main()
