"""
Tests for the storage backends' read-to-completion contract.
"""

from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from lens_api.config import Settings
from lens_api.errors import NotFound, StorageUnavailable
from lens_api.storage import LocalStorage, ObjectMissing, S3Storage, build_storage


def _client_error(code: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, "GetObject")


@pytest.fixture
def s3_storage():
    s = S3Storage(bucket="bucket", prefix="lens", settings=Settings(AWS_REGION="us-east-1"))
    s.s3 = MagicMock()
    return s


class TestLocalStorage:
    @pytest.mark.asyncio
    async def test_put_then_read(self, tmp_path):
        s = LocalStorage(str(tmp_path))
        obj = s.put_bytes(data=b"hello", key="a/b.jpg", content_type="image/jpeg")
        assert obj.uri.startswith("file://")
        assert await s.read_bytes(obj.uri) == b"hello"

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path):
        s = LocalStorage(str(tmp_path))
        with pytest.raises(ObjectMissing) as exc_info:
            await s.read_bytes(f"file://{tmp_path}/nope.jpg")
        assert isinstance(exc_info.value, NotFound)
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_unreadable_path_is_unavailable(self, tmp_path):
        """A read error other than 'missing' is a server-side storage failure."""
        s = LocalStorage(str(tmp_path))
        (tmp_path / "dir.jpg").mkdir()
        with pytest.raises(StorageUnavailable) as exc_info:
            await s.read_bytes(f"file://{tmp_path}/dir.jpg")
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_foreign_scheme(self, tmp_path):
        s = LocalStorage(str(tmp_path))
        with pytest.raises(ObjectMissing):
            await s.read_bytes("s3://bucket/key")


class TestS3Storage:
    @pytest.mark.asyncio
    async def test_read(self, s3_storage):
        body = MagicMock()
        body.read.return_value = b"jpegbytes"
        s3_storage.s3.get_object.return_value = {"Body": body}

        assert await s3_storage.read_bytes("s3://bucket/lens/x.jpg") == b"jpegbytes"
        s3_storage.s3.get_object.assert_called_once_with(Bucket="bucket", Key="lens/x.jpg")

    @pytest.mark.asyncio
    async def test_no_such_key(self, s3_storage):
        s3_storage.s3.get_object.side_effect = _client_error("NoSuchKey")
        with pytest.raises(ObjectMissing):
            await s3_storage.read_bytes("s3://bucket/lens/x.jpg")

    @pytest.mark.asyncio
    async def test_access_denied_is_unavailable(self, s3_storage):
        s3_storage.s3.get_object.side_effect = _client_error("AccessDenied")
        with pytest.raises(StorageUnavailable):
            await s3_storage.read_bytes("s3://bucket/lens/x.jpg")

    @pytest.mark.asyncio
    async def test_unreachable_is_unavailable(self, s3_storage):
        s3_storage.s3.get_object.side_effect = EndpointConnectionError(endpoint_url="https://s3")
        with pytest.raises(StorageUnavailable):
            await s3_storage.read_bytes("s3://bucket/lens/x.jpg")

    def test_put_uses_prefix(self, s3_storage):
        obj = s3_storage.put_bytes(data=b"x", key="y.jpg", content_type="image/jpeg")
        assert obj.uri == "s3://bucket/lens/y.jpg"
        kwargs = s3_storage.s3.put_object.call_args.kwargs
        assert kwargs["Key"] == "lens/y.jpg"
        assert kwargs["ContentType"] == "image/jpeg"


class TestBuildStorage:
    def test_local_default(self, tmp_path):
        s = build_storage(Settings(IMAGE_STORE_DIR=str(tmp_path / "imgs")))
        assert isinstance(s, LocalStorage)

    def test_s3_requires_bucket(self):
        with pytest.raises(RuntimeError):
            build_storage(Settings(STORAGE_BACKEND="s3", S3_BUCKET=None))

    def test_s3(self):
        s = build_storage(Settings(STORAGE_BACKEND="s3", S3_BUCKET="b", AWS_REGION="us-east-1"))
        assert isinstance(s, S3Storage)
        assert s.bucket == "b"
