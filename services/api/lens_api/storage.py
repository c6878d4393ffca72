# services/api/lens_api/storage.py

import asyncio
import os
from dataclasses import dataclass
from urllib.parse import urlparse

import boto3
from botocore.client import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from .config import Settings
from .errors import NotFound, StorageUnavailable

class ObjectMissing(NotFound):
    public_message = "Image file not found in storage"

@dataclass
class StoredObject:
    uri: str  # file://... or s3://bucket/key

class Storage:
    """
    Byte source for stored originals. read_bytes() is one read-to-completion
    call: it returns the whole object or raises ObjectMissing /
    StorageUnavailable, never a partial buffer.
    """

    async def read_bytes(self, uri: str) -> bytes:
        return await asyncio.to_thread(self._read_sync, uri)

    def _read_sync(self, uri: str) -> bytes:
        raise NotImplementedError

    def put_bytes(self, *, data: bytes, key: str, content_type: str) -> StoredObject:
        raise NotImplementedError


class LocalStorage(Storage):
    def __init__(self, base_dir: str):
        self.base_dir = base_dir
        os.makedirs(self.base_dir, exist_ok=True)

    def put_bytes(self, *, data: bytes, key: str, content_type: str) -> StoredObject:
        full_path = os.path.join(self.base_dir, key)
        os.makedirs(os.path.dirname(full_path), exist_ok=True)
        with open(full_path, "wb") as f:
            f.write(data)
        return StoredObject(uri=f"file://{full_path}")

    def _read_sync(self, uri: str) -> bytes:
        p = urlparse(uri)
        if p.scheme != "file":
            raise ObjectMissing(f"unsupported_uri_scheme:{p.scheme}")
        try:
            with open(p.path, "rb") as f:
                return f.read()
        except FileNotFoundError:
            raise ObjectMissing("file_missing")
        except OSError as e:
            raise StorageUnavailable(f"read_failed: {e}")


class S3Storage(Storage):
    def __init__(self, bucket: str, prefix: str, settings: Settings):
        self.bucket = bucket
        self.prefix = prefix.strip("/")

        session = boto3.session.Session(
            aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
            aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
            region_name=settings.AWS_REGION,
        )
        self.s3 = session.client("s3", config=BotoConfig(signature_version="s3v4"))

    def put_bytes(self, *, data: bytes, key: str, content_type: str) -> StoredObject:
        s3_key = f"{self.prefix}/{key}".lstrip("/")
        self.s3.put_object(
            Bucket=self.bucket,
            Key=s3_key,
            Body=data,
            ContentType=content_type,
            ServerSideEncryption="AES256",
        )
        return StoredObject(uri=f"s3://{self.bucket}/{s3_key}")

    def _read_sync(self, uri: str) -> bytes:
        p = urlparse(uri)
        if p.scheme != "s3":
            raise ObjectMissing(f"unsupported_uri_scheme:{p.scheme}")
        bucket = p.netloc
        key = p.path.lstrip("/")
        try:
            obj = self.s3.get_object(Bucket=bucket, Key=key)
            return obj["Body"].read()
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code in ("NoSuchKey", "404", "NotFound"):
                raise ObjectMissing("object_missing")
            raise StorageUnavailable(f"s3_error:{code}")
        except BotoCoreError as e:
            raise StorageUnavailable(f"s3_unreachable: {e}")


def build_storage(settings: Settings) -> Storage:
    if settings.STORAGE_BACKEND == "s3":
        if not settings.S3_BUCKET:
            raise RuntimeError("STORAGE_BACKEND=s3 requires S3_BUCKET")
        return S3Storage(bucket=settings.S3_BUCKET, prefix=settings.S3_PREFIX, settings=settings)

    return LocalStorage(base_dir=settings.IMAGE_STORE_DIR)
