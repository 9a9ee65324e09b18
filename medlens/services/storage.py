"""
S3-compatible object storage (Cloudflare R2, MinIO, AWS) through the minio client.
Constructed once at startup and injected; see api/deps.get_storage.
"""
import io
import logging
import time
import uuid
from datetime import timedelta
from pathlib import PurePosixPath

from minio import Minio
from minio.error import S3Error
from urllib3.exceptions import HTTPError as TransportError

from medlens.core.config import settings
from medlens.core.errors import StorageError, StorageReadError

logger = logging.getLogger(__name__)

DOCUMENTS = "documents"
REPORTS = "reports"


def build_object_key(patient_id: int, category: str, filename: str) -> str:
    """patients/{patient_id}/{category}/{uuid}-{epoch ms}{ext}; the original name is kept on the record only."""
    ext = PurePosixPath(filename or "").suffix.lower()
    return f"patients/{patient_id}/{category}/{uuid.uuid4()}-{int(time.time() * 1000)}{ext}"


class ObjectStorage:
    def __init__(self, client: Minio, bucket: str):
        self.client = client
        self.bucket = bucket

    @classmethod
    def from_settings(cls) -> "ObjectStorage":
        client = Minio(
            endpoint=settings.storage_endpoint,
            access_key=settings.storage_access_key,
            secret_key=settings.storage_secret_key,
            secure=settings.storage_use_ssl,
            region=settings.storage_region,
        )
        return cls(client, settings.storage_bucket)

    def ensure_bucket(self) -> None:
        try:
            if not self.client.bucket_exists(bucket_name=self.bucket):
                self.client.make_bucket(bucket_name=self.bucket)
                logger.info("Created storage bucket %s", self.bucket)
        except (S3Error, TransportError, OSError) as e:
            raise StorageError(f"Storage bucket unavailable: {e}") from e

    def presigned_put_url(self, key: str, expires_seconds: int | None = None) -> str:
        seconds = expires_seconds or settings.upload_url_expiry_seconds
        try:
            return self.client.presigned_put_object(
                bucket_name=self.bucket,
                object_name=key,
                expires=timedelta(seconds=seconds),
            )
        except (S3Error, TransportError, OSError) as e:
            raise StorageError(f"Failed to generate upload URL: {e}") from e

    def presigned_get_url(self, key: str, expires_seconds: int | None = None) -> str:
        seconds = expires_seconds or settings.download_url_expiry_seconds
        try:
            return self.client.presigned_get_object(
                bucket_name=self.bucket,
                object_name=key,
                expires=timedelta(seconds=seconds),
            )
        except (S3Error, TransportError, OSError) as e:
            raise StorageError(f"Failed to generate download URL: {e}") from e

    def get_object_bytes(self, key: str) -> bytes:
        response = None
        try:
            response = self.client.get_object(bucket_name=self.bucket, object_name=key)
            data = response.read()
        except S3Error as e:
            raise StorageReadError(f"Document could not be read from storage: {e.code}") from e
        except (TransportError, OSError) as e:
            raise StorageReadError(f"Document could not be read from storage: {e}") from e
        finally:
            if response is not None:
                response.close()
                response.release_conn()
        if not data:
            raise StorageReadError("Document is empty")
        return data

    def put_object(self, key: str, data: bytes, content_type: str) -> None:
        try:
            self.client.put_object(
                bucket_name=self.bucket,
                object_name=key,
                data=io.BytesIO(data),
                length=len(data),
                content_type=content_type,
            )
        except (S3Error, TransportError, OSError) as e:
            raise StorageError(f"Failed to store object: {e}") from e

    def remove_object(self, key: str) -> None:
        try:
            self.client.remove_object(bucket_name=self.bucket, object_name=key)
        except (S3Error, TransportError, OSError) as e:
            raise StorageError(f"Failed to delete object: {e}") from e
