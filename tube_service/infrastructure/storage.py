"""
Remote object storage on S3/MinIO
"""
import logging
import mimetypes
import os
from typing import Optional
from uuid import uuid4

import boto3
from boto3.exceptions import S3UploadFailedError
from botocore.exceptions import BotoCoreError, ClientError

from ..config import Settings
from ..domain.errors import DependencyError
from ..domain.models import AssetKind, RemoteAsset

logger = logging.getLogger(__name__)


def create_s3_client(settings: Settings):
    """Build a boto3 S3 client for AWS or a MinIO endpoint"""
    if settings.STORAGE_TYPE == "minio":
        return boto3.client(
            "s3",
            endpoint_url=settings.S3_ENDPOINT_URL,
            aws_access_key_id=settings.AWS_ACCESS_KEY_ID or "minioadmin",
            aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or "minioadmin",
            region_name=settings.AWS_REGION
        )
    return boto3.client(
        "s3",
        aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
        aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
        region_name=settings.AWS_REGION
    )


class ObjectStore:
    """Store and delete binary objects in one bucket"""

    def __init__(self, client, bucket_name: str, base_url: str):
        self.client = client
        self.bucket_name = bucket_name
        self.base_url = base_url.rstrip("/")

    @classmethod
    def from_settings(cls, settings: Settings) -> "ObjectStore":
        return cls(create_s3_client(settings), settings.S3_BUCKET_NAME, settings.MEDIA_BASE_URL)

    def ensure_bucket(self, region: str = "us-east-1") -> None:
        """Create bucket if it doesn't exist"""
        try:
            self.client.head_bucket(Bucket=self.bucket_name)
            logger.info(f"Bucket {self.bucket_name} exists")
        except ClientError:
            try:
                if region == "us-east-1":
                    self.client.create_bucket(Bucket=self.bucket_name)
                else:
                    self.client.create_bucket(
                        Bucket=self.bucket_name,
                        CreateBucketConfiguration={'LocationConstraint': region}
                    )
                logger.info(f"Created bucket {self.bucket_name}")
            except ClientError as e:
                logger.error(f"Failed to create bucket: {e}")

    def get_url(self, remote_id: str) -> str:
        return f"{self.base_url}/{remote_id}"

    def store(self, local_path: str, kind: AssetKind) -> RemoteAsset:
        """
        Upload a local file

        Args:
            local_path: Path of the file on disk
            kind: Resource kind, used as the key prefix

        Returns:
            RemoteAsset with the object's URL and key

        Raises:
            DependencyError: If the upload fails
        """
        extension = os.path.splitext(local_path)[1].lower()
        key = f"{kind.value}/{uuid4().hex}{extension}"
        content_type = mimetypes.guess_type(local_path)[0] or "application/octet-stream"

        try:
            self.client.upload_file(
                local_path,
                self.bucket_name,
                key,
                ExtraArgs={'ContentType': content_type}
            )
        except (ClientError, BotoCoreError, S3UploadFailedError) as e:
            raise DependencyError(f"Failed to upload {os.path.basename(local_path)}") from e

        logger.info(f"Uploaded {key} to {self.bucket_name}")
        return RemoteAsset(url=self.get_url(key), remote_id=key)

    def delete(self, remote_id: str, kind: Optional[AssetKind] = None) -> None:
        """
        Delete an object

        Raises:
            DependencyError: If the deletion fails
        """
        try:
            self.client.delete_object(Bucket=self.bucket_name, Key=remote_id)
        except (ClientError, BotoCoreError) as e:
            raise DependencyError(f"Failed to delete {remote_id}") from e

        kind_label = kind.value if kind else "object"
        logger.info(f"Deleted {kind_label} {remote_id} from {self.bucket_name}")
