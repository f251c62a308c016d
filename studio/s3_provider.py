"""
S3-compatible storage provider implementation.

Works with any S3 API endpoint: Cloudflare R2
(https://<account_id>.r2.cloudflarestorage.com), Backblaze B2
(https://s3.<region>.backblazeb2.com), AWS S3 or MinIO.
"""

import logging
from typing import Optional, Dict, Any, BinaryIO
from urllib.parse import quote

import boto3
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError

from shared.constants import DEFAULT_PRESIGNED_URL_TTL
from .storage_provider import ObjectStorageProvider, guess_content_type

logger = logging.getLogger(__name__)


class S3StorageProvider(ObjectStorageProvider):
    """
    Object storage on an S3-compatible bucket using the boto3 S3 client.

    When a public base URL is configured (e.g. an R2 public bucket domain)
    media URLs are built from it; otherwise presigned GET URLs are issued.
    """

    def __init__(self):
        self.s3_client = None
        self.bucket_name = None
        self.endpoint_url = None
        self.public_url = None

    def authenticate(self, credentials: Dict[str, Any]) -> bool:
        """
        Authenticate against the endpoint and verify bucket access.

        Args:
            credentials: Must contain access_key_id, secret_access_key and
                         bucket; endpoint, region and public_url are optional
        """
        try:
            self.endpoint_url = credentials.get('endpoint') or None
            self.bucket_name = credentials['bucket']
            self.public_url = (credentials.get('public_url') or "").rstrip("/") or None

            self.s3_client = boto3.client(
                's3',
                endpoint_url=self.endpoint_url,
                aws_access_key_id=credentials['access_key_id'],
                aws_secret_access_key=credentials['secret_access_key'],
                region_name=credentials.get('region') or 'auto'
            )

            self.s3_client.head_bucket(Bucket=self.bucket_name)
            return True

        except (ClientError, NoCredentialsError, BotoCoreError, KeyError) as e:
            logger.error(f"S3 authentication failed: {e}")
            return False

    def upload_fileobj(self, fileobj: BinaryIO, remote_key: str,
                       content_type: Optional[str] = None) -> bool:
        try:
            self.s3_client.upload_fileobj(
                fileobj, self.bucket_name, remote_key,
                ExtraArgs={'ContentType': content_type or guess_content_type(remote_key)}
            )
            return True
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Upload failed for {remote_key}: {e}")
            return False

    def delete_file(self, remote_key: str) -> bool:
        try:
            self.s3_client.delete_object(Bucket=self.bucket_name, Key=remote_key)
            return True
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Delete failed for {remote_key}: {e}")
            return False

    def file_exists(self, remote_key: str) -> bool:
        try:
            self.s3_client.head_object(Bucket=self.bucket_name, Key=remote_key)
            return True
        except ClientError:
            return False

    def get_file_url(self, remote_key: str) -> str:
        if self.public_url:
            return f"{self.public_url}/{quote(remote_key)}"
        try:
            return self.s3_client.generate_presigned_url(
                'get_object',
                Params={'Bucket': self.bucket_name, 'Key': remote_key},
                ExpiresIn=DEFAULT_PRESIGNED_URL_TTL
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"URL generation failed for {remote_key}: {e}")
            return ""
