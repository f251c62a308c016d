"""
Abstract base class for object storage providers.

Beat audio, cover art and profile images live in object storage. This module
defines the interface every backend implements, so the API and the studio
tools work the same against a local directory or an S3-compatible bucket
(Cloudflare R2, Backblaze B2, AWS S3, MinIO...).
"""

from abc import ABC, abstractmethod
from typing import Optional, Dict, Any, BinaryIO
import logging
import mimetypes

logger = logging.getLogger(__name__)


def guess_content_type(remote_key: str) -> str:
    content_type, _ = mimetypes.guess_type(remote_key)
    return content_type or "application/octet-stream"


class ObjectStorageProvider(ABC):
    """
    Abstract base class for media storage backends.

    Keys are slash-separated paths inside the configured bucket,
    e.g. "audio/1718000000000-my-beat.mp3".
    """

    bucket_name: Optional[str] = None

    @abstractmethod
    def authenticate(self, credentials: Dict[str, Any]) -> bool:
        """
        Connect to the backend.

        Args:
            credentials: endpoint, bucket, access_key_id, secret_access_key,
                         region, public_url (provider-specific subset)

        Returns:
            True if the backend is usable, False otherwise
        """
        pass

    @abstractmethod
    def upload_fileobj(self, fileobj: BinaryIO, remote_key: str,
                       content_type: Optional[str] = None) -> bool:
        """
        Store the content of a binary file object under remote_key.

        Returns:
            True if upload successful, False otherwise
        """
        pass

    @abstractmethod
    def delete_file(self, remote_key: str) -> bool:
        """
        Delete an object. Deleting a missing object is not an error.

        Returns:
            True if the object is gone, False if deletion failed
        """
        pass

    @abstractmethod
    def file_exists(self, remote_key: str) -> bool:
        pass

    @abstractmethod
    def get_file_url(self, remote_key: str) -> str:
        """
        URL a browser or player can fetch the object from.

        Args:
            remote_key: Key of the object

        Returns:
            Public or presigned URL string, empty on failure
        """
        pass

    def upload_file(self, local_path: str, remote_key: str,
                    content_type: Optional[str] = None) -> bool:
        """Upload a file from disk."""
        try:
            with open(local_path, 'rb') as f:
                return self.upload_fileobj(f, remote_key, content_type or guess_content_type(remote_key))
        except OSError as e:
            logger.error(f"Cannot read {local_path} for upload: {e}")
            return False
