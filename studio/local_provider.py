"""
Local filesystem storage provider.
Implements the ObjectStorageProvider interface on a directory tree.
"""

import os
import shutil
import logging
from typing import Optional, Dict, Any, BinaryIO
from pathlib import Path
from urllib.parse import quote

from .storage_provider import ObjectStorageProvider

logger = logging.getLogger(__name__)


class LocalStorageProvider(ObjectStorageProvider):
    """
    Storage provider that uses the local filesystem.
    Useful for self-hosting on a single machine; the API serves the files
    under /media/<key>.
    """

    def __init__(self, media_route: str = "/media"):
        self.base_path: Optional[Path] = None
        self.bucket_name: Optional[str] = None
        self.media_route = media_route.rstrip("/")

    def authenticate(self, credentials: Dict[str, Any]) -> bool:
        """
        'Authenticate' by setting the base path.
        In local mode the 'endpoint' (or 'base_path') is the root directory.
        """
        path = credentials.get('base_path') or credentials.get('endpoint')
        if not path:
            return False

        self.base_path = Path(path).expanduser().absolute()
        self.bucket_name = credentials.get('bucket') or self.bucket_name or "default"
        try:
            self.bucket_root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Cannot create local media directory {self.bucket_root}: {e}")
            return False
        return True

    @property
    def bucket_root(self) -> Path:
        if self.base_path is None:
            raise ValueError("Local storage not authenticated")
        if self.bucket_name in [".", "", "default", None]:
            return self.base_path
        return self.base_path / self.bucket_name

    def local_path(self, remote_key: str) -> Path:
        """
        Absolute path for a key.

        Raises:
            ValueError: If the key escapes the bucket directory
        """
        root = self.bucket_root.resolve()
        target = (root / remote_key).resolve()
        if target != root and root not in target.parents:
            raise ValueError(f"Key escapes storage root: {remote_key}")
        return target

    def upload_fileobj(self, fileobj: BinaryIO, remote_key: str,
                       content_type: Optional[str] = None) -> bool:
        try:
            dest_path = self.local_path(remote_key)
            dest_path.parent.mkdir(parents=True, exist_ok=True)
            with open(dest_path, 'wb') as out:
                shutil.copyfileobj(fileobj, out)
            return True
        except (OSError, ValueError) as e:
            logger.error(f"Local upload error for {remote_key}: {e}")
            return False

    def delete_file(self, remote_key: str) -> bool:
        try:
            path = self.local_path(remote_key)
            if path.exists():
                os.remove(path)
            return True
        except (OSError, ValueError) as e:
            logger.error(f"Local delete error for {remote_key}: {e}")
            return False

    def file_exists(self, remote_key: str) -> bool:
        try:
            return self.local_path(remote_key).is_file()
        except ValueError:
            return False

    def get_file_url(self, remote_key: str) -> str:
        """URL path served by the API's media route."""
        return f"{self.media_route}/{quote(remote_key)}"
