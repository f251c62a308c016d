"""
Runtime configuration for the API server, studio tools and visitor client.

Values come from config.json in the config directory, then environment
variables (a .env file is honoured), in that order of precedence.
"""

import dataclasses
import json
import logging
import os
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from shared.constants import (
    CLIENT_STATE_FILENAME,
    CONFIG_FILENAME,
    DATABASE_FILENAME,
    DEFAULT_API_URL,
    DEFAULT_BUCKET,
    DEFAULT_CONFIG_DIR,
    DEFAULT_DATA_DIR,
    DEFAULT_NETWORK_TIMEOUT,
)
from shared.crypto import CredentialManager
from shared.models import StorageProvider

logger = logging.getLogger(__name__)

ENCRYPTED_FIELDS = ("access_key_id", "secret_access_key")

# env var -> (attribute, parser)
ENV_OVERRIDES = {
    "ADMIN_PASSWORD": ("admin_password", str),
    "FLASK_SECRET_KEY": ("secret_key", str),
    "BEATFOLIO_DATABASE": ("database_path", str),
    "BEATFOLIO_STORAGE": ("storage_provider", StorageProvider),
    "BEATFOLIO_STORAGE_ENDPOINT": ("storage_endpoint", str),
    "BEATFOLIO_BUCKET": ("bucket", str),
    "BEATFOLIO_ACCESS_KEY_ID": ("access_key_id", str),
    "BEATFOLIO_SECRET_ACCESS_KEY": ("secret_access_key", str),
    "BEATFOLIO_REGION": ("region", str),
    "BEATFOLIO_PUBLIC_URL": ("public_url", str),
    "BEATFOLIO_API_URL": ("api_url", str),
    "BEATFOLIO_SYNC_TIMEOUT": ("sync_timeout", float),
    "BEATFOLIO_ANALYZE_UPLOADS": ("analyze_uploads", lambda v: v.strip().lower() in {"1", "true", "yes", "on"}),
}


def default_config_path() -> Path:
    return Path(DEFAULT_CONFIG_DIR).expanduser() / CONFIG_FILENAME


def default_client_state_path() -> Path:
    return Path(DEFAULT_CONFIG_DIR).expanduser() / CLIENT_STATE_FILENAME


@dataclass
class AppConfig:
    """
    Configuration shared by every Beatfolio component.

    Storage credentials are encrypted when written to disk and decrypted
    for in-memory use.
    """
    admin_password: Optional[str] = None
    secret_key: Optional[str] = None
    database_path: str = str(Path(DEFAULT_DATA_DIR).expanduser() / DATABASE_FILENAME)
    storage_provider: StorageProvider = StorageProvider.LOCAL
    storage_endpoint: str = str(Path(DEFAULT_DATA_DIR).expanduser() / "media")
    bucket: str = DEFAULT_BUCKET
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    region: Optional[str] = None
    public_url: Optional[str] = None
    api_url: str = DEFAULT_API_URL
    sync_timeout: float = DEFAULT_NETWORK_TIMEOUT
    analyze_uploads: bool = True

    def to_dict(self, encrypt: bool = True) -> Dict[str, Any]:
        """Convert config to dictionary, optionally encrypting credentials."""
        data = asdict(self)
        data['storage_provider'] = self.storage_provider.value
        if encrypt:
            data = CredentialManager.encrypt_fields(data, ENCRYPTED_FIELDS)
            data['is_encrypted'] = True
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AppConfig':
        """Create AppConfig from dictionary, decrypting if necessary."""
        field_names = {f.name for f in dataclasses.fields(cls)}

        if data.get('is_encrypted', False):
            decrypted = CredentialManager.decrypt_fields(data, ENCRYPTED_FIELDS)
            if decrypted is None:
                # Encrypted on another machine; keep the tokens, auth will fail loudly later
                logger.warning("Stored credentials could not be decrypted on this machine")
            else:
                data = decrypted

        filtered = {k: v for k, v in data.items() if k in field_names}
        if 'storage_provider' in filtered:
            filtered['storage_provider'] = StorageProvider(filtered['storage_provider'])
        return cls(**filtered)

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, json_str: str) -> 'AppConfig':
        return cls.from_dict(json.loads(json_str))

    def apply_env(self, environ: Optional[Dict[str, str]] = None) -> 'AppConfig':
        """Override fields from environment variables. Returns self."""
        environ = os.environ if environ is None else environ
        for var, (attr, parse) in ENV_OVERRIDES.items():
            raw = environ.get(var)
            if raw is None or raw == "":
                continue
            try:
                setattr(self, attr, parse(raw))
            except ValueError:
                logger.warning(f"Ignoring invalid value for {var}: {raw!r}")
        return self

    @classmethod
    def load(cls, path: Optional[Path] = None, use_env: bool = True) -> 'AppConfig':
        """
        Load configuration from disk and the environment.

        A missing config file yields defaults; a corrupt one is reported and
        also yields defaults so the server can still start from env alone.
        """
        path = Path(path) if path else default_config_path()
        config = cls()
        if path.exists():
            try:
                config = cls.from_json(path.read_text(encoding="utf-8"))
            except (json.JSONDecodeError, ValueError, TypeError) as e:
                logger.error(f"Invalid config file {path}: {e}")
        if use_env:
            load_dotenv()
            config.apply_env()
        return config

    def save(self, path: Optional[Path] = None) -> Path:
        """Write the config (credentials encrypted) and return its path."""
        path = Path(path) if path else default_config_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_json(), encoding="utf-8")
        return path

    def storage_credentials(self) -> Dict[str, Any]:
        """Credentials dictionary understood by the storage providers."""
        return {
            'endpoint': self.storage_endpoint,
            'bucket': self.bucket,
            'access_key_id': self.access_key_id,
            'secret_access_key': self.secret_access_key,
            'region': self.region,
            'public_url': self.public_url,
        }
