"""
Cryptography utilities for secure credential storage.

Storage credentials written to config.json are encrypted with a
machine-derived Fernet key so a copied config file is useless elsewhere.
"""

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
import base64
import binascii
import getpass
import logging
import os
import socket
from typing import Dict, Any, Iterable, Optional

logger = logging.getLogger(__name__)


class CredentialManager:
    """Manager for encrypting/decrypting stored credentials."""

    SALT = b'beatfolio-salt-v1'

    @staticmethod
    def generate_key_from_password(password: str, salt: bytes) -> bytes:
        """
        Derive encryption key from password using PBKDF2.

        Args:
            password: Secret material
            salt: Salt bytes for key derivation

        Returns:
            Derived Fernet key
        """
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=salt,
            iterations=100000,
        )
        return base64.urlsafe_b64encode(kdf.derive(password.encode()))

    @staticmethod
    def generate_machine_key() -> bytes:
        """
        Generate a machine-specific encryption key.

        Uses the machine id and current user so no passphrase prompt is
        needed. Less secure than a password, but keeps credentials out of
        plain text.
        """
        try:
            with open('/etc/machine-id', 'r') as f:
                machine_id = f.read().strip()
        except OSError:
            machine_id = os.getenv('HOSTNAME') or socket.gethostname() or 'default-machine'

        try:
            username = getpass.getuser()
        except (KeyError, OSError):
            username = 'default-user'

        return CredentialManager.generate_key_from_password(
            f"{machine_id}-{username}", CredentialManager.SALT
        )

    @staticmethod
    def encrypt(data: str, key: Optional[bytes] = None) -> str:
        """Encrypt a string; returns a urlsafe base64 token."""
        if key is None:
            key = CredentialManager.generate_machine_key()
        encrypted = Fernet(key).encrypt(data.encode())
        return base64.urlsafe_b64encode(encrypted).decode()

    @staticmethod
    def decrypt(encrypted_data: str, key: Optional[bytes] = None) -> Optional[str]:
        """
        Decrypt a value produced by encrypt().

        Returns:
            Decrypted string, or None if decryption fails (e.g. another machine)
        """
        try:
            if key is None:
                key = CredentialManager.generate_machine_key()
            encrypted_bytes = base64.urlsafe_b64decode(encrypted_data.encode())
            return Fernet(key).decrypt(encrypted_bytes).decode()
        except (InvalidToken, binascii.Error, ValueError) as e:
            logger.warning(f"Credential decryption failed: {e!r}")
            return None

    @classmethod
    def encrypt_fields(cls, data: Dict[str, Any], names: Iterable[str],
                       key: Optional[bytes] = None) -> Dict[str, Any]:
        """Return a copy of data with the named non-empty string fields encrypted."""
        result = dict(data)
        for name in names:
            if result.get(name):
                result[name] = cls.encrypt(result[name], key)
        return result

    @classmethod
    def decrypt_fields(cls, data: Dict[str, Any], names: Iterable[str],
                       key: Optional[bytes] = None) -> Optional[Dict[str, Any]]:
        """
        Return a copy of data with the named fields decrypted.

        Returns None if any field cannot be decrypted.
        """
        result = dict(data)
        for name in names:
            if result.get(name):
                plain = cls.decrypt(result[name], key)
                if plain is None:
                    return None
                result[name] = plain
        return result
