"""
Factory for creating storage provider instances.

Simplifies provider selection and initialization.
"""

from shared.config import AppConfig
from shared.models import StorageProvider
from .storage_provider import ObjectStorageProvider
from .local_provider import LocalStorageProvider
from .s3_provider import S3StorageProvider


class StorageProviderFactory:
    """Factory for creating storage provider instances."""

    @staticmethod
    def create(provider_type: StorageProvider) -> ObjectStorageProvider:
        """
        Create an unauthenticated storage provider instance.

        Raises:
            ValueError: If provider type is not supported
        """
        if provider_type == StorageProvider.LOCAL:
            return LocalStorageProvider()

        elif provider_type == StorageProvider.S3:
            return S3StorageProvider()

        else:
            raise ValueError(f"Unknown provider type: {provider_type}")

    @staticmethod
    def from_config(config: AppConfig) -> ObjectStorageProvider:
        """
        Create and authenticate the provider described by a config.

        Raises:
            ValueError: If authentication fails
        """
        provider = StorageProviderFactory.create(config.storage_provider)
        if not provider.authenticate(config.storage_credentials()):
            raise ValueError(
                f"Failed to authenticate {StorageProviderFactory.get_provider_name(config.storage_provider)} storage"
            )
        return provider

    @staticmethod
    def get_provider_name(provider_type: StorageProvider) -> str:
        """Get human-readable provider name."""
        names = {
            StorageProvider.LOCAL: "Local Folder",
            StorageProvider.S3: "S3-Compatible (R2 / B2 / AWS / MinIO)",
        }
        return names.get(provider_type, "Unknown")
