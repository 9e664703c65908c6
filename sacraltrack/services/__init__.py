"""Service layer helpers for external integrations."""

from .storage import (
    AppwriteStorage,
    ObjectStorage,
    S3Storage,
    StorageError,
    build_storage,
    get_storage,
)

__all__ = [
    "AppwriteStorage",
    "ObjectStorage",
    "S3Storage",
    "StorageError",
    "build_storage",
    "get_storage",
]
