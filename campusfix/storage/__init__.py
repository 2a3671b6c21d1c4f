"""
Campus Fix - Storage Module
"""

from campusfix.storage.blob_storage import (
    LocalBlobStorage,
    SupabaseBlobStorage,
    create_storage,
)

__all__ = [
    "LocalBlobStorage",
    "SupabaseBlobStorage",
    "create_storage",
]
