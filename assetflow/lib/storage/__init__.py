"""Asset storage backends."""

from assetflow.lib.storage.base import StorageBackend, StorageError
from assetflow.lib.storage.local import LocalStorageBackend

__all__ = ["LocalStorageBackend", "StorageBackend", "StorageError"]
