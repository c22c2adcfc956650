"""Local filesystem storage backend."""

from __future__ import annotations

import asyncio
from pathlib import Path, PurePosixPath

from assetflow.config import StorageConfig
from assetflow.lib.storage.base import StorageError


class LocalStorageBackend:
    """Serve and remove asset bytes kept on the local filesystem."""

    def __init__(self, base_path: Path, store_name: str = "default") -> None:
        self._base_path = base_path
        self._store_name = store_name

    @classmethod
    def from_config(cls, config: StorageConfig) -> LocalStorageBackend:
        return cls(Path(config.local_path), config.store_name)

    async def delete(self, key: str) -> None:
        path = self._key_to_path(key)
        try:
            await asyncio.to_thread(self._unlink, path)
        except OSError as exc:
            raise StorageError(key, str(exc)) from exc

    async def get_url(self, key: str) -> str:
        self._key_to_path(key)
        return self._build_url(key)

    # -- internal helpers --

    def _key_to_path(self, key: str) -> Path:
        """Map a key to a path below the base directory."""
        parts = PurePosixPath(key).parts
        if not parts or key.startswith("/") or ".." in parts:
            raise StorageError(key, "invalid storage key")
        return self._base_path.joinpath(*parts)

    def _build_url(self, key: str) -> str:
        return f"/storage/{self._store_name}/{key}"

    @staticmethod
    def _unlink(path: Path) -> None:
        path.unlink(missing_ok=True)
