"""Storage backend protocol and common types."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


class StorageError(Exception):
    """A backend could not complete an operation on ``key``."""

    def __init__(self, key: str, message: str) -> None:
        super().__init__(f"{key}: {message}")
        self.key = key


@runtime_checkable
class StorageBackend(Protocol):
    """Where asset bytes live. Assets only hold the key (``storage_ref``).

    Bytes are written by the upload pipeline; the engine only resolves
    download URLs and removes bytes when an asset is deleted.
    """

    async def delete(self, key: str) -> None:
        """Remove a key from storage. Missing keys are not an error."""
        ...

    async def get_url(self, key: str) -> str:
        """Return a URL the key can be downloaded from."""
        ...
