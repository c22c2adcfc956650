"""Tests for the local storage backend."""

import pytest

from assetflow.config import StorageConfig
from assetflow.lib.storage import LocalStorageBackend, StorageBackend, StorageError


@pytest.fixture
def backend(tmp_path):
    return LocalStorageBackend(tmp_path, store_name="assets")


class TestLocalStorageBackend:
    """URLs, deletion and key handling on disk."""

    def test_satisfies_protocol(self, backend):
        assert isinstance(backend, StorageBackend)

    async def test_get_url(self, backend):
        assert await backend.get_url("campaign/hero.png") == "/storage/assets/campaign/hero.png"

    async def test_delete_removes_file(self, backend, tmp_path):
        path = tmp_path / "campaign" / "hero.png"
        path.parent.mkdir()
        path.write_bytes(b"png-bytes")

        await backend.delete("campaign/hero.png")

        assert not path.exists()
        assert path.parent.exists()

    async def test_delete_missing_is_noop(self, backend):
        await backend.delete("never/written.png")

    @pytest.mark.parametrize("key", ["../escape.png", "/etc/passwd", ""])
    async def test_rejects_unsafe_keys(self, backend, key):
        with pytest.raises(StorageError):
            await backend.get_url(key)
        with pytest.raises(StorageError):
            await backend.delete(key)

    async def test_from_config(self, tmp_path):
        backend = LocalStorageBackend.from_config(StorageConfig(local_path=str(tmp_path), store_name="x"))
        (tmp_path / "a.png").write_bytes(b"a")

        await backend.delete("a.png")

        assert not (tmp_path / "a.png").exists()
        assert await backend.get_url("a.png") == "/storage/x/a.png"
