"""
Tests for the disk-backed layer.

Each test gets its own diskcache directory under ``tmp_path``.
"""

import sqlite3
import time
from unittest.mock import MagicMock

import diskcache
import pytest

from tiercache.exceptions import BackendUnavailableError
from tiercache.layers import DiskCacheLayer


@pytest.fixture
def disk_layer(tmp_path) -> DiskCacheLayer:
    layer = DiskCacheLayer("L2-Disk", directory=str(tmp_path / "disk"), ttl_seconds=3600)
    yield layer
    layer.close()


class TestDiskCacheLayer:
    def test_put_and_get(self, disk_layer: DiskCacheLayer) -> None:
        disk_layer.put("user:1", ["John", "Doe"])
        assert disk_layer.get("user:1") == ["John", "Doe"]

    def test_get_miss(self, disk_layer: DiskCacheLayer) -> None:
        assert disk_layer.get("nonexistent") is None

    def test_none_rejected(self, disk_layer: DiskCacheLayer) -> None:
        with pytest.raises(ValueError, match="absent"):
            disk_layer.put("k", None)

    def test_keys_keep_their_type(self, disk_layer: DiskCacheLayer) -> None:
        disk_layer.put(1, "int")
        disk_layer.put("1", "str")
        disk_layer.put(("a", "b"), "tuple")
        assert disk_layer.get(1) == "int"
        assert disk_layer.get("1") == "str"
        assert disk_layer.get(("a", "b")) == "tuple"
        assert disk_layer.size() == 3

    def test_values_survive_reopen(self, tmp_path) -> None:
        directory = str(tmp_path / "persist")
        first = DiskCacheLayer("d", directory=directory)
        first.put("k", {"a": 1})
        first.close()

        second = DiskCacheLayer("d", directory=directory)
        try:
            assert second.get("k") == {"a": 1}
        finally:
            second.close()

    def test_entry_expires(self, tmp_path) -> None:
        layer = DiskCacheLayer("d", directory=str(tmp_path / "ttl"), ttl_seconds=0.05)
        try:
            layer.put("k", "v")
            assert layer.get("k") == "v"
            time.sleep(0.15)
            assert layer.get("k") is None
            assert layer.cleanup_expired() == 1
            assert layer.size() == 0
        finally:
            layer.close()

    def test_zero_ttl_never_expires(self, tmp_path) -> None:
        layer = DiskCacheLayer("d", directory=str(tmp_path / "forever"), ttl_seconds=0)
        try:
            layer.put("k", "v")
            assert layer.cleanup_expired() == 0
            assert layer.get("k") == "v"
        finally:
            layer.close()

    def test_evict(self, disk_layer: DiskCacheLayer) -> None:
        disk_layer.put("k", "v")
        disk_layer.evict("k")
        assert disk_layer.get("k") is None

    def test_evict_missing_is_noop(self, disk_layer: DiskCacheLayer) -> None:
        disk_layer.evict("nonexistent")

    def test_clear(self, disk_layer: DiskCacheLayer) -> None:
        disk_layer.put("a", 1)
        disk_layer.put("b", 2)
        assert disk_layer.size() == 2
        disk_layer.clear()
        assert disk_layer.size() == 0

    def test_default_directory_is_temporary(self) -> None:
        layer = DiskCacheLayer("tmp")
        try:
            assert layer.directory
            layer.put("k", "v")
            assert layer.get("k") == "v"
        finally:
            layer.close()

    def test_empty_name_rejected(self, tmp_path) -> None:
        with pytest.raises(ValueError):
            DiskCacheLayer("", directory=str(tmp_path / "x"))


class TestDiskCacheLayerFailures:
    """Storage failures surfaced by diskcache."""

    @pytest.fixture
    def broken_layer(self) -> DiskCacheLayer:
        cache = MagicMock()
        cache.directory = "/unavailable"
        cache.get.side_effect = sqlite3.OperationalError("database is locked")
        cache.set.side_effect = diskcache.Timeout()
        cache.delete.side_effect = OSError("read-only file system")
        cache.clear.side_effect = sqlite3.OperationalError("disk I/O error")
        cache.__len__.side_effect = sqlite3.OperationalError("disk I/O error")
        return DiskCacheLayer("down", _cache=cache)

    def test_get_degrades_to_miss(self, broken_layer: DiskCacheLayer) -> None:
        assert broken_layer.get("k") is None

    def test_put_raises_backend_unavailable(self, broken_layer: DiskCacheLayer) -> None:
        with pytest.raises(BackendUnavailableError):
            broken_layer.put("k", "v")

    def test_evict_raises_backend_unavailable(self, broken_layer: DiskCacheLayer) -> None:
        with pytest.raises(BackendUnavailableError):
            broken_layer.evict("k")

    def test_clear_raises_backend_unavailable(self, broken_layer: DiskCacheLayer) -> None:
        with pytest.raises(BackendUnavailableError):
            broken_layer.clear()

    def test_size_degrades_to_zero(self, broken_layer: DiskCacheLayer) -> None:
        assert broken_layer.size() == 0
