"""
Tests for the namespace registry.
"""

import shutil
import tempfile
import time
from pathlib import Path

import pytest

from lotto_cache.core.exceptions import CacheError
from lotto_cache.core.registry import CacheRegistry
from lotto_cache.types.models import NamespaceConfig
from lotto_cache.utils.cache.store import CacheStore

from tests.mocks import FakeClock, make_settings


class TestCacheRegistry:
    """Construction and lookup."""

    def test_default_namespaces(self, registry):
        assert registry.names() == ['sales', 'finances', 'user', 'dashboard']
        assert registry.sales.max_size == 50
        assert registry.sales.default_ttl_minutes == 15
        assert registry.finances.default_ttl_minutes == 240
        assert registry.user.max_size == 20
        assert registry.dashboard.max_size == 10

    def test_only_persistent_namespaces_get_an_adapter(self, registry):
        assert registry.sales.adapter is not None
        assert registry.sales.adapter.prefix == "lotto_cache:sales:"
        assert registry.user.adapter.prefix == "lotto_cache:user:"
        assert registry.dashboard.adapter is None

    def test_accessors(self, registry):
        assert registry.get('sales') is registry['sales'] is registry.sales
        assert 'finances' in registry
        assert 'tickets' not in registry
        assert len(registry) == 4
        assert all(isinstance(store, CacheStore) for _, store in registry)

    def test_unknown_namespace(self, registry):
        with pytest.raises(CacheError) as exc_info:
            registry.get('tickets')
        assert exc_info.value.namespace == 'tickets'

    def test_registries_are_independent(self, clock):
        first = CacheRegistry(make_settings(), clock=clock)
        second = CacheRegistry(make_settings(), clock=clock)
        try:
            first.dashboard.set("dashboard:today:2025-08-14", 10)
            assert not second.dashboard.has("dashboard:today:2025-08-14")
        finally:
            first.destroy()
            second.destroy()

    def test_memory_only_without_storage_path(self, clock):
        registry = CacheRegistry(make_settings(storage_path=None), clock=clock)
        try:
            assert registry.medium is None
            assert registry.sales.adapter is None
        finally:
            registry.destroy()

    def test_custom_namespaces(self, clock):
        settings = make_settings(namespaces={'reports': NamespaceConfig(max_size=3, default_ttl_minutes=60)})
        registry = CacheRegistry(settings, clock=clock)
        try:
            assert registry.names() == ['reports']
            with pytest.raises(CacheError):
                registry.sales
        finally:
            registry.destroy()

    def test_invalid_settings(self, clock):
        settings = make_settings(namespaces={'sales': NamespaceConfig(max_size=0, default_ttl_minutes=15)})
        with pytest.raises(ValueError):
            CacheRegistry(settings, clock=clock)

    def test_destroy_keeps_persisted_entries(self, registry, memory_medium):
        registry.sales.set("sales:daily:total:2025-08-14", 1500)
        registry.destroy()

        assert len(registry.sales) == 0
        assert memory_medium.keys() == ["lotto_cache:sales:sales:daily:total:2025-08-14"]


def test_file_backed_registry_survives_restart():
    temp_dir = tempfile.mkdtemp()
    try:
        clock = FakeClock()
        settings = make_settings(storage_path=str(Path(temp_dir) / "cache_storage.json"))

        registry = CacheRegistry(settings, clock=clock)
        registry.user.set("user:profile:u1", {"name": "Ana"})
        registry.dashboard.set("dashboard:today:2025-08-14", 10)
        registry.destroy()

        restarted = CacheRegistry(settings, clock=clock)
        try:
            assert restarted.user.get("user:profile:u1") == {"name": "Ana"}
            # Dashboard is not persistent
            assert restarted.dashboard.get("dashboard:today:2025-08-14") is None
        finally:
            restarted.destroy()
    finally:
        shutil.rmtree(temp_dir)


def test_storage_backups_setting_reaches_the_file_medium(tmp_path):
    storage = tmp_path / "cache_storage.json"
    registry = CacheRegistry(make_settings(storage_path=str(storage), storage_backups=2), clock=FakeClock())
    try:
        for i in range(4):
            # Distinct modification times for ordering
            time.sleep(0.01)
            registry.sales.set("sales:daily:total:2025-08-14", i)

        assert registry.medium.backups == 2
        assert len(registry.medium.writer.get_backup_files(storage)) == 2
    finally:
        registry.destroy()
