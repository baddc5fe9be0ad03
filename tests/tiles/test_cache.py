"""Tests for TileCache."""

from __future__ import annotations

import sqlite3
import time
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock, patch

import pytest

from tiles.cache import CacheStats, StorageUsage, TileCache, TileInfo
from tiles.errors import CacheStorageError


class TestTileCache:
    """Tests for TileCache class."""

    def test_init_creates_directory(self, tmp_path):
        cache_dir = tmp_path / 'nested' / 'tiles'
        cache = TileCache(cache_dir=cache_dir)
        assert cache_dir.exists()
        assert cache.db_path.exists()
        cache.close()

    def test_put_and_get(self, cache):
        data = bytes(range(256)) * 4
        cache.put('15/100/200', data)
        assert cache.get('15/100/200') == data

    def test_get_nonexistent_returns_none(self, cache):
        assert cache.get('15/999/999') is None

    def test_exists(self, cache):
        assert not cache.exists('15/100/200')
        cache.put('15/100/200', b'data')
        assert cache.exists('15/100/200')

    def test_put_replaces_bytes(self, cache):
        cache.put('15/100/200', b'old', region='a')
        cache.put('15/100/200', b'new', region='a')
        assert cache.get('15/100/200') == b'new'
        assert cache.get_stats().total_tiles == 1

    def test_put_without_region_keeps_region(self, cache):
        cache.put('15/100/200', b'old', region='a')
        cache.put('15/100/200', b'new')
        assert cache.get_info('15/100/200').region == 'a'

    def test_put_updates_region(self, cache):
        cache.put('15/100/200', b'old', region='a')
        cache.put('15/100/200', b'new', region='b')
        assert cache.list_regions() == {'b'}

    def test_put_invalid_key_raises(self, cache):
        with pytest.raises(ValueError, match='Invalid tile key'):
            cache.put('not-a-key', b'data')

    def test_delete(self, cache):
        cache.put('15/100/200', b'data')
        assert cache.delete('15/100/200')
        assert not cache.exists('15/100/200')
        assert not cache.delete('15/100/200')

    def test_get_info(self, cache):
        before = int(time.time())
        cache.put('15/100/200', b'test data', region='lampung')
        after = int(time.time())

        info = cache.get_info('15/100/200')
        assert isinstance(info, TileInfo)
        assert (info.zoom, info.x, info.y) == (15, 100, 200)
        assert info.key == '15/100/200'
        assert info.region == 'lampung'
        assert info.size_bytes == len(b'test data')
        assert before <= info.stored_at <= after

    def test_get_info_nonexistent(self, cache):
        assert cache.get_info('15/999/999') is None


class TestRegions:
    def test_clear_region_leaves_others(self, cache):
        cache.put('10/1/1', b'a1', region='A')
        cache.put('10/1/2', b'a2', region='A')
        cache.put('10/2/1', b'b1', region='B')
        cache.put('10/2/2', b'untagged')

        assert cache.clear_region('A') == 2

        assert cache.get('10/1/1') is None
        assert cache.get('10/1/2') is None
        assert cache.get('10/2/1') == b'b1'
        assert cache.get('10/2/2') == b'untagged'

    def test_clear_region_unknown(self, cache):
        cache.put('10/1/1', b'a1', region='A')
        assert cache.clear_region('missing') == 0
        assert cache.exists('10/1/1')

    def test_clear_all(self, cache):
        cache.put('10/1/1', b'a1', region='A')
        cache.put('10/2/2', b'untagged')
        assert cache.clear_all() == 2
        assert cache.get_stats().total_tiles == 0
        assert cache.list_regions() == set()

    def test_list_regions_skips_untagged(self, cache):
        cache.put('10/1/1', b'x', region='A')
        cache.put('10/1/2', b'x', region='A')
        cache.put('10/1/3', b'x', region='B')
        cache.put('10/1/4', b'x')
        assert cache.list_regions() == {'A', 'B'}


class TestStats:
    def test_get_stats(self, cache):
        cache.put('10/1/1', b'aaaa', region='A')
        cache.put('11/1/1', b'bb', region='A')
        cache.put('11/1/2', b'c')

        stats = cache.get_stats()
        assert isinstance(stats, CacheStats)
        assert stats.total_tiles == 3
        assert stats.total_size_bytes == 7
        assert stats.tiles_by_zoom == {10: 1, 11: 2}
        assert stats.size_by_zoom == {10: 4, 11: 3}
        assert stats.tiles_by_region == {'A': 2}
        assert stats.oldest_tile is not None
        assert stats.newest_tile >= stats.oldest_tile

    def test_get_stats_empty(self, cache):
        stats = cache.get_stats()
        assert stats.total_tiles == 0
        assert stats.total_size_bytes == 0
        assert stats.oldest_tile is None

    def test_usage_estimate(self, cache):
        cache.put('10/1/1', b'x' * 10_000)
        usage = cache.usage_estimate()
        assert isinstance(usage, StorageUsage)
        assert usage.used > 0
        assert usage.quota >= usage.used

    def test_usage_estimate_fallback(self, cache):
        with patch('tiles.cache.shutil.disk_usage', side_effect=OSError('no fs')):
            assert cache.usage_estimate() == StorageUsage(used=0, quota=0)


class TestFailures:
    def test_corrupt_database_raises_storage_error(self, tmp_path):
        (tmp_path / 'tiles.db').write_bytes(b'this is not a sqlite database' * 100)
        with pytest.raises(CacheStorageError):
            TileCache(cache_dir=tmp_path)

    def test_failed_setup_closes_connection(self, cache):
        cache.close()
        conn = MagicMock()
        conn.execute.side_effect = sqlite3.DatabaseError('file is not a database')
        with patch('tiles.cache.sqlite3.connect', return_value=conn):
            with pytest.raises(CacheStorageError):
                cache.get('10/1/1')
            with pytest.raises(CacheStorageError):
                cache.get('10/1/1')
        assert conn.close.call_count == 2
        assert cache._conn is None

    def test_sqlite_error_is_wrapped(self, cache):
        with patch.object(
            cache,
            '_get_connection',
            side_effect=sqlite3.OperationalError('disk I/O error'),
        ):
            with pytest.raises(CacheStorageError, match='disk I/O error'):
                cache.get('10/1/1')
            with pytest.raises(CacheStorageError):
                cache.put('10/1/1', b'x')

    def test_unusable_directory_raises_storage_error(self, tmp_path):
        blocker = tmp_path / 'file'
        blocker.write_text('x')
        with pytest.raises(CacheStorageError):
            TileCache(cache_dir=blocker / 'tiles')


class TestConcurrency:
    def test_concurrent_puts_from_threads(self, cache):
        keys = [f'12/{i}/{i}' for i in range(50)]

        def _put(key: str) -> None:
            cache.put(key, key.encode(), region='threads')

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(_put, keys))

        assert all(cache.get(k) == k.encode() for k in keys)
        assert cache.get_stats().tiles_by_region == {'threads': 50}

    def test_context_manager_closes(self, tmp_path):
        with TileCache(cache_dir=tmp_path) as cache:
            cache.put('1/0/0', b'x')
        assert cache._conn is None
