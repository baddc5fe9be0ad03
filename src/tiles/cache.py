"""SQLite-based tile cache with region-scoped eviction.

This module provides TileCache class for storing and retrieving map tiles
keyed by 'zoom/x/y', each optionally tagged with a region label.
"""

from __future__ import annotations

import contextlib
import logging
import shutil
import sqlite3
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from domain.models import TileCoordinate
from shared.constants import TILE_CACHE_DB_NAME, TILE_CACHE_SQLITE_CACHE_KB
from tiles.errors import CacheStorageError

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)


@dataclass
class TileInfo:
    """Information about a cached tile."""

    key: str
    zoom: int
    x: int
    y: int
    region: str | None
    size_bytes: int
    stored_at: int


@dataclass
class CacheStats:
    """Statistics about the tile cache."""

    total_tiles: int
    total_size_bytes: int
    tiles_by_zoom: dict[int, int] = field(default_factory=dict)
    size_by_zoom: dict[int, int] = field(default_factory=dict)
    tiles_by_region: dict[str, int] = field(default_factory=dict)
    oldest_tile: int | None = None
    newest_tile: int | None = None


@dataclass(frozen=True)
class StorageUsage:
    """Best-effort storage figures in bytes; (0, 0) when unknown."""

    used: int
    quota: int


class TileCache:
    """SQLite-based tile cache.

    Features:
    - One SQLite database per cache directory, WAL mode
    - Upsert on put: same key replaces bytes and timestamp, keeps the old
      region unless a new one is given
    - Eviction by region label or of everything
    - One connection shared between threads, serialized by a lock

    Usage:
        cache = TileCache(cache_dir)
        cache.put('15/100/200', tile_bytes, region='lampung')
        tile_data = cache.get('15/100/200')
        cache.clear_region('lampung')
        cache.close()
    """

    def __init__(self, cache_dir: str | Path) -> None:
        """Initialize tile cache.

        Args:
            cache_dir: Directory for the cache database.

        Raises:
            CacheStorageError: The directory or database cannot be opened.
        """
        self.cache_dir = Path(cache_dir)
        self.db_path = self.cache_dir / TILE_CACHE_DB_NAME
        self._lock = threading.RLock()
        self._conn: sqlite3.Connection | None = None
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            msg = f'Cannot create tile cache directory {self.cache_dir}: {e}'
            raise CacheStorageError(msg) from e
        with self._op('open'):
            pass
        logger.info('TileCache initialized at %s', self.db_path)

    def _get_connection(self) -> sqlite3.Connection:
        if self._conn is None:
            conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            try:
                conn.execute('PRAGMA journal_mode=WAL')
                conn.execute('PRAGMA synchronous=NORMAL')
                conn.execute(f'PRAGMA cache_size=-{TILE_CACHE_SQLITE_CACHE_KB}')
                self._init_schema(conn)
            except sqlite3.Error:
                conn.close()
                raise
            self._conn = conn
        return self._conn

    def _init_schema(self, conn: sqlite3.Connection) -> None:
        conn.executescript('''
            CREATE TABLE IF NOT EXISTS tiles (
                key TEXT PRIMARY KEY,
                zoom INTEGER NOT NULL,
                x INTEGER NOT NULL,
                y INTEGER NOT NULL,
                tile_data BLOB NOT NULL,
                region TEXT,
                stored_at INTEGER NOT NULL,
                size_bytes INTEGER NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_tiles_region ON tiles(region);
            CREATE INDEX IF NOT EXISTS idx_tiles_zoom ON tiles(zoom);
        ''')
        conn.commit()

    @contextlib.contextmanager
    def _op(self, action: str) -> Iterator[sqlite3.Connection]:
        """Run one storage operation under the lock, mapping sqlite errors."""
        try:
            with self._lock:
                yield self._get_connection()
        except sqlite3.Error as e:
            msg = f'Tile cache {action} failed: {e}'
            raise CacheStorageError(msg) from e

    def get(self, key: str) -> bytes | None:
        """Get tile data from cache.

        Args:
            key: Tile key 'zoom/x/y'.

        Returns:
            Tile data as bytes, or None if not found.
        """
        with self._op('read') as conn:
            row = conn.execute(
                'SELECT tile_data FROM tiles WHERE key = ?', (key,)
            ).fetchone()
        if row is None:
            return None
        return bytes(row[0])

    def get_info(self, key: str) -> TileInfo | None:
        """Get tile metadata without loading its bytes."""
        with self._op('read') as conn:
            row = conn.execute(
                '''SELECT key, zoom, x, y, region, size_bytes, stored_at
                   FROM tiles WHERE key = ?''',
                (key,),
            ).fetchone()
        if row is None:
            return None
        return TileInfo(*row)

    def exists(self, key: str) -> bool:
        with self._op('read') as conn:
            row = conn.execute('SELECT 1 FROM tiles WHERE key = ?', (key,)).fetchone()
        return row is not None

    def put(self, key: str, data: bytes, region: str | None = None) -> None:
        """Store tile in cache, replacing any previous entry for the key.

        Args:
            key: Tile key 'zoom/x/y'.
            data: Tile data as bytes.
            region: Region label. None keeps the label of an existing entry.

        Raises:
            ValueError: The key is not a valid tile key.
        """
        coord = TileCoordinate.from_key(key)
        now = int(time.time())
        with self._op('write') as conn:
            conn.execute(
                '''INSERT INTO tiles
                   (key, zoom, x, y, tile_data, region, stored_at, size_bytes)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                   ON CONFLICT(key) DO UPDATE SET
                       tile_data = excluded.tile_data,
                       region = COALESCE(excluded.region, tiles.region),
                       stored_at = excluded.stored_at,
                       size_bytes = excluded.size_bytes''',
                (coord.key, coord.zoom, coord.x, coord.y, data, region, now, len(data)),
            )
            conn.commit()

    def delete(self, key: str) -> bool:
        """Delete a tile from cache.

        Returns:
            True if tile was deleted.
        """
        with self._op('delete') as conn:
            cursor = conn.execute('DELETE FROM tiles WHERE key = ?', (key,))
            conn.commit()
        return cursor.rowcount > 0

    def clear_region(self, region: str) -> int:
        """Delete every tile tagged with region.

        Returns:
            Number of tiles deleted.
        """
        with self._op('clear region') as conn:
            cursor = conn.execute('DELETE FROM tiles WHERE region = ?', (region,))
            conn.commit()
        logger.info('Cleared region %s: %d tiles deleted', region, cursor.rowcount)
        return cursor.rowcount

    def clear_all(self) -> int:
        """Delete every tile regardless of region.

        Returns:
            Number of tiles deleted.
        """
        with self._op('clear') as conn:
            cursor = conn.execute('DELETE FROM tiles')
            conn.commit()
        logger.info('Cleared tile cache: %d tiles deleted', cursor.rowcount)
        return cursor.rowcount

    def list_regions(self) -> set[str]:
        """Distinct non-null region labels present in the cache."""
        with self._op('read') as conn:
            rows = conn.execute(
                'SELECT DISTINCT region FROM tiles WHERE region IS NOT NULL'
            ).fetchall()
        return {row[0] for row in rows}

    def usage_estimate(self) -> StorageUsage:
        """Database size and the space available to it.

        quota is the database size plus the free space on its volume.
        Returns StorageUsage(0, 0) when the substrate cannot report usage.
        """
        try:
            with self._lock:
                conn = self._get_connection()
                page_count = conn.execute('PRAGMA page_count').fetchone()[0]
                page_size = conn.execute('PRAGMA page_size').fetchone()[0]
            used = int(page_count) * int(page_size)
            free = shutil.disk_usage(self.cache_dir).free
        except (sqlite3.Error, OSError) as e:
            logger.debug('Storage usage unavailable: %s', e)
            return StorageUsage(used=0, quota=0)
        return StorageUsage(used=used, quota=used + free)

    def get_stats(self) -> CacheStats:
        """Get cache statistics with per-zoom and per-region breakdown."""
        with self._op('read') as conn:
            total_tiles, total_size, oldest, newest = conn.execute(
                '''SELECT COUNT(*), COALESCE(SUM(size_bytes), 0),
                          MIN(stored_at), MAX(stored_at) FROM tiles'''
            ).fetchone()
            by_zoom = conn.execute(
                'SELECT zoom, COUNT(*), SUM(size_bytes) FROM tiles GROUP BY zoom'
            ).fetchall()
            by_region = conn.execute(
                '''SELECT region, COUNT(*) FROM tiles
                   WHERE region IS NOT NULL GROUP BY region'''
            ).fetchall()

        return CacheStats(
            total_tiles=total_tiles,
            total_size_bytes=total_size,
            tiles_by_zoom={zoom: count for zoom, count, _ in by_zoom},
            size_by_zoom={zoom: size for zoom, _, size in by_zoom},
            tiles_by_region=dict(by_region),
            oldest_tile=oldest,
            newest_tile=newest,
        )

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
        logger.info('TileCache closed')

    def __enter__(self) -> TileCache:
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()
