"""Tile caching and download system.

This module provides:
- compute_tiles: bounding box to tile coordinates
- TileCache: SQLite-based tile storage with region eviction
- HttpTileSource / fetch_with_retry: tile retrieval with backoff
- BatchDownloader / DownloadJob: batched, cancellable region downloads
"""

from tiles.cache import CacheStats, StorageUsage, TileCache, TileInfo
from tiles.coverage import compute_tiles, count_tiles, estimate_download_size
from tiles.downloader import BatchDownloader, CancellationToken, DownloadJob
from tiles.errors import (
    CacheStorageError,
    DownloadCancelledError,
    DownloadIncompleteError,
    TileError,
    TileFetchError,
)
from tiles.fetcher import HttpTileSource, fetch_with_retry

__all__ = [
    'BatchDownloader',
    'CacheStats',
    'CacheStorageError',
    'CancellationToken',
    'DownloadCancelledError',
    'DownloadIncompleteError',
    'DownloadJob',
    'HttpTileSource',
    'StorageUsage',
    'TileCache',
    'TileError',
    'TileFetchError',
    'TileInfo',
    'compute_tiles',
    'count_tiles',
    'estimate_download_size',
    'fetch_with_retry',
]
