"""
Logging setup and cache diagnostics.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from shared.constants import LOG_FILE_NAME, LOG_FORMAT

if TYPE_CHECKING:
    from tiles.cache import TileCache

logger = logging.getLogger(__name__)


def setup_logging(
    log_dir: str | Path | None = None, level: int = logging.INFO
) -> Path | None:
    """Configure root logging to stdout and, optionally, a log file.

    Returns:
        Path of the log file, or None when logging only to stdout.
    """
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    log_file: Path | None = None
    if log_dir is not None:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        log_file = log_path / LOG_FILE_NAME
        handlers.append(logging.FileHandler(str(log_file), encoding='utf-8'))

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)
    return log_file


def log_cache_summary(cache: TileCache, context: str = '') -> None:
    """Log tile counts and sizes of the cache, per zoom and per region."""
    stats = cache.get_stats()
    usage = cache.usage_estimate()
    prefix = f'[{context}] ' if context else ''
    logger.info(
        '%sTile cache: %d tiles, %.1f MB in tiles, %.1f MB on disk, %.1f MB quota',
        prefix,
        stats.total_tiles,
        stats.total_size_bytes / 1024 / 1024,
        usage.used / 1024 / 1024,
        usage.quota / 1024 / 1024,
    )
    for zoom in sorted(stats.tiles_by_zoom):
        logger.info(
            '%s  zoom %d: %d tiles, %.1f MB',
            prefix,
            zoom,
            stats.tiles_by_zoom[zoom],
            stats.size_by_zoom[zoom] / 1024 / 1024,
        )
    for region, count in sorted(stats.tiles_by_region.items()):
        logger.info('%s  region %s: %d tiles', prefix, region, count)
