"""Error taxonomy for tile caching and batch downloads.

- CacheStorageError: the SQLite substrate failed; never retried.
- TileFetchError: one tile could not be fetched; retried, then skipped.
- DownloadCancelledError: the job was cancelled by its caller.
- DownloadIncompleteError: the job finished below the success threshold.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from domain.models import TileCoordinate


class TileError(RuntimeError):
    """Base class for every error raised by the tiles package."""


class CacheStorageError(TileError):
    """The persistent tile store is unavailable or corrupt."""


class TileFetchError(TileError):
    """A single tile could not be retrieved from the tile server."""

    def __init__(
        self,
        coordinate: TileCoordinate,
        message: str,
        *,
        status: int | None = None,
    ) -> None:
        super().__init__(f'Tile {coordinate.key}: {message}')
        self.coordinate = coordinate
        self.status = status


class DownloadCancelledError(TileError):
    """A download job was cancelled before it finished its tile list."""

    def __init__(self, downloaded: int, total: int) -> None:
        super().__init__(
            f'Download cancelled: {downloaded} of {total} tiles downloaded'
        )
        self.downloaded = downloaded
        self.total = total


class DownloadIncompleteError(TileError):
    """A download job ran to the end but too many tiles failed."""

    def __init__(self, downloaded: int, total: int, percentage: int) -> None:
        super().__init__(
            f'Download incomplete: {downloaded} of {total} tiles downloaded '
            f'({percentage}%)'
        )
        self.downloaded = downloaded
        self.total = total
        self.percentage = percentage
