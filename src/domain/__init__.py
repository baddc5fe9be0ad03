"""Domain layer - tile coordinates, settings and preset regions."""
from domain.models import (
    BoundingBox,
    DownloaderSettings,
    DownloadOptions,
    TileCoordinate,
)
from domain.regions import PRESET_REGIONS, MapRegion, get_preset_region

__all__ = [
    'PRESET_REGIONS',
    'BoundingBox',
    'DownloadOptions',
    'DownloaderSettings',
    'MapRegion',
    'TileCoordinate',
    'get_preset_region',
]
