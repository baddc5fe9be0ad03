"""Services package - offline map facade and settings persistence."""

from services.offline_map_service import OfflineMapService
from services.settings_service import (
    default_settings_path,
    load_settings,
    save_settings,
)

__all__ = [
    'OfflineMapService',
    'default_settings_path',
    'load_settings',
    'save_settings',
]
