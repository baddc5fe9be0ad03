from __future__ import annotations

import logging
import os
from pathlib import Path

import tomlkit

from domain.models import DownloaderSettings
from shared.constants import APP_DIR_NAME

logger = logging.getLogger(__name__)

SETTINGS_FILE_NAME = 'settings.toml'


def default_settings_path() -> Path:
    """
    Determine the settings file location.

    %APPDATA%/OfflineTiles/settings.toml, or
    ~/AppData/Roaming/OfflineTiles/settings.toml when APPDATA is not set.
    """
    base = Path(os.getenv('APPDATA') or (Path.home() / 'AppData' / 'Roaming'))
    return base / APP_DIR_NAME / SETTINGS_FILE_NAME


def load_settings(path: str | Path | None = None) -> DownloaderSettings:
    """
    Load and validate settings TOML -> DownloaderSettings.

    A missing file yields the defaults; invalid values raise
    pydantic.ValidationError.
    """
    path = Path(path) if path is not None else default_settings_path()
    if not path.exists():
        logger.info('Settings file %s not found, using defaults', path)
        return DownloaderSettings()
    text = path.read_text(encoding='utf-8')
    data = tomlkit.parse(text)
    settings = DownloaderSettings.model_validate(data.unwrap())
    logger.info(
        'Settings loaded from %s: server=%s max_concurrent=%d',
        path,
        settings.tile_server_url,
        settings.max_concurrent,
    )
    return settings


def save_settings(
    settings: DownloaderSettings, path: str | Path | None = None
) -> Path:
    """Save settings to TOML (no atomic replace or backups)."""
    path = Path(path) if path is not None else default_settings_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    text = tomlkit.dumps(settings.model_dump())
    path.write_text(text, encoding='utf-8')
    return path
