"""Tests for settings persistence."""

from __future__ import annotations

import pydantic
import pytest

from domain.models import DownloaderSettings
from services.settings_service import (
    default_settings_path,
    load_settings,
    save_settings,
)


def test_missing_file_gives_defaults(tmp_path):
    settings = load_settings(tmp_path / 'missing.toml')
    assert settings == DownloaderSettings()


def test_save_and_load(tmp_path):
    saved = DownloaderSettings(
        tile_server_url='https://tiles.example.com',
        max_concurrent=8,
        batch_delay_ms=250,
        skip_cached=True,
    )
    path = save_settings(saved, tmp_path / 'conf' / 'settings.toml')
    assert path.exists()
    assert load_settings(path) == saved


def test_partial_file_uses_defaults(tmp_path):
    path = tmp_path / 'settings.toml'
    path.write_text('retry_count = 5\nunknown_key = "ignored"\n', encoding='utf-8')
    settings = load_settings(path)
    assert settings.retry_count == 5
    assert settings.max_concurrent == DownloaderSettings().max_concurrent


def test_invalid_value_raises(tmp_path):
    path = tmp_path / 'settings.toml'
    path.write_text('max_concurrent = 0\n', encoding='utf-8')
    with pytest.raises(pydantic.ValidationError):
        load_settings(path)


def test_default_path_uses_appdata(monkeypatch, tmp_path):
    monkeypatch.setenv('APPDATA', str(tmp_path))
    assert default_settings_path() == tmp_path / 'OfflineTiles' / 'settings.toml'
