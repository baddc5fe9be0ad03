"""Tests for logging setup and cache diagnostics."""

from __future__ import annotations

import logging

import pytest

from shared.diagnostics import log_cache_summary, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)


def test_setup_logging_creates_file(tmp_path, restore_root_logger):
    log_file = setup_logging(tmp_path / 'log', level=logging.DEBUG)
    assert log_file == tmp_path / 'log' / 'offline_tiles.log'
    assert restore_root_logger.level == logging.DEBUG

    logging.getLogger('tiles.test').info('hello log')
    for handler in restore_root_logger.handlers:
        handler.flush()
    assert 'hello log' in log_file.read_text(encoding='utf-8')


def test_setup_logging_stdout_only(restore_root_logger):
    assert setup_logging() is None
    assert any(
        isinstance(h, logging.StreamHandler) for h in restore_root_logger.handlers
    )


def test_log_cache_summary(cache, caplog):
    cache.put('10/1/1', b'a' * 2048, region='lampung')
    cache.put('11/2/2', b'b' * 1024)
    with caplog.at_level(logging.INFO, logger='shared.diagnostics'):
        log_cache_summary(cache, context='startup')
    text = caplog.text
    assert '[startup] Tile cache: 2 tiles' in text
    assert 'zoom 10: 1 tiles' in text
    assert 'region lampung: 1 tiles' in text
