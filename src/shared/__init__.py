"""Shared utilities and helpers."""
from shared.diagnostics import log_cache_summary, setup_logging
from shared.progress import ConsoleProgress, DownloadProgress, ProgressReporter

__all__ = [
    'ConsoleProgress',
    'DownloadProgress',
    'ProgressReporter',
    'log_cache_summary',
    'setup_logging',
]
