"""Tests for progress reporting."""

from __future__ import annotations

import io
import logging

import pytest

from shared.constants import DownloadStatus
from shared.progress import (
    ConsoleProgress,
    DownloadProgress,
    ProgressReporter,
    compute_percentage,
)


@pytest.mark.parametrize(
    'downloaded,total,status,expected',
    [
        (0, 10, DownloadStatus.DOWNLOADING, 0),
        (4, 5, DownloadStatus.COMPLETED, 80),
        (2, 3, DownloadStatus.DOWNLOADING, 66),
        (5, 5, DownloadStatus.COMPLETED, 100),
        (0, 0, DownloadStatus.DOWNLOADING, 0),
        (0, 0, DownloadStatus.COMPLETED, 100),
        (0, 0, DownloadStatus.CANCELLED, 0),
    ],
)
def test_compute_percentage(downloaded, total, status, expected):
    assert compute_percentage(downloaded, total, status) == expected


class TestProgressReporter:
    @pytest.mark.asyncio
    async def test_sync_callback(self):
        events = []
        reporter = ProgressReporter(3, events.append, region='r')
        await reporter.emit(DownloadStatus.DOWNLOADING)
        await reporter.advance()
        reporter.mark_failed()
        await reporter.advance()
        await reporter.emit(DownloadStatus.COMPLETED)

        assert [e.downloaded for e in events] == [0, 1, 2, 2]
        assert events[-1] == DownloadProgress(
            downloaded=2,
            total=3,
            percentage=66,
            status=DownloadStatus.COMPLETED,
            failed=1,
            region='r',
        )

    @pytest.mark.asyncio
    async def test_async_callback(self):
        events = []

        async def cb(progress):
            events.append(progress.percentage)

        reporter = ProgressReporter(2, cb)
        await reporter.advance()
        await reporter.advance()
        assert events == [50, 100]

    @pytest.mark.asyncio
    async def test_never_exceeds_total(self):
        reporter = ProgressReporter(1)
        await reporter.advance()
        progress = await reporter.advance()
        assert progress.downloaded == 1

    @pytest.mark.asyncio
    async def test_callback_error_is_logged(self, caplog):
        def broken(progress):
            raise RuntimeError('ui gone')

        reporter = ProgressReporter(1, broken)
        with caplog.at_level(logging.WARNING, logger='shared.progress'):
            progress = await reporter.advance()
        assert progress.downloaded == 1
        assert 'Progress callback failed' in caplog.text


class TestConsoleProgress:
    def test_renders_bar(self):
        stream = io.StringIO()
        console = ConsoleProgress('Lampung', stream=stream)
        console(DownloadProgress(5, 10, 50, DownloadStatus.DOWNLOADING))
        out = stream.getvalue()
        assert out.startswith('\rLampung: [')
        assert '5/10' in out
        assert '█' * 15 + '░' * 15 in out
        assert not out.endswith('\n')

    def test_terminal_status_ends_line(self):
        stream = io.StringIO()
        console = ConsoleProgress(stream=stream)
        console(DownloadProgress(10, 10, 100, DownloadStatus.COMPLETED))
        assert stream.getvalue().endswith('completed\n')

    def test_eta_format(self):
        console = ConsoleProgress(stream=io.StringIO())
        assert console._format_eta(float('inf')) == '--:--'
        assert console._format_eta(75) == '01:15'
        assert console._format_eta(3725) == '01:02:05'
