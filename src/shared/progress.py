from __future__ import annotations

import inspect
import logging
import sys
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, TextIO

from shared.constants import PROGRESS_BAR_WIDTH, DownloadStatus

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    ProgressCallback = Callable[['DownloadProgress'], Awaitable[None] | None]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DownloadProgress:
    """One progress event of a download job."""

    downloaded: int
    total: int
    percentage: int
    status: DownloadStatus
    failed: int = 0
    region: str = ''


def compute_percentage(downloaded: int, total: int, status: DownloadStatus) -> int:
    if total <= 0:
        return 100 if status == DownloadStatus.COMPLETED else 0
    return downloaded * 100 // total


class ProgressReporter:
    """Counts downloaded/failed tiles of one job and publishes events.

    `downloaded` only grows and never exceeds `total`. The callback may be a
    plain function or a coroutine function; its errors are logged and do not
    affect the job.
    """

    def __init__(
        self,
        total: int,
        callback: ProgressCallback | None = None,
        *,
        region: str = '',
    ) -> None:
        self.total = max(0, int(total))
        self.downloaded = 0
        self.failed = 0
        self.region = region
        self._callback = callback

    def snapshot(self, status: DownloadStatus) -> DownloadProgress:
        return DownloadProgress(
            downloaded=self.downloaded,
            total=self.total,
            percentage=compute_percentage(self.downloaded, self.total, status),
            status=status,
            failed=self.failed,
            region=self.region,
        )

    async def emit(self, status: DownloadStatus) -> DownloadProgress:
        progress = self.snapshot(status)
        if self._callback is not None:
            try:
                result = self._callback(progress)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.warning('Progress callback failed', exc_info=True)
        return progress

    async def advance(self, n: int = 1) -> DownloadProgress:
        self.downloaded = min(self.total, self.downloaded + n)
        return await self.emit(DownloadStatus.DOWNLOADING)

    def mark_failed(self, n: int = 1) -> None:
        self.failed += n


class ConsoleProgress:
    """Progress callback drawing a single-line bar with rate and ETA."""

    def __init__(self, label: str = 'Tiles', stream: TextIO | None = None) -> None:
        self.label = label
        self._stream = stream or sys.stderr
        self.start = time.monotonic()

    def _format_eta(self, remaining: float) -> str:
        if remaining == float('inf'):
            return '--:--'
        m, s = divmod(int(remaining), 60)
        h, m = divmod(m, 60)
        if h > 0:
            return f'{h:02d}:{m:02d}:{s:02d}'
        return f'{m:02d}:{s:02d}'

    def render(self, progress: DownloadProgress) -> str:
        elapsed = max(1e-6, time.monotonic() - self.start)
        rps = progress.downloaded / elapsed
        left = progress.total - progress.downloaded
        remaining = left / rps if rps > 0 else float('inf')
        filled = PROGRESS_BAR_WIDTH * progress.percentage // 100
        bar = '█' * filled + '░' * (PROGRESS_BAR_WIDTH - filled)
        return (
            f'{self.label}: [{bar}] {progress.downloaded}/{progress.total} '
            f'| {rps:4.1f}/s | ETA {self._format_eta(remaining)}'
        )

    def __call__(self, progress: DownloadProgress) -> None:
        line = self.render(progress)
        if progress.status == DownloadStatus.DOWNLOADING:
            self._stream.write('\r' + line)
        else:
            self._stream.write(f'\r{line} {progress.status.value}\n')
        self._stream.flush()
