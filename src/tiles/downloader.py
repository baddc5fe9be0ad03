"""Batch download of a region's tiles into the tile cache.

Tiles are fetched in sequential batches of `max_concurrent`; every tile of a
batch runs concurrently and the next batch starts only when the previous one
has settled. Each job carries its own CancellationToken, checked before every
batch and every tile; cancelling also aborts fetches already in flight.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
import uuid
from typing import TYPE_CHECKING

from domain.models import DownloadOptions, validate_region_label
from shared.constants import DownloadStatus
from shared.progress import ProgressReporter
from tiles.coverage import compute_tiles, count_tiles
from tiles.errors import (
    DownloadCancelledError,
    DownloadIncompleteError,
    TileFetchError,
)
from tiles.fetcher import fetch_with_retry

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from domain.models import BoundingBox, TileCoordinate
    from shared.progress import DownloadProgress, ProgressCallback
    from tiles.cache import TileCache
    from tiles.fetcher import TileFetch

logger = logging.getLogger(__name__)


class CancellationToken:
    """Thread-safe cooperative cancellation flag with callbacks."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> bool:
        """Signal cancellation. Returns False if it was already signaled."""
        with self._lock:
            if self._event.is_set():
                return False
            self._event.set()
            callbacks = list(self._callbacks)
        for cb in callbacks:
            try:
                cb()
            except Exception:
                logger.warning('Cancellation callback failed', exc_info=True)
        return True

    def add_callback(self, cb: Callable[[], None]) -> Callable[[], None]:
        """Register cb to run on cancel; returns a function unregistering it."""
        with self._lock:
            already = self._event.is_set()
            if not already:
                self._callbacks.append(cb)
        if already:
            cb()

        def _remove() -> None:
            with self._lock, contextlib.suppress(ValueError):
                self._callbacks.remove(cb)

        return _remove


class DownloadJob:
    """Handle of one region download: its tiles, options and cancellation."""

    def __init__(
        self,
        coordinates: Sequence[TileCoordinate],
        region: str,
        options: DownloadOptions,
        *,
        token: CancellationToken | None = None,
    ) -> None:
        self.id = uuid.uuid4().hex[:12]
        self.coordinates = list(coordinates)
        self.region = region
        self.options = options
        self.token = token or CancellationToken()
        self.progress: DownloadProgress | None = None
        self.task: asyncio.Task[DownloadProgress] | None = None
        self._finished = False
        self._in_flight: set[asyncio.Future[bytes]] = set()

    @property
    def total(self) -> int:
        return len(self.coordinates)

    @property
    def active(self) -> bool:
        return not self._finished

    def cancel(self) -> bool:
        """Signal the job to stop. Returns True if the job was still active."""
        if not self.active:
            return False
        self.token.cancel()
        return True

    async def wait(self) -> DownloadProgress:
        """Await a job started with BatchDownloader.start."""
        if self.task is None:
            msg = f'Job {self.id} was not started'
            raise RuntimeError(msg)
        return await self.task

    def _abort_in_flight(self) -> None:
        for fut in list(self._in_flight):
            fut.cancel()

    def __repr__(self) -> str:
        return (
            f'DownloadJob(id={self.id!r}, region={self.region!r}, '
            f'tiles={self.total}, active={self.active})'
        )


class BatchDownloader:
    """Fetch the tiles of a bounding box and store them in a TileCache.

    Usage:
        downloader = BatchDownloader(cache, HttpTileSource(session, url))
        await downloader.download_region(bounds, [12, 13], 'lampung')
    """

    def __init__(self, cache: TileCache, fetch: TileFetch) -> None:
        self.cache = cache
        self._fetch = fetch

    def create_job(
        self,
        bounds: BoundingBox,
        zoom_levels: Sequence[int],
        region_label: str,
        options: DownloadOptions | None = None,
        *,
        token: CancellationToken | None = None,
    ) -> DownloadJob:
        """Validate input and compute the job's tile list.

        Raises:
            ValueError: Empty region label, bad zoom or too many tiles.
        """
        region = validate_region_label(region_label)
        options = options or DownloadOptions()
        limit = options.max_tiles_per_job
        if limit:
            expected = count_tiles(bounds, zoom_levels)
            if expected > limit:
                msg = f'Region {region!r} needs {expected} tiles, limit is {limit}'
                raise ValueError(msg)
        coordinates = compute_tiles(bounds, zoom_levels)
        return DownloadJob(coordinates, region, options, token=token)

    async def download_region(
        self,
        bounds: BoundingBox,
        zoom_levels: Sequence[int],
        region_label: str,
        options: DownloadOptions | None = None,
        *,
        on_progress: ProgressCallback | None = None,
        token: CancellationToken | None = None,
    ) -> DownloadProgress:
        """Download a region and return its final progress event.

        Raises:
            DownloadCancelledError: The token was signaled before all tiles
                were processed.
            DownloadIncompleteError: Fewer than min_success_ratio of the
                tiles were downloaded.
            CacheStorageError: Writing to the cache failed.
        """
        job = self.create_job(bounds, zoom_levels, region_label, options, token=token)
        return await self.run(job, on_progress=on_progress)

    def start(
        self,
        bounds: BoundingBox,
        zoom_levels: Sequence[int],
        region_label: str,
        options: DownloadOptions | None = None,
        *,
        on_progress: ProgressCallback | None = None,
    ) -> DownloadJob:
        """Schedule a download on the running loop and return its handle."""
        job = self.create_job(bounds, zoom_levels, region_label, options)
        job.task = asyncio.create_task(self.run(job, on_progress=on_progress))
        return job

    async def run(
        self,
        job: DownloadJob,
        *,
        on_progress: ProgressCallback | None = None,
    ) -> DownloadProgress:
        loop = asyncio.get_running_loop()
        wakeup = asyncio.Event()

        def _on_cancel() -> None:
            wakeup.set()
            job._abort_in_flight()

        unregister = job.token.add_callback(
            lambda: loop.call_soon_threadsafe(_on_cancel)
        )
        reporter = ProgressReporter(job.total, on_progress, region=job.region)
        opts = job.options
        batch_size = opts.max_concurrent
        batches = [
            job.coordinates[i : i + batch_size]
            for i in range(0, job.total, batch_size)
        ]
        logger.info(
            'Download %s started: region=%s tiles=%d batches=%d',
            job.id,
            job.region,
            job.total,
            len(batches),
        )
        cancelled = False
        try:
            job.progress = await reporter.emit(DownloadStatus.DOWNLOADING)
            for index, batch in enumerate(batches):
                if job.token.cancelled:
                    cancelled = True
                    break
                cancelled = await self._run_batch(job, batch, reporter)
                if cancelled:
                    break
                if index < len(batches) - 1 and opts.batch_delay_ms > 0:
                    with contextlib.suppress(TimeoutError):
                        await asyncio.wait_for(
                            wakeup.wait(), opts.batch_delay_ms / 1000
                        )
        finally:
            unregister()
            job._finished = True

        if cancelled:
            job.progress = await reporter.emit(DownloadStatus.CANCELLED)
            logger.info(
                'Download %s cancelled: %d of %d tiles downloaded',
                job.id,
                reporter.downloaded,
                reporter.total,
            )
            raise DownloadCancelledError(reporter.downloaded, reporter.total)

        job.progress = progress = await reporter.emit(DownloadStatus.COMPLETED)
        logger.info(
            'Download %s completed: %d of %d tiles downloaded, %d failed',
            job.id,
            reporter.downloaded,
            reporter.total,
            reporter.failed,
        )
        if reporter.downloaded < reporter.total * opts.min_success_ratio:
            raise DownloadIncompleteError(
                reporter.downloaded, reporter.total, progress.percentage
            )
        return progress

    async def _run_batch(
        self,
        job: DownloadJob,
        batch: Sequence[TileCoordinate],
        reporter: ProgressReporter,
    ) -> bool:
        """Run one batch to completion. Returns True if cancellation was seen."""
        tasks = [
            asyncio.create_task(self._download_tile(job, coord, reporter))
            for coord in batch
        ]
        try:
            _, pending = await asyncio.wait(
                tasks, return_when=asyncio.FIRST_EXCEPTION
            )
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            raise
        if pending:
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        for task in tasks:
            if not task.cancelled() and task.exception() is not None:
                raise task.exception()

        cancelled = False
        for task in tasks:
            if task.cancelled() or task.result() is False:
                cancelled = True
        if cancelled:
            # a fetch aborted by the transport counts as cancellation too
            job.token.cancel()
        return cancelled

    async def _download_tile(
        self,
        job: DownloadJob,
        coord: TileCoordinate,
        reporter: ProgressReporter,
    ) -> bool:
        """Fetch and store one tile.

        Returns False if the tile was skipped because of cancellation, True
        otherwise (stored, already cached or failed after retries).
        """
        if job.token.cancelled:
            return False
        key = coord.key
        opts = job.options
        if opts.skip_cached and self.cache.exists(key):
            logger.debug('Tile %s already cached, skipping fetch', key)
            job.progress = await reporter.advance()
            return True

        fetch = asyncio.ensure_future(
            fetch_with_retry(
                self._fetch,
                coord,
                retries=opts.retry_count,
                backoff_s=opts.retry_backoff_s,
            )
        )
        job._in_flight.add(fetch)
        try:
            data = await fetch
        except TileFetchError as e:
            logger.warning('Skipping tile %s: %s', key, e)
            reporter.mark_failed()
            return True
        finally:
            job._in_flight.discard(fetch)

        self.cache.put(key, data, job.region)
        job.progress = await reporter.advance()
        return True
