"""Caller-facing facade over the tile cache and the batch downloader."""

from __future__ import annotations

import asyncio
import logging
from functools import partial
from typing import TYPE_CHECKING

from domain.models import DownloaderSettings, validate_region_label
from domain.regions import PRESET_REGIONS
from infrastructure.http import make_http_session, resolve_cache_dir
from shared.constants import RegionState
from tiles.cache import TileCache
from tiles.coverage import estimate_download_size
from tiles.downloader import BatchDownloader
from tiles.errors import DownloadCancelledError, DownloadIncompleteError
from tiles.fetcher import HttpTileSource

if TYPE_CHECKING:
    from collections.abc import Sequence

    import aiohttp

    from domain.models import BoundingBox, DownloadOptions
    from shared.progress import DownloadProgress, ProgressCallback
    from tiles.cache import StorageUsage
    from tiles.downloader import DownloadJob
    from tiles.fetcher import TileFetch

logger = logging.getLogger(__name__)


class OfflineMapService:
    """Offline map operations for UI code.

    Every started download gets its own DownloadJob handle, so several jobs
    can run and be cancelled independently.

    Usage:
        async with OfflineMapService(settings) as service:
            job = await service.start_download(bounds, [12, 13], 'lampung')
            ...
            service.cancel_download(job.id)
    """

    def __init__(
        self,
        settings: DownloaderSettings | None = None,
        *,
        cache: TileCache | None = None,
        fetch: TileFetch | None = None,
    ) -> None:
        self.settings = settings or DownloaderSettings()
        self.cache = cache or TileCache(resolve_cache_dir(self.settings.cache_dir))
        self._fetch = fetch
        self._session: aiohttp.ClientSession | None = None
        self._jobs: dict[str, DownloadJob] = {}

    def _get_fetch(self) -> TileFetch:
        if self._fetch is None:
            s = self.settings
            self._session = make_http_session(s.user_agent)
            self._fetch = HttpTileSource(
                self._session,
                s.tile_server_url,
                extension=s.tile_extension,
                timeout=s.request_timeout_s,
            )
        return self._fetch

    # Downloads
    async def start_download(
        self,
        bounds: BoundingBox,
        zoom_levels: Sequence[int],
        region_label: str,
        options: DownloadOptions | None = None,
        *,
        on_progress: ProgressCallback | None = None,
    ) -> DownloadJob:
        downloader = BatchDownloader(self.cache, self._get_fetch())
        job = downloader.start(
            bounds,
            zoom_levels,
            region_label,
            options or self.settings.to_options(),
            on_progress=on_progress,
        )
        self._jobs[job.id] = job
        job.task.add_done_callback(partial(self._on_job_done, job))
        return job

    async def download_region(
        self,
        bounds: BoundingBox,
        zoom_levels: Sequence[int],
        region_label: str,
        options: DownloadOptions | None = None,
        *,
        on_progress: ProgressCallback | None = None,
    ) -> DownloadProgress:
        job = await self.start_download(
            bounds, zoom_levels, region_label, options, on_progress=on_progress
        )
        return await job.wait()

    def _on_job_done(self, job: DownloadJob, task: asyncio.Task) -> None:
        self._jobs.pop(job.id, None)
        if task.cancelled():
            logger.info('Download %s task was cancelled', job.id)
            return
        exc = task.exception()
        if exc is not None and not isinstance(
            exc, (DownloadCancelledError, DownloadIncompleteError)
        ):
            logger.error('Download %s failed', job.id, exc_info=exc)

    def get_job(self, job_id: str) -> DownloadJob | None:
        return self._jobs.get(job_id)

    def cancel_download(self, job_id: str | None = None) -> bool:
        """Cancel one job, or every active job when job_id is None.

        Returns True if at least one active job was signaled.
        """
        if job_id is not None:
            job = self._jobs.get(job_id)
            return job is not None and job.cancel()
        signaled = False
        for job in list(self._jobs.values()):
            signaled = job.cancel() or signaled
        return signaled

    def is_downloading(self, job_id: str | None = None) -> bool:
        if job_id is not None:
            job = self._jobs.get(job_id)
            return job is not None and job.active
        return any(job.active for job in self._jobs.values())

    # Cache access
    def get_cached_tile(self, key: str) -> bytes | None:
        return self.cache.get(key)

    def cache_tile(self, key: str, data: bytes, region: str | None = None) -> None:
        if region is not None:
            region = validate_region_label(region)
        self.cache.put(key, data, region)

    def clear_region_tiles(self, region: str) -> int:
        return self.cache.clear_region(validate_region_label(region))

    def clear_all_tiles(self) -> int:
        return self.cache.clear_all()

    def get_cached_regions(self) -> list[str]:
        return sorted(self.cache.list_regions())

    def get_storage_usage(self) -> StorageUsage:
        return self.cache.usage_estimate()

    # Presets and estimates
    def estimate_region(
        self, bounds: BoundingBox, zoom_levels: Sequence[int]
    ) -> tuple[int, float]:
        """Return (tile_count, approximate size in MB)."""
        return estimate_download_size(bounds, zoom_levels)

    def get_region_statuses(self) -> dict[str, RegionState]:
        """State of every preset region: downloading, downloaded or idle."""
        cached = self.cache.list_regions()
        active = {job.region for job in self._jobs.values() if job.active}
        statuses: dict[str, RegionState] = {}
        for region in PRESET_REGIONS:
            if region.id in active:
                statuses[region.id] = RegionState.DOWNLOADING
            elif region.id in cached:
                statuses[region.id] = RegionState.DOWNLOADED
            else:
                statuses[region.id] = RegionState.IDLE
        return statuses

    async def close(self) -> None:
        """Cancel running jobs, close the HTTP session and the cache."""
        self.cancel_download()
        tasks = [
            job.task
            for job in self._jobs.values()
            if job.task is not None and not job.task.done()
        ]
        try:
            # job errors are logged by _on_job_done
            await asyncio.gather(*tasks, return_exceptions=True)
        finally:
            try:
                if self._session is not None:
                    await self._session.close()
                    self._session = None
            finally:
                self.cache.close()

    async def __aenter__(self) -> OfflineMapService:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
