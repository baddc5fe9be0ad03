"""Tile retrieval from an XYZ tile server.

HttpTileSource performs a single request per call; fetch_with_retry wraps
any such fetch callable with exponential backoff.
"""

from __future__ import annotations

import asyncio
import logging
from http import HTTPStatus
from typing import TYPE_CHECKING

import aiohttp

from shared.constants import (
    DEFAULT_TILE_EXTENSION,
    DOWNLOAD_RETRY_BACKOFF_S,
    DOWNLOAD_RETRY_COUNT,
    HTTP_TIMEOUT_DEFAULT,
)
from tiles.errors import TileFetchError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from domain.models import TileCoordinate

    TileFetch = Callable[[TileCoordinate], Awaitable[bytes]]

logger = logging.getLogger(__name__)


class HttpTileSource:
    """Fetch tile bytes from '{server}/{z}/{x}/{y}.{ext}'.

    Any non-200 response or transport error raises TileFetchError.
    asyncio.CancelledError is left untouched so that an aborted request
    propagates as cancellation.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        server_url: str,
        *,
        extension: str = DEFAULT_TILE_EXTENSION,
        timeout: float = HTTP_TIMEOUT_DEFAULT,
    ) -> None:
        self._session = session
        self.server_url = server_url.rstrip('/')
        self.extension = extension.lstrip('.')
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    def url_for(self, coord: TileCoordinate) -> str:
        return f'{self.server_url}/{coord.zoom}/{coord.x}/{coord.y}.{self.extension}'

    async def __call__(self, coord: TileCoordinate) -> bytes:
        url = self.url_for(coord)
        try:
            async with self._session.get(url, timeout=self._timeout) as resp:
                if resp.status == HTTPStatus.OK:
                    return await resp.read()
                msg = f'HTTP {resp.status} from {url}'
                raise TileFetchError(coord, msg, status=resp.status)
        except (aiohttp.ClientError, TimeoutError) as e:
            msg = f'{type(e).__name__} for {url}: {e}'
            raise TileFetchError(coord, msg) from e


async def fetch_with_retry(
    fetch: TileFetch,
    coord: TileCoordinate,
    *,
    retries: int = DOWNLOAD_RETRY_COUNT,
    backoff_s: float = DOWNLOAD_RETRY_BACKOFF_S,
) -> bytes:
    """Fetch one tile, making up to `retries` attempts.

    After failed attempt k (0-based) waits backoff_s * 2**k before the next
    one. Cancellation is re-raised at once and never retried.

    Raises:
        TileFetchError: Every attempt failed; chained to the last error.
    """
    last_exc: Exception | None = None
    for attempt in range(retries):
        try:
            return await fetch(coord)
        except asyncio.CancelledError:
            raise
        except Exception as e:  # noqa: BLE001
            last_exc = e
        if attempt < retries - 1:
            delay = backoff_s * 2**attempt
            logger.debug(
                'Tile %s attempt %d/%d failed (%s), retrying in %.1fs',
                coord.key,
                attempt + 1,
                retries,
                last_exc,
                delay,
            )
            await asyncio.sleep(delay)
    msg = f'failed after {retries} attempts: {last_exc}'
    raise TileFetchError(
        coord, msg, status=getattr(last_exc, 'status', None)
    ) from last_exc
