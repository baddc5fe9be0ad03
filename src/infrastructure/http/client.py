from __future__ import annotations

import contextlib
import os
import ssl
from pathlib import Path

import aiohttp
import certifi

from shared.constants import (
    APP_DIR_NAME,
    DEFAULT_TILE_EXTENSION,
    DEFAULT_USER_AGENT,
    HTTP_FORBIDDEN,
    HTTP_OK,
    HTTP_PROBE_TIMEOUT,
    HTTP_UNAUTHORIZED,
    TILE_CACHE_DIR,
    TILE_CACHE_DIR_ENV,
)


def resolve_cache_dir(configured: str | Path | None = None) -> Path:
    """Pick the tile cache directory.

    Order: explicit value, OFFLINE_TILES_CACHE_DIR, LOCALAPPDATA, home.
    """
    if configured:
        return Path(configured).expanduser().resolve()

    env_dir = os.getenv(TILE_CACHE_DIR_ENV)
    if env_dir:
        return Path(env_dir).expanduser().resolve()

    local = os.getenv('LOCALAPPDATA')
    if local:
        return (Path(local) / APP_DIR_NAME / TILE_CACHE_DIR).resolve()
    # Fallback: user's home directory
    return (Path.home() / '.offline_tiles_cache' / 'tiles').resolve()


def make_http_session(user_agent: str = DEFAULT_USER_AGENT) -> aiohttp.ClientSession:
    # SSL context with certifi's CA bundle
    ssl_context = ssl.create_default_context(cafile=certifi.where())
    connector = aiohttp.TCPConnector(ssl=ssl_context)
    return aiohttp.ClientSession(
        connector=connector,
        headers={'User-Agent': user_agent},
    )


async def validate_tile_server(
    server_url: str,
    extension: str = DEFAULT_TILE_EXTENSION,
    user_agent: str = DEFAULT_USER_AGENT,
) -> None:
    """Check that the tile server answers for tile 0/0/0."""
    ssl_context = ssl.create_default_context(cafile=certifi.where())
    connector = aiohttp.TCPConnector(ssl=ssl_context)

    test_url = f'{server_url.rstrip("/")}/0/0/0.{extension.lstrip(".")}'
    timeout = aiohttp.ClientTimeout(
        total=HTTP_PROBE_TIMEOUT,
        connect=HTTP_PROBE_TIMEOUT,
        sock_connect=HTTP_PROBE_TIMEOUT,
        sock_read=HTTP_PROBE_TIMEOUT,
    )
    try:
        async with (
            aiohttp.ClientSession(
                connector=connector, headers={'User-Agent': user_agent}
            ) as client,
            client.get(test_url, timeout=timeout) as resp,
        ):
            sc = resp.status
            if sc == HTTP_OK:
                with contextlib.suppress(Exception):
                    await resp.read()
                return
            if sc in (HTTP_UNAUTHORIZED, HTTP_FORBIDDEN):
                msg = (
                    f'Tile server refused access (HTTP {sc}). '
                    'Check the server URL, API key and User-Agent.'
                )
                raise RuntimeError(msg)
            msg = f'Tile server error (HTTP {sc}). Try again later.'
            raise RuntimeError(msg)
    except (TimeoutError, aiohttp.ClientConnectorError, aiohttp.ClientOSError):
        msg = 'No internet connection or tile server unreachable.'
        raise RuntimeError(msg) from None
