from __future__ import annotations

from pydantic import BaseModel, field_validator, model_validator

from shared.constants import (
    DEFAULT_TILE_EXTENSION,
    DEFAULT_TILE_SERVER_URL,
    DEFAULT_USER_AGENT,
    DOWNLOAD_BATCH_DELAY_MS,
    DOWNLOAD_MAX_CONCURRENT,
    DOWNLOAD_MAX_TILES_PER_JOB,
    DOWNLOAD_MIN_SUCCESS_RATIO,
    DOWNLOAD_RETRY_BACKOFF_S,
    DOWNLOAD_RETRY_COUNT,
    HTTP_TIMEOUT_DEFAULT,
    MAX_ZOOM,
    MIN_ZOOM,
    WORLD_LAT_MAX_DEG,
    WORLD_LNG_HALF_SPAN_DEG,
)


class BoundingBox(BaseModel):
    """Geographic rectangle in WGS84 degrees.

    Corners are not required to be ordered: the tile mapper takes min/max of
    the two converted corners.
    """

    model_config = {'frozen': True}

    north: float
    south: float
    east: float
    west: float

    @field_validator('north', 'south')
    @classmethod
    def validate_latitude(cls, v: float) -> float:
        if not (-WORLD_LAT_MAX_DEG <= v <= WORLD_LAT_MAX_DEG):
            msg = f'Latitude out of range [-90, 90]: {v}'
            raise ValueError(msg)
        return v

    @field_validator('east', 'west')
    @classmethod
    def validate_longitude(cls, v: float) -> float:
        if not (-WORLD_LNG_HALF_SPAN_DEG <= v <= WORLD_LNG_HALF_SPAN_DEG):
            msg = f'Longitude out of range [-180, 180]: {v}'
            raise ValueError(msg)
        return v


class TileCoordinate(BaseModel):
    """One slippy-map tile; serialized as the cache key 'zoom/x/y'."""

    model_config = {'frozen': True}

    zoom: int
    x: int
    y: int

    @model_validator(mode='after')
    def validate_grid(self) -> TileCoordinate:
        if not (MIN_ZOOM <= self.zoom <= MAX_ZOOM):
            msg = f'Zoom out of range [{MIN_ZOOM}, {MAX_ZOOM}]: {self.zoom}'
            raise ValueError(msg)
        n = 2**self.zoom
        if not (0 <= self.x < n and 0 <= self.y < n):
            msg = f'Tile {self.x}/{self.y} outside the {n}x{n} grid of zoom {self.zoom}'
            raise ValueError(msg)
        return self

    @property
    def key(self) -> str:
        return f'{self.zoom}/{self.x}/{self.y}'

    @classmethod
    def from_key(cls, key: str) -> TileCoordinate:
        """Parse a 'zoom/x/y' cache key."""
        parts = key.split('/')
        if len(parts) != 3:  # noqa: PLR2004
            msg = f"Invalid tile key {key!r}, expected 'zoom/x/y'"
            raise ValueError(msg)
        try:
            zoom, x, y = (int(p) for p in parts)
        except ValueError:
            msg = f"Invalid tile key {key!r}, expected 'zoom/x/y'"
            raise ValueError(msg) from None
        return cls(zoom=zoom, x=x, y=y)


class DownloadOptions(BaseModel):
    """Tunables of a single batch download job."""

    max_concurrent: int = DOWNLOAD_MAX_CONCURRENT
    retry_count: int = DOWNLOAD_RETRY_COUNT
    retry_backoff_s: float = DOWNLOAD_RETRY_BACKOFF_S
    batch_delay_ms: int = DOWNLOAD_BATCH_DELAY_MS
    min_success_ratio: float = DOWNLOAD_MIN_SUCCESS_RATIO
    skip_cached: bool = False
    max_tiles_per_job: int = DOWNLOAD_MAX_TILES_PER_JOB

    @field_validator('max_concurrent', 'retry_count')
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            msg = f'Value must be at least 1, got {v}'
            raise ValueError(msg)
        return v

    @field_validator('retry_backoff_s', 'batch_delay_ms', 'max_tiles_per_job')
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        if v < 0:
            msg = f'Value must not be negative, got {v}'
            raise ValueError(msg)
        return v

    @field_validator('min_success_ratio')
    @classmethod
    def validate_ratio(cls, v: float) -> float:
        if not (0.0 <= v <= 1.0):
            msg = 'Value must be in range [0.0, 1.0]'
            raise ValueError(msg)
        return v


class DownloaderSettings(DownloadOptions):
    """Persistent settings: tile server, HTTP client and job defaults."""

    model_config = {
        'extra': 'ignore',  # tolerate keys written by newer versions
    }

    tile_server_url: str = DEFAULT_TILE_SERVER_URL
    tile_extension: str = DEFAULT_TILE_EXTENSION
    user_agent: str = DEFAULT_USER_AGENT
    request_timeout_s: float = HTTP_TIMEOUT_DEFAULT
    # Empty means "resolve automatically"
    cache_dir: str = ''

    @field_validator('tile_server_url')
    @classmethod
    def validate_server_url(cls, v: str) -> str:
        v = v.strip().rstrip('/')
        if not v.startswith(('http://', 'https://')):
            msg = f'Tile server URL must start with http:// or https://: {v!r}'
            raise ValueError(msg)
        return v

    @field_validator('tile_extension')
    @classmethod
    def validate_extension(cls, v: str) -> str:
        return v.strip().lstrip('.')

    def to_options(self) -> DownloadOptions:
        return DownloadOptions.model_validate(
            self.model_dump(include=set(DownloadOptions.model_fields))
        )


def validate_region_label(region: str) -> str:
    """Return the stripped label, rejecting empty ones."""
    label = region.strip() if isinstance(region, str) else ''
    if not label:
        msg = 'Region label must be a non-empty string'
        raise ValueError(msg)
    return label


def validate_zoom_levels(zoom_levels: list[int]) -> list[int]:
    result = []
    for z in zoom_levels:
        if isinstance(z, bool) or not float(z).is_integer():
            msg = f'Zoom must be an integer: {z!r}'
            raise ValueError(msg)
        if not (MIN_ZOOM <= int(z) <= MAX_ZOOM):
            msg = f'Zoom out of range [{MIN_ZOOM}, {MAX_ZOOM}]: {z}'
            raise ValueError(msg)
        result.append(int(z))
    return result
