"""HTTP client infrastructure."""
from infrastructure.http.client import (
    make_http_session,
    resolve_cache_dir,
    validate_tile_server,
)

__all__ = [
    'make_http_session',
    'resolve_cache_dir',
    'validate_tile_server',
]
