from enum import Enum

# Base URL of the default tile server (OpenStreetMap standard layer)
DEFAULT_TILE_SERVER_URL = 'https://tile.openstreetmap.org'

# Image extension appended to {server}/{z}/{x}/{y}
DEFAULT_TILE_EXTENSION = 'png'

# Public tile servers reject requests without an identifying User-Agent
DEFAULT_USER_AGENT = 'OfflineTiles/1.0 (+https://github.com/offline-tiles)'

# Zoom range accepted at the API boundary
MIN_ZOOM = 0
MAX_ZOOM = 22

# --- Web Mercator limits
# Latitude where the projection turns the world into a square
MERCATOR_MAX_LAT_DEG = 85.0511287798
WORLD_LNG_SPAN_DEG = 360.0
WORLD_LNG_HALF_SPAN_DEG = 180.0
WORLD_LAT_MAX_DEG = 90.0

# --- Batch download defaults
# Number of tiles fetched simultaneously (also the batch size)
DOWNLOAD_MAX_CONCURRENT = 5
# Total attempts per tile (first try included)
DOWNLOAD_RETRY_COUNT = 3
# Backoff time unit in seconds: attempt k waits RETRY_BACKOFF_S * 2**k
DOWNLOAD_RETRY_BACKOFF_S = 1.0
# Pause between batches (ms) to keep the tile server happy
DOWNLOAD_BATCH_DELAY_MS = 100
# Share of tiles that must succeed for a job to count as successful
DOWNLOAD_MIN_SUCCESS_RATIO = 0.9
# Refuse jobs larger than this many tiles (0 disables the check)
DOWNLOAD_MAX_TILES_PER_JOB = 50_000

# --- HTTP
HTTP_TIMEOUT_DEFAULT = 20.0
HTTP_PROBE_TIMEOUT = 10.0
HTTP_OK = 200
HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403

# --- Tile cache
# Environment variable overriding the cache location
TILE_CACHE_DIR_ENV = 'OFFLINE_TILES_CACHE_DIR'
# Directory name used under LOCALAPPDATA / home
APP_DIR_NAME = 'OfflineTiles'
# Relative cache dir (resolved against LOCALAPPDATA or home)
TILE_CACHE_DIR = '.cache/tiles'
# SQLite file holding every cached tile
TILE_CACHE_DB_NAME = 'tiles.db'
# SQLite page cache (negative value = KiB)
TILE_CACHE_SQLITE_CACHE_KB = 64000

# Average tile weight used for download estimates (KB)
AVG_TILE_SIZE_KB = 20

# --- Logging
LOG_FILE_NAME = 'offline_tiles.log'
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Width of the console progress bar (characters)
PROGRESS_BAR_WIDTH = 30


class DownloadStatus(str, Enum):
    DOWNLOADING = 'downloading'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'


class RegionState(str, Enum):
    IDLE = 'idle'
    DOWNLOADING = 'downloading'
    DOWNLOADED = 'downloaded'
