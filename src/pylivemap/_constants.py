"""Internal constants shared across the library."""

import re

BASE_URL = "http://localhost:8080"
WS_URL = "ws://localhost:8081"
NOMINATIM_URL = "https://nominatim.openstreetmap.org/search"
USER_AGENT = "pylivemap/1.0"

REGION_ALL_ENDPOINT = "/api/v1/region/all"
REGION_GEOJSON_ENDPOINT = "/api/v1/region/all/geojson"
REGION_ENDPOINT = "/api/v1/region/{region_id}"

POSITION_EVENT = "playerLocations"
AVATAR_URL = "https://mc-heads.net/avatar/{identity}"

# ------------------------------------------------------------------
# Camera
# ------------------------------------------------------------------

DEFAULT_CENTER_LAT = 58.115092
DEFAULT_CENTER_LON = -107.3701249
DEFAULT_ZOOM = 2.5
FOCUS_ZOOM = 16.0
PLAYER_FOCUS_ZOOM = 14.0

# ------------------------------------------------------------------
# Search
# ------------------------------------------------------------------

SEARCH_DEBOUNCE_SECONDS = 0.2
SEARCH_RESULT_LIMIT = 50

# lat in [-90, 90], lon in [-180, 180], optional sign and decimals.
COORDINATE_PAIR_RE = re.compile(
    r"^[-+]?([1-8]?\d(\.\d+)?|90(\.0+)?),\s*[-+]?(180(\.0+)?|((1[0-7]\d)|([1-9]?\d))(\.\d+)?)$"
)

# ------------------------------------------------------------------
# Deep links
# ------------------------------------------------------------------

UUID_RE = re.compile(r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$")
