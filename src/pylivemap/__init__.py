"""pylivemap - Async Python client for a live player map with region overlays."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pylivemap")
except PackageNotFoundError:
    __version__ = "0+local"
from pylivemap.client import LiveMapClient, ViewShell
from pylivemap.config import LiveMapConfig, MqttSettings
from pylivemap.exceptions import (
    LiveMapApiError,
    LiveMapAuthenticationError,
    LiveMapConfigError,
    LiveMapError,
    LiveMapTransportError,
    LiveMapValidationError,
    SearchSourceError,
)
from pylivemap.models import (
    EntityPosition,
    GeocodeHit,
    Overlay,
    PositionSnapshot,
    RegionFeature,
    RegionKind,
    RegionPage,
    RegionSummary,
    ResultSource,
    SearchResult,
)
from pylivemap.state.events import (
    ConnectionHealth,
    ConnectionHealthChanged,
    DetailViewRequested,
    MarkerDelta,
    OverlayReplaced,
    SearchResults,
    ViewEvent,
    ViewportChange,
)
from pylivemap.viewport import format_coordinates

__all__ = [
    "__version__",
    "ConnectionHealth",
    "ConnectionHealthChanged",
    "DetailViewRequested",
    "EntityPosition",
    "GeocodeHit",
    "LiveMapApiError",
    "LiveMapAuthenticationError",
    "LiveMapClient",
    "LiveMapConfig",
    "LiveMapConfigError",
    "LiveMapError",
    "LiveMapTransportError",
    "LiveMapValidationError",
    "MarkerDelta",
    "MqttSettings",
    "Overlay",
    "OverlayReplaced",
    "PositionSnapshot",
    "RegionFeature",
    "RegionKind",
    "RegionPage",
    "RegionSummary",
    "ResultSource",
    "SearchResult",
    "SearchResults",
    "SearchSourceError",
    "ViewEvent",
    "ViewShell",
    "ViewportChange",
    "format_coordinates",
]
