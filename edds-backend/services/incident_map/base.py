"""
Base classes for the map rendering port.

The map engine never talks to a map library directly. Everything it draws goes
through a MapRenderer, so the provider (Leaflet in the dashboard, a recording
fake in tests) can be replaced without touching the engine.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Tuple


# Renderer events the engine listens to
EVENT_CLUSTER_CLICK = "cluster_click"
EVENT_CLUSTERS_CHANGED = "clusters_changed"


class MapRendererError(Exception):
    """Raised by renderers when the map canvas is missing or the provider fails"""
    pass


@dataclass(frozen=True)
class LatLng:
    """Geographic point in degrees."""
    lat: float
    lng: float

    def as_tuple(self) -> Tuple[float, float]:
        return (self.lat, self.lng)


@dataclass
class MarkerSpec:
    """Everything a renderer needs to place one bucket marker."""
    key: str
    position: LatLng
    preset: Any  # MarkerPreset
    tooltip: str  # HTML, already escaped
    item_count: int
    callout_html: Optional[str] = None
    payload: dict = field(default_factory=dict)


@dataclass
class CircleStyle:
    """Stroke and fill of transient circle geometry."""
    color: str
    fill_color: str
    stroke_opacity: float
    fill_opacity: float
    stroke_width: int = 2


@dataclass
class ClusterInfo:
    """A renderer-owned cluster as reported back to the engine."""
    cluster_id: Any
    marker_keys: List[str]


class MapRenderer(ABC):
    """
    Rendering port for the incident map.

    Handles returned by add_* methods are opaque to the engine; they are only
    passed back to the same renderer.
    """

    @abstractmethod
    def create_canvas(self, boundaries) -> None:
        """
        Create the map canvas.

        Args:
            boundaries: MapBoundaries with the initial center and restricted area

        Raises:
            MapRendererError: the provider is unavailable or failed to initialize
        """
        pass

    @abstractmethod
    def destroy(self) -> None:
        """Destroy the canvas and everything drawn on it."""
        pass

    @property
    @abstractmethod
    def is_ready(self) -> bool:
        """True while a canvas exists."""
        pass

    @abstractmethod
    def add_marker(self, spec: MarkerSpec, on_click: Callable[[str], None]) -> Any:
        """
        Place a bucket marker.

        Args:
            spec: Marker position, preset and tooltip
            on_click: Called with the marker's bucket key when the marker or
                its callout button is clicked

        Returns:
            Marker handle
        """
        pass

    @abstractmethod
    def set_clusterer(self, markers: List[Any]) -> None:
        """
        Group markers into the provider's clusterer.

        The clusterer reports back through listeners: EVENT_CLUSTER_CLICK with
        a ClusterInfo, EVENT_CLUSTERS_CHANGED with the list of current
        clusters whenever the provider regroups markers (markers added to the
        map, zoom or pan).
        """
        pass

    @abstractmethod
    def set_cluster_preset(self, cluster_id: Any, preset: Any) -> None:
        """Restyle one cluster with a ClusterPreset."""
        pass

    @abstractmethod
    def add_circle(self, center: LatLng, radius: float, style: CircleStyle) -> Any:
        """Draw a circle (radius in meters), returns its handle."""
        pass

    @abstractmethod
    def update_circle(self, handle: Any, radius: float, stroke_opacity: float, fill_opacity: float) -> None:
        pass

    @abstractmethod
    def add_highlight_marker(self, center: LatLng, hint: str, color: str, z_index: int = 1000) -> Any:
        """Place a transient marker above all other markers, returns its handle.

        The hint is HTML and reaches the renderer already escaped.
        """
        pass

    @abstractmethod
    def remove_geometry(self, handle: Any) -> None:
        """Remove a circle or highlight marker; unknown handles are ignored."""
        pass

    @abstractmethod
    def pan_to(self, center: LatLng, zoom: int, duration_ms: int) -> None:
        """Animate the viewport to center at zoom."""
        pass

    @abstractmethod
    def fit_bounds(self, points: List[LatLng], duration_ms: int) -> None:
        """Animate the viewport to contain all points."""
        pass

    @abstractmethod
    def open_callout(self, handle: Any) -> None:
        """Open the info callout of a marker."""
        pass

    @abstractmethod
    def close_callout(self, handle: Any) -> None:
        pass

    @abstractmethod
    def add_listener(self, event: str, handler: Callable[..., None]) -> Any:
        """Register a provider event handler, returns a token for remove_listener."""
        pass

    @abstractmethod
    def remove_listener(self, token: Any) -> None:
        pass
