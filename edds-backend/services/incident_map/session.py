"""
Map session: one map canvas with its markers, location index and animator.

A MapSession is created per map view and owns everything the engine draws.
open() creates the canvas, render() rebuilds the index and places markers,
close() cancels the animation, unregisters listeners and destroys the canvas.
"""
import logging
from html import escape
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from config import Config
from i18n import i18n
from models.incident_model import Address, Incident, MapBoundaries
from services.incident_map.base import (
    EVENT_CLUSTER_CLICK,
    EVENT_CLUSTERS_CHANGED,
    ClusterInfo,
    MapRenderer,
    MarkerSpec,
)
from services.incident_map.coordinates import address_key, key_to_latlng
from services.incident_map.drilldown import SelectionKind, aggregate_incidents, resolve_selection
from services.incident_map.formatting import callout_html
from services.incident_map.highlight import HighlightAnimator, HighlightSession, HighlightSettings
from services.incident_map.location_index import LocationIndex, build_location_index
from services.incident_map.presets import MarkerStyle, resolve_cluster_preset, resolve_marker_style
from services.incident_map.scheduler import FrameScheduler

logger = logging.getLogger(__name__)


def _bucket_address(incidents: Iterable[Incident], key: str) -> Optional[Address]:
    """First address of the bucket's incidents that normalizes to key."""
    for incident in incidents:
        for address in incident.addresses:
            if address_key(address) == key:
                return address
    return None


class MapSession:
    """
    Owns a map canvas for one view.

    Args:
        renderer: Map rendering port
        scheduler: Frame scheduler for the highlight animation
        on_select: Called with one incident when a click resolves to it
        on_drilldown: Called with the incident list of a multi-incident marker or cluster
        settings: Highlight animation settings
        marker_style_rule: Bucket colour rule, defaults to Config.MARKER_STYLE_RULE
    """

    def __init__(
        self,
        renderer: MapRenderer,
        scheduler: FrameScheduler,
        on_select: Callable[[Incident], None],
        on_drilldown: Callable[[List[Incident]], None],
        settings: Optional[HighlightSettings] = None,
        marker_style_rule: Optional[str] = None,
    ):
        self.renderer = renderer
        self.on_select = on_select
        self.on_drilldown = on_drilldown
        self.marker_style_rule = marker_style_rule or Config.MARKER_STYLE_RULE
        self.animator = HighlightAnimator(renderer, scheduler, settings)

        self.index = LocationIndex({})
        self.markers: Dict[str, Any] = {}
        self.styles: Dict[str, MarkerStyle] = {}
        self.boundaries: Optional[MapBoundaries] = None
        self.error_message: Optional[str] = None
        self._listeners: List[Any] = []
        self._pending_focus: Optional[Tuple[Incident, Optional[Address]]] = None
        self._rendered = False

    @property
    def is_open(self) -> bool:
        return self.renderer.is_ready

    def open(self, boundaries: Optional[MapBoundaries] = None) -> bool:
        """
        Create the canvas, destroying the previous one first.

        Returns:
            False if the renderer failed; error_message then holds the inline notice
        """
        self.close()
        self.boundaries = boundaries or MapBoundaries.default()

        try:
            self.renderer.create_canvas(self.boundaries)
            self._listeners = [
                self.renderer.add_listener(EVENT_CLUSTER_CLICK, self.handle_cluster_click),
                self.renderer.add_listener(EVENT_CLUSTERS_CHANGED, self.restyle_clusters),
            ]
        except Exception as e:
            logger.error(f"Error initializing map: {e}", exc_info=True)
            self.error_message = i18n.t('map.error.init_failed', error=str(e))
            self.close()
            return False

        self.error_message = None
        return True

    def render(self, incidents: Iterable[Incident]) -> LocationIndex:
        """
        Rebuild the location index and place one marker per bucket.

        The new index replaces the old one in a single assignment; markers are
        placed only after the build completed.
        """
        index = build_location_index(incidents)
        self.index = index

        if not self.is_open:
            return index

        if self.markers:
            # Previous markers and clusters go with the old canvas
            if not self.open(self.boundaries):
                return index

        try:
            self._place_markers(index)
        except Exception as e:
            logger.error(f"Error placing markers: {e}", exc_info=True)
            self.error_message = i18n.t('map.error.init_failed', error=str(e))
            return index

        self.error_message = None
        self._rendered = True
        logger.info(f"Rendered {len(self.markers)} markers for {index.incident_count} incidents")

        pending, self._pending_focus = self._pending_focus, None
        if pending is not None and self.markers:
            self.focus(*pending)
        return index

    def _place_markers(self, index: LocationIndex) -> None:
        markers = {}
        styles = {}
        for key, bucket in index.items():
            style = resolve_marker_style(bucket, self.marker_style_rule)
            spec = MarkerSpec(
                key=key,
                position=key_to_latlng(key),
                preset=style.preset,
                tooltip=escape(style.tooltip),
                item_count=style.item_count,
                callout_html=callout_html(bucket[0], _bucket_address(bucket, key), style.item_count,
                                          button_event=key),
                payload={'incident_ids': [incident.id for incident in bucket]},
            )
            markers[key] = self.renderer.add_marker(spec, self.handle_marker_click)
            styles[key] = style

        self.markers = markers
        self.styles = styles
        if not markers:
            return

        self.renderer.set_clusterer(list(markers.values()))
        points = [key_to_latlng(key) for key in markers]
        if len(points) == 1:
            self.renderer.pan_to(points[0], Config.SINGLE_MARKER_ZOOM, Config.FIT_BOUNDS_DURATION_MS)
        else:
            self.renderer.fit_bounds(points, Config.FIT_BOUNDS_DURATION_MS)

    def handle_marker_click(self, key: str) -> None:
        """Single-incident marker opens details, multi-incident marker opens the list."""
        self._dispatch(aggregate_incidents([key], self.index))

    def handle_cluster_click(self, cluster: ClusterInfo) -> None:
        self._dispatch(aggregate_incidents(cluster.marker_keys, self.index))

    def _dispatch(self, incidents: List[Incident]) -> None:
        selection = resolve_selection(incidents)
        if selection.kind == SelectionKind.SINGLE:
            self.on_select(selection.incident)
        elif selection.kind == SelectionKind.LIST:
            self.on_drilldown(selection.incidents)

    def restyle_clusters(self, clusters: List[ClusterInfo]) -> None:
        """Recolour every cluster from the presets of its member markers."""
        for cluster in clusters:
            presets = [self.styles[key].preset for key in cluster.marker_keys if key in self.styles]
            try:
                self.renderer.set_cluster_preset(cluster.cluster_id, resolve_cluster_preset(presets))
            except Exception as e:
                logger.error(f"Error restyling cluster {cluster.cluster_id}: {e}", exc_info=True)

    def focus(self, incident: Incident, address: Optional[Address] = None) -> Optional[HighlightSession]:
        """
        Focus an incident from another view.

        Before the first render on the current canvas the request is kept and
        replayed once markers are placed. Later requests on an empty map are
        dropped.
        """
        if not self.is_open or not self._rendered:
            self._pending_focus = (incident, address)
            return None
        if not self.markers:
            return None
        return self.animator.focus(incident, self.index, self.markers, address)

    def close(self) -> None:
        """Tear the canvas down. Safe to call repeatedly."""
        self.animator.cancel()

        for token in self._listeners:
            try:
                self.renderer.remove_listener(token)
            except Exception as e:
                logger.error(f"Error removing map listener: {e}", exc_info=True)
        self._listeners = []

        if self.renderer.is_ready:
            try:
                self.renderer.destroy()
            except Exception as e:
                logger.error(f"Error destroying map: {e}", exc_info=True)

        self.markers = {}
        self.styles = {}
        self._rendered = False
