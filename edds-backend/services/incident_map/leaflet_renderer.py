"""
NiceGUI/Leaflet implementation of the map rendering port.

Markers, clusters and transient geometry live on the browser side in
window.eddsMaps[<element id>]; this class drives them with run_javascript and
receives clicks and cluster changes back as element events.
"""
import itertools
import json
import logging
from typing import Any, Callable, Dict, List, Optional

from nicegui import ui

from config import Config
from services.incident_map.base import (
    EVENT_CLUSTER_CLICK,
    EVENT_CLUSTERS_CHANGED,
    CircleStyle,
    ClusterInfo,
    LatLng,
    MapRenderer,
    MapRendererError,
    MarkerSpec,
)

logger = logging.getLogger(__name__)

HEAD_HTML = '''
    <link rel="stylesheet" href="https://unpkg.com/leaflet@1.9.4/dist/leaflet.css" />
    <link rel="stylesheet" href="https://unpkg.com/leaflet.markercluster@1.4.1/dist/MarkerCluster.css" />
    <script src="https://unpkg.com/leaflet@1.9.4/dist/leaflet.js"></script>
    <script src="https://unpkg.com/leaflet.markercluster@1.4.1/dist/leaflet.markercluster.js"></script>
    <script>
        window.eddsMaps = window.eddsMaps || {};

        // Run fn(registry) once the Leaflet map of a ui.leaflet element and the
        // MarkerCluster plugin are both available
        window.eddsWhenReady = function(elementId, fn, attempts) {
            attempts = attempts || 0;
            var element = getElement(elementId);
            if (element && element.map && typeof L !== 'undefined' && typeof L.markerClusterGroup !== 'undefined') {
                var registry = window.eddsMaps[elementId];
                if (!registry) {
                    registry = {map: element.map, element: element, markers: {}, geometry: {},
                                cluster: null, clusterColors: {}};
                    window.eddsMaps[elementId] = registry;
                }
                fn(registry);
                return;
            }
            if (attempts >= 150) {
                console.error('[EDDS] Timeout waiting for map ' + elementId);
                return;
            }
            setTimeout(function() { window.eddsWhenReady(elementId, fn, attempts + 1); }, 100);
        };

        window.eddsDotIcon = function(color, size) {
            return L.divIcon({
                html: '<div style="background: #fff; width: ' + size + 'px; height: ' + size + 'px; border: 5px solid ' + color + '; border-radius: 50%; box-shadow: 0 0 4px rgba(0,0,0,0.4);"></div>',
                className: 'edds-marker',
                iconSize: L.point(size, size)
            });
        };

        window.eddsClusterIcon = function(registry, cluster) {
            var color = registry.clusterColors[L.stamp(cluster)] || '#007bff';
            return L.divIcon({
                html: '<div style="background: ' + color + '; width: 32px; height: 32px; border: 3px solid #fff; border-radius: 50%; display: flex; align-items: center; justify-content: center; font-size: 13px; font-weight: bold; color: #fff;"><span>' + cluster.getChildCount() + '</span></div>',
                className: 'edds-cluster-icon',
                iconSize: L.point(32, 32)
            });
        };

        window.eddsClusterInfo = function(cluster) {
            return {
                id: L.stamp(cluster),
                keys: cluster.getAllChildMarkers().map(function(marker) { return marker.options.eddsKey; })
            };
        };

        window.eddsReportClusters = function(registry) {
            if (!registry.cluster) {
                return;
            }
            var clusters = [];
            registry.cluster._featureGroup.eachLayer(function(layer) {
                if (layer instanceof L.MarkerCluster) {
                    clusters.push(window.eddsClusterInfo(layer));
                }
            });
            registry.element.$emit('edds-clusters-changed', clusters);
        };
    </script>
'''

_geometry_ids = itertools.count(1)


class LeafletRenderer(MapRenderer):
    """
    MapRenderer on ui.leaflet.

    Args:
        container: NiceGUI element the map is created in
        height_classes: Tailwind classes sizing the map element
    """

    def __init__(self, container: ui.element, height_classes: str = 'w-full h-[600px]'):
        self.container = container
        self.height_classes = height_classes
        self._map: Optional[ui.leaflet] = None
        self._listeners: Dict[int, tuple] = {}
        self._listener_ids = itertools.count(1)
        self._marker_callbacks: Dict[str, Callable[[str], None]] = {}
        with self.container:
            ui.add_head_html(HEAD_HTML)

    @property
    def is_ready(self) -> bool:
        return self._map is not None

    def _run(self, body: str) -> None:
        """Run body with `registry` bound once the map is ready."""
        if self._map is None:
            raise MapRendererError("Map canvas does not exist")
        self._map.client.run_javascript(
            f'window.eddsWhenReady({self._map.id}, function(registry) {{ {body} }});'
        )

    def create_canvas(self, boundaries) -> None:
        if self._map is not None:
            raise MapRendererError("Map canvas already exists, destroy it first")
        try:
            with self.container:
                self._map = ui.leaflet(center=boundaries.center, zoom=Config.DEFAULT_ZOOM).classes(self.height_classes)
        except Exception as e:
            self._map = None
            raise MapRendererError(f"Failed to create map: {e}") from e

        self._map.on('edds-marker-click', self._handle_marker_click)
        self._map.on('edds-cluster-click', self._handle_cluster_click)
        self._map.on('edds-clusters-changed', self._handle_clusters_changed)

        bounds = [list(point) for point in boundaries.bounds]
        self._run(f'''
            registry.map.options.maxZoom = 19;
            registry.map.setMaxBounds({json.dumps(bounds)});
            registry.map.fitBounds({json.dumps(bounds)}, {{animate: true, duration: 0.3}});
            registry.map.on('moveend zoomend', function() {{ window.eddsReportClusters(registry); }});
        ''')
        logger.info(f"Created map canvas {self._map.id}")

    def destroy(self) -> None:
        if self._map is None:
            return
        element_id = self._map.id
        try:
            self._map.client.run_javascript(f'delete window.eddsMaps[{element_id}];')
            self._map.delete()
        finally:
            self._map = None
            self._marker_callbacks.clear()
            logger.info(f"Destroyed map canvas {element_id}")

    def add_marker(self, spec: MarkerSpec, on_click: Callable[[str], None]) -> Any:
        self._marker_callbacks[spec.key] = on_click
        position = json.dumps(list(spec.position.as_tuple()))
        key = json.dumps(spec.key)
        self._run(f'''
            var marker = L.marker({position}, {{
                icon: window.eddsDotIcon({json.dumps(spec.preset.color)}, 18),
                eddsKey: {key}
            }});
            marker.bindTooltip({json.dumps(spec.tooltip)});
            marker.bindPopup({json.dumps(spec.callout_html or '')}, {{closeButton: false, maxWidth: 320}});
            marker.on('popupopen', function(e) {{
                var button = e.popup.getElement().querySelector('[data-edds-event]');
                if (button) {{
                    button.onclick = function() {{ registry.element.$emit('edds-marker-click', {key}); }};
                }}
            }});
            registry.markers[{key}] = marker;
        ''')
        return spec.key

    def set_clusterer(self, markers: List[Any]) -> None:
        self._run(f'''
            if (registry.cluster) {{
                registry.map.removeLayer(registry.cluster);
            }}
            var cluster = L.markerClusterGroup({{
                showCoverageOnHover: false,
                zoomToBoundsOnClick: false,
                spiderfyOnMaxZoom: true,
                maxClusterRadius: {Config.CLUSTER_RADIUS},
                iconCreateFunction: function(c) {{ return window.eddsClusterIcon(registry, c); }}
            }});
            cluster.on('clusterclick', function(e) {{
                registry.element.$emit('edds-cluster-click', window.eddsClusterInfo(e.layer));
            }});
            cluster.on('animationend', function() {{ window.eddsReportClusters(registry); }});
            {json.dumps(list(markers))}.forEach(function(key) {{
                if (registry.markers[key]) {{
                    cluster.addLayer(registry.markers[key]);
                }}
            }});
            registry.cluster = cluster;
            registry.map.addLayer(cluster);
            window.eddsReportClusters(registry);
        ''')

    def set_cluster_preset(self, cluster_id: Any, preset: Any) -> None:
        self._run(f'''
            registry.clusterColors[{json.dumps(cluster_id)}] = {json.dumps(preset.color)};
            var layer = registry.cluster && registry.cluster._featureGroup.getLayer({json.dumps(cluster_id)});
            if (layer) {{
                layer.setIcon(window.eddsClusterIcon(registry, layer));
            }}
        ''')

    def add_circle(self, center: LatLng, radius: float, style: CircleStyle) -> Any:
        handle = f'circle-{next(_geometry_ids)}'
        options = {
            'radius': radius,
            'color': style.color,
            'fillColor': style.fill_color,
            'opacity': style.stroke_opacity,
            'fillOpacity': style.fill_opacity,
            'weight': style.stroke_width,
        }
        self._run(f'''
            registry.geometry[{json.dumps(handle)}] =
                L.circle({json.dumps(list(center.as_tuple()))}, {json.dumps(options)}).addTo(registry.map);
        ''')
        return handle

    def update_circle(self, handle: Any, radius: float, stroke_opacity: float, fill_opacity: float) -> None:
        self._run(f'''
            var circle = registry.geometry[{json.dumps(handle)}];
            if (circle) {{
                circle.setRadius({radius});
                circle.setStyle({{opacity: {stroke_opacity}, fillOpacity: {fill_opacity}}});
            }}
        ''')

    def add_highlight_marker(self, center: LatLng, hint: str, color: str, z_index: int = 1000) -> Any:
        handle = f'highlight-{next(_geometry_ids)}'
        self._run(f'''
            registry.geometry[{json.dumps(handle)}] = L.marker({json.dumps(list(center.as_tuple()))}, {{
                icon: window.eddsDotIcon({json.dumps(color)}, 24),
                zIndexOffset: {z_index}
            }}).bindTooltip({json.dumps(hint)}).addTo(registry.map);
        ''')
        return handle

    def remove_geometry(self, handle: Any) -> None:
        if handle is None or self._map is None:
            return
        self._run(f'''
            var layer = registry.geometry[{json.dumps(handle)}];
            if (layer) {{
                registry.map.removeLayer(layer);
                delete registry.geometry[{json.dumps(handle)}];
            }}
        ''')

    def pan_to(self, center: LatLng, zoom: int, duration_ms: int) -> None:
        self._run(f'''
            registry.map.setView({json.dumps(list(center.as_tuple()))}, {zoom},
                                 {{animate: true, duration: {duration_ms / 1000.0}}});
        ''')

    def fit_bounds(self, points: List[LatLng], duration_ms: int) -> None:
        self._run(f'''
            registry.map.fitBounds({json.dumps([list(p.as_tuple()) for p in points])},
                                   {{padding: [30, 30], animate: true, duration: {duration_ms / 1000.0}}});
        ''')

    def open_callout(self, handle: Any) -> None:
        key = json.dumps(handle)
        self._run(f'''
            var marker = registry.markers[{key}];
            if (marker && registry.cluster) {{
                registry.cluster.zoomToShowLayer(marker, function() {{ marker.openPopup(); }});
            }}
        ''')

    def close_callout(self, handle: Any) -> None:
        self._run(f'''
            var marker = registry.markers[{json.dumps(handle)}];
            if (marker) {{
                marker.closePopup();
            }}
        ''')

    def add_listener(self, event: str, handler: Callable[..., None]) -> Any:
        if event not in (EVENT_CLUSTER_CLICK, EVENT_CLUSTERS_CHANGED):
            raise MapRendererError(f"Unsupported map event: {event}")
        token = next(self._listener_ids)
        self._listeners[token] = (event, handler)
        return token

    def remove_listener(self, token: Any) -> None:
        self._listeners.pop(token, None)

    def _emit(self, event: str, payload) -> None:
        for registered_event, handler in list(self._listeners.values()):
            if registered_event == event:
                handler(payload)

    def _handle_marker_click(self, e) -> None:
        key = e.args
        callback = self._marker_callbacks.get(key)
        if callback is None:
            logger.warning(f"Click on unknown marker {key}")
            return
        callback(key)

    def _handle_cluster_click(self, e) -> None:
        data = e.args or {}
        self._emit(EVENT_CLUSTER_CLICK, ClusterInfo(cluster_id=data.get('id'), marker_keys=data.get('keys', [])))

    def _handle_clusters_changed(self, e) -> None:
        clusters = [
            ClusterInfo(cluster_id=item.get('id'), marker_keys=item.get('keys', []))
            for item in (e.args or [])
        ]
        self._emit(EVENT_CLUSTERS_CHANGED, clusters)
