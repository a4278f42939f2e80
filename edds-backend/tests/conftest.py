"""
Shared fixtures: a recording map renderer, a manual frame scheduler and an
incident factory.
"""
import itertools
from typing import Any, Callable, Dict, List, Optional

import pytest

from models.incident_model import Incident
from services.incident_map.base import (
    CircleStyle,
    LatLng,
    MapRenderer,
    MapRendererError,
    MarkerSpec,
)
from services.incident_map.scheduler import FrameScheduler, ScheduledHandle


class RecordingRenderer(MapRenderer):
    """In-memory MapRenderer that records every call."""

    def __init__(self, fail_on_create: bool = False):
        self.fail_on_create = fail_on_create
        self.canvas_count = 0
        self.destroy_count = 0
        self.calls: List[tuple] = []
        self.markers: Dict[str, MarkerSpec] = {}
        self.marker_callbacks: Dict[str, Callable[[str], None]] = {}
        self.clustered: List[Any] = []
        self.cluster_presets: Dict[Any, Any] = {}
        self.geometry: Dict[str, dict] = {}
        self.listeners: Dict[int, tuple] = {}
        self.opened_callouts: List[Any] = []
        self._ready = False
        self._ids = itertools.count(1)

    def _record(self, name: str, *args) -> None:
        self.calls.append((name,) + args)

    def _require_canvas(self) -> None:
        if not self._ready:
            raise MapRendererError("No map canvas")

    def calls_named(self, name: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == name]

    @property
    def is_ready(self) -> bool:
        return self._ready

    def create_canvas(self, boundaries) -> None:
        self._record('create_canvas', boundaries)
        if self.fail_on_create:
            raise MapRendererError("Map provider unavailable")
        if self._ready:
            raise MapRendererError("Canvas already exists")
        self._ready = True
        self.canvas_count += 1

    def destroy(self) -> None:
        self._record('destroy')
        self._ready = False
        self.destroy_count += 1
        self.markers.clear()
        self.marker_callbacks.clear()
        self.clustered = []
        self.geometry.clear()

    def add_marker(self, spec: MarkerSpec, on_click: Callable[[str], None]) -> Any:
        self._require_canvas()
        self._record('add_marker', spec)
        self.markers[spec.key] = spec
        self.marker_callbacks[spec.key] = on_click
        return spec.key

    def set_clusterer(self, markers: List[Any]) -> None:
        self._require_canvas()
        self._record('set_clusterer', list(markers))
        self.clustered = list(markers)

    def set_cluster_preset(self, cluster_id: Any, preset: Any) -> None:
        self._require_canvas()
        self._record('set_cluster_preset', cluster_id, preset)
        self.cluster_presets[cluster_id] = preset

    def add_circle(self, center: LatLng, radius: float, style: CircleStyle) -> Any:
        self._require_canvas()
        handle = f'circle-{next(self._ids)}'
        self._record('add_circle', center, radius, style)
        self.geometry[handle] = {
            'kind': 'circle',
            'center': center,
            'radius': radius,
            'stroke_opacity': style.stroke_opacity,
            'fill_opacity': style.fill_opacity,
            'color': style.color,
        }
        return handle

    def update_circle(self, handle: Any, radius: float, stroke_opacity: float, fill_opacity: float) -> None:
        self._require_canvas()
        self._record('update_circle', handle, radius, stroke_opacity, fill_opacity)
        if handle in self.geometry:
            self.geometry[handle].update(radius=radius, stroke_opacity=stroke_opacity, fill_opacity=fill_opacity)

    def add_highlight_marker(self, center: LatLng, hint: str, color: str, z_index: int = 1000) -> Any:
        self._require_canvas()
        handle = f'highlight-{next(self._ids)}'
        self._record('add_highlight_marker', center, hint, color, z_index)
        self.geometry[handle] = {'kind': 'highlight', 'center': center, 'hint': hint, 'color': color,
                                 'z_index': z_index}
        return handle

    def remove_geometry(self, handle: Any) -> None:
        self._record('remove_geometry', handle)
        self.geometry.pop(handle, None)

    def pan_to(self, center: LatLng, zoom: int, duration_ms: int) -> None:
        self._require_canvas()
        self._record('pan_to', center, zoom, duration_ms)

    def fit_bounds(self, points: List[LatLng], duration_ms: int) -> None:
        self._require_canvas()
        self._record('fit_bounds', list(points), duration_ms)

    def open_callout(self, handle: Any) -> None:
        self._require_canvas()
        self._record('open_callout', handle)
        self.opened_callouts.append(handle)

    def close_callout(self, handle: Any) -> None:
        self._record('close_callout', handle)

    def add_listener(self, event: str, handler: Callable[..., None]) -> Any:
        token = next(self._ids)
        self.listeners[token] = (event, handler)
        return token

    def remove_listener(self, token: Any) -> None:
        self.listeners.pop(token, None)

    # Test helpers

    def geometry_of(self, kind: str) -> Dict[str, dict]:
        return {handle: item for handle, item in self.geometry.items() if item['kind'] == kind}

    def click_marker(self, key: str) -> None:
        self.marker_callbacks[key](key)

    def emit(self, event: str, payload) -> None:
        for registered_event, handler in list(self.listeners.values()):
            if registered_event == event:
                handler(payload)


class ManualHandle(ScheduledHandle):
    def __init__(self, callback: Callable, due: Optional[float] = None):
        self.callback = callback
        self.due = due
        self.done = False
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def pending(self) -> bool:
        return not self.done and not self._cancelled


class ManualFrameScheduler(FrameScheduler):
    """Deterministic scheduler: time only moves when the test advances it."""

    def __init__(self, frame_interval_ms: float = 16, start: float = 1000.0):
        self.frame_interval_ms = frame_interval_ms
        self.time = start
        self.frames: List[ManualHandle] = []
        self.timers: List[ManualHandle] = []

    def now(self) -> float:
        return self.time

    def request_frame(self, callback: Callable[[float], None]) -> ScheduledHandle:
        handle = ManualHandle(callback)
        self.frames.append(handle)
        return handle

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> ScheduledHandle:
        handle = ManualHandle(callback, due=self.time + delay_ms)
        self.timers.append(handle)
        return handle

    @property
    def pending(self) -> List[ManualHandle]:
        return [handle for handle in self.frames + self.timers if handle.pending]

    def step(self, ms: Optional[float] = None) -> None:
        """Advance time by one frame and run the frames and timers that are due."""
        self.time += self.frame_interval_ms if ms is None else ms
        frames, self.frames = self.frames, []
        for handle in frames:
            if handle.pending:
                handle.done = True
                handle.callback(self.time)
        for handle in list(self.timers):
            if handle.pending and handle.due <= self.time:
                handle.done = True
                handle.callback()
        self.timers = [handle for handle in self.timers if handle.pending]

    def advance(self, ms: float) -> None:
        """Advance time by ms in frame-sized steps."""
        target = self.time + ms
        while self.time + self.frame_interval_ms <= target:
            self.step()
        if self.time < target:
            self.step(target - self.time)

    def run_until_idle(self, limit_ms: float = 60000) -> None:
        deadline = self.time + limit_ms
        while self.pending and self.time < deadline:
            self.step()


@pytest.fixture
def renderer():
    return RecordingRenderer()


@pytest.fixture
def failing_renderer():
    """Renderer whose map provider never initializes."""
    return RecordingRenderer(fail_on_create=True)


@pytest.fixture
def scheduler():
    return ManualFrameScheduler()


@pytest.fixture
def make_incident():
    """Factory for incidents; coordinates go into a single address unless addresses are given."""

    def _make(
        incident_id: int,
        lat: Any = 51.66077,
        lng: Any = 39.20028,
        slug: Optional[str] = 'incident',
        title: Optional[str] = None,
        addresses: Optional[List[dict]] = None,
        **fields,
    ) -> Incident:
        if addresses is None:
            addresses = [{'id': incident_id, 'latitude': lat, 'longitude': lng}]
        data = {
            'id': incident_id,
            'title': title or f'Incident {incident_id}',
            'type': {'id': 1, 'name': slug or 'Other', 'slug': slug},
            'addresses': addresses,
        }
        data.update(fields)
        return Incident.model_validate(data)

    return _make
