"""
Focus/highlight animation.

Focusing an incident recenters the map on its marker, drops a highlight
marker on top and pulses a growing, fading circle around it:

    IDLE -> CENTERING -> PULSING -> FADING -> IDLE

Only one HighlightSession runs at a time. Every frame request and timer a
session schedules is kept on the session, so superseding or cancelling it
releases all of them and a stale tick can never touch the next session's
geometry.
"""
import itertools
import logging
from dataclasses import dataclass, field
from enum import Enum
from html import escape
from typing import Any, Callable, List, Mapping, Optional

from config import Config
from models.incident_model import Address, Incident
from services.incident_map.base import CircleStyle, LatLng, MapRenderer
from services.incident_map.coordinates import key_to_latlng
from services.incident_map.location_index import LocationIndex
from services.incident_map.scheduler import FrameScheduler, ScheduledHandle

logger = logging.getLogger(__name__)

HIGHLIGHT_Z_INDEX = 1000


class HighlightState(str, Enum):
    IDLE = "idle"
    CENTERING = "centering"
    PULSING = "pulsing"
    FADING = "fading"


@dataclass(frozen=True)
class HighlightSettings:
    """Timings (ms), radii (m) and colours of the focus animation"""
    center_duration_ms: int = 500
    focus_zoom: int = 16
    pulse_duration_ms: int = 1500
    start_radius: float = 10
    end_radius: float = 50
    stroke_opacity: float = 0.8
    fill_opacity_factor: float = 0.5
    stroke_width: int = 2
    removal_delay_ms: int = 1000
    color: str = '#FF5722'

    @classmethod
    def from_config(cls) -> 'HighlightSettings':
        return cls(**Config.highlight_settings())

    def radius_at(self, fraction: float) -> float:
        return self.start_radius + (self.end_radius - self.start_radius) * fraction

    def stroke_opacity_at(self, fraction: float) -> float:
        return self.stroke_opacity - fraction * self.stroke_opacity

    def fill_opacity_at(self, fraction: float) -> float:
        return self.stroke_opacity_at(fraction) * self.fill_opacity_factor


_session_ids = itertools.count(1)


@dataclass
class HighlightSession:
    """State of one focus animation run."""
    incident: Incident
    key: str
    center: LatLng
    marker: Any
    settings: HighlightSettings
    token: int = field(default_factory=lambda: next(_session_ids))
    state: HighlightState = HighlightState.IDLE
    started_at: Optional[float] = None
    frame: Optional[ScheduledHandle] = None
    timers: List[ScheduledHandle] = field(default_factory=list)
    circle: Any = None
    highlight: Any = None
    cancelled: bool = False
    completed: bool = False

    def progress(self, now: float) -> float:
        """Elapsed fraction f of the pulse, 0 before it starts."""
        if self.started_at is None:
            return 0.0
        return (now - self.started_at) / self.settings.pulse_duration_ms

    @property
    def pending_handles(self) -> List[ScheduledHandle]:
        handles = [timer for timer in self.timers if not timer.cancelled]
        if self.frame is not None and not self.frame.cancelled:
            handles.append(self.frame)
        return handles

    def release_handles(self) -> None:
        """Cancel the pending frame request and every timer."""
        if self.frame is not None:
            self.frame.cancel()
            self.frame = None
        for timer in self.timers:
            timer.cancel()
        self.timers.clear()


class HighlightAnimator:
    """
    Runs HighlightSessions against a renderer.

    Args:
        renderer: Map rendering port
        scheduler: Frame/timer scheduler of the host
        settings: Animation settings, defaults from config
        on_state_change: Optional observer called with (session, state)
    """

    def __init__(
        self,
        renderer: MapRenderer,
        scheduler: FrameScheduler,
        settings: Optional[HighlightSettings] = None,
        on_state_change: Optional[Callable[[HighlightSession, HighlightState], None]] = None,
    ):
        self.renderer = renderer
        self.scheduler = scheduler
        self.settings = settings or HighlightSettings.from_config()
        self.on_state_change = on_state_change
        self._session: Optional[HighlightSession] = None

    @property
    def session(self) -> Optional[HighlightSession]:
        """Current session, including one whose highlight marker is still fading out."""
        return self._session

    @property
    def state(self) -> HighlightState:
        return self._session.state if self._session else HighlightState.IDLE

    def focus(
        self,
        incident: Incident,
        index: LocationIndex,
        markers: Mapping[str, Any],
        address: Optional[Address] = None,
    ) -> Optional[HighlightSession]:
        """
        Start the focus animation for an incident.

        Silently does nothing when the incident has no usable coordinates or
        no marker on the map. Any running session is cancelled first.

        Returns:
            The new session, or None when nothing was started
        """
        key = index.key_for_incident(incident, address)
        if key is None:
            logger.debug(f"Incident {incident.id} has no coordinates on the map, nothing to focus")
            return None

        marker = markers.get(key)
        if marker is None:
            logger.debug(f"No marker for incident {incident.id} at {key}")
            return None

        self.cancel()

        session = HighlightSession(
            incident=incident,
            key=key,
            center=key_to_latlng(key),
            marker=marker,
            settings=self.settings,
        )
        self._session = session
        settings = self.settings

        try:
            self._set_state(session, HighlightState.CENTERING)
            self.renderer.pan_to(session.center, settings.focus_zoom, settings.center_duration_ms)
            session.highlight = self.renderer.add_highlight_marker(
                session.center, escape(incident.title), settings.color, z_index=HIGHLIGHT_Z_INDEX
            )

            session.circle = self.renderer.add_circle(
                session.center,
                settings.start_radius,
                CircleStyle(
                    color=settings.color,
                    fill_color=settings.color,
                    stroke_opacity=settings.stroke_opacity,
                    fill_opacity=settings.fill_opacity_at(0.0),
                    stroke_width=settings.stroke_width,
                ),
            )
            session.started_at = self.scheduler.now()
            self._set_state(session, HighlightState.PULSING)
            session.frame = self.scheduler.request_frame(lambda now: self._tick(session, now))
        except Exception as e:
            logger.error(f"Error focusing incident {incident.id}: {e}", exc_info=True)
            self._abort(session)
            return None

        logger.info(f"Focusing incident {incident.id} at {key}")
        return session

    def cancel(self) -> None:
        """Cancel the current session and remove its geometry. Idempotent."""
        session = self._session
        if session is None:
            return
        self._session = None
        session.cancelled = True
        session.release_handles()
        self._remove_geometry(session)
        if session.state != HighlightState.IDLE:
            self._set_state(session, HighlightState.IDLE)
        logger.debug(f"Highlight session {session.token} cancelled")

    def _is_current(self, session: HighlightSession) -> bool:
        return self._session is session and not session.cancelled

    def _tick(self, session: HighlightSession, now: float) -> None:
        if not self._is_current(session):
            # Stale frame from a superseded session
            return
        session.frame = None

        try:
            fraction = session.progress(now)
            if fraction < 1:
                settings = session.settings
                self.renderer.update_circle(
                    session.circle,
                    settings.radius_at(fraction),
                    settings.stroke_opacity_at(fraction),
                    settings.fill_opacity_at(fraction),
                )
                session.frame = self.scheduler.request_frame(lambda t: self._tick(session, t))
            else:
                self._finish(session)
        except Exception as e:
            logger.error(f"Error animating highlight for incident {session.incident.id}: {e}", exc_info=True)
            self._abort(session)

    def _finish(self, session: HighlightSession) -> None:
        self._set_state(session, HighlightState.FADING)
        self.renderer.remove_geometry(session.circle)
        session.circle = None

        session.timers.append(
            self.scheduler.call_later(session.settings.removal_delay_ms, lambda: self._remove_highlight(session))
        )
        self.renderer.open_callout(session.marker)

        session.completed = True
        self._set_state(session, HighlightState.IDLE)

    def _remove_highlight(self, session: HighlightSession) -> None:
        if not self._is_current(session):
            return
        session.timers.clear()
        try:
            self.renderer.remove_geometry(session.highlight)
            session.highlight = None
        except Exception as e:
            logger.error(f"Error removing highlight marker: {e}", exc_info=True)
        self._session = None

    def _abort(self, session: HighlightSession) -> None:
        session.cancelled = True
        session.release_handles()
        self._remove_geometry(session)
        self._set_state(session, HighlightState.IDLE)
        if self._session is session:
            self._session = None

    def _remove_geometry(self, session: HighlightSession) -> None:
        for attr in ('circle', 'highlight'):
            handle = getattr(session, attr)
            if handle is None:
                continue
            try:
                self.renderer.remove_geometry(handle)
            except Exception as e:
                logger.error(f"Error removing highlight geometry: {e}", exc_info=True)
            setattr(session, attr, None)

    def _set_state(self, session: HighlightSession, state: HighlightState) -> None:
        session.state = state
        if self.on_state_change is None:
            return
        try:
            self.on_state_change(session, state)
        except Exception as e:
            logger.error(f"Highlight state observer failed: {e}", exc_info=True)
