"""
Configuration settings for the EDDS map dashboard.
Loads configuration from config.yaml and environment variables.
"""
import os
import yaml
from pathlib import Path
from typing import Optional, Dict, Any
from dotenv import load_dotenv

load_dotenv()

# Load YAML configuration
config_path = Path(__file__).parent / "config.yaml"
with open(config_path, 'r', encoding='utf-8') as f:
    _yaml_config = yaml.safe_load(f) or {}


class Config:
    """Application configuration loaded from YAML and environment variables."""

    # Language Configuration
    LANGUAGE: str = os.getenv("EDDS_LANGUAGE", _yaml_config.get('language', 'ru'))
    SUPPORTED_LANGUAGES = ('ru', 'en')

    # EDDS API (incident data port)
    _api = _yaml_config.get('api', {})
    API_BASE_URL: str = os.getenv("EDDS_API_URL", _api.get('base_url', 'http://localhost:8080/api'))
    API_TIMEOUT: float = float(os.getenv("EDDS_API_TIMEOUT", _api.get('timeout', 30)))
    API_TOKEN: Optional[str] = os.getenv("EDDS_API_TOKEN", _api.get('token'))

    # Map view
    _map = _yaml_config.get('map', {})
    DEFAULT_BOUNDARIES: Dict[str, float] = _map.get('default_boundaries', {
        'center_lat': 51.660772,
        'center_lng': 39.200289,
        'south_west_lat': 51.55,
        'south_west_lng': 39.05,
        'north_east_lat': 51.75,
        'north_east_lng': 39.45,
    })
    DEFAULT_ZOOM: int = _map.get('default_zoom', 12)
    SINGLE_MARKER_ZOOM: int = _map.get('single_marker_zoom', 15)
    FIT_BOUNDS_DURATION_MS: int = _map.get('fit_bounds_duration_ms', 500)
    CLUSTER_RADIUS: int = _map.get('cluster_radius', 60)
    MARKER_STYLE_RULE: str = os.getenv("EDDS_MARKER_STYLE_RULE", _map.get('marker_style_rule', 'first_incident'))
    MARKER_STYLE_RULES = ('first_incident', 'severity')

    # Focus / highlight animation
    _highlight = _yaml_config.get('highlight', {})
    HIGHLIGHT_CENTER_DURATION_MS: int = _highlight.get('center_duration_ms', 500)
    HIGHLIGHT_FOCUS_ZOOM: int = _highlight.get('focus_zoom', 16)
    HIGHLIGHT_PULSE_DURATION_MS: int = _highlight.get('pulse_duration_ms', 1500)
    HIGHLIGHT_START_RADIUS: float = _highlight.get('start_radius', 10)
    HIGHLIGHT_END_RADIUS: float = _highlight.get('end_radius', 50)
    HIGHLIGHT_STROKE_OPACITY: float = _highlight.get('stroke_opacity', 0.8)
    HIGHLIGHT_FILL_OPACITY_FACTOR: float = _highlight.get('fill_opacity_factor', 0.5)
    HIGHLIGHT_STROKE_WIDTH: int = _highlight.get('stroke_width', 2)
    HIGHLIGHT_REMOVAL_DELAY_MS: int = _highlight.get('highlight_removal_delay_ms', 1000)
    HIGHLIGHT_COLOR: str = _highlight.get('highlight_color', '#FF5722')
    HIGHLIGHT_FRAME_INTERVAL_MS: int = _highlight.get('frame_interval_ms', 16)

    @classmethod
    def highlight_settings(cls) -> Dict[str, Any]:
        """Keyword arguments for HighlightSettings."""
        return {
            'center_duration_ms': cls.HIGHLIGHT_CENTER_DURATION_MS,
            'focus_zoom': cls.HIGHLIGHT_FOCUS_ZOOM,
            'pulse_duration_ms': cls.HIGHLIGHT_PULSE_DURATION_MS,
            'start_radius': cls.HIGHLIGHT_START_RADIUS,
            'end_radius': cls.HIGHLIGHT_END_RADIUS,
            'stroke_opacity': cls.HIGHLIGHT_STROKE_OPACITY,
            'fill_opacity_factor': cls.HIGHLIGHT_FILL_OPACITY_FACTOR,
            'stroke_width': cls.HIGHLIGHT_STROKE_WIDTH,
            'removal_delay_ms': cls.HIGHLIGHT_REMOVAL_DELAY_MS,
            'color': cls.HIGHLIGHT_COLOR,
        }

    @classmethod
    def validate(cls):
        """Validate required configuration."""
        if cls.LANGUAGE not in cls.SUPPORTED_LANGUAGES:
            raise ValueError(f"LANGUAGE '{cls.LANGUAGE}' not in {cls.SUPPORTED_LANGUAGES}")

        if cls.MARKER_STYLE_RULE not in cls.MARKER_STYLE_RULES:
            raise ValueError(f"MARKER_STYLE_RULE '{cls.MARKER_STYLE_RULE}' not in {cls.MARKER_STYLE_RULES}")

        # Durations drive timers and the pulse fraction, zero would divide by zero
        for name in ('HIGHLIGHT_CENTER_DURATION_MS', 'HIGHLIGHT_PULSE_DURATION_MS', 'HIGHLIGHT_FRAME_INTERVAL_MS'):
            if getattr(cls, name) <= 0:
                raise ValueError(f"{name} must be positive")

        if cls.HIGHLIGHT_REMOVAL_DELAY_MS < 0:
            raise ValueError("HIGHLIGHT_REMOVAL_DELAY_MS must not be negative")

        if cls.HIGHLIGHT_END_RADIUS <= cls.HIGHLIGHT_START_RADIUS:
            raise ValueError("HIGHLIGHT_END_RADIUS must be greater than HIGHLIGHT_START_RADIUS")

        for name in ('HIGHLIGHT_STROKE_OPACITY', 'HIGHLIGHT_FILL_OPACITY_FACTOR'):
            if not (0.0 <= getattr(cls, name) <= 1.0):
                raise ValueError(f"{name} must be between 0.0 and 1.0")

        missing = {'center_lat', 'center_lng', 'south_west_lat', 'south_west_lng',
                   'north_east_lat', 'north_east_lng'} - set(cls.DEFAULT_BOUNDARIES)
        if missing:
            raise ValueError(f"map.default_boundaries is missing {sorted(missing)}")

        if not cls.API_TOKEN:
            print("Warning: EDDS_API_TOKEN not set, requests to the EDDS API are unauthenticated")

        return True


# Validate configuration on import
Config.validate()
