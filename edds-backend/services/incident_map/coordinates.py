"""
Coordinate normalization for the location index.

Raw coordinates come straight from the EDDS API and may be numbers, numeric
strings, null or garbage. They are validated here and turned into a canonical
bucket key "<lat>,<lng>" rounded to six decimal places.
"""
import math
import logging
from numbers import Real
from typing import Any, Optional

from services.incident_map.base import LatLng

logger = logging.getLogger(__name__)

# Six decimals is ~0.1 m, anything closer is the same point on the map
KEY_PRECISION = 6


def parse_coordinate(value: Any) -> Optional[float]:
    """
    Parse one raw coordinate value.

    Returns:
        The value as a finite float, or None if it is missing or not numeric.
        Never raises.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        try:
            parsed = float(value)
        except ValueError:
            return None
    elif isinstance(value, Real):
        parsed = float(value)
    else:
        return None

    if not math.isfinite(parsed):
        return None
    return parsed


def _canonical(value: float) -> str:
    # + 0.0 folds -0.0 into 0.0 so both render as "0.000000"
    return f"{round(value, KEY_PRECISION) + 0.0:.{KEY_PRECISION}f}"


def parse_latlng(lat: Any, lng: Any) -> Optional[LatLng]:
    """Parse and range-check a raw latitude/longitude pair."""
    parsed_lat = parse_coordinate(lat)
    parsed_lng = parse_coordinate(lng)
    if parsed_lat is None or parsed_lng is None:
        return None
    if not (-90.0 <= parsed_lat <= 90.0 and -180.0 <= parsed_lng <= 180.0):
        logger.debug(f"Coordinates out of range: ({parsed_lat}, {parsed_lng})")
        return None
    return LatLng(parsed_lat, parsed_lng)


def normalize_coordinates(lat: Any, lng: Any) -> Optional[str]:
    """
    Build the canonical bucket key for a raw coordinate pair.

    Args:
        lat: Raw latitude (number, numeric string, None, ...)
        lng: Raw longitude

    Returns:
        "<lat>,<lng>" with six decimals, or None when the pair is rejected

    Examples:
        normalize_coordinates("51.66077", 39.20028)      -> "51.660770,39.200280"
        normalize_coordinates(51.660770001, 39.200280001) -> "51.660770,39.200280"
        normalize_coordinates(None, 39.2)                -> None
    """
    point = parse_latlng(lat, lng)
    if point is None:
        return None
    return f"{_canonical(point.lat)},{_canonical(point.lng)}"


def key_to_latlng(key: str) -> LatLng:
    """Canonical point of a bucket key."""
    lat, lng = key.split(',')
    return LatLng(float(lat), float(lng))


def address_key(address) -> Optional[str]:
    """Bucket key of an Address, or None if its coordinates are unusable."""
    if address is None:
        return None
    return normalize_coordinates(address.latitude, address.longitude)
