"""Geodesy helpers on plain latitude/longitude pairs."""

from __future__ import annotations

import math

from hexterra.util.constants import EARTH_RADIUS_M


def validate_latlng(lat: float, lng: float) -> None:
    """Raise ValueError for coordinates outside the valid range."""
    if not (math.isfinite(lat) and math.isfinite(lng)):
        raise ValueError(f"Non-finite coordinate: ({lat}, {lng})")
    if not -90.0 <= lat <= 90.0:
        raise ValueError(f"Latitude out of range: {lat}")
    if not -180.0 <= lng <= 180.0:
        raise ValueError(f"Longitude out of range: {lng}")


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two points in meters."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (math.sin(d_lat / 2) ** 2
         + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2))
         * math.sin(d_lng / 2) ** 2)
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
