"""
Geographic utility functions
"""
from math import radians, sin, cos, atan2, sqrt
from typing import Optional

from chargeroute.core.config import settings
from chargeroute.schemas.viewport import LatLng, Viewport

EARTH_RADIUS_KM = 6371.0

# Zoom used when only one end of a route is known
SINGLE_POINT_ZOOM = 14

# (exclusive lower bound in km, zoom), checked in order
_ZOOM_STEPS = (
    (1000, 4),   # Continental view
    (500, 5),    # Large region
    (250, 6),    # Region
    (100, 7),    # Large area
    (50, 8),     # Area
    (25, 9),     # Small area
    (10, 10),    # City
    (5, 11),     # Town
    (2, 12),     # Village
    (1, 13),     # Neighborhood
    (0.5, 14),   # Streets
)
MAX_ZOOM = 15  # Street level


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate distance between two lat/lng points in kilometers using Haversine formula.

    Args:
        lat1, lon1: First point coordinates
        lat2, lon2: Second point coordinates

    Returns:
        Distance in kilometers
    """
    dlat = radians(lat2 - lat1)
    dlon = radians(lon2 - lon1)

    a = sin(dlat / 2) ** 2 + cos(radians(lat1)) * cos(radians(lat2)) * sin(dlon / 2) ** 2
    # Rounding can push a just outside [0, 1] for antipodal points
    a = min(1.0, max(0.0, a))
    c = 2 * atan2(sqrt(a), sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def zoom_for_distance(distance: float) -> int:
    """Map zoom level (4-15) that fits two points `distance` km apart."""
    for threshold, zoom in _ZOOM_STEPS:
        if distance > threshold:
            return zoom
    return MAX_ZOOM


def recenter_viewport(
    start: Optional[LatLng],
    end: Optional[LatLng],
    radius_km: Optional[float] = None,
) -> Optional[Viewport]:
    """
    Viewport framing the selected route endpoints.

    Both points: centered on their midpoint, zoomed to fit the distance.
    One point: centered on it at street zoom. Neither: None.
    """
    if radius_km is None:
        radius_km = settings.STATION_SEARCH_RADIUS_KM

    if start and end:
        center = LatLng(
            lat=(start.lat + end.lat) / 2,
            lng=(start.lng + end.lng) / 2,
        )
        zoom = zoom_for_distance(distance_km(start.lat, start.lng, end.lat, end.lng))
        return Viewport(center=center, zoom=zoom, radius_km=radius_km)

    point = start or end
    if point is None:
        return None
    return Viewport(center=point, zoom=SINGLE_POINT_ZOOM, radius_km=radius_km)
