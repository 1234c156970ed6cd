"""Great-circle distance between two points on the Earth."""

import math

from .models import GeoPoint

EARTH_RADIUS_KM = 6371.0


def haversine_distance(a: GeoPoint, b: GeoPoint) -> float:
    """
    Great-circle distance between two points using the haversine formula.

    Args:
        a: First point, decimal degrees.
        b: Second point, decimal degrees.

    Returns:
        Distance in kilometers. Identical points give 0.0.

    Coordinates are not range-checked or clamped; a latitude above 90 is
    used as given.
    """
    d_lat = math.radians(b.latitude - a.latitude)
    d_lon = math.radians(b.longitude - a.longitude)

    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(a.latitude))
        * math.cos(math.radians(b.latitude))
        * math.sin(d_lon / 2) ** 2
    )
    h = min(h, 1.0)  # rounding can push h just past 1 for antipodal points
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_KM * c
