"""
Great-circle distance between two coordinates (haversine).
Registered as the `distance_km` SQL function on every database connection.
"""
import math

EARTH_RADIUS_KM = 6371.0


def distance_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Return the haversine distance in kilometres between two lat/lng points."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    # Rounding can push `a` a hair past 1 for antipodal points.
    a = min(1.0, max(0.0, a))
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def sql_distance_km(lat1, lng1, lat2, lng2):
    # SQLite passes NULL through as None.
    if None in (lat1, lng1, lat2, lng2):
        return None
    return distance_km(float(lat1), float(lng1), float(lat2), float(lng2))
