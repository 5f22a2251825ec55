# examtrack/geo.py
from geopy.distance import great_circle

EARTH_RADIUS_KM = 6371.0


def distance_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in meters between two (lat, lng) points in degrees.

    Uses a spherical Earth of radius 6,371 km. Range checking is left to the
    caller; geopy raises ValueError on latitudes outside [-90, 90].
    """
    return great_circle((lat1, lng1), (lat2, lng2), radius=EARTH_RADIUS_KM).meters


def is_within(distance: float, radius: float) -> bool:
    return distance <= radius
