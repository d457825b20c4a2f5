# apps/utils/geo.py
from math import radians, sin, cos, atan2, sqrt

EARTH_RADIUS_M = 6371000.0


def haversine_m(lat1, lng1, lat2, lng2) -> float:
    """
    Great-circle distance between two (lat, lng) points in meters.
    Accepts floats or Decimals (model fields).
    """
    phi1 = radians(float(lat1))
    phi2 = radians(float(lat2))
    d_phi = radians(float(lat2) - float(lat1))
    d_lambda = radians(float(lng2) - float(lng1))

    a = sin(d_phi / 2) ** 2 + cos(phi1) * cos(phi2) * sin(d_lambda / 2) ** 2
    # Float noise can push `a` a hair past 1 for antipodal points
    a = min(1.0, a)
    return 2 * EARTH_RADIUS_M * atan2(sqrt(a), sqrt(1 - a))
