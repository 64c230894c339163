"""Spherical geometry primitives.

Typical usage:
    from flightpath.geo import GeoCircle, GeoPoint

    path = GeoCircle.great_circle(GeoPoint(0, 0), GeoPoint(0, 1))
    bearing = path.bearing_at(GeoPoint(0, 0.5))
"""

from flightpath.geo.geo_circle import ANGULAR_TOLERANCE, GeoCircle, GeometryError
from flightpath.geo.geo_point import GeoPoint

__all__ = [
    "ANGULAR_TOLERANCE",
    "GeoCircle",
    "GeoPoint",
    "GeometryError",
]
