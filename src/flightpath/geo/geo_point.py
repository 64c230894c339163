"""Points on the unit sphere.

GeoPoint is an immutable latitude/longitude pair in degrees. Geometry code
works mostly on the cartesian unit-vector form, which uses the convention:
origin at the center of the Earth, +x through (0N, 0E), +y through (0N, 90E)
and +z through the north pole.

Typical usage example:
    from flightpath.geo.geo_point import GeoPoint

    ksfo = GeoPoint(37.6188, -122.3750)
    koak = GeoPoint(37.7213, -122.2208)
    bearing = ksfo.bearing_to(koak)
    distance_m = ksfo.distance_m(koak)
"""

import math
from dataclasses import dataclass

import numpy as np
import numpy.typing as npt

from flightpath.geo.nav_math import EARTH_RADIUS_M, normalize_heading

Vec3 = npt.NDArray[np.float64]

POINT_EQUALITY_TOLERANCE = 1e-7


def lat_lon_to_cartesian(lat: float, lon: float) -> Vec3:
    """Convert latitude/longitude in degrees to a unit vector."""
    lat_rad = math.radians(lat)
    lon_rad = math.radians(lon)
    cos_lat = math.cos(lat_rad)
    return np.array([cos_lat * math.cos(lon_rad), cos_lat * math.sin(lon_rad), math.sin(lat_rad)])


def unit(vec: Vec3) -> Vec3:
    """Return a normalized copy of a vector (NaN for the zero vector)."""
    norm = float(np.linalg.norm(vec))
    if norm == 0.0:
        return np.full(3, math.nan)
    return vec / norm


def bearing_of_direction(point: Vec3, direction: Vec3) -> float:
    """True bearing of a direction tangent to the sphere at a point.

    Args:
        point: Unit vector of the point.
        direction: Direction vector at the point (any length).

    Returns:
        Bearing in degrees in [0, 360), or NaN at the poles or for a null
        direction.
    """
    x, y, z = point
    horizontal = math.hypot(x, y)
    if horizontal < 1e-15:
        return math.nan

    cos_lon = x / horizontal
    sin_lon = y / horizontal
    north = np.array([-z * cos_lon, -z * sin_lon, horizontal])
    east = np.array([-sin_lon, cos_lon, 0.0])

    n = float(np.dot(direction, north))
    e = float(np.dot(direction, east))
    if n == 0.0 and e == 0.0:
        return math.nan
    return normalize_heading(math.degrees(math.atan2(e, n)))


def direction_of_bearing(point: Vec3, bearing: float) -> Vec3:
    """Unit direction vector tangent to the sphere at a point for a bearing."""
    x, y, z = point
    horizontal = math.hypot(x, y)
    if horizontal < 1e-15:
        # At a pole every direction is south (or north); use the 0E meridian.
        cos_lon, sin_lon = 1.0, 0.0
    else:
        cos_lon = x / horizontal
        sin_lon = y / horizontal
    north = np.array([-z * cos_lon, -z * sin_lon, horizontal])
    east = np.array([-sin_lon, cos_lon, 0.0])

    bearing_rad = math.radians(bearing)
    return math.cos(bearing_rad) * north + math.sin(bearing_rad) * east


@dataclass(frozen=True)
class GeoPoint:
    """A point on the Earth's surface.

    Attributes:
        lat: Latitude in degrees, positive north.
        lon: Longitude in degrees, positive east.

    Examples:
        >>> p = GeoPoint(0.0, 0.0)
        >>> q = p.offset(90.0, math.radians(1.0))
        >>> round(q.lon, 6)
        1.0
    """

    lat: float
    lon: float

    @classmethod
    def from_cartesian(cls, vec: Vec3) -> "GeoPoint":
        """Create a point from a (not necessarily normalized) cartesian vector."""
        x, y, z = (float(c) for c in unit(np.asarray(vec, dtype=float)))
        lat = math.degrees(math.asin(max(-1.0, min(1.0, z))))
        lon = math.degrees(math.atan2(y, x)) if math.hypot(x, y) > 0.0 else 0.0
        return cls(lat, lon)

    def to_cartesian(self) -> Vec3:
        """Return the unit vector of this point."""
        return lat_lon_to_cartesian(self.lat, self.lon)

    def is_valid(self) -> bool:
        """Whether both coordinates are finite."""
        return math.isfinite(self.lat) and math.isfinite(self.lon)

    def distance(self, other: "GeoPoint") -> float:
        """Great-circle distance to another point, in great-arc radians."""
        lat1, lon1 = math.radians(self.lat), math.radians(self.lon)
        lat2, lon2 = math.radians(other.lat), math.radians(other.lon)

        a = (
            math.sin((lat2 - lat1) / 2) ** 2
            + math.cos(lat1) * math.cos(lat2) * math.sin((lon2 - lon1) / 2) ** 2
        )
        return 2 * math.asin(math.sqrt(min(1.0, a)))

    def distance_m(self, other: "GeoPoint") -> float:
        """Great-circle distance to another point, in meters."""
        return self.distance(other) * EARTH_RADIUS_M

    def bearing_to(self, other: "GeoPoint") -> float:
        """Initial true bearing of the great circle path to another point.

        Returns:
            Bearing in degrees in [0, 360). NaN if the points coincide or are
            antipodal.
        """
        if self.equals(other) or self.equals(other.antipode()):
            return math.nan

        lat1, lat2 = math.radians(self.lat), math.radians(other.lat)
        dlon = math.radians(other.lon - self.lon)
        y = math.sin(dlon) * math.cos(lat2)
        x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(dlon)
        return normalize_heading(math.degrees(math.atan2(y, x)))

    def offset(self, bearing: float, distance: float) -> "GeoPoint":
        """Point reached by following a great circle from this point.

        Args:
            bearing: Initial true bearing in degrees.
            distance: Distance in great-arc radians.
        """
        lat1 = math.radians(self.lat)
        lon1 = math.radians(self.lon)
        theta = math.radians(bearing)

        sin_lat2 = math.sin(lat1) * math.cos(distance) + math.cos(lat1) * math.sin(distance) * math.cos(theta)
        lat2 = math.asin(max(-1.0, min(1.0, sin_lat2)))
        lon2 = lon1 + math.atan2(
            math.sin(theta) * math.sin(distance) * math.cos(lat1),
            math.cos(distance) - math.sin(lat1) * sin_lat2,
        )
        lon2 = (lon2 + 3 * math.pi) % (2 * math.pi) - math.pi
        return GeoPoint(math.degrees(lat2), math.degrees(lon2))

    def antipode(self) -> "GeoPoint":
        """Return the diametrically opposite point."""
        lon = self.lon + 180.0 if self.lon <= 0.0 else self.lon - 180.0
        return GeoPoint(-self.lat, lon)

    def equals(self, other: "GeoPoint", tolerance: float = POINT_EQUALITY_TOLERANCE) -> bool:
        """Whether another point lies within ``tolerance`` great-arc radians."""
        return self.distance(other) <= tolerance
