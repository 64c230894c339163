"""Great and small circles on the unit sphere.

A GeoCircle is defined by a center unit vector and an angular radius in
[0, pi]. A radius of pi/2 makes a great circle. Every circle is directed:
travel along it is counter-clockwise when viewed from above the center, so a
circle and its reverse (negated center, radius pi - r) describe the same
points traversed in opposite directions. For a great circle built from a
point and a bearing the center lies 90 degrees to the left of travel.

Typical usage example:
    from flightpath.geo.geo_circle import GeoCircle

    track = GeoCircle.from_bearing(GeoPoint(47.0, 8.0), 90.0)
    dme_ring = GeoCircle(vor.to_cartesian(), meters_to_radians(nm_to_meters(10)))
    out = [np.zeros(3), np.zeros(3)]
    count = track.intersection(dme_ring, out)
"""

import math

import numpy as np

from flightpath.geo.geo_point import (
    GeoPoint,
    Vec3,
    bearing_of_direction,
    direction_of_bearing,
    unit,
)

ANGULAR_TOLERANCE = 1e-7
TWO_PI = 2 * math.pi
HALF_PI = math.pi / 2


class GeometryError(ValueError):
    """Raised when a geometric construction is ambiguous or undefined."""


def as_vec(point: GeoPoint | Vec3) -> Vec3:
    """Return the cartesian unit vector of a GeoPoint or vector."""
    if isinstance(point, GeoPoint):
        return point.to_cartesian()
    return np.asarray(point, dtype=float)


def _write(out: list[Vec3], index: int, vec: Vec3) -> None:
    if index < len(out):
        out[index][:] = vec
    else:
        out.append(np.array(vec, dtype=float))


class GeoCircle:
    """A directed circle on the unit sphere.

    Attributes:
        center: Unit vector of the circle's center.
        radius: Angular radius in radians, in [0, pi].
    """

    __slots__ = ("center", "radius")

    def __init__(self, center: GeoPoint | Vec3, radius: float) -> None:
        """Create a circle.

        Args:
            center: Center as a GeoPoint or (non-normalized) vector.
            radius: Angular radius in radians.
        """
        self.center: Vec3 = np.zeros(3)
        self.radius = 0.0
        self.set(center, radius)

    def set(self, center: GeoPoint | Vec3, radius: float) -> "GeoCircle":
        """Redefine this circle in place and return it."""
        self.center = unit(np.array(as_vec(center), dtype=float))
        self.radius = float(radius)
        return self

    @classmethod
    def great_circle(cls, start: GeoPoint | Vec3, end: GeoPoint | Vec3) -> "GeoCircle":
        """Great circle passing through two points, directed from start to end.

        The result is invalid (NaN center) when the points coincide or are
        antipodal.
        """
        return cls(np.cross(as_vec(start), as_vec(end)), HALF_PI)

    @classmethod
    def from_bearing(cls, point: GeoPoint | Vec3, bearing: float) -> "GeoCircle":
        """Great circle through a point along an initial true bearing."""
        vec = as_vec(point)
        return cls(np.cross(vec, direction_of_bearing(vec, bearing)), HALF_PI)

    def set_as_great_circle(self, point: GeoPoint | Vec3, end_or_bearing: GeoPoint | Vec3 | float) -> "GeoCircle":
        """Redefine this circle as a great circle through a point.

        Args:
            point: A point on the circle.
            end_or_bearing: A second point on the circle, or the bearing of
                travel at ``point``.
        """
        vec = as_vec(point)
        if isinstance(end_or_bearing, (int, float)):
            return self.set(np.cross(vec, direction_of_bearing(vec, float(end_or_bearing))), HALF_PI)
        return self.set(np.cross(vec, as_vec(end_or_bearing)), HALF_PI)

    def copy(self) -> "GeoCircle":
        """Return an independent copy of this circle."""
        return GeoCircle(self.center.copy(), self.radius)

    def is_valid(self) -> bool:
        """Whether the center is a finite unit vector and the radius is in range."""
        return bool(np.all(np.isfinite(self.center))) and 0.0 <= self.radius <= math.pi

    def is_great_circle(self) -> bool:
        """Whether this is a great circle."""
        return abs(self.radius - HALF_PI) <= ANGULAR_TOLERANCE

    def reversed(self) -> "GeoCircle":
        """Return the same circle traversed in the opposite direction."""
        return GeoCircle(-self.center, math.pi - self.radius)

    def arc_length(self, angle: float) -> float:
        """Length of an arc, in great-arc radians, spanning an angle about the center."""
        return math.sin(self.radius) * angle

    def angular_width(self, distance: float) -> float:
        """Angle about the center spanned by an arc of the given length."""
        sin_radius = math.sin(self.radius)
        if sin_radius == 0.0:
            return math.inf if distance != 0.0 else 0.0
        return distance / sin_radius

    def distance(self, point: GeoPoint | Vec3) -> float:
        """Signed distance from a point to this circle.

        Returns:
            Great-arc radians; negative inside the circle, positive outside.
        """
        vec = as_vec(point)
        angle = math.atan2(float(np.linalg.norm(np.cross(vec, self.center))), float(np.dot(vec, self.center)))
        return angle - self.radius

    def includes(self, point: GeoPoint | Vec3, tolerance: float = ANGULAR_TOLERANCE) -> bool:
        """Whether a point lies on this circle."""
        return abs(self.distance(point)) <= tolerance

    def encircles(self, point: GeoPoint | Vec3, tolerance: float = ANGULAR_TOLERANCE) -> bool:
        """Whether a point lies within this circle's boundary (inclusive)."""
        return self.distance(point) <= tolerance

    def closest(self, point: GeoPoint | Vec3) -> Vec3:
        """Project a point onto this circle.

        Returns:
            Unit vector of the closest point, or NaNs when the point is at the
            center or its antipode.
        """
        vec = as_vec(point)
        radial = vec - np.dot(vec, self.center) * self.center
        if float(np.linalg.norm(radial)) < 1e-15:
            return np.full(3, math.nan)
        return self.center * math.cos(self.radius) + unit(radial) * math.sin(self.radius)

    def closest_point(self, point: GeoPoint | Vec3) -> GeoPoint:
        """Project a point onto this circle and return it as a GeoPoint."""
        return GeoPoint.from_cartesian(self.closest(point))

    def angle_along(
        self,
        start: GeoPoint | Vec3,
        end: GeoPoint | Vec3,
        tolerance: float = ANGULAR_TOLERANCE,
    ) -> float:
        """Angle about the center travelled from start to end along this circle.

        Points are projected onto the circle first. Two points closer than
        ANGULAR_TOLERANCE along the circle yield 0.

        Args:
            start: Start point.
            end: End point.
            tolerance: Maximum distance of either point from the circle.

        Returns:
            Angle in radians in [0, 2pi).

        Raises:
            GeometryError: If either point is farther than ``tolerance`` from
                the circle.
        """
        start_vec = as_vec(start)
        end_vec = as_vec(end)
        if not (self.includes(start_vec, tolerance) and self.includes(end_vec, tolerance)):
            raise GeometryError("Point does not lie on the circle")

        u1 = start_vec - np.dot(start_vec, self.center) * self.center
        u2 = end_vec - np.dot(end_vec, self.center) * self.center
        angle = math.atan2(float(np.dot(np.cross(u1, u2), self.center)), float(np.dot(u1, u2)))
        if angle < 0.0:
            angle += TWO_PI

        sin_radius = math.sin(self.radius)
        if angle * sin_radius <= ANGULAR_TOLERANCE or (TWO_PI - angle) * sin_radius <= ANGULAR_TOLERANCE:
            return 0.0
        return angle

    def distance_along(
        self,
        start: GeoPoint | Vec3,
        end: GeoPoint | Vec3,
        tolerance: float = ANGULAR_TOLERANCE,
    ) -> float:
        """Distance in great-arc radians travelled from start to end along this circle."""
        return self.arc_length(self.angle_along(start, end, tolerance))

    def bearing_at(self, point: GeoPoint | Vec3, tolerance: float = ANGULAR_TOLERANCE) -> float:
        """True bearing of travel along this circle at a point.

        Raises:
            GeometryError: If the point does not lie on the circle.
        """
        vec = as_vec(point)
        if not self.includes(vec, tolerance):
            raise GeometryError("Point does not lie on the circle")
        projected = self.closest(vec)
        return bearing_of_direction(projected, np.cross(self.center, projected))

    def offset_angle_along(self, point: GeoPoint | Vec3, angle: float) -> Vec3:
        """Rotate a point (projected onto this circle) about the center by an angle."""
        vec = self.closest(point)
        cos_a = math.cos(angle)
        return (
            vec * cos_a
            + np.cross(self.center, vec) * math.sin(angle)
            + self.center * np.dot(self.center, vec) * (1.0 - cos_a)
        )

    def offset_distance_along(self, point: GeoPoint | Vec3, distance: float) -> Vec3:
        """Move a point (projected onto this circle) along it by a distance in radians."""
        return self.offset_angle_along(point, self.angular_width(distance))

    def intersection(self, other: "GeoCircle", out: list[Vec3]) -> int:
        """Find the intersection points of this circle and another.

        Args:
            other: The other circle.
            out: Buffer receiving the points; existing arrays are overwritten
                in place and missing ones appended.

        Returns:
            Number of intersection points written (0, 1 or 2). Coincident or
            concentric circles report 0.
        """
        c1, c2 = self.center, other.center
        dot = float(np.dot(c1, c2))
        normal = np.cross(c1, c2)
        normal_sq = float(np.dot(normal, normal))
        if normal_sq < 1e-15:
            return 0

        # Circles meet when the center separation lies between |r1 - r2| and
        # the smaller of r1 + r2 and 2pi - (r1 + r2); at either bound they touch.
        separation = math.atan2(math.sqrt(normal_sq), dot)
        outer = min(self.radius + other.radius, TWO_PI - self.radius - other.radius)
        inner = abs(self.radius - other.radius)
        if separation > outer + ANGULAR_TOLERANCE or separation < inner - ANGULAR_TOLERANCE:
            return 0

        cos1 = math.cos(self.radius)
        cos2 = math.cos(other.radius)
        a = (cos1 - dot * cos2) / normal_sq
        b = (cos2 - dot * cos1) / normal_sq
        base = a * c1 + b * c2

        t_sq = (1.0 - float(np.dot(base, base))) / normal_sq
        if abs(separation - outer) <= ANGULAR_TOLERANCE or abs(separation - inner) <= ANGULAR_TOLERANCE or t_sq <= 0.0:
            _write(out, 0, unit(base))
            return 1

        t = math.sqrt(t_sq)
        _write(out, 0, unit(base + normal * t))
        _write(out, 1, unit(base - normal * t))
        return 2

    def intersection_points(self, other: "GeoCircle") -> list[Vec3]:
        """Return the intersection points of this circle and another as a new list."""
        out: list[Vec3] = []
        count = self.intersection(other, out)
        return out[:count]

    def num_intersection_points(self, other: "GeoCircle") -> int:
        """Return the number of intersection points with another circle."""
        return len(self.intersection_points(other))

    def __repr__(self) -> str:
        lat_lon = GeoPoint.from_cartesian(self.center) if self.is_valid() else None
        return f"GeoCircle(center={lat_lon}, radius={self.radius:.9f})"
