"""Stateless helpers for flight path vectors.

Covers turn-circle algebra, course extraction, along-arc position queries
used for active leg tracking, and the ingress-to-egress resolver which
threads a leg's turn vectors and its own path into the single vector list
that is actually flown.

A turn is represented by a directed circle: a left turn of radius r about a
center c is the circle (c, r); a right turn is the reversed circle
(-c, pi - r).
"""

import math

import numpy as np

from flightpath.geo.geo_circle import ANGULAR_TOLERANCE, HALF_PI, TWO_PI, GeoCircle, as_vec
from flightpath.geo.geo_point import GeoPoint, Vec3, unit
from flightpath.geo.nav_math import EARTH_RADIUS_M, normalize_heading
from flightpath.flightplan.vectors import (
    FlightPathVector,
    FlightPathVectorFlags,
    LegCalculations,
    VectorTurnDirection,
)


def create_empty_circle_vector(flags: FlightPathVectorFlags = FlightPathVectorFlags.NONE) -> FlightPathVector:
    """Create a zero-length great circle vector at (0, 0)."""
    return FlightPathVector(flags=flags, radius=HALF_PI, center_x=0.0, center_y=0.0, center_z=1.0)


def to_geo_point(point: GeoPoint | Vec3) -> GeoPoint:
    """Return a GeoPoint for a GeoPoint or cartesian vector."""
    if isinstance(point, GeoPoint):
        return point
    return GeoPoint.from_cartesian(point)


def set_circle_vector(
    vector: FlightPathVector,
    circle: GeoCircle,
    start: GeoPoint | Vec3,
    end: GeoPoint | Vec3,
    flags: FlightPathVectorFlags = FlightPathVectorFlags.NONE,
) -> FlightPathVector:
    """Define a vector as the arc of a circle between two points.

    The start and end points are projected onto the circle to measure the
    distance, which is stored in meters.

    Returns:
        The modified vector.
    """
    start_point = to_geo_point(start)
    end_point = to_geo_point(end)

    vector.vector_type = "circle"
    vector.flags = FlightPathVectorFlags(flags)
    vector.radius = circle.radius
    vector.center_x, vector.center_y, vector.center_z = (float(c) for c in circle.center)
    vector.start_lat, vector.start_lon = start_point.lat, start_point.lon
    vector.end_lat, vector.end_lon = end_point.lat, end_point.lon
    vector.distance = circle.distance_along(start_point, end_point, math.pi) * EARTH_RADIUS_M
    return vector


def write_circle_vector(
    vectors: list[FlightPathVector],
    index: int,
    circle: GeoCircle,
    start: GeoPoint | Vec3,
    end: GeoPoint | Vec3,
    flags: FlightPathVectorFlags = FlightPathVectorFlags.NONE,
) -> FlightPathVector:
    """Set the vector at ``index``, reusing an existing object or appending one.

    Raises:
        IndexError: If ``index`` is beyond the end of the list.
    """
    if index < len(vectors):
        vector = vectors[index]
    elif index == len(vectors):
        vector = create_empty_circle_vector()
        vectors.append(vector)
    else:
        raise IndexError(f"Vector index {index} out of range for {len(vectors)} vectors")
    return set_circle_vector(vector, circle, start, end, flags)


def is_vector_great_circle(vector: FlightPathVector) -> bool:
    """Whether a vector follows a great circle."""
    return abs(vector.radius - HALF_PI) <= ANGULAR_TOLERANCE


def circle_from_vector(vector: FlightPathVector, out: GeoCircle | None = None) -> GeoCircle:
    """Get the defining circle of a vector."""
    if out is None:
        return GeoCircle(vector.center, vector.radius)
    return out.set(vector.center, vector.radius)


def get_vector_initial_course(vector: FlightPathVector) -> float:
    """True course at the start of a vector, degrees."""
    return circle_from_vector(vector).bearing_at(vector.start, math.pi)


def get_vector_final_course(vector: FlightPathVector) -> float:
    """True course at the end of a vector, degrees."""
    return circle_from_vector(vector).bearing_at(vector.end, math.pi)


def get_leg_final_position(calc: LegCalculations) -> GeoPoint | None:
    """Final position of a calculated leg, or None when undefined."""
    if calc.flight_path:
        return calc.flight_path[-1].end
    return calc.end


def get_leg_final_course(calc: LegCalculations) -> float | None:
    """Final true course of a calculated leg, or None when it has no vectors."""
    if calc.flight_path:
        course = get_vector_final_course(calc.flight_path[-1])
        return None if math.isnan(course) else course
    return None


def get_turn_direction(from_course: float, to_course: float) -> VectorTurnDirection:
    """Shortest turn direction from one course to another (right on ties)."""
    return VectorTurnDirection.LEFT if normalize_heading(to_course - from_course) > 180.0 else VectorTurnDirection.RIGHT


def get_turn_circle(center: GeoPoint | Vec3, radius: float, direction: VectorTurnDirection) -> GeoCircle:
    """Directed circle of a turn about a center.

    Args:
        center: Turn center.
        radius: Turn radius in great-arc radians.
        direction: Turn direction.
    """
    circle = GeoCircle(center, radius)
    if direction is VectorTurnDirection.RIGHT:
        circle.set(-circle.center, math.pi - radius)
    return circle


def reverse_turn_circle(circle: GeoCircle) -> GeoCircle:
    """The same turn flown in the opposite direction."""
    return circle.reversed()


def get_turn_direction_from_circle(circle: GeoCircle) -> VectorTurnDirection:
    """Direction of the turn described by a directed circle."""
    return VectorTurnDirection.RIGHT if circle.radius > HALF_PI else VectorTurnDirection.LEFT


def get_turn_radius_from_circle(circle: GeoCircle) -> float:
    """Radius of the turn described by a directed circle, great-arc radians."""
    return min(circle.radius, math.pi - circle.radius)


def get_turn_center_from_circle(circle: GeoCircle) -> Vec3:
    """Center of the turn described by a directed circle."""
    return circle.center.copy() if circle.radius <= HALF_PI else -circle.center


def get_turn_circle_start_at(
    start: GeoPoint | Vec3,
    path: GeoCircle,
    radius: float,
    direction: VectorTurnDirection,
) -> GeoCircle:
    """Turn circle tangent to a path at a point.

    Args:
        start: Point on ``path`` where the turn begins.
        path: Path being flown at ``start``.
        radius: Turn radius in great-arc radians.
        direction: Turn direction.

    Returns:
        The directed turn circle, whose course at ``start`` matches the path.
    """
    point = as_vec(start)
    travel = unit(np.cross(path.center, point))
    left = np.cross(point, travel)
    side = left if direction is VectorTurnDirection.LEFT else -left
    center = point * math.cos(radius) + side * math.sin(radius)
    return get_turn_circle(center, radius, direction)


def get_along_arc_normalized_distance(
    circle: GeoCircle,
    start: GeoPoint | Vec3,
    end: GeoPoint | Vec3,
    pos: GeoPoint | Vec3,
) -> float:
    """Position of a point along an arc as a fraction of the arc's length.

    0 is the arc start, 1 the arc end. Positions before the start or past the
    end extend beyond [0, 1], with the split chosen at the point of the circle
    opposite the arc's middle. For a zero-length arc the result is -inf or
    +inf depending on which half of the circle the point lies in.
    """
    width = circle.angle_along(start, end, math.pi)
    pos_angle = circle.angle_along(start, pos, math.pi)
    if width == 0.0:
        if pos_angle == 0.0:
            return 0.0
        return -math.inf if pos_angle >= math.pi else math.inf
    return ((pos_angle - width / 2 + math.pi) % TWO_PI - math.pi) / width + 0.5


def get_along_arc_signed_distance(
    circle: GeoCircle,
    start: GeoPoint | Vec3,
    end: GeoPoint | Vec3,
    pos: GeoPoint | Vec3,
) -> float:
    """Signed distance of a point from an arc's start, in great-arc radians.

    Negative values lie before the start.
    """
    width = circle.angle_along(start, end, math.pi)
    if width == 0.0:
        pos_angle = circle.angle_along(start, pos, math.pi)
        signed = pos_angle - TWO_PI if pos_angle > math.pi else pos_angle
        return circle.arc_length(signed)
    return get_along_arc_normalized_distance(circle, start, end, pos) * circle.arc_length(width)


def is_point_along_arc(
    circle: GeoCircle,
    start: GeoPoint | Vec3,
    end: GeoPoint | Vec3 | float,
    point: GeoPoint | Vec3,
    inclusive: bool = True,
    tolerance: float = ANGULAR_TOLERANCE,
) -> bool:
    """Whether a point lies within an arc of a circle.

    The point is projected onto the circle first.

    Args:
        circle: Circle of the arc.
        start: Arc start.
        end: Arc end point, or the signed angle the arc spans from ``start``
            (negative for an arc extending backwards).
        point: Point to test.
        inclusive: Whether the arc endpoints count as inside.
        tolerance: Distance tolerance in great-arc radians.
    """
    angular_tolerance = circle.angular_width(tolerance)
    if isinstance(end, (int, float)):
        end_angle = float(end)
    else:
        end_angle = circle.angle_along(start, end, math.pi)

    angle = circle.angle_along(start, point, math.pi)
    if end_angle < 0.0:
        angle = (TWO_PI - angle) % TWO_PI
        end_angle = -end_angle

    if inclusive:
        return angle <= end_angle + angular_tolerance or angle >= TWO_PI - angular_tolerance
    return angular_tolerance < angle < end_angle - angular_tolerance


def resolve_ingress_to_egress(calc: LegCalculations) -> LegCalculations:
    """Resolve the path flown between a leg's ingress and egress.

    The result, written to ``calc.ingress_to_egress``, is the part of the
    leg's flight path after the ingress join point and before the egress join
    point. A partial vector is spliced in only where the ingress end or egress
    start does not coincide with a flight path vector boundary.

    Args:
        calc: Leg calculations to resolve.

    Returns:
        The same leg calculations.
    """
    out = calc.ingress_to_egress
    flight_path = calc.flight_path
    count = 0

    if not flight_path:
        out.clear()
        return calc

    has_ingress = bool(calc.ingress) and 0 <= calc.ingress_join_index < len(flight_path)
    has_egress = bool(calc.egress) and 0 <= calc.egress_join_index < len(flight_path)

    start_index = 0
    if has_ingress:
        join_vector = flight_path[calc.ingress_join_index]
        ingress_end = calc.ingress[-1].end
        if has_egress and calc.egress_join_index == calc.ingress_join_index:
            vector_end = calc.egress[0].start
        else:
            vector_end = join_vector.end

        if not ingress_end.equals(vector_end):
            write_circle_vector(out, count, circle_from_vector(join_vector), ingress_end, vector_end, join_vector.flags)
            count += 1
        start_index = calc.ingress_join_index + 1

    end_index = calc.egress_join_index if has_egress else len(flight_path)
    for i in range(start_index, end_index):
        if count < len(out):
            out[count].copy_from(flight_path[i])
        else:
            out.append(flight_path[i].copy())
        count += 1

    if has_egress and calc.egress_join_index >= start_index:
        join_vector = flight_path[calc.egress_join_index]
        egress_start = calc.egress[0].start
        if not join_vector.start.equals(egress_start):
            write_circle_vector(out, count, circle_from_vector(join_vector), join_vector.start, egress_start, join_vector.flags)
            count += 1

    del out[count:]
    return calc
