"""Reusable geometry recipes that write flight path vectors.

Every builder writes one or more FlightPathVectors into a caller-supplied
list starting at a caller-supplied index and returns the number of vectors
written. Existing vector objects at those positions are overwritten in
place; the list grows when the index reaches its end. Builders never touch
vectors outside the range they report.

Each builder owns a ScratchArena (pass one in to control allocation) that it
claims for the duration of a build, so a builder cannot be re-entered while
it is building.

Turn radii and distances are given in meters; geometry runs in great-arc
radians on the unit sphere.

Typical usage:
    builder = DirectToPointBuilder()
    path = GeoCircle.from_bearing(aircraft_position, aircraft_track)
    count = builder.build(calc.flight_path, 0, aircraft_position, path, fix_position, 1500.0)
    del calc.flight_path[count:]
"""

import logging
import math

import numpy as np

from flightpath.geo.geo_circle import ANGULAR_TOLERANCE, HALF_PI, GeoCircle, GeometryError, as_vec
from flightpath.geo.geo_point import GeoPoint, Vec3, unit
from flightpath.geo.nav_math import diff_angle, meters_to_radians
from flightpath.flightplan.flight_path_utils import (
    get_turn_center_from_circle,
    get_turn_circle_start_at,
    get_turn_direction,
    write_circle_vector,
)
from flightpath.flightplan.scratch import ScratchArena
from flightpath.flightplan.vectors import FlightPathVector, FlightPathVectorFlags, VectorTurnDirection

logger = logging.getLogger(__name__)

Point = GeoPoint | Vec3

# Tolerance for treating a computed point as lying on a path.
ON_PATH_TOLERANCE = 1e-6
# Smallest course difference, in degrees, treated as a real turn.
MIN_TURN_ANGLE_DEG = 1e-3


def tangent_point(c1: Vec3, r1: float, c2: Vec3, r2: float) -> Vec3 | None:
    """Point where two internally tangent directed circles touch.

    The circles must share their direction of travel at the tangent point,
    which means their centers are ``|r1 - r2|`` apart.

    Returns:
        Unit vector of the tangent point, or None for identical radii.
    """
    denominator = math.sin(r2 - r1)
    if abs(denominator) < 1e-12:
        return None
    return unit((c1 * math.sin(r2) - c2 * math.sin(r1)) / denominator)


def splice_vectors(vectors: list[FlightPathVector], index: int, source: list[FlightPathVector]) -> int:
    """Copy vectors into a list at an index, reusing existing objects."""
    for i, vector in enumerate(source):
        if index + i < len(vectors):
            vectors[index + i].copy_from(vector)
        else:
            vectors.append(vector.copy())
    return len(source)


def _signed_angle(angle: float) -> float:
    return angle - 2 * math.pi if angle > math.pi else angle


class CircleVectorBuilder:
    """Builds a single arc vector along a circle."""

    def __init__(self, arena: ScratchArena | None = None) -> None:
        self._arena = arena or ScratchArena()

    def build(
        self,
        vectors: list[FlightPathVector],
        index: int,
        circle: GeoCircle,
        start: Point,
        end: Point,
        flags: FlightPathVectorFlags = FlightPathVectorFlags.NONE,
    ) -> int:
        """Build an arc along a circle from start to end.

        Returns:
            1
        """
        with self._arena.claim("CircleVectorBuilder"):
            write_circle_vector(vectors, index, circle, start, end, flags)
        return 1

    def build_turn(
        self,
        vectors: list[FlightPathVector],
        index: int,
        direction: VectorTurnDirection,
        radius_m: float,
        center: Point,
        start: Point,
        end: Point,
        flags: FlightPathVectorFlags = FlightPathVectorFlags.NONE,
    ) -> int:
        """Build a constant-radius turn about a center from start to end.

        Returns:
            1
        """
        with self._arena.claim("CircleVectorBuilder") as arena:
            circle = arena.circles[0].set(as_vec(center), meters_to_radians(radius_m))
            if direction is VectorTurnDirection.RIGHT:
                circle.set(-circle.center, math.pi - circle.radius)
            write_circle_vector(vectors, index, circle, start, end, flags)
        return 1


class GreatCircleBuilder:
    """Builds great circle vectors."""

    def __init__(self, arena: ScratchArena | None = None) -> None:
        self._arena = arena or ScratchArena()
        self._circle_builder = CircleVectorBuilder()

    def build(
        self,
        vectors: list[FlightPathVector],
        index: int,
        start: Point,
        end: Point,
        initial_course: float | None = None,
        flags: FlightPathVectorFlags = FlightPathVectorFlags.NONE,
    ) -> int:
        """Build the shortest great circle path between two points.

        Args:
            vectors: Destination list.
            index: Index at which to write.
            start: Start point.
            end: End point.
            initial_course: True course at the start. Required when the
                points are antipodal; also orients a zero-length path.
            flags: Vector flags.

        Returns:
            1

        Raises:
            GeometryError: If the points are antipodal and no initial course
                is given.
        """
        with self._arena.claim("GreatCircleBuilder") as arena:
            start_vec = as_vec(start)
            end_vec = as_vec(end)
            separation = math.atan2(float(np.linalg.norm(np.cross(start_vec, end_vec))), float(np.dot(start_vec, end_vec)))

            path = arena.circles[0]
            if math.pi - separation <= ANGULAR_TOLERANCE:
                if initial_course is None:
                    raise GeometryError("Great circle path between antipodal points requires an initial course")
                path.set_as_great_circle(start_vec, initial_course)
            elif separation <= ANGULAR_TOLERANCE:
                path.set_as_great_circle(start_vec, initial_course if initial_course is not None else 0.0)
            else:
                path.set_as_great_circle(start_vec, end_vec)

            return self._circle_builder.build(vectors, index, path, start_vec, end_vec, flags)

    def build_along_path(
        self,
        vectors: list[FlightPathVector],
        index: int,
        start: Point,
        path: GeoCircle,
        end: Point | float,
        flags: FlightPathVectorFlags = FlightPathVectorFlags.NONE,
    ) -> int:
        """Build a vector along an existing great circle.

        Args:
            start: Start point, on ``path``.
            path: Great circle to follow.
            end: End point, or a distance in meters from ``start``.

        Returns:
            1

        Raises:
            GeometryError: If ``path`` is not a great circle.
        """
        if not path.is_great_circle():
            raise GeometryError("Path is not a great circle")

        with self._arena.claim("GreatCircleBuilder"):
            if isinstance(end, (int, float)):
                end_vec = path.offset_distance_along(start, meters_to_radians(float(end)))
            else:
                end_vec = as_vec(end)
            return self._circle_builder.build(vectors, index, path, start, end_vec, flags)


class TurnToCourseBuilder:
    """Builds a constant-radius turn from one course to another."""

    def __init__(self, arena: ScratchArena | None = None) -> None:
        self._arena = arena or ScratchArena()
        self._circle_builder = CircleVectorBuilder()

    def build(
        self,
        vectors: list[FlightPathVector],
        index: int,
        start: Point,
        radius_m: float,
        direction: VectorTurnDirection,
        from_course: float,
        to_course: float,
        flags: FlightPathVectorFlags = FlightPathVectorFlags.TURN_TO_COURSE,
    ) -> int:
        """Build a turn that starts at a point on one course and ends on another.

        Args:
            start: Turn start point.
            radius_m: Turn radius in meters.
            direction: Turn direction.
            from_course: True course at the start.
            to_course: True course at the end.

        Returns:
            1
        """
        with self._arena.claim("TurnToCourseBuilder") as arena:
            radius = meters_to_radians(radius_m)
            path = arena.circles[0].set_as_great_circle(start, from_course)
            turn = get_turn_circle_start_at(start, path, radius, direction)

            if direction is VectorTurnDirection.LEFT:
                turn_angle = (from_course - to_course) % 360.0
            else:
                turn_angle = (to_course - from_course) % 360.0

            end = turn.offset_angle_along(start, math.radians(turn_angle))
            return self._circle_builder.build(vectors, index, turn, start, end, flags)


class CircleInterceptBuilder:
    """Builds a great circle path from a point until it meets a circle."""

    def __init__(self, arena: ScratchArena | None = None) -> None:
        self._arena = arena or ScratchArena()
        self._circle_builder = CircleVectorBuilder()

    def build(
        self,
        vectors: list[FlightPathVector],
        index: int,
        start: Point,
        course_or_path: float | GeoCircle,
        circle: GeoCircle,
        flags: FlightPathVectorFlags = FlightPathVectorFlags.NONE,
        max_angle: float = math.pi,
    ) -> int:
        """Build a path to the first intersection with a circle.

        Args:
            start: Start point.
            course_or_path: Initial true course, or the great circle to follow.
            circle: Circle to intercept.
            flags: Vector flags.
            max_angle: Farthest intercept accepted, as an angle along the
                path from ``start``.

        Returns:
            1, or 0 when the path never reaches the circle within ``max_angle``.

        Raises:
            GeometryError: If a path is given that does not contain ``start``.
        """
        with self._arena.claim("CircleInterceptBuilder") as arena:
            start_vec = as_vec(start)
            if isinstance(course_or_path, GeoCircle):
                path = course_or_path
                if not path.includes(start_vec, ON_PATH_TOLERANCE):
                    raise GeometryError("Start point does not lie on the intercept path")
            else:
                path = arena.circles[0].set_as_great_circle(start_vec, float(course_or_path))

            count = path.intersection(circle, arena.intersections)
            if count == 0:
                return 0

            angles = [path.angle_along(start_vec, arena.intersections[i], math.pi) for i in range(count)]
            best = min(range(count), key=lambda i: angles[i])
            if angles[best] > max_angle:
                return 0

            return self._circle_builder.build(vectors, index, path, start_vec, arena.intersections[best], flags)


class ConnectCirclesBuilder:
    """Connects two circles with a tangent circle of a given radius."""

    def __init__(self, arena: ScratchArena | None = None) -> None:
        self._arena = arena or ScratchArena()
        self._circle_builder = CircleVectorBuilder()

    def find_connections(
        self,
        from_circle: GeoCircle,
        to_circle: GeoCircle,
        radius: float = HALF_PI,
    ) -> list[tuple[GeoCircle, Vec3, Vec3]]:
        """Find every circle of a radius tangent to both circles.

        Tangency is directed: the connecting circle leaves ``from_circle`` and
        joins ``to_circle`` travelling in their direction. Both turn
        directions of the connecting circle are considered.

        Args:
            from_circle: Circle being left.
            to_circle: Circle being joined.
            radius: Connecting circle radius in great-arc radians.

        Returns:
            (connecting circle, tangent point on from, tangent point on to)
            for each solution.
        """
        with self._arena.claim("ConnectCirclesBuilder") as arena:
            radii = [radius] if abs(radius - HALF_PI) <= ANGULAR_TOLERANCE else [radius, math.pi - radius]
            solutions: list[tuple[GeoCircle, Vec3, Vec3]] = []

            for join_radius in radii:
                from_ring = arena.circles[1].set(from_circle.center, abs(join_radius - from_circle.radius))
                to_ring = arena.circles[2].set(to_circle.center, abs(join_radius - to_circle.radius))
                count = from_ring.intersection(to_ring, arena.intersections)

                for i in range(count):
                    join_center = arena.intersections[i].copy()
                    start = tangent_point(from_circle.center, from_circle.radius, join_center, join_radius)
                    end = tangent_point(join_center, join_radius, to_circle.center, to_circle.radius)
                    if start is None or end is None:
                        continue
                    if not (np.all(np.isfinite(start)) and np.all(np.isfinite(end))):
                        continue
                    solutions.append((GeoCircle(join_center, join_radius), start, end))

            return solutions

    def build(
        self,
        vectors: list[FlightPathVector],
        index: int,
        from_circle: GeoCircle,
        to_circle: GeoCircle,
        radius_m: float | None = None,
        from_point: Point | None = None,
        to_point: Point | None = None,
        from_flags: FlightPathVectorFlags = FlightPathVectorFlags.NONE,
        to_flags: FlightPathVectorFlags = FlightPathVectorFlags.NONE,
        connect_flags: FlightPathVectorFlags = FlightPathVectorFlags.NONE,
    ) -> int:
        """Build a path from one circle to another through a tangent circle.

        When several connecting circles exist, the one giving the shortest
        total path (including the lead-in from ``from_point`` and lead-out to
        ``to_point``) is used. Zero-length vectors are not written.

        Args:
            from_circle: Circle being left.
            to_circle: Circle being joined.
            radius_m: Connecting circle radius in meters; a great circle when
                None.
            from_point: Optional start point on ``from_circle``; adds a lead-in
                vector along it.
            to_point: Optional end point on ``to_circle``; adds a lead-out
                vector along it.

        Returns:
            Number of vectors written; 0 when no connecting circle exists.
        """
        radius = HALF_PI if radius_m is None else meters_to_radians(radius_m)
        best: tuple[float, GeoCircle, Vec3, Vec3] | None = None

        for circle, start, end in self.find_connections(from_circle, to_circle, radius):
            total = circle.distance_along(start, end, math.pi)
            if from_point is not None:
                total += from_circle.distance_along(from_point, start, math.pi)
            if to_point is not None:
                total += to_circle.distance_along(end, to_point, math.pi)
            if best is None or total < best[0]:
                best = (total, circle, start, end)

        if best is None:
            return 0

        _, circle, start, end = best
        count = 0
        if from_point is not None and from_circle.distance_along(from_point, start, math.pi) > 0.0:
            count += self._circle_builder.build(vectors, index + count, from_circle, from_point, start, from_flags)
        if circle.distance_along(start, end, math.pi) > 0.0:
            count += self._circle_builder.build(vectors, index + count, circle, start, end, connect_flags)
        if to_point is not None and to_circle.distance_along(end, to_point, math.pi) > 0.0:
            count += self._circle_builder.build(vectors, index + count, to_circle, end, to_point, to_flags)
        return count


class TurnToJoinGreatCircleBuilder:
    """Builds a turn toward a great circle, ending where the turn is parallel to it."""

    def __init__(self, arena: ScratchArena | None = None) -> None:
        self._arena = arena or ScratchArena()
        self._circle_builder = CircleVectorBuilder()

    def build(
        self,
        vectors: list[FlightPathVector],
        index: int,
        start: Point,
        start_course_or_path: float | GeoCircle,
        end_path: GeoCircle,
        radius_m: float,
        flags: FlightPathVectorFlags = FlightPathVectorFlags.TURN_TO_COURSE,
    ) -> int:
        """Build a turn from a start course toward a target great circle.

        The turn direction is left when the start lies on the target's left
        side and right otherwise. The turn ends at the point of the turn
        circle where its course matches the target's, which is its closest
        approach to the target when the circle does not cross it.

        Returns:
            1
        """
        with self._arena.claim("TurnToJoinGreatCircleBuilder") as arena:
            start_vec = as_vec(start)
            if isinstance(start_course_or_path, GeoCircle):
                path = start_course_or_path
            else:
                path = arena.circles[0].set_as_great_circle(start_vec, float(start_course_or_path))

            direction = VectorTurnDirection.LEFT if end_path.encircles(start_vec) else VectorTurnDirection.RIGHT
            radius = meters_to_radians(radius_m)
            turn = get_turn_circle_start_at(start_vec, path, radius, direction)
            center = get_turn_center_from_circle(turn)

            toward_pole = end_path.center - np.dot(end_path.center, center) * center
            if float(np.linalg.norm(toward_pole)) < 1e-12:
                end = start_vec
            else:
                side = -unit(toward_pole) if direction is VectorTurnDirection.LEFT else unit(toward_pole)
                end = center * math.cos(radius) + side * math.sin(radius)

            return self._circle_builder.build(vectors, index, turn, start_vec, end, flags)


class TurnToJoinGreatCircleAtPointBuilder:
    """Joins two pinned points with two turns and a great circle between them."""

    def __init__(self, arena: ScratchArena | None = None) -> None:
        self._arena = arena or ScratchArena()
        self._connect_builder = ConnectCirclesBuilder()

    def build(
        self,
        vectors: list[FlightPathVector],
        index: int,
        start: Point,
        start_path: GeoCircle,
        start_turn_radius_m: float,
        start_turn_direction: VectorTurnDirection,
        end: Point,
        end_path: GeoCircle,
        end_turn_radius_m: float,
        end_turn_direction: VectorTurnDirection,
        start_turn_flags: FlightPathVectorFlags = FlightPathVectorFlags.TURN_TO_COURSE,
        end_turn_flags: FlightPathVectorFlags = FlightPathVectorFlags.TURN_TO_COURSE,
        connect_flags: FlightPathVectorFlags = FlightPathVectorFlags.NONE,
    ) -> int:
        """Build start turn, great circle connector and end turn.

        Args:
            start: Start point on ``start_path``.
            start_path: Path flown at the start.
            start_turn_radius_m: Radius of the first turn, meters.
            start_turn_direction: Direction of the first turn.
            end: End point on ``end_path``.
            end_path: Path flown at the end.
            end_turn_radius_m: Radius of the last turn, meters.
            end_turn_direction: Direction of the last turn.

        Returns:
            Number of vectors written; 0 when the turns cannot be connected.
        """
        with self._arena.claim("TurnToJoinGreatCircleAtPointBuilder"):
            start_turn = get_turn_circle_start_at(start, start_path, meters_to_radians(start_turn_radius_m), start_turn_direction)
            end_turn = get_turn_circle_start_at(end, end_path, meters_to_radians(end_turn_radius_m), end_turn_direction)
            return self._connect_builder.build(
                vectors,
                index,
                start_turn,
                end_turn,
                None,
                from_point=start,
                to_point=end,
                from_flags=start_turn_flags,
                to_flags=end_turn_flags,
                connect_flags=connect_flags,
            )


class JoinGreatCircleToPointBuilder:
    """Builds a path from a point and course onto a great circle ending at a point."""

    def __init__(self, arena: ScratchArena | None = None) -> None:
        self._arena = arena or ScratchArena()
        self._circle_builder = CircleVectorBuilder()
        self._great_circle_builder = GreatCircleBuilder()
        self._join_at_point_builder = TurnToJoinGreatCircleAtPointBuilder()

    def build(
        self,
        vectors: list[FlightPathVector],
        index: int,
        start: Point,
        start_path: GeoCircle,
        end: Point,
        end_path: GeoCircle,
        desired_turn_direction: VectorTurnDirection | None = None,
        min_turn_radius_m: float = 0.0,
        prefer_single_turn: bool = False,
        flags: FlightPathVectorFlags = FlightPathVectorFlags.NONE,
        include_turn_to_course_flag: bool = True,
    ) -> int:
        """Build a path that joins ``end_path`` and follows it to ``end``.

        The preferred shape is straight along the start path, one turn at the
        intersection of both paths, then straight to the end. With
        ``prefer_single_turn`` the turn is widened to use all available room.
        When the intersection is behind, too close, or requires a reversal,
        the path falls back to two turns joined by a great circle.

        Args:
            start: Start point on ``start_path``.
            start_path: Great circle flown at the start.
            end: End point on ``end_path``.
            end_path: Great circle to join.
            desired_turn_direction: Forced direction of the (first) turn.
            min_turn_radius_m: Minimum turn radius in meters.
            prefer_single_turn: Whether to prefer one wide turn.
            flags: Flags for every vector.
            include_turn_to_course_flag: Whether turns also get TURN_TO_COURSE.

        Returns:
            Number of vectors written.
        """
        turn_flags = flags | FlightPathVectorFlags.TURN_TO_COURSE if include_turn_to_course_flag else flags

        with self._arena.claim("JoinGreatCircleToPointBuilder") as arena:
            start_vec = as_vec(start)
            end_vec = as_vec(end)
            min_radius = meters_to_radians(min_turn_radius_m)

            if end_path.includes(start_vec, ON_PATH_TOLERANCE):
                course_diff = diff_angle(start_path.bearing_at(start_vec, math.pi), end_path.bearing_at(start_vec, math.pi))
                if abs(course_diff) < MIN_TURN_ANGLE_DEG and end_path.angle_along(start_vec, end_vec, math.pi) < math.pi:
                    return self._great_circle_builder.build_along_path(vectors, index, start_vec, end_path, end_vec, flags)

            count = start_path.intersection(end_path, arena.intersections)
            if count > 0:
                best = min(range(count), key=lambda i: start_path.angle_along(start_vec, arena.intersections[i], math.pi))
                vertex = arena.intersections[best].copy()
                written = self._build_single_turn(
                    vectors, index, start_vec, start_path, end_vec, end_path, vertex,
                    desired_turn_direction, min_radius, prefer_single_turn, flags, turn_flags,
                )
                if written > 0:
                    return written

        return self._build_two_turns(
            vectors, index, start_vec, start_path, end_vec, end_path,
            desired_turn_direction, min_turn_radius_m, flags, turn_flags,
        )

    def _build_single_turn(
        self,
        vectors: list[FlightPathVector],
        index: int,
        start: Vec3,
        start_path: GeoCircle,
        end: Vec3,
        end_path: GeoCircle,
        vertex: Vec3,
        desired_turn_direction: VectorTurnDirection | None,
        min_radius: float,
        prefer_single_turn: bool,
        flags: FlightPathVectorFlags,
        turn_flags: FlightPathVectorFlags,
    ) -> int:
        course_in = start_path.bearing_at(vertex, math.pi)
        course_out = end_path.bearing_at(vertex, math.pi)
        delta = diff_angle(course_in, course_out)
        direction = desired_turn_direction or (VectorTurnDirection.RIGHT if delta >= 0 else VectorTurnDirection.LEFT)
        turn_angle = delta % 360.0 if direction is VectorTurnDirection.RIGHT else (-delta) % 360.0

        if not (MIN_TURN_ANGLE_DEG <= turn_angle <= 180.0 - MIN_TURN_ANGLE_DEG):
            return 0

        to_vertex = start_path.angle_along(start, vertex, math.pi)
        from_vertex = end_path.angle_along(vertex, end, math.pi)
        if to_vertex >= math.pi or from_vertex >= math.pi:
            return 0

        count = 0
        if min_radius <= 0.0 and not prefer_single_turn:
            if to_vertex > 0.0:
                count += self._circle_builder.build(vectors, index + count, start_path, start, vertex, flags)
            if from_vertex > 0.0:
                count += self._circle_builder.build(vectors, index + count, end_path, vertex, end, flags)
            return count

        tan_half = math.tan(math.radians(turn_angle) / 2)
        available = min(to_vertex, from_vertex)
        fit_radius = math.atan(math.sin(available) / tan_half)
        if fit_radius < min_radius - ANGULAR_TOLERANCE:
            return 0

        radius = fit_radius if prefer_single_turn else min_radius
        anticipation = math.asin(min(1.0, math.tan(radius) * tan_half))
        turn_start = start_path.offset_distance_along(vertex, -anticipation)
        turn = get_turn_circle_start_at(turn_start, start_path, radius, direction)
        turn_end = end_path.closest(get_turn_center_from_circle(turn))

        lead_in = start_path.angle_along(start, turn_start, math.pi)
        if 0.0 < lead_in < math.pi:
            count += self._circle_builder.build(vectors, index + count, start_path, start, turn_start, flags)
        count += self._circle_builder.build(vectors, index + count, turn, turn_start, turn_end, turn_flags)
        lead_out = end_path.angle_along(turn_end, end, math.pi)
        if 0.0 < lead_out < math.pi:
            count += self._circle_builder.build(vectors, index + count, end_path, turn_end, end, flags)
        return count

    def _build_two_turns(
        self,
        vectors: list[FlightPathVector],
        index: int,
        start: Vec3,
        start_path: GeoCircle,
        end: Vec3,
        end_path: GeoCircle,
        desired_turn_direction: VectorTurnDirection | None,
        min_turn_radius_m: float,
        flags: FlightPathVectorFlags,
        turn_flags: FlightPathVectorFlags,
    ) -> int:
        if min_turn_radius_m <= 0.0:
            return self._great_circle_builder.build(vectors, index, start, end, flags=flags)

        first_direction = desired_turn_direction or (
            VectorTurnDirection.LEFT if start_path.encircles(end) else VectorTurnDirection.RIGHT
        )

        best: list[FlightPathVector] | None = None
        best_length = math.inf
        for last_direction in (VectorTurnDirection.LEFT, VectorTurnDirection.RIGHT):
            candidate: list[FlightPathVector] = []
            written = self._join_at_point_builder.build(
                candidate, 0, start, start_path, min_turn_radius_m, first_direction,
                end, end_path, min_turn_radius_m, last_direction,
                turn_flags, turn_flags, flags,
            )
            length = sum(v.distance for v in candidate[:written])
            if written > 0 and length < best_length:
                best, best_length = candidate[:written], length

        if best is None:
            logger.debug("No two-turn join found, flying direct to end point")
            return self._great_circle_builder.build(vectors, index, start, end, flags=flags)

        return splice_vectors(vectors, index, best)


class ProcedureTurnBuilder:
    """Builds a procedure turn course reversal."""

    def __init__(self, arena: ScratchArena | None = None) -> None:
        self._arena = arena or ScratchArena()
        self._circle_builder = CircleVectorBuilder()
        self._turn_to_course_builder = TurnToCourseBuilder()
        self._join_builder = JoinGreatCircleToPointBuilder()

    def build(
        self,
        vectors: list[FlightPathVector],
        index: int,
        start: Point,
        start_path: GeoCircle,
        end: Point | None,
        end_path: GeoCircle,
        outbound_course: float,
        desired_turn_radius_m: float,
        desired_turn_direction: VectorTurnDirection | None = None,
        initial_course: float | None = None,
        flags: FlightPathVectorFlags = FlightPathVectorFlags.COURSE_REVERSAL,
        include_turn_to_course_flag: bool = True,
    ) -> int:
        """Build initial turn, outbound leg, 180 degree turn, inbound leg and final turn.

        The outbound leg is lengthened just enough for the final turn to
        begin where the 180 degree turn ends. When there is more room the
        inbound leg absorbs it. When the inbound course never meets the end
        path, or the final turn would overshoot ``end``, the reversal is
        completed by a join path from the end of the 180 degree turn instead
        of the nominal inbound leg and final turn.

        Args:
            start: Start point on ``start_path``.
            start_path: Path flown at the start.
            end: End point on ``end_path``, or None to stop where the final
                turn joins ``end_path``.
            end_path: Great circle of the final (inbound) course.
            outbound_course: True course of the outbound leg.
            desired_turn_radius_m: Turn radius in meters.
            desired_turn_direction: Direction of the 180 degree turn; defaults
                to the opposite of the initial turn.
            initial_course: True course at the start, taken from
                ``start_path`` when None.
            flags: Flags for every vector.
            include_turn_to_course_flag: Whether turns also get TURN_TO_COURSE.

        Returns:
            Number of vectors written.
        """
        turn_flags = flags | FlightPathVectorFlags.TURN_TO_COURSE if include_turn_to_course_flag else flags

        with self._arena.claim("ProcedureTurnBuilder") as arena:
            start_vec = as_vec(start)
            radius = meters_to_radians(desired_turn_radius_m)
            if initial_course is None:
                initial_course = start_path.bearing_at(start_vec, math.pi)

            initial_direction = get_turn_direction(initial_course, outbound_course)
            reversal_direction = desired_turn_direction or initial_direction.opposite()

            count = self._turn_to_course_builder.build(
                vectors, index, start_vec, desired_turn_radius_m, initial_direction,
                initial_course, outbound_course, turn_flags,
            )
            outbound_start = vectors[index].end.to_cartesian()
            outbound_path = arena.circles[0].set_as_great_circle(outbound_start, outbound_course)

            reversal_start = outbound_start
            reversal = self._reversal_at(reversal_start, outbound_path, radius, reversal_direction)
            final = self._final_turn(reversal, end_path, radius)

            if final is not None:
                inbound_length = _signed_angle(reversal[2].angle_along(reversal[1], final[1], math.pi))
                if inbound_length < 0.0:
                    reversal_start = outbound_path.offset_distance_along(outbound_start, -inbound_length)
                    reversal = self._reversal_at(reversal_start, outbound_path, radius, reversal_direction)
                    final = self._final_turn(reversal, end_path, radius)

            if final is not None and end is not None:
                remaining = end_path.angle_along(final[2], end, math.pi)
                if remaining >= math.pi:
                    final = None

            if outbound_path.angle_along(outbound_start, reversal_start, math.pi) > 0.0:
                count += self._circle_builder.build(vectors, index + count, outbound_path, outbound_start, reversal_start, flags)

            turn, reversal_end, inbound_path = reversal
            count += self._circle_builder.build(vectors, index + count, turn, reversal_start, reversal_end, turn_flags)

            if final is None:
                logger.debug("Procedure turn cannot close nominally, joining the inbound course directly")
                target = as_vec(end) if end is not None else end_path.offset_distance_along(
                    end_path.closest(reversal_end), 4 * radius
                )
                return count + self._join_builder.build(
                    vectors, index + count, reversal_end, inbound_path, target, end_path,
                    min_turn_radius_m=desired_turn_radius_m, flags=flags,
                    include_turn_to_course_flag=include_turn_to_course_flag,
                )

            final_turn, final_start, final_end = final
            if inbound_path.angle_along(reversal_end, final_start, math.pi) > 0.0:
                count += self._circle_builder.build(vectors, index + count, inbound_path, reversal_end, final_start, flags)
            count += self._circle_builder.build(vectors, index + count, final_turn, final_start, final_end, turn_flags)
            if end is not None and end_path.angle_along(final_end, end, math.pi) > 0.0:
                count += self._circle_builder.build(vectors, index + count, end_path, final_end, end, flags)
            return count

    @staticmethod
    def _reversal_at(
        point: Vec3,
        outbound_path: GeoCircle,
        radius: float,
        direction: VectorTurnDirection,
    ) -> tuple[GeoCircle, Vec3, GeoCircle]:
        turn = get_turn_circle_start_at(point, outbound_path, radius, direction)
        reversal_end = turn.offset_angle_along(point, math.pi)
        inbound_path = GeoCircle.from_bearing(reversal_end, turn.bearing_at(reversal_end, math.pi))
        return turn, reversal_end, inbound_path

    @staticmethod
    def _final_turn(
        reversal: tuple[GeoCircle, Vec3, GeoCircle],
        end_path: GeoCircle,
        radius: float,
    ) -> tuple[GeoCircle, Vec3, Vec3] | None:
        _, reversal_end, inbound_path = reversal
        points = inbound_path.intersection_points(end_path)
        if not points:
            return None

        vertex = min(points, key=lambda p: abs(_signed_angle(inbound_path.angle_along(reversal_end, p, math.pi))))
        course_in = inbound_path.bearing_at(vertex, math.pi)
        course_out = end_path.bearing_at(vertex, math.pi)
        delta = diff_angle(course_in, course_out)
        if abs(delta) < MIN_TURN_ANGLE_DEG or abs(delta) > 180.0 - MIN_TURN_ANGLE_DEG:
            return None

        direction = VectorTurnDirection.RIGHT if delta > 0 else VectorTurnDirection.LEFT
        anticipation = math.asin(min(1.0, math.tan(radius) * math.tan(math.radians(abs(delta)) / 2)))
        final_start = inbound_path.offset_distance_along(vertex, -anticipation)
        turn = get_turn_circle_start_at(final_start, inbound_path, radius, direction)
        final_end = end_path.closest(get_turn_center_from_circle(turn))
        return turn, final_start, final_end


class DirectToPointBuilder:
    """Builds a turn followed by a great circle to a point."""

    def __init__(self, arena: ScratchArena | None = None) -> None:
        self._arena = arena or ScratchArena()
        self._circle_builder = CircleVectorBuilder()
        self._great_circle_builder = GreatCircleBuilder()

    def build(
        self,
        vectors: list[FlightPathVector],
        index: int,
        start: Point,
        start_path: GeoCircle,
        end: Point,
        desired_turn_radius_m: float,
        desired_turn_direction: VectorTurnDirection | None = None,
        flags: FlightPathVectorFlags = FlightPathVectorFlags.NONE,
        include_turn_to_course_flag: bool = True,
    ) -> int:
        """Build a path direct to a point from a start point and path.

        The turn goes toward the end point unless a direction is forced. If
        the end point lies inside the turn circle the other direction is
        tried (when not forced); if no turn can reach the end point the path
        is a plain great circle from the start.

        Args:
            start: Start point on ``start_path``.
            start_path: Path flown at the start.
            end: Target point.
            desired_turn_radius_m: Turn radius in meters.
            desired_turn_direction: Forced turn direction.
            flags: Flags for every vector.
            include_turn_to_course_flag: Whether the turn also gets TURN_TO_COURSE.

        Returns:
            Number of vectors written; 0 when start and end coincide.
        """
        turn_flags = flags | FlightPathVectorFlags.TURN_TO_COURSE if include_turn_to_course_flag else flags

        with self._arena.claim("DirectToPointBuilder") as arena:
            start_vec = as_vec(start)
            end_vec = as_vec(end)
            if GeoPoint.from_cartesian(start_vec).equals(GeoPoint.from_cartesian(end_vec)):
                return 0

            if start_path.includes(end_vec, ON_PATH_TOLERANCE) and start_path.angle_along(start_vec, end_vec, math.pi) < math.pi:
                return self._circle_builder.build(vectors, index, start_path, start_vec, end_vec, flags)

            radius = meters_to_radians(desired_turn_radius_m)
            if radius > 0.0:
                if desired_turn_direction is not None:
                    directions = [desired_turn_direction]
                else:
                    toward = VectorTurnDirection.LEFT if start_path.encircles(end_vec) else VectorTurnDirection.RIGHT
                    directions = [toward, toward.opposite()]

                for direction in directions:
                    solution = self._solve(arena, start_vec, start_path, end_vec, radius, direction)
                    if solution is None:
                        continue

                    turn, tangent, path = solution
                    count = 0
                    if turn.angle_along(start_vec, tangent, math.pi) > 0.0:
                        count += self._circle_builder.build(vectors, index, turn, start_vec, tangent, turn_flags)
                    if path.angle_along(tangent, end_vec, math.pi) > 0.0:
                        count += self._circle_builder.build(vectors, index + count, path, tangent, end_vec, flags)
                    return count

                logger.debug("End point unreachable with a %.0f m turn, flying direct", desired_turn_radius_m)

            return self._great_circle_builder.build(vectors, index, start_vec, end_vec, flags=flags)

    @staticmethod
    def _solve(
        arena: ScratchArena,
        start: Vec3,
        start_path: GeoCircle,
        end: Vec3,
        radius: float,
        direction: VectorTurnDirection,
    ) -> tuple[GeoCircle, Vec3, GeoCircle] | None:
        turn = get_turn_circle_start_at(start, start_path, radius, direction)
        center = get_turn_center_from_circle(turn)
        if math.acos(max(-1.0, min(1.0, float(np.dot(center, end))))) < radius - ANGULAR_TOLERANCE:
            return None

        pole_ring = arena.circles[1].set(turn.center, abs(HALF_PI - turn.radius))
        end_ring = arena.circles[2].set(end, HALF_PI)
        count = pole_ring.intersection(end_ring, arena.intersections)

        best: tuple[float, GeoCircle, Vec3, GeoCircle] | None = None
        for i in range(count):
            pole = arena.intersections[i].copy()
            tangent = tangent_point(turn.center, turn.radius, pole, HALF_PI)
            if tangent is None:
                continue
            path = GeoCircle(pole, HALF_PI)
            along = path.angle_along(tangent, end, math.pi)
            if along >= math.pi:
                continue
            total = turn.distance_along(start, tangent, math.pi) + path.arc_length(along)
            if best is None or total < best[0]:
                best = (total, turn, tangent, path)

        if best is None:
            return None
        return best[1], best[2], best[3]


__all__ = [
    "CircleInterceptBuilder",
    "CircleVectorBuilder",
    "ConnectCirclesBuilder",
    "DirectToPointBuilder",
    "GreatCircleBuilder",
    "JoinGreatCircleToPointBuilder",
    "ProcedureTurnBuilder",
    "TurnToCourseBuilder",
    "TurnToJoinGreatCircleAtPointBuilder",
    "TurnToJoinGreatCircleBuilder",
    "splice_vectors",
    "tangent_point",
]
