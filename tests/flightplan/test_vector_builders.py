"""Tests for the flight path vector builders."""

import math

import pytest

from flightpath.flightplan.flight_path_utils import (
    circle_from_vector,
    get_turn_direction_from_circle,
    get_vector_final_course,
    get_vector_initial_course,
)
from flightpath.flightplan.scratch import ScratchArena, ScratchInUseError
from flightpath.flightplan.vector_builders import (
    CircleInterceptBuilder,
    ConnectCirclesBuilder,
    DirectToPointBuilder,
    GreatCircleBuilder,
    ProcedureTurnBuilder,
    TurnToCourseBuilder,
    TurnToJoinGreatCircleAtPointBuilder,
    TurnToJoinGreatCircleBuilder,
)
from flightpath.flightplan.vectors import FlightPathVectorFlags, VectorTurnDirection
from flightpath.geo.geo_circle import GeoCircle, GeometryError
from flightpath.geo.geo_point import GeoPoint
from flightpath.geo.nav_math import EARTH_RADIUS_M, diff_angle, meters_to_radians

ORIGIN = GeoPoint(0.0, 0.0)
EASTBOUND = GeoCircle.from_bearing(ORIGIN, 90.0)


def assert_continuous(vectors):
    for before, after in zip(vectors, vectors[1:]):
        assert before.end.equals(after.start, 1e-6)


class TestGreatCircleBuilder:
    """Tests for GreatCircleBuilder."""

    def test_build_between_points(self):
        """Test a great circle between two points."""
        vectors = []

        count = GreatCircleBuilder().build(vectors, 0, ORIGIN, GeoPoint(0.0, 1.0))

        assert count == 1
        assert vectors[0].distance == pytest.approx(math.radians(1.0) * EARTH_RADIUS_M)
        assert get_vector_initial_course(vectors[0]) == pytest.approx(90.0)

    def test_antipodal_points_need_a_course(self):
        """Test that antipodal points are ambiguous without an initial course."""
        with pytest.raises(GeometryError):
            GreatCircleBuilder().build([], 0, ORIGIN, ORIGIN.antipode())

    def test_antipodal_points_with_course(self):
        """Test that an initial course picks the great circle between antipodes."""
        vectors = []

        GreatCircleBuilder().build(vectors, 0, ORIGIN, ORIGIN.antipode(), initial_course=0.0)

        assert vectors[0].distance == pytest.approx(math.pi * EARTH_RADIUS_M)
        assert get_vector_final_course(vectors[0]) == pytest.approx(180.0)

    def test_build_along_path_by_distance(self):
        """Test following a great circle for a distance."""
        vectors = []

        GreatCircleBuilder().build_along_path(vectors, 0, ORIGIN, EASTBOUND, 10000.0)

        assert vectors[0].distance == pytest.approx(10000.0)
        assert vectors[0].end_lon == pytest.approx(math.degrees(meters_to_radians(10000.0)))

    def test_build_along_small_circle_rejected(self):
        """Test that only great circles can be followed."""
        with pytest.raises(GeometryError):
            GreatCircleBuilder().build_along_path([], 0, ORIGIN, GeoCircle(GeoPoint(1.0, 0.0), 0.1), 100.0)


class TestTurnToCourseBuilder:
    """Tests for TurnToCourseBuilder."""

    def test_right_turn(self):
        """Test a 90 degree right turn from east to south."""
        vectors = []

        count = TurnToCourseBuilder().build(vectors, 0, ORIGIN, 1000.0, VectorTurnDirection.RIGHT, 90.0, 180.0)

        assert count == 1
        assert vectors[0].flags == FlightPathVectorFlags.TURN_TO_COURSE
        assert get_vector_final_course(vectors[0]) == pytest.approx(180.0)
        assert vectors[0].distance == pytest.approx(1000.0 * math.pi / 2, rel=1e-4)
        assert vectors[0].end_lat < 0.0

    def test_long_way_round(self):
        """Test that a left turn from east to south covers 270 degrees."""
        vectors = []

        TurnToCourseBuilder().build(vectors, 0, ORIGIN, 1000.0, VectorTurnDirection.LEFT, 90.0, 180.0)

        assert vectors[0].distance == pytest.approx(1000.0 * 3 * math.pi / 2, rel=1e-4)


class TestCircleInterceptBuilder:
    """Tests for CircleInterceptBuilder."""

    def test_intercept_ahead(self):
        """Test flying to the first intersection with a DME ring."""
        ring_radius = meters_to_radians(10000.0)
        ring = GeoCircle(GeoPoint(0.0, 0.5), ring_radius)
        vectors = []

        count = CircleInterceptBuilder().build(vectors, 0, ORIGIN, 90.0, ring)

        assert count == 1
        assert vectors[0].distance == pytest.approx((math.radians(0.5) - ring_radius) * EARTH_RADIUS_M)

    def test_intercept_behind_is_rejected(self):
        """Test that intersections behind the start are not flown."""
        ring = GeoCircle(GeoPoint(0.0, 0.5), meters_to_radians(10000.0))

        assert CircleInterceptBuilder().build([], 0, ORIGIN, 270.0, ring) == 0

    def test_no_intersection(self):
        """Test a circle the path never meets."""
        ring = GeoCircle(GeoPoint(10.0, 0.0), math.radians(1.0))

        assert CircleInterceptBuilder().build([], 0, ORIGIN, 90.0, ring) == 0

    def test_start_must_lie_on_path(self):
        """Test that a given path must contain the start."""
        ring = GeoCircle(GeoPoint(0.0, 0.5), 0.001)

        with pytest.raises(GeometryError):
            CircleInterceptBuilder().build([], 0, GeoPoint(1.0, 0.0), EASTBOUND, ring)


class TestConnectCirclesBuilder:
    """Tests for ConnectCirclesBuilder."""

    def test_concentric_circles_cannot_connect(self):
        """Test that circles sharing a center have no connection."""
        a = GeoCircle(ORIGIN, 0.01)
        b = GeoCircle(ORIGIN, 0.02)

        assert ConnectCirclesBuilder().build([], 0, a, b, 1000.0) == 0

    def test_connect_crossing_tracks(self):
        """Test joining a northbound track from an eastbound one."""
        northbound = GeoCircle.from_bearing(GeoPoint(0.0, 1.0), 0.0)
        end = GeoPoint(0.5, 1.0)
        vectors = []

        count = ConnectCirclesBuilder().build(
            vectors, 0, EASTBOUND, northbound, 1000.0, from_point=ORIGIN, to_point=end
        )

        assert count == 3
        assert vectors[0].start.equals(ORIGIN, 1e-6)
        assert vectors[-1].end.equals(end, 1e-6)
        assert_continuous(vectors)
        assert diff_angle(0.0, get_vector_final_course(vectors[-1])) == pytest.approx(0.0, abs=1e-6)


class TestDirectToPointBuilder:
    """Tests for DirectToPointBuilder."""

    def test_turn_then_direct(self):
        """Test a turn toward a point off the current track."""
        end = GeoPoint(0.5, 1.0)
        vectors = []

        count = DirectToPointBuilder().build(vectors, 0, ORIGIN, EASTBOUND, end, 1000.0)

        assert count == 2
        assert vectors[0].flags & FlightPathVectorFlags.TURN_TO_COURSE
        assert get_vector_initial_course(vectors[0]) == pytest.approx(90.0)
        assert vectors[-1].end.equals(end, 1e-6)
        assert_continuous(vectors)

    def test_point_ahead_on_track(self):
        """Test that a point straight ahead needs no turn."""
        vectors = []

        count = DirectToPointBuilder().build(vectors, 0, ORIGIN, EASTBOUND, GeoPoint(0.0, 1.0), 1000.0)

        assert count == 1
        assert vectors[0].flags == FlightPathVectorFlags.NONE

    def test_start_equals_end(self):
        """Test that no vector is written when already at the point."""
        assert DirectToPointBuilder().build([], 0, ORIGIN, EASTBOUND, ORIGIN, 1000.0) == 0


class TestTurnToJoinGreatCircleBuilder:
    """Tests for TurnToJoinGreatCircleBuilder."""

    def test_right_turn_tangent_to_target(self):
        """Test a right turn from north that touches an eastbound track at its top."""
        radius_deg = math.degrees(meters_to_radians(1000.0))
        touch = GeoPoint(radius_deg, radius_deg)
        target = GeoCircle.from_bearing(touch, 90.0)
        vectors = []

        count = TurnToJoinGreatCircleBuilder().build(vectors, 0, ORIGIN, 0.0, target, 1000.0)

        assert count == 1
        assert vectors[0].flags == FlightPathVectorFlags.TURN_TO_COURSE
        assert get_turn_direction_from_circle(circle_from_vector(vectors[0])) is VectorTurnDirection.RIGHT
        assert vectors[0].end.equals(touch, 1e-6)
        assert target.includes(vectors[0].end, 1e-6)
        assert get_vector_final_course(vectors[0]) == pytest.approx(90.0, abs=1e-3)
        assert vectors[0].distance == pytest.approx(1000.0 * math.pi / 2, rel=1e-3)

    def test_left_turn_toward_target_on_left(self):
        """Test that a target whose left side holds the start is joined turning left."""
        target = GeoCircle.from_bearing(GeoPoint(0.5, 0.0), 270.0)
        vectors = []

        TurnToJoinGreatCircleBuilder().build(vectors, 0, ORIGIN, 0.0, target, 1000.0)

        assert get_turn_direction_from_circle(circle_from_vector(vectors[0])) is VectorTurnDirection.LEFT
        assert diff_angle(270.0, get_vector_final_course(vectors[0])) == pytest.approx(0.0, abs=1e-2)
        assert vectors[0].end_lat > 0.0
        assert vectors[0].end.lon < 0.0


class TestTurnToJoinGreatCircleAtPointBuilder:
    """Tests for TurnToJoinGreatCircleAtPointBuilder."""

    def test_offset_parallel_track(self):
        """Test joining a northbound track offset to the east at a pinned point."""
        end = GeoPoint(0.1, 0.1)
        vectors = []

        count = TurnToJoinGreatCircleAtPointBuilder().build(
            vectors,
            0,
            ORIGIN,
            GeoCircle.from_bearing(ORIGIN, 0.0),
            1000.0,
            VectorTurnDirection.RIGHT,
            end,
            GeoCircle.from_bearing(end, 0.0),
            1000.0,
            VectorTurnDirection.LEFT,
        )

        assert count == 3
        assert vectors[0].start.equals(ORIGIN, 1e-6)
        assert vectors[-1].end.equals(end, 1e-6)
        assert_continuous(vectors)
        assert vectors[0].flags == FlightPathVectorFlags.TURN_TO_COURSE
        assert vectors[-1].flags == FlightPathVectorFlags.TURN_TO_COURSE
        assert get_turn_direction_from_circle(circle_from_vector(vectors[0])) is VectorTurnDirection.RIGHT
        assert get_turn_direction_from_circle(circle_from_vector(vectors[-1])) is VectorTurnDirection.LEFT
        assert diff_angle(0.0, get_vector_initial_course(vectors[0])) == pytest.approx(0.0, abs=1e-6)
        assert diff_angle(0.0, get_vector_final_course(vectors[-1])) == pytest.approx(0.0, abs=1e-6)


class TestProcedureTurnBuilder:
    """Tests for ProcedureTurnBuilder."""

    def test_course_reversal_back_to_fix(self):
        """Test a reversal that returns northbound to the starting fix."""
        southbound = GeoCircle.from_bearing(ORIGIN, 180.0)
        inbound = GeoCircle.from_bearing(ORIGIN, 0.0)
        vectors = []

        count = ProcedureTurnBuilder().build(vectors, 0, ORIGIN, southbound, ORIGIN, inbound, 135.0, 1000.0)

        assert count == len(vectors)
        assert count >= 4
        assert all(v.flags & FlightPathVectorFlags.COURSE_REVERSAL for v in vectors)
        assert_continuous(vectors)
        assert vectors[-1].end.equals(ORIGIN, 1e-6)
        assert diff_angle(0.0, get_vector_final_course(vectors[-1])) == pytest.approx(0.0, abs=1e-3)


class TestScratchArena:
    """Tests for scratch buffer ownership."""

    def test_claim_marks_arena_in_use(self):
        """Test that a claim is released after the build."""
        arena = ScratchArena()

        with arena.claim("outer"):
            assert arena.in_use
        assert not arena.in_use

    def test_reentrant_build_rejected(self):
        """Test that a builder cannot build while its arena is claimed."""
        arena = ScratchArena()
        builder = GreatCircleBuilder(arena)

        with arena.claim("outer"):
            with pytest.raises(ScratchInUseError, match="outer"):
                builder.build([], 0, ORIGIN, GeoPoint(0.0, 1.0))

        assert builder.build([], 0, ORIGIN, GeoPoint(0.0, 1.0)) == 1

    def test_buffers_reused_between_builds(self):
        """Test that a builder writes intersections into its arena's buffers."""
        arena = ScratchArena(circle_count=2)
        first = arena.intersections[0]
        ring = GeoCircle(GeoPoint(0.0, 0.5), meters_to_radians(10000.0))

        CircleInterceptBuilder(arena).build([], 0, ORIGIN, 90.0, ring)

        assert len(arena.circles) == 2
        assert arena.intersections[0] is first
        assert GeoPoint.from_cartesian(first).lon == pytest.approx(0.5, abs=0.1)
