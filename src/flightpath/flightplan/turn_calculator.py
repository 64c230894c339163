"""Turns between consecutive legs.

For every junction between two calculated legs the calculator decides
between no turn, an anticipated track-to-track turn, a track-to-track
course reversal, or an arc-to-track turn built from a tangent circle.

An anticipated turn of radius r through a course change of A degrees
starts before the junction by the anticipation distance D, where
``sin D = tan r / tan theta`` and theta, the tangent angle, is half of
``180 - A``. The turn is split at its midpoint: the first half becomes the
egress of the leg before the junction and the second half the ingress of the
leg after it.

Two turns that share a vector may not claim more of it than its length. The
later turn is shortened (and its radius reduced), or, when allowed, both
turns are scaled down together. Shortened turns carry DEGRADED_TURN.

Typical usage:
    calculator = FlightPathTurnCalculator()
    calculator.compute_turns(legs, 0, len(legs), desired_turn_radius_m=1500.0)
"""

import logging
import math
from dataclasses import dataclass

from flightpath.geo.geo_circle import GeoCircle
from flightpath.geo.geo_point import GeoPoint, Vec3
from flightpath.geo.nav_math import diff_angle, meters_to_radians, radians_to_meters
from flightpath.navigation.legs import LegType
from flightpath.flightplan.flight_path_utils import (
    circle_from_vector,
    get_turn_center_from_circle,
    get_turn_circle_start_at,
    get_vector_final_course,
    get_vector_initial_course,
    is_point_along_arc,
    is_vector_great_circle,
    write_circle_vector,
)
from flightpath.flightplan.vector_builders import ConnectCirclesBuilder, ProcedureTurnBuilder
from flightpath.flightplan.vectors import (
    FlightPathVector,
    FlightPathVectorFlags,
    LegCalculations,
    LegDefinition,
    VectorTurnDirection,
)

logger = logging.getLogger(__name__)

# Course changes below this, in degrees, need no turn.
MIN_TURN_ANGLE_DEG = 0.1
# Tolerance for two legs meeting at the same point, great-arc radians.
JUNCTION_TOLERANCE = 1e-6

_TURN_FLAGS = FlightPathVectorFlags.LEG_TO_LEG_TURN | FlightPathVectorFlags.ANTICIPATED_TURN


@dataclass
class _TrackTurn:
    """An anticipated track-to-track turn, kept so that it can be rebuilt."""

    from_calc: LegCalculations
    to_calc: LegCalculations
    from_vector: FlightPathVector
    to_vector: FlightPathVector
    tan_theta: float
    anticipation: float
    direction: VectorTurnDirection


class FlightPathTurnCalculator:
    """Computes leg-to-leg turns for a sequence of calculated legs.

    Attributes:
        course_reversal_threshold_deg: Course change from which a junction
            is flown as a course reversal.
        allow_previous_turn_adjustment: Whether an earlier turn may be
            shortened to make room for a later one on a shared vector.
    """

    def __init__(
        self,
        course_reversal_threshold_deg: float = 135.0,
        allow_previous_turn_adjustment: bool = True,
    ) -> None:
        self.course_reversal_threshold_deg = course_reversal_threshold_deg
        self.allow_previous_turn_adjustment = allow_previous_turn_adjustment
        self._connect_builder = ConnectCirclesBuilder()
        self._procedure_turn_builder = ProcedureTurnBuilder()

    def compute_turns(
        self,
        legs: list[LegDefinition],
        start_index: int,
        count: int,
        desired_turn_radius_m: float,
    ) -> None:
        """Compute the turns at every junction touching a range of legs.

        The junction before ``start_index`` is included, since the leg
        before the range may now meet a different path.

        Args:
            legs: The leg sequence.
            start_index: Index of the first recalculated leg.
            count: Number of recalculated legs.
            desired_turn_radius_m: Turn radius in meters.
        """
        first = max(start_index - 1, 0)
        last = min(start_index + count, len(legs) - 1)

        for index in range(first, last):
            self._set_empty_turn(legs[index].calculated, legs[index + 1].calculated)

        previous: _TrackTurn | None = None
        for index in range(first, last):
            previous = self._compute_junction(legs[index], legs[index + 1], desired_turn_radius_m, previous)

    @staticmethod
    def _set_empty_turn(from_calc: LegCalculations | None, to_calc: LegCalculations | None) -> None:
        if from_calc is not None:
            from_calc.egress.clear()
            from_calc.egress_join_index = -1
        if to_calc is not None:
            to_calc.ingress.clear()
            to_calc.ingress_join_index = -1

    def _compute_junction(
        self,
        from_leg: LegDefinition,
        to_leg: LegDefinition,
        radius_m: float,
        previous: _TrackTurn | None,
    ) -> _TrackTurn | None:
        from_calc = from_leg.calculated
        to_calc = to_leg.calculated
        if (
            from_calc is None
            or to_calc is None
            or from_leg.leg.type is LegType.DISCONTINUITY
            or to_leg.leg.type is LegType.DISCONTINUITY
            or not from_calc.flight_path
            or not to_calc.flight_path
            or from_leg.leg.fly_over
        ):
            return None

        from_vector = from_calc.flight_path[-1]
        to_vector = to_calc.flight_path[0]
        if from_vector.end.distance(to_vector.start) > JUNCTION_TOLERANCE:
            return None

        course_in = get_vector_final_course(from_vector)
        course_out = get_vector_initial_course(to_vector)
        if math.isnan(course_in) or math.isnan(course_out):
            return None

        delta = diff_angle(course_in, course_out)
        if abs(delta) < MIN_TURN_ANGLE_DEG or radius_m <= 0.0:
            return None

        if not (is_vector_great_circle(from_vector) and is_vector_great_circle(to_vector)):
            self._compute_arc_turn(from_calc, to_calc, from_vector, to_vector, radius_m)
            return None

        if abs(delta) >= self.course_reversal_threshold_deg:
            self._compute_course_reversal(to_calc, from_vector, to_vector, course_in, delta, radius_m)
            return None

        return self._compute_track_turn(from_calc, to_calc, from_vector, to_vector, delta, radius_m, previous)

    # ------------------------------------------------------------------
    # Track to track

    def _compute_track_turn(
        self,
        from_calc: LegCalculations,
        to_calc: LegCalculations,
        from_vector: FlightPathVector,
        to_vector: FlightPathVector,
        delta: float,
        radius_m: float,
        previous: _TrackTurn | None,
    ) -> _TrackTurn | None:
        theta = math.radians(180.0 - abs(delta)) / 2
        tan_theta = math.tan(theta)
        radius = meters_to_radians(radius_m)
        anticipation = math.asin(min(1.0, math.tan(radius) / tan_theta))
        direction = VectorTurnDirection.RIGHT if delta > 0 else VectorTurnDirection.LEFT

        from_length = meters_to_radians(from_vector.distance)
        claimed = self._claimed_by_ingress(from_calc, from_vector)
        degraded = False

        if anticipation > from_length - claimed:
            shares_vector = previous is not None and previous.to_calc is from_calc and claimed > 0.0
            if self.allow_previous_turn_adjustment and shares_vector:
                scale = from_length / (previous.anticipation + anticipation)
                previous.anticipation *= scale
                self._build_track_turn(previous, degraded=True)
                anticipation *= scale
                claimed = self._claimed_by_ingress(from_calc, from_vector)
            anticipation = min(anticipation, max(from_length - claimed, 0.0))
            degraded = True

        to_length = meters_to_radians(to_vector.distance)
        if anticipation > to_length:
            anticipation = to_length
            degraded = True

        if anticipation <= 0.0:
            logger.debug("No room for a turn of %.1f deg at junction", delta)
            return None

        turn = _TrackTurn(from_calc, to_calc, from_vector, to_vector, tan_theta, anticipation, direction)
        self._build_track_turn(turn, degraded)
        return turn

    @staticmethod
    def _claimed_by_ingress(calc: LegCalculations, vector: FlightPathVector) -> float:
        if not calc.ingress or calc.ingress_join_index != len(calc.flight_path) - 1:
            return 0.0
        circle = circle_from_vector(vector)
        angle = circle.angle_along(vector.start, calc.ingress[-1].end, math.pi)
        # A reversal rejoining behind the vector start claims none of it.
        if angle >= math.pi:
            return 0.0
        return circle.arc_length(angle)

    def _build_track_turn(self, turn: _TrackTurn, degraded: bool) -> None:
        from_circle = circle_from_vector(turn.from_vector)
        to_circle = circle_from_vector(turn.to_vector)
        vertex = turn.from_vector.end

        radius = math.atan(math.sin(turn.anticipation) * turn.tan_theta)
        turn_start = from_circle.offset_distance_along(vertex, -turn.anticipation)
        turn_circle = get_turn_circle_start_at(turn_start, from_circle, radius, turn.direction)
        turn_end = to_circle.closest(get_turn_center_from_circle(turn_circle))

        flags = _TURN_FLAGS | FlightPathVectorFlags.DEGRADED_TURN if degraded else _TURN_FLAGS
        if degraded:
            logger.debug("Turn radius reduced to %.0f m", radians_to_meters(radius))
        self._set_anticipated_turn(turn.from_calc, turn.to_calc, turn_circle, turn_start, turn_end, flags)

    @staticmethod
    def _set_anticipated_turn(
        from_calc: LegCalculations,
        to_calc: LegCalculations,
        circle: GeoCircle,
        start: GeoPoint | Vec3,
        end: GeoPoint | Vec3,
        flags: FlightPathVectorFlags,
    ) -> None:
        middle = circle.offset_angle_along(start, circle.angle_along(start, end, math.pi) / 2)

        write_circle_vector(from_calc.egress, 0, circle, start, middle, flags)
        del from_calc.egress[1:]
        from_calc.egress_join_index = len(from_calc.flight_path) - 1

        write_circle_vector(to_calc.ingress, 0, circle, middle, end, flags)
        del to_calc.ingress[1:]
        to_calc.ingress_join_index = 0

    # ------------------------------------------------------------------
    # Course reversal

    def _compute_course_reversal(
        self,
        to_calc: LegCalculations,
        from_vector: FlightPathVector,
        to_vector: FlightPathVector,
        course_in: float,
        delta: float,
        radius_m: float,
    ) -> None:
        from_circle = circle_from_vector(from_vector)
        to_circle = circle_from_vector(to_vector)
        outbound = course_in - 45.0 if delta > 0 else course_in + 45.0

        count = self._procedure_turn_builder.build(
            to_calc.ingress,
            0,
            from_vector.end,
            from_circle,
            None,
            to_circle,
            outbound % 360.0,
            radius_m,
            initial_course=course_in,
            flags=FlightPathVectorFlags.COURSE_REVERSAL | FlightPathVectorFlags.LEG_TO_LEG_TURN,
        )
        del to_calc.ingress[count:]

        if not to_calc.ingress or not self._joins_before_end(to_circle, to_vector, to_calc.ingress[-1].end):
            logger.warning("Course reversal does not join the next leg, leaving the junction without a turn")
            to_calc.ingress.clear()
            return
        to_calc.ingress_join_index = 0

    @staticmethod
    def _joins_before_end(circle: GeoCircle, vector: FlightPathVector, point: GeoPoint) -> bool:
        # The reversal may rejoin behind the vector start; it only may not overshoot the end.
        angle = circle.angle_along(vector.start, point, 1e-6)
        return angle >= math.pi or is_point_along_arc(circle, vector.start, vector.end, point, tolerance=1e-6)

    # ------------------------------------------------------------------
    # Arc to track

    def _compute_arc_turn(
        self,
        from_calc: LegCalculations,
        to_calc: LegCalculations,
        from_vector: FlightPathVector,
        to_vector: FlightPathVector,
        radius_m: float,
    ) -> None:
        from_circle = circle_from_vector(from_vector)
        to_circle = circle_from_vector(to_vector)

        from_start = from_vector.start
        if from_calc.ingress and from_calc.ingress_join_index == len(from_calc.flight_path) - 1:
            from_start = from_calc.ingress[-1].end

        best = None
        for circle, start, end in self._connect_builder.find_connections(
            from_circle, to_circle, meters_to_radians(radius_m)
        ):
            if not is_point_along_arc(from_circle, from_start, from_vector.end, start, tolerance=1e-6):
                continue
            if not is_point_along_arc(to_circle, to_vector.start, to_vector.end, end, tolerance=1e-6):
                continue
            length = circle.distance_along(start, end, math.pi)
            if best is None or length < best[0]:
                best = (length, circle, start, end)

        if best is None:
            logger.warning("No tangent turn of %.0f m connects arc and track legs", radius_m)
            return

        length, circle, start, end = best
        if length <= 0.0:
            return
        self._set_anticipated_turn(from_calc, to_calc, circle, start, end, _TURN_FLAGS)
