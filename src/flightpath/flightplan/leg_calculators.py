"""Per-leg-type flight path calculation.

Each leg type maps onto one LegCalculatorKind, and FlightPathLegCalculator
dispatches on that kind with an exhaustive match. A calculator only fills
the leg's own ``flight_path``; turns between legs are added afterwards by
the turn calculator.

Calculators advance a shared FlightPathState: the position and true course
at the end of the path calculated so far. A None position marks a break in
the path (start of plan, discontinuity, or an unresolvable fix), which the
next leg has to start from scratch.

Typical usage:
    calculator = FlightPathLegCalculator(facility_cache)
    state = FlightPathState(desired_turn_radius_m=1500.0)
    for index in range(len(legs)):
        calculator.calculate(legs, index, active_leg_index, state)
"""

import logging
import math
from collections.abc import Callable
from enum import Enum
from typing import assert_never

from flightpath.geo.geo_circle import ANGULAR_TOLERANCE, HALF_PI, GeoCircle
from flightpath.geo.geo_point import GeoPoint
from flightpath.geo.nav_math import (
    METERS_PER_NM,
    diff_angle,
    magnetic_to_true,
    meters_to_radians,
    nm_to_meters,
    normalize_heading,
)
from flightpath.navigation.facilities import Facility, FacilityType
from flightpath.navigation.legs import FlightPlanLeg, LegTurnDirection, LegType
from flightpath.flightplan.flight_path_utils import (
    get_turn_circle,
    get_turn_direction,
    get_vector_final_course,
)
from flightpath.flightplan.state import FlightPathState
from flightpath.flightplan.vector_builders import (
    CircleInterceptBuilder,
    CircleVectorBuilder,
    DirectToPointBuilder,
    GreatCircleBuilder,
    JoinGreatCircleToPointBuilder,
    ProcedureTurnBuilder,
    TurnToCourseBuilder,
)
from flightpath.flightplan.vectors import (
    FlightPathVector,
    FlightPathVectorFlags,
    LegCalculations,
    LegDefinition,
    LegDefinitionFlags,
    VectorTurnDirection,
)

logger = logging.getLogger(__name__)

MagvarProvider = Callable[[GeoPoint], float]

# Distance flown before a course-to-fix leg that starts the path.
DEFAULT_COURSE_TO_FIX_DISTANCE_NM = 5.0
# Course differences below this, in degrees, need no turn.
ALIGNED_COURSE_TOLERANCE_DEG = 1e-3
# Angle from the hold's outbound course flown on a teardrop entry.
TEARDROP_OFFSET_DEG = 30.0


class LegCalculatorKind(Enum):
    """Geometry recipe used for a leg type."""

    TRACK_TO_FIX = "track_to_fix"
    ARC_TO_FIX = "arc_to_fix"
    RADIUS_TO_FIX = "radius_to_fix"
    COURSE_TO_FIX = "course_to_fix"
    DIRECT_TO_FIX = "direct_to_fix"
    TRACK_FROM_FIX = "track_from_fix"
    COURSE_TO_ALTITUDE = "course_to_altitude"
    COURSE_TO_MANUAL = "course_to_manual"
    COURSE_TO_DME = "course_to_dme"
    FIX_TO_DME = "fix_to_dme"
    COURSE_TO_RADIAL = "course_to_radial"
    COURSE_TO_INTERCEPT = "course_to_intercept"
    PROCEDURE_TURN = "procedure_turn"
    HOLD = "hold"
    DISCONTINUITY = "discontinuity"


_KIND_BY_LEG_TYPE: dict[LegType, LegCalculatorKind] = {
    LegType.UNKNOWN: LegCalculatorKind.TRACK_TO_FIX,
    LegType.IF: LegCalculatorKind.TRACK_TO_FIX,
    LegType.TF: LegCalculatorKind.TRACK_TO_FIX,
    LegType.AF: LegCalculatorKind.ARC_TO_FIX,
    LegType.RF: LegCalculatorKind.RADIUS_TO_FIX,
    LegType.CF: LegCalculatorKind.COURSE_TO_FIX,
    LegType.DF: LegCalculatorKind.DIRECT_TO_FIX,
    LegType.FC: LegCalculatorKind.TRACK_FROM_FIX,
    LegType.CA: LegCalculatorKind.COURSE_TO_ALTITUDE,
    LegType.FA: LegCalculatorKind.COURSE_TO_ALTITUDE,
    LegType.VA: LegCalculatorKind.COURSE_TO_ALTITUDE,
    LegType.FM: LegCalculatorKind.COURSE_TO_MANUAL,
    LegType.VM: LegCalculatorKind.COURSE_TO_MANUAL,
    LegType.CD: LegCalculatorKind.COURSE_TO_DME,
    LegType.VD: LegCalculatorKind.COURSE_TO_DME,
    LegType.FD: LegCalculatorKind.FIX_TO_DME,
    LegType.CR: LegCalculatorKind.COURSE_TO_RADIAL,
    LegType.VR: LegCalculatorKind.COURSE_TO_RADIAL,
    LegType.CI: LegCalculatorKind.COURSE_TO_INTERCEPT,
    LegType.VI: LegCalculatorKind.COURSE_TO_INTERCEPT,
    LegType.PI: LegCalculatorKind.PROCEDURE_TURN,
    LegType.HA: LegCalculatorKind.HOLD,
    LegType.HF: LegCalculatorKind.HOLD,
    LegType.HM: LegCalculatorKind.HOLD,
    LegType.DISCONTINUITY: LegCalculatorKind.DISCONTINUITY,
}

# Kinds whose path depends on the aircraft state while active.
_SKIP_WHEN_ACTIVE = frozenset(
    {
        LegCalculatorKind.DIRECT_TO_FIX,
        LegCalculatorKind.COURSE_TO_ALTITUDE,
        LegCalculatorKind.COURSE_TO_MANUAL,
        LegCalculatorKind.COURSE_TO_DME,
        LegCalculatorKind.COURSE_TO_RADIAL,
        LegCalculatorKind.COURSE_TO_INTERCEPT,
        LegCalculatorKind.HOLD,
    }
)


def calculator_kind_for(leg_type: LegType) -> LegCalculatorKind:
    """Get the calculator kind that handles a leg type.

    Raises:
        KeyError: If the leg type has no calculator.
    """
    return _KIND_BY_LEG_TYPE[leg_type]


def _vector_turn_direction(leg: FlightPlanLeg) -> VectorTurnDirection | None:
    if leg.turn_direction == LegTurnDirection.LEFT:
        return VectorTurnDirection.LEFT
    if leg.turn_direction == LegTurnDirection.RIGHT:
        return VectorTurnDirection.RIGHT
    return None


class FlightPathLegCalculator:
    """Calculates the flight path vectors of individual flight plan legs.

    Facilities are read from a cache filled by the caller before
    calculation; a leg whose facilities are missing gets no vectors and
    breaks the path.

    Attributes:
        facility_cache: Facilities by ICAO.
        skip_active_leg_recalculation: Whether to keep the already calculated
            path of an active leg whose geometry follows the aircraft.
        manual_leg_distance_nm: Length drawn for manually terminated legs.
        default_hold_leg_minutes: Hold leg time when the leg gives none.

    Examples:
        >>> calculator = FlightPathLegCalculator({}, magvar_provider=lambda point: 0.0)
        >>> calculator_kind_for(LegType.VI)
        <LegCalculatorKind.COURSE_TO_INTERCEPT: 'course_to_intercept'>
    """

    def __init__(
        self,
        facility_cache: dict[str, Facility],
        magvar_provider: MagvarProvider | None = None,
        skip_active_leg_recalculation: bool = True,
        manual_leg_distance_nm: float = 1.0,
        default_hold_leg_minutes: float = 1.0,
        course_reversal_threshold_deg: float = 135.0,
    ) -> None:
        """Initialize the calculator.

        Args:
            facility_cache: Facilities by ICAO, shared with the loader.
            magvar_provider: Magnetic variation (east positive) at a point,
                used when no VOR declares one. Zero when None.
            skip_active_leg_recalculation: See class attributes.
            manual_leg_distance_nm: See class attributes.
            default_hold_leg_minutes: See class attributes.
            course_reversal_threshold_deg: Course change from which a
                course-to-fix leg is joined with a procedure turn.
        """
        self.facility_cache = facility_cache
        self._magvar_provider = magvar_provider or (lambda point: 0.0)
        self.skip_active_leg_recalculation = skip_active_leg_recalculation
        self.manual_leg_distance_nm = manual_leg_distance_nm
        self.default_hold_leg_minutes = default_hold_leg_minutes
        self.course_reversal_threshold_deg = course_reversal_threshold_deg

        self._circle_builder = CircleVectorBuilder()
        self._great_circle_builder = GreatCircleBuilder()
        self._turn_to_course_builder = TurnToCourseBuilder()
        self._intercept_builder = CircleInterceptBuilder()
        self._join_builder = JoinGreatCircleToPointBuilder()
        self._procedure_turn_builder = ProcedureTurnBuilder()
        self._direct_to_builder = DirectToPointBuilder()

    # ------------------------------------------------------------------
    # Shared lookups

    def _facility(self, icao: str) -> Facility | None:
        if not icao:
            return None
        return self.facility_cache.get(icao)

    def get_terminator_position(self, leg: FlightPlanLeg) -> GeoPoint | None:
        """Position of a leg's fix, preferring the leg's own coordinates.

        Returns:
            The position, or None when it cannot be resolved.
        """
        if leg.lat is not None and leg.lon is not None:
            return GeoPoint(leg.lat, leg.lon)
        facility = self._facility(leg.fix_icao)
        return facility.position if facility is not None else None

    def _station_magvar(self, leg: FlightPlanLeg) -> float | None:
        for icao in (leg.origin_icao, leg.fix_icao):
            facility = self._facility(icao)
            if facility is not None and facility.type is FacilityType.VOR:
                return facility.magvar
        return None

    def get_leg_true_course(self, leg: FlightPlanLeg, point: GeoPoint | None = None) -> float:
        """True course of a leg.

        Magnetic courses are converted with the variation declared by the
        leg's origin or fix VOR when there is one, otherwise with the
        variation at ``point``.

        Args:
            leg: The leg.
            point: Where to evaluate magnetic variation when no VOR declares it.

        Returns:
            True course in degrees.
        """
        if leg.true_degrees:
            return normalize_heading(leg.course)

        magvar = self._station_magvar(leg)
        if magvar is None:
            magvar = self._magvar_provider(point) if point is not None else 0.0
        return magnetic_to_true(leg.course, magvar)

    def _radial_true(self, leg: FlightPlanLeg, bearing: float, station: Facility) -> float:
        if leg.true_degrees:
            return normalize_heading(bearing)
        magvar = station.magvar if station.type is FacilityType.VOR else self._magvar_provider(station.position)
        return magnetic_to_true(bearing, magvar)

    def _leg_distance_m(self, leg: FlightPlanLeg, state: FlightPathState, default_m: float) -> float:
        if leg.distance <= 0.0:
            return default_m
        if leg.distance_minutes:
            return leg.distance / 60.0 * state.plane_speed_kts * METERS_PER_NM
        return leg.distance

    # ------------------------------------------------------------------
    # Dispatch

    def calculate(
        self,
        legs: list[LegDefinition],
        calculate_index: int,
        active_leg_index: int,
        state: FlightPathState,
    ) -> LegCalculations:
        """Calculate the flight path of one leg in a sequence.

        The leg's existing LegCalculations object is reused when it has one.

        Args:
            legs: The leg sequence.
            calculate_index: Index of the leg to calculate.
            active_leg_index: Index of the active leg.
            state: Calculation state, advanced to the end of this leg.

        Returns:
            The leg's calculations.
        """
        definition = legs[calculate_index]
        kind = calculator_kind_for(definition.leg.type)

        calcs = definition.calculated
        if calcs is None:
            calcs = LegCalculations()
            definition.calculated = calcs
        elif (
            self.skip_active_leg_recalculation
            and calculate_index == active_leg_index
            and kind in _SKIP_WHEN_ACTIVE
            and calcs.flight_path
        ):
            logger.debug("Keeping active leg %d path (%s)", calculate_index, definition.leg.type.name)
            self._finish(calcs.flight_path, len(calcs.flight_path), state)
            return calcs

        vectors = calcs.flight_path
        match kind:
            case LegCalculatorKind.TRACK_TO_FIX:
                self._calculate_track_to_fix(legs, calculate_index, state, vectors)
            case LegCalculatorKind.ARC_TO_FIX | LegCalculatorKind.RADIUS_TO_FIX:
                self._calculate_turn_to_fix(legs, calculate_index, state, vectors, kind)
            case LegCalculatorKind.COURSE_TO_FIX:
                self._calculate_course_to_fix(legs, calculate_index, state, vectors)
            case LegCalculatorKind.DIRECT_TO_FIX:
                self._calculate_direct_to_fix(legs, calculate_index, active_leg_index, state, vectors)
            case LegCalculatorKind.TRACK_FROM_FIX:
                self._calculate_track_from_fix(legs, calculate_index, state, vectors)
            case LegCalculatorKind.COURSE_TO_ALTITUDE:
                self._calculate_course_to_altitude(legs, calculate_index, active_leg_index, state, vectors)
            case LegCalculatorKind.COURSE_TO_MANUAL:
                self._calculate_course_to_manual(legs, calculate_index, state, vectors)
            case (
                LegCalculatorKind.COURSE_TO_DME
                | LegCalculatorKind.FIX_TO_DME
                | LegCalculatorKind.COURSE_TO_RADIAL
                | LegCalculatorKind.COURSE_TO_INTERCEPT
            ):
                self._calculate_circle_intercept(legs, calculate_index, state, vectors, kind)
            case LegCalculatorKind.PROCEDURE_TURN:
                self._calculate_procedure_turn(legs, calculate_index, state, vectors)
            case LegCalculatorKind.HOLD:
                self._calculate_hold(legs, calculate_index, state, vectors)
            case LegCalculatorKind.DISCONTINUITY:
                self._break_path(vectors, state)
            case _:
                assert_never(kind)

        return calcs

    # ------------------------------------------------------------------
    # State helpers

    @staticmethod
    def _finish(vectors: list[FlightPathVector], count: int, state: FlightPathState) -> None:
        del vectors[count:]
        if count > 0:
            last = vectors[count - 1]
            state.current_position = last.end
            course = get_vector_final_course(last)
            state.current_course = None if math.isnan(course) else course

    @staticmethod
    def _break_path(vectors: list[FlightPathVector], state: FlightPathState) -> None:
        vectors.clear()
        state.current_position = None
        state.current_course = None

    def _start_path(self, start: GeoPoint, toward: GeoPoint, course: float | None) -> GeoCircle:
        if course is not None:
            return GeoCircle.from_bearing(start, course)
        return GeoCircle.great_circle(start, toward)

    # ------------------------------------------------------------------
    # Fix terminated legs

    def _calculate_track_to_fix(
        self,
        legs: list[LegDefinition],
        index: int,
        state: FlightPathState,
        vectors: list[FlightPathVector],
    ) -> None:
        end = self.get_terminator_position(legs[index].leg)
        if end is None:
            logger.debug("Leg %d: unresolved fix %s", index, legs[index].leg.fix_icao)
            self._break_path(vectors, state)
            return

        count = 0
        start = state.current_position
        if start is not None and not start.equals(end):
            count = self._great_circle_builder.build(vectors, 0, start, end, state.current_course)

        self._finish(vectors, count, state)
        state.current_position = end

    def _calculate_direct_to_fix(
        self,
        legs: list[LegDefinition],
        index: int,
        active_leg_index: int,
        state: FlightPathState,
        vectors: list[FlightPathVector],
    ) -> None:
        definition = legs[index]
        end = self.get_terminator_position(definition.leg)
        if end is None:
            self._break_path(vectors, state)
            return

        from_plane = (
            index == active_leg_index and bool(definition.flags & LegDefinitionFlags.DIRECT_TO)
        ) or state.current_position is None
        if from_plane:
            start, course = state.plane_position, state.plane_heading
        else:
            start, course = state.current_position, state.current_course

        count = 0
        if not start.equals(end):
            if course is None:
                count = self._great_circle_builder.build(vectors, 0, start, end)
            else:
                count = self._direct_to_builder.build(
                    vectors,
                    0,
                    start,
                    GeoCircle.from_bearing(start, course),
                    end,
                    state.desired_turn_radius_m,
                    _vector_turn_direction(definition.leg),
                )

        self._finish(vectors, count, state)
        state.current_position = end

    def _calculate_turn_to_fix(
        self,
        legs: list[LegDefinition],
        index: int,
        state: FlightPathState,
        vectors: list[FlightPathVector],
        kind: LegCalculatorKind,
    ) -> None:
        leg = legs[index].leg
        end = self.get_terminator_position(leg)
        center_icao = leg.origin_icao if kind is LegCalculatorKind.ARC_TO_FIX else leg.arc_center_fix_icao
        center_facility = self._facility(center_icao)
        if end is None or center_facility is None:
            logger.debug("Leg %d: unresolved arc fix or center", index)
            self._break_path(vectors, state)
            return

        center = center_facility.position
        radius = center.distance(end)
        if radius <= ANGULAR_TOLERANCE:
            self._break_path(vectors, state)
            return

        if state.current_position is not None:
            start = state.current_position
        elif kind is LegCalculatorKind.ARC_TO_FIX:
            # The arc's published boundary radial.
            start = center.offset(self._radial_true(leg, leg.course, center_facility), radius)
        else:
            vectors.clear()
            state.current_position = end
            state.current_course = None
            return

        direction = self._arc_direction(leg, center, radius, start, end, state.current_course)
        circle = get_turn_circle(center, radius, direction)
        start_on_arc = circle.closest(start)
        if not math.isfinite(float(start_on_arc[0])):
            start_on_arc = end.to_cartesian()

        count = 0
        if circle.angle_along(start_on_arc, end, math.pi) > 0.0:
            count = self._circle_builder.build(vectors, 0, circle, start_on_arc, end, FlightPathVectorFlags.ARC)

        self._finish(vectors, count, state)
        state.current_position = end

    @staticmethod
    def _arc_direction(
        leg: FlightPlanLeg,
        center: GeoPoint,
        radius: float,
        start: GeoPoint,
        end: GeoPoint,
        course: float | None,
    ) -> VectorTurnDirection:
        direction = _vector_turn_direction(leg)
        if direction is not None:
            return direction

        left = get_turn_circle(center, radius, VectorTurnDirection.LEFT)
        start_on_arc = left.closest(start)
        if course is not None:
            left_error = abs(diff_angle(course, left.bearing_at(start_on_arc, math.pi)))
            return VectorTurnDirection.LEFT if left_error <= 90.0 else VectorTurnDirection.RIGHT
        if left.angle_along(start_on_arc, end, math.pi) <= math.pi:
            return VectorTurnDirection.LEFT
        return VectorTurnDirection.RIGHT

    def _calculate_course_to_fix(
        self,
        legs: list[LegDefinition],
        index: int,
        state: FlightPathState,
        vectors: list[FlightPathVector],
    ) -> None:
        leg = legs[index].leg
        fix = self.get_terminator_position(leg)
        if fix is None:
            self._break_path(vectors, state)
            return

        course = self.get_leg_true_course(leg, fix)
        end_path = GeoCircle.from_bearing(fix, course)
        start = state.current_position
        count = 0

        if start is None:
            distance = self._leg_distance_m(leg, state, nm_to_meters(DEFAULT_COURSE_TO_FIX_DISTANCE_NM))
            start_vec = end_path.offset_distance_along(fix, -meters_to_radians(distance))
            count = self._great_circle_builder.build_along_path(vectors, 0, start_vec, end_path, fix)
        elif not start.equals(fix):
            start_course = state.current_course if state.current_course is not None else start.bearing_to(fix)
            start_path = GeoCircle.from_bearing(start, start_course)
            course_change = diff_angle(start_course, course)

            if (
                end_path.includes(start, 1e-6)
                and abs(course_change) < ALIGNED_COURSE_TOLERANCE_DEG
                and end_path.angle_along(start, fix, math.pi) < math.pi
            ):
                count = self._great_circle_builder.build_along_path(vectors, 0, start, end_path, fix)
            elif abs(course_change) >= self.course_reversal_threshold_deg:
                outbound = start_course - 45.0 if course_change > 0 else start_course + 45.0
                count = self._procedure_turn_builder.build(
                    vectors,
                    0,
                    start,
                    start_path,
                    fix,
                    end_path,
                    normalize_heading(outbound),
                    state.desired_turn_radius_m,
                    initial_course=start_course,
                )
            else:
                count = self._join_builder.build(
                    vectors,
                    0,
                    start,
                    start_path,
                    fix,
                    end_path,
                    _vector_turn_direction(leg),
                    state.desired_turn_radius_m,
                )

        self._finish(vectors, count, state)
        state.current_position = fix
        if count == 0:
            state.current_course = course

    # ------------------------------------------------------------------
    # Course and distance terminated legs

    def _course_start(self, leg: FlightPlanLeg, state: FlightPathState, from_fix: bool) -> GeoPoint | None:
        if from_fix:
            fix = self.get_terminator_position(leg)
            if fix is not None:
                return fix
        return state.current_position

    def _calculate_track_from_fix(
        self,
        legs: list[LegDefinition],
        index: int,
        state: FlightPathState,
        vectors: list[FlightPathVector],
    ) -> None:
        leg = legs[index].leg
        start = self._course_start(leg, state, from_fix=True)
        if start is None:
            self._break_path(vectors, state)
            return

        course = self.get_leg_true_course(leg, start)
        distance = self._leg_distance_m(leg, state, nm_to_meters(self.manual_leg_distance_nm))
        count = self._great_circle_builder.build_along_path(
            vectors, 0, start, GeoCircle.from_bearing(start, course), distance
        )
        self._finish(vectors, count, state)

    def _calculate_course_to_altitude(
        self,
        legs: list[LegDefinition],
        index: int,
        active_leg_index: int,
        state: FlightPathState,
        vectors: list[FlightPathVector],
    ) -> None:
        leg = legs[index].leg
        start = self._course_start(leg, state, from_fix=leg.type is LegType.FA)
        if start is None:
            start = state.plane_position

        if index == active_leg_index:
            origin_altitude = state.plane_altitude_ft
        else:
            origin_altitude = self._previous_altitude(legs, index, state)

        climb_ft = max(0.0, leg.altitude1_ft - origin_altitude)
        climb_minutes = climb_ft / state.plane_climb_rate_fpm if state.plane_climb_rate_fpm > 0 else 0.0
        distance = climb_minutes / 60.0 * state.plane_speed_kts * METERS_PER_NM

        course = self.get_leg_true_course(leg, start)
        count = self._great_circle_builder.build_along_path(
            vectors, 0, start, GeoCircle.from_bearing(start, course), distance
        )
        self._finish(vectors, count, state)

    @staticmethod
    def _previous_altitude(legs: list[LegDefinition], index: int, state: FlightPathState) -> float:
        for previous in reversed(legs[:index]):
            if previous.leg.type is LegType.DISCONTINUITY:
                break
            if previous.vertical_data.altitude1_ft > 0.0:
                return previous.vertical_data.altitude1_ft
            if previous.leg.altitude1_ft > 0.0:
                return previous.leg.altitude1_ft
        return state.plane_altitude_ft

    def _calculate_course_to_manual(
        self,
        legs: list[LegDefinition],
        index: int,
        state: FlightPathState,
        vectors: list[FlightPathVector],
    ) -> None:
        leg = legs[index].leg
        start = self._course_start(leg, state, from_fix=leg.type is LegType.FM)
        if start is None:
            start = state.plane_position

        course = self.get_leg_true_course(leg, start)
        count = self._great_circle_builder.build_along_path(
            vectors, 0, start, GeoCircle.from_bearing(start, course), nm_to_meters(self.manual_leg_distance_nm)
        )
        self._finish(vectors, count, state)

    # ------------------------------------------------------------------
    # Intercept legs

    def _calculate_circle_intercept(
        self,
        legs: list[LegDefinition],
        index: int,
        state: FlightPathState,
        vectors: list[FlightPathVector],
        kind: LegCalculatorKind,
    ) -> None:
        leg = legs[index].leg
        start = self._course_start(leg, state, from_fix=kind is LegCalculatorKind.FIX_TO_DME)
        if start is None:
            start = state.plane_position

        target = self._intercept_target(legs, index, kind)
        if target is None:
            logger.debug("Leg %d: no path to intercept", index)
            self._break_path(vectors, state)
            return
        circle, path_start, path_end = target

        intercept_course = self.get_leg_true_course(leg, start)
        radius_m = state.desired_turn_radius_m
        count = 0

        if kind is not LegCalculatorKind.FIX_TO_DME and state.current_course is not None:
            if abs(diff_angle(state.current_course, intercept_course)) >= ALIGNED_COURSE_TOLERANCE_DEG:
                direction = _vector_turn_direction(leg) or get_turn_direction(state.current_course, intercept_course)
                count = self._turn_to_course_builder.build(
                    vectors, 0, start, radius_m, direction, state.current_course, intercept_course
                )
                start = vectors[count - 1].end

        intercept_path = GeoCircle.from_bearing(start, intercept_course)
        written = self._intercept_builder.build(vectors, count, start, intercept_path, circle, max_angle=HALF_PI)
        if written > 0 and self._intercept_within_path(circle, path_start, path_end, vectors[count].end):
            count += written
        else:
            count += self._build_invalid_intercept(
                vectors, count, start, intercept_path, circle, path_end, radius_m
            )

        self._finish(vectors, count, state)

    @staticmethod
    def _intercept_within_path(
        circle: GeoCircle,
        path_start: GeoPoint | None,
        path_end: GeoPoint | None,
        point: GeoPoint,
    ) -> bool:
        if path_start is not None and circle.angle_along(path_start, point, 1e-6) > math.pi:
            return False
        if path_end is not None and circle.angle_along(point, path_end, 1e-6) > math.pi:
            return False
        return True

    def _build_invalid_intercept(
        self,
        vectors: list[FlightPathVector],
        index: int,
        start: GeoPoint,
        intercept_path: GeoCircle,
        circle: GeoCircle,
        path_end: GeoPoint | None,
        radius_m: float,
    ) -> int:
        # The intercept course never meets the path ahead: fly to the path end
        # when it has one, else to the closest point of the path.
        if path_end is not None:
            target = path_end
        else:
            closest = circle.closest(start)
            if not math.isfinite(float(closest[0])):
                return 0
            target = GeoPoint.from_cartesian(closest)

        if target.equals(start):
            return 0

        logger.debug("Intercept not reachable on course, flying direct to %.4f, %.4f", target.lat, target.lon)
        return self._direct_to_builder.build(vectors, index, start, intercept_path, target, radius_m)

    def _intercept_target(
        self,
        legs: list[LegDefinition],
        index: int,
        kind: LegCalculatorKind,
    ) -> tuple[GeoCircle, GeoPoint | None, GeoPoint | None] | None:
        leg = legs[index].leg
        match kind:
            case LegCalculatorKind.COURSE_TO_DME | LegCalculatorKind.FIX_TO_DME:
                origin = self._facility(leg.origin_icao)
                if origin is None or leg.distance <= 0.0:
                    return None
                return GeoCircle(origin.position, meters_to_radians(leg.distance)), None, None
            case LegCalculatorKind.COURSE_TO_RADIAL:
                origin = self._facility(leg.origin_icao)
                if origin is None:
                    return None
                radial = self._radial_true(leg, leg.theta, origin)
                return GeoCircle.from_bearing(origin.position, radial), origin.position, None
            case LegCalculatorKind.COURSE_TO_INTERCEPT:
                return self._predict_leg_path(legs, index + 1)
            case _:
                return None

    def _predict_leg_path(
        self,
        legs: list[LegDefinition],
        index: int,
    ) -> tuple[GeoCircle, GeoPoint | None, GeoPoint | None] | None:
        """Predict the path of a leg before it is calculated.

        Returns:
            (path, path start, path end), or None when the leg's path cannot
            be known ahead of its own calculation.
        """
        if index >= len(legs):
            return None

        leg = legs[index].leg
        fix = self.get_terminator_position(leg)
        if fix is None:
            return None

        match leg.type:
            case LegType.CF:
                return GeoCircle.from_bearing(fix, self.get_leg_true_course(leg, fix)), None, fix
            case LegType.FA | LegType.FC | LegType.FD | LegType.FM:
                return GeoCircle.from_bearing(fix, self.get_leg_true_course(leg, fix)), fix, None
            case LegType.AF | LegType.RF:
                center_icao = leg.origin_icao if leg.type is LegType.AF else leg.arc_center_fix_icao
                center = self._facility(center_icao)
                if center is None:
                    return None
                direction = _vector_turn_direction(leg) or VectorTurnDirection.LEFT
                radius = center.position.distance(fix)
                return get_turn_circle(center.position, radius, direction), None, fix
            case _:
                return None

    # ------------------------------------------------------------------
    # Course reversals

    def _calculate_procedure_turn(
        self,
        legs: list[LegDefinition],
        index: int,
        state: FlightPathState,
        vectors: list[FlightPathVector],
    ) -> None:
        leg = legs[index].leg
        fix = self.get_terminator_position(leg)
        if fix is None:
            self._break_path(vectors, state)
            return

        inbound = self._predict_inbound_path(legs, index + 1, fix)
        if inbound is None:
            logger.debug("Leg %d: procedure turn without a following inbound course", index)
            self._finish(vectors, 0, state)
            state.current_position = fix
            return

        start = state.current_position or fix
        count = 0
        if not start.equals(fix):
            start_path = self._start_path(start, fix, state.current_course)
            count = self._direct_to_builder.build(vectors, 0, start, start_path, fix, state.desired_turn_radius_m)

        initial_course = get_vector_final_course(vectors[count - 1]) if count > 0 else state.current_course
        if initial_course is None:
            initial_course = normalize_heading(inbound.bearing_at(inbound.closest(fix), math.pi) + 180.0)

        end = GeoPoint.from_cartesian(inbound.closest(fix))
        count += self._procedure_turn_builder.build(
            vectors,
            count,
            fix,
            GeoCircle.from_bearing(fix, initial_course),
            end,
            inbound,
            self.get_leg_true_course(leg, fix),
            state.desired_turn_radius_m,
            initial_course=initial_course,
        )
        self._finish(vectors, count, state)

    def _predict_inbound_path(self, legs: list[LegDefinition], index: int, origin: GeoPoint) -> GeoCircle | None:
        if index >= len(legs):
            return None
        leg = legs[index].leg
        fix = self.get_terminator_position(leg)
        if leg.type is LegType.CF and fix is not None:
            return GeoCircle.from_bearing(fix, self.get_leg_true_course(leg, fix))
        if fix is not None and not fix.equals(origin):
            return GeoCircle.great_circle(origin, fix)
        return None

    def _calculate_hold(
        self,
        legs: list[LegDefinition],
        index: int,
        state: FlightPathState,
        vectors: list[FlightPathVector],
    ) -> None:
        leg = legs[index].leg
        fix = self.get_terminator_position(leg)
        if fix is None:
            self._break_path(vectors, state)
            return

        inbound = self.get_leg_true_course(leg, fix)
        direction = VectorTurnDirection.LEFT if leg.turn_direction == LegTurnDirection.LEFT else VectorTurnDirection.RIGHT
        radius_m = state.desired_turn_radius_m
        default_length = self.default_hold_leg_minutes / 60.0 * state.plane_speed_kts * METERS_PER_NM
        length_m = self._leg_distance_m(leg, state, default_length)

        count = 0
        arrival = state.current_course
        start = state.current_position
        if start is not None and not start.equals(fix):
            start_path = self._start_path(start, fix, arrival)
            count = self._direct_to_builder.build(vectors, 0, start, start_path, fix, radius_m)
            if count > 0:
                arrival = get_vector_final_course(vectors[count - 1])

        if arrival is not None:
            count += self._build_hold_entry(vectors, count, fix, inbound, direction, arrival, radius_m, length_m)
        count += self._build_racetrack(vectors, count, fix, inbound, direction, radius_m, length_m)
        self._finish(vectors, count, state)

    def _turn_between(
        self,
        vectors: list[FlightPathVector],
        index: int,
        start: GeoPoint,
        radius_m: float,
        from_course: float,
        to_course: float,
        flags: FlightPathVectorFlags,
        direction: VectorTurnDirection | None = None,
    ) -> int:
        if direction is None:
            if abs(diff_angle(from_course, to_course)) < ALIGNED_COURSE_TOLERANCE_DEG:
                return 0
            direction = get_turn_direction(from_course, to_course)
        return self._turn_to_course_builder.build(
            vectors, index, start, radius_m, direction, from_course, to_course,
            flags | FlightPathVectorFlags.TURN_TO_COURSE,
        )

    def _build_hold_entry(
        self,
        vectors: list[FlightPathVector],
        index: int,
        fix: GeoPoint,
        inbound: float,
        direction: VectorTurnDirection,
        arrival: float,
        radius_m: float,
        length_m: float,
    ) -> int:
        """Build the entry into a hold from the arrival course at the fix.

        The sector is chosen from the arrival course relative to the inbound
        course, mirrored for left holds: direct from 290 through 110 degrees,
        teardrop from 110 to 180, parallel from 180 to 290.
        """
        if direction is VectorTurnDirection.RIGHT:
            relative = normalize_heading(arrival - inbound)
        else:
            relative = normalize_heading(inbound - arrival)

        outbound = normalize_heading(inbound + 180.0)
        inbound_path = GeoCircle.from_bearing(fix, inbound)

        if 110.0 <= relative < 180.0:
            flags = FlightPathVectorFlags.HOLD_TEARDROP_ENTRY
            offset = -TEARDROP_OFFSET_DEG if direction is VectorTurnDirection.RIGHT else TEARDROP_OFFSET_DEG
            entry_course = normalize_heading(outbound + offset)
            return_direction = direction
        elif 180.0 <= relative < 290.0:
            flags = FlightPathVectorFlags.HOLD_PARALLEL_ENTRY
            entry_course = outbound
            return_direction = direction.opposite()
        else:
            if abs(diff_angle(arrival, inbound)) < ALIGNED_COURSE_TOLERANCE_DEG:
                return 0
            flags = FlightPathVectorFlags.HOLD_DIRECT_ENTRY
            entry_course = outbound
            return_direction = direction

        turn_direction = direction if flags is FlightPathVectorFlags.HOLD_DIRECT_ENTRY else None
        count = self._turn_between(vectors, index, fix, radius_m, arrival, entry_course, flags, turn_direction)
        point = vectors[index + count - 1].end if count > 0 else fix

        count += self._great_circle_builder.build_along_path(
            vectors, index + count, point, GeoCircle.from_bearing(point, entry_course), length_m, flags
        )
        point = vectors[index + count - 1].end

        count += self._join_builder.build(
            vectors,
            index + count,
            point,
            GeoCircle.from_bearing(point, entry_course),
            fix,
            inbound_path,
            return_direction,
            radius_m,
            flags=flags,
        )
        return count

    def _build_racetrack(
        self,
        vectors: list[FlightPathVector],
        index: int,
        fix: GeoPoint,
        inbound: float,
        direction: VectorTurnDirection,
        radius_m: float,
        length_m: float,
    ) -> int:
        outbound = normalize_heading(inbound + 180.0)
        outbound_flags = FlightPathVectorFlags.HOLD_OUTBOUND_LEG
        inbound_flags = FlightPathVectorFlags.HOLD_INBOUND_LEG

        count = self._turn_between(vectors, index, fix, radius_m, inbound, outbound, outbound_flags, direction)
        point = vectors[index + count - 1].end
        count += self._great_circle_builder.build_along_path(
            vectors, index + count, point, GeoCircle.from_bearing(point, outbound), length_m, outbound_flags
        )
        point = vectors[index + count - 1].end
        count += self._turn_between(vectors, index + count, point, radius_m, outbound, inbound, inbound_flags, direction)
        point = vectors[index + count - 1].end
        if not point.equals(fix):
            count += self._great_circle_builder.build(vectors, index + count, point, fix, inbound, inbound_flags)
        return count
