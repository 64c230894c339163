"""Flight path calculation for a sequence of legs.

FlightPathCalculator drives one calculation pass: refresh the aircraft
state, preload facilities, pick up the path where the previous legs left it,
run each leg's calculator, compute the turns between legs, and finally
resolve the flown vectors and distances of every leg.

Typical usage:
    from flightpath.core.config import ConfigLoader
    from flightpath.flightplan.calculator import FlightPathCalculator, FlightPathCalculatorOptions

    options = FlightPathCalculatorOptions.from_config(ConfigLoader.load("config/flightpath.yaml"))
    calculator = FlightPathCalculator(facility_db, options)
    await calculator.calculate_flight_path(legs, active_leg_index=0)
"""

import asyncio
import logging
import math
from collections.abc import Callable
from dataclasses import dataclass

from flightpath.core.config import ConfigError, ConfigLoader
from flightpath.geo.nav_math import true_to_magnetic
from flightpath.navigation.facilities import Facility, FacilityLoader
from flightpath.navigation.legs import LegType
from flightpath.flightplan.flight_path_utils import (
    get_leg_final_course,
    get_vector_initial_course,
    resolve_ingress_to_egress,
)
from flightpath.flightplan.leg_calculators import FlightPathLegCalculator, MagvarProvider
from flightpath.flightplan.state import AircraftState, AircraftStateProvider, FlightPathState
from flightpath.flightplan.turn_calculator import FlightPathTurnCalculator
from flightpath.flightplan.vectors import LegDefinition

logger = logging.getLogger(__name__)


@dataclass
class FlightPathCalculatorOptions:
    """Tuning of flight path calculation.

    Attributes:
        default_speed_kts: Minimum speed for turn radii and timed legs.
        default_climb_rate_fpm: Minimum climb rate for altitude legs.
        bank_angle_deg: Bank angle of anticipated turns.
        max_turn_radius_m: Upper bound on the anticipated turn radius, if any.
        course_reversal_threshold_deg: Course change from which a junction is
            flown as a course reversal instead of a turn.
        allow_previous_turn_adjustment: Whether a turn may be shortened to
            make room for the next turn on a shared vector.
        skip_active_leg_recalculation: Whether aircraft-dependent active legs
            keep their path once calculated.
        manual_leg_distance_nm: Drawn length of manually terminated legs.
        default_hold_leg_minutes: Hold leg time when a hold gives none.

    Examples:
        >>> options = FlightPathCalculatorOptions(bank_angle_deg=20.0)
        >>> options.course_reversal_threshold_deg
        135.0
    """

    default_speed_kts: float = 120.0
    default_climb_rate_fpm: float = 1000.0
    bank_angle_deg: float = 25.0
    max_turn_radius_m: float | None = None
    course_reversal_threshold_deg: float = 135.0
    allow_previous_turn_adjustment: bool = True
    skip_active_leg_recalculation: bool = True
    manual_leg_distance_nm: float = 1.0
    default_hold_leg_minutes: float = 1.0

    @classmethod
    def from_config(cls, config: ConfigLoader, section: str = "flight_path") -> "FlightPathCalculatorOptions":
        """Read options from a configuration section, defaulting missing keys.

        Args:
            config: Loaded configuration.
            section: Section holding the options.

        Returns:
            The options.

        Raises:
            ConfigError: If the section is not a mapping.
        """
        values = config.get(section, {})
        if not isinstance(values, dict):
            raise ConfigError(f"Configuration key is not a section: {section}")
        defaults = cls()
        known = {name: values[name] for name in defaults.__dict__ if name in values}
        unknown = set(values) - set(known)
        if unknown:
            logger.warning("Ignoring unknown flight path options: %s", ", ".join(sorted(unknown)))
        return cls(**known)


StaleCheck = Callable[[], bool]


class FlightPathCalculator:
    """Calculates flight paths for sequences of flight plan legs.

    A calculator is not reentrant: its leg and turn calculators reuse
    scratch buffers, so one calculation must finish before the next starts.
    FlightPlan serializes its calculations to honour this.

    Attributes:
        facility_loader: Source of facilities.
        options: Calculation options.
        state: State of the current or last calculation pass.
    """

    def __init__(
        self,
        facility_loader: FacilityLoader,
        options: FlightPathCalculatorOptions | None = None,
        state_provider: AircraftStateProvider | None = None,
        magvar_provider: MagvarProvider | None = None,
    ) -> None:
        """Initialize the calculator.

        Args:
            facility_loader: Source of facilities for leg fixes and navaids.
            options: Calculation options, defaults when None.
            state_provider: Returns the latest aircraft state; the aircraft is
                assumed parked at 0, 0 when None.
            magvar_provider: Magnetic variation at a point, east positive.
        """
        self.facility_loader = facility_loader
        self.options = options or FlightPathCalculatorOptions()
        self.state = FlightPathState()
        self._state_provider = state_provider
        self._magvar_provider = magvar_provider or (lambda point: 0.0)
        self._facility_cache: dict[str, Facility] = {}
        self._leg_calculator = FlightPathLegCalculator(
            self._facility_cache,
            magvar_provider=self._magvar_provider,
            skip_active_leg_recalculation=self.options.skip_active_leg_recalculation,
            manual_leg_distance_nm=self.options.manual_leg_distance_nm,
            default_hold_leg_minutes=self.options.default_hold_leg_minutes,
            course_reversal_threshold_deg=self.options.course_reversal_threshold_deg,
        )
        self._turn_calculator = FlightPathTurnCalculator(
            course_reversal_threshold_deg=self.options.course_reversal_threshold_deg,
            allow_previous_turn_adjustment=self.options.allow_previous_turn_adjustment,
        )

    async def calculate_flight_path(
        self,
        legs: list[LegDefinition],
        active_leg_index: int,
        initial_index: int = 0,
        count: int | None = None,
        is_stale: StaleCheck | None = None,
    ) -> bool:
        """Calculate the flight path of a range of legs.

        Args:
            legs: The leg sequence, typically all legs of a plan.
            active_leg_index: Index of the active leg.
            initial_index: Index of the first leg to calculate.
            count: Number of legs to calculate; through the end when None.
            is_stale: Checked after facilities load; a true result abandons
                the pass before any leg is modified.

        Returns:
            True if the legs were calculated, False if the pass was abandoned.
        """
        initial_index = max(0, min(initial_index, len(legs)))
        remaining = len(legs) - initial_index
        count = remaining if count is None else max(0, min(count, remaining))

        aircraft = self._state_provider() if self._state_provider is not None else None
        self.state.update_plane_state(
            aircraft,
            self.options.default_speed_kts,
            self.options.default_climb_rate_fpm,
            self.options.bank_angle_deg,
            self.options.max_turn_radius_m,
        )

        await self._load_facilities(legs, initial_index, count)
        if is_stale is not None and is_stale():
            logger.debug("Flight path calculation from leg %d superseded", initial_index)
            return False

        self._init_current_position(legs, initial_index)
        self._init_current_course(legs, initial_index)

        for index in range(initial_index, initial_index + count):
            self._calculate_leg(legs, index, active_leg_index)

        self._turn_calculator.compute_turns(legs, initial_index, count, self.state.desired_turn_radius_m)

        # Turns touch the legs on both sides of the range.
        resolve_start = max(initial_index - 1, 0)
        resolve_end = min(initial_index + count + 1, len(legs))
        for index in range(resolve_start, resolve_end):
            calc = legs[index].calculated
            if calc is not None:
                resolve_ingress_to_egress(calc)

        self._update_leg_distances(legs, resolve_start, resolve_end)
        return True

    async def _load_facilities(self, legs: list[LegDefinition], initial_index: int, count: int) -> None:
        icaos: set[str] = set()
        for definition in legs[initial_index : initial_index + count]:
            leg = definition.leg
            icaos.update(icao for icao in (leg.fix_icao, leg.origin_icao, leg.arc_center_fix_icao) if icao)
        # Intercept and procedure turn legs look one leg ahead.
        if initial_index + count < len(legs):
            next_leg = legs[initial_index + count].leg
            icaos.update(icao for icao in (next_leg.fix_icao, next_leg.origin_icao, next_leg.arc_center_fix_icao) if icao)

        missing = sorted(icao for icao in icaos if icao not in self._facility_cache)
        if not missing:
            return

        results = await asyncio.gather(
            *(self.facility_loader.get_facility(icao) for icao in missing), return_exceptions=True
        )
        for icao, result in zip(missing, results):
            if isinstance(result, Exception):
                logger.warning("Failed to load facility %s: %s", icao, result)
            elif result is None:
                logger.debug("Unknown facility %s", icao)
            else:
                self._facility_cache[result.icao] = result

    def _init_current_position(self, legs: list[LegDefinition], initial_index: int) -> None:
        for index in range(min(initial_index, len(legs)) - 1, -1, -1):
            definition = legs[index]
            if definition.leg.type is LegType.DISCONTINUITY:
                break
            calc = definition.calculated
            if calc is not None and calc.end is not None:
                self.state.current_position = calc.end
                return
        self.state.current_position = None

    def _init_current_course(self, legs: list[LegDefinition], initial_index: int) -> None:
        for index in range(min(initial_index, len(legs)) - 1, -1, -1):
            definition = legs[index]
            if definition.leg.type is LegType.DISCONTINUITY:
                break
            calc = definition.calculated
            if calc is not None and calc.flight_path:
                course = get_leg_final_course(calc)
                if course is not None:
                    self.state.current_course = course
                    return
        self.state.current_course = None

    def _calculate_leg(self, legs: list[LegDefinition], index: int, active_leg_index: int) -> None:
        calc = self._leg_calculator.calculate(legs, index, active_leg_index, self.state)

        calc.initial_dtk = None
        if calc.flight_path:
            first = calc.flight_path[0]
            last = calc.flight_path[-1]
            true_dtk = get_vector_initial_course(first)
            if not math.isnan(true_dtk):
                calc.initial_dtk = true_to_magnetic(true_dtk, self._magvar_provider(first.start))
            calc.start_lat, calc.start_lon = first.start_lat, first.start_lon
            calc.end_lat, calc.end_lon = last.end_lat, last.end_lon
        else:
            calc.start_lat = calc.start_lon = None
            position = self.state.current_position
            calc.end_lat = position.lat if position is not None else None
            calc.end_lon = position.lon if position is not None else None

    @staticmethod
    def _update_leg_distances(legs: list[LegDefinition], start: int, end: int) -> None:
        for index in range(start, end):
            calc = legs[index].calculated
            if calc is None:
                continue

            previous = legs[index - 1].calculated if index > 0 else None
            calc.distance = sum(vector.distance for vector in calc.flight_path)
            calc.cumulative_distance = calc.distance + (previous.cumulative_distance if previous else 0.0)

            calc.distance_with_transitions = (
                sum(vector.distance for vector in calc.ingress)
                + sum(vector.distance for vector in calc.ingress_to_egress)
                + sum(vector.distance for vector in calc.egress)
            )
            calc.cumulative_distance_with_transitions = calc.distance_with_transitions + (
                previous.cumulative_distance_with_transitions if previous else 0.0
            )


__all__ = [
    "AircraftState",
    "FlightPathCalculator",
    "FlightPathCalculatorOptions",
    "FlightPathState",
]
