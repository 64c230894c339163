"""Pytest configuration and fixtures for all tests."""

import pytest

from flightpath.core.event_bus import EventBus
from flightpath.flightplan.calculator import FlightPathCalculator, FlightPathCalculatorOptions
from flightpath.flightplan.planner import FlightPlanner
from flightpath.flightplan.state import FlightPathState
from flightpath.flightplan.vectors import LegDefinition
from flightpath.navigation.facilities import Facility, FacilityDatabase, FacilityType
from flightpath.navigation.legs import FlightPlanLeg, LegType


def _make_leg(leg_type: LegType = LegType.TF, **fields) -> LegDefinition:
    leg = FlightPlanLeg(type=leg_type, **fields)
    return LegDefinition(name=leg.fix_icao or leg_type.name, leg=leg)


@pytest.fixture
def make_leg():
    """Factory wrapping a raw leg into a leg definition named after its fix."""
    return _make_leg


@pytest.fixture
def facility_db() -> FacilityDatabase:
    """A few fixes and navaids near 0N 0E.

    ALPHA (0, 0) -> BRAVO (0, 0.5) is an eastbound track of about 55.7 km,
    BRAVO -> CHRLY (-0.5, 0.5) a southbound one of the same length.
    """
    db = FacilityDatabase()
    db.add_facility(Facility("WALPHA", "ALPHA", "Alpha", FacilityType.INTERSECTION, 0.0, 0.0))
    db.add_facility(Facility("WBRAVO", "BRAVO", "Bravo", FacilityType.INTERSECTION, 0.0, 0.5))
    db.add_facility(Facility("WCHRLY", "CHRLY", "Charlie", FacilityType.INTERSECTION, -0.5, 0.5))
    db.add_facility(Facility("WDELTA", "DELTA", "Delta", FacilityType.INTERSECTION, 0.2, 0.0))
    db.add_facility(Facility("WECHO", "ECHO", "Echo", FacilityType.INTERSECTION, -1.0, 0.3))
    db.add_facility(
        Facility("VBRV", "BRV", "Bravo VOR", FacilityType.VOR, 0.0, 0.5, magvar=0.0, frequency=113.1)
    )
    db.add_facility(
        Facility("VMAG", "MAG", "Magnetic VOR", FacilityType.VOR, 0.0, 1.0, magvar=10.0, frequency=112.3)
    )
    return db


@pytest.fixture
def facility_cache(facility_db: FacilityDatabase) -> dict[str, Facility]:
    """Facility cache as filled by the calculator before leg calculation."""
    return dict(facility_db.facilities)


@pytest.fixture
def path_state() -> FlightPathState:
    """Calculation state of a 120 kt aircraft with a 1000 m turn radius."""
    return FlightPathState(
        plane_speed_kts=120.0,
        plane_climb_rate_fpm=1000.0,
        desired_turn_radius_m=1000.0,
    )


@pytest.fixture
def route_legs(make_leg) -> list[LegDefinition]:
    """IF ALPHA, TF BRAVO, TF CHRLY: east then a right turn to the south."""
    return [
        make_leg(LegType.IF, fix_icao="WALPHA"),
        make_leg(LegType.TF, fix_icao="WBRAVO"),
        make_leg(LegType.TF, fix_icao="WCHRLY"),
    ]


@pytest.fixture
def calculator(facility_db: FacilityDatabase) -> FlightPathCalculator:
    """Calculator with a 1000 m turn radius cap."""
    return FlightPathCalculator(facility_db, FlightPathCalculatorOptions(max_turn_radius_m=1000.0))


@pytest.fixture
def event_bus() -> EventBus:
    """Fresh event bus."""
    return EventBus()


@pytest.fixture
def planner(calculator: FlightPathCalculator, event_bus: EventBus) -> FlightPlanner:
    """Planner sharing the calculator and bus."""
    return FlightPlanner(calculator, event_bus=event_bus)
