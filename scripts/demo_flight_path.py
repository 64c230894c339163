#!/usr/bin/env python3
"""Flight path calculation demo.

Builds a one-segment flight plan from a list of fixes, calculates its
flight path and prints every leg with its distances and turns.

Usage:
    python scripts/demo_flight_path.py WKSBMENLO WKSBDUMBA WKSBSUNOL WKSBARCHI
    python scripts/demo_flight_path.py --speed 250 --hold WKSBSUNOL WKSBMENLO WKSBDUMBA WKSBSUNOL
"""

import argparse
import asyncio
import sys
from pathlib import Path

from flightpath.core.config import ConfigLoader
from flightpath.core.event_bus import EventBus
from flightpath.core.logging_system import get_logger, initialize_logging
from flightpath.flightplan import (
    AircraftState,
    FlightPathCalculator,
    FlightPathCalculatorOptions,
    FlightPlanner,
    FlightPlanSegmentType,
    PlanCalculatedEvent,
)
from flightpath.geo.nav_math import meters_to_nm
from flightpath.navigation import FacilityDatabase, FacilityDatabaseError, LegType

ROOT = Path(__file__).parent.parent

logger = get_logger(__name__)


def build_plan(planner: FlightPlanner, fixes: list[str], hold_fix: str | None):
    """Create plan 0 as IF to the first fix and TF legs to the others."""
    plan = planner.create_flight_plan(0)
    plan.add_segment(0, FlightPlanSegmentType.ENROUTE)
    for index, fix in enumerate(fixes):
        leg_type = LegType.IF if index == 0 else LegType.TF
        plan.add_leg(0, plan.create_leg(type=leg_type, fix_icao=fix))
        if fix == hold_fix:
            plan.add_leg(0, plan.create_leg(type=LegType.HM, fix_icao=fix, course=0.0))
    return plan


def print_plan(plan) -> None:
    print(f"{'LEG':<12}{'TYPE':<6}{'DTK':>6}{'DIST':>8}{'TOTAL':>8}  TURNS")
    for definition in plan.legs():
        calc = definition.calculated
        if calc is None:
            print(f"{definition.name:<12}{definition.leg.type.name:<6}  (not calculated)")
            continue
        dtk = f"{calc.initial_dtk:03.0f}" if calc.initial_dtk is not None else "---"
        turns = []
        if calc.ingress:
            turns.append(f"in {meters_to_nm(sum(v.distance for v in calc.ingress)):.1f}")
        if calc.egress:
            turns.append(f"out {meters_to_nm(sum(v.distance for v in calc.egress)):.1f}")
        print(
            f"{definition.name:<12}{definition.leg.type.name:<6}{dtk:>6}"
            f"{meters_to_nm(calc.distance_with_transitions):>8.1f}"
            f"{meters_to_nm(calc.cumulative_distance_with_transitions):>8.1f}  {', '.join(turns)}"
        )


def main() -> int:
    """Run the demo."""
    parser = argparse.ArgumentParser(description="Flight path calculation demo")
    parser.add_argument("fixes", nargs="+", help="Fix ICAO keys, first fix is the initial fix")
    parser.add_argument("--facilities", type=Path, default=ROOT / "data" / "facilities.csv")
    parser.add_argument("--config", type=Path, default=ROOT / "config" / "flightpath.yaml")
    parser.add_argument("--speed", type=float, default=0.0, help="Aircraft ground speed, knots")
    parser.add_argument("--hold", metavar="FIX", help="Add a hold to manual termination at this fix")
    parser.add_argument("--verbose", action="store_true", help="Log to the console at debug level")
    args = parser.parse_args()

    if args.verbose:
        initialize_logging(ROOT / "config" / "logging.yaml", use_platform_dir=False)

    db = FacilityDatabase()
    try:
        db.load_from_csv(args.facilities)
    except FacilityDatabaseError as e:
        logger.error("%s", e)
        return 1

    options = FlightPathCalculatorOptions.from_config(ConfigLoader.load(args.config))
    first = db.find_facility(args.fixes[0])
    aircraft = AircraftState(
        position=first.position if first is not None else AircraftState().position,
        ground_speed_kts=args.speed,
    )
    calculator = FlightPathCalculator(
        db,
        options,
        state_provider=lambda: aircraft,
        magvar_provider=lambda point: first.magvar if first is not None else 0.0,
    )

    bus = EventBus()
    bus.subscribe(PlanCalculatedEvent, lambda e: logger.info("Plan %d calculated from leg %d", e.plan_index, e.from_index))
    planner = FlightPlanner(calculator, event_bus=bus)
    plan = build_plan(planner, args.fixes, args.hold)

    asyncio.run(plan.calculate(0))
    print(f"Turn radius: {calculator.state.desired_turn_radius_m:.0f} m")
    print_plan(plan)
    return 0


if __name__ == "__main__":
    sys.exit(main())
