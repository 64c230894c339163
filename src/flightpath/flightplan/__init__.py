"""Flight plans and flight path calculation.

Typical usage:
    from flightpath.flightplan import FlightPathCalculator, FlightPlanner

    calculator = FlightPathCalculator(facility_db)
    planner = FlightPlanner(calculator, event_bus=bus)
    plan = planner.create_flight_plan(0)
"""

from flightpath.flightplan.calculator import (
    AircraftState,
    FlightPathCalculator,
    FlightPathCalculatorOptions,
    FlightPathState,
)
from flightpath.flightplan.events import (
    ActiveLegChangedEvent,
    ActiveLegType,
    ActivePlanIndexChangedEvent,
    DirectToDataChangedEvent,
    FlightPlanEvent,
    LegChangedEvent,
    OriginDestChangedEvent,
    OriginDestChangeType,
    PlanCalculatedEvent,
    PlanChangeType,
    PlanCopiedEvent,
    PlanCreatedEvent,
    PlanDeletedEvent,
    ProcedureDetailsChangedEvent,
    SegmentChangedEvent,
    UserDataDeletedEvent,
    UserDataSetEvent,
)
from flightpath.flightplan.flight_plan import (
    DirectToData,
    FlightPlan,
    FlightPlanError,
    FlightPlanIndexError,
    FlightPlanNotFoundError,
    FlightPlanSegment,
    FlightPlanSegmentType,
    ProcedureDetails,
)
from flightpath.flightplan.naming import build_default_leg_name
from flightpath.flightplan.planner import FlightPlanner
from flightpath.flightplan.scratch import ScratchArena, ScratchInUseError
from flightpath.flightplan.vectors import (
    FlightPathVector,
    FlightPathVectorFlags,
    LegCalculations,
    LegDefinition,
    LegDefinitionFlags,
    VectorTurnDirection,
    VerticalData,
)

__all__ = [
    "ActiveLegChangedEvent",
    "ActiveLegType",
    "ActivePlanIndexChangedEvent",
    "AircraftState",
    "DirectToData",
    "DirectToDataChangedEvent",
    "FlightPathCalculator",
    "FlightPathCalculatorOptions",
    "FlightPathState",
    "FlightPathVector",
    "FlightPathVectorFlags",
    "FlightPlan",
    "FlightPlanError",
    "FlightPlanEvent",
    "FlightPlanIndexError",
    "FlightPlanNotFoundError",
    "FlightPlanSegment",
    "FlightPlanSegmentType",
    "FlightPlanner",
    "LegCalculations",
    "LegChangedEvent",
    "LegDefinition",
    "LegDefinitionFlags",
    "OriginDestChangeType",
    "OriginDestChangedEvent",
    "PlanCalculatedEvent",
    "PlanChangeType",
    "PlanCopiedEvent",
    "PlanCreatedEvent",
    "PlanDeletedEvent",
    "ProcedureDetails",
    "ProcedureDetailsChangedEvent",
    "ScratchArena",
    "ScratchInUseError",
    "SegmentChangedEvent",
    "UserDataDeletedEvent",
    "UserDataSetEvent",
    "VectorTurnDirection",
    "VerticalData",
    "build_default_leg_name",
]
