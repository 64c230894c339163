"""Notifications published by flight plans and the flight planner.

Every flight plan notification derives from FlightPlanEvent, so a consumer
that wants to mirror a plan can subscribe once to the base class.

Typical usage:
    from flightpath.core.event_bus import EventBus
    from flightpath.flightplan.events import FlightPlanEvent, LegChangedEvent

    bus = EventBus()
    bus.subscribe(LegChangedEvent, on_leg_changed)
    bus.subscribe(FlightPlanEvent, mirror_to_remote)
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from flightpath.core.event_bus import Event

if TYPE_CHECKING:
    from flightpath.flightplan.flight_plan import DirectToData, FlightPlanSegment, ProcedureDetails
    from flightpath.flightplan.vectors import LegDefinition


class PlanChangeType(Enum):
    """Kind of structural change to a segment or leg."""

    ADDED = "added"
    INSERTED = "inserted"
    REMOVED = "removed"
    CHANGED = "changed"
    CLEARED = "cleared"


class ActiveLegType(Enum):
    """Which of a plan's active leg indices changed."""

    LATERAL = "lateral"
    VERTICAL = "vertical"
    CALCULATING = "calculating"


class OriginDestChangeType(Enum):
    """Kind of origin or destination change."""

    ORIGIN_ADDED = "origin_added"
    ORIGIN_REMOVED = "origin_removed"
    DESTINATION_ADDED = "destination_added"
    DESTINATION_REMOVED = "destination_removed"


@dataclass
class FlightPlanEvent(Event):
    """Base of all notifications about one flight plan.

    Attributes:
        plan_index: Index of the plan in its planner.
    """

    plan_index: int


@dataclass
class SegmentChangedEvent(FlightPlanEvent):
    """A segment was added, inserted, removed or changed.

    Attributes:
        segment_index: Index of the affected segment.
        change_type: What happened to it.
        segment: The segment, None when a missing segment was removed.
    """

    segment_index: int
    change_type: PlanChangeType
    segment: "FlightPlanSegment | None" = None


@dataclass
class LegChangedEvent(FlightPlanEvent):
    """A leg was added, removed or changed.

    Attributes:
        segment_index: Index of the leg's segment.
        segment_leg_index: Index of the leg in its segment.
        change_type: What happened to it.
        leg: The leg definition.
    """

    segment_index: int
    segment_leg_index: int
    change_type: PlanChangeType
    leg: "LegDefinition"


@dataclass
class ActiveLegChangedEvent(FlightPlanEvent):
    """One of the active leg indices moved.

    Segment indices are -1 when the plan was empty.

    Attributes:
        index: New global leg index.
        segment_index: Segment of the new active leg.
        segment_leg_index: Index of the new active leg in its segment.
        previous_segment_index: Segment of the previous active leg.
        previous_segment_leg_index: Index of the previous active leg in its segment.
        leg_type: Which active index changed.
    """

    index: int
    segment_index: int
    segment_leg_index: int
    previous_segment_index: int
    previous_segment_leg_index: int
    leg_type: ActiveLegType


@dataclass
class PlanCalculatedEvent(FlightPlanEvent):
    """The flight path of a plan was recalculated.

    Attributes:
        from_index: Global index of the first recalculated leg.
        generation: Generation of the calculation that completed.
    """

    from_index: int
    generation: int


@dataclass
class DirectToDataChangedEvent(FlightPlanEvent):
    """The direct-to target changed.

    Attributes:
        direct_to_data: Snapshot of the new direct-to data.
    """

    direct_to_data: "DirectToData"


@dataclass
class ProcedureDetailsChangedEvent(FlightPlanEvent):
    """Procedure selections or runways changed.

    Attributes:
        details: Snapshot of the procedure details.
    """

    details: "ProcedureDetails"


@dataclass
class OriginDestChangedEvent(FlightPlanEvent):
    """The origin or destination airport changed.

    Attributes:
        change_type: What changed.
        airport_icao: ICAO of the airport that was set or removed.
    """

    change_type: OriginDestChangeType
    airport_icao: str | None


@dataclass
class UserDataSetEvent(FlightPlanEvent):
    """A user data entry was set."""

    key: str
    data: Any


@dataclass
class UserDataDeletedEvent(FlightPlanEvent):
    """A user data entry was deleted."""

    key: str


@dataclass
class PlanCreatedEvent(FlightPlanEvent):
    """The planner created a plan at ``plan_index``."""


@dataclass
class PlanDeletedEvent(FlightPlanEvent):
    """The planner deleted the plan at ``plan_index``."""


@dataclass
class PlanCopiedEvent(FlightPlanEvent):
    """The planner copied a plan.

    Attributes:
        source_plan_index: Index of the copied plan; ``plan_index`` holds the target.
    """

    source_plan_index: int


@dataclass
class ActivePlanIndexChangedEvent(Event):
    """The planner's active plan index changed.

    Attributes:
        plan_index: New active plan index.
        previous_plan_index: Previous active plan index.
    """

    plan_index: int
    previous_plan_index: int
