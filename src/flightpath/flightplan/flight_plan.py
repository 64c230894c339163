"""Flight plan data model.

A FlightPlan is an ordered list of segments (origin, departure, enroute,
arrival, approach, ...) each holding a list of legs. Legs are addressed
either by segment and index within the segment, or by a global index that
counts legs across all segments. Segment slots may be empty: deleting a
segment in the middle of the plan leaves a hole so that the indices of the
following segments stay stable.

Changes are announced as flight plan events on the plan's event bus, and
``calculate`` recomputes the flight path through the plan's calculator.

Typical usage:
    from flightpath.flightplan.flight_plan import FlightPlan, FlightPlanSegmentType

    plan = FlightPlan(0, calculator, event_bus=bus)
    plan.add_segment(0, FlightPlanSegmentType.DEPARTURE)
    plan.add_leg(0, FlightPlan.create_leg(type=LegType.IF, fix_icao="WKSBAYGR"))
    plan.add_leg(0, FlightPlan.create_leg(type=LegType.TF, fix_icao="WKSBSUNOL"))
    await plan.calculate(0)
"""

import asyncio
import dataclasses
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from flightpath.core.event_bus import EventBus
from flightpath.core.logging_system import get_logger
from flightpath.flightplan.calculator import FlightPathCalculator
from flightpath.flightplan.events import (
    ActiveLegChangedEvent,
    ActiveLegType,
    DirectToDataChangedEvent,
    FlightPlanEvent,
    LegChangedEvent,
    OriginDestChangedEvent,
    OriginDestChangeType,
    PlanCalculatedEvent,
    PlanChangeType,
    ProcedureDetailsChangedEvent,
    SegmentChangedEvent,
    UserDataDeletedEvent,
    UserDataSetEvent,
)
from flightpath.flightplan.naming import LegNameProvider, build_default_leg_name
from flightpath.flightplan.vectors import LegDefinition, LegDefinitionFlags, VerticalData
from flightpath.navigation.legs import FlightPlanLeg

logger = get_logger(__name__)


class FlightPlanError(Exception):
    """Base class for flight plan errors."""


class FlightPlanNotFoundError(FlightPlanError, LookupError):
    """An index is in range but refers to a missing segment, leg or plan."""


class FlightPlanIndexError(FlightPlanError, IndexError):
    """An index is outside the plan's structural range."""


class FlightPlanSegmentType(Enum):
    """Role of a segment in the plan."""

    ORIGIN = "origin"
    DEPARTURE = "departure"
    ENROUTE = "enroute"
    ARRIVAL = "arrival"
    APPROACH = "approach"
    DESTINATION = "destination"
    MISSED_APPROACH = "missed_approach"
    RANDOM_DIRECT_TO = "random_direct_to"


@dataclass
class FlightPlanSegment:
    """A run of consecutive legs sharing a role.

    Attributes:
        segment_index: Index of the segment in its plan.
        offset: Global index of the segment's first leg.
        legs: The segment's legs.
        segment_type: Role of the segment.
        airway: Airway the segment follows, if any.
    """

    segment_index: int
    offset: int = -1
    legs: list[LegDefinition] = field(default_factory=list)
    segment_type: FlightPlanSegmentType = FlightPlanSegmentType.ENROUTE
    airway: str | None = None


@dataclass
class ProcedureDetails:
    """Selected procedures and runways. Indices are -1 when nothing is selected."""

    origin_runway: str | None = None
    departure_facility_icao: str | None = None
    departure_index: int = -1
    departure_transition_index: int = -1
    departure_runway_index: int = -1
    arrival_facility_icao: str | None = None
    arrival_index: int = -1
    arrival_transition_index: int = -1
    arrival_runway_transition_index: int = -1
    approach_facility_icao: str | None = None
    approach_index: int = -1
    approach_transition_index: int = -1
    destination_runway: str | None = None


@dataclass
class DirectToData:
    """Target of an active direct-to, -1 indices when there is none."""

    segment_index: int = -1
    segment_leg_index: int = -1


class FlightPlan:
    """A flight plan managed by the flight planner.

    Only one flight path calculation runs at a time per plan. Calculation
    requests that arrive while one is running are coalesced: the newest
    request runs from the lowest index any of the waiting requests asked
    for, and the older requests return without a notification. While a
    calculation runs, ``is_calculating`` is True and the calculator owns the
    ``calculated`` state of the plan's legs.

    Attributes:
        plan_index: Index of the plan in its planner.
        calculator: Calculator used by ``calculate``.
        event_bus: Bus notifications are published on, if any.
        direct_to_data: Target of the active direct-to.
        procedure_details: Selected procedures and runways.
        user_data: Arbitrary data attached by consumers.
    """

    def __init__(
        self,
        plan_index: int,
        calculator: FlightPathCalculator,
        leg_name_provider: LegNameProvider | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        """Initialize an empty plan.

        Args:
            plan_index: Index of the plan in its planner.
            calculator: Flight path calculator.
            leg_name_provider: Names new legs; build_default_leg_name when None.
            event_bus: Bus to publish change notifications on.
        """
        self.plan_index = plan_index
        self.calculator = calculator
        self.leg_name_provider = leg_name_provider or build_default_leg_name
        self.event_bus = event_bus
        self.direct_to_data = DirectToData()
        self.procedure_details = ProcedureDetails()
        self.user_data: dict[str, Any] = {}

        self._segments: list[FlightPlanSegment | None] = []
        self._origin_airport: str | None = None
        self._destination_airport: str | None = None
        self._active_lateral_leg = 0
        self._active_vertical_leg = 0
        self._active_calculating_leg = 0

        self._calculation_lock = asyncio.Lock()
        self._generation = 0
        self._pending_from_index: int | None = None
        self._is_calculating = False

    @staticmethod
    def create_leg(**fields: Any) -> FlightPlanLeg:
        """Create a raw leg, defaulting every field not given.

        Examples:
            >>> FlightPlan.create_leg(type=LegType.DF, fix_icao="WKSBSUNOL").course
            0.0
        """
        return FlightPlanLeg(**fields)

    @property
    def origin_airport(self) -> str | None:
        """ICAO of the origin airport, if any."""
        return self._origin_airport

    @property
    def destination_airport(self) -> str | None:
        """ICAO of the destination airport, if any."""
        return self._destination_airport

    @property
    def active_lateral_leg(self) -> int:
        """Global index of the active lateral leg."""
        return self._active_lateral_leg

    @property
    def active_vertical_leg(self) -> int:
        """Global index of the active vertical leg."""
        return self._active_vertical_leg

    @property
    def active_calculating_leg(self) -> int:
        """Global index calculations start from when no index is given."""
        return self._active_calculating_leg

    @property
    def length(self) -> int:
        """Number of legs in the plan."""
        for segment in reversed(self._segments):
            if segment is not None:
                return segment.offset + len(segment.legs)
        return 0

    @property
    def segment_count(self) -> int:
        """Number of segment slots, empty slots included."""
        return len(self._segments)

    @property
    def is_calculating(self) -> bool:
        """Whether a flight path calculation is running."""
        return self._is_calculating

    @property
    def generation(self) -> int:
        """Number of calculation requests made so far."""
        return self._generation

    def _publish(self, event: FlightPlanEvent, notify: bool) -> None:
        if notify and self.event_bus is not None:
            self.event_bus.publish(event)

    # Segments

    def segments(self) -> Iterator[FlightPlanSegment]:
        """Iterate over the plan's segments, skipping empty slots."""
        for segment in self._segments:
            if segment is not None:
                yield segment

    def segments_of_type(self, segment_type: FlightPlanSegmentType) -> Iterator[FlightPlanSegment]:
        """Iterate over the segments of one type."""
        for segment in self.segments():
            if segment.segment_type is segment_type:
                yield segment

    def add_segment(
        self,
        segment_index: int,
        segment_type: FlightPlanSegmentType = FlightPlanSegmentType.ENROUTE,
        airway: str | None = None,
        notify: bool = True,
    ) -> FlightPlanSegment:
        """Put a new empty segment at an index, replacing whatever was there.

        Args:
            segment_index: Slot of the new segment; slots up to it are
                created empty if needed.
            segment_type: Role of the segment.
            airway: Airway the segment follows.
            notify: Whether to publish a SegmentChangedEvent.

        Returns:
            The new segment.

        Raises:
            FlightPlanIndexError: If segment_index is negative.
        """
        if segment_index < 0:
            raise FlightPlanIndexError(f"Invalid segment index: {segment_index}")

        segment = FlightPlanSegment(segment_index, -1, [], segment_type, airway)
        if segment_index >= len(self._segments):
            self._segments.extend([None] * (segment_index + 1 - len(self._segments)))
        self._segments[segment_index] = segment
        self.reflow_segment_offsets()
        self._publish(SegmentChangedEvent(self.plan_index, segment_index, PlanChangeType.ADDED, segment), notify)
        return segment

    def insert_segment(
        self,
        segment_index: int,
        segment_type: FlightPlanSegmentType = FlightPlanSegmentType.ENROUTE,
        airway: str | None = None,
        notify: bool = True,
    ) -> FlightPlanSegment:
        """Insert a new empty segment, shifting the following segments up.

        When the slot is empty or past the end, this behaves like add_segment.

        Returns:
            The new segment.
        """
        if not 0 <= segment_index < len(self._segments) or self._segments[segment_index] is None:
            return self.add_segment(segment_index, segment_type, airway, notify)

        segment = FlightPlanSegment(segment_index, -1, [], segment_type, airway)
        self._segments.insert(segment_index, segment)
        self._reflow_segments()
        self.reflow_segment_offsets()
        self._publish(SegmentChangedEvent(self.plan_index, segment_index, PlanChangeType.INSERTED, segment), notify)
        return segment

    def delete_segment(self, segment_index: int, notify: bool = True) -> None:
        """Delete a segment, leaving an empty slot unless it was the last one.

        Raises:
            FlightPlanIndexError: If there is no such slot.
        """
        self._check_segment_slot(segment_index)
        segment = self._segments[segment_index]
        if segment_index == len(self._segments) - 1:
            self._segments.pop()
        else:
            self._segments[segment_index] = None
        self.reflow_segment_offsets()
        self._publish(SegmentChangedEvent(self.plan_index, segment_index, PlanChangeType.REMOVED, segment), notify)

    def remove_segment(self, segment_index: int, notify: bool = True) -> None:
        """Remove a segment slot, shifting the following segments down.

        Raises:
            FlightPlanIndexError: If there is no such slot.
        """
        self._check_segment_slot(segment_index)
        segment = self._segments.pop(segment_index)
        self._reflow_segments()
        self.reflow_segment_offsets()
        self._publish(SegmentChangedEvent(self.plan_index, segment_index, PlanChangeType.REMOVED, segment), notify)

    def get_segment(self, segment_index: int | None = None) -> FlightPlanSegment:
        """Get a segment.

        Args:
            segment_index: Slot of the segment; the segment holding the
                active lateral leg when None.

        Returns:
            The segment.

        Raises:
            FlightPlanIndexError: If the slot does not exist.
            FlightPlanNotFoundError: If the slot is empty.
        """
        if segment_index is None:
            for segment in self.segments():
                if self._active_lateral_leg == 0 and not segment.legs:
                    continue
                if self._active_lateral_leg > segment.offset + len(segment.legs):
                    continue
                return segment
            raise FlightPlanNotFoundError("The flight plan has no active segment")

        self._check_segment_slot(segment_index)
        segment = self._segments[segment_index]
        if segment is None:
            raise FlightPlanNotFoundError(f"Flight plan segment {segment_index} could not be found")
        return segment

    def get_segment_index(self, global_leg_index: int) -> int:
        """Slot of the segment holding a leg, -1 if no segment holds it."""
        for segment in self.segments():
            if segment.offset <= global_leg_index < segment.offset + len(segment.legs):
                return segment.segment_index
        return -1

    def get_segment_leg_index(self, global_leg_index: int) -> int:
        """Index of a leg within its segment, -1 if no segment holds it."""
        segment_index = self.get_segment_index(global_leg_index)
        if segment_index == -1:
            return -1
        return global_leg_index - self.get_segment(segment_index).offset

    def get_segment_from_leg(self, leg: LegDefinition) -> FlightPlanSegment | None:
        """Segment holding a leg definition, by identity."""
        for segment in self.segments():
            if any(candidate is leg for candidate in segment.legs):
                return segment
        return None

    def set_airway(self, segment_index: int, airway: str | None, notify: bool = True) -> None:
        """Set or clear the airway of a segment."""
        segment = self.get_segment(segment_index)
        segment.airway = airway or None
        self._publish(SegmentChangedEvent(self.plan_index, segment_index, PlanChangeType.CHANGED, segment), notify)

    def reflow_segment_offsets(self) -> None:
        """Recompute the global offset of every segment."""
        next_offset = 0
        for segment in self.segments():
            segment.offset = next_offset
            next_offset += len(segment.legs)

    def _reflow_segments(self) -> None:
        for index, segment in enumerate(self._segments):
            if segment is not None:
                segment.segment_index = index

    def _check_segment_slot(self, segment_index: int) -> None:
        if not 0 <= segment_index < len(self._segments):
            raise FlightPlanIndexError(
                f"Segment index {segment_index} out of range for {len(self._segments)} segments"
            )

    # Legs

    def legs(self, reverse: bool = False, start_index: int | None = None) -> Iterator[LegDefinition]:
        """Iterate over the plan's legs.

        Args:
            reverse: Iterate from the last leg towards the first.
            start_index: Global index of the first leg yielded; the first
                (or, reversed, the last) leg when None.

        Yields:
            Leg definitions in plan order, or reverse plan order.
        """
        if reverse:
            start = self.length - 1 if start_index is None else start_index
            for segment in reversed(self._segments):
                if segment is None:
                    continue
                for index in range(min(len(segment.legs) - 1, start - segment.offset), -1, -1):
                    yield segment.legs[index]
        else:
            start = 0 if start_index is None else start_index
            for segment in self.segments():
                for index in range(max(0, start - segment.offset), len(segment.legs)):
                    yield segment.legs[index]

    def add_leg(
        self,
        segment_index: int,
        leg: FlightPlanLeg,
        segment_leg_index: int | None = None,
        flags: LegDefinitionFlags = LegDefinitionFlags.NONE,
        notify: bool = True,
    ) -> LegDefinition:
        """Add a leg to a segment.

        Args:
            segment_index: Segment to add the leg to.
            leg: The raw leg.
            segment_leg_index: Position within the segment; appended when None.
            flags: Leg definition flags.
            notify: Whether to publish a LegChangedEvent.

        Returns:
            The new leg definition.

        Raises:
            FlightPlanIndexError: If the segment slot does not exist.
            FlightPlanNotFoundError: If the segment slot is empty.
        """
        segment = self.get_segment(segment_index)
        definition = LegDefinition(name=self.leg_name_provider(leg), leg=leg, flags=flags)
        if segment_leg_index is None:
            segment.legs.append(definition)
            segment_leg_index = len(segment.legs) - 1
        else:
            segment_leg_index = max(0, min(segment_leg_index, len(segment.legs)))
            segment.legs.insert(segment_leg_index, definition)

        self.reflow_segment_offsets()
        self._publish(
            LegChangedEvent(self.plan_index, segment_index, segment_leg_index, PlanChangeType.ADDED, definition),
            notify,
        )
        return definition

    def remove_leg(
        self, segment_index: int, segment_leg_index: int | None = None, notify: bool = True
    ) -> LegDefinition | None:
        """Remove a leg from a segment.

        Args:
            segment_index: Segment to remove the leg from.
            segment_leg_index: Index of the leg; the segment's last leg when None.
            notify: Whether to publish a LegChangedEvent.

        Returns:
            The removed leg, or None if there was nothing to remove.
        """
        segment = self.get_segment(segment_index)
        if segment_leg_index is None:
            segment_leg_index = len(segment.legs) - 1
        if not 0 <= segment_leg_index < len(segment.legs):
            return None

        definition = segment.legs.pop(segment_leg_index)
        self.reflow_segment_offsets()
        self._publish(
            LegChangedEvent(self.plan_index, segment_index, segment_leg_index, PlanChangeType.REMOVED, definition),
            notify,
        )
        return definition

    def try_get_leg(self, index: int, segment_leg_index: int | None = None) -> LegDefinition | None:
        """Get a leg by global index, or by segment and index in segment.

        Returns:
            The leg, or None when there is no leg at that position.
        """
        if segment_leg_index is None:
            for segment in self.segments():
                if segment.offset <= index < segment.offset + len(segment.legs):
                    return segment.legs[index - segment.offset]
            return None

        if not 0 <= index < len(self._segments):
            return None
        segment = self._segments[index]
        if segment is None or not 0 <= segment_leg_index < len(segment.legs):
            return None
        return segment.legs[segment_leg_index]

    def get_leg(self, index: int, segment_leg_index: int | None = None) -> LegDefinition:
        """Get a leg by global index, or by segment and index in segment.

        Args:
            index: Global leg index, or segment index when
                ``segment_leg_index`` is given.
            segment_leg_index: Index of the leg in its segment.

        Returns:
            The leg.

        Raises:
            FlightPlanIndexError: If the index is outside the plan.
            FlightPlanNotFoundError: If the addressed segment slot is empty.
        """
        if segment_leg_index is None:
            if not 0 <= index < self.length:
                raise FlightPlanIndexError(f"Leg index {index} out of range for {self.length} legs")
            leg = self.try_get_leg(index)
        else:
            segment = self.get_segment(index)
            if not 0 <= segment_leg_index < len(segment.legs):
                raise FlightPlanIndexError(
                    f"Leg index {segment_leg_index} out of range for segment {index} with {len(segment.legs)} legs"
                )
            leg = segment.legs[segment_leg_index]

        if leg is None:
            raise FlightPlanNotFoundError(f"Leg {index} could not be found")
        return leg

    def get_leg_index_from_leg(self, leg: LegDefinition) -> int:
        """Global index of a leg definition, by identity, -1 if absent."""
        for index, candidate in enumerate(self.legs()):
            if candidate is leg:
                return index
        return -1

    def get_prev_leg(self, segment_index: int, segment_leg_index: int) -> LegDefinition | None:
        """Leg before a position, looking back across segments."""
        if segment_index < 0 or not self._segments:
            return None
        segment_index = min(segment_index, len(self._segments) - 1)
        segment = self._segments[segment_index]
        if segment is not None:
            segment_leg_index = min(segment_leg_index, len(segment.legs))
            if segment_leg_index > 0:
                return segment.legs[segment_leg_index - 1]

        for segment in reversed(self._segments[:segment_index]):
            if segment is not None and segment.legs:
                return segment.legs[-1]
        return None

    def get_next_leg(self, segment_index: int, segment_leg_index: int) -> LegDefinition | None:
        """Leg after a position, looking ahead across segments."""
        if segment_index >= len(self._segments):
            return None
        segment_leg_index = max(segment_leg_index, -1)
        if segment_index >= 0:
            segment = self._segments[segment_index]
            if segment is not None and segment_leg_index + 1 < len(segment.legs):
                return segment.legs[segment_leg_index + 1]

        for segment in self._segments[max(segment_index + 1, 0) :]:
            if segment is not None and segment.legs:
                return segment.legs[0]
        return None

    def set_leg_vertical_data(
        self,
        global_leg_index: int,
        vertical_data: VerticalData | Mapping[str, Any],
        notify: bool = True,
    ) -> bool:
        """Merge vertical constraints into a leg.

        Args:
            global_leg_index: The leg.
            vertical_data: Complete vertical data, or a mapping of the fields
                to change.
            notify: Whether to publish a LegChangedEvent.

        Returns:
            True if the leg exists and was updated.
        """
        segment_index = self.get_segment_index(global_leg_index)
        if segment_index == -1:
            logger.warning("Failed to set vertical data of leg %d: no such leg", global_leg_index)
            return False

        segment = self.get_segment(segment_index)
        segment_leg_index = global_leg_index - segment.offset
        leg = segment.legs[segment_leg_index]
        changes = dataclasses.asdict(vertical_data) if isinstance(vertical_data, VerticalData) else vertical_data
        leg.vertical_data = dataclasses.replace(leg.vertical_data, **changes)
        self._publish(
            LegChangedEvent(self.plan_index, segment_index, segment_leg_index, PlanChangeType.CHANGED, leg), notify
        )
        return True

    # Active legs

    def set_lateral_leg(self, global_leg_index: int, notify: bool = True) -> None:
        """Set the active lateral leg, clamped to the plan."""
        self._active_lateral_leg = self._set_active_leg(
            self._active_lateral_leg, global_leg_index, ActiveLegType.LATERAL, notify
        )

    def set_vertical_leg(self, global_leg_index: int, notify: bool = True) -> None:
        """Set the active vertical leg, clamped to the plan."""
        self._active_vertical_leg = self._set_active_leg(
            self._active_vertical_leg, global_leg_index, ActiveLegType.VERTICAL, notify
        )

    def set_calculating_leg(self, global_leg_index: int, notify: bool = True) -> None:
        """Set the leg calculations start from by default, clamped to the plan."""
        self._active_calculating_leg = self._set_active_leg(
            self._active_calculating_leg, global_leg_index, ActiveLegType.CALCULATING, notify
        )

    def _set_active_leg(self, previous: int, requested: int, leg_type: ActiveLegType, notify: bool) -> int:
        previous_segment_index = previous_segment_leg_index = -1
        segment_index = segment_leg_index = -1
        index = 0
        if self.length > 0:
            previous_segment_index = self.get_segment_index(previous)
            if previous_segment_index > -1:
                previous_segment_leg_index = previous - self.get_segment(previous_segment_index).offset
            index = max(0, min(requested, self.length - 1))
            segment_index = self.get_segment_index(index)
            segment_leg_index = index - self.get_segment(segment_index).offset

        self._publish(
            ActiveLegChangedEvent(
                self.plan_index,
                index,
                segment_index,
                segment_leg_index,
                previous_segment_index,
                previous_segment_leg_index,
                leg_type,
            ),
            notify,
        )
        return index

    def set_direct_to_data(self, target: int | LegDefinition | None, notify: bool = True) -> None:
        """Set the direct-to target by global leg index or leg definition.

        Args:
            target: Global index or definition of the target leg; None or -1
                clears the direct-to.
            notify: Whether to publish a DirectToDataChangedEvent.
        """
        if isinstance(target, LegDefinition):
            target = self.get_leg_index_from_leg(target)
        elif target is None:
            target = -1

        segment_index = segment_leg_index = -1
        if target >= 0:
            segment_index = self.get_segment_index(target)
            if segment_index >= 0:
                segment_leg_index = target - self.get_segment(segment_index).offset
        self.set_direct_to_segment_leg(segment_index, segment_leg_index, notify)

    def set_direct_to_segment_leg(self, segment_index: int, segment_leg_index: int, notify: bool = True) -> None:
        """Set the direct-to target by segment and index in segment."""
        self.direct_to_data.segment_index = segment_index
        self.direct_to_data.segment_leg_index = segment_leg_index
        self._publish(DirectToDataChangedEvent(self.plan_index, dataclasses.replace(self.direct_to_data)), notify)

    # Procedures

    def _publish_procedure_details(self, notify: bool) -> None:
        self._publish(
            ProcedureDetailsChangedEvent(self.plan_index, dataclasses.replace(self.procedure_details)), notify
        )

    def set_procedure_details(self, details: ProcedureDetails | Mapping[str, Any], notify: bool = True) -> None:
        """Merge procedure details into the plan's.

        Args:
            details: Complete details, or a mapping of the fields to change.
            notify: Whether to publish a ProcedureDetailsChangedEvent.
        """
        changes = dataclasses.asdict(details) if isinstance(details, ProcedureDetails) else details
        self.procedure_details = dataclasses.replace(self.procedure_details, **changes)
        self._publish_procedure_details(notify)

    def set_origin_airport(self, facility_icao: str, notify: bool = True) -> None:
        """Set the origin airport."""
        self._origin_airport = facility_icao
        self._publish(
            OriginDestChangedEvent(self.plan_index, OriginDestChangeType.ORIGIN_ADDED, facility_icao), notify
        )

    def remove_origin_airport(self, notify: bool = True) -> None:
        """Remove the origin airport and clear the departure selection."""
        facility_icao = self._origin_airport
        self._origin_airport = None
        details = self.procedure_details
        details.departure_index = -1
        details.departure_runway_index = -1
        details.departure_transition_index = -1
        details.origin_runway = None
        self._publish(
            OriginDestChangedEvent(self.plan_index, OriginDestChangeType.ORIGIN_REMOVED, facility_icao), notify
        )

    def set_destination_airport(self, facility_icao: str, notify: bool = True) -> None:
        """Set the destination airport."""
        self._destination_airport = facility_icao
        self._publish(
            OriginDestChangedEvent(self.plan_index, OriginDestChangeType.DESTINATION_ADDED, facility_icao), notify
        )

    def remove_destination_airport(self, notify: bool = True) -> None:
        """Remove the destination airport and clear the arrival and approach selections."""
        facility_icao = self._destination_airport
        self._destination_airport = None
        details = self.procedure_details
        details.approach_index = -1
        details.approach_transition_index = -1
        details.arrival_index = -1
        details.arrival_runway_transition_index = -1
        details.arrival_transition_index = -1
        details.destination_runway = None
        self._publish(
            OriginDestChangedEvent(self.plan_index, OriginDestChangeType.DESTINATION_REMOVED, facility_icao), notify
        )

    def set_origin_runway(self, runway: str | None = None, notify: bool = True) -> None:
        """Set or clear the origin runway designator."""
        self.procedure_details.origin_runway = runway
        self._publish_procedure_details(notify)

    def set_destination_runway(self, runway: str | None = None, notify: bool = True) -> None:
        """Set or clear the destination runway designator."""
        self.procedure_details.destination_runway = runway
        self._publish_procedure_details(notify)

    def set_departure(
        self,
        facility_icao: str | None = None,
        departure_index: int = -1,
        departure_transition_index: int = -1,
        departure_runway_index: int = -1,
        notify: bool = True,
    ) -> None:
        """Select a departure procedure; the defaults clear the selection."""
        details = self.procedure_details
        details.departure_facility_icao = facility_icao
        details.departure_index = departure_index
        details.departure_transition_index = departure_transition_index
        details.departure_runway_index = departure_runway_index
        self._publish_procedure_details(notify)

    def set_arrival(
        self,
        facility_icao: str | None = None,
        arrival_index: int = -1,
        arrival_transition_index: int = -1,
        arrival_runway_transition_index: int = -1,
        notify: bool = True,
    ) -> None:
        """Select an arrival procedure; the defaults clear the selection."""
        details = self.procedure_details
        details.arrival_facility_icao = facility_icao
        details.arrival_index = arrival_index
        details.arrival_transition_index = arrival_transition_index
        details.arrival_runway_transition_index = arrival_runway_transition_index
        self._publish_procedure_details(notify)

    def set_approach(
        self,
        facility_icao: str | None = None,
        approach_index: int = -1,
        approach_transition_index: int = -1,
        notify: bool = True,
    ) -> None:
        """Select an approach procedure; the defaults clear the selection."""
        details = self.procedure_details
        details.approach_facility_icao = facility_icao
        details.approach_index = approach_index
        details.approach_transition_index = approach_transition_index
        self._publish_procedure_details(notify)

    # User data

    def set_user_data(self, key: str, data: Any, notify: bool = True) -> None:
        """Attach a value to the plan."""
        self.user_data[key] = data
        self._publish(UserDataSetEvent(self.plan_index, key, data), notify)

    def get_user_data(self, key: str) -> Any:
        """Value attached under a key, None if there is none."""
        return self.user_data.get(key)

    def delete_user_data(self, key: str, notify: bool = True) -> None:
        """Remove the value attached under a key, if any."""
        self.user_data.pop(key, None)
        self._publish(UserDataDeletedEvent(self.plan_index, key), notify)

    # Calculation

    async def calculate(self, from_index: int | None = None) -> bool:
        """Recalculate the flight path from a leg to the end of the plan.

        Concurrent requests are serialized. A request superseded by a newer
        one returns False without publishing anything; the newer request
        calculates from the lowest index either of them asked for.

        Args:
            from_index: Global index of the first leg to recalculate; the
                active calculating leg when None.

        Returns:
            True if this request's calculation completed and was announced
            with a PlanCalculatedEvent.
        """
        requested = self._active_calculating_leg if from_index is None else max(from_index, 0)
        self._merge_pending(requested)
        self._generation += 1
        generation = self._generation

        async with self._calculation_lock:
            if generation != self._generation:
                logger.debug("Plan %d calculation %d superseded while queued", self.plan_index, generation)
                return False

            start_index = self._pending_from_index if self._pending_from_index is not None else requested
            self._pending_from_index = None
            legs = list(self.legs())

            self._is_calculating = True
            try:
                completed = await self.calculator.calculate_flight_path(
                    legs,
                    self._active_lateral_leg,
                    start_index,
                    is_stale=lambda: generation != self._generation,
                )
            finally:
                self._is_calculating = False

            if not completed:
                # The newer request takes over this one's starting point.
                self._merge_pending(start_index)
                return False

        logger.debug("Plan %d calculated from leg %d (generation %d)", self.plan_index, start_index, generation)
        self._publish(PlanCalculatedEvent(self.plan_index, start_index, generation), True)
        return True

    def _merge_pending(self, from_index: int) -> None:
        if self._pending_from_index is None:
            self._pending_from_index = from_index
        else:
            self._pending_from_index = min(self._pending_from_index, from_index)

    # Copy

    def copy(self, plan_index: int | None = None) -> "FlightPlan":
        """Deep copy of the plan.

        Segments, legs (including their vertical and calculated data),
        procedure details, origin and destination, direct-to data, active
        leg indices and user data are all copied. The copy shares the
        calculator, leg name provider and event bus. No notifications are
        published.

        Args:
            plan_index: Index of the copy; this plan's index when None.

        Returns:
            The new plan.
        """
        plan = FlightPlan(
            self.plan_index if plan_index is None else plan_index,
            self.calculator,
            self.leg_name_provider,
            self.event_bus,
        )
        plan.procedure_details = dataclasses.replace(self.procedure_details)
        plan.direct_to_data = dataclasses.replace(self.direct_to_data)
        plan._segments = [
            None
            if segment is None
            else FlightPlanSegment(
                segment.segment_index,
                segment.offset,
                [leg.copy() for leg in segment.legs],
                segment.segment_type,
                segment.airway,
            )
            for segment in self._segments
        ]
        plan._origin_airport = self._origin_airport
        plan._destination_airport = self._destination_airport
        plan.set_lateral_leg(self._active_lateral_leg, notify=False)
        plan.set_vertical_leg(self._active_vertical_leg, notify=False)
        plan.set_calculating_leg(self._active_calculating_leg, notify=False)
        plan.user_data = dict(self.user_data)
        return plan
