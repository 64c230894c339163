"""Tests for the flight plan data model."""

import asyncio

import pytest

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
from flightpath.flightplan.flight_plan import (
    FlightPlan,
    FlightPlanIndexError,
    FlightPlanNotFoundError,
    FlightPlanSegmentType,
    ProcedureDetails,
)
from flightpath.flightplan.vectors import LegDefinitionFlags, VerticalData
from flightpath.navigation.legs import AltitudeRestrictionType, LegType


def names(legs):
    return [leg.name for leg in legs]


@pytest.fixture
def events(event_bus):
    """Every flight plan event published on the bus."""
    received = []
    event_bus.subscribe(FlightPlanEvent, received.append)
    return received


@pytest.fixture
def plan(calculator, event_bus):
    """Departure ALPHA, BRAVO; an empty slot; enroute CHRLY, ECHO."""
    plan = FlightPlan(0, calculator, event_bus=event_bus)
    plan.add_segment(0, FlightPlanSegmentType.DEPARTURE, notify=False)
    plan.add_segment(2, FlightPlanSegmentType.ENROUTE, notify=False)
    plan.add_leg(0, FlightPlan.create_leg(type=LegType.IF, fix_icao="WALPHA"), notify=False)
    plan.add_leg(0, FlightPlan.create_leg(type=LegType.TF, fix_icao="WBRAVO"), notify=False)
    plan.add_leg(2, FlightPlan.create_leg(type=LegType.TF, fix_icao="WCHRLY"), notify=False)
    plan.add_leg(2, FlightPlan.create_leg(type=LegType.TF, fix_icao="WECHO"), notify=False)
    return plan


class TestSegments:
    """Tests for segment slots and offsets."""

    def test_add_segment_creates_empty_slots(self, plan):
        """Test that adding past the end leaves empty slots before the segment."""
        assert plan.segment_count == 3
        assert [s.segment_index for s in plan.segments()] == [0, 2]
        assert plan.get_segment(2).offset == 2
        assert plan.length == 4

    def test_add_segment_replaces_slot(self, plan, events):
        """Test that adding at an occupied slot replaces the segment."""
        segment = plan.add_segment(0, FlightPlanSegmentType.ORIGIN)

        assert plan.get_segment(0) is segment
        assert plan.length == 2
        assert plan.get_segment(2).offset == 0
        assert events == [SegmentChangedEvent(0, 0, PlanChangeType.ADDED, segment)]

    def test_negative_segment_index(self, plan):
        """Test that negative segment indices are rejected."""
        with pytest.raises(FlightPlanIndexError):
            plan.add_segment(-1)

    def test_insert_segment_shifts_following(self, plan, events):
        """Test that inserting renumbers the segments after it."""
        segment = plan.insert_segment(0, FlightPlanSegmentType.ORIGIN)

        assert plan.segment_count == 4
        assert [s.segment_index for s in plan.segments()] == [0, 1, 3]
        assert plan.get_segment(1).segment_type is FlightPlanSegmentType.DEPARTURE
        assert events[-1].change_type is PlanChangeType.INSERTED
        assert events[-1].segment is segment

    def test_insert_into_empty_slot(self, plan):
        """Test that inserting into an empty slot fills it."""
        plan.insert_segment(1, FlightPlanSegmentType.ENROUTE, airway="J80")

        assert plan.segment_count == 3
        assert plan.get_segment(1).airway == "J80"
        assert plan.get_segment(2).offset == 2

    def test_delete_segment_leaves_hole(self, plan):
        """Test that deleting a middle segment keeps later indices stable."""
        plan.delete_segment(0)

        assert plan.segment_count == 3
        with pytest.raises(FlightPlanNotFoundError):
            plan.get_segment(0)
        assert plan.get_segment(2).offset == 0
        assert names(plan.legs()) == ["WCHRLY", "WECHO"]

    def test_delete_last_segment_shrinks(self, plan):
        """Test that deleting the last segment drops its slot."""
        plan.delete_segment(2)

        assert plan.segment_count == 2

    def test_remove_segment_shifts_down(self, plan):
        """Test that removing a slot renumbers the following segments."""
        plan.remove_segment(1)

        assert plan.segment_count == 2
        assert plan.get_segment(1).segment_type is FlightPlanSegmentType.ENROUTE
        assert plan.get_segment(1).segment_index == 1

    def test_segment_slot_errors(self, plan):
        """Test the errors for missing and out-of-range slots."""
        with pytest.raises(FlightPlanNotFoundError):
            plan.get_segment(1)
        with pytest.raises(FlightPlanIndexError):
            plan.get_segment(5)
        with pytest.raises(IndexError):
            plan.delete_segment(5)

    def test_segment_lookup_by_leg(self, plan):
        """Test finding the segment of a leg by index and by definition."""
        echo = plan.get_leg(3)

        assert plan.get_segment_index(3) == 2
        assert plan.get_segment_leg_index(3) == 1
        assert plan.get_segment_index(9) == -1
        assert plan.get_segment_leg_index(9) == -1
        assert plan.get_segment_from_leg(echo) is plan.get_segment(2)

    def test_segments_of_type(self, plan):
        """Test filtering segments by role."""
        assert [s.segment_index for s in plan.segments_of_type(FlightPlanSegmentType.ENROUTE)] == [2]

    def test_set_airway(self, plan, events):
        """Test setting and clearing a segment airway."""
        plan.set_airway(2, "V25")
        assert plan.get_segment(2).airway == "V25"

        plan.set_airway(2, "")
        assert plan.get_segment(2).airway is None
        assert [e.change_type for e in events] == [PlanChangeType.CHANGED, PlanChangeType.CHANGED]


class TestLegs:
    """Tests for adding, removing and finding legs."""

    def test_default_leg_names(self, plan):
        """Test that legs are named by the name provider."""
        assert names(plan.legs()) == ["WALPHA", "WBRAVO", "WCHRLY", "WECHO"]

    def test_custom_name_provider(self, calculator):
        """Test that a plan uses its leg name provider."""
        plan = FlightPlan(0, calculator, leg_name_provider=lambda leg: leg.fix_icao.lower())
        plan.add_segment(0)

        definition = plan.add_leg(0, FlightPlan.create_leg(fix_icao="WALPHA"))

        assert definition.name == "walpha"

    def test_add_leg_at_index(self, plan, events):
        """Test inserting a leg inside a segment."""
        definition = plan.add_leg(
            0, FlightPlan.create_leg(type=LegType.TF, fix_icao="WDELTA"), 1, LegDefinitionFlags.DIRECT_TO
        )

        assert names(plan.legs()) == ["WALPHA", "WDELTA", "WBRAVO", "WCHRLY", "WECHO"]
        assert plan.get_segment(2).offset == 3
        assert definition.flags == LegDefinitionFlags.DIRECT_TO
        assert events == [LegChangedEvent(0, 0, 1, PlanChangeType.ADDED, definition)]

    def test_add_leg_index_is_clamped(self, plan):
        """Test that out-of-range positions append or prepend."""
        plan.add_leg(2, FlightPlan.create_leg(fix_icao="WDELTA"), 10)
        plan.add_leg(2, FlightPlan.create_leg(fix_icao="WBRAVO"), -3)

        assert names(plan.get_segment(2).legs) == ["WBRAVO", "WCHRLY", "WECHO", "WDELTA"]

    def test_add_leg_to_empty_slot(self, plan):
        """Test that legs cannot be added to an empty slot."""
        with pytest.raises(FlightPlanNotFoundError):
            plan.add_leg(1, FlightPlan.create_leg(fix_icao="WDELTA"))

    def test_remove_leg(self, plan, events):
        """Test removing the last leg of a segment by default."""
        removed = plan.remove_leg(0)

        assert removed.name == "WBRAVO"
        assert plan.length == 3
        assert plan.get_segment(2).offset == 1
        assert events == [LegChangedEvent(0, 0, 1, PlanChangeType.REMOVED, removed)]

    def test_remove_missing_leg(self, plan):
        """Test that removing a missing leg returns None."""
        assert plan.remove_leg(0, 7) is None
        plan.add_segment(3)
        assert plan.remove_leg(3) is None

    def test_get_leg(self, plan):
        """Test global and segment-relative lookup."""
        assert plan.get_leg(2).name == "WCHRLY"
        assert plan.get_leg(2, 1).name == "WECHO"
        assert plan.try_get_leg(3).name == "WECHO"
        assert plan.try_get_leg(4) is None
        assert plan.try_get_leg(1, 0) is None
        assert plan.get_leg_index_from_leg(plan.get_leg(3)) == 3

    def test_get_leg_errors(self, plan):
        """Test errors for legs outside the plan."""
        with pytest.raises(FlightPlanIndexError):
            plan.get_leg(4)
        with pytest.raises(FlightPlanIndexError):
            plan.get_leg(0, 2)
        with pytest.raises(FlightPlanNotFoundError):
            plan.get_leg(1, 0)

    def test_iterate_legs(self, plan):
        """Test forward and reverse iteration from a start index."""
        assert names(plan.legs(start_index=1)) == ["WBRAVO", "WCHRLY", "WECHO"]
        assert names(plan.legs(reverse=True)) == ["WECHO", "WCHRLY", "WBRAVO", "WALPHA"]
        assert names(plan.legs(reverse=True, start_index=2)) == ["WCHRLY", "WBRAVO", "WALPHA"]

    def test_prev_and_next_across_segments(self, plan):
        """Test neighbours across an empty slot."""
        assert plan.get_prev_leg(2, 0).name == "WBRAVO"
        assert plan.get_prev_leg(0, 0) is None
        assert plan.get_next_leg(0, 1).name == "WCHRLY"
        assert plan.get_next_leg(1, 0).name == "WCHRLY"
        assert plan.get_next_leg(2, 1) is None
        assert plan.get_next_leg(0, -1).name == "WALPHA"

    def test_set_vertical_data_merges(self, plan, events):
        """Test that a partial update keeps the other vertical fields."""
        plan.set_leg_vertical_data(1, {"alt_desc": AltitudeRestrictionType.AT, "altitude1_ft": 3000.0})
        plan.set_leg_vertical_data(1, {"speed": 210.0})

        vertical = plan.get_leg(1).vertical_data
        assert vertical.alt_desc is AltitudeRestrictionType.AT
        assert vertical.altitude1_ft == 3000.0
        assert vertical.speed == 210.0
        assert len(events) == 2

    def test_set_vertical_data_replaces(self, plan):
        """Test setting complete vertical data."""
        assert plan.set_leg_vertical_data(2, VerticalData(altitude1_ft=5000.0))
        assert plan.get_leg(2).vertical_data == VerticalData(altitude1_ft=5000.0)

    def test_set_vertical_data_of_missing_leg(self, plan, events):
        """Test that a missing leg is reported, not raised."""
        assert not plan.set_leg_vertical_data(9, {"altitude1_ft": 1.0})
        assert events == []


class TestActiveLegs:
    """Tests for the active leg indices."""

    def test_set_lateral_leg(self, plan, events):
        """Test activating a leg in the second segment."""
        plan.set_lateral_leg(1)
        plan.set_lateral_leg(2)

        assert plan.active_lateral_leg == 2
        assert events[-1] == ActiveLegChangedEvent(0, 2, 2, 0, 0, 1, ActiveLegType.LATERAL)

    def test_index_is_clamped(self, plan):
        """Test that active indices stay inside the plan."""
        plan.set_vertical_leg(10)
        plan.set_calculating_leg(-4)

        assert plan.active_vertical_leg == 3
        assert plan.active_calculating_leg == 0

    def test_empty_plan(self, calculator, event_bus, events):
        """Test activating a leg of an empty plan."""
        plan = FlightPlan(0, calculator, event_bus=event_bus)

        plan.set_lateral_leg(5)

        assert plan.active_lateral_leg == 0
        assert events == [ActiveLegChangedEvent(0, 0, -1, -1, -1, -1, ActiveLegType.LATERAL)]

    def test_active_segment(self, plan):
        """Test that the default segment is the one holding the active leg."""
        assert plan.get_segment().segment_index == 0

        plan.set_lateral_leg(3)

        assert plan.get_segment().segment_index == 2

    def test_notify_false_publishes_nothing(self, plan, events):
        """Test silent updates."""
        plan.set_lateral_leg(2, notify=False)
        plan.set_user_data("key", 1, notify=False)

        assert events == []


class TestDirectTo:
    """Tests for direct-to data."""

    def test_by_global_index(self, plan, events):
        """Test targeting a leg by global index."""
        plan.set_direct_to_data(2)

        assert (plan.direct_to_data.segment_index, plan.direct_to_data.segment_leg_index) == (2, 0)
        assert isinstance(events[-1], DirectToDataChangedEvent)
        assert events[-1].direct_to_data is not plan.direct_to_data

    def test_by_definition_and_clear(self, plan):
        """Test targeting a leg definition, then clearing."""
        plan.set_direct_to_data(plan.get_leg(1))
        assert plan.direct_to_data.segment_leg_index == 1

        plan.set_direct_to_data(None)
        assert (plan.direct_to_data.segment_index, plan.direct_to_data.segment_leg_index) == (-1, -1)


class TestProcedures:
    """Tests for airports and procedure selections."""

    def test_merge_details(self, plan, events):
        """Test that partial details keep the other selections."""
        plan.set_procedure_details(ProcedureDetails(origin_runway="28R"))
        plan.set_procedure_details({"departure_index": 3})

        assert plan.procedure_details.origin_runway == "28R"
        assert plan.procedure_details.departure_index == 3
        assert all(isinstance(e, ProcedureDetailsChangedEvent) for e in events)

    def test_remove_origin_clears_departure(self, plan, events):
        """Test that the departure selection goes with the origin."""
        plan.set_origin_airport("AKSFO")
        plan.set_departure("AKSFO", 2, 1, 0)
        plan.set_origin_runway("28L")

        plan.remove_origin_airport()

        assert plan.origin_airport is None
        details = plan.procedure_details
        assert (details.departure_index, details.departure_transition_index, details.departure_runway_index) == (
            -1,
            -1,
            -1,
        )
        assert details.origin_runway is None
        assert events[-1] == OriginDestChangedEvent(0, OriginDestChangeType.ORIGIN_REMOVED, "AKSFO")

    def test_remove_destination_clears_arrival_and_approach(self, plan):
        """Test that arrival and approach selections go with the destination."""
        plan.set_destination_airport("AKLAX")
        plan.set_arrival("AKLAX", 1, 2, 3)
        plan.set_approach("AKLAX", 4, 5)
        plan.set_destination_runway("24R")

        plan.remove_destination_airport()

        details = plan.procedure_details
        assert plan.destination_airport is None
        assert details.arrival_index == details.approach_index == -1
        assert details.arrival_runway_transition_index == -1
        assert details.destination_runway is None


class TestUserData:
    """Tests for consumer data attached to a plan."""

    def test_set_get_delete(self, plan, events):
        """Test the user data lifecycle and its events."""
        plan.set_user_data("remarks", {"cost_index": 40})

        assert plan.get_user_data("remarks") == {"cost_index": 40}

        plan.delete_user_data("remarks")

        assert plan.get_user_data("remarks") is None
        assert events == [
            UserDataSetEvent(0, "remarks", {"cost_index": 40}),
            UserDataDeletedEvent(0, "remarks"),
        ]


class TestCopy:
    """Tests for deep copies of a plan."""

    def test_copy_is_deep(self, plan, events):
        """Test that the copy shares no mutable state with the original."""
        plan.set_lateral_leg(2, notify=False)
        plan.set_user_data("key", "value", notify=False)
        plan.set_leg_vertical_data(0, {"altitude1_ft": 2000.0}, notify=False)

        copy = plan.copy(4)

        assert copy.plan_index == 4
        assert names(copy.legs()) == names(plan.legs())
        assert copy.segment_count == plan.segment_count
        assert copy.active_lateral_leg == 2
        assert copy.get_user_data("key") == "value"
        assert copy.get_leg(0) is not plan.get_leg(0)

        copy.set_leg_vertical_data(0, {"altitude1_ft": 9000.0}, notify=False)
        copy.remove_leg(2, notify=False)

        assert plan.get_leg(0).vertical_data.altitude1_ft == 2000.0
        assert plan.length == 4
        assert events == []


class TestCalculate:
    """Tests for flight path calculation of a plan."""

    def test_calculate(self, plan, events):
        """Test a calculation and its notification."""
        result = asyncio.run(plan.calculate(0))

        assert result is True
        assert not plan.is_calculating
        assert all(leg.calculated is not None for leg in plan.legs())
        assert events == [PlanCalculatedEvent(0, 0, 1)]

    def test_calculate_defaults_to_calculating_leg(self, plan, events):
        """Test that the calculating leg is the default start."""
        plan.set_calculating_leg(2, notify=False)

        asyncio.run(plan.calculate())

        assert events == [PlanCalculatedEvent(0, 2, 1)]
        assert plan.get_leg(0).calculated is None

    def test_concurrent_requests_are_coalesced(self, plan, events):
        """Test that a superseded request yields to the newer one."""

        async def run():
            return await asyncio.gather(plan.calculate(2), plan.calculate(0))

        results = asyncio.run(run())

        assert results == [False, True]
        assert events == [PlanCalculatedEvent(0, 0, 2)]
        assert plan.generation == 2
        assert all(leg.calculated is not None for leg in plan.legs())
