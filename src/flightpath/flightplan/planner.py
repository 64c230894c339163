"""Flight planner owning the flight plans of one aircraft.

Typical usage:
    from flightpath.flightplan.planner import FlightPlanner

    planner = FlightPlanner(calculator, event_bus=bus)
    plan = planner.create_flight_plan(0)
    planner.copy_flight_plan(0, 1)
    planner.set_active_plan_index(1)
"""

from flightpath.core.event_bus import EventBus
from flightpath.core.logging_system import LoggerMixin
from flightpath.flightplan.calculator import FlightPathCalculator
from flightpath.flightplan.events import (
    ActivePlanIndexChangedEvent,
    PlanCopiedEvent,
    PlanCreatedEvent,
    PlanDeletedEvent,
)
from flightpath.flightplan.flight_plan import FlightPlan, FlightPlanNotFoundError
from flightpath.flightplan.naming import LegNameProvider, build_default_leg_name


class FlightPlanner(LoggerMixin):
    """Owns flight plans by index.

    All plans share the planner's calculator, leg name provider and event
    bus, so a single subscription observes every plan.

    Attributes:
        calculator: Calculator shared by the plans.
        event_bus: Bus plan and planner notifications are published on.
        leg_name_provider: Names new legs.

    Examples:
        >>> planner = FlightPlanner(calculator)
        >>> planner.create_flight_plan(0).plan_index
        0
        >>> planner.has_active_flight_plan()
        True
    """

    build_default_leg_name = staticmethod(build_default_leg_name)

    def __init__(
        self,
        calculator: FlightPathCalculator,
        event_bus: EventBus | None = None,
        leg_name_provider: LegNameProvider | None = None,
    ) -> None:
        """Initialize a planner with no plans.

        Args:
            calculator: Flight path calculator shared by the plans.
            event_bus: Bus to publish notifications on.
            leg_name_provider: Names new legs; build_default_leg_name when None.
        """
        self.calculator = calculator
        self.event_bus = event_bus
        self.leg_name_provider = leg_name_provider or build_default_leg_name
        self._plans: dict[int, FlightPlan] = {}
        self._active_plan_index = 0
        self.attach_logger("flight_planner")

    @property
    def active_plan_index(self) -> int:
        """Index of the active plan."""
        return self._active_plan_index

    @property
    def plan_indices(self) -> list[int]:
        """Indices of the existing plans, ascending."""
        return sorted(self._plans)

    def set_active_plan_index(self, plan_index: int, notify: bool = True) -> None:
        """Make another plan index the active one."""
        previous = self._active_plan_index
        self._active_plan_index = plan_index
        if notify and self.event_bus is not None:
            self.event_bus.publish(ActivePlanIndexChangedEvent(plan_index, previous))

    def has_flight_plan(self, plan_index: int) -> bool:
        """Whether a plan exists at an index."""
        return plan_index in self._plans

    def get_flight_plan(self, plan_index: int) -> FlightPlan:
        """Get the plan at an index.

        Raises:
            FlightPlanNotFoundError: If there is no plan at the index.
        """
        try:
            return self._plans[plan_index]
        except KeyError:
            raise FlightPlanNotFoundError(f"Flight plan does not exist at index {plan_index}") from None

    def create_flight_plan(self, plan_index: int, notify: bool = True) -> FlightPlan:
        """Create an empty plan, or return the existing plan at the index."""
        if plan_index in self._plans:
            return self._plans[plan_index]

        plan = FlightPlan(plan_index, self.calculator, self.leg_name_provider, self.event_bus)
        self._plans[plan_index] = plan
        self.log_info("Created flight plan %d", plan_index)
        self._publish(PlanCreatedEvent(plan_index), notify)
        return plan

    def delete_flight_plan(self, plan_index: int, notify: bool = True) -> None:
        """Delete the plan at an index, if any.

        The deleted plan stops publishing notifications.
        """
        plan = self._plans.pop(plan_index, None)
        if plan is None:
            return
        plan.event_bus = None
        self.log_info("Deleted flight plan %d", plan_index)
        self._publish(PlanDeletedEvent(plan_index), notify)

    def copy_flight_plan(self, source_plan_index: int, target_plan_index: int, notify: bool = True) -> FlightPlan:
        """Copy a plan over another index, replacing any plan there.

        Returns:
            The copy.

        Raises:
            FlightPlanNotFoundError: If there is no plan at the source index.
        """
        source = self.get_flight_plan(source_plan_index)
        plan = source.copy(target_plan_index)
        old = self._plans.get(target_plan_index)
        if old is not None:
            old.event_bus = None
        self._plans[target_plan_index] = plan
        self.log_info("Copied flight plan %d to %d", source_plan_index, target_plan_index)
        self._publish(PlanCopiedEvent(target_plan_index, source_plan_index), notify)
        return plan

    def has_active_flight_plan(self) -> bool:
        """Whether a plan exists at the active index."""
        return self.has_flight_plan(self._active_plan_index)

    def get_active_flight_plan(self) -> FlightPlan:
        """Get the active plan.

        Raises:
            FlightPlanNotFoundError: If there is no plan at the active index.
        """
        return self.get_flight_plan(self._active_plan_index)

    def _publish(self, event, notify: bool) -> None:
        if notify and self.event_bus is not None:
            self.event_bus.publish(event)
