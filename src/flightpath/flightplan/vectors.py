"""Flight path vectors and per-leg calculation results.

A FlightPathVector is one continuous arc of a circle on the sphere (a great
circle being the radius pi/2 case). LegCalculations collects the vectors of
one leg: its own path, the turn vectors at its head (ingress) and tail
(egress), and the resolved path actually flown between them.

Typical usage:
    from flightpath.flightplan.vectors import LegDefinition, FlightPathVectorFlags

    leg = LegDefinition(name="BAYGR", leg=FlightPlanLeg(type=LegType.TF, fix_icao="WKSBAYGR"))
    if leg.calculated is not None:
        for vector in leg.calculated.ingress_to_egress:
            if vector.flags & FlightPathVectorFlags.ANTICIPATED_TURN:
                ...
"""

from dataclasses import dataclass, field
from enum import Enum, IntFlag
from typing import Any

import numpy as np

from flightpath.geo.geo_point import GeoPoint, Vec3
from flightpath.navigation.legs import (
    AltitudeRestrictionType,
    FlightPlanLeg,
    SpeedRestrictionType,
    SpeedUnit,
)


class FlightPathVectorFlags(IntFlag):
    """Role of a flight path vector."""

    NONE = 0
    TURN_TO_COURSE = 1 << 0
    ARC = 1 << 1
    HOLD_INBOUND_LEG = 1 << 2
    HOLD_OUTBOUND_LEG = 1 << 3
    HOLD_DIRECT_ENTRY = 1 << 4
    HOLD_TEARDROP_ENTRY = 1 << 5
    HOLD_PARALLEL_ENTRY = 1 << 6
    COURSE_REVERSAL = 1 << 7
    LEG_TO_LEG_TURN = 1 << 8
    ANTICIPATED_TURN = 1 << 9
    DEGRADED_TURN = 1 << 10


class VectorTurnDirection(Enum):
    """Direction of a turn."""

    LEFT = "left"
    RIGHT = "right"

    def opposite(self) -> "VectorTurnDirection":
        """Return the other direction."""
        return VectorTurnDirection.RIGHT if self is VectorTurnDirection.LEFT else VectorTurnDirection.LEFT


@dataclass
class FlightPathVector:
    """A single flyable segment: an arc of a directed circle.

    Attributes:
        vector_type: Always "circle".
        flags: Role flags.
        radius: Angular radius of the defining circle, radians.
        center_x: X component of the circle center unit vector.
        center_y: Y component of the circle center unit vector.
        center_z: Z component of the circle center unit vector.
        start_lat: Start latitude in degrees.
        start_lon: Start longitude in degrees.
        end_lat: End latitude in degrees.
        end_lon: End longitude in degrees.
        distance: Length of the arc in meters.
    """

    vector_type: str = "circle"
    flags: FlightPathVectorFlags = FlightPathVectorFlags.NONE
    radius: float = 0.0
    center_x: float = 1.0
    center_y: float = 0.0
    center_z: float = 0.0
    start_lat: float = 0.0
    start_lon: float = 0.0
    end_lat: float = 0.0
    end_lon: float = 0.0
    distance: float = 0.0

    @property
    def center(self) -> Vec3:
        """Center of the defining circle as a unit vector."""
        return np.array([self.center_x, self.center_y, self.center_z])

    @property
    def start(self) -> GeoPoint:
        """Start point."""
        return GeoPoint(self.start_lat, self.start_lon)

    @property
    def end(self) -> GeoPoint:
        """End point."""
        return GeoPoint(self.end_lat, self.end_lon)

    def copy(self) -> "FlightPathVector":
        """Return an independent copy."""
        return FlightPathVector(**self.__dict__)

    def copy_from(self, other: "FlightPathVector") -> "FlightPathVector":
        """Overwrite this vector with another's values and return it."""
        self.__dict__.update(other.__dict__)
        return self


@dataclass
class LegCalculations:
    """Calculated geometry of one flight plan leg.

    Attributes:
        initial_dtk: Initial magnetic desired track, degrees, if defined.
        distance: Length of ``flight_path`` in meters.
        cumulative_distance: Sum of ``distance`` up to and including this leg.
        distance_with_transitions: Length of ``ingress_to_egress`` plus the
            ingress and egress turns in meters.
        cumulative_distance_with_transitions: Running sum of
            ``distance_with_transitions``.
        start_lat: Leg start latitude, None when unresolved.
        start_lon: Leg start longitude, None when unresolved.
        end_lat: Leg end latitude, None when unresolved.
        end_lon: Leg end longitude, None when unresolved.
        flight_path: The leg's own path, without transitions.
        ingress: Turn vectors joining the previous leg to this one.
        ingress_join_index: Index in ``flight_path`` where the ingress ends.
        ingress_to_egress: Path flown between the ingress and the egress.
        egress_join_index: Index in ``flight_path`` where the egress begins.
        egress: Turn vectors joining this leg to the next one.
    """

    initial_dtk: float | None = None
    distance: float = 0.0
    cumulative_distance: float = 0.0
    distance_with_transitions: float = 0.0
    cumulative_distance_with_transitions: float = 0.0
    start_lat: float | None = None
    start_lon: float | None = None
    end_lat: float | None = None
    end_lon: float | None = None
    flight_path: list[FlightPathVector] = field(default_factory=list)
    ingress: list[FlightPathVector] = field(default_factory=list)
    ingress_join_index: int = -1
    ingress_to_egress: list[FlightPathVector] = field(default_factory=list)
    egress_join_index: int = -1
    egress: list[FlightPathVector] = field(default_factory=list)

    @property
    def start(self) -> GeoPoint | None:
        """Start point, or None when undefined."""
        if self.start_lat is None or self.start_lon is None:
            return None
        return GeoPoint(self.start_lat, self.start_lon)

    @property
    def end(self) -> GeoPoint | None:
        """End point, or None when undefined."""
        if self.end_lat is None or self.end_lon is None:
            return None
        return GeoPoint(self.end_lat, self.end_lon)

    def copy(self) -> "LegCalculations":
        """Deep copy, including every vector list."""
        return LegCalculations(
            initial_dtk=self.initial_dtk,
            distance=self.distance,
            cumulative_distance=self.cumulative_distance,
            distance_with_transitions=self.distance_with_transitions,
            cumulative_distance_with_transitions=self.cumulative_distance_with_transitions,
            start_lat=self.start_lat,
            start_lon=self.start_lon,
            end_lat=self.end_lat,
            end_lon=self.end_lon,
            flight_path=[v.copy() for v in self.flight_path],
            ingress=[v.copy() for v in self.ingress],
            ingress_join_index=self.ingress_join_index,
            ingress_to_egress=[v.copy() for v in self.ingress_to_egress],
            egress_join_index=self.egress_join_index,
            egress=[v.copy() for v in self.egress],
        )


class LegDefinitionFlags(IntFlag):
    """Flags describing how a leg entered the plan."""

    NONE = 0
    DIRECT_TO = 1 << 0
    MISSED_APPROACH = 1 << 1
    OBS = 1 << 2
    VECTORS_TO_FINAL = 1 << 3


@dataclass
class VerticalData:
    """Vertical constraints of a leg.

    Attributes:
        alt_desc: Altitude restriction descriptor.
        altitude1_ft: First altitude, feet MSL.
        altitude2_ft: Second altitude, feet MSL.
        speed: Speed restriction value (knots or Mach), 0 if none.
        speed_desc: Speed restriction descriptor.
        speed_unit: Unit of ``speed``.
        fpa: Flight path angle in degrees, if constrained.
    """

    alt_desc: AltitudeRestrictionType = AltitudeRestrictionType.UNUSED
    altitude1_ft: float = 0.0
    altitude2_ft: float = 0.0
    speed: float = 0.0
    speed_desc: SpeedRestrictionType = SpeedRestrictionType.UNUSED
    speed_unit: SpeedUnit = SpeedUnit.IAS
    fpa: float | None = None


@dataclass
class LegDefinition:
    """A leg in a flight plan: raw definition plus mutable calculated state.

    Attributes:
        name: Display name of the leg.
        leg: Immutable raw leg.
        flags: Leg definition flags.
        vertical_data: Vertical constraints, mutable.
        calculated: Calculated geometry, None until calculated.
        user_data: Arbitrary data attached by consumers.
    """

    name: str
    leg: FlightPlanLeg
    flags: LegDefinitionFlags = LegDefinitionFlags.NONE
    vertical_data: VerticalData = field(default_factory=VerticalData)
    calculated: LegCalculations | None = None
    user_data: dict[str, Any] = field(default_factory=dict)

    def copy(self) -> "LegDefinition":
        """Deep copy of the leg, its vertical data and calculated geometry."""
        return LegDefinition(
            name=self.name,
            leg=self.leg,
            flags=self.flags,
            vertical_data=VerticalData(**self.vertical_data.__dict__),
            calculated=self.calculated.copy() if self.calculated is not None else None,
            user_data=dict(self.user_data),
        )
