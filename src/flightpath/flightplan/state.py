"""Aircraft and calculation state shared by flight path calculators."""

from collections.abc import Callable
from dataclasses import dataclass, field

from flightpath.geo.geo_point import GeoPoint
from flightpath.geo.nav_math import turn_radius


@dataclass
class AircraftState:
    """Kinematic state of the aircraft as reported by the host.

    Attributes:
        position: Present position.
        true_heading: True heading in degrees.
        altitude_ft: Indicated altitude in feet.
        ground_speed_kts: Ground speed in knots.
        vertical_speed_fpm: Vertical speed in feet per minute.
    """

    position: GeoPoint = field(default_factory=lambda: GeoPoint(0.0, 0.0))
    true_heading: float = 0.0
    altitude_ft: float = 0.0
    ground_speed_kts: float = 0.0
    vertical_speed_fpm: float = 0.0


AircraftStateProvider = Callable[[], AircraftState]


@dataclass
class FlightPathState:
    """Working state of one flight path calculation pass.

    ``current_position`` and ``current_course`` track the end of the path
    calculated so far and are advanced by each leg calculator; None means the
    path is broken (start of plan or after a discontinuity).

    Attributes:
        current_position: End of the path calculated so far.
        current_course: True course at ``current_position``.
        plane_position: Aircraft position.
        plane_heading: Aircraft true heading, degrees.
        plane_altitude_ft: Aircraft altitude, feet.
        plane_speed_kts: Speed used for time and turn computations, knots.
        plane_climb_rate_fpm: Climb rate used for altitude legs, feet per minute.
        desired_turn_radius_m: Turn radius for anticipated turns, meters.
    """

    current_position: GeoPoint | None = None
    current_course: float | None = None
    plane_position: GeoPoint = field(default_factory=lambda: GeoPoint(0.0, 0.0))
    plane_heading: float = 0.0
    plane_altitude_ft: float = 0.0
    plane_speed_kts: float = 0.0
    plane_climb_rate_fpm: float = 0.0
    desired_turn_radius_m: float = 0.0

    def update_plane_state(
        self,
        aircraft: AircraftState | None,
        default_speed_kts: float,
        default_climb_rate_fpm: float,
        bank_angle_deg: float,
        max_turn_radius_m: float | None = None,
    ) -> None:
        """Refresh the aircraft part of the state.

        Speed and climb rate never drop below the defaults, so that a parked
        aircraft still gets usable turn radii and climb legs.

        Args:
            aircraft: Latest aircraft state, or None to keep the position and
                use default performance.
            default_speed_kts: Minimum speed, knots.
            default_climb_rate_fpm: Minimum climb rate, feet per minute.
            bank_angle_deg: Bank angle for anticipated turns.
            max_turn_radius_m: Optional upper bound on the turn radius.
        """
        ground_speed = 0.0
        vertical_speed = 0.0
        if aircraft is not None:
            self.plane_position = aircraft.position
            self.plane_heading = aircraft.true_heading
            self.plane_altitude_ft = aircraft.altitude_ft
            ground_speed = aircraft.ground_speed_kts
            vertical_speed = aircraft.vertical_speed_fpm

        self.plane_speed_kts = max(ground_speed, default_speed_kts)
        self.plane_climb_rate_fpm = max(vertical_speed, default_climb_rate_fpm)

        radius = turn_radius(self.plane_speed_kts, bank_angle_deg)
        if max_turn_radius_m is not None:
            radius = min(radius, max_turn_radius_m)
        self.desired_turn_radius_m = radius
