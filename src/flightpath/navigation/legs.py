"""Raw flight plan leg records.

Leg types follow the ARINC 424 path terminator set. A FlightPlanLeg is the
immutable leg as published by a procedure or entered by the pilot; computed
geometry lives separately on the flight plan's LegDefinition.

Typical usage:
    from flightpath.navigation.legs import FlightPlanLeg, LegType

    leg = FlightPlanLeg(type=LegType.CF, fix_icao="WKSBAYGR", course=270.0)
"""

from dataclasses import dataclass
from enum import Enum, IntEnum, IntFlag


class LegType(Enum):
    """ARINC 424 path terminators.

    Attributes:
        UNKNOWN: Treated as track-to-fix.
        AF: Arc to a fix along a DME arc.
        CA: Course to an altitude.
        CD: Course to a DME distance.
        CF: Course to a fix.
        CI: Course to intercept the next leg.
        CR: Course to a VOR radial.
        DF: Direct to a fix.
        FA: Course from a fix to an altitude.
        FC: Track from a fix for a distance.
        FD: Track from a fix to a DME distance.
        FM: Track from a fix until manually terminated.
        HA: Hold terminated at an altitude.
        HF: Hold terminated after one circuit.
        HM: Hold until manually terminated.
        IF: Initial fix.
        PI: Procedure turn.
        RF: Constant radius arc to a fix.
        TF: Track between two fixes.
        VA: Heading to an altitude.
        VD: Heading to a DME distance.
        VI: Heading to intercept the next leg.
        VM: Heading until manually terminated.
        VR: Heading to a VOR radial.
        DISCONTINUITY: Break in the lateral path.
    """

    UNKNOWN = 0
    AF = 1
    CA = 2
    CD = 3
    CF = 4
    CI = 5
    CR = 6
    DF = 7
    FA = 8
    FC = 9
    FD = 10
    FM = 11
    HA = 12
    HF = 13
    HM = 14
    IF = 15
    PI = 16
    RF = 17
    TF = 18
    VA = 19
    VD = 20
    VI = 21
    VM = 22
    VR = 23
    DISCONTINUITY = 99


class LegTurnDirection(IntEnum):
    """Published turn direction for a leg."""

    NONE = 0
    LEFT = 1
    RIGHT = 2
    EITHER = 3


class AltitudeRestrictionType(IntEnum):
    """Altitude restriction descriptor."""

    UNUSED = 0
    AT = 1
    AT_OR_ABOVE = 2
    AT_OR_BELOW = 3
    BETWEEN = 4


class SpeedRestrictionType(IntEnum):
    """Speed restriction descriptor."""

    UNUSED = 0
    AT = 1
    AT_OR_ABOVE = 2
    AT_OR_BELOW = 3
    BETWEEN = 4


class SpeedUnit(IntEnum):
    """Unit of a speed restriction."""

    IAS = 0
    MACH = 1


class FixTypeFlags(IntFlag):
    """Procedure role of a leg's fix."""

    NONE = 0
    IAF = 1
    IF = 2
    MAP = 4
    FAF = 8
    MAHP = 16


@dataclass(frozen=True)
class FlightPlanLeg:
    """A raw flight plan leg.

    Attributes:
        type: Path terminator.
        fix_icao: ICAO of the leg's fix (terminator or start fix).
        fly_over: Whether the fix must be overflown before turning.
        distance_minutes: Whether ``distance`` is in minutes instead of meters.
        true_degrees: Whether ``course`` and ``theta`` are true rather than magnetic.
        turn_direction: Published turn direction.
        origin_icao: ICAO of the recommended navaid (DME/VOR reference).
        arc_center_fix_icao: ICAO of an RF leg's arc center.
        theta: Magnetic bearing from the recommended navaid, degrees.
        rho: Distance from the recommended navaid, meters.
        course: Magnetic course (or true if ``true_degrees``), degrees.
        distance: Leg distance in meters, or minutes if ``distance_minutes``.
        speed_restriction: Published speed limit in knots, 0 if none.
        alt_desc: Altitude restriction descriptor.
        altitude1_ft: First altitude restriction, feet MSL.
        altitude2_ft: Second altitude restriction, feet MSL.
        lat: Optional latitude override of the fix position.
        lon: Optional longitude override of the fix position.
        fix_type_flags: Procedure role of the fix.
    """

    type: LegType = LegType.TF
    fix_icao: str = ""
    fly_over: bool = False
    distance_minutes: bool = False
    true_degrees: bool = False
    turn_direction: LegTurnDirection = LegTurnDirection.NONE
    origin_icao: str = ""
    arc_center_fix_icao: str = ""
    theta: float = 0.0
    rho: float = 0.0
    course: float = 0.0
    distance: float = 0.0
    speed_restriction: float = 0.0
    alt_desc: AltitudeRestrictionType = AltitudeRestrictionType.UNUSED
    altitude1_ft: float = 0.0
    altitude2_ft: float = 0.0
    lat: float | None = None
    lon: float | None = None
    fix_type_flags: FixTypeFlags = FixTypeFlags.NONE
