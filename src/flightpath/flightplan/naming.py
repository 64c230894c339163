"""Default display names for flight plan legs."""

from collections.abc import Callable

from flightpath.geo.nav_math import meters_to_nm
from flightpath.navigation.facilities import FacilityDatabase
from flightpath.navigation.legs import FlightPlanLeg, LegType

LegNameProvider = Callable[[FlightPlanLeg], str]


def build_default_leg_name(leg: FlightPlanLeg, facilities: FacilityDatabase | None = None) -> str:
    """Build the name a leg is shown with when none is given.

    Fix legs are named after their fix; legs without a fix terminator get
    the conventional FMS pseudo-waypoint names.

    Args:
        leg: The raw leg.
        facilities: Used to turn ICAO keys into short identifiers; the ICAO
            key itself is used when None or unknown.

    Returns:
        The leg name.

    Examples:
        >>> build_default_leg_name(FlightPlanLeg(type=LegType.CA, altitude1_ft=1500))
        '1500FT'
        >>> build_default_leg_name(FlightPlanLeg(type=LegType.FC, fix_icao="SUNOL", course=92, distance=5556))
        'D092C'
    """

    def ident(icao: str) -> str:
        facility = facilities.find_facility(icao) if facilities is not None else None
        return facility.ident if facility is not None else icao

    match leg.type:
        case LegType.CA | LegType.FA | LegType.VA:
            return f"{leg.altitude1_ft:.0f}FT"
        case LegType.FM | LegType.VM:
            return "MANSEQ"
        case LegType.FC:
            distance_nm = min(max(round(meters_to_nm(leg.distance)), 1), 26)
            return f"D{leg.course:03.0f}{chr(64 + distance_nm)}"
        case LegType.CD | LegType.FD | LegType.VD:
            return f"{ident(leg.origin_icao)}{meters_to_nm(leg.distance):.1f}"
        case LegType.CR | LegType.VR:
            return f"{ident(leg.origin_icao)}{leg.theta:.0f}"
        case LegType.CI | LegType.VI:
            return "INTRCPT"
        case LegType.PI:
            return "PROC. TURN"
        case LegType.HA | LegType.HF | LegType.HM:
            return "HOLD"
        case _:
            return ident(leg.fix_icao)
