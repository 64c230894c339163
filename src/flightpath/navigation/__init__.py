"""Navigation data consumed by flight path calculation.

Typical usage:
    from flightpath.navigation import FacilityDatabase, FlightPlanLeg, LegType

    db = FacilityDatabase()
    db.load_from_csv("data/facilities.csv")
    leg = FlightPlanLeg(type=LegType.TF, fix_icao="WKSBAYGR")
"""

from flightpath.navigation.facilities import (
    Facility,
    FacilityDatabase,
    FacilityDatabaseError,
    FacilityLoader,
    FacilityType,
)
from flightpath.navigation.legs import (
    AltitudeRestrictionType,
    FixTypeFlags,
    FlightPlanLeg,
    LegTurnDirection,
    LegType,
    SpeedRestrictionType,
    SpeedUnit,
)

__all__ = [
    "AltitudeRestrictionType",
    "Facility",
    "FacilityDatabase",
    "FacilityDatabaseError",
    "FacilityLoader",
    "FacilityType",
    "FixTypeFlags",
    "FlightPlanLeg",
    "LegTurnDirection",
    "LegType",
    "SpeedRestrictionType",
    "SpeedUnit",
]
