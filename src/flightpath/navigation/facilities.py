"""Facility database for fixes, navaids and airports.

Leg calculators resolve the ICAO identifiers of a leg (fix, recommended
navaid, arc center) through a facility loader. FacilityDatabase is an
in-memory loader backed by CSV files.

Typical usage:
    db = FacilityDatabase()
    db.load_from_csv("data/facilities.csv")

    vor = db.find_facility("VSFO")
    nearby = db.find_facilities_near(GeoPoint(37.6, -122.4), radius_nm=50)
"""

import csv
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Protocol

from flightpath.geo.geo_point import GeoPoint
from flightpath.geo.nav_math import EARTH_RADIUS_M, METERS_PER_NM

logger = logging.getLogger(__name__)


class FacilityDatabaseError(Exception):
    """Raised when a facility source cannot be read."""


class FacilityType(Enum):
    """Facility classification.

    Attributes:
        AIRPORT: Airport reference point.
        VOR: VHF omnidirectional range (with or without DME).
        NDB: Non-directional beacon.
        INTERSECTION: Named enroute or terminal fix.
        RUNWAY: Runway threshold fix.
        USER: User-defined waypoint.
    """

    AIRPORT = "AIRPORT"
    VOR = "VOR"
    NDB = "NDB"
    INTERSECTION = "INTERSECTION"
    RUNWAY = "RUNWAY"
    USER = "USER"


@dataclass(frozen=True)
class Facility:
    """A navigation facility.

    Attributes:
        icao: Unique ICAO key used by flight plan legs.
        ident: Short identifier shown to the pilot.
        name: Human-readable name.
        type: Facility classification.
        lat: Latitude in degrees.
        lon: Longitude in degrees.
        magvar: Magnetic variation in degrees, east positive. For VORs this
            is the declared station variation used for radials.
        elevation_ft: Elevation in feet MSL.
        frequency: Frequency in MHz (kHz for NDBs), None for fixes.

    Examples:
        >>> vor = Facility("VSFO", "SFO", "San Francisco", FacilityType.VOR,
        ...                37.6194, -122.3738, magvar=17.0, frequency=115.8)
    """

    icao: str
    ident: str
    name: str
    type: FacilityType
    lat: float
    lon: float
    magvar: float = 0.0
    elevation_ft: float = 0.0
    frequency: float | None = None

    @property
    def position(self) -> GeoPoint:
        """Facility position."""
        return GeoPoint(self.lat, self.lon)

    def __str__(self) -> str:
        if self.frequency:
            return f"{self.ident} ({self.type.value} {self.frequency:.2f})"
        return f"{self.ident} ({self.type.value})"


class FacilityLoader(Protocol):
    """Source of facilities for leg calculation."""

    async def get_facility(self, icao: str) -> Facility | None:
        """Look up a facility by ICAO, returning None when unknown."""
        ...


class FacilityDatabase:
    """In-memory facility database.

    Attributes:
        facilities: Dictionary mapping ICAO to Facility.

    Examples:
        >>> db = FacilityDatabase()
        >>> db.add_facility(vor)
        >>> db.find_facility("VSFO").ident
        'SFO'
    """

    def __init__(self) -> None:
        """Initialize an empty facility database."""
        self.facilities: dict[str, Facility] = {}

    def add_facility(self, facility: Facility) -> None:
        """Add a facility, replacing any facility with the same ICAO."""
        self.facilities[facility.icao] = facility
        logger.debug("Added facility: %s", facility)

    def find_facility(self, icao: str) -> Facility | None:
        """Find a facility by ICAO key."""
        return self.facilities.get(icao)

    def find_by_ident(self, ident: str) -> list[Facility]:
        """Find all facilities sharing a short identifier."""
        return [f for f in self.facilities.values() if f.ident == ident]

    async def get_facility(self, icao: str) -> Facility | None:
        """Facility loader entry point used by the flight path calculator."""
        return self.find_facility(icao)

    def find_facilities_near(
        self,
        point: GeoPoint,
        radius_nm: float,
        facility_type: FacilityType | None = None,
    ) -> list[Facility]:
        """Find facilities within a radius of a point.

        Args:
            point: Search center.
            radius_nm: Search radius in nautical miles.
            facility_type: Optional filter by facility type.

        Returns:
            Facilities within the radius, closest first.
        """
        results = []

        for facility in self.facilities.values():
            if facility_type and facility.type != facility_type:
                continue

            distance_nm = point.distance(facility.position) * EARTH_RADIUS_M / METERS_PER_NM
            if distance_nm <= radius_nm:
                results.append((distance_nm, facility))

        results.sort(key=lambda x: x[0])
        return [facility for _, facility in results]

    def find_facilities_by_type(self, facility_type: FacilityType) -> list[Facility]:
        """Find all facilities of a type."""
        return [f for f in self.facilities.values() if f.type == facility_type]

    def load_from_csv(self, csv_path: str | Path) -> int:
        """Load facilities from a CSV file.

        Expected columns:
            icao,ident,name,type,latitude,longitude,elevation_ft,magvar,frequency

        ``elevation_ft``, ``magvar`` and ``frequency`` may be empty. Rows that
        cannot be parsed are skipped with a warning.

        Args:
            csv_path: Path to the CSV file.

        Returns:
            Number of facilities loaded.

        Raises:
            FacilityDatabaseError: If the file is missing or unreadable.
        """
        path = Path(csv_path)
        if not path.exists():
            raise FacilityDatabaseError(f"Facility CSV not found: {csv_path}")

        count = 0
        try:
            with path.open(encoding="utf-8", newline="") as f:
                for row in csv.DictReader(f):
                    try:
                        facility = Facility(
                            icao=row["icao"],
                            ident=row.get("ident") or row["icao"],
                            name=row.get("name", ""),
                            type=FacilityType[row["type"].strip().upper()],
                            lat=float(row["latitude"]),
                            lon=float(row["longitude"]),
                            magvar=float(row.get("magvar") or 0.0),
                            elevation_ft=float(row.get("elevation_ft") or 0.0),
                            frequency=float(row["frequency"]) if row.get("frequency") else None,
                        )
                    except (KeyError, ValueError) as e:
                        logger.warning("Skipping invalid facility row: %s", e)
                        continue

                    self.add_facility(facility)
                    count += 1
        except OSError as e:
            raise FacilityDatabaseError(f"Failed to read facility CSV: {e}") from e

        logger.info("Loaded %d facilities from %s", count, csv_path)
        return count

    def count(self) -> int:
        """Return the number of facilities."""
        return len(self.facilities)

    def clear(self) -> None:
        """Remove all facilities."""
        self.facilities.clear()
