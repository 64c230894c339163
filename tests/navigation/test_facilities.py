"""Tests for the facility database."""

import asyncio
import csv

import pytest

from flightpath.geo.geo_point import GeoPoint
from flightpath.navigation.facilities import (
    Facility,
    FacilityDatabase,
    FacilityDatabaseError,
    FacilityType,
)

CSV_HEADER = ["icao", "ident", "name", "type", "latitude", "longitude", "elevation_ft", "magvar", "frequency"]


def write_csv(path, rows):
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(CSV_HEADER)
        writer.writerows(rows)


class TestFacility:
    """Test Facility class."""

    def test_position(self):
        """Test that the position is built from lat/lon."""
        facility = Facility("WALPHA", "ALPHA", "Alpha", FacilityType.INTERSECTION, 1.5, -2.5)

        assert facility.position == GeoPoint(1.5, -2.5)

    def test_str_with_frequency(self):
        """Test string representation of a navaid."""
        vor = Facility("VSFO", "SFO", "San Francisco", FacilityType.VOR, 37.6, -122.4, frequency=115.8)

        assert str(vor) == "SFO (VOR 115.80)"

    def test_str_without_frequency(self):
        """Test string representation of a fix."""
        fix = Facility("WMODET", "MODET", "Modet", FacilityType.INTERSECTION, 37.5, -122.5)

        assert str(fix) == "MODET (INTERSECTION)"


class TestFacilityDatabase:
    """Test FacilityDatabase class."""

    def test_add_and_find(self, facility_db):
        """Test lookups by ICAO and by ident."""
        assert facility_db.find_facility("VBRV").ident == "BRV"
        assert facility_db.find_facility("NOPE") is None
        assert [f.icao for f in facility_db.find_by_ident("BRAVO")] == ["WBRAVO"]

    def test_add_duplicate_replaces(self):
        """Test that adding the same ICAO twice replaces the facility."""
        db = FacilityDatabase()
        db.add_facility(Facility("WX", "X", "Old", FacilityType.USER, 0.0, 0.0))
        db.add_facility(Facility("WX", "X", "New", FacilityType.USER, 0.0, 0.0))

        assert db.count() == 1
        assert db.find_facility("WX").name == "New"

    def test_get_facility_is_awaitable(self, facility_db):
        """Test the loader entry point used during calculation."""
        facility = asyncio.run(facility_db.get_facility("WCHRLY"))

        assert facility.lat == -0.5
        assert asyncio.run(facility_db.get_facility("NOPE")) is None

    def test_find_facilities_near_sorted_by_distance(self, facility_db):
        """Test that nearby facilities are returned closest first."""
        nearby = facility_db.find_facilities_near(GeoPoint(0.0, 0.9), radius_nm=30)

        # BRAVO and its VOR share a position and keep insertion order.
        assert [f.icao for f in nearby] == ["VMAG", "WBRAVO", "VBRV"]

    def test_find_facilities_near_with_type_filter(self, facility_db):
        """Test filtering nearby facilities by type."""
        nearby = facility_db.find_facilities_near(GeoPoint(0.0, 0.0), radius_nm=70, facility_type=FacilityType.VOR)

        assert [f.icao for f in nearby] == ["VBRV", "VMAG"]

    def test_find_facilities_by_type(self, facility_db):
        """Test listing all facilities of a type."""
        assert {f.icao for f in facility_db.find_facilities_by_type(FacilityType.VOR)} == {"VBRV", "VMAG"}

    def test_clear(self, facility_db):
        """Test clearing the database."""
        facility_db.clear()

        assert facility_db.count() == 0


class TestFacilityCsv:
    """Tests for CSV loading."""

    def test_load_from_csv(self, tmp_path):
        """Test loading fixes and navaids."""
        csv_file = tmp_path / "facilities.csv"
        write_csv(
            csv_file,
            [
                ["VSFO", "SFO", "San Francisco", "VOR", "37.6194", "-122.3738", "13", "17", "115.8"],
                ["WMODET", "MODET", "Modet", "intersection", "37.5", "-122.5", "", "", ""],
            ],
        )

        db = FacilityDatabase()
        count = db.load_from_csv(str(csv_file))

        assert count == 2
        vor = db.find_facility("VSFO")
        assert vor.type == FacilityType.VOR
        assert vor.magvar == 17.0
        assert vor.frequency == 115.8
        fix = db.find_facility("WMODET")
        assert fix.type == FacilityType.INTERSECTION
        assert fix.frequency is None
        assert fix.magvar == 0.0

    def test_missing_ident_defaults_to_icao(self, tmp_path):
        """Test that the ICAO is used when the ident column is empty."""
        csv_file = tmp_path / "facilities.csv"
        write_csv(csv_file, [["WUSER1", "", "User", "USER", "1", "2", "", "", ""]])

        db = FacilityDatabase()
        db.load_from_csv(csv_file)

        assert db.find_facility("WUSER1").ident == "WUSER1"

    def test_load_from_csv_file_not_found(self, tmp_path):
        """Test that a missing file raises FacilityDatabaseError."""
        db = FacilityDatabase()

        with pytest.raises(FacilityDatabaseError):
            db.load_from_csv(str(tmp_path / "nonexistent.csv"))

    def test_invalid_rows_skipped(self, tmp_path):
        """Test that rows with bad types or coordinates are skipped."""
        csv_file = tmp_path / "facilities.csv"
        write_csv(
            csv_file,
            [
                ["WGOOD", "GOOD", "Good", "INTERSECTION", "1", "1", "", "", ""],
                ["WBAD1", "BAD1", "Bad type", "TACAN", "1", "1", "", "", ""],
                ["WBAD2", "BAD2", "Bad lat", "INTERSECTION", "north", "1", "", "", ""],
            ],
        )

        db = FacilityDatabase()
        count = db.load_from_csv(csv_file)

        assert count == 1
        assert db.find_facility("WBAD1") is None
        assert db.find_facility("WBAD2") is None
