"""Tests for the flight path calculator."""

import asyncio
import logging
from pathlib import Path

import pytest

from flightpath.core.config import ConfigError, ConfigLoader
from flightpath.flightplan.calculator import FlightPathCalculator, FlightPathCalculatorOptions
from flightpath.flightplan.state import AircraftState
from flightpath.geo.geo_point import GeoPoint
from flightpath.geo.nav_math import turn_radius
from flightpath.navigation.legs import LegType

CONFIG_DIR = Path(__file__).parents[2] / "config"


class CountingLoader:
    """Facility loader recording requests and failing for chosen fixes."""

    def __init__(self, db, failing=()):
        self.db = db
        self.failing = set(failing)
        self.requests = []

    async def get_facility(self, icao):
        self.requests.append(icao)
        if icao in self.failing:
            raise RuntimeError(f"lookup of {icao} timed out")
        return self.db.find_facility(icao)


class TestCalculateFlightPath:
    """Tests for a full calculation pass."""

    def test_route_is_calculated(self, calculator, route_legs):
        """Test that every leg of a simple route gets a path."""
        result = asyncio.run(calculator.calculate_flight_path(route_legs, 0))

        assert result is True
        assert all(leg.calculated is not None for leg in route_legs)
        assert route_legs[0].calculated.flight_path == []
        assert route_legs[0].calculated.end.equals(GeoPoint(0.0, 0.0))
        assert route_legs[1].calculated.end.equals(GeoPoint(0.0, 0.5))
        assert route_legs[2].calculated.end.equals(GeoPoint(-0.5, 0.5))

    def test_turn_between_legs(self, calculator, route_legs):
        """Test that the corner at BRAVO is flown as an anticipated turn."""
        asyncio.run(calculator.calculate_flight_path(route_legs, 0))

        assert route_legs[1].calculated.egress
        assert route_legs[2].calculated.ingress
        assert route_legs[1].calculated.egress[-1].end.equals(route_legs[2].calculated.ingress[0].start)

    def test_distances(self, calculator, route_legs):
        """Test leg and cumulative distances with and without transitions."""
        asyncio.run(calculator.calculate_flight_path(route_legs, 0))

        cumulative = [leg.calculated.cumulative_distance for leg in route_legs]
        assert cumulative == sorted(cumulative)
        for leg in route_legs:
            calc = leg.calculated
            flown = sum(v.distance for v in calc.ingress + calc.ingress_to_egress + calc.egress)
            assert calc.distance_with_transitions == pytest.approx(flown)
            assert calc.distance == pytest.approx(sum(v.distance for v in calc.flight_path))
        # Cutting the corner is shorter than flying over BRAVO.
        last = route_legs[-1].calculated
        assert last.cumulative_distance_with_transitions < last.cumulative_distance

    def test_initial_desired_track_is_magnetic(self, facility_db, route_legs):
        """Test that the initial desired track uses the magnetic variation."""
        calculator = FlightPathCalculator(facility_db, magvar_provider=lambda point: 10.0)

        asyncio.run(calculator.calculate_flight_path(route_legs, 0))

        assert route_legs[0].calculated.initial_dtk is None
        assert route_legs[1].calculated.initial_dtk == pytest.approx(80.0)

    def test_partial_recalculation(self, calculator, route_legs):
        """Test that a later leg picks up where the earlier legs ended."""
        asyncio.run(calculator.calculate_flight_path(route_legs, 0))
        before = route_legs[2].calculated.flight_path[0].copy()

        route_legs[2].calculated = None
        asyncio.run(calculator.calculate_flight_path(route_legs, 0, initial_index=2, count=1))

        after = route_legs[2].calculated.flight_path[0]
        assert after.start.equals(before.start)
        assert after.end.equals(before.end)

    def test_partial_recalculation_resolves_following_leg(self, calculator, facility_db, route_legs):
        """Test that the leg after the range is resolved again when its turn changes."""
        asyncio.run(calculator.calculate_flight_path(route_legs, 0))
        tighter = FlightPathCalculator(facility_db, FlightPathCalculatorOptions(max_turn_radius_m=500.0))

        asyncio.run(tighter.calculate_flight_path(route_legs, 0, initial_index=1, count=1))

        calc = route_legs[2].calculated
        assert calc.ingress[-1].end.distance_m(GeoPoint(0.0, 0.5)) == pytest.approx(500.0, rel=1e-2)
        assert calc.ingress_to_egress[0].start.equals(calc.ingress[-1].end)
        flown = sum(v.distance for v in calc.ingress + calc.ingress_to_egress + calc.egress)
        assert calc.distance_with_transitions == pytest.approx(flown)

    def test_stale_pass_leaves_legs_untouched(self, calculator, route_legs):
        """Test that a superseded pass does not modify any leg."""
        result = asyncio.run(calculator.calculate_flight_path(route_legs, 0, is_stale=lambda: True))

        assert result is False
        assert all(leg.calculated is None for leg in route_legs)

    def test_discontinuity_resets_position(self, calculator, make_leg):
        """Test that a leg after a discontinuity starts without a position."""
        legs = [
            make_leg(LegType.IF, fix_icao="WALPHA"),
            make_leg(LegType.DISCONTINUITY),
            make_leg(LegType.TF, fix_icao="WBRAVO"),
        ]

        asyncio.run(calculator.calculate_flight_path(legs, 0))

        assert legs[2].calculated.flight_path == []
        assert legs[2].calculated.end.equals(GeoPoint(0.0, 0.5))


class TestFacilityLoading:
    """Tests for facility preloading."""

    def test_failed_lookup_breaks_leg(self, facility_db, route_legs, caplog):
        """Test that a failing lookup is logged and leaves the leg without a path."""
        loader = CountingLoader(facility_db, failing={"WBRAVO"})
        calculator = FlightPathCalculator(loader)

        with caplog.at_level(logging.WARNING):
            result = asyncio.run(calculator.calculate_flight_path(route_legs, 0))

        assert result is True
        assert route_legs[1].calculated.flight_path == []
        assert "WBRAVO" in caplog.text

    def test_facilities_are_cached(self, facility_db, route_legs):
        """Test that each facility is requested once across passes."""
        loader = CountingLoader(facility_db)
        calculator = FlightPathCalculator(loader)

        asyncio.run(calculator.calculate_flight_path(route_legs, 0))
        asyncio.run(calculator.calculate_flight_path(route_legs, 0))

        assert sorted(loader.requests) == ["WALPHA", "WBRAVO", "WCHRLY"]


class TestTurnRadius:
    """Tests for the turn radius taken from the aircraft state."""

    def test_default_speed(self, facility_db, route_legs):
        """Test the radius of a parked aircraft at the default speed."""
        calculator = FlightPathCalculator(facility_db)

        asyncio.run(calculator.calculate_flight_path(route_legs, 0))

        assert calculator.state.plane_speed_kts == 120.0
        assert calculator.state.desired_turn_radius_m == pytest.approx(turn_radius(120.0, 25.0))

    def test_aircraft_speed(self, facility_db, route_legs):
        """Test that a faster aircraft turns wider."""
        state = AircraftState(position=GeoPoint(0.0, 0.0), ground_speed_kts=240.0)
        calculator = FlightPathCalculator(facility_db, state_provider=lambda: state)

        asyncio.run(calculator.calculate_flight_path(route_legs, 0))

        assert calculator.state.desired_turn_radius_m == pytest.approx(turn_radius(240.0, 25.0))

    def test_radius_is_capped(self, calculator, route_legs):
        """Test that the configured maximum caps the radius."""
        fast = FlightPathCalculator(
            calculator.facility_loader,
            calculator.options,
            state_provider=lambda: AircraftState(ground_speed_kts=240.0),
        )

        asyncio.run(fast.calculate_flight_path(route_legs, 0))

        assert fast.state.desired_turn_radius_m == 1000.0


class TestOptions:
    """Tests for reading calculator options from configuration."""

    def test_missing_section_uses_defaults(self):
        """Test that an empty configuration gives the defaults."""
        options = FlightPathCalculatorOptions.from_config(ConfigLoader.from_dict({}))

        assert options == FlightPathCalculatorOptions()

    def test_known_keys_are_read(self, caplog):
        """Test reading known keys and warning about unknown ones."""
        config = ConfigLoader.from_dict({"flight_path": {"bank_angle_deg": 20.0, "warp_drive": True}})

        with caplog.at_level(logging.WARNING):
            options = FlightPathCalculatorOptions.from_config(config)

        assert options.bank_angle_deg == 20.0
        assert options.default_speed_kts == 120.0
        assert "warp_drive" in caplog.text

    def test_section_must_be_mapping(self):
        """Test that a scalar section is rejected."""
        with pytest.raises(ConfigError):
            FlightPathCalculatorOptions.from_config(ConfigLoader.from_dict({"flight_path": 5}))

    def test_shipped_configuration(self):
        """Test that the shipped configuration matches the defaults."""
        config = ConfigLoader.load(CONFIG_DIR / "flightpath.yaml")

        assert FlightPathCalculatorOptions.from_config(config) == FlightPathCalculatorOptions()
