"""Tests for raw flight plan legs."""

from dataclasses import FrozenInstanceError, replace

import pytest

from flightpath.navigation.legs import (
    AltitudeRestrictionType,
    FixTypeFlags,
    FlightPlanLeg,
    LegTurnDirection,
    LegType,
)


class TestFlightPlanLeg:
    """Test FlightPlanLeg records."""

    def test_defaults(self):
        """Test that an empty leg is an unrestricted track to fix."""
        leg = FlightPlanLeg()

        assert leg.type == LegType.TF
        assert leg.fix_icao == ""
        assert not leg.fly_over
        assert leg.turn_direction == LegTurnDirection.NONE
        assert leg.alt_desc == AltitudeRestrictionType.UNUSED
        assert leg.lat is None and leg.lon is None
        assert leg.fix_type_flags == FixTypeFlags.NONE

    def test_is_immutable(self):
        """Test that published legs cannot be modified in place."""
        leg = FlightPlanLeg(type=LegType.CF, fix_icao="WALPHA", course=90.0)

        with pytest.raises(FrozenInstanceError):
            leg.course = 180.0  # type: ignore[misc]

    def test_replace_creates_modified_copy(self):
        """Test deriving a leg with a different course."""
        leg = FlightPlanLeg(type=LegType.CF, fix_icao="WALPHA", course=90.0)
        changed = replace(leg, course=180.0)

        assert changed.course == 180.0
        assert leg.course == 90.0
        assert changed != leg

    def test_fix_type_flags_combine(self):
        """Test that a fix can play several procedure roles."""
        flags = FixTypeFlags.IAF | FixTypeFlags.IF

        assert FixTypeFlags.IF in flags
        assert FixTypeFlags.FAF not in flags


class TestLegType:
    """Test the path terminator enumeration."""

    def test_discontinuity_is_separate_from_terminators(self):
        """Test that the discontinuity marker does not collide with a terminator."""
        assert LegType.DISCONTINUITY.value == 99
        assert LegType(18) is LegType.TF

    def test_all_terminators_present(self):
        """Test the full set of supported path terminators."""
        names = {t.name for t in LegType}

        for name in ("AF", "CA", "CD", "CF", "CI", "CR", "DF", "FA", "FC", "FD", "FM", "HA", "HF", "HM"):
            assert name in names
        for name in ("IF", "PI", "RF", "TF", "VA", "VD", "VI", "VM", "VR"):
            assert name in names
