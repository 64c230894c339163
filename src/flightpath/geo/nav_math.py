"""Navigation math helpers and unit conversions.

Distances on the sphere are expressed in great-arc radians; conversion to
meters uses a fixed Earth radius.
"""

import math

EARTH_RADIUS_M = 6378100.0
METERS_PER_NM = 1852.0
METERS_PER_FOOT = 0.3048
GRAVITY_MPS2 = 9.80665


def meters_to_radians(meters: float) -> float:
    """Convert a distance in meters to great-arc radians."""
    return meters / EARTH_RADIUS_M


def radians_to_meters(radians: float) -> float:
    """Convert a distance in great-arc radians to meters."""
    return radians * EARTH_RADIUS_M


def nm_to_meters(nm: float) -> float:
    """Convert nautical miles to meters."""
    return nm * METERS_PER_NM


def meters_to_nm(meters: float) -> float:
    """Convert meters to nautical miles."""
    return meters / METERS_PER_NM


def knots_to_mps(knots: float) -> float:
    """Convert knots to meters per second."""
    return knots * METERS_PER_NM / 3600.0


def clamp(value: float, low: float, high: float) -> float:
    """Clamp a value to [low, high]."""
    return max(low, min(high, value))


def normalize_heading(heading: float) -> float:
    """Normalize a heading to [0, 360).

    Examples:
        >>> normalize_heading(-90.0)
        270.0
        >>> normalize_heading(720.0)
        0.0
    """
    heading = heading % 360.0
    # -1e-15 % 360 rounds to 360.0
    return 0.0 if heading >= 360.0 else heading


def diff_angle(a: float, b: float) -> float:
    """Signed smallest angle from heading ``a`` to heading ``b``.

    Returns:
        Angle in degrees in (-180, 180]; positive means ``b`` is clockwise
        (to the right) of ``a``.
    """
    diff = normalize_heading(b - a)
    return diff - 360.0 if diff > 180.0 else diff


def turn_radius(airspeed_true_kts: float, bank_angle_deg: float) -> float:
    """Radius of a coordinated level turn.

    Args:
        airspeed_true_kts: True airspeed in knots.
        bank_angle_deg: Bank angle in degrees.

    Returns:
        Turn radius in meters.

    Examples:
        >>> round(turn_radius(120.0, 25.0))
        833
    """
    speed = knots_to_mps(airspeed_true_kts)
    return speed * speed / (GRAVITY_MPS2 * math.tan(math.radians(bank_angle_deg)))


def bank_angle(airspeed_true_kts: float, radius_m: float) -> float:
    """Bank angle in degrees needed to fly a turn of the given radius."""
    speed = knots_to_mps(airspeed_true_kts)
    return math.degrees(math.atan(speed * speed / (radius_m * GRAVITY_MPS2)))


def magnetic_to_true(bearing: float, magvar: float) -> float:
    """Convert a magnetic bearing to true. East variation is positive."""
    return normalize_heading(bearing + magvar)


def true_to_magnetic(bearing: float, magvar: float) -> float:
    """Convert a true bearing to magnetic. East variation is positive."""
    return normalize_heading(bearing - magvar)
