"""Geographic utility functions for NextSignal.

Pure geographic computations — no I/O, no external calls.
"""

from __future__ import annotations

import math
from typing import Iterable, Tuple

from config.defaults import EARTH_RADIUS_M
from nextsignal.errors import InvalidCoordinateError


def distance_meters(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Calculate the great-circle distance between two points using the Haversine formula.

    The result is symmetric and exactly 0.0 for identical points. Out-of-range
    inputs are not checked here; call validate_coordinates() first.

    Args:
        lat1: Latitude of first point in decimal degrees.
        lng1: Longitude of first point in decimal degrees.
        lat2: Latitude of second point in decimal degrees.
        lng2: Longitude of second point in decimal degrees.

    Returns:
        Distance in metres.
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)

    # sin² is even, so swapping the points leaves every term unchanged
    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    a = min(1.0, a)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def validate_coordinates(lat: float, lng: float) -> None:
    """Check that a coordinate pair lies within WGS84 bounds.

    Raises:
        InvalidCoordinateError: If |lat| > 90, |lng| > 180, or either is NaN.
    """
    if math.isnan(lat) or math.isnan(lng) or abs(lat) > 90.0 or abs(lng) > 180.0:
        raise InvalidCoordinateError(lat, lng)


def centroid(points: Iterable[Tuple[float, float]]) -> Tuple[float, float]:
    """Arithmetic mean of (lat, lng) points.

    Adequate for the sub-kilometre clusters the pipeline produces; not valid
    across the antimeridian.

    Raises:
        ValueError: If no points are given.
    """
    lats = []
    lngs = []
    for lat, lng in points:
        lats.append(lat)
        lngs.append(lng)
    if not lats:
        raise ValueError("centroid() requires at least one point")
    return sum(lats) / len(lats), sum(lngs) / len(lngs)
