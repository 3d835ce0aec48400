"""Unit tests for nextsignal.utils.geo_utils and date_utils."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from nextsignal.errors import InvalidCoordinateError, InvalidInputError
from nextsignal.utils.date_utils import cutoff_time, parse_timestamp
from nextsignal.utils.geo_utils import centroid, distance_meters, validate_coordinates


# ── distance_meters ──────────────────────────────────────────────────────────────

class TestDistanceMeters:
    def test_identical_points_are_zero(self):
        """Identical points must be exactly 0.0 metres apart."""
        assert distance_meters(12.9716, 77.5946, 12.9716, 77.5946) == 0.0

    def test_symmetric(self):
        """Swapping the points must not change the distance."""
        a = distance_meters(12.9716, 77.5946, 13.0827, 80.2707)
        b = distance_meters(13.0827, 80.2707, 12.9716, 77.5946)
        assert a == b

    def test_one_degree_latitude(self):
        """One degree of latitude is about 111.2 km on the mean-radius sphere."""
        d = distance_meters(0.0, 0.0, 1.0, 0.0)
        assert d == pytest.approx(111_195, rel=1e-3)

    def test_bengaluru_to_chennai(self):
        """Known city pair lands near its great-circle distance (~290 km)."""
        d = distance_meters(12.9716, 77.5946, 13.0827, 80.2707)
        assert 285_000 < d < 295_000

    def test_antipodal_points_do_not_fail(self):
        """Rounding near antipodes must not push asin/atan2 out of domain."""
        d = distance_meters(0.0, 0.0, 0.0, 180.0)
        assert d == pytest.approx(3.14159 * 6_371_000, rel=1e-4)

    def test_never_negative(self):
        assert distance_meters(-45.0, -170.0, 45.0, 170.0) >= 0.0


# ── validate_coordinates ─────────────────────────────────────────────────────────

class TestValidateCoordinates:
    @pytest.mark.parametrize("lat,lng", [(90.0, 180.0), (-90.0, -180.0), (0.0, 0.0)])
    def test_bounds_inclusive(self, lat, lng):
        """Coordinates exactly on the WGS84 bounds are accepted."""
        validate_coordinates(lat, lng)

    @pytest.mark.parametrize("lat,lng", [(90.01, 0.0), (0.0, -180.5), (float("nan"), 0.0)])
    def test_out_of_range_rejected(self, lat, lng):
        """Out-of-range or NaN coordinates raise InvalidCoordinateError."""
        with pytest.raises(InvalidCoordinateError):
            validate_coordinates(lat, lng)

    def test_error_is_invalid_input(self):
        """Coordinate errors surface with the invalid-argument kind."""
        with pytest.raises(InvalidInputError) as exc_info:
            validate_coordinates(100.0, 0.0)
        assert exc_info.value.kind == "invalid-argument"
        assert exc_info.value.details["lat"] == 100.0


# ── centroid ─────────────────────────────────────────────────────────────────────

class TestCentroid:
    def test_mean_of_points(self):
        assert centroid([(10.0, 20.0), (12.0, 22.0)]) == (11.0, 21.0)

    def test_empty_raises(self):
        with pytest.raises(ValueError):
            centroid([])


# ── Timestamps ───────────────────────────────────────────────────────────────────

class TestParseTimestamp:
    def test_naive_datetime_assumed_utc(self):
        """Naive datetimes are interpreted as UTC."""
        parsed = parse_timestamp(datetime(2024, 1, 15, 12, 0))
        assert parsed == datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)

    def test_iso_string_with_offset_converted(self):
        """ISO strings with an offset are converted to UTC."""
        parsed = parse_timestamp("2024-01-15T17:30:00+05:30")
        assert parsed == datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)

    def test_epoch_milliseconds(self):
        """Large epoch values are read as milliseconds."""
        parsed = parse_timestamp(1_705_320_000_000)
        assert parsed == datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", [None, "", "not a date", True, {"seconds": 1}])
    def test_unusable_values_return_none(self, value):
        assert parse_timestamp(value) is None


class TestCutoffTime:
    def test_subtracts_window(self):
        now = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)
        assert cutoff_time(3600, now=now) == now - timedelta(hours=1)
