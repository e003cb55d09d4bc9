# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""Tests for Julian Date conversions and catalog date strings."""

from datetime import datetime, timezone

import pytest

from encke.domain.time_systems import (
    J2000_JD,
    calendar_to_jd,
    datetime_to_jd,
    format_catalog_date,
    jd_to_calendar,
    parse_catalog_date,
    parse_target_epoch,
)


class TestCalendarConversion:

    def test_j2000(self):
        assert calendar_to_jd(2000, 1, 1.5) == J2000_JD

    def test_new_year_2024(self):
        assert calendar_to_jd(2024, 1, 1) == 2460310.5

    def test_leap_day(self):
        assert calendar_to_jd(2024, 3, 1) - calendar_to_jd(2024, 2, 28) == 2.0

    def test_inverse(self):
        year, month, day = jd_to_calendar(2460400.75)
        assert (year, month) == (2024, 3)
        assert day == pytest.approx(31.25)

    def test_datetime_naive_is_utc(self):
        naive = datetime(2000, 1, 1, 12, 0, 0)
        aware = datetime(2000, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        assert datetime_to_jd(naive) == datetime_to_jd(aware) == pytest.approx(J2000_JD)


class TestCatalogDates:

    def test_parse_whole_day(self):
        assert parse_catalog_date("20240101") == 2460310.5

    def test_parse_fraction(self):
        assert parse_catalog_date(" 20240101.25 ") == pytest.approx(2460310.75)

    @pytest.mark.parametrize("text", ["2024011", "20241301", "2024ab01", "20240101.x", ""])
    def test_parse_rejects_malformed(self, text):
        with pytest.raises(ValueError):
            parse_catalog_date(text)

    def test_format_whole_day(self):
        assert format_catalog_date(2460400.5) == "20240331"

    def test_format_with_fraction(self):
        assert format_catalog_date(2460311.0, 7) == "20240101.5000000"

    def test_fraction_rounding_carries_into_next_day(self):
        assert format_catalog_date(2460310.5 + 0.99999999, 7) == "20240102.0000000"

    def test_month_end_carry(self):
        assert format_catalog_date(calendar_to_jd(2024, 1, 31.9999), 2) == "20240201.00"

    def test_parse_format_round_trip(self):
        jd = 2460123.5 + 0.1234567
        assert parse_catalog_date(format_catalog_date(jd, 7)) == pytest.approx(jd, abs=1e-7)


class TestTargetEpoch:

    NOW = datetime(2024, 3, 31, 15, 0, 0, tzinfo=timezone.utc)

    def test_julian_date(self):
        assert parse_target_epoch("2461406.5") == 2461406.5

    def test_catalog_date(self):
        assert parse_target_epoch("20270101") == calendar_to_jd(2027, 1, 1)

    def test_today_is_start_of_day(self):
        assert parse_target_epoch("today", now=self.NOW) == 2460400.5

    def test_today_with_offset(self):
        assert parse_target_epoch("today+3", now=self.NOW) == 2460403.5
        assert parse_target_epoch("today-1.5", now=self.NOW) == 2460399.0

    def test_unrecognized(self):
        with pytest.raises(ValueError, match="Unrecognized epoch"):
            parse_target_epoch("tomorrow")
