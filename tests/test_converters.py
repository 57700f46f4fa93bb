"""
Tests for unit and timestamp conversion.
"""
import pytest

from converters import (
    UNIT_CATEGORIES,
    adjust_timestamp,
    convert_timestamp,
    convert_unit,
    timestamp_difference,
    to_strftime,
)
from text_tools import ToolInputError

LINEAR_CATEGORIES = [
    name for name, units in UNIT_CATEGORIES.items()
    if all(not isinstance(u, tuple) for u in units.values())
]


class TestUnits:
    """Category tables and conversion"""

    @pytest.mark.parametrize("category", LINEAR_CATEGORIES)
    def test_linear_round_trip(self, category):
        units = list(UNIT_CATEGORIES[category])
        src, dst = units[0], units[-1]

        there = convert_unit(12.5, category, src, dst)
        back = convert_unit(there, category, dst, src)

        assert back == pytest.approx(12.5)

    def test_length(self):
        assert convert_unit(1, "length", "kilometer", "meter") == pytest.approx(1000)
        assert convert_unit(12, "length", "inch", "foot") == pytest.approx(1)

    def test_data_is_binary(self):
        assert convert_unit(1, "data", "megabyte", "kilobyte") == pytest.approx(1024)
        assert convert_unit(1, "data", "byte", "bit") == pytest.approx(8)

    @pytest.mark.parametrize("value, src, dst, expected", [
        (100, "celsius", "fahrenheit", 212),
        (32, "fahrenheit", "celsius", 0),
        (0, "celsius", "kelvin", 273.15),
        (0, "kelvin", "fahrenheit", -459.67),
        (-40, "fahrenheit", "celsius", -40),
    ])
    def test_temperature(self, value, src, dst, expected):
        assert convert_unit(value, "temperature", src, dst) == pytest.approx(expected)

    def test_fuel_efficiency_is_reciprocal(self):
        assert convert_unit(10, "fuel_efficiency", "kilometer_per_liter", "liter_per_100km") == pytest.approx(10)
        assert convert_unit(5, "fuel_efficiency", "liter_per_100km", "kilometer_per_liter") == pytest.approx(20)

    def test_fuel_efficiency_zero(self):
        with pytest.raises(ToolInputError):
            convert_unit(0, "fuel_efficiency", "liter_per_100km", "kilometer_per_liter")

    def test_unknown_category(self):
        with pytest.raises(ToolInputError):
            convert_unit(1, "luminosity", "lux", "lux")

    def test_unknown_unit(self):
        with pytest.raises(ToolInputError):
            convert_unit(1, "length", "meter", "parsec")

    def test_non_numeric(self):
        with pytest.raises(ToolInputError):
            convert_unit("ten", "length", "meter", "foot")


class TestTimestamps:
    """Parse, format, adjust and diff"""

    def test_to_strftime(self):
        assert to_strftime("yyyy-MM-dd HH:mm:ss") == "%Y-%m-%d %H:%M:%S"
        assert to_strftime("dd MMM yyyy 'at' hh:mm a") == "%d %b %Y at %I:%M %p"

    def test_unix_to_iso(self):
        assert convert_timestamp("0", "unix", "iso") == "1970-01-01T00:00:00.000Z"

    def test_unix_to_readable(self):
        assert convert_timestamp("1700000000", "unix", "readable") == "2023-11-14 22:13:20"

    def test_unix_to_readable_in_timezone(self):
        result = convert_timestamp("1700000000", "unix", "readable", timezone="Asia/Tokyo")
        assert result == "2023-11-15 07:13:20"

    def test_readable_to_unix(self):
        assert convert_timestamp("2023-11-14 22:13:20", "readable", "unix") == "1700000000"

    def test_iso_with_offset_to_unix(self):
        assert convert_timestamp("2023-11-15T07:13:20+09:00", "iso", "unix") == "1700000000"

    def test_invalid_input(self):
        with pytest.raises(ToolInputError):
            convert_timestamp("yesterday", "iso", "unix")

    def test_unknown_timezone(self):
        with pytest.raises(ToolInputError):
            convert_timestamp("0", "unix", "readable", timezone="Mars/Olympus")

    def test_add_month_clamps_to_month_end(self):
        assert adjust_timestamp("2024-01-31T00:00:00Z", "add", "months", 1) == "2024-02-29T00:00:00.000Z"

    def test_subtract_days(self):
        assert adjust_timestamp("2024-03-01T12:00:00Z", "sub", "days", 2) == "2024-02-28T12:00:00.000Z"

    def test_adjust_in_local_wall_clock(self):
        # 2024-03-10 is the US spring-forward day
        result = adjust_timestamp("2024-03-09T17:00:00Z", "add", "days", 1, timezone="America/New_York")
        assert result == "2024-03-10T16:00:00.000Z"

    def test_adjust_requires_positive_amount(self):
        with pytest.raises(ToolInputError):
            adjust_timestamp("2024-01-01T00:00:00Z", "add", "days", 0)

    def test_difference(self):
        assert timestamp_difference("2024-01-01T00:00:00Z", "2024-01-03T12:00:00Z", "days") == 2
        assert timestamp_difference("2024-01-01T00:00:00Z", "2024-01-03T12:00:00Z", "hours") == 60

    def test_difference_truncates_toward_zero(self):
        assert timestamp_difference("2024-01-03T12:00:00Z", "2024-01-01T00:00:00Z", "days") == -2

    def test_difference_needs_both_dates(self):
        with pytest.raises(ToolInputError):
            timestamp_difference("", "2024-01-01T00:00:00Z")
