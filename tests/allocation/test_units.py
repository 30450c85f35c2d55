"""Tests for decimal amount conversion."""

import pytest

from atlas_launch.allocation.units import format_units, parse_units
from atlas_launch.errors import ConfigurationError, InvalidAmountError


class TestParseUnits:
    """Test parse_units."""

    @pytest.mark.parametrize("value, decimals, expected", [
        ("300000000", 18, 300000000 * 10 ** 18),
        ("0.5", 18, 5 * 10 ** 17),
        ("2500.25", 2, 250025),
        (7, 0, 7),
        ("0", 18, 0),
        (" 12 ", 6, 12_000_000),
    ])
    def test_valid_amounts(self, value, decimals, expected):
        assert parse_units(value, decimals) == expected

    def test_large_supply_is_exact(self):
        assert parse_units("10000000000.000000000000000001", 18) == 10 ** 28 + 1

    @pytest.mark.parametrize("value", ["bad", "", "1e", "-5", "NaN", "Infinity", None, True, 0.1])
    def test_invalid_amounts(self, value):
        with pytest.raises(InvalidAmountError) as exc_info:
            parse_units(value, 18)
        assert exc_info.value.raw_value == value

    def test_excess_precision_never_rounds(self):
        with pytest.raises(InvalidAmountError):
            parse_units("1.001", 2)

    def test_invalid_amount_is_a_configuration_error(self):
        with pytest.raises(ConfigurationError):
            parse_units("abc", 18)


class TestFormatUnits:
    """Test format_units."""

    def test_whole_and_fractional(self):
        assert format_units(300000000 * 10 ** 18, 18) == "300000000"
        assert format_units(250025, 2) == "2500.25"
        assert format_units(0, 18) == "0"
