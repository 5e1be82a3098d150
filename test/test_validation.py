"""
Violation payload validation and query filter tests.

Covers:
- Numeric coercion (numbers, numeric strings, rejects)
- Tier normalization and the required/membership error exclusivity
- Defaults: device UNKNOWN, excess = speed - limit, lat/lon None
- Limit default/cap, tier/device filter passthrough, WHERE construction

Run: python -m pytest test/test_validation.py -v
"""

import os
import sys
import pytest

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from speedwatch.core.records import Tier, UNKNOWN_DEVICE
from speedwatch.core.validator import ValidationError, coerceNumber, validateViolation
from speedwatch.core.queryBuilder import (
    DEFAULT_LIMIT, MAX_LIMIT, ViolationFilter, buildFilter, parseLimit
)


def errorsFor(payload):
    with pytest.raises(ValidationError) as excInfo:
        validateViolation(payload)
    return excInfo.value.errors


class TestCoercion:
    """Explicit numeric coercion"""

    @pytest.mark.parametrize("value,expected", [
        (80, 80.0),
        (80.5, 80.5),
        ("80", 80.0),
        (" 42.25 ", 42.25),
        ("-3", -3.0),
    ])
    def test_accepts_numbers_and_numeric_strings(self, value, expected):
        assert coerceNumber(value) == expected

    @pytest.mark.parametrize("value", [
        None, "", "   ", "x", "12km", True, False, "nan", "inf", float('nan'), [1], {}
    ])
    def test_rejects_everything_else(self, value):
        assert coerceNumber(value) is None


class TestValidateViolation:
    """validateViolation normalization and error reporting"""

    def test_valid_payload_normalized(self):
        record = validateViolation({
            'device': 'D1', 'speed': 80, 'limit': 50, 'tier': 'severe',
            'lat': '37.7749', 'lon': -122.4194
        })
        assert record.device == 'D1'
        assert record.speed == 80.0
        assert record.speedLimit == 50.0
        assert record.excess == 30.0
        assert record.tier is Tier.SEVERE
        assert record.lat == 37.7749
        assert record.lon == -122.4194

    def test_excess_supplied_is_kept(self):
        record = validateViolation({'speed': 80, 'limit': 50, 'excess': '12.5', 'tier': 'MINOR'})
        assert record.excess == 12.5

    def test_excess_defaults_from_coerced_strings(self):
        record = validateViolation({'speed': '61.5', 'limit': '50', 'tier': 'Moderate'})
        assert record.excess == pytest.approx(11.5)
        assert record.tier is Tier.MODERATE

    def test_device_defaults_to_unknown(self):
        assert validateViolation({'speed': 1, 'limit': 0, 'tier': 'MINOR'}).device == UNKNOWN_DEVICE
        assert validateViolation({'device': None, 'speed': 1, 'limit': 0, 'tier': 'MINOR'}).device == UNKNOWN_DEVICE
        assert validateViolation({'device': '', 'speed': 1, 'limit': 0, 'tier': 'MINOR'}).device == UNKNOWN_DEVICE

    def test_numeric_device_stringified(self):
        assert validateViolation({'device': 17, 'speed': 1, 'limit': 0, 'tier': 'MINOR'}).device == '17'

    def test_device_wrong_type_rejected(self):
        assert errorsFor({'device': ['a'], 'speed': 1, 'limit': 0, 'tier': 'MINOR'}) == [
            "device must be a string"
        ]

    def test_coordinates_independently_optional(self):
        record = validateViolation({'speed': 1, 'limit': 0, 'tier': 'MINOR', 'lat': 10})
        assert record.lat == 10.0
        assert record.lon is None

        record = validateViolation({'speed': 1, 'limit': 0, 'tier': 'MINOR', 'lat': '', 'lon': ''})
        assert record.lat is None
        assert record.lon is None

    def test_bad_coordinates_rejected(self):
        assert errorsFor({'speed': 1, 'limit': 0, 'tier': 'MINOR', 'lat': 'north', 'lon': 'x'}) == [
            "lat must be a number", "lon must be a number"
        ]

    def test_overflowing_excess_rejected(self):
        errors = errorsFor({'speed': 1e308, 'limit': -1e308, 'tier': 'MINOR'})
        assert errors == ["excess must be a number"]

    def test_large_finite_excess_kept(self):
        record = validateViolation({'speed': 1e308, 'limit': 0, 'tier': 'MINOR'})
        assert record.excess == 1e308

    def test_non_numeric_speed_mentions_speed(self):
        errors = errorsFor({'speed': 'x', 'limit': 50, 'tier': 'SEVERE'})
        assert errors == ["speed must be a number"]

    def test_all_failures_reported_together(self):
        errors = errorsFor({'speed': 'fast', 'limit': None, 'excess': 'lots'})
        assert errors == [
            "speed must be a number",
            "limit must be a number",
            "tier is required",
            "excess must be a number",
        ]

    def test_missing_tier_only_reports_required(self):
        errors = errorsFor({'speed': 80, 'limit': 50})
        assert errors == ["tier is required"]

        errors = errorsFor({'speed': 80, 'limit': 50, 'tier': None})
        assert errors == ["tier is required"]

    def test_empty_tier_only_reports_membership(self):
        errors = errorsFor({'speed': 80, 'limit': 50, 'tier': ''})
        assert errors == ["tier must be MINOR, MODERATE or SEVERE"]

    def test_unknown_tier_rejected(self):
        errors = errorsFor({'speed': 80, 'limit': 50, 'tier': 'extreme'})
        assert errors == ["tier must be MINOR, MODERATE or SEVERE"]

    @pytest.mark.parametrize("payload", [[], "speed=80", 42, None])
    def test_non_object_body_rejected(self, payload):
        assert errorsFor(payload) == ["body must be a JSON object"]


class TestQueryFilter:
    """buildFilter / ViolationFilter"""

    @pytest.mark.parametrize("raw,expected", [
        (None, DEFAULT_LIMIT),
        ("", DEFAULT_LIMIT),
        ("abc", DEFAULT_LIMIT),
        ("50", 50),
        (75, 75),
        ("5000", MAX_LIMIT),
        ("1000", 1000),
        ("0", 0),
        ("-5", DEFAULT_LIMIT),
        ("12.5", 12),
        ("50abc", 50),
        (" 7 ", 7),
        ("abc50", DEFAULT_LIMIT),
    ])
    def test_parse_limit(self, raw, expected):
        assert parseLimit(raw) == expected

    def test_empty_params_give_defaults(self):
        assert buildFilter({}) == ViolationFilter(tier=None, device=None, limit=DEFAULT_LIMIT)

    def test_tier_upper_cased_without_enum_check(self):
        assert buildFilter({'tier': 'severe'}).tier == 'SEVERE'
        assert buildFilter({'tier': 'bogus'}).tier == 'BOGUS'

    def test_device_passed_through_untouched(self):
        assert buildFilter({'device': 'esp32-01'}).device == 'esp32-01'

    def test_empty_strings_are_no_filter(self):
        violationFilter = buildFilter({'tier': '', 'device': ''})
        assert violationFilter.tier is None
        assert violationFilter.device is None

    def test_where_clause_is_parameterized(self):
        sql, params = ViolationFilter(tier='SEVERE', device="x' OR '1'='1").whereClause()
        assert sql == " WHERE tier = ? AND device = ?"
        assert params == ['SEVERE', "x' OR '1'='1"]

    def test_where_clause_empty_without_filters(self):
        assert ViolationFilter().whereClause() == ("", [])
