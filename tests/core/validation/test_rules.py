"""Tests for field rules and cleaning actions."""

import math
from datetime import UTC, datetime

import pytest

from ufcdata.core.exceptions import ConfigurationError
from ufcdata.core.models import Severity
from ufcdata.core.paths import MISSING
from ufcdata.core.validation.rules import (
    CleaningAction,
    DataCleaningRule,
    RuleType,
    ValidationRule,
    check_format,
    check_range,
    check_type,
    clean_value,
    convert_value,
    evaluate_rule,
    normalize_value,
    sanitize_value,
)


class TestChecks:
    @pytest.mark.parametrize(
        ("value", "expected", "ok"),
        [
            ("Jon", "string", True),
            (1, "string", False),
            (84.5, "number", True),
            (True, "number", False),
            (math.nan, "number", False),
            (False, "boolean", True),
            ([1], "array", True),
            ({"a": 1}, "object", True),
            ([1], "object", False),
            ("2024-04-13T22:00:00Z", "date", True),
            ("next saturday", "date", False),
            (None, "string", True),
            (MISSING, "number", True),
            ("anything", "unknown-type", True),
        ],
    )
    def test_check_type(self, value, expected, ok):
        assert check_type(value, expected) is ok

    def test_check_range(self):
        assert check_range(70, {"min": 60, "max": 90})
        assert check_range("75.5", {"min": 60})
        assert not check_range(50, {"min": 60})
        assert not check_range(95, {"max": 90})
        assert not check_range("tall", {"min": 0})
        assert check_range("185 lbs", {"min": 115, "max": 265})
        assert not check_range("300 lbs", {"max": 265})
        assert not check_range(True, {"min": 0})
        assert check_range(None, {"min": 0})

    def test_check_format_searches_string_form(self):
        assert check_format("Jon Jones", r"^[A-Z]")
        assert check_format(205, r"^\d+$")
        assert not check_format("jon", r"^[A-Z]")
        assert check_format(MISSING, r"^[A-Z]")


class TestEvaluateRule:
    def test_required_rejects_empty_values(self):
        rule = ValidationRule("name", RuleType.REQUIRED)

        for value in (MISSING, None, ""):
            issue = evaluate_rule(rule, value)
            assert issue is not None
            assert issue.message == "Field name is required"
            assert issue.value is None or issue.value == ""
        assert evaluate_rule(rule, 0) is None

    def test_default_messages(self):
        assert evaluate_rule(ValidationRule("reach", "type", "number"), "x").message == (
            "Field reach must be of type number"
        )
        assert evaluate_rule(ValidationRule("age", "range", {"min": 18}), 12).message == (
            'Field age must be within range {"min": 18}'
        )
        assert evaluate_rule(ValidationRule("name", "format", "^[A-Z]"), "x").message == "Field name format is invalid"

    def test_custom_rule_and_message_override(self):
        rule = ValidationRule(
            "wins",
            RuleType.CUSTOM,
            validator=lambda value: value >= 0,
            message="wins cannot be negative",
            severity=Severity.WARNING,
        )

        issue = evaluate_rule(rule, -1)

        assert issue.message == "wins cannot be negative"
        assert issue.severity is Severity.WARNING
        assert issue.value == -1
        assert evaluate_rule(ValidationRule("x", RuleType.CUSTOM), "anything") is None

    def test_from_dict(self):
        rule = ValidationRule.from_dict({"field": "name", "type": "format", "constraint": "^[A-Z]", "severity": "warning"})

        assert rule.type is RuleType.FORMAT
        assert rule.severity is Severity.WARNING
        assert rule.constraint.search("Jon")

    @pytest.mark.parametrize(
        "payload",
        [
            {"type": "required"},
            {"field": "name", "type": "unique"},
            {"field": "name", "type": "format", "constraint": "("},
        ],
    )
    def test_from_dict_rejects_invalid_rules(self, payload):
        with pytest.raises(ConfigurationError):
            ValidationRule.from_dict(payload)


class TestCleaning:
    def test_normalize(self):
        assert normalize_value("Jon JONES", {"type": "lowercase"}) == "jon jones"
        assert normalize_value("jon", {"type": "uppercase"}) == "JON"
        assert normalize_value("jON 'bones' jONES", {"type": "title"}) == "Jon 'Bones' Jones"
        assert normalize_value(5, {"type": "lowercase"}) == 5

    def test_convert_number(self):
        assert convert_value("84", {"to": "number"}) == 84
        assert isinstance(convert_value("84", {"to": "number"}), int)
        assert convert_value("84.5", {"to": "number"}) == 84.5
        assert convert_value("84.0", {"to": "number"}) == 84.0
        assert convert_value("long", {"to": "number"}) == "long"
        assert convert_value("nan", {"to": "number"}) == "nan"

    def test_convert_number_takes_leading_numeric_prefix(self):
        assert convert_value("185 lbs", {"to": "number"}) == 185
        assert isinstance(convert_value("185 lbs", {"to": "number"}), int)
        assert convert_value(" 6.5ft", {"to": "number"}) == 6.5
        assert convert_value("-3 rounds", {"to": "number"}) == -3
        assert convert_value("lbs 185", {"to": "number"}) == "lbs 185"

    def test_convert_string_and_boolean(self):
        assert convert_value(True, {"to": "string"}) == "true"
        assert convert_value(84, {"to": "string"}) == "84"
        assert convert_value("TRUE", {"to": "boolean"}) is True
        assert convert_value("1", {"to": "boolean"}) is True
        assert convert_value("no", {"to": "boolean"}) is False
        assert convert_value(0, {"to": "boolean"}) is False

    def test_convert_date(self):
        assert convert_value("2024-04-13T22:00:00Z", {"to": "date"}) == datetime(2024, 4, 13, 22, tzinfo=UTC)
        assert convert_value("soon", {"to": "date"}) == "soon"

    def test_sanitize(self):
        assert sanitize_value("<b>Jon</b>", {"type": "html"}) == "Jon"
        assert sanitize_value("Jon'; DROP", {"type": "sql"}) == "Jon DROP"
        assert sanitize_value("Jon-Jones 2!", {"type": "alphanumeric"}) == "JonJones2"
        assert sanitize_value("<b>", None) == "<b>"

    def test_clean_value_dispatch(self):
        assert clean_value(DataCleaningRule("name", CleaningAction.TRIM), "  Jon ") == "Jon"
        assert clean_value(DataCleaningRule("name", "custom", cleaner=lambda v: v[::-1]), "noJ") == "Jon"
        assert clean_value(DataCleaningRule("name", "custom"), "Jon") == "Jon"

    def test_cleaning_rule_from_dict(self):
        rule = DataCleaningRule.from_dict({"field": "weight", "action": "convert", "parameters": {"to": "number"}})

        assert rule.action is CleaningAction.CONVERT
        assert rule.parameters == {"to": "number"}
        with pytest.raises(ConfigurationError):
            DataCleaningRule.from_dict({"field": "weight", "action": "explode"})
