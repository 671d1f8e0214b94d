"""Tests for parameter validation."""

from skillbox.plugins.manifest import PluginFunction
from skillbox.plugins.validation import validate_parameters

FUNCTION = PluginFunction(
    name="render",
    description="Render something",
    parameters={
        "name": {"type": "string", "required": True},
        "count": {"type": "number", "min": 1, "max": 10},
        "mode": {"type": "enum", "values": ["fast", "slow"]},
        "tags": {"type": "array"},
        "options": {"type": "object"},
        "flag": {"type": "boolean"},
        "anything": {"type": "custom"},
    },
)

KEYWORDS = PluginFunction(
    name="generate_keywords",
    description="Keyword ideas",
    parameters={
        "keyword": {"type": "string"},
        "q": {"type": "string"},
    },
)


class TestValidateParameters:

    def test_valid_parameters(self):
        parameters = {
            "name": "x",
            "count": 3,
            "mode": "fast",
            "tags": ["a"],
            "options": {"k": "v"},
            "flag": True,
            "anything": object(),
        }
        assert validate_parameters(FUNCTION, parameters) == []

    def test_missing_required_parameter(self):
        assert validate_parameters(FUNCTION, {}) == ["Required parameter 'name' is missing"]

    def test_null_counts_as_missing(self):
        assert validate_parameters(FUNCTION, {"name": None}) == ["Required parameter 'name' is missing"]

    def test_type_mismatch(self):
        errors = validate_parameters(FUNCTION, {"name": "x", "count": "3"})
        assert errors == ["Parameter 'count' has invalid type. Expected: number"]

    def test_bool_and_nan_are_not_numbers(self):
        assert validate_parameters(FUNCTION, {"name": "x", "count": True}) == [
            "Parameter 'count' has invalid type. Expected: number"
        ]
        assert validate_parameters(FUNCTION, {"name": "x", "count": float("nan")}) == [
            "Parameter 'count' has invalid type. Expected: number"
        ]

    def test_enum_membership(self):
        errors = validate_parameters(FUNCTION, {"name": "x", "mode": "medium"})
        assert errors == ["Parameter 'mode' must be one of: fast, slow"]

    def test_numeric_bounds(self):
        assert validate_parameters(FUNCTION, {"name": "x", "count": 0}) == ["Parameter 'count' must be >= 1"]
        assert validate_parameters(FUNCTION, {"name": "x", "count": 11}) == ["Parameter 'count' must be <= 10"]
        assert validate_parameters(FUNCTION, {"name": "x", "count": 10}) == []

    def test_all_errors_are_reported(self):
        errors = validate_parameters(FUNCTION, {"count": 50, "flag": "yes", "tags": "a,b"})
        assert len(errors) == 4
        assert "Required parameter 'name' is missing" in errors

    def test_undeclared_parameters_are_ignored(self):
        assert validate_parameters(FUNCTION, {"name": "x", "extra": 1}) == []


class TestKeywordRule:

    def test_requires_one_keyword_alias(self):
        errors = validate_parameters(KEYWORDS, {})
        assert errors == [
            "At least one keyword parameter (keyword, seed_keyword, query, or q) "
            "must be provided"
        ]

    def test_any_alias_satisfies_rule(self):
        assert validate_parameters(KEYWORDS, {"q": "kaffee"}) == []
        assert validate_parameters(KEYWORDS, {"seed_keyword": "kaffee"}) == []
