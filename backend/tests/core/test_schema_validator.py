"""Schema Validator — tests for structural request conformance.

Tests cover:
    - missing required parameters reported with reason missing_required
    - uncoercible values reported with reason wrong_type
    - JSON booleans rejected where a number or integer is declared
    - lax coercion of path/query/header/body values ("42" → 42)
    - defaults for absent optional parameters
    - every violation collected before raising
"""

import pytest

from mernapp.core.errors import SchemaValidationError
from mernapp.core.interface_schema import parse_interface_schema
from mernapp.core.schema_validator import validate_request

SCHEMA = parse_interface_schema({
    "paths": {
        "/items/{id}": {
            "parameters": [{"name": "id", "in": "path", "type": "integer"}],
            "post": {
                "operationId": "updateItem",
                "parameters": [
                    {"name": "name", "in": "body", "type": "string", "required": True},
                    {"name": "price", "in": "body", "type": "number"},
                    {"name": "dry_run", "in": "query", "type": "boolean", "default": False},
                    {"name": "tags", "in": "query", "type": "array",
                     "items": {"type": "integer"}},
                    {"name": "X-Trace", "in": "header", "type": "string"},
                ],
            },
        },
    },
})


def _match(item_id: str = "42"):
    return SCHEMA.match("POST", f"/items/{item_id}")


def _violations(exc_info) -> dict[str, str]:
    return {v["parameter"]: v["reason"] for v in exc_info.value.violations}


# ─── Coercion ────────────────────────────────────────────────────

def test_valid_request_returns_coerced_params():
    params = validate_request(
        _match("42"),
        query={"dry_run": ["true"], "tags": ["1", "2"]},
        headers={"x-trace": "abc"},
        body={"name": "widget", "price": "9.5"},
    )
    assert params == {
        "id": 42, "name": "widget", "price": 9.5, "dry_run": True,
        "tags": [1, 2], "X-Trace": "abc",
    }


def test_repeated_scalar_query_takes_last_value():
    params = validate_request(
        _match(), query={"dry_run": ["false", "true"]}, body={"name": "w"},
    )
    assert params["dry_run"] is True


def test_absent_optional_gets_default_or_is_omitted():
    params = validate_request(_match(), body={"name": "w"})
    assert params["dry_run"] is False
    assert "price" not in params
    assert "tags" not in params


# ─── Violations ──────────────────────────────────────────────────

def test_missing_required_body_field():
    with pytest.raises(SchemaValidationError) as exc_info:
        validate_request(_match(), body={})
    assert _violations(exc_info) == {"name": "missing_required"}
    assert exc_info.value.http_status == 400
    assert exc_info.value.code == "VALIDATION_ERROR"


def test_missing_body_entirely_reports_required_fields():
    with pytest.raises(SchemaValidationError) as exc_info:
        validate_request(_match(), body=None)
    assert _violations(exc_info) == {"name": "missing_required"}


def test_wrong_type_path_parameter():
    with pytest.raises(SchemaValidationError) as exc_info:
        validate_request(_match("abc"), body={"name": "w"})
    assert _violations(exc_info) == {"id": "wrong_type"}


def test_all_violations_collected():
    with pytest.raises(SchemaValidationError) as exc_info:
        validate_request(
            _match("abc"),
            query={"dry_run": ["maybe"], "tags": ["1", "x"]},
            body={"price": "free"},
        )
    assert _violations(exc_info) == {
        "id": "wrong_type",
        "name": "missing_required",
        "price": "wrong_type",
        "dry_run": "wrong_type",
        "tags": "wrong_type",
    }


def test_non_object_body_is_wrong_type():
    with pytest.raises(SchemaValidationError) as exc_info:
        validate_request(_match(), body=b"raw bytes")
    reasons = _violations(exc_info)
    assert reasons["body"] == "wrong_type"
    assert reasons["name"] == "missing_required"


def test_string_parameter_rejects_number():
    with pytest.raises(SchemaValidationError) as exc_info:
        validate_request(_match(), body={"name": 42})
    assert _violations(exc_info) == {"name": "wrong_type"}


def test_boolean_is_not_a_number():
    with pytest.raises(SchemaValidationError) as exc_info:
        validate_request(_match(), body={"name": "w", "price": True})
    assert _violations(exc_info) == {"price": "wrong_type"}


def test_violation_carries_location_and_message():
    with pytest.raises(SchemaValidationError) as exc_info:
        validate_request(_match(), body={})
    (violation,) = exc_info.value.violations
    assert violation["location"] == "body"
    assert "required" in violation["message"]
