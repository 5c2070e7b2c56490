import pytest
from pydantic import ValidationError

from lightdash_mcp.lightdash.error_enhancement import (
    enrich_error,
    create_enhanced_error_message,
    describe_http_error,
    format_validation_error,
    is_valid_uuid,
    validate_required_params
)
from lightdash_mcp.lightdash.schemas import ProjectRequest


def test_name_and_message():
    assert enrich_error({"name": "NotFoundError", "message": "Explore not found"}) == (
        "Lightdash API error: NotFoundError, Explore not found"
    )


def test_name_only():
    assert enrich_error({"name": "ForbiddenError"}) == "Lightdash API error: ForbiddenError"


def test_required_filters_suggestion():
    message = enrich_error({
        "name": "ValidationError",
        "message": "bad query",
        "data": {"filters": {"message": "is required"}},
    })

    assert message == (
        "Lightdash API error: ValidationError, bad query. Validation errors: filters: is required."
        " Suggestion: Ensure filters object is provided, even if empty ({})."
    )


def test_several_suggestions_in_catalog_order():
    message = enrich_error({
        "name": "ValidationError",
        "data": {
            "metricQuery.dimensions": {"message": "unknown field"},
            "exploreId": "explore does not exist",
        },
    })

    assert "Validation errors: metricQuery.dimensions: unknown field, exploreId: explore does not exist" in message
    field_hint = message.index("Check that field IDs exist in the explore schema.")
    explore_hint = message.index("Verify the explore/table name exists in the project.")
    assert field_hint < explore_hint
    assert "Ensure filters object" not in message


def test_uuid_suggestion():
    message = enrich_error({"name": "ValidationError", "data": {"projectUuid": {"message": "must be a valid uuid"}}})
    assert "Ensure UUIDs are in the correct format" in message


def test_details_without_pattern_match_have_no_suggestion():
    message = enrich_error({"name": "ValidationError", "data": {"limit": {"message": "must be positive"}}})
    assert message == "Lightdash API error: ValidationError. Validation errors: limit: must be positive"


def test_validation_error_names_the_field():
    with pytest.raises(ValidationError) as exc_info:
        ProjectRequest(project_uuid="not-a-uuid")

    message = format_validation_error(exc_info.value)
    assert message.startswith("Validation error: project_uuid:")
    assert "Invalid UUID format" in message


@pytest.mark.parametrize("message,label", [
    ("HTTP 401: Unauthorized", "Unauthorized"),
    ("HTTP 403: Forbidden", "Forbidden"),
    ("HTTP 404: Not Found", "Not Found"),
    ("HTTP 500: Internal Server Error", "Internal Server Error"),
])
def test_http_failures_are_explained(message, label):
    assert describe_http_error(message).startswith(f"{label}: {message}.")


def test_unknown_http_status_is_returned_as_is():
    assert describe_http_error("HTTP 418: I'm a teapot") == "HTTP 418: I'm a teapot"


def test_enhanced_message_dispatch():
    assert create_enhanced_error_message({"error": {"name": "NotFoundError"}}) == "Lightdash API error: NotFoundError"
    assert create_enhanced_error_message({}) == "Unknown error occurred"
    assert create_enhanced_error_message(RuntimeError("boom")) == "boom"
    assert create_enhanced_error_message(None) == "Unknown error occurred"
    assert create_enhanced_error_message(RuntimeError("HTTP 401: Unauthorized")).startswith("Unauthorized:")


def test_uuid_checks():
    assert is_valid_uuid("3675b69e-8324-4110-bdca-059031aa8da3")
    assert not is_valid_uuid("3675b69e")
    assert not is_valid_uuid(None)


def test_required_params():
    validate_required_params({"chartUuid": "3675b69e-8324-4110-bdca-059031aa8da3"}, ["chartUuid"])

    with pytest.raises(ValueError, match="Missing required parameters: chartUuid"):
        validate_required_params({}, ["chartUuid"])
    with pytest.raises(ValueError, match="Invalid UUID format for chartUuid"):
        validate_required_params({"chartUuid": "abc"}, ["chartUuid"])


def test_enrichment_is_deterministic():
    error = {"name": "ValidationError", "data": {"filters": "is required", "exploreId": {"message": "unknown"}}}
    assert enrich_error(error) == enrich_error(dict(error))
