"""
API Error Enhancement Module

Turns Lightdash API error payloads, HTTP failures and argument validation
errors into single actionable diagnostic strings.
"""

import re
from typing import Any, Dict, Iterable, List, Mapping

from pydantic import ValidationError


UUID_EXAMPLE = "123e4567-e89b-12d3-a456-426614174000"
UUID_PATTERN = re.compile(
    r'^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$',
    re.IGNORECASE
)


def _mentions_required_filters(detail: str) -> bool:
    return "filters" in detail and "required" in detail


def _mentions_fields(detail: str) -> bool:
    return "dimensions" in detail or "metrics" in detail


def _mentions_explore(detail: str) -> bool:
    return "exploreId" in detail or "explore" in detail


def _mentions_uuid(detail: str) -> bool:
    return "uuid" in detail or "UUID" in detail


# Suggestion catalog, appended in this order when any validation detail matches
SUGGESTION_PATTERNS: List[Dict[str, Any]] = [
    {
        "name": "missing_filters",
        "matches": _mentions_required_filters,
        "suggestion": "Ensure filters object is provided, even if empty ({}).",
    },
    {
        "name": "unknown_field",
        "matches": _mentions_fields,
        "suggestion": "Check that field IDs exist in the explore schema.",
    },
    {
        "name": "unknown_explore",
        "matches": _mentions_explore,
        "suggestion": "Verify the explore/table name exists in the project.",
    },
    {
        "name": "malformed_uuid",
        "matches": _mentions_uuid,
        "suggestion": f'Ensure UUIDs are in the correct format (e.g., "{UUID_EXAMPLE}").',
    },
]

# Status-specific explanations for bare HTTP failures
HTTP_STATUS_HINTS = {
    400: ("Bad Request", "Please check your request parameters."),
    401: ("Unauthorized", "Please check your API key and permissions."),
    403: ("Forbidden", "You don't have permission to access this resource."),
    404: ("Not Found", "The requested resource doesn't exist or you don't have access to it."),
    500: ("Internal Server Error", "This is likely a temporary issue. Please try again later."),
}


def _validation_details(data: Any) -> List[str]:
    if not isinstance(data, Mapping):
        return []

    details = []
    for field, field_error in data.items():
        if isinstance(field_error, Mapping) and "message" in field_error:
            details.append(f"{field}: {field_error['message']}")
        elif isinstance(field_error, str):
            details.append(f"{field}: {field_error}")
    return details


def enrich_error(error: Mapping[str, Any]) -> str:
    """
    Build a diagnostic string from a Lightdash API error payload.

    Args:
        error: The ``error`` object of a failed API response, with ``name``,
            optional ``message`` and optional per-field ``data``

    Returns:
        The enriched message, e.g.
        ``Lightdash API error: ValidationError, bad query. Validation errors:
        filters: is required. Suggestion: Ensure filters object is provided,
        even if empty ({}).``
    """
    message = f"Lightdash API error: {error.get('name')}"
    if error.get("message"):
        message += f", {error['message']}"

    details = _validation_details(error.get("data"))
    if details:
        message += f". Validation errors: {', '.join(details)}"
        for pattern in SUGGESTION_PATTERNS:
            if any(pattern["matches"](detail) for detail in details):
                message += f". Suggestion: {pattern['suggestion']}"

    return message


def format_validation_error(exc: ValidationError) -> str:
    """Summarize a pydantic ValidationError as ``Validation error: loc: msg, ...``."""
    parts = []
    for err in exc.errors():
        path = ".".join(str(part) for part in err.get("loc", ()))
        if err.get("type", "").startswith("uuid"):
            detail = f'Invalid UUID format. Please provide a valid UUID (e.g., "{UUID_EXAMPLE}")'
        else:
            detail = err.get("msg", "invalid value")
        parts.append(f"{path}: {detail}")
    return f"Validation error: {', '.join(parts)}"


def describe_http_error(message: str) -> str:
    """Explain an ``HTTP <status>`` message when the status is a well-known one."""
    status_match = re.search(r'HTTP (\d+)', message)
    if not status_match:
        return message

    hint = HTTP_STATUS_HINTS.get(int(status_match.group(1)))
    if hint is None:
        return message
    label, advice = hint
    return f"{label}: {message}. {advice}"


def create_enhanced_error_message(error: Any) -> str:
    """
    Best diagnostic for any failure raised while serving a tool call.

    Accepts a pydantic ValidationError, an API response body (``{"error":
    {...}}``), a bare API error object, or any exception.
    """
    if isinstance(error, ValidationError):
        return format_validation_error(error)

    if isinstance(error, Mapping):
        inner = error.get("error")
        if isinstance(inner, Mapping) and inner.get("name"):
            return enrich_error(inner)
        if error.get("name"):
            return enrich_error(error)
        return "Unknown error occurred"

    message = str(error) if error is not None else ""
    if "HTTP" in message:
        return describe_http_error(message)
    return message or "Unknown error occurred"


def is_valid_uuid(value: Any) -> bool:
    """True for RFC 4122 style UUID strings (versions 1 to 5)."""
    if not value or not isinstance(value, str):
        return False
    return UUID_PATTERN.match(value) is not None


def validate_required_params(params: Mapping[str, Any], required_fields: Iterable[str]) -> None:
    """
    Check required parameters before making an API call.

    Raises:
        ValueError: If a field is missing or a ``*uuid*`` field is malformed
    """
    required_fields = list(required_fields)
    missing = [field for field in required_fields if not params.get(field)]
    if missing:
        raise ValueError(f"Missing required parameters: {', '.join(missing)}")

    for field in required_fields:
        if "uuid" in field.lower() and not is_valid_uuid(params[field]):
            raise ValueError(f"Invalid UUID format for {field}: {params[field]}. Please provide a valid UUID.")
