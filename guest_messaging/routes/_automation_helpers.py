"""
Internal helper functions for automation route handlers.

Validation and payload conversion shared by the rule and template endpoints.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import HTTPException, status
from sqlalchemy.engine import Connection

from guest_messaging.automation.filters import validate_filters
from guest_messaging.automation.timing import timing_from_parts, timing_to_parts
from guest_messaging.db.readers.automation import get_rule, get_template
from guest_messaging.db.readers.reservations import get_property
from guest_messaging.errors import RuleValidationError
from guest_messaging.schemas.automation import RuleFilters


def validate_rule_exists_or_404(conn: Connection, rule_id: int) -> dict[str, Any]:
    """
    Fetch a rule, raise 404 if it does not exist.

    Raises:
        HTTPException: 404 if the rule doesn't exist
    """
    rule = get_rule(conn, rule_id)
    if rule is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Rule {rule_id} not found",
        )
    return rule


def validate_template_exists_or_404(conn: Connection, template_id: int) -> dict[str, Any]:
    template = get_template(conn, template_id)
    if template is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Template {template_id} not found",
        )
    return template


def validate_rule_references_or_422(
    conn: Connection, template_id: Optional[int], property_id: Optional[int]
) -> None:
    """
    Check that a rule's template and property exist.

    Raises:
        HTTPException: 422 if either reference is dangling
    """
    if template_id is not None and get_template(conn, template_id) is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Template {template_id} does not exist",
        )
    if property_id is not None and get_property(conn, property_id) is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Property {property_id} does not exist",
        )


def timing_columns_or_422(timing: Any) -> dict[str, Any]:
    """
    Convert a validated timing payload into the rule's storage columns.

    Raises:
        HTTPException: 422 if the timing is rejected by the domain check
    """
    try:
        parsed = timing_from_parts(timing.type, timing.model_dump(exclude={"type"}))
    except RuleValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    timing_type, params = timing_to_parts(parsed)
    return {"timing_type": timing_type, "timing_params": params}


def filters_column_or_422(filters: Optional[RuleFilters]) -> Optional[dict[str, Any]]:
    if filters is None:
        return None
    try:
        return validate_filters(filters.model_dump(exclude_none=True)) or None
    except RuleValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
