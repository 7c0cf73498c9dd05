"""Operator endpoints for automation rules, templates and scheduled messages."""

from typing import Any, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.engine import Engine

from guest_messaging.config import DRY_RUN
from guest_messaging.context import AppContext
from guest_messaging.db.readers.automation import get_rule, get_template, list_rules, list_templates
from guest_messaging.db.readers.scheduled import count_by_status, list_due
from guest_messaging.db.writers.automation import (
    insert_rule,
    insert_template,
    update_rule,
    update_template,
)
from guest_messaging.dependencies import get_context, get_db_engine, require_api_key
from guest_messaging.errors import NotFoundError
from guest_messaging.routes._automation_helpers import (
    filters_column_or_422,
    timing_columns_or_422,
    validate_rule_exists_or_404,
    validate_rule_references_or_422,
    validate_template_exists_or_404,
)
from guest_messaging.schemas.automation import (
    BackfillPayload,
    CancelPayload,
    RuleCreatePayload,
    RuleUpdatePayload,
    TemplateCreatePayload,
    TemplateUpdatePayload,
)
from guest_messaging.services.automation import (
    backfill_upcoming,
    cancel_scheduled,
    evaluate_reservation,
    list_scheduled,
    set_automation_enabled,
)
from guest_messaging.services.dispatch import run_sweep
from guest_messaging.utils.datetime import utc_now

logger = structlog.get_logger(__name__)
router = APIRouter(dependencies=[Depends(require_api_key)])


def _not_found(e: NotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


# -----------------------------------------------------------------------------
# Reservations
# -----------------------------------------------------------------------------


@router.post("/reservations/{reservation_id}/trigger")
def trigger_reservation(
    reservation_id: int,
    force: bool = Query(False),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """
    Evaluate automation rules for a reservation.

    Args:
        reservation_id: Reservation to evaluate
        force: Cancel pending rows and recreate every matching rule

    Returns:
        dict: created/skipped/failed/cancelled counts
    """
    try:
        result = evaluate_reservation(engine, reservation_id, force=force, trigger="manual")
        return result.as_dict()
    except NotFoundError as e:
        raise _not_found(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("automation_trigger_failed", reservation_id=reservation_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/reservations/{reservation_id}/cancel")
def cancel_reservation_messages(
    reservation_id: int,
    payload: CancelPayload,
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    try:
        cancelled = cancel_scheduled(engine, reservation_id, payload.reason)
        return {"reservation_id": reservation_id, "cancelled": cancelled}
    except NotFoundError as e:
        raise _not_found(e)


@router.get("/reservations/{reservation_id}/scheduled")
def get_reservation_scheduled(
    reservation_id: int, engine: Engine = Depends(get_db_engine)
) -> list[dict[str, Any]]:
    try:
        return list_scheduled(engine, reservation_id)
    except NotFoundError as e:
        raise _not_found(e)


@router.post("/reservations/{reservation_id}/disable")
def disable_reservation_automation(
    reservation_id: int, engine: Engine = Depends(get_db_engine)
) -> dict[str, Any]:
    try:
        return set_automation_enabled(engine, reservation_id, False)
    except NotFoundError as e:
        raise _not_found(e)


@router.post("/reservations/{reservation_id}/enable")
def enable_reservation_automation(
    reservation_id: int, engine: Engine = Depends(get_db_engine)
) -> dict[str, Any]:
    try:
        return set_automation_enabled(engine, reservation_id, True)
    except NotFoundError as e:
        raise _not_found(e)


# -----------------------------------------------------------------------------
# Sweeps
# -----------------------------------------------------------------------------


@router.post("/backfill")
def backfill(
    payload: Optional[BackfillPayload] = None, engine: Engine = Depends(get_db_engine)
) -> dict[str, Any]:
    """Evaluate upcoming reservations that have no pending scheduled messages."""
    payload = payload or BackfillPayload()
    result = backfill_upcoming(engine, days_ahead=payload.days_ahead, limit=payload.limit)
    return result.as_dict()


@router.post("/sweep")
def sweep(context: AppContext = Depends(get_context)) -> dict[str, Any]:
    """Run one dispatch sweep now."""
    try:
        return run_sweep(context, dry_run=DRY_RUN).as_dict()
    except Exception as e:
        logger.exception("manual_sweep_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/due")
def due(
    limit: int = Query(50, ge=1, le=500), engine: Engine = Depends(get_db_engine)
) -> list[dict[str, Any]]:
    with engine.connect() as conn:
        return list_due(conn, utc_now(), limit)


@router.get("/stats")
def stats(engine: Engine = Depends(get_db_engine)) -> dict[str, int]:
    with engine.connect() as conn:
        return count_by_status(conn)


# -----------------------------------------------------------------------------
# Rules
# -----------------------------------------------------------------------------


@router.post("/rules", status_code=status.HTTP_201_CREATED)
def create_rule(payload: RuleCreatePayload, engine: Engine = Depends(get_db_engine)) -> Any:
    """
    Create an automation rule.

    Returns:
        dict: The stored rule

    Raises:
        HTTPException: 422 if the template or property does not exist
    """
    values = {
        "name": payload.name,
        "template_id": payload.template_id,
        "channel": payload.channel,
        "property_id": payload.property_id,
        "backfill_policy": payload.backfill_policy,
        "filters": filters_column_or_422(payload.filters),
        "enabled": payload.enabled,
        **timing_columns_or_422(payload.timing),
    }
    with engine.begin() as conn:
        validate_rule_references_or_422(conn, payload.template_id, payload.property_id)
        rule_id = insert_rule(conn, values)
        rule = get_rule(conn, rule_id)

    logger.info("automation_rule_created", rule_id=rule_id, timing_type=values["timing_type"])
    return rule


@router.get("/rules")
def get_rules(
    property_id: Optional[int] = Query(None), engine: Engine = Depends(get_db_engine)
) -> list[dict[str, Any]]:
    with engine.connect() as conn:
        return list_rules(conn, property_id)


@router.patch("/rules/{rule_id}")
def patch_rule(
    rule_id: int, payload: RuleUpdatePayload, engine: Engine = Depends(get_db_engine)
) -> Any:
    """
    Partially update a rule.

    Changes apply to future evaluations; already scheduled rows keep their
    fire time.
    """
    fields = payload.model_fields_set
    values: dict[str, Any] = {}
    for name in ("name", "template_id", "channel", "backfill_policy", "enabled"):
        if name in fields and getattr(payload, name) is not None:
            values[name] = getattr(payload, name)
    if "timing" in fields and payload.timing is not None:
        values.update(timing_columns_or_422(payload.timing))
    if "filters" in fields:
        values["filters"] = filters_column_or_422(payload.filters)

    with engine.begin() as conn:
        validate_rule_exists_or_404(conn, rule_id)
        validate_rule_references_or_422(conn, values.get("template_id"), None)
        if values:
            update_rule(conn, rule_id, values)
        rule = get_rule(conn, rule_id)

    logger.info("automation_rule_updated", rule_id=rule_id, fields=sorted(values))
    return rule


# -----------------------------------------------------------------------------
# Templates
# -----------------------------------------------------------------------------


@router.post("/templates", status_code=status.HTTP_201_CREATED)
def create_template(
    payload: TemplateCreatePayload, engine: Engine = Depends(get_db_engine)
) -> Any:
    with engine.begin() as conn:
        template_id = insert_template(conn, payload.model_dump())
        template = get_template(conn, template_id)
    logger.info("message_template_created", template_id=template_id)
    return template


@router.get("/templates")
def get_templates(engine: Engine = Depends(get_db_engine)) -> list[dict[str, Any]]:
    with engine.connect() as conn:
        return list_templates(conn)


@router.patch("/templates/{template_id}")
def patch_template(
    template_id: int, payload: TemplateUpdatePayload, engine: Engine = Depends(get_db_engine)
) -> Any:
    values = payload.model_dump(exclude_unset=True, exclude_none=True)
    with engine.begin() as conn:
        validate_template_exists_or_404(conn, template_id)
        if values:
            update_template(conn, template_id, values)
        template = get_template(conn, template_id)
    logger.info("message_template_updated", template_id=template_id, fields=sorted(values))
    return template
