"""
Automation rule evaluation for reservations.

Evaluation is event driven: it runs when a reservation is created, changes
dates or status, is re-enabled, or when an operator triggers it. Each
(reservation, rule) pair yields at most one scheduled message; evaluation
can be repeated safely.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional

import structlog
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from guest_messaging.automation.clock import (
    ReservationClock,
    apply_backfill_policy,
    build_clock,
    resolve_fire_time,
)
from guest_messaging.automation.filters import rule_matches
from guest_messaging.automation.templates import build_template_variables
from guest_messaging.automation.timing import is_date_relative, timing_from_parts
from guest_messaging.db.readers.automation import get_active_rules_for_property
from guest_messaging.db.readers.reservations import (
    get_property,
    get_reservation,
    list_upcoming_reservations,
)
from guest_messaging.db.readers.scheduled import (
    get_existing_rule_ids,
    get_pending_rule_timing_types,
    get_pending_reservation_ids,
    list_scheduled_for_reservation,
)
from guest_messaging.db.writers.reservations import update_reservation
from guest_messaging.db.writers.scheduled import cancel_pending, insert_scheduled_message
from guest_messaging.errors import NotFoundError, RuleValidationError
from guest_messaging.metrics import evaluations_total, scheduled_cancelled, scheduled_created
from guest_messaging.utils.datetime import ensure_utc, utc_now

logger = structlog.get_logger(__name__)

MANUAL_RETRIGGER_REASON = "Manual re-trigger"
DATES_CHANGED_REASON = "Reservation dates changed"
RESERVATION_CANCELLED_REASON = "Reservation cancelled"
AUTOMATION_DISABLED_REASON = "Automation disabled"


@dataclass
class EvaluationResult:
    reservation_id: int
    created: int = 0
    skipped: int = 0
    failed: int = 0
    cancelled: int = 0
    scheduled_ids: list[int] = field(default_factory=list)
    skipped_reason: Optional[str] = None

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class BackfillResult:
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    created: int = 0

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def ineligibility_reason(reservation: dict[str, Any]) -> Optional[str]:
    """Why a reservation gets no automation at all, or None if it is eligible."""
    if reservation.get("status") == "cancelled":
        return "reservation_cancelled"
    if not reservation.get("automation_enabled", True):
        return "automation_disabled"
    if reservation.get("group_master_id") and not reservation.get("is_group_master"):
        return "group_child"
    return None


def _load_reservation(engine: Engine, reservation_id: int) -> dict[str, Any]:
    with engine.connect() as conn:
        reservation = get_reservation(conn, reservation_id)
    if reservation is None:
        raise NotFoundError(f"Reservation {reservation_id} not found")
    return reservation


def _cancel(engine: Engine, reservation_id: int, reason: str, rule_ids: Any = None) -> int:
    with engine.begin() as conn:
        cancelled = cancel_pending(conn, reservation_id, reason, rule_ids=rule_ids)
    if cancelled:
        scheduled_cancelled.labels(reason=reason).inc(cancelled)
        logger.info(
            "scheduled_messages_cancelled",
            reservation_id=reservation_id,
            count=cancelled,
            reason=reason,
        )
    return cancelled


def _schedule_rule(
    engine: Engine,
    reservation: dict[str, Any],
    rule: dict[str, Any],
    clock: ReservationClock,
    variables: dict[str, Any],
    now: datetime,
) -> Optional[int]:
    """
    Resolve and enqueue one rule instance.

    Returns:
        The new scheduled message id, or None when nothing was scheduled

    Raises:
        RuleValidationError: If the stored rule timing is malformed
    """
    log = logger.bind(reservation_id=reservation["id"], rule_id=rule["id"])

    timing = timing_from_parts(rule["timing_type"], rule["timing_params"] or {})
    fire = resolve_fire_time(timing, clock, now)
    fire_at = apply_backfill_policy(fire, rule["backfill_policy"], clock, now)
    if fire_at is None:
        log.info(
            "scheduled_message_elapsed_skipped",
            fire_at=fire.fire_at.isoformat(),
            backfill_policy=rule["backfill_policy"],
        )
        return None

    try:
        with engine.begin() as conn:
            scheduled_id = insert_scheduled_message(
                conn,
                {
                    "reservation_id": reservation["id"],
                    "rule_id": rule["id"],
                    "template_id": rule["template_id"],
                    "channel": rule["channel"],
                    "fire_at": fire_at,
                    "payload": variables,
                },
            )
    except IntegrityError:
        # Another evaluation inserted the live row for this pair first
        log.info("scheduled_message_duplicate")
        return None

    scheduled_created.labels(timing_type=rule["timing_type"]).inc()
    log.info(
        "scheduled_message_created",
        scheduled_id=scheduled_id,
        fire_at=fire_at.isoformat(),
        elapsed=fire.elapsed,
        channel=rule["channel"],
    )
    return scheduled_id


def evaluate_reservation(
    engine: Engine,
    reservation_id: int,
    force: bool = False,
    trigger: str = "manual",
    now: Optional[datetime] = None,
) -> EvaluationResult:
    """
    Evaluate all applicable rules for one reservation.

    Args:
        engine: SQLAlchemy Engine
        reservation_id: Reservation to evaluate
        force: Cancel pending rows and recreate every matching rule, even
            those already sent
        trigger: What caused this evaluation (metrics/logging label)
        now: Reference time; defaults to the current UTC time

    Returns:
        EvaluationResult: Counts of created/skipped/failed/cancelled rows

    Raises:
        NotFoundError: If the reservation does not exist
    """
    now = ensure_utc(now or utc_now())
    result = EvaluationResult(reservation_id=reservation_id)

    with engine.connect() as conn:
        reservation = get_reservation(conn, reservation_id)
        if reservation is None:
            raise NotFoundError(f"Reservation {reservation_id} not found")
        prop = get_property(conn, reservation["property_id"])
        rules = get_active_rules_for_property(conn, reservation["property_id"])
        existing = get_existing_rule_ids(conn, reservation_id)

    reason = ineligibility_reason(reservation)
    if reason:
        result.skipped_reason = reason
        logger.info("automation_evaluation_skipped", reservation_id=reservation_id, reason=reason)
        return result

    evaluations_total.labels(trigger=trigger).inc()

    if force:
        result.cancelled = _cancel(engine, reservation_id, MANUAL_RETRIGGER_REASON)

    clock = build_clock(reservation, prop)
    variables = build_template_variables(
        reservation, prop, clock.check_in_time, clock.check_out_time
    )

    for rule in rules:
        if not force and rule["id"] in existing:
            result.skipped += 1
            continue
        if not rule_matches(rule.get("filters"), reservation):
            result.skipped += 1
            continue
        try:
            scheduled_id = _schedule_rule(engine, reservation, rule, clock, variables, now)
        except RuleValidationError as e:
            result.failed += 1
            logger.error(
                "automation_rule_invalid",
                reservation_id=reservation_id,
                rule_id=rule["id"],
                error=str(e),
            )
            continue
        if scheduled_id is None:
            result.skipped += 1
        else:
            result.created += 1
            result.scheduled_ids.append(scheduled_id)

    logger.info(
        "automation_evaluated",
        reservation_id=reservation_id,
        trigger=trigger,
        force=force,
        created=result.created,
        skipped=result.skipped,
        failed=result.failed,
        cancelled=result.cancelled,
    )
    return result


def cancel_scheduled(engine: Engine, reservation_id: int, reason: str) -> int:
    """
    Cancel every pending scheduled message of a reservation.

    Rows that are already claimed or sent are untouched.

    Returns:
        int: Number of rows cancelled

    Raises:
        NotFoundError: If the reservation does not exist
    """
    _load_reservation(engine, reservation_id)
    return _cancel(engine, reservation_id, reason)


def list_scheduled(engine: Engine, reservation_id: int) -> list[dict[str, Any]]:
    """All scheduled messages of a reservation, by fire time."""
    _load_reservation(engine, reservation_id)
    with engine.connect() as conn:
        return list_scheduled_for_reservation(conn, reservation_id)


def on_reservation_dates_changed(
    engine: Engine, reservation_id: int, now: Optional[datetime] = None
) -> EvaluationResult:
    """
    Recompute date-relative rules after a check-in/check-out change.

    Pending rows of date-relative rules are cancelled and re-evaluated;
    OnCreateDelay rows keep their original fire time.
    """
    with engine.connect() as conn:
        pending = get_pending_rule_timing_types(conn, reservation_id)
    stale = [rule_id for rule_id, timing_type in pending.items() if is_date_relative(timing_type)]
    cancelled = _cancel(engine, reservation_id, DATES_CHANGED_REASON, rule_ids=stale)

    result = evaluate_reservation(engine, reservation_id, trigger="dates_changed", now=now)
    result.cancelled += cancelled
    return result


def on_reservation_cancelled(engine: Engine, reservation_id: int) -> int:
    return _cancel(engine, reservation_id, RESERVATION_CANCELLED_REASON)


def set_automation_enabled(
    engine: Engine, reservation_id: int, enabled: bool, now: Optional[datetime] = None
) -> dict[str, Any]:
    """
    Turn automation off (cancelling pending rows) or back on (re-evaluating).

    Raises:
        NotFoundError: If the reservation does not exist
    """
    _load_reservation(engine, reservation_id)
    with engine.begin() as conn:
        update_reservation(conn, reservation_id, {"automation_enabled": enabled})

    if not enabled:
        cancelled = _cancel(engine, reservation_id, AUTOMATION_DISABLED_REASON)
        logger.info("automation_disabled", reservation_id=reservation_id, cancelled=cancelled)
        return {"reservation_id": reservation_id, "automation_enabled": False, "cancelled": cancelled}

    result = evaluate_reservation(engine, reservation_id, trigger="enabled", now=now)
    logger.info("automation_enabled", reservation_id=reservation_id, created=result.created)
    return {"reservation_id": reservation_id, "automation_enabled": True, "created": result.created}


def backfill_upcoming(
    engine: Engine,
    days_ahead: int = 30,
    limit: int = 100,
    now: Optional[datetime] = None,
) -> BackfillResult:
    """
    Evaluate upcoming reservations that have no pending scheduled messages.

    Covers reservations that existed before their rules did. A reservation
    whose evaluation raises is counted as failed and the run continues.
    """
    now = ensure_utc(now or utc_now())
    today = now.date()
    result = BackfillResult()

    with engine.connect() as conn:
        reservations = list_upcoming_reservations(
            conn, today, today + timedelta(days=days_ahead), limit
        )
        with_pending = get_pending_reservation_ids(conn, [r["id"] for r in reservations])

    logger.info("automation_backfill_started", candidates=len(reservations), days_ahead=days_ahead)

    for reservation in reservations:
        if reservation["id"] in with_pending:
            result.skipped += 1
            continue
        try:
            evaluation = evaluate_reservation(engine, reservation["id"], trigger="backfill", now=now)
        except Exception as e:
            logger.exception(
                "automation_backfill_reservation_failed",
                reservation_id=reservation["id"],
                error=str(e),
            )
            result.failed += 1
            continue
        result.processed += 1
        result.created += evaluation.created

    logger.info("automation_backfill_completed", **result.as_dict())
    return result
