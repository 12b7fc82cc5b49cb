"""
Manager-gated attendance requests.

A request is reviewed exactly once: approving it hands the (possibly
corrected) time to the adjustment engine, rejecting it only records the
reason. Any later review of the same request is refused.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from shiftpay.core.exceptions import InvalidStateError, NotFoundError
from shiftpay.models.employee import Employee
from shiftpay.models.pending_attendance import REQUEST_TYPES, PendingAttendance
from shiftpay.services import adjustment_engine
from shiftpay.services.adjustment_engine import EngineResult
from shiftpay.services.late_rules import ensure_utc, local_date
from shiftpay.services.notifier import Notification
from shiftpay.services.policy import resolve_policy

logger = logging.getLogger(__name__)

REVIEW_ACTIONS = ("approve", "reject", "modify")


@dataclass
class ReviewResult:
    pending_id: int
    action: str
    status: str
    employee_id: int
    employee_name: str
    approved_time: datetime | None = None
    engine: EngineResult | None = None
    notification: Notification | None = None


async def _get_pending(db: AsyncSession, pending_id: int, company_id: int | None) -> PendingAttendance:
    pending = await db.get(PendingAttendance, pending_id)
    if pending is None or (company_id is not None and pending.company_id != company_id):
        raise NotFoundError("Pending request not found")
    return pending


async def submit_pending(
    db: AsyncSession,
    employee_id: int,
    request_type: str,
    requested_time: datetime,
    *,
    company_id: int | None = None,
) -> PendingAttendance:
    """File a check-in / check-out that waits for a manager."""
    if request_type not in REQUEST_TYPES:
        raise InvalidStateError(f"Unknown request type {request_type!r}")
    employee = await db.get(Employee, employee_id)
    if employee is None or (company_id is not None and employee.company_id != company_id):
        raise NotFoundError("Employee not found")

    pending = PendingAttendance(
        employee_id=employee.id,
        company_id=employee.company_id,
        request_type=request_type,
        requested_time=ensure_utc(requested_time),
        status="pending",
    )
    db.add(pending)
    await db.commit()
    await db.refresh(pending)
    logger.info("Pending %s request %d filed for employee %d", request_type, pending.id, employee.id)
    return pending


async def process_pending(
    db: AsyncSession,
    pending_id: int,
    action: str,
    reviewer_name: str,
    *,
    new_time: datetime | None = None,
    rejection_reason: str | None = None,
    company_id: int | None = None,
) -> ReviewResult:
    """Approve, reject or approve-with-a-new-time a pending request."""
    if action not in REVIEW_ACTIONS:
        raise InvalidStateError(f"Unknown action {action!r}")
    pending = await _get_pending(db, pending_id, company_id)
    if pending.status != "pending":
        raise InvalidStateError("Request already processed")
    if action == "modify" and new_time is None:
        raise InvalidStateError("A modified approval needs new_time")

    employee = await db.get(Employee, pending.employee_id)
    if employee is None:
        raise NotFoundError("Employee not found")
    result = ReviewResult(
        pending_id=pending.id,
        action=action,
        status=pending.status,
        employee_id=employee.id,
        employee_name=employee.full_name,
    )

    if action == "reject":
        pending.status = "rejected"
        pending.rejection_reason = rejection_reason or f"Rejected by {reviewer_name}"
        pending.reviewer_name = reviewer_name
        pending.reviewed_at = datetime.now(timezone.utc)
        await db.commit()
        kind = "check-in" if pending.request_type == "check_in" else "check-out"
        result.status = pending.status
        result.notification = Notification(
            bot_token=employee.company.telegram_bot_token,
            chat_id=employee.telegram_chat_id,
            text=f"Your {kind} request was rejected\nReason: {pending.rejection_reason}\nBy: {reviewer_name}",
        )
        logger.info("Pending request %d rejected by %s", pending.id, reviewer_name)
        return result

    approved_time = ensure_utc(new_time) if action == "modify" else ensure_utc(pending.requested_time)
    policy = resolve_policy(employee.company, employee)
    # A check-in lands on the day of its approved time; a check-out closes the requested day.
    day_source = approved_time if pending.request_type == "check_in" else ensure_utc(pending.requested_time)
    day = local_date(day_source, policy.tz)

    # Committed together with the engine's writes.
    pending.status = "approved"
    pending.approved_time = approved_time
    pending.reviewer_name = reviewer_name
    pending.reviewed_at = datetime.now(timezone.utc)
    if action == "modify":
        pending.notes = f"Time changed from {ensure_utc(pending.requested_time).isoformat()} to {approved_time.isoformat()}"

    if pending.request_type == "check_in":
        engine = await adjustment_engine.on_approve(
            db, employee.id, approved_time, reviewer_name, day=day
        )
    else:
        record = await adjustment_engine.find_record(db, employee.id, day)
        if record is None:
            await db.rollback()
            raise NotFoundError(f"No check-in recorded on {day.isoformat()} to close")
        engine = await adjustment_engine.on_check_out(db, record.id, approved_time, reviewer_name)

    result.status = "approved"
    result.approved_time = approved_time
    result.engine = engine
    result.notification = engine.notification
    logger.info("Pending request %d %s by %s", pending.id, action, reviewer_name)
    return result
