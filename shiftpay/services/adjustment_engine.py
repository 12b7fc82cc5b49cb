"""
Adjustment engine — turns attendance timing facts into payroll ledger rows.

Each public ``on_*`` coroutine is one unit of work: it reads the policy and
the employee's grace balance, deletes the engine-owned ledger rows it is
about to replace, decides afresh, and commits everything together. Because
the previous rows are always removed before a new decision is written,
re-running an operation converges on the same ledger and balance.

Manual adjustments (``category == "manual"``) are never touched here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime

from sqlalchemy import delete as sa_delete
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shiftpay.core.exceptions import InvalidStateError, NotFoundError
from shiftpay.db.session import unit_of_work
from shiftpay.models.company import Company
from shiftpay.models.employee import AttendanceRecord, Employee
from shiftpay.models.salary_adjustment import (ABSENCE_DEDUCTION,
                                               LATE_DEDUCTION, OVERTIME_BONUS,
                                               SalaryAdjustment)
from shiftpay.services import late_balance
from shiftpay.services.late_rules import (EXEMPT, TIER_LABELS, Decision,
                                          decide, deduction_amount, ensure_utc,
                                          late_minutes, local_date, month_key,
                                          overtime_minutes, overtime_pay)
from shiftpay.services.notifier import Notification
from shiftpay.services.policy import Policy, resolve_policy

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "Automatic system"


@dataclass
class EngineResult:
    action: str
    attendance_log_id: int
    employee_id: int
    status: str
    tier: str | None = None
    late_minutes: int | None = None
    old_late_minutes: int | None = None
    new_late_minutes: int | None = None
    deduction_days: float = 0.0
    deduction_amount: float = 0.0
    bonus_amount: float = 0.0
    overtime_minutes: int | None = None
    balance_change: int = 0
    balance_after: int | None = None
    cancelled_deduction_days: float = 0.0
    removed_adjustments: int = 0
    notification: Notification | None = field(default=None, repr=False)


@dataclass
class _Context:
    record: AttendanceRecord
    employee: Employee
    company: Company
    policy: Policy


# ── Loading ─────────────────────────────────────────────────────────
def _check_scope(company_id: int | None, owner_company_id: int, what: str) -> None:
    if company_id is not None and owner_company_id != company_id:
        raise NotFoundError(f"{what} not found")


async def _load_employee(db: AsyncSession, employee_id: int, company_id: int | None) -> Employee:
    employee = await late_balance.lock_employee(db, employee_id)
    _check_scope(company_id, employee.company_id, "Employee")
    return employee


async def _load_context(
    db: AsyncSession, attendance_log_id: int, company_id: int | None
) -> _Context:
    record = await db.get(AttendanceRecord, attendance_log_id)
    if record is None:
        raise NotFoundError("Attendance record not found")
    _check_scope(company_id, record.company_id, "Attendance record")
    employee = await late_balance.lock_employee(db, record.employee_id)
    return _Context(record, employee, employee.company, resolve_policy(employee.company, employee))


async def find_record(db: AsyncSession, employee_id: int, day: date) -> AttendanceRecord | None:
    result = await db.execute(
        select(AttendanceRecord).where(
            AttendanceRecord.employee_id == employee_id, AttendanceRecord.date == day
        )
    )
    return result.scalar_one_or_none()


# ── Ledger primitives ───────────────────────────────────────────────
async def _remove_auto_rows(
    db: AsyncSession, attendance_log_id: int, *categories: str
) -> list[SalaryAdjustment]:
    """Delete engine rows of the given categories; return what was removed."""
    condition = (
        (SalaryAdjustment.attendance_log_id == attendance_log_id)
        & SalaryAdjustment.is_auto_generated.is_(True)
        & SalaryAdjustment.category.in_(categories)
    )
    result = await db.execute(select(SalaryAdjustment).where(condition))
    removed = list(result.scalars().all())
    if removed:
        # Must reach the store before any re-insert; (attendance_log_id, category) is unique.
        await db.execute(sa_delete(SalaryAdjustment).where(condition))
    return removed


def _add_auto_row(
    db: AsyncSession,
    ctx: _Context,
    category: str,
    description: str,
    *,
    deduction: float = 0.0,
    bonus: float = 0.0,
    days: float | None = None,
) -> SalaryAdjustment:
    row = SalaryAdjustment(
        employee_id=ctx.employee.id,
        company_id=ctx.employee.company_id,
        month=month_key(ctx.record.date),
        category=category,
        deduction=deduction,
        bonus=bonus,
        adjustment_days=days,
        description=description,
        is_auto_generated=True,
        attendance_log_id=ctx.record.id,
        added_by_name=SYSTEM_ACTOR,
    )
    db.add(row)
    return row


def _restore_consumed(ctx: _Context) -> int:
    """Give back the grace minutes the record's last decision took."""
    consumed = ctx.record.late_balance_consumed_minutes or 0
    if consumed:
        late_balance.restore(ctx.employee, ctx.policy, consumed)
        ctx.record.late_balance_consumed_minutes = 0
    return consumed


def _apply_late_decision(
    db: AsyncSession, ctx: _Context, check_in: datetime, actor: str, verb: str
) -> Decision:
    """Decide on ``check_in`` against the current balance and write the result."""
    balance = late_balance.current_balance(ctx.employee, ctx.policy)
    minutes = late_minutes(check_in, ctx.policy)
    if ctx.employee.is_freelancer:
        decision = Decision(EXEMPT, minutes, 0.0, 0, balance)
    else:
        decision = decide(minutes, balance, ctx.policy)

    if decision.balance_consumed:
        late_balance.consume(ctx.employee, ctx.policy, decision.balance_consumed)
    ctx.record.late_balance_consumed_minutes = decision.balance_consumed

    if decision.is_monetary:
        _add_auto_row(
            db,
            ctx,
            LATE_DEDUCTION,
            f"Late deduction - {TIER_LABELS[decision.tier]} ({minutes} min) - {verb} by {actor}",
            deduction=deduction_amount(ctx.employee, decision.deduction_days),
            days=decision.deduction_days,
        )

    start = ctx.policy.work_start.strftime("%H:%M")
    ctx.record.notes = (
        f"Late {minutes} min - work starts {start}" if minutes > 0 else f"On time - work starts {start}"
    )
    return decision


# ── Messages ────────────────────────────────────────────────────────
def _hhmm(ts: datetime | None, ctx: _Context) -> str:
    if ts is None:
        return "--:--"
    return ensure_utc(ts).astimezone(ctx.policy.tz).strftime("%H:%M")


def _notify(ctx: _Context, lines: list[str]) -> Notification:
    return Notification(
        bot_token=ctx.company.telegram_bot_token,
        chat_id=ctx.employee.telegram_chat_id,
        text="\n".join(lines),
    )


def _decision_lines(ctx: _Context, decision: Decision) -> list[str]:
    lines: list[str] = []
    if decision.tier == EXEMPT:
        return lines
    if decision.late_minutes == 0:
        lines.append("No lateness - you were on time")
    elif decision.balance_consumed:
        lines.append(f"Late {decision.late_minutes} min; {decision.balance_consumed} min taken from your grace balance")
        lines.append(f"Remaining grace balance: {decision.balance_after} min")
    if decision.is_monetary:
        amount = deduction_amount(ctx.employee, decision.deduction_days)
        lines.append(
            f"Deduction applied: {decision.deduction_days:g} day(s) "
            f"({amount:.2f} {ctx.employee.currency}) - {TIER_LABELS[decision.tier]}"
        )
    return lines


# ── Operations ──────────────────────────────────────────────────────
@unit_of_work
async def on_approve(
    db: AsyncSession,
    employee_id: int,
    check_in_time: datetime,
    approver_name: str,
    *,
    day: date | None = None,
    company_id: int | None = None,
) -> EngineResult:
    """Create the day's record from an approved (or direct) check-in and decide once."""
    employee = await _load_employee(db, employee_id, company_id)
    if not employee.is_active:
        raise InvalidStateError("Employee account is deactivated")
    policy = resolve_policy(employee.company, employee)
    check_in_time = ensure_utc(check_in_time)
    day = day or local_date(check_in_time, policy.tz)

    if await find_record(db, employee.id, day) is not None:
        raise InvalidStateError(f"Attendance for {day.isoformat()} is already recorded")

    record = AttendanceRecord(
        employee_id=employee.id,
        company_id=employee.company_id,
        date=day,
        check_in_time=check_in_time,
        status="checked_in",
        late_balance_consumed_minutes=0,
    )
    db.add(record)
    await db.flush()

    ctx = _Context(record, employee, employee.company, policy)
    decision = _apply_late_decision(db, ctx, check_in_time, approver_name, "approved")
    logger.info(
        "Check-in approved for employee %d on %s: tier=%s late=%d",
        employee.id, day, decision.tier, decision.late_minutes,
    )

    lines = [
        "Your attendance was approved",
        f"Date: {day.isoformat()}",
        f"Time: {_hhmm(check_in_time, ctx)}",
        *_decision_lines(ctx, decision),
        f"Approved by: {approver_name}",
    ]
    return EngineResult(
        action="approve",
        attendance_log_id=record.id,
        employee_id=employee.id,
        status=record.status,
        tier=decision.tier,
        late_minutes=decision.late_minutes,
        deduction_days=decision.deduction_days,
        deduction_amount=deduction_amount(employee, decision.deduction_days),
        balance_change=-decision.balance_consumed,
        balance_after=late_balance.current_balance(employee, policy),
        notification=_notify(ctx, lines),
    )


@unit_of_work
async def on_recalculate_edit(
    db: AsyncSession,
    attendance_log_id: int,
    old_check_in_time: datetime | None,
    new_check_in_time: datetime,
    editor_name: str,
    *,
    company_id: int | None = None,
) -> EngineResult:
    """Re-decide a record after an admin changes its check-in time."""
    ctx = await _load_context(db, attendance_log_id, company_id)
    record = ctx.record
    new_check_in_time = ensure_utc(new_check_in_time)

    if record.status == "absent":
        pending_absence = await db.execute(
            select(SalaryAdjustment.id).where(
                SalaryAdjustment.attendance_log_id == record.id,
                SalaryAdjustment.category == ABSENCE_DEDUCTION,
            )
        )
        if pending_absence.first() is not None:
            raise InvalidStateError("Record is marked absent; unmark it before editing times")
    if record.check_out_time is not None and ensure_utc(record.check_out_time) < new_check_in_time:
        raise InvalidStateError("Check-in cannot be later than the recorded check-out")

    if old_check_in_time is None:
        old_check_in_time = record.check_in_time
    old_late = late_minutes(old_check_in_time, ctx.policy) if old_check_in_time else 0

    restored = _restore_consumed(ctx)
    removed = await _remove_auto_rows(db, record.id, LATE_DEDUCTION)
    cancelled_days = sum(r.adjustment_days or 0 for r in removed if r.deduction)

    record.check_in_time = new_check_in_time
    if record.status == "absent":
        record.status = "checked_in"
    decision = _apply_late_decision(db, ctx, new_check_in_time, editor_name, "edited")
    record.notes = f"Manual edit - {record.notes}"

    balance_change = restored - decision.balance_consumed
    logger.info(
        "Recalculated record %d: late %d -> %d, tier=%s, balance change %+d",
        record.id, old_late, decision.late_minutes, decision.tier, balance_change,
    )

    lines = [
        "Your check-in time was edited",
        f"Date: {record.date.isoformat()}",
    ]
    if old_check_in_time is not None:
        lines.append(f"Old time: {_hhmm(old_check_in_time, ctx)}")
    lines.append(f"New time: {_hhmm(new_check_in_time, ctx)}")
    if cancelled_days:
        lines.append(f"Previous deduction of {cancelled_days:g} day(s) cancelled")
    if restored:
        lines.append(f"{restored} min returned to your grace balance")
    lines.extend(_decision_lines(ctx, decision))
    lines.append(f"Edited by: {editor_name}")

    return EngineResult(
        action="recalculate",
        attendance_log_id=record.id,
        employee_id=ctx.employee.id,
        status=record.status,
        tier=decision.tier,
        late_minutes=decision.late_minutes,
        old_late_minutes=old_late,
        new_late_minutes=decision.late_minutes,
        deduction_days=decision.deduction_days,
        deduction_amount=deduction_amount(ctx.employee, decision.deduction_days),
        balance_change=balance_change,
        balance_after=late_balance.current_balance(ctx.employee, ctx.policy),
        cancelled_deduction_days=cancelled_days,
        removed_adjustments=len(removed),
        notification=_notify(ctx, lines),
    )


@unit_of_work
async def on_mark_absent(
    db: AsyncSession,
    employee_id: int,
    day: date,
    actor_name: str,
    *,
    company_id: int | None = None,
) -> EngineResult:
    """Turn a day into an absence: drop timing-based rows, charge a flat deduction."""
    employee = await _load_employee(db, employee_id, company_id)
    policy = resolve_policy(employee.company, employee)

    record = await find_record(db, employee.id, day)
    if record is None:
        record = AttendanceRecord(
            employee_id=employee.id,
            company_id=employee.company_id,
            date=day,
            status="absent",
            late_balance_consumed_minutes=0,
        )
        db.add(record)
        await db.flush()

    ctx = _Context(record, employee, employee.company, policy)
    restored = _restore_consumed(ctx)
    removed = await _remove_auto_rows(
        db, record.id, LATE_DEDUCTION, OVERTIME_BONUS, ABSENCE_DEDUCTION
    )

    record.check_in_time = None
    record.check_out_time = None
    record.status = "absent"
    record.notes = f"Marked absent by {actor_name}"

    days = 0.0 if employee.is_freelancer else policy.absence_deduction_days
    amount = deduction_amount(employee, days) if days > 0 else 0.0
    if days > 0:
        _add_auto_row(
            db,
            ctx,
            ABSENCE_DEDUCTION,
            f"Absence deduction for {day.isoformat()} - marked by {actor_name}",
            deduction=amount,
            days=days,
        )
    logger.info(
        "Employee %d marked absent on %s: %d rows replaced, %.2f deducted",
        employee.id, day, len(removed), amount,
    )

    lines = [f"You were marked absent on {day.isoformat()}"]
    if days > 0:
        lines.append(f"Absence deduction: {days:g} day(s) ({amount:.2f} {employee.currency})")
    lines.append(f"By: {actor_name}")
    return EngineResult(
        action="mark_absent",
        attendance_log_id=record.id,
        employee_id=employee.id,
        status=record.status,
        deduction_days=days,
        deduction_amount=amount,
        balance_change=restored,
        balance_after=late_balance.current_balance(employee, policy),
        removed_adjustments=len([r for r in removed if r.category != ABSENCE_DEDUCTION]),
        notification=_notify(ctx, lines),
    )


@unit_of_work
async def on_unmark_absent(
    db: AsyncSession,
    attendance_log_id: int,
    actor_name: str,
    *,
    company_id: int | None = None,
) -> EngineResult:
    """Drop the absence deduction. New times go through the edit path afterwards."""
    ctx = await _load_context(db, attendance_log_id, company_id)
    if ctx.record.status != "absent":
        raise InvalidStateError("Attendance record is not marked absent")

    removed = await _remove_auto_rows(db, ctx.record.id, ABSENCE_DEDUCTION)
    if not removed:
        raise InvalidStateError("No absence deduction to remove")
    refunded = round(sum(r.deduction or 0 for r in removed), 2)
    ctx.record.notes = f"Absence cleared by {actor_name}"
    logger.info("Absence cleared on record %d (%.2f refunded)", ctx.record.id, refunded)

    lines = [
        f"Your absence on {ctx.record.date.isoformat()} was cleared",
        f"By: {actor_name}",
    ]
    if refunded:
        lines.insert(1, f"Absence deduction of {refunded:.2f} {ctx.employee.currency} removed")
    return EngineResult(
        action="unmark_absent",
        attendance_log_id=ctx.record.id,
        employee_id=ctx.employee.id,
        status=ctx.record.status,
        deduction_amount=-refunded,
        removed_adjustments=len(removed),
        balance_after=late_balance.current_balance(ctx.employee, ctx.policy),
        notification=_notify(ctx, lines),
    )


@unit_of_work
async def on_checkout_edited(
    db: AsyncSession,
    attendance_log_id: int,
    new_check_out_time: datetime | None,
    editor_name: str,
    *,
    company_id: int | None = None,
) -> EngineResult:
    """Invalidate the overtime bonus of an edited checkout.

    The bonus is not recomputed; overtime pay for the new time has to be
    approved again by a person.
    """
    ctx = await _load_context(db, attendance_log_id, company_id)
    record = ctx.record
    if record.status == "absent":
        raise InvalidStateError("Attendance record is marked absent")

    if new_check_out_time is not None:
        new_check_out_time = ensure_utc(new_check_out_time)
        if record.check_in_time is None:
            raise InvalidStateError("Cannot set a check-out without a check-in")
        if new_check_out_time < ensure_utc(record.check_in_time):
            raise InvalidStateError("Check-out cannot be earlier than check-in")
        record.check_out_time = new_check_out_time
        record.status = "checked_out"

    removed = await _remove_auto_rows(db, record.id, OVERTIME_BONUS)
    voided = round(sum(r.bonus or 0 for r in removed), 2)
    logger.info("Checkout edited on record %d; %d overtime rows voided", record.id, len(removed))

    lines = [
        "Your check-out time was edited",
        f"Date: {record.date.isoformat()}",
        f"New time: {_hhmm(record.check_out_time, ctx)}",
    ]
    if voided:
        lines.append(f"Overtime bonus of {voided:.2f} {ctx.employee.currency} withdrawn pending review")
    lines.append(f"Edited by: {editor_name}")
    return EngineResult(
        action="checkout_edited",
        attendance_log_id=record.id,
        employee_id=ctx.employee.id,
        status=record.status,
        bonus_amount=-voided,
        removed_adjustments=len(removed),
        notification=_notify(ctx, lines),
    )


@unit_of_work
async def on_check_out(
    db: AsyncSession,
    attendance_log_id: int,
    check_out_time: datetime,
    actor_name: str,
    *,
    company_id: int | None = None,
) -> EngineResult:
    """Close the day and credit overtime worked past the scheduled end."""
    ctx = await _load_context(db, attendance_log_id, company_id)
    record = ctx.record
    check_out_time = ensure_utc(check_out_time)

    if record.status == "absent" or record.check_in_time is None:
        raise InvalidStateError("No check-in recorded for this day")
    if record.status == "checked_out":
        raise InvalidStateError("Already checked out")
    if check_out_time < ensure_utc(record.check_in_time):
        raise InvalidStateError("Check-out cannot be earlier than check-in")

    record.check_out_time = check_out_time
    record.status = "checked_out"
    await _remove_auto_rows(db, record.id, OVERTIME_BONUS)

    minutes = 0 if ctx.employee.is_freelancer else overtime_minutes(check_out_time, ctx.policy, record.date)
    bonus = 0.0
    multiplier = ctx.policy.overtime_multiplier
    if minutes > 0 and multiplier:
        bonus = overtime_pay(ctx.employee, minutes, multiplier)
        if bonus > 0:
            _add_auto_row(
                db,
                ctx,
                OVERTIME_BONUS,
                f"Overtime bonus for {record.date.isoformat()} - {minutes} min "
                f"({minutes / 60:.2f} h) x {multiplier:g} - recorded by {actor_name}",
                bonus=bonus,
            )
    logger.info("Check-out on record %d: overtime %d min, bonus %.2f", record.id, minutes, bonus)

    lines = [
        "Check-out recorded",
        f"Date: {record.date.isoformat()}",
        f"Time: {_hhmm(check_out_time, ctx)}",
    ]
    if minutes > 0:
        lines.append(f"Overtime: {minutes // 60} h {minutes % 60} min")
    if bonus > 0:
        lines.append(f"Overtime bonus: {bonus:.2f} {ctx.employee.currency}")
    return EngineResult(
        action="check_out",
        attendance_log_id=record.id,
        employee_id=ctx.employee.id,
        status=record.status,
        overtime_minutes=minutes,
        bonus_amount=bonus,
        notification=_notify(ctx, lines),
    )
