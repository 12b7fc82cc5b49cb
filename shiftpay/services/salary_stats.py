"""
Salary statistics for one employee over a period.

The ledger is the only source of bonuses and deductions. Late and overtime
minutes are recomputed from the attendance records for display, and the
money they would represent is reported separately without ever being
added into ``net_salary``.
"""

from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shiftpay.core.exceptions import InvalidStateError, NotFoundError
from shiftpay.models.employee import AttendanceRecord, Employee
from shiftpay.models.salary_adjustment import SalaryAdjustment
from shiftpay.services.late_rules import (end_of_local_day, ensure_utc,
                                          late_minutes, local_date, month_key,
                                          overtime_pay)
from shiftpay.services.policy import WEEKDAY_NAMES, Policy, resolve_policy

logger = logging.getLogger(__name__)

PERIODS = ("this_month", "last_month", "this_year", "all_time")
ALL_TIME_START = date(2000, 1, 1)

_ACTIVE_STATUSES = ("checked_in", "on_break")


@dataclass
class SalaryStats:
    employee_id: int
    period: str
    start: date
    end: date
    currency: str
    expected_work_days: int = 0
    work_days: int = 0
    absent_days: int = 0
    worked_minutes: int = 0
    late_minutes: int = 0
    overtime_minutes: int = 0
    earned_salary: float = 0.0
    total_bonuses: float = 0.0
    total_deductions: float = 0.0
    net_salary: float = 0.0
    overtime_amount: float = 0.0
    adjustments: int = 0
    by_category: dict[str, float] = field(default_factory=dict)


def period_range(period: str, today: date) -> tuple[date, date]:
    """Inclusive ``(start, end)`` dates for a named period."""
    if period == "this_month":
        return today.replace(day=1), today
    if period == "this_year":
        return date(today.year, 1, 1), today
    if period == "all_time":
        return ALL_TIME_START, today
    if period != "last_month":
        raise InvalidStateError(f"Unknown period {period!r}; expected one of {', '.join(PERIODS)}")
    start = (today.replace(day=1) - timedelta(days=1)).replace(day=1)
    _, days_in_month = calendar.monthrange(start.year, start.month)
    return start, start.replace(day=days_in_month)


def count_work_days(start: date, end: date, weekend_days: frozenset[str]) -> int:
    """Calendar days in ``[start, end]`` that are not weekend days."""
    count = 0
    day = start
    while day <= end:
        if WEEKDAY_NAMES[day.weekday()] not in weekend_days:
            count += 1
        day += timedelta(days=1)
    return count


def _worked_minutes(record: AttendanceRecord, policy: Policy, freelancer: bool) -> int:
    check_in = ensure_utc(record.check_in_time)
    check_out = ensure_utc(record.check_out_time)
    # A checkout past midnight is cut at the end of the check-in's own day.
    day_end = end_of_local_day(local_date(check_in, policy.tz), policy.tz)
    check_out = min(check_out, day_end)
    minutes = int((check_out - check_in).total_seconds() // 60)
    if not freelancer:
        minutes -= policy.break_duration_minutes
    return max(0, minutes)


def compute_salary_stats(
    employee: Employee,
    policy: Policy,
    records: list[AttendanceRecord],
    adjustments: list[SalaryAdjustment],
    start: date,
    end: date,
    period: str = "custom",
) -> SalaryStats:
    stats = SalaryStats(
        employee_id=employee.id,
        period=period,
        start=start,
        end=end,
        currency=employee.currency,
        expected_work_days=count_work_days(start, end, policy.weekend_days),
    )
    freelancer = bool(employee.is_freelancer)

    for record in records:
        if record.status == "absent":
            stats.absent_days += 1
            continue
        if record.check_in_time is not None and record.check_out_time is not None:
            worked = _worked_minutes(record, policy, freelancer)
            stats.work_days += 1
            stats.worked_minutes += worked
            if not freelancer:
                stats.late_minutes += late_minutes(record.check_in_time, policy)
                stats.overtime_minutes += max(0, worked - policy.expected_daily_minutes)
        elif record.check_in_time is not None and record.status in _ACTIVE_STATUSES:
            stats.work_days += 1

    base = float(employee.base_salary or 0)
    if freelancer:
        earned = (stats.worked_minutes / 60) * float(employee.hourly_rate or 0)
    elif employee.salary_type == "daily":
        earned = base * stats.work_days
    else:
        earned = (base / 30) * stats.work_days
    stats.earned_salary = round(earned, 2)

    for row in adjustments:
        stats.total_bonuses += row.bonus or 0
        stats.total_deductions += row.deduction or 0
        stats.by_category[row.category] = round(
            stats.by_category.get(row.category, 0.0) + (row.bonus or 0) - (row.deduction or 0), 2
        )
    stats.adjustments = len(adjustments)
    stats.total_bonuses = round(stats.total_bonuses, 2)
    stats.total_deductions = round(stats.total_deductions, 2)
    stats.net_salary = round(stats.earned_salary + stats.total_bonuses - stats.total_deductions, 2)

    if stats.overtime_minutes and policy.overtime_multiplier and not freelancer:
        stats.overtime_amount = overtime_pay(employee, stats.overtime_minutes, policy.overtime_multiplier)
    return stats


async def load_salary_stats(
    db: AsyncSession,
    employee_id: int,
    period: str,
    today: date | None = None,
    *,
    company_id: int | None = None,
) -> SalaryStats:
    """Read one employee's records and ledger rows in range and summarise them.

    ``today`` defaults to the current date in the company timezone.
    """
    employee = await db.get(Employee, employee_id)
    if employee is None or (company_id is not None and employee.company_id != company_id):
        raise NotFoundError("Employee not found")
    policy = resolve_policy(employee.company, employee)
    if today is None:
        today = datetime.now(policy.tz).date()
    start, end = period_range(period, today)

    records = await db.execute(
        select(AttendanceRecord)
        .where(
            AttendanceRecord.employee_id == employee.id,
            AttendanceRecord.date >= start,
            AttendanceRecord.date <= end,
        )
        .order_by(AttendanceRecord.date)
    )
    adjustments = await db.execute(
        select(SalaryAdjustment)
        .where(
            SalaryAdjustment.employee_id == employee.id,
            SalaryAdjustment.month >= month_key(start),
            SalaryAdjustment.month <= end,
        )
        .order_by(SalaryAdjustment.month, SalaryAdjustment.id)
    )
    stats = compute_salary_stats(
        employee,
        policy,
        list(records.scalars().all()),
        list(adjustments.scalars().all()),
        start,
        end,
        period=period,
    )
    logger.debug(
        "Salary stats for employee %d (%s): net %.2f over %d work days",
        employee.id, period, stats.net_salary, stats.work_days,
    )
    return stats


async def list_adjustments(
    db: AsyncSession,
    employee_id: int,
    month: date | None = None,
    *,
    company_id: int | None = None,
) -> list[SalaryAdjustment]:
    employee = await db.get(Employee, employee_id)
    if employee is None or (company_id is not None and employee.company_id != company_id):
        raise NotFoundError("Employee not found")
    query = select(SalaryAdjustment).where(SalaryAdjustment.employee_id == employee.id)
    if month is not None:
        query = query.where(SalaryAdjustment.month == month_key(month))
    result = await db.execute(query.order_by(SalaryAdjustment.month.desc(), SalaryAdjustment.id))
    return list(result.scalars().all())
