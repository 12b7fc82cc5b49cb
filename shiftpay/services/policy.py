"""
Effective attendance policy for one employee.

Company settings are the default; an employee's own schedule columns win
when they are set.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import time
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from shiftpay.core.config import settings
from shiftpay.models.company import Company
from shiftpay.models.employee import Employee

logger = logging.getLogger(__name__)

WEEKDAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


@dataclass(frozen=True)
class Policy:
    tz: ZoneInfo
    work_start: time
    work_end: time
    weekend_days: frozenset[str]
    break_duration_minutes: int
    late_under_15_deduction_days: float | None = None
    late_15_to_30_deduction_days: float | None = None
    late_over_30_deduction_days: float | None = None
    monthly_late_allowance_minutes: int = 60
    overtime_multiplier: float | None = None
    absence_deduction_days: float = 1.0

    @property
    def expected_daily_minutes(self) -> int:
        span = (self.work_end.hour * 60 + self.work_end.minute) - (
            self.work_start.hour * 60 + self.work_start.minute
        )
        return span - self.break_duration_minutes


def parse_hhmm(value: str) -> time:
    """Parse ``HH:MM`` (or ``HH:MM:SS``) into a :class:`time`."""
    parts = value.strip().split(":")
    if len(parts) < 2:
        raise ValueError(f"Invalid time of day: {value!r}")
    return time(int(parts[0]), int(parts[1]))


def parse_weekend_days(value: str | None) -> frozenset[str]:
    if not value:
        return frozenset({"friday", "saturday"})
    days = {d.strip().lower() for d in value.split(",") if d.strip()}
    unknown = days - set(WEEKDAY_NAMES)
    if unknown:
        raise ValueError(f"Unknown weekday names: {sorted(unknown)}")
    return frozenset(days)


def load_timezone(name: str | None) -> ZoneInfo:
    try:
        return ZoneInfo(name or settings.DEFAULT_TIMEZONE)
    except ZoneInfoNotFoundError:
        logger.warning("Unknown timezone %r, using %s", name, settings.DEFAULT_TIMEZONE)
        return ZoneInfo(settings.DEFAULT_TIMEZONE)


def resolve_policy(company: Company, employee: Employee | None = None) -> Policy:
    """Merge company defaults with the employee's schedule overrides."""
    work_start = (employee and employee.work_start_time) or company.work_start_time or "09:00"
    work_end = (employee and employee.work_end_time) or company.work_end_time or "17:00"
    weekend = (employee and employee.weekend_days) or company.weekend_days
    if employee is not None and employee.break_duration_minutes is not None:
        break_minutes = employee.break_duration_minutes
    elif company.break_duration_minutes is not None:
        break_minutes = company.break_duration_minutes
    else:
        break_minutes = 60

    allowance = company.monthly_late_allowance_minutes
    if allowance is None:
        allowance = settings.DEFAULT_LATE_ALLOWANCE_MINUTES

    return Policy(
        tz=load_timezone(company.timezone),
        work_start=parse_hhmm(work_start),
        work_end=parse_hhmm(work_end),
        weekend_days=parse_weekend_days(weekend),
        break_duration_minutes=break_minutes,
        late_under_15_deduction_days=company.late_under_15_deduction_days,
        late_15_to_30_deduction_days=company.late_15_to_30_deduction_days,
        late_over_30_deduction_days=company.late_over_30_deduction_days,
        monthly_late_allowance_minutes=max(0, allowance),
        overtime_multiplier=company.overtime_multiplier,
        absence_deduction_days=(
            company.absence_deduction_days
            if company.absence_deduction_days is not None
            else 1.0
        ),
    )
