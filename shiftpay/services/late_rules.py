"""
Pure timing and deduction rules.

Nothing here touches the database: the engine feeds in timestamps, the
current grace balance and the resolved :class:`Policy`, and applies the
returned :class:`Decision` itself.

All "expected" times are built from the company timezone and the calendar
day of the event, never from the server's local clock.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from shiftpay.models.employee import Employee
from shiftpay.services.policy import Policy

ON_TIME = "on_time"
GRACE = "grace"
GRACE_PARTIAL = "grace_partial"
UNDER_15 = "under_15"
LATE_15_TO_30 = "late_15_to_30"
OVER_30 = "over_30"
EXEMPT = "exempt"

TIER_LABELS = {
    ON_TIME: "on time",
    GRACE: "late under 15 minutes (covered by grace balance)",
    GRACE_PARTIAL: "late under 15 minutes (grace balance exhausted)",
    UNDER_15: "late under 15 minutes",
    LATE_15_TO_30: "late 15 to 30 minutes",
    OVER_30: "late over 30 minutes",
    EXEMPT: "exempt from lateness rules",
}

# Standard working hours used to turn a daily rate into an hourly one.
OVERTIME_HOURS_PER_DAY = 8


@dataclass(frozen=True)
class Decision:
    tier: str
    late_minutes: int
    deduction_days: float
    balance_consumed: int
    balance_after: int

    @property
    def is_monetary(self) -> bool:
        return self.deduction_days > 0


# ── Time helpers ────────────────────────────────────────────────────
def ensure_utc(dt: datetime) -> datetime:
    """Normalise a potentially-naive timestamp to UTC-aware."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def local_date(ts: datetime, tz: ZoneInfo) -> date:
    """Calendar day of ``ts`` in the company timezone."""
    return ensure_utc(ts).astimezone(tz).date()


def at_local_time(day: date, at: time, tz: ZoneInfo) -> datetime:
    return datetime.combine(day, at, tzinfo=tz)


def end_of_local_day(day: date, tz: ZoneInfo) -> datetime:
    return datetime.combine(day + timedelta(days=1), time(0, 0), tzinfo=tz)


def _whole_minutes(delta: timedelta) -> int:
    return int(delta.total_seconds() // 60)


def late_minutes(check_in: datetime, policy: Policy) -> int:
    """Whole minutes between the expected start and ``check_in`` (never negative).

    The expected start sits on the check-in's own local date, so a
    historical edit is measured against that day's start, not today's.
    """
    check_in = ensure_utc(check_in)
    expected = at_local_time(local_date(check_in, policy.tz), policy.work_start, policy.tz)
    return max(0, _whole_minutes(check_in - expected))


def overtime_minutes(check_out: datetime, policy: Policy, day: date) -> int:
    """Whole minutes worked past the expected end of ``day``."""
    expected_end = at_local_time(day, policy.work_end, policy.tz)
    return max(0, _whole_minutes(ensure_utc(check_out) - expected_end))


def month_key(day: date) -> date:
    return day.replace(day=1)


# ── Tier decision ───────────────────────────────────────────────────
def decide(minutes_late: int, balance: int, policy: Policy) -> Decision:
    """Map a lateness value onto a deduction tier.

    Evaluated top-down, first match wins: over 30, 15 to 30, then the
    grace band where the balance is spent before any money is deducted.
    A tier whose deduction was never configured deducts nothing.
    """
    balance = max(0, balance)

    if minutes_late > 30:
        return Decision(OVER_30, minutes_late, policy.late_over_30_deduction_days or 0.0, 0, balance)
    if minutes_late > 15:
        return Decision(LATE_15_TO_30, minutes_late, policy.late_15_to_30_deduction_days or 0.0, 0, balance)
    if minutes_late > 0:
        under_15 = policy.late_under_15_deduction_days or 0.0
        if balance >= minutes_late:
            return Decision(GRACE, minutes_late, 0.0, minutes_late, balance - minutes_late)
        if balance > 0:
            return Decision(GRACE_PARTIAL, minutes_late, under_15, balance, 0)
        return Decision(UNDER_15, minutes_late, under_15, 0, 0)
    return Decision(ON_TIME, 0, 0.0, 0, balance)


# ── Money ───────────────────────────────────────────────────────────
def daily_rate(employee: Employee) -> float:
    """``base/30`` for monthly salaries, the raw rate for daily ones."""
    base = float(employee.base_salary or 0)
    if employee.salary_type == "daily":
        return base
    return base / 30


def deduction_amount(employee: Employee, days: float) -> float:
    return round(daily_rate(employee) * days, 2)


def overtime_pay(employee: Employee, minutes: int, multiplier: float) -> float:
    hourly = daily_rate(employee) / OVERTIME_HOURS_PER_DAY
    return round((minutes / 60) * hourly * multiplier, 2)
