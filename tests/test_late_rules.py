"""Tests for the pure lateness and money rules."""

from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

import pytest

from shiftpay.models.company import Company
from shiftpay.models.employee import Employee
from shiftpay.services.late_rules import (GRACE, GRACE_PARTIAL, LATE_15_TO_30,
                                          ON_TIME, OVER_30, UNDER_15, decide,
                                          deduction_amount, late_minutes,
                                          local_date, overtime_minutes,
                                          overtime_pay)
from shiftpay.services.policy import (Policy, parse_hhmm, parse_weekend_days,
                                      resolve_policy)

RIYADH = ZoneInfo("Asia/Riyadh")


def _policy(**overrides) -> Policy:
    values = dict(
        tz=RIYADH,
        work_start=time(9, 0),
        work_end=time(17, 0),
        weekend_days=frozenset({"friday", "saturday"}),
        break_duration_minutes=60,
        late_under_15_deduction_days=0.5,
        late_15_to_30_deduction_days=1.0,
        late_over_30_deduction_days=1.0,
        monthly_late_allowance_minutes=60,
        overtime_multiplier=1.5,
    )
    values.update(overrides)
    return Policy(**values)


def _employee(base: float = 3000.0, salary_type: str = "monthly") -> Employee:
    return Employee(id=1, company_id=1, full_name="E", base_salary=base, salary_type=salary_type)


# ── decide() ────────────────────────────────────────────────────────
def test_on_time_keeps_balance():
    d = decide(0, 60, _policy())
    assert d.tier == ON_TIME
    assert d.deduction_days == 0
    assert d.balance_after == 60


def test_grace_covers_short_lateness():
    d = decide(10, 60, _policy())
    assert d.tier == GRACE
    assert d.balance_consumed == 10
    assert d.balance_after == 50
    assert not d.is_monetary


def test_partial_grace_spends_remainder_and_deducts():
    d = decide(10, 5, _policy())
    assert d.tier == GRACE_PARTIAL
    assert d.balance_consumed == 5
    assert d.balance_after == 0
    assert d.deduction_days == 0.5


def test_empty_balance_deducts_under_15_tier():
    d = decide(10, 0, _policy())
    assert d.tier == UNDER_15
    assert d.balance_consumed == 0
    assert d.deduction_days == 0.5


def test_exactly_fifteen_minutes_is_still_grace_band():
    assert decide(15, 60, _policy()).tier == GRACE


@pytest.mark.parametrize("minutes,tier", [(16, LATE_15_TO_30), (30, LATE_15_TO_30), (31, OVER_30), (240, OVER_30)])
def test_long_lateness_ignores_balance(minutes, tier):
    d = decide(minutes, 60, _policy())
    assert d.tier == tier
    assert d.balance_consumed == 0
    assert d.balance_after == 60
    assert d.deduction_days == 1.0


def test_unconfigured_tiers_deduct_nothing():
    policy = _policy(
        late_under_15_deduction_days=None,
        late_15_to_30_deduction_days=None,
        late_over_30_deduction_days=None,
    )
    for minutes in (5, 20, 45):
        d = decide(minutes, 0, policy)
        assert d.deduction_days == 0
        assert not d.is_monetary


def test_deduction_days_never_decrease_with_lateness():
    policy = _policy()
    previous = 0.0
    for minutes in range(0, 181):
        days = decide(minutes, 0, policy).deduction_days
        assert days >= previous, f"deduction dropped at {minutes} min"
        previous = days


def test_negative_balance_is_treated_as_empty():
    assert decide(10, -5, _policy()).tier == UNDER_15


# ── Timing ──────────────────────────────────────────────────────────
def test_late_minutes_uses_company_timezone():
    # 06:10 UTC is 09:10 in Riyadh
    check_in = datetime(2025, 3, 3, 6, 10, tzinfo=timezone.utc)
    assert late_minutes(check_in, _policy()) == 10


def test_naive_timestamps_are_read_as_utc():
    assert late_minutes(datetime(2025, 3, 3, 6, 25), _policy()) == 25


def test_early_arrival_is_not_late():
    assert late_minutes(datetime(2025, 3, 3, 8, 30, tzinfo=RIYADH), _policy()) == 0


def test_historical_check_in_is_measured_against_its_own_day():
    check_in = datetime(2024, 11, 20, 9, 45, tzinfo=RIYADH)
    assert late_minutes(check_in, _policy()) == 45
    assert local_date(check_in, RIYADH) == date(2024, 11, 20)


def test_local_date_crosses_midnight():
    # 22:30 UTC is already the next day in Riyadh
    assert local_date(datetime(2025, 3, 3, 22, 30, tzinfo=timezone.utc), RIYADH) == date(2025, 3, 4)


def test_overtime_minutes_past_scheduled_end():
    policy = _policy()
    assert overtime_minutes(datetime(2025, 3, 3, 19, 0, tzinfo=RIYADH), policy, date(2025, 3, 3)) == 120
    assert overtime_minutes(datetime(2025, 3, 3, 16, 0, tzinfo=RIYADH), policy, date(2025, 3, 3)) == 0


# ── Money ───────────────────────────────────────────────────────────
def test_monthly_salary_deduction_uses_thirtieth():
    assert deduction_amount(_employee(3000), 0.5) == 50.0
    assert deduction_amount(_employee(3000), 1.0) == 100.0


def test_daily_salary_deduction_uses_rate():
    assert deduction_amount(_employee(200, "daily"), 0.5) == 100.0


def test_overtime_pay_from_daily_rate():
    # 100/day -> 12.5/h; 2h at 1.5x
    assert overtime_pay(_employee(3000), 120, 1.5) == 37.5


# ── Policy resolution ───────────────────────────────────────────────
def test_employee_schedule_overrides_company():
    company = Company(
        id=1,
        name="C",
        timezone="Asia/Riyadh",
        work_start_time="09:00",
        work_end_time="17:00",
        weekend_days="friday,saturday",
        break_duration_minutes=60,
        monthly_late_allowance_minutes=30,
        absence_deduction_days=1.0,
    )
    employee = Employee(id=1, company_id=1, full_name="E", work_start_time="10:30", break_duration_minutes=0)
    policy = resolve_policy(company, employee)
    assert policy.work_start == time(10, 30)
    assert policy.work_end == time(17, 0)
    assert policy.break_duration_minutes == 0
    assert policy.monthly_late_allowance_minutes == 30
    assert policy.tz.key == "Asia/Riyadh"


def test_unknown_timezone_falls_back_to_default():
    company = Company(id=1, name="C", timezone="Mars/Olympus")
    assert resolve_policy(company).tz.key == "Asia/Riyadh"


def test_parse_helpers():
    assert parse_hhmm("08:15") == time(8, 15)
    assert parse_weekend_days("Friday, Saturday") == frozenset({"friday", "saturday"})
    with pytest.raises(ValueError):
        parse_weekend_days("funday")
    with pytest.raises(ValueError):
        parse_hhmm("8")
