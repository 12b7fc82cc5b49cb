"""Pydantic schemas for salary statistics and the adjustment ledger."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel


class SalaryStatsResponse(BaseModel):
    success: bool = True
    employee_id: int
    period: str
    start: date
    end: date
    currency: str
    expected_work_days: int
    work_days: int
    absent_days: int
    worked_minutes: int
    late_minutes: int
    overtime_minutes: int
    earned_salary: float
    total_bonuses: float
    total_deductions: float
    net_salary: float
    overtime_amount: float
    adjustments: int
    by_category: dict[str, float]

    model_config = {"from_attributes": True}


class AdjustmentRead(BaseModel):
    id: int
    employee_id: int
    month: date
    category: str
    bonus: float
    deduction: float
    adjustment_days: float | None = None
    description: str | None = None
    is_auto_generated: bool
    attendance_log_id: int | None = None
    added_by_name: str | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class AdjustmentListResponse(BaseModel):
    success: bool = True
    employee_id: int
    items: list[AdjustmentRead]
    total_bonuses: float
    total_deductions: float


class LateBalanceResponse(BaseModel):
    success: bool = True
    employee_id: int
    balance_minutes: int
    allowance_minutes: int


class BalanceResetResponse(BaseModel):
    success: bool = True
    company_id: int
    employees_reset: int
