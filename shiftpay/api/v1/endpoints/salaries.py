"""
Salary read-outs and the late-balance reset.

Statistics trust the ledger: bonuses and deductions are summed from
``salary_adjustments``, never recomputed here.
"""

from __future__ import annotations

import logging
from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from shiftpay.api.v1.deps import (Actor, get_db, require_admin,
                                  require_engine_caller)
from shiftpay.core.exceptions import NotFoundError
from shiftpay.models.company import Company
from shiftpay.models.employee import Employee
from shiftpay.schemas.salary import (AdjustmentListResponse, AdjustmentRead,
                                     BalanceResetResponse, LateBalanceResponse,
                                     SalaryStatsResponse)
from shiftpay.services import late_balance, salary_stats
from shiftpay.services.policy import resolve_policy

router = APIRouter(tags=["salaries"])
logger = logging.getLogger(__name__)


@router.get("/employees/{employee_id}/salary-stats", response_model=SalaryStatsResponse)
async def employee_salary_stats(
    employee_id: int,
    period: str = Query("this_month", pattern="^(this_month|last_month|this_year|all_time)$"),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_engine_caller),
) -> SalaryStatsResponse:
    stats = await salary_stats.load_salary_stats(
        db, employee_id, period, company_id=actor.company_id
    )
    return SalaryStatsResponse.model_validate(stats)


@router.get("/employees/{employee_id}/adjustments", response_model=AdjustmentListResponse)
async def employee_adjustments(
    employee_id: int,
    month: date | None = Query(None, description="Any day of the pay month"),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_engine_caller),
) -> AdjustmentListResponse:
    """The ledger rows of one employee, newest month first."""
    rows = await salary_stats.list_adjustments(
        db, employee_id, month, company_id=actor.company_id
    )
    return AdjustmentListResponse(
        employee_id=employee_id,
        items=[AdjustmentRead.model_validate(r) for r in rows],
        total_bonuses=round(sum(r.bonus or 0 for r in rows), 2),
        total_deductions=round(sum(r.deduction or 0 for r in rows), 2),
    )


@router.get("/employees/{employee_id}/late-balance", response_model=LateBalanceResponse)
async def employee_late_balance(
    employee_id: int,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_engine_caller),
) -> LateBalanceResponse:
    employee = await db.get(Employee, employee_id)
    if employee is None or employee.company_id != actor.company_id:
        raise NotFoundError("Employee not found")
    policy = resolve_policy(employee.company, employee)
    return LateBalanceResponse(
        employee_id=employee.id,
        balance_minutes=late_balance.current_balance(employee, policy),
        allowance_minutes=policy.monthly_late_allowance_minutes,
    )


@router.post("/late-balance/reset", response_model=BalanceResetResponse)
async def reset_late_balances(
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_admin),
) -> BalanceResetResponse:
    """Monthly refill of every active employee's grace pool."""
    company = await db.get(Company, actor.company_id)
    if company is None:
        raise NotFoundError("Company not found")
    count = await late_balance.reset_company_balances(db, company.id, resolve_policy(company))
    logger.info("%s reset late balances for company %d", actor.name, company.id)
    return BalanceResetResponse(company_id=company.id, employees_reset=count)
