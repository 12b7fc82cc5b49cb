"""
Late-balance tracker — the per-employee pool of monthly grace minutes.

The value lives on ``Employee.monthly_late_balance_minutes``; NULL means
the employee has not been late yet this month and holds the full
allowance. Every write is clamped into ``[0, allowance]``.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shiftpay.core.exceptions import NotFoundError
from shiftpay.db.session import unit_of_work
from shiftpay.models.employee import Employee
from shiftpay.services.policy import Policy

logger = logging.getLogger(__name__)


def _clamp(value: int, policy: Policy) -> int:
    return max(0, min(value, policy.monthly_late_allowance_minutes))


def current_balance(employee: Employee, policy: Policy) -> int:
    stored = employee.monthly_late_balance_minutes
    if stored is None:
        return policy.monthly_late_allowance_minutes
    return _clamp(stored, policy)


async def lock_employee(db: AsyncSession, employee_id: int) -> Employee:
    """Re-read the employee row under a write lock before a balance update."""
    result = await db.execute(
        select(Employee)
        .where(Employee.id == employee_id)
        .with_for_update(of=Employee)
        .execution_options(populate_existing=True)
    )
    employee = result.scalar_one_or_none()
    if employee is None:
        raise NotFoundError("Employee not found")
    return employee


def set_balance(employee: Employee, policy: Policy, value: int) -> int:
    new_value = _clamp(value, policy)
    if new_value != employee.monthly_late_balance_minutes:
        logger.debug(
            "Late balance for employee %d: %s -> %d",
            employee.id,
            employee.monthly_late_balance_minutes,
            new_value,
        )
        employee.monthly_late_balance_minutes = new_value
    return new_value


def consume(employee: Employee, policy: Policy, minutes: int) -> int:
    return set_balance(employee, policy, current_balance(employee, policy) - max(0, minutes))


def restore(employee: Employee, policy: Policy, minutes: int) -> int:
    return set_balance(employee, policy, current_balance(employee, policy) + max(0, minutes))


def reset_balance(employee: Employee, policy: Policy) -> int:
    """Refill the pool; called by the monthly reset job."""
    return set_balance(employee, policy, policy.monthly_late_allowance_minutes)


@unit_of_work
async def reset_company_balances(db: AsyncSession, company_id: int, policy: Policy) -> int:
    """Refill every active employee of a company. Returns rows touched."""
    result = await db.execute(
        select(Employee)
        .where(Employee.company_id == company_id, Employee.is_active.is_(True))
        .with_for_update(of=Employee)
    )
    employees = list(result.scalars().all())
    for employee in employees:
        reset_balance(employee, policy)
    logger.info("Reset late balance for %d employees of company %d", len(employees), company_id)
    return len(employees)
