"""
SalaryAdjustment model — the append/remove-only payroll ledger.

Rows written by the adjustment engine carry ``is_auto_generated`` and a
back-reference to the attendance record that produced them. The
``(attendance_log_id, category)`` constraint keeps at most one engine row
of each kind per record, even when two edits race.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (Boolean, CheckConstraint, Column, Date, DateTime,
                        Float, ForeignKey, Index, Integer, String,
                        UniqueConstraint)

from shiftpay.db.base import Base

LATE_DEDUCTION = "late_deduction"
ABSENCE_DEDUCTION = "absence_deduction"
OVERTIME_BONUS = "overtime_bonus"
MANUAL = "manual"

ADJUSTMENT_CATEGORIES = (LATE_DEDUCTION, ABSENCE_DEDUCTION, OVERTIME_BONUS, MANUAL)


class SalaryAdjustment(Base):
    __tablename__ = "salary_adjustments"
    __table_args__ = (
        UniqueConstraint("attendance_log_id", "category", name="uq_adjustment_log_category"),
        Index("ix_adjustment_employee_month", "employee_id", "month"),
        CheckConstraint(
            "category IN (" + ", ".join(f"'{c}'" for c in ADJUSTMENT_CATEGORIES) + ")",
            name="ck_adjustment_category",
        ),
    )

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    employee_id: int = Column(Integer, ForeignKey("employees.id"), nullable=False)  # type: ignore[assignment]
    company_id: int = Column(Integer, ForeignKey("companies.id"), nullable=False)  # type: ignore[assignment]
    month = Column(Date, nullable=False)  # first day of the pay month
    category: str = Column(String(30), nullable=False, default=MANUAL)  # type: ignore[assignment]
    # late_deduction | absence_deduction | overtime_bonus | manual
    bonus: float = Column(Float, nullable=False, default=0.0)  # type: ignore[assignment]
    deduction: float = Column(Float, nullable=False, default=0.0)  # type: ignore[assignment]
    adjustment_days: float | None = Column(Float, nullable=True)  # type: ignore[assignment]
    description: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]
    is_auto_generated: bool = Column(Boolean, nullable=False, default=False)  # type: ignore[assignment]
    attendance_log_id: int | None = Column(  # type: ignore[assignment]
        Integer, ForeignKey("attendance_records.id"), nullable=True, index=True
    )
    added_by_name: str | None = Column(String(200), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
