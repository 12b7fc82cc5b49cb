"""
Employee & attendance models — core business domain.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (Boolean, CheckConstraint, Column, Date, DateTime,
                        Float, ForeignKey, Index, Integer, String,
                        UniqueConstraint)
from sqlalchemy.orm import relationship

from shiftpay.db.base import Base

ATTENDANCE_STATUSES = ("checked_in", "on_break", "checked_out", "absent")


class Employee(Base):
    __tablename__ = "employees"
    __table_args__ = (Index("ix_employees_company", "company_id"),)

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    company_id: int = Column(Integer, ForeignKey("companies.id"), nullable=False)  # type: ignore[assignment]
    full_name: str = Column(String(200), nullable=False)  # type: ignore[assignment]
    telegram_chat_id: str | None = Column(String(32), nullable=True)  # type: ignore[assignment]

    base_salary: float = Column(Float, nullable=False, default=0.0)  # type: ignore[assignment]
    salary_type: str = Column(String(10), nullable=False, default="monthly")  # type: ignore[assignment]  # monthly | daily
    is_freelancer: bool = Column(Boolean, nullable=False, default=False)  # type: ignore[assignment]
    hourly_rate: float | None = Column(Float, nullable=True)  # type: ignore[assignment]
    currency: str = Column(String(3), nullable=False, default="SAR")  # type: ignore[assignment]

    # Schedule overrides; NULL falls back to the company policy
    work_start_time: str | None = Column(String(5), nullable=True)  # type: ignore[assignment]
    work_end_time: str | None = Column(String(5), nullable=True)  # type: ignore[assignment]
    weekend_days: str | None = Column(String(100), nullable=True)  # type: ignore[assignment]
    break_duration_minutes: int | None = Column(Integer, nullable=True)  # type: ignore[assignment]

    # Grace pool; NULL means "full monthly allowance"
    monthly_late_balance_minutes: int | None = Column(Integer, nullable=True)  # type: ignore[assignment]

    is_active: bool = Column(Boolean, default=True, server_default="true")  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    company = relationship("Company", lazy="joined")
    attendance_records = relationship(
        "AttendanceRecord",
        back_populates="employee",
        cascade="all, delete-orphan",
    )


class AttendanceRecord(Base):
    __tablename__ = "attendance_records"
    __table_args__ = (
        UniqueConstraint("employee_id", "date", name="uq_attendance_emp_date"),
        Index("ix_attendance_company_date", "company_id", "date"),
        CheckConstraint(
            "status IN (" + ", ".join(f"'{s}'" for s in ATTENDANCE_STATUSES) + ")",
            name="ck_attendance_status",
        ),
    )

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    employee_id: int = Column(Integer, ForeignKey("employees.id"), nullable=False)  # type: ignore[assignment]
    company_id: int = Column(Integer, ForeignKey("companies.id"), nullable=False)  # type: ignore[assignment]
    date = Column(Date, nullable=False)  # company-local day
    check_in_time: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    check_out_time: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    status: str = Column(String(20), nullable=False, default="checked_in")  # type: ignore[assignment]
    # checked_in | on_break | checked_out | absent
    late_balance_consumed_minutes: int = Column(  # type: ignore[assignment]
        Integer, nullable=False, default=0, server_default="0"
    )
    notes: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    employee = relationship("Employee", back_populates="attendance_records")
