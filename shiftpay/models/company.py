"""
Company model — the per-tenant policy store.

The engine only reads this row. Deduction tiers are nullable: a tier that
was never configured means "no deduction" rather than a failure, so an
incomplete setup never blocks attendance.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Float, Integer, String

from shiftpay.db.base import Base


class Company(Base):
    __tablename__ = "companies"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    name: str = Column(String(200), nullable=False)  # type: ignore[assignment]
    timezone: str | None = Column(String(64), nullable=True)  # type: ignore[assignment]  # IANA name
    work_start_time: str = Column(String(5), nullable=False, default="09:00")  # type: ignore[assignment]
    work_end_time: str = Column(String(5), nullable=False, default="17:00")  # type: ignore[assignment]
    weekend_days: str = Column(String(100), nullable=False, default="friday,saturday")  # type: ignore[assignment]
    break_duration_minutes: int = Column(Integer, nullable=False, default=60)  # type: ignore[assignment]

    # Late tiers, expressed in days of pay
    late_under_15_deduction_days: float | None = Column(Float, nullable=True)  # type: ignore[assignment]
    late_15_to_30_deduction_days: float | None = Column(Float, nullable=True)  # type: ignore[assignment]
    late_over_30_deduction_days: float | None = Column(Float, nullable=True)  # type: ignore[assignment]
    monthly_late_allowance_minutes: int | None = Column(Integer, nullable=True, default=60)  # type: ignore[assignment]

    overtime_multiplier: float | None = Column(Float, nullable=True)  # type: ignore[assignment]
    absence_deduction_days: float = Column(Float, nullable=False, default=1.0)  # type: ignore[assignment]

    telegram_bot_token: str | None = Column(String(128), nullable=True)  # type: ignore[assignment]
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
