"""
PendingAttendance model — manager-gated check-in / check-out requests.

The bot files a request when the employee's check-in needs approval; a
manager later approves, rejects or approves it with a corrected time.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String

from shiftpay.db.base import Base

REQUEST_TYPES = ("check_in", "check_out")


class PendingAttendance(Base):
    __tablename__ = "pending_attendance"
    __table_args__ = (Index("ix_pending_company_status", "company_id", "status"),)

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    employee_id: int = Column(Integer, ForeignKey("employees.id"), nullable=False)  # type: ignore[assignment]
    company_id: int = Column(Integer, ForeignKey("companies.id"), nullable=False)  # type: ignore[assignment]
    request_type: str = Column(String(10), nullable=False)  # type: ignore[assignment]  # check_in | check_out
    requested_time: datetime = Column(DateTime(timezone=True), nullable=False)  # type: ignore[assignment]
    status: str = Column(  # type: ignore[assignment]
        String(10),
        nullable=False,
        default="pending",
        server_default="pending",
    )  # pending | approved | rejected
    approved_time: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    rejection_reason: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]
    reviewer_name: str | None = Column(String(200), nullable=True)  # type: ignore[assignment]
    reviewed_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    notes: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
