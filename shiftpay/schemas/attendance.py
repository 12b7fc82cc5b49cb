"""Pydantic schemas for attendance webhooks, engine results and approvals."""

from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator


# ── Engine triggers ─────────────────────────────────────────────────
class CheckInRequest(BaseModel):
    employee_id: int = Field(gt=0)
    check_in_time: datetime
    day: date | None = None


class CheckOutRequest(BaseModel):
    check_out_time: datetime


class RecalculateRequest(BaseModel):
    old_check_in_time: datetime | None = None
    new_check_in_time: datetime


class MarkAbsentRequest(BaseModel):
    employee_id: int = Field(gt=0)
    day: date


class CheckoutEditedRequest(BaseModel):
    new_check_out_time: datetime | None = None


class EngineResponse(BaseModel):
    success: bool = True
    action: str
    attendance_log_id: int
    employee_id: int
    status: str
    tier: str | None = None
    late_minutes: int | None = None
    old_late_minutes: int | None = None
    new_late_minutes: int | None = None
    deduction_days: float = 0.0
    deduction_amount: float = 0.0
    bonus_amount: float = 0.0
    overtime_minutes: int | None = None
    balance_change: int = 0
    balance_after: int | None = None
    cancelled_deduction_days: float = 0.0
    removed_adjustments: int = 0
    notification_sent: bool = False

    model_config = {"from_attributes": True}


# ── Pending approvals ───────────────────────────────────────────────
class PendingCreate(BaseModel):
    employee_id: int = Field(gt=0)
    request_type: Literal["check_in", "check_out"]
    requested_time: datetime


class PendingRead(BaseModel):
    id: int
    employee_id: int
    request_type: str
    requested_time: datetime
    status: str
    approved_time: datetime | None = None
    rejection_reason: str | None = None
    reviewer_name: str | None = None
    reviewed_at: datetime | None = None
    notes: str | None = None

    model_config = {"from_attributes": True}


class PendingCreateResponse(BaseModel):
    success: bool = True
    pending: PendingRead


class ReviewRequest(BaseModel):
    action: Literal["approve", "reject", "modify"]
    new_time: datetime | None = None
    rejection_reason: str | None = Field(default=None, max_length=500)

    @model_validator(mode="after")
    def _modify_needs_time(self) -> "ReviewRequest":
        if self.action == "modify" and self.new_time is None:
            raise ValueError("new_time is required when action is 'modify'")
        return self


class ReviewResponse(BaseModel):
    success: bool = True
    pending_id: int
    action: str
    status: str
    employee_id: int
    employee_name: str
    approved_time: datetime | None = None
    engine: EngineResponse | None = None
    notification_sent: bool = False


# ── System ──────────────────────────────────────────────────────────
class HealthResponse(BaseModel):
    status: str
    db: bool
    version: str
