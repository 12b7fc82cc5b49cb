"""
Pending attendance endpoints — filing and reviewing gated check-ins.
"""

import logging

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shiftpay.api.v1.deps import (Actor, get_db, require_admin,
                                  require_engine_caller)
from shiftpay.api.v1.endpoints.attendance import limiter
from shiftpay.core.config import settings
from shiftpay.models.pending_attendance import PendingAttendance
from shiftpay.schemas.attendance import (EngineResponse, PendingCreate,
                                         PendingCreateResponse, PendingRead,
                                         ReviewRequest, ReviewResponse)
from shiftpay.services import approvals
from shiftpay.services.notifier import TelegramNotifier, get_notifier

router = APIRouter(prefix="/pending-attendance", tags=["approvals"])
logger = logging.getLogger(__name__)


@router.post("", response_model=PendingCreateResponse, status_code=201)
@limiter.limit(settings.WEBHOOK_RATE_LIMIT)
async def file_request(
    request: Request,
    body: PendingCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_engine_caller),
) -> PendingCreateResponse:
    pending = await approvals.submit_pending(
        db,
        body.employee_id,
        body.request_type,
        body.requested_time,
        company_id=actor.company_id,
    )
    return PendingCreateResponse(pending=PendingRead.model_validate(pending))


@router.get("", response_model=list[PendingRead])
async def list_requests(
    status: str = Query("pending", pattern="^(pending|approved|rejected)$"),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_admin),
) -> list[PendingRead]:
    """Requests of the caller's company, oldest first."""
    result = await db.execute(
        select(PendingAttendance)
        .where(
            PendingAttendance.company_id == actor.company_id,
            PendingAttendance.status == status,
        )
        .order_by(PendingAttendance.created_at, PendingAttendance.id)
    )
    return [PendingRead.model_validate(p) for p in result.scalars().all()]


@router.post("/{pending_id}/review", response_model=ReviewResponse)
@limiter.limit(settings.WEBHOOK_RATE_LIMIT)
async def review_request(
    request: Request,
    pending_id: int,
    body: ReviewRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_admin),
    notifier: TelegramNotifier = Depends(get_notifier),
) -> ReviewResponse:
    """Approve, reject or approve-with-correction. A request is reviewed once."""
    outcome = await approvals.process_pending(
        db,
        pending_id,
        body.action,
        actor.name,
        new_time=body.new_time,
        rejection_reason=body.rejection_reason,
        company_id=actor.company_id,
    )
    sent = await notifier.send(outcome.notification)
    engine = None
    if outcome.engine is not None:
        engine = EngineResponse.model_validate(outcome.engine)
        engine.notification_sent = sent
    return ReviewResponse(
        pending_id=outcome.pending_id,
        action=outcome.action,
        status=outcome.status,
        employee_id=outcome.employee_id,
        employee_name=outcome.employee_name,
        approved_time=outcome.approved_time,
        engine=engine,
        notification_sent=sent,
    )
