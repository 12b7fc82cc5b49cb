"""
Attendance webhooks — the trigger surface of the adjustment engine.

- Check-in / check-out accept the bot as well as admins and managers.
- Edits, absences and checkout corrections require admin or manager.

Every call runs one engine operation to completion and only then tries to
notify the employee; a failed notification is reported in
``notification_sent`` and never undoes the committed ledger change.
"""

import logging

from fastapi import APIRouter, Depends, Request
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncSession

from shiftpay.api.v1.deps import (Actor, get_db, require_admin,
                                  require_engine_caller)
from shiftpay.core.config import settings
from shiftpay.schemas.attendance import (CheckInRequest, CheckoutEditedRequest,
                                         CheckOutRequest, EngineResponse,
                                         MarkAbsentRequest, RecalculateRequest)
from shiftpay.services import adjustment_engine
from shiftpay.services.adjustment_engine import EngineResult
from shiftpay.services.notifier import TelegramNotifier, get_notifier

# Rate limiter, keyed by client IP
limiter = Limiter(key_func=get_remote_address)

router = APIRouter(prefix="/attendance", tags=["attendance"])
logger = logging.getLogger(__name__)


async def _respond(result: EngineResult, notifier: TelegramNotifier) -> EngineResponse:
    response = EngineResponse.model_validate(result)
    response.notification_sent = await notifier.send(result.notification)
    return response


@router.post("/check-in", response_model=EngineResponse)
@limiter.limit(settings.WEBHOOK_RATE_LIMIT)
async def check_in(
    request: Request,
    body: CheckInRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_engine_caller),
    notifier: TelegramNotifier = Depends(get_notifier),
) -> EngineResponse:
    """Record a direct (already approved) check-in and decide its lateness."""
    result = await adjustment_engine.on_approve(
        db,
        body.employee_id,
        body.check_in_time,
        actor.name,
        day=body.day,
        company_id=actor.company_id,
    )
    return await _respond(result, notifier)


@router.post("/{attendance_log_id}/check-out", response_model=EngineResponse)
@limiter.limit(settings.WEBHOOK_RATE_LIMIT)
async def check_out(
    request: Request,
    attendance_log_id: int,
    body: CheckOutRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_engine_caller),
    notifier: TelegramNotifier = Depends(get_notifier),
) -> EngineResponse:
    result = await adjustment_engine.on_check_out(
        db, attendance_log_id, body.check_out_time, actor.name, company_id=actor.company_id
    )
    return await _respond(result, notifier)


@router.post("/{attendance_log_id}/recalculate", response_model=EngineResponse)
@limiter.limit(settings.WEBHOOK_RATE_LIMIT)
async def recalculate(
    request: Request,
    attendance_log_id: int,
    body: RecalculateRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_admin),
    notifier: TelegramNotifier = Depends(get_notifier),
) -> EngineResponse:
    """Re-decide a record after its check-in time was edited."""
    result = await adjustment_engine.on_recalculate_edit(
        db,
        attendance_log_id,
        body.old_check_in_time,
        body.new_check_in_time,
        actor.name,
        company_id=actor.company_id,
    )
    return await _respond(result, notifier)


@router.post("/mark-absent", response_model=EngineResponse)
@limiter.limit(settings.WEBHOOK_RATE_LIMIT)
async def mark_absent(
    request: Request,
    body: MarkAbsentRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_admin),
    notifier: TelegramNotifier = Depends(get_notifier),
) -> EngineResponse:
    result = await adjustment_engine.on_mark_absent(
        db, body.employee_id, body.day, actor.name, company_id=actor.company_id
    )
    return await _respond(result, notifier)


@router.post("/{attendance_log_id}/unmark-absent", response_model=EngineResponse)
@limiter.limit(settings.WEBHOOK_RATE_LIMIT)
async def unmark_absent(
    request: Request,
    attendance_log_id: int,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_admin),
    notifier: TelegramNotifier = Depends(get_notifier),
) -> EngineResponse:
    result = await adjustment_engine.on_unmark_absent(
        db, attendance_log_id, actor.name, company_id=actor.company_id
    )
    return await _respond(result, notifier)


@router.post("/{attendance_log_id}/checkout-edited", response_model=EngineResponse)
@limiter.limit(settings.WEBHOOK_RATE_LIMIT)
async def checkout_edited(
    request: Request,
    attendance_log_id: int,
    body: CheckoutEditedRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_admin),
    notifier: TelegramNotifier = Depends(get_notifier),
) -> EngineResponse:
    """Withdraw the overtime bonus of an edited checkout."""
    result = await adjustment_engine.on_checkout_edited(
        db,
        attendance_log_id,
        body.new_check_out_time,
        actor.name,
        company_id=actor.company_id,
    )
    return await _respond(result, notifier)
