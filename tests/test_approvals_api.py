"""Tests for filing and reviewing pending attendance requests."""

from datetime import date

import pytest
from conftest import RecordingNotifier
from httpx import AsyncClient
from sqlalchemy import func, select

from shiftpay.models.employee import AttendanceRecord
from shiftpay.models.pending_attendance import PendingAttendance


async def _file(client: AsyncClient, employee_id: int, request_type: str, when: str, headers: dict) -> int:
    resp = await client.post(
        "/api/v1/pending-attendance",
        json={"employee_id": employee_id, "request_type": request_type, "requested_time": when},
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    assert resp.json()["pending"]["status"] == "pending"
    return resp.json()["pending"]["id"]


async def _review(client: AsyncClient, pending_id: int, headers: dict, **body):
    return await client.post(f"/api/v1/pending-attendance/{pending_id}/review", json=body, headers=headers)


@pytest.mark.asyncio
async def test_approve_runs_the_engine_once(async_client: AsyncClient, employee, admin_headers, bot_headers):
    pending_id = await _file(async_client, employee.id, "check_in", "2025-03-03T09:40:00+03:00", bot_headers)

    resp = await _review(async_client, pending_id, admin_headers, action="approve")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "approved"
    assert body["employee_name"] == "Sara Ali"
    assert body["engine"]["tier"] == "over_30"
    assert body["engine"]["deduction_amount"] == 100.0

    again = await _review(async_client, pending_id, admin_headers, action="approve")
    assert again.status_code == 400
    assert again.json()["error"] == "Request already processed"


@pytest.mark.asyncio
async def test_reject_records_reason_without_attendance(
    async_client: AsyncClient, db_session, employee, admin_headers, bot_headers, recording_notifier: RecordingNotifier
):
    pending_id = await _file(async_client, employee.id, "check_in", "2025-03-03T09:05:00+03:00", bot_headers)

    resp = await _review(async_client, pending_id, admin_headers, action="reject", rejection_reason="Not on site")
    assert resp.json()["status"] == "rejected"
    assert resp.json()["engine"] is None
    assert "Not on site" in recording_notifier.sent[-1].text

    count = await db_session.execute(select(func.count()).select_from(AttendanceRecord))
    assert count.scalar_one() == 0


@pytest.mark.asyncio
async def test_modify_without_time_is_422(async_client: AsyncClient, employee, admin_headers, bot_headers):
    pending_id = await _file(async_client, employee.id, "check_in", "2025-03-03T09:05:00+03:00", bot_headers)
    resp = await _review(async_client, pending_id, admin_headers, action="modify")
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_modify_decides_on_the_corrected_time(async_client: AsyncClient, db_session, employee, admin_headers, bot_headers):
    pending_id = await _file(async_client, employee.id, "check_in", "2025-03-03T09:50:00+03:00", bot_headers)

    resp = await _review(
        async_client, pending_id, admin_headers, action="modify", new_time="2025-03-03T09:05:00+03:00"
    )
    body = resp.json()
    assert body["engine"]["late_minutes"] == 5
    assert body["engine"]["tier"] == "grace"

    pending = await db_session.get(PendingAttendance, pending_id)
    assert pending.status == "approved"
    assert pending.reviewer_name == "Manager Omar"
    assert pending.notes.startswith("Time changed")


@pytest.mark.asyncio
async def test_modified_check_in_lands_on_its_corrected_day(
    async_client: AsyncClient, db_session, employee, admin_headers, bot_headers
):
    pending_id = await _file(async_client, employee.id, "check_in", "2025-03-03T23:50:00+03:00", bot_headers)

    resp = await _review(
        async_client, pending_id, admin_headers, action="modify", new_time="2025-03-04T09:05:00+03:00"
    )
    assert resp.status_code == 200
    assert resp.json()["engine"]["late_minutes"] == 5

    result = await db_session.execute(select(AttendanceRecord.date))
    assert result.scalars().all() == [date(2025, 3, 4)]


@pytest.mark.asyncio
async def test_check_out_request_credits_overtime(async_client: AsyncClient, employee, admin_headers, bot_headers):
    check_in = await _file(async_client, employee.id, "check_in", "2025-03-03T09:00:00+03:00", bot_headers)
    await _review(async_client, check_in, admin_headers, action="approve")
    check_out = await _file(async_client, employee.id, "check_out", "2025-03-03T19:00:00+03:00", bot_headers)

    resp = await _review(async_client, check_out, admin_headers, action="approve")
    body = resp.json()
    assert body["engine"]["action"] == "check_out"
    assert body["engine"]["bonus_amount"] == 37.5


@pytest.mark.asyncio
async def test_check_out_without_check_in_leaves_request_pending(
    async_client: AsyncClient, db_session, employee, admin_headers, bot_headers
):
    pending_id = await _file(async_client, employee.id, "check_out", "2025-03-03T17:00:00+03:00", bot_headers)

    resp = await _review(async_client, pending_id, admin_headers, action="approve")
    assert resp.status_code == 404

    listing = await async_client.get("/api/v1/pending-attendance", headers=admin_headers)
    assert [p["id"] for p in listing.json()] == [pending_id]


@pytest.mark.asyncio
async def test_bot_cannot_review(async_client: AsyncClient, employee, bot_headers):
    pending_id = await _file(async_client, employee.id, "check_in", "2025-03-03T09:00:00+03:00", bot_headers)
    resp = await _review(async_client, pending_id, bot_headers, action="approve")
    assert resp.status_code == 403
