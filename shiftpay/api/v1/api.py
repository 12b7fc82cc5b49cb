"""
V1 API router aggregator — wires all endpoint modules together.
"""

from fastapi import APIRouter

from shiftpay.api.v1.endpoints import approvals, attendance, salaries, system

api_router = APIRouter()

# Engine webhooks (check-in/out, edits, absences)
api_router.include_router(attendance.router)

# Pending check-in / check-out requests
api_router.include_router(approvals.router)

# Salary stats, ledger listing, late balance
api_router.include_router(salaries.router)

# Health
api_router.include_router(system.router)
