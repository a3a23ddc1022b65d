"""Night audit router: full run plus the individual steps for re-runs."""

from datetime import date

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from pms.database import get_db
from pms.dependencies import Caller, require_role
from pms.services.business_date_service import business_date_service
from pms.services.night_audit_service import night_audit_service

router = APIRouter()

AUDIT_ROLES = ("admin", "manager", "accountant")


class AuditRequest(BaseModel):
    business_date: date | None = None


async def _target_date(req: AuditRequest, db: AsyncSession) -> date:
    if req.business_date is not None:
        return req.business_date
    return await business_date_service.get(db)


@router.post("/run")
async def run_night_audit(
    req: AuditRequest,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_role("admin", "manager")),
):
    """Close the business date. Defaults to the current one."""
    business_date = await _target_date(req, db)
    return await night_audit_service.run_night_audit(db, business_date, caller.user_id)


@router.get("/runs/{business_date}")
async def get_run(
    business_date: date,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_role(*AUDIT_ROLES)),
):
    run = await night_audit_service.get_run(db, business_date)
    if not run:
        raise HTTPException(status_code=404, detail=f"No night audit run for {business_date}")
    return {
        "business_date": run.business_date.isoformat(),
        "status": run.status,
        "state": run.state,
        "steps_completed": run.steps_completed or [],
        "charges_posted": run.charges_posted,
        "discrepancies": run.discrepancies or [],
        "error": run.error,
        "attempts": run.attempts,
        "started_at": run.started_at.isoformat() if run.started_at else None,
        "finished_at": run.finished_at.isoformat() if run.finished_at else None,
    }


@router.post("/room-charges")
async def post_room_charges(
    req: AuditRequest,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_role(*AUDIT_ROLES)),
):
    business_date = await _target_date(req, db)
    return await night_audit_service.post_daily_room_charges(db, business_date, caller.user_id)


@router.post("/revenue-report")
async def revenue_report(
    req: AuditRequest,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_role(*AUDIT_ROLES)),
):
    business_date = await _target_date(req, db)
    return await night_audit_service.generate_daily_revenue_report(db, business_date)


@router.post("/discrepancies")
async def discrepancies(
    req: AuditRequest,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_role(*AUDIT_ROLES)),
):
    business_date = await _target_date(req, db)
    issues = await night_audit_service.flag_discrepancies(db, business_date)
    return {"business_date": business_date.isoformat(), "discrepancies": issues}
