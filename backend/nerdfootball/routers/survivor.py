"""Survivor admin endpoints: member status, picks, overrides, recompute and audit."""

import secrets

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status

from nerdfootball.config import settings
from nerdfootball.models.survivor import (
    AdminActionRequest,
    EliminateRequest,
    OverrideRequest,
    ProvisionMemberRequest,
    SurvivorPickRequest,
    SurvivorRecord,
)
from nerdfootball.services import audit_service, survivor_service
from nerdfootball.workers.survivor_resolver import recompute_all


async def verify_admin_key(x_admin_key: str = Header(...)):
    """Verify the shared admin key sent by the admin console and tools."""
    if not settings.ADMIN_API_KEY:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin API key not configured on server.",
        )
    if not secrets.compare_digest(x_admin_key, settings.ADMIN_API_KEY):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid admin API key.",
        )


router = APIRouter(
    prefix="/api/survivor",
    tags=["survivor"],
    dependencies=[Depends(verify_admin_key)],
)


@router.post("/members", status_code=status.HTTP_201_CREATED)
async def provision_member(body: ProvisionMemberRequest):
    member = await survivor_service.provision_member(body.user_id, body.display_name, body.email)
    return member.model_dump()


@router.get("/members/{user_id}/status")
async def get_status(user_id: str):
    """Stored vs freshly computed status."""
    view = await survivor_service.get_status_view(user_id)
    return view.model_dump()


@router.put("/members/{user_id}/picks/{week}")
async def submit_pick(user_id: str, week: int, body: SurvivorPickRequest):
    record = await survivor_service.submit_pick(user_id, week, body.team)
    return _record_response(user_id, record)


@router.delete("/members/{user_id}/picks/{week}")
async def clear_pick(user_id: str, week: int):
    record = await survivor_service.clear_pick(user_id, week)
    return _record_response(user_id, record)


@router.post("/members/{user_id}/override")
async def set_override(user_id: str, body: OverrideRequest):
    record = await survivor_service.set_override(
        user_id,
        alive=body.alive,
        elimination_week=body.elimination_week,
        reason=body.reason,
        admin_id=body.admin_id,
    )
    return _record_response(user_id, record)


@router.delete("/members/{user_id}/override")
async def clear_override(user_id: str, admin_id: str = Query(...)):
    outcome = await survivor_service.clear_override(user_id, admin_id)
    return {
        "user_id": user_id,
        "action": outcome.action,
        "written": outcome.written,
        "computed": outcome.status.model_dump() if outcome.status else None,
    }


@router.post("/members/{user_id}/eliminate")
async def force_eliminate(user_id: str, body: EliminateRequest):
    record = await survivor_service.force_eliminate(user_id, body.week, body.admin_id, body.reason)
    return _record_response(user_id, record)


@router.post("/members/{user_id}/remove")
async def remove_from_survivor(user_id: str, body: AdminActionRequest):
    member = await survivor_service.remove_from_survivor(user_id, body.admin_id)
    return member.model_dump()


@router.post("/members/{user_id}/import-legacy-picks")
async def import_legacy_picks(user_id: str):
    return await survivor_service.import_legacy_picks(user_id)


@router.post("/recompute")
async def recompute(through_week: int = Query(None, ge=0)):
    """Recompute weeks 1..through_week for every member; defaults to the current week."""
    report = await recompute_all(through_week)
    return report.model_dump()


@router.get("/audit")
async def audit(through_week: int = Query(None, ge=0)):
    report = await audit_service.build_verification_report(through_week)
    return report.model_dump()


def _record_response(user_id: str, record: SurvivorRecord) -> dict:
    return {"user_id": user_id, **record.to_doc()}
