"""
Candidate Vetting - Committee and Election Deadline Endpoints

Committee membership decides who can work a vetting; election deadlines
drive pipeline urgency. Management is restricted to national leadership.
"""
import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..auth import forbidden, get_vetting_context
from ..database import get_db
from ..services.vetting import permissions
from ..services.vetting.permissions import VettingContext
from ..services.vetting.progress import calculate_urgency
from ..services.vetting.vetting_service import VettingService, VettingServiceError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/admin/vetting", tags=["Vetting Committee"])


class CreateCommitteeRequest(BaseModel):
    name: str = Field(..., description="Committee display name")


class AddMemberRequest(BaseModel):
    contact_id: str = Field(..., description="Member id from the identity provider")
    role: str = Field("committee_member", description="chair | committee_member")


class CreateDeadlineRequest(BaseModel):
    state_code: str = Field(..., description="Two-letter state code")
    cycle_year: int = Field(..., description="Election cycle year")
    office_type: str = Field(..., description="e.g. State Senate")
    primary_date: Optional[date] = None
    primary_runoff_date: Optional[date] = None
    general_date: Optional[date] = None
    general_runoff_date: Optional[date] = None
    filing_deadline: Optional[date] = None
    notes: Optional[str] = None


class UpdateDeadlineRequest(BaseModel):
    """Only fields present in the body are changed."""
    state_code: Optional[str] = None
    cycle_year: Optional[int] = None
    office_type: Optional[str] = None
    primary_date: Optional[date] = None
    primary_runoff_date: Optional[date] = None
    general_date: Optional[date] = None
    general_runoff_date: Optional[date] = None
    filing_deadline: Optional[date] = None
    notes: Optional[str] = None


def _member_dict(member) -> dict:
    return {
        "id": member.id,
        "committee_id": member.committee_id,
        "contact_id": member.contact_id,
        "role": member.role.value,
        "is_active": member.is_active,
    }


def _deadline_dict(deadline) -> dict:
    return {
        "id": deadline.id,
        "state_code": deadline.state_code,
        "cycle_year": deadline.cycle_year,
        "office_type": deadline.office_type,
        "primary_date": deadline.primary_date.isoformat() if deadline.primary_date else None,
        "primary_runoff_date": deadline.primary_runoff_date.isoformat() if deadline.primary_runoff_date else None,
        "general_date": deadline.general_date.isoformat() if deadline.general_date else None,
        "general_runoff_date": deadline.general_runoff_date.isoformat() if deadline.general_runoff_date else None,
        "filing_deadline": deadline.filing_deadline.isoformat() if deadline.filing_deadline else None,
        "notes": deadline.notes,
        "urgency": calculate_urgency(deadline.primary_date),
    }


# =============================================================================
# COMMITTEE
# =============================================================================

@router.get("/committee")
async def list_committees(
    ctx: VettingContext = Depends(get_vetting_context),
    db: Session = Depends(get_db),
):
    if not permissions.can_view_pipeline(ctx):
        raise forbidden()
    committees = VettingService(db).list_committees()
    return {
        "committees": [
            {
                "id": c.id,
                "name": c.name,
                "members": [_member_dict(m) for m in c.members if m.is_active],
            }
            for c in committees
        ]
    }


@router.post("/committee", status_code=201)
async def create_committee(
    request: CreateCommitteeRequest,
    ctx: VettingContext = Depends(get_vetting_context),
    db: Session = Depends(get_db),
):
    if not permissions.can_manage_committee(ctx):
        raise forbidden()
    try:
        committee = VettingService(db).create_committee(request.name)
        return {"committee": {"id": committee.id, "name": committee.name}}
    except VettingServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception:
        logger.exception("Unhandled error in create_committee")
        return JSONResponse(status_code=500, content={"error": "An unexpected error occurred"})


@router.post("/committee/{committee_id}/members", status_code=201)
async def add_committee_member(
    committee_id: str,
    request: AddMemberRequest,
    ctx: VettingContext = Depends(get_vetting_context),
    db: Session = Depends(get_db),
):
    if not permissions.can_manage_committee(ctx):
        raise forbidden()
    try:
        member = VettingService(db).add_committee_member(committee_id, request.contact_id, request.role)
        return {"member": _member_dict(member)}
    except VettingServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception:
        logger.exception(f"Unhandled error in add_committee_member (committee={committee_id})")
        return JSONResponse(status_code=500, content={"error": "An unexpected error occurred"})


@router.delete("/committee/members/{member_id}")
async def remove_committee_member(
    member_id: str,
    ctx: VettingContext = Depends(get_vetting_context),
    db: Session = Depends(get_db),
):
    if not permissions.can_manage_committee(ctx):
        raise forbidden()
    try:
        member = VettingService(db).deactivate_committee_member(member_id)
        return {"member": _member_dict(member)}
    except VettingServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# =============================================================================
# ELECTION DEADLINES
# =============================================================================

@router.get("/deadlines")
async def list_deadlines(
    state_code: Optional[str] = Query(None, description="Two-letter state code"),
    cycle_year: Optional[int] = Query(None, description="Election cycle year"),
    ctx: VettingContext = Depends(get_vetting_context),
    db: Session = Depends(get_db),
):
    if not permissions.can_view_pipeline(ctx):
        raise forbidden()
    deadlines = VettingService(db).list_deadlines(state_code=state_code, cycle_year=cycle_year)
    return {"deadlines": [_deadline_dict(d) for d in deadlines]}


@router.post("/deadlines", status_code=201)
async def create_deadline(
    request: CreateDeadlineRequest,
    ctx: VettingContext = Depends(get_vetting_context),
    db: Session = Depends(get_db),
):
    if not permissions.can_manage_deadlines(ctx):
        raise forbidden()
    try:
        deadline = VettingService(db).create_deadline(**request.model_dump())
        return {"deadline": _deadline_dict(deadline)}
    except VettingServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception:
        logger.exception("Unhandled error in create_deadline")
        return JSONResponse(status_code=500, content={"error": "An unexpected error occurred"})


@router.patch("/deadlines/{deadline_id}")
async def update_deadline(
    deadline_id: str,
    request: UpdateDeadlineRequest,
    ctx: VettingContext = Depends(get_vetting_context),
    db: Session = Depends(get_db),
):
    if not permissions.can_manage_deadlines(ctx):
        raise forbidden()
    try:
        deadline = VettingService(db).update_deadline(deadline_id, request.model_dump(exclude_unset=True))
        return {"deadline": _deadline_dict(deadline)}
    except VettingServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception:
        logger.exception(f"Unhandled error in update_deadline (deadline={deadline_id})")
        return JSONResponse(status_code=500, content={"error": "An unexpected error occurred"})


@router.delete("/deadlines/{deadline_id}")
async def delete_deadline(
    deadline_id: str,
    ctx: VettingContext = Depends(get_vetting_context),
    db: Session = Depends(get_db),
):
    if not permissions.can_manage_deadlines(ctx):
        raise forbidden()
    try:
        VettingService(db).delete_deadline(deadline_id)
        return {"success": True}
    except VettingServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception:
        logger.exception(f"Unhandled error in delete_deadline (deadline={deadline_id})")
        return JSONResponse(status_code=500, content={"error": "An unexpected error occurred"})
