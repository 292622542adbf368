"""
Candidate Vetting - API Endpoints

Pipeline endpoints under /api/v1/admin/vetting.

Endpoints:
A) POST  /                              - Promote a survey response into a vetting
B) GET   /                              - Pipeline list (progress + urgency)
C) GET   /{id}                          - Vetting detail
D) PATCH /{id}/stage                    - Advance stage (gate + compare-and-set + audit)
E) PATCH /{id}/sections/{section_id}    - Edit report section
F) POST  /{id}/sections/{section_id}/assign, POST /{id}/sections/{section_id}/accept-draft
G) PATCH /{id}/interview, PUT /{id}/recommendation
H) GET/POST /{id}/votes, POST /{id}/votes/finalize
I) GET/POST /{id}/opponents, PATCH/DELETE /{id}/opponents/{opponent_id}
J) GET/POST /{id}/audit                 - Latest audit / manual trigger
"""
import logging
from datetime import datetime
from typing import Dict, List, Literal, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..auth import forbidden, get_vetting_context
from ..database import get_db
from ..services.audit.runner import AuditTaskRegistry, get_audit_registry
from ..services.vetting import permissions
from ..services.vetting.permissions import VettingContext
from ..services.vetting.stage_service import StageAdvanceOutcome, StageAdvanceService
from ..services.vetting.vetting_service import (
    VettingService, VettingServiceError,
    serialize_audit, serialize_opponent, serialize_section, serialize_vetting,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/admin/vetting", tags=["Candidate Vetting"])

UNEXPECTED_ERROR = {"error": "An unexpected error occurred"}


def _http_error(e: VettingServiceError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.message)


def _unexpected(operation: str, vetting_id: Optional[str] = None) -> JSONResponse:
    logger.exception(f"Unhandled error in {operation} (vetting={vetting_id})")
    return JSONResponse(status_code=500, content=UNEXPECTED_ERROR)


# =============================================================================
# REQUEST MODELS
# =============================================================================

class CreateVettingRequest(BaseModel):
    """Promote a submitted candidate survey response."""
    candidate_response_id: str = Field(..., description="Survey response being promoted")
    candidate_name: str = Field(..., description="Candidate full name")
    candidate_office: Optional[str] = Field(None, description="Office sought")
    candidate_state: Optional[str] = Field(None, description="Two-letter state code")
    candidate_district: Optional[str] = None
    candidate_party: Optional[str] = None
    committee_id: Optional[str] = None
    election_deadline_id: Optional[str] = None
    metadata: Optional[dict] = Field(None, description="Free-form; known_urls seeds the digital audit")


class StageAdvanceRequest(BaseModel):
    """Request to move a vetting to a later stage."""
    stage: str = Field(..., description="Target stage, e.g. auto_audit | research | board_vote")


class UpdateSectionRequest(BaseModel):
    data: Optional[dict] = Field(None, description="Section content")
    status: Optional[str] = Field(None, description="not_started | assigned | in_progress | completed | needs_revision")
    notes: Optional[str] = None


class AssignSectionRequest(BaseModel):
    committee_member_id: str = Field(..., description="Committee member to assign")


class AcceptDraftRequest(BaseModel):
    merge_strategy: Literal["replace", "merge"] = Field(
        "replace", description="replace overwrites data; merge deep-merges the draft over it"
    )


class InterviewRequest(BaseModel):
    interview_date: Optional[datetime] = None
    interview_notes: Optional[str] = None
    interviewers: Optional[List[str]] = Field(None, description="Member ids present at the interview")


class RecommendationRequest(BaseModel):
    recommendation: str = Field(..., description="endorse | do_not_endorse | no_position")
    notes: Optional[str] = None


class BoardVoteRequest(BaseModel):
    vote: str = Field(..., description="vote_endorse | vote_do_not_endorse | vote_no_position | vote_abstain")
    notes: Optional[str] = None


class OpponentRequest(BaseModel):
    name: str = Field(..., description="Opponent name")
    party: Optional[str] = None
    is_incumbent: bool = False
    background: Optional[str] = None
    social_links: Optional[Dict[str, str]] = Field(None, description="platform -> URL")


class UpdateOpponentRequest(BaseModel):
    """Only fields present in the body are changed."""
    name: Optional[str] = None
    party: Optional[str] = None
    is_incumbent: Optional[bool] = None
    background: Optional[str] = None
    social_links: Optional[Dict[str, str]] = None


class TriggerAuditRequest(BaseModel):
    force: bool = Field(False, description="Re-run even if an audit has completed")


# =============================================================================
# CASES
# =============================================================================

@router.post("", status_code=201)
async def create_vetting(
    request: CreateVettingRequest,
    ctx: VettingContext = Depends(get_vetting_context),
    db: Session = Depends(get_db),
):
    if not permissions.can_create_vetting(ctx):
        raise forbidden()
    try:
        case = VettingService(db).create_vetting(
            candidate_response_id=request.candidate_response_id,
            candidate_name=request.candidate_name,
            candidate_office=request.candidate_office,
            candidate_state=request.candidate_state,
            candidate_district=request.candidate_district,
            candidate_party=request.candidate_party,
            committee_id=request.committee_id or ctx.committee_id,
            election_deadline_id=request.election_deadline_id,
            metadata=request.metadata,
        )
        return {"vetting": serialize_vetting(case, detail=True)}
    except VettingServiceError as e:
        raise _http_error(e)
    except Exception:
        return _unexpected("create_vetting")


@router.get("")
async def list_pipeline(
    stage: Optional[str] = Query(None, description="Filter by stage"),
    state: Optional[str] = Query(None, description="Filter by candidate state"),
    urgency: Optional[str] = Query(None, description="normal | amber | red"),
    ctx: VettingContext = Depends(get_vetting_context),
    db: Session = Depends(get_db),
):
    if not permissions.can_view_pipeline(ctx):
        raise forbidden()
    try:
        rows = VettingService(db).list_pipeline(stage=stage, state=state, urgency=urgency)
    except VettingServiceError as e:
        raise _http_error(e)
    return {"vettings": rows, "total": len(rows)}


@router.get("/{vetting_id}")
async def get_vetting(
    vetting_id: str,
    ctx: VettingContext = Depends(get_vetting_context),
    db: Session = Depends(get_db),
):
    if not permissions.can_view_pipeline(ctx):
        raise forbidden()
    service = VettingService(db)
    try:
        case = service.get_vetting(vetting_id)
        latest_audit = service.get_latest_audit(vetting_id)
    except VettingServiceError as e:
        raise _http_error(e)
    result = serialize_vetting(case, detail=True)
    result["latest_audit"] = serialize_audit(latest_audit)
    return {"vetting": result}


# =============================================================================
# STAGE ADVANCE
# =============================================================================

@router.patch("/{vetting_id}/stage")
async def advance_stage(
    vetting_id: str,
    request: StageAdvanceRequest,
    background_tasks: BackgroundTasks,
    ctx: VettingContext = Depends(get_vetting_context),
    db: Session = Depends(get_db),
    registry: AuditTaskRegistry = Depends(get_audit_registry),
):
    """
    Advance a vetting's stage.

    Status mapping:
    - 200 {"vetting": ...}
    - 400 gate rejection, 404 unknown vetting
    - 409 concurrent modification (caller refreshes and retries)
    - 500 audit record could not be created; stage rolled back
    """
    if not permissions.can_create_vetting(ctx):
        raise forbidden()

    try:
        result = StageAdvanceService(db).advance_stage(vetting_id, request.stage, ctx.member_id)
    except Exception:
        return _unexpected("advance_stage", vetting_id)

    if result.outcome == StageAdvanceOutcome.NOT_FOUND:
        return JSONResponse(status_code=404, content={"error": "Vetting not found"})
    if result.outcome == StageAdvanceOutcome.REJECTED:
        return JSONResponse(status_code=400, content={"error": "Cannot advance stage", "reason": result.reason})
    if result.outcome == StageAdvanceOutcome.CONFLICT:
        return JSONResponse(
            status_code=409,
            content={"error": "Stage was modified by another user. Please refresh and try again."},
        )
    if result.outcome == StageAdvanceOutcome.AUDIT_BOOTSTRAP_FAILED:
        return JSONResponse(
            status_code=500,
            content={"error": "Stage advanced but audit initialization failed. Stage rolled back."},
        )

    if result.audit_id:
        registry.schedule(background_tasks, vetting_id, result.audit_id, ctx.member_id)

    return {"vetting": serialize_vetting(result.case)}


# =============================================================================
# REPORT SECTIONS
# =============================================================================

@router.patch("/{vetting_id}/sections/{section_id}")
async def update_section(
    vetting_id: str,
    section_id: str,
    request: UpdateSectionRequest,
    ctx: VettingContext = Depends(get_vetting_context),
    db: Session = Depends(get_db),
):
    service = VettingService(db)
    try:
        section = service.get_section(vetting_id, section_id)
        assigned = [a.committee_member_id for a in section.assignments]
        if not permissions.can_edit_section(ctx, assigned):
            raise forbidden()
        section = service.update_section(
            vetting_id, section_id,
            data=request.data, status=request.status, notes=request.notes,
        )
        return {"section": serialize_section(section)}
    except VettingServiceError as e:
        raise _http_error(e)
    except HTTPException:
        raise
    except Exception:
        return _unexpected("update_section", vetting_id)


@router.post("/{vetting_id}/sections/{section_id}/accept-draft")
async def accept_draft(
    vetting_id: str,
    section_id: str,
    request: Optional[AcceptDraftRequest] = None,
    ctx: VettingContext = Depends(get_vetting_context),
    db: Session = Depends(get_db),
):
    service = VettingService(db)
    merge_strategy = request.merge_strategy if request else "replace"
    try:
        section = service.get_section(vetting_id, section_id)
        assigned = [a.committee_member_id for a in section.assignments]
        if not permissions.can_edit_section(ctx, assigned):
            raise forbidden()
        section = service.accept_draft(vetting_id, section_id, merge_strategy)
        return {"section": serialize_section(section)}
    except VettingServiceError as e:
        raise _http_error(e)
    except HTTPException:
        raise
    except Exception:
        return _unexpected("accept_draft", vetting_id)


@router.post("/{vetting_id}/sections/{section_id}/assign")
async def assign_section(
    vetting_id: str,
    section_id: str,
    request: AssignSectionRequest,
    ctx: VettingContext = Depends(get_vetting_context),
    db: Session = Depends(get_db),
):
    if not permissions.can_assign_sections(ctx):
        raise forbidden()
    try:
        section = VettingService(db).assign_section(
            vetting_id, section_id, request.committee_member_id, assigned_by_id=ctx.member_id,
        )
        return {"section": serialize_section(section)}
    except VettingServiceError as e:
        raise _http_error(e)
    except Exception:
        return _unexpected("assign_section", vetting_id)


# =============================================================================
# INTERVIEW / RECOMMENDATION
# =============================================================================

@router.patch("/{vetting_id}/interview")
async def record_interview(
    vetting_id: str,
    request: InterviewRequest,
    ctx: VettingContext = Depends(get_vetting_context),
    db: Session = Depends(get_db),
):
    if not permissions.can_record_interview(ctx):
        raise forbidden()
    try:
        case = VettingService(db).record_interview(
            vetting_id,
            interview_date=request.interview_date,
            interview_notes=request.interview_notes,
            interviewers=request.interviewers,
        )
        return {"vetting": serialize_vetting(case)}
    except VettingServiceError as e:
        raise _http_error(e)
    except Exception:
        return _unexpected("record_interview", vetting_id)


@router.put("/{vetting_id}/recommendation")
async def set_recommendation(
    vetting_id: str,
    request: RecommendationRequest,
    ctx: VettingContext = Depends(get_vetting_context),
    db: Session = Depends(get_db),
):
    if not permissions.can_make_recommendation(ctx):
        raise forbidden()
    try:
        case = VettingService(db).set_recommendation(vetting_id, request.recommendation, request.notes)
        return {"vetting": serialize_vetting(case)}
    except VettingServiceError as e:
        raise _http_error(e)
    except Exception:
        return _unexpected("set_recommendation", vetting_id)


# =============================================================================
# BOARD VOTES
# =============================================================================

@router.get("/{vetting_id}/votes")
async def list_votes(
    vetting_id: str,
    ctx: VettingContext = Depends(get_vetting_context),
    db: Session = Depends(get_db),
):
    if not permissions.can_view_pipeline(ctx):
        raise forbidden()
    try:
        return VettingService(db).list_votes(vetting_id)
    except VettingServiceError as e:
        raise _http_error(e)


@router.post("/{vetting_id}/votes")
async def cast_board_vote(
    vetting_id: str,
    request: BoardVoteRequest,
    ctx: VettingContext = Depends(get_vetting_context),
    db: Session = Depends(get_db),
):
    if not permissions.can_cast_board_vote(ctx):
        raise forbidden("Forbidden: only national board members can vote")
    try:
        ballot = VettingService(db).cast_board_vote(vetting_id, ctx.member_id, request.vote, request.notes)
        return {"vote": {"voter_id": ballot.voter_id, "vote": ballot.vote.value, "notes": ballot.notes}}
    except VettingServiceError as e:
        raise _http_error(e)
    except Exception:
        return _unexpected("cast_board_vote", vetting_id)


@router.post("/{vetting_id}/votes/finalize")
async def finalize_votes(
    vetting_id: str,
    ctx: VettingContext = Depends(get_vetting_context),
    db: Session = Depends(get_db),
):
    if not permissions.can_cast_board_vote(ctx):
        raise forbidden()
    try:
        return VettingService(db).finalize_votes(vetting_id)
    except VettingServiceError as e:
        raise _http_error(e)
    except Exception:
        return _unexpected("finalize_votes", vetting_id)


# =============================================================================
# OPPONENTS
# =============================================================================

@router.get("/{vetting_id}/opponents")
async def list_opponents(
    vetting_id: str,
    ctx: VettingContext = Depends(get_vetting_context),
    db: Session = Depends(get_db),
):
    if not permissions.can_view_pipeline(ctx):
        raise forbidden()
    try:
        opponents = VettingService(db).list_opponents(vetting_id)
    except VettingServiceError as e:
        raise _http_error(e)
    return {"opponents": [serialize_opponent(o) for o in opponents]}


@router.post("/{vetting_id}/opponents", status_code=201)
async def add_opponent(
    vetting_id: str,
    request: OpponentRequest,
    ctx: VettingContext = Depends(get_vetting_context),
    db: Session = Depends(get_db),
):
    if not permissions.can_manage_opponents(ctx):
        raise forbidden()
    try:
        opponent = VettingService(db).add_opponent(
            vetting_id,
            name=request.name,
            party=request.party,
            is_incumbent=request.is_incumbent,
            background=request.background,
            social_links=request.social_links,
        )
        return {"opponent": serialize_opponent(opponent)}
    except VettingServiceError as e:
        raise _http_error(e)
    except Exception:
        return _unexpected("add_opponent", vetting_id)


@router.patch("/{vetting_id}/opponents/{opponent_id}")
async def update_opponent(
    vetting_id: str,
    opponent_id: str,
    request: UpdateOpponentRequest,
    ctx: VettingContext = Depends(get_vetting_context),
    db: Session = Depends(get_db),
):
    if not permissions.can_manage_opponents(ctx):
        raise forbidden()
    try:
        opponent = VettingService(db).update_opponent(
            vetting_id, opponent_id, request.model_dump(exclude_unset=True)
        )
        return {"opponent": serialize_opponent(opponent)}
    except VettingServiceError as e:
        raise _http_error(e)
    except Exception:
        return _unexpected("update_opponent", vetting_id)


@router.delete("/{vetting_id}/opponents/{opponent_id}")
async def delete_opponent(
    vetting_id: str,
    opponent_id: str,
    ctx: VettingContext = Depends(get_vetting_context),
    db: Session = Depends(get_db),
):
    if not permissions.can_delete_opponent(ctx):
        raise forbidden()
    try:
        VettingService(db).delete_opponent(vetting_id, opponent_id)
        return {"success": True}
    except VettingServiceError as e:
        raise _http_error(e)
    except Exception:
        return _unexpected("delete_opponent", vetting_id)


# =============================================================================
# DIGITAL PRESENCE AUDIT
# =============================================================================

@router.get("/{vetting_id}/audit")
async def get_audit(
    vetting_id: str,
    ctx: VettingContext = Depends(get_vetting_context),
    db: Session = Depends(get_db),
):
    if not permissions.can_view_pipeline(ctx):
        raise forbidden()
    try:
        audit = VettingService(db).get_latest_audit(vetting_id)
    except VettingServiceError as e:
        raise _http_error(e)
    return {"audit": serialize_audit(audit, include_platforms=True)}


@router.post("/{vetting_id}/audit", status_code=202)
async def trigger_audit(
    vetting_id: str,
    background_tasks: BackgroundTasks,
    request: Optional[TriggerAuditRequest] = None,
    ctx: VettingContext = Depends(get_vetting_context),
    db: Session = Depends(get_db),
    registry: AuditTaskRegistry = Depends(get_audit_registry),
):
    if not permissions.can_create_vetting(ctx):
        raise forbidden()
    force = request.force if request else False
    try:
        audit = VettingService(db).trigger_audit(vetting_id, ctx.member_id, force=force)
    except VettingServiceError as e:
        content = {"error": e.message}
        if "audit_id" in e.extra:
            content["audit_id"] = e.extra["audit_id"]
        return JSONResponse(status_code=e.status_code, content=content)
    except Exception:
        return _unexpected("trigger_audit", vetting_id)

    registry.schedule(background_tasks, vetting_id, audit.id, ctx.member_id)
    return {"audit_id": audit.id, "status": "pending"}
