"""
Candidate Vetting - Workflow Service

Case lifecycle operations other than stage advance:
- Promote a survey response into a vetting case (sections seeded)
- Pipeline listing with progress and urgency
- Report section edits, assignments and AI draft acceptance
- Interview, recommendation, board votes and finalization
- Opponent CRUD, manual audit trigger
- Committee membership and election deadlines

Not-found / invalid-input / conflict outcomes raise VettingServiceError
with the HTTP status the router should answer with.
"""
import copy
import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...models.db_models import (
    VettingCaseDB, ReportSectionDB, SectionAssignmentDB, OpponentDB,
    BoardVoteDB, CommitteeDB, CommitteeMemberDB, ElectionDeadlineDB,
    DigitalAuditDB, VettingStage, SectionStatus, Recommendation,
    BoardVoteChoice, AuditStatus, CommitteeRole, ACTIVE_AUDIT_STATUSES,
)
from ..audit.records import AuditRecordStore
from .progress import calculate_progress, calculate_urgency, initialize_section_states, is_valid_section_transition
from .votes import tally_votes, endorsement_result_from_tally

logger = logging.getLogger(__name__)


class VettingServiceError(Exception):
    """Raised when a vetting operation cannot be applied."""

    def __init__(self, message: str, status_code: int = 400, **extra: Any):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.extra = extra


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: Optional[Any]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _enum_value(value: Optional[Any]) -> Optional[str]:
    return value.value if value is not None else None


def _deep_merge(target: Dict[str, Any], source: Dict[str, Any]) -> Dict[str, Any]:
    """Nested dicts merge recursively; any other value in source replaces target's."""
    result = copy.deepcopy(target)
    for key, value in source.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


OPPONENT_FIELDS = ("name", "party", "is_incumbent", "background", "social_links")

DEADLINE_FIELDS = (
    "state_code", "cycle_year", "office_type", "primary_date", "primary_runoff_date",
    "general_date", "general_runoff_date", "filing_deadline", "notes",
)


# =============================================================================
# SERIALIZATION
# =============================================================================

def serialize_section(section: ReportSectionDB) -> Dict[str, Any]:
    return {
        "id": section.id,
        "section": section.section.value,
        "status": section.status.value,
        "data": section.data or {},
        "ai_draft_data": section.ai_draft_data,
        "notes": section.notes,
        "assigned_member_ids": [a.committee_member_id for a in section.assignments],
        "updated_at": _iso(section.updated_at),
    }


def serialize_audit(audit: Optional[DigitalAuditDB], include_platforms: bool = False) -> Optional[Dict[str, Any]]:
    if audit is None:
        return None
    result = {
        "id": audit.id,
        "vetting_id": audit.vetting_id,
        "status": audit.status.value,
        "started_at": _iso(audit.started_at),
        "completed_at": _iso(audit.completed_at),
        "triggered_by_id": audit.triggered_by_id,
        "error_message": audit.error_message,
        "candidate_overall_score": audit.candidate_overall_score,
        "candidate_grade": audit.candidate_grade,
        "candidate_score_breakdown": audit.candidate_score_breakdown,
        "candidate_risks": audit.candidate_risks,
        "opponent_audits": audit.opponent_audits,
        "created_at": _iso(audit.created_at),
    }
    if include_platforms:
        result["discovery_log"] = audit.discovery_log
        result["platforms"] = [
            {
                "entity_type": p.entity_type,
                "entity_name": p.entity_name,
                "platform_type": p.platform_type,
                "platform_name": p.platform_name,
                "platform_category": p.platform_category,
                "platform_url": p.platform_url,
                "confidence_score": p.confidence_score,
                "score_presence": p.score_presence,
                "score_consistency": p.score_consistency,
                "score_quality": p.score_quality,
                "score_accessibility": p.score_accessibility,
                "total_score": p.total_score,
                "grade": p.grade,
            }
            for p in audit.platforms
        ]
    return result


def serialize_opponent(opponent: OpponentDB) -> Dict[str, Any]:
    return {
        "id": opponent.id,
        "name": opponent.name,
        "party": opponent.party,
        "is_incumbent": opponent.is_incumbent,
        "background": opponent.background,
        "social_links": opponent.social_links or {},
    }


def serialize_vetting(case: VettingCaseDB, detail: bool = False) -> Dict[str, Any]:
    """Case summary; detail=True adds sections, opponents and votes."""
    progress = calculate_progress([(s.section, s.status) for s in case.sections])
    deadline = case.election_deadline
    result = {
        "id": case.id,
        "candidate_response_id": case.candidate_response_id,
        "committee_id": case.committee_id,
        "election_deadline_id": case.election_deadline_id,
        "candidate_name": case.candidate_name,
        "candidate_office": case.candidate_office,
        "candidate_state": case.candidate_state,
        "candidate_district": case.candidate_district,
        "candidate_party": case.candidate_party,
        "stage": case.stage.value,
        "recommendation": _enum_value(case.recommendation),
        "recommendation_notes": case.recommendation_notes,
        "recommended_at": _iso(case.recommended_at),
        "endorsement_result": _enum_value(case.endorsement_result),
        "endorsed_at": _iso(case.endorsed_at),
        "interview_date": _iso(case.interview_date),
        "interview_notes": case.interview_notes,
        "interviewers": case.interviewers or [],
        "metadata": case.case_metadata or {},
        "progress": progress.to_dict(),
        "urgency": calculate_urgency(deadline.primary_date if deadline else None),
        "created_at": _iso(case.created_at),
        "updated_at": _iso(case.updated_at),
    }
    if detail:
        result["sections"] = [serialize_section(s) for s in case.sections]
        result["opponents"] = [serialize_opponent(o) for o in case.opponents]
        result["votes"] = [
            {"voter_id": v.voter_id, "vote": v.vote.value, "notes": v.notes, "voted_at": _iso(v.voted_at)}
            for v in case.votes
        ]
    return result


# =============================================================================
# SERVICE
# =============================================================================

class VettingService:
    """
    Vetting workflow operations.

    Usage:
        service = VettingService(db)
        case = service.create_vetting(candidate_response_id=..., candidate_name=...)
    """

    def __init__(self, db: Session):
        self.db = db
        self.audits = AuditRecordStore(db)

    # -------------------------------------------------------------------------
    # Cases
    # -------------------------------------------------------------------------

    def create_vetting(
        self,
        candidate_response_id: str,
        candidate_name: str,
        candidate_office: Optional[str] = None,
        candidate_state: Optional[str] = None,
        candidate_district: Optional[str] = None,
        candidate_party: Optional[str] = None,
        committee_id: Optional[str] = None,
        election_deadline_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> VettingCaseDB:
        """Promote a submitted survey response into a case at SURVEY_SUBMITTED."""
        if not candidate_name or not candidate_name.strip():
            raise VettingServiceError("Candidate name is required", 400)

        existing = self.db.query(VettingCaseDB).filter(
            VettingCaseDB.candidate_response_id == candidate_response_id
        ).first()
        if existing:
            raise VettingServiceError(
                "A vetting already exists for this candidate response", 409, vetting_id=existing.id
            )
        if committee_id and self.db.query(CommitteeDB.id).filter(CommitteeDB.id == committee_id).first() is None:
            raise VettingServiceError("Committee not found", 404)
        if election_deadline_id and self.db.query(ElectionDeadlineDB.id).filter(
            ElectionDeadlineDB.id == election_deadline_id
        ).first() is None:
            raise VettingServiceError("Election deadline not found", 404)

        case = VettingCaseDB(
            id=str(uuid4()),
            candidate_response_id=candidate_response_id,
            committee_id=committee_id,
            election_deadline_id=election_deadline_id,
            candidate_name=candidate_name.strip(),
            candidate_office=candidate_office,
            candidate_state=candidate_state.upper() if candidate_state else None,
            candidate_district=candidate_district,
            candidate_party=candidate_party,
            stage=VettingStage.SURVEY_SUBMITTED,
            interviewers=[],
            case_metadata=metadata or {},
        )
        for section, status in initialize_section_states():
            case.sections.append(ReportSectionDB(id=str(uuid4()), section=section, status=status, data={}))

        self.db.add(case)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise VettingServiceError("A vetting already exists for this candidate response", 409)

        logger.info(f"Created vetting {case.id} for {case.candidate_name}")
        return case

    def get_vetting(self, case_id: str) -> VettingCaseDB:
        case = self.db.query(VettingCaseDB).filter(VettingCaseDB.id == case_id).first()
        if case is None:
            raise VettingServiceError("Vetting not found", 404)
        return case

    def list_pipeline(
        self,
        stage: Optional[str] = None,
        state: Optional[str] = None,
        urgency: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Pipeline rows with progress and urgency, oldest first."""
        query = self.db.query(VettingCaseDB)
        if stage:
            try:
                query = query.filter(VettingCaseDB.stage == VettingStage(stage))
            except ValueError:
                raise VettingServiceError(f"Unknown stage: {stage}", 400)
        if state:
            query = query.filter(VettingCaseDB.candidate_state == state.upper())

        rows = [serialize_vetting(case) for case in query.order_by(VettingCaseDB.created_at.asc()).all()]
        if urgency:
            rows = [row for row in rows if row["urgency"] == urgency]
        return rows

    def get_latest_audit(self, case_id: str) -> Optional[DigitalAuditDB]:
        self.get_vetting(case_id)
        return self.audits.latest_for_vetting(case_id)

    # -------------------------------------------------------------------------
    # Report sections
    # -------------------------------------------------------------------------

    def get_section(self, case_id: str, section_id: str) -> ReportSectionDB:
        """Section scoped to its case; ids from another case are not found."""
        section = self.db.query(ReportSectionDB).filter(
            ReportSectionDB.id == section_id,
            ReportSectionDB.vetting_id == case_id,
        ).first()
        if section is None:
            raise VettingServiceError("Section not found", 404)
        return section

    def update_section(
        self,
        case_id: str,
        section_id: str,
        data: Optional[Dict[str, Any]] = None,
        status: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> ReportSectionDB:
        section = self.get_section(case_id, section_id)
        if data is None and status is None and notes is None:
            raise VettingServiceError("No fields to update", 400)

        if status is not None:
            try:
                new_status = SectionStatus(status)
            except ValueError:
                raise VettingServiceError(f"Unknown section status: {status}", 400)
            if new_status != section.status:
                if not is_valid_section_transition(section.status, new_status):
                    raise VettingServiceError(
                        f"Invalid section status transition from {section.status.value} to {new_status.value}", 400
                    )
                section.status = new_status
        if data is not None:
            section.data = data
        if notes is not None:
            section.notes = notes

        self.db.commit()
        self.db.refresh(section)
        return section

    def accept_draft(self, case_id: str, section_id: str, merge_strategy: str = "replace") -> ReportSectionDB:
        """
        Copy the AI draft into the section's data.

        "replace" overwrites data with the draft; "merge" deep-merges the
        draft over existing data (nested objects merge, everything else is
        replaced). A section not yet started moves to IN_PROGRESS.
        """
        if merge_strategy not in ("replace", "merge"):
            raise VettingServiceError(f"Unknown merge strategy: {merge_strategy}", 400)

        section = self.get_section(case_id, section_id)
        if not section.ai_draft_data:
            raise VettingServiceError("No AI draft to accept", 400)

        if merge_strategy == "merge":
            section.data = _deep_merge(section.data or {}, section.ai_draft_data)
        else:
            section.data = copy.deepcopy(section.ai_draft_data)

        if section.status in (SectionStatus.NOT_STARTED, SectionStatus.ASSIGNED):
            section.status = SectionStatus.IN_PROGRESS

        self.db.commit()
        self.db.refresh(section)
        logger.info(f"Accepted AI draft for section {section_id} ({merge_strategy})")
        return section

    def assign_section(
        self,
        case_id: str,
        section_id: str,
        committee_member_id: str,
        assigned_by_id: Optional[str] = None,
    ) -> ReportSectionDB:
        """Assign a committee member; a NOT_STARTED section becomes ASSIGNED."""
        section = self.get_section(case_id, section_id)
        member = self.db.query(CommitteeMemberDB).filter(
            CommitteeMemberDB.id == committee_member_id,
            CommitteeMemberDB.is_active.is_(True),
        ).first()
        if member is None:
            raise VettingServiceError("Committee member not found", 404)

        if any(a.committee_member_id == committee_member_id for a in section.assignments):
            raise VettingServiceError("Member is already assigned to this section", 409)

        section.assignments.append(SectionAssignmentDB(
            id=str(uuid4()),
            committee_member_id=committee_member_id,
            assigned_by_id=assigned_by_id,
        ))
        if section.status == SectionStatus.NOT_STARTED:
            section.status = SectionStatus.ASSIGNED

        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise VettingServiceError("Member is already assigned to this section", 409)
        self.db.refresh(section)
        return section

    # -------------------------------------------------------------------------
    # Interview and recommendation
    # -------------------------------------------------------------------------

    def record_interview(
        self,
        case_id: str,
        interview_date: Optional[datetime] = None,
        interview_notes: Optional[str] = None,
        interviewers: Optional[List[str]] = None,
    ) -> VettingCaseDB:
        if interview_date is None and interview_notes is None and interviewers is None:
            raise VettingServiceError("No fields to update", 400)
        case = self.get_vetting(case_id)
        if interview_date is not None:
            case.interview_date = interview_date
        if interview_notes is not None:
            case.interview_notes = interview_notes
        if interviewers is not None:
            case.interviewers = list(interviewers)
        self.db.commit()
        self.db.refresh(case)
        return case

    def set_recommendation(
        self,
        case_id: str,
        recommendation: str,
        notes: Optional[str] = None,
    ) -> VettingCaseDB:
        try:
            value = Recommendation(recommendation)
        except ValueError:
            raise VettingServiceError(f"Unknown recommendation: {recommendation}", 400)
        case = self.get_vetting(case_id)
        case.recommendation = value
        case.recommendation_notes = notes
        case.recommended_at = _now()
        self.db.commit()
        self.db.refresh(case)
        logger.info(f"Recommendation {value.value} recorded for vetting {case_id}")
        return case

    # -------------------------------------------------------------------------
    # Board votes
    # -------------------------------------------------------------------------

    def cast_board_vote(
        self,
        case_id: str,
        voter_id: str,
        vote: str,
        notes: Optional[str] = None,
    ) -> BoardVoteDB:
        """One vote per voter; re-voting replaces the earlier choice."""
        try:
            choice = BoardVoteChoice(vote)
        except ValueError:
            raise VettingServiceError(f"Unknown vote: {vote}", 400)

        case = self.get_vetting(case_id)
        if case.stage != VettingStage.BOARD_VOTE:
            raise VettingServiceError("Voting is only available at the board_vote stage", 400)
        if case.endorsed_at is not None:
            raise VettingServiceError("Voting has been finalized. No further changes allowed.", 400)

        existing = self.db.query(BoardVoteDB).filter(
            BoardVoteDB.vetting_id == case_id,
            BoardVoteDB.voter_id == voter_id,
        ).first()
        if existing:
            existing.vote = choice
            existing.notes = (notes or "").strip() or None
            existing.voted_at = _now()
            ballot = existing
        else:
            ballot = BoardVoteDB(
                id=str(uuid4()),
                vetting_id=case_id,
                voter_id=voter_id,
                vote=choice,
                notes=(notes or "").strip() or None,
                voted_at=_now(),
            )
            self.db.add(ballot)

        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise VettingServiceError("Vote was modified concurrently. Please retry.", 409)
        self.db.refresh(ballot)
        return ballot

    def list_votes(self, case_id: str) -> Dict[str, Any]:
        self.get_vetting(case_id)
        votes = self.db.query(BoardVoteDB).filter(
            BoardVoteDB.vetting_id == case_id
        ).order_by(BoardVoteDB.voted_at.asc()).all()
        return {
            "votes": [
                {"voter_id": v.voter_id, "vote": v.vote.value, "notes": v.notes, "voted_at": _iso(v.voted_at)}
                for v in votes
            ],
            "tally": tally_votes(v.vote for v in votes).to_dict(),
        }

    def finalize_votes(self, case_id: str) -> Dict[str, Any]:
        """
        Record the board's endorsement result.

        Only at BOARD_VOTE, with at least one non-abstain vote. The write is
        conditional on endorsed_at still being NULL.
        """
        case = self.get_vetting(case_id)
        if case.stage != VettingStage.BOARD_VOTE:
            raise VettingServiceError("Can only finalize votes at the board_vote stage", 400)
        if case.endorsed_at is not None:
            raise VettingServiceError("Votes have already been finalized", 409)

        votes = self.db.query(BoardVoteDB.vote).filter(BoardVoteDB.vetting_id == case_id).all()
        tally = tally_votes(row.vote for row in votes)
        if tally.substantive == 0:
            raise VettingServiceError("At least one non-abstain vote is required to finalize", 400)

        result = endorsement_result_from_tally(tally)
        endorsed_at = _now()
        try:
            updated = self.db.query(VettingCaseDB).filter(
                VettingCaseDB.id == case_id,
                VettingCaseDB.endorsed_at.is_(None),
            ).update(
                {
                    VettingCaseDB.endorsement_result: result,
                    VettingCaseDB.endorsed_at: endorsed_at,
                    VettingCaseDB.updated_at: endorsed_at,
                },
                synchronize_session=False,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        if updated != 1:
            raise VettingServiceError("Votes were finalized by another user", 409)

        logger.info(f"Board vote finalized for vetting {case_id}: {result.value}")
        return {
            "endorsement_result": result.value,
            "endorsed_at": endorsed_at.isoformat(),
            "tally": tally.to_dict(),
        }

    # -------------------------------------------------------------------------
    # Opponents
    # -------------------------------------------------------------------------

    def add_opponent(
        self,
        case_id: str,
        name: str,
        party: Optional[str] = None,
        is_incumbent: bool = False,
        background: Optional[str] = None,
        social_links: Optional[Dict[str, str]] = None,
    ) -> OpponentDB:
        self.get_vetting(case_id)
        if not name or not name.strip():
            raise VettingServiceError("Opponent name is required", 400)
        opponent = OpponentDB(
            id=str(uuid4()),
            vetting_id=case_id,
            name=name.strip(),
            party=party,
            is_incumbent=is_incumbent,
            background=background,
            social_links=social_links or {},
        )
        self.db.add(opponent)
        self.db.commit()
        self.db.refresh(opponent)
        return opponent

    def list_opponents(self, case_id: str) -> List[OpponentDB]:
        self.get_vetting(case_id)
        return self.db.query(OpponentDB).filter(
            OpponentDB.vetting_id == case_id
        ).order_by(OpponentDB.created_at.asc()).all()

    def get_opponent(self, case_id: str, opponent_id: str) -> OpponentDB:
        opponent = self.db.query(OpponentDB).filter(
            OpponentDB.id == opponent_id,
            OpponentDB.vetting_id == case_id,
        ).first()
        if opponent is None:
            raise VettingServiceError("Opponent not found", 404)
        return opponent

    def update_opponent(self, case_id: str, opponent_id: str, updates: Dict[str, Any]) -> OpponentDB:
        """Apply the given fields; keys absent from updates are left alone."""
        opponent = self.get_opponent(case_id, opponent_id)
        fields = {k: v for k, v in updates.items() if k in OPPONENT_FIELDS}
        if not fields:
            raise VettingServiceError("No fields to update", 400)

        if "name" in fields:
            if not fields["name"] or not fields["name"].strip():
                raise VettingServiceError("Opponent name is required", 400)
            fields["name"] = fields["name"].strip()
        if "is_incumbent" in fields and fields["is_incumbent"] is None:
            fields["is_incumbent"] = False
        if "social_links" in fields and fields["social_links"] is None:
            fields["social_links"] = {}

        for key, value in fields.items():
            setattr(opponent, key, value)
        self.db.commit()
        self.db.refresh(opponent)
        return opponent

    def delete_opponent(self, case_id: str, opponent_id: str) -> None:
        opponent = self.get_opponent(case_id, opponent_id)
        self.db.delete(opponent)
        self.db.commit()
        logger.info(f"Deleted opponent {opponent_id} from vetting {case_id}")

    # -------------------------------------------------------------------------
    # Manual audit trigger
    # -------------------------------------------------------------------------

    def trigger_audit(self, case_id: str, actor_id: Optional[str], force: bool = False) -> DigitalAuditDB:
        """
        Create a PENDING audit for a manual (re)run.

        Refuses while an audit is active, or when one has completed unless
        force is set. The caller schedules the run.
        """
        self.get_vetting(case_id)

        if not force:
            existing = self.db.query(DigitalAuditDB).filter(
                DigitalAuditDB.vetting_id == case_id,
                DigitalAuditDB.status.in_(ACTIVE_AUDIT_STATUSES + (AuditStatus.COMPLETED,)),
            ).order_by(DigitalAuditDB.created_at.desc()).first()
            if existing is not None and existing.status in ACTIVE_AUDIT_STATUSES:
                raise VettingServiceError("Audit already running", 409, audit_id=existing.id)
            if existing is not None:
                raise VettingServiceError(
                    "Audit already completed. Use force=true to re-run.", 409, audit_id=existing.id
                )

        try:
            audit = self.audits.create_pending(case_id, actor_id)
        except IntegrityError:
            self.db.rollback()
            raise VettingServiceError("An audit is already in progress for this vetting", 409)

        logger.info(f"Manual audit {audit.id} created for vetting {case_id} (force={force})")
        return audit

    # -------------------------------------------------------------------------
    # Committee and deadlines
    # -------------------------------------------------------------------------

    def create_committee(self, name: str) -> CommitteeDB:
        if not name or not name.strip():
            raise VettingServiceError("Committee name is required", 400)
        committee = CommitteeDB(id=str(uuid4()), name=name.strip(), is_active=True)
        self.db.add(committee)
        self.db.commit()
        self.db.refresh(committee)
        return committee

    def list_committees(self) -> List[CommitteeDB]:
        return self.db.query(CommitteeDB).filter(CommitteeDB.is_active.is_(True)).all()

    def add_committee_member(
        self,
        committee_id: str,
        contact_id: str,
        role: str = CommitteeRole.COMMITTEE_MEMBER.value,
    ) -> CommitteeMemberDB:
        try:
            committee_role = CommitteeRole(role)
        except ValueError:
            raise VettingServiceError(f"Unknown committee role: {role}", 400)

        committee = self.db.query(CommitteeDB).filter(CommitteeDB.id == committee_id).first()
        if committee is None:
            raise VettingServiceError("Committee not found", 404)

        existing = self.db.query(CommitteeMemberDB).filter(
            CommitteeMemberDB.committee_id == committee_id,
            CommitteeMemberDB.contact_id == contact_id,
            CommitteeMemberDB.is_active.is_(True),
        ).first()
        if existing:
            raise VettingServiceError("Member is already on this committee", 409)

        member = CommitteeMemberDB(
            id=str(uuid4()),
            committee_id=committee_id,
            contact_id=contact_id,
            role=committee_role,
            is_active=True,
        )
        self.db.add(member)
        self.db.commit()
        self.db.refresh(member)
        logger.info(f"Added {contact_id} to committee {committee_id} as {committee_role.value}")
        return member

    def deactivate_committee_member(self, member_id: str) -> CommitteeMemberDB:
        member = self.db.query(CommitteeMemberDB).filter(CommitteeMemberDB.id == member_id).first()
        if member is None:
            raise VettingServiceError("Committee member not found", 404)
        member.is_active = False
        self.db.commit()
        self.db.refresh(member)
        return member

    def create_deadline(
        self,
        state_code: str,
        cycle_year: int,
        office_type: str,
        primary_date: Optional[date] = None,
        primary_runoff_date: Optional[date] = None,
        general_date: Optional[date] = None,
        general_runoff_date: Optional[date] = None,
        filing_deadline: Optional[date] = None,
        notes: Optional[str] = None,
    ) -> ElectionDeadlineDB:
        if not state_code or len(state_code) != 2:
            raise VettingServiceError("state_code must be a two-letter code", 400)
        deadline = ElectionDeadlineDB(
            id=str(uuid4()),
            state_code=state_code.upper(),
            cycle_year=cycle_year,
            office_type=office_type,
            primary_date=primary_date,
            primary_runoff_date=primary_runoff_date,
            general_date=general_date,
            general_runoff_date=general_runoff_date,
            filing_deadline=filing_deadline,
            notes=notes,
        )
        self.db.add(deadline)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise VettingServiceError("A deadline for this state/year/office already exists", 409)
        self.db.refresh(deadline)
        return deadline

    def list_deadlines(
        self,
        state_code: Optional[str] = None,
        cycle_year: Optional[int] = None,
    ) -> List[ElectionDeadlineDB]:
        query = self.db.query(ElectionDeadlineDB)
        if state_code:
            query = query.filter(ElectionDeadlineDB.state_code == state_code.upper())
        if cycle_year:
            query = query.filter(ElectionDeadlineDB.cycle_year == cycle_year)
        return query.order_by(ElectionDeadlineDB.primary_date.asc()).all()

    def update_deadline(self, deadline_id: str, updates: Dict[str, Any]) -> ElectionDeadlineDB:
        deadline = self.db.query(ElectionDeadlineDB).filter(ElectionDeadlineDB.id == deadline_id).first()
        if deadline is None:
            raise VettingServiceError("Election deadline not found", 404)

        fields = {k: v for k, v in updates.items() if k in DEADLINE_FIELDS}
        if not fields:
            raise VettingServiceError("No fields to update", 400)
        for required in ("state_code", "cycle_year", "office_type"):
            if required in fields and not fields[required]:
                raise VettingServiceError(f"{required} cannot be empty", 400)
        if "state_code" in fields:
            if len(fields["state_code"]) != 2:
                raise VettingServiceError("state_code must be a two-letter code", 400)
            fields["state_code"] = fields["state_code"].upper()

        for key, value in fields.items():
            setattr(deadline, key, value)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise VettingServiceError("A deadline for this state/year/office already exists", 409)
        self.db.refresh(deadline)
        return deadline

    def delete_deadline(self, deadline_id: str) -> None:
        """Delete a deadline; cases pointing at it keep no deadline."""
        deadline = self.db.query(ElectionDeadlineDB).filter(ElectionDeadlineDB.id == deadline_id).first()
        if deadline is None:
            raise VettingServiceError("Election deadline not found", 404)

        self.db.query(VettingCaseDB).filter(
            VettingCaseDB.election_deadline_id == deadline_id
        ).update({VettingCaseDB.election_deadline_id: None}, synchronize_session=False)
        self.db.delete(deadline)
        self.db.commit()
        logger.info(f"Deleted election deadline {deadline_id}")
