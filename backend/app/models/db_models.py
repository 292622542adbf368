"""
Candidate Vetting Engine - SQLAlchemy ORM Models
Database models for the candidate vetting pipeline
"""
from datetime import datetime
from enum import Enum
from sqlalchemy import (
    Column, String, Integer, Float, DateTime, Date, Text, JSON, ForeignKey,
    Boolean, Enum as SQLEnum, Index, UniqueConstraint, text,
)
from sqlalchemy.orm import relationship
from ..database import Base


# =============================================================================
# ENUMS FOR THE VETTING PIPELINE
# =============================================================================

class VettingStage(str, Enum):
    """Pipeline stages. Declaration order is progression order."""
    SURVEY_SUBMITTED = "survey_submitted"
    AUTO_AUDIT = "auto_audit"
    ASSIGNED = "assigned"
    RESEARCH = "research"
    INTERVIEW = "interview"
    COMMITTEE_REVIEW = "committee_review"
    BOARD_VOTE = "board_vote"
    PRESS_RELEASE_CREATED = "press_release_created"
    PRESS_RELEASE_PUBLISHED = "press_release_published"


class ReportSectionType(str, Enum):
    """Fixed catalog of vetting report sections."""
    DIGITAL_PRESENCE_AUDIT = "digital_presence_audit"
    EXECUTIVE_SUMMARY = "executive_summary"
    ELECTION_SCHEDULE = "election_schedule"
    VOTING_RULES = "voting_rules"
    CANDIDATE_BACKGROUND = "candidate_background"
    INCUMBENT_RECORD = "incumbent_record"
    OPPONENT_RESEARCH = "opponent_research"
    ELECTORAL_RESULTS = "electoral_results"
    DISTRICT_DATA = "district_data"


class SectionStatus(str, Enum):
    """Report section work status."""
    NOT_STARTED = "not_started"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    NEEDS_REVISION = "needs_revision"


class Recommendation(str, Enum):
    """Committee recommendation / board endorsement result."""
    ENDORSE = "endorse"
    DO_NOT_ENDORSE = "do_not_endorse"
    NO_POSITION = "no_position"


class BoardVoteChoice(str, Enum):
    """Individual board member vote."""
    VOTE_ENDORSE = "vote_endorse"
    VOTE_DO_NOT_ENDORSE = "vote_do_not_endorse"
    VOTE_NO_POSITION = "vote_no_position"
    VOTE_ABSTAIN = "vote_abstain"


class AuditStatus(str, Enum):
    """Digital presence audit lifecycle."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


ACTIVE_AUDIT_STATUSES = (AuditStatus.PENDING, AuditStatus.RUNNING)
TERMINAL_AUDIT_STATUSES = (AuditStatus.COMPLETED, AuditStatus.FAILED)


class CommitteeRole(str, Enum):
    """Role within the vetting committee."""
    CHAIR = "chair"
    COMMITTEE_MEMBER = "committee_member"


# =============================================================================
# COMMITTEE
# =============================================================================

class CommitteeDB(Base):
    """Candidate vetting committee."""
    __tablename__ = "candidate_vetting_committees"

    id = Column(String(36), primary_key=True)  # UUID
    name = Column(String(200), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    members = relationship("CommitteeMemberDB", back_populates="committee", cascade="all, delete-orphan")


class CommitteeMemberDB(Base):
    """Membership of an organization member (contact) on a committee."""
    __tablename__ = "candidate_vetting_committee_members"

    id = Column(String(36), primary_key=True)  # UUID
    committee_id = Column(String(36), ForeignKey("candidate_vetting_committees.id", ondelete="CASCADE"), nullable=False, index=True)
    contact_id = Column(String(36), nullable=False, index=True)  # Member id issued by the identity provider
    role = Column(SQLEnum(CommitteeRole), default=CommitteeRole.COMMITTEE_MEMBER, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    joined_at = Column(DateTime, default=datetime.utcnow)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    committee = relationship("CommitteeDB", back_populates="members")


class ElectionDeadlineDB(Base):
    """Election calendar for a state/office/cycle."""
    __tablename__ = "candidate_election_deadlines"
    __table_args__ = (
        UniqueConstraint("state_code", "cycle_year", "office_type", name="uq_election_deadline"),
    )

    id = Column(String(36), primary_key=True)  # UUID
    state_code = Column(String(2), nullable=False, index=True)
    cycle_year = Column(Integer, nullable=False)
    office_type = Column(String(100), nullable=False)
    primary_date = Column(Date, nullable=True)
    primary_runoff_date = Column(Date, nullable=True)
    general_date = Column(Date, nullable=True)
    general_runoff_date = Column(Date, nullable=True)
    filing_deadline = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# =============================================================================
# VETTING CASE
# =============================================================================

class VettingCaseDB(Base):
    """
    One candidate's endorsement review.

    Created when a submitted survey response is promoted into the pipeline.
    Never hard-deleted.
    """
    __tablename__ = "candidate_vettings"

    id = Column(String(36), primary_key=True)  # UUID
    candidate_response_id = Column(String(36), nullable=False, unique=True)
    committee_id = Column(String(36), ForeignKey("candidate_vetting_committees.id"), nullable=True, index=True)
    election_deadline_id = Column(String(36), ForeignKey("candidate_election_deadlines.id", ondelete="SET NULL"), nullable=True)

    # Candidate snapshot (denormalized from the survey response)
    candidate_name = Column(String(255), nullable=False)
    candidate_office = Column(String(255), nullable=True)
    candidate_state = Column(String(2), nullable=True, index=True)
    candidate_district = Column(String(100), nullable=True)
    candidate_party = Column(String(100), nullable=True)

    # Pipeline position - only moves forward (see stage_gate)
    stage = Column(SQLEnum(VettingStage), default=VettingStage.SURVEY_SUBMITTED, nullable=False, index=True)

    # Interview
    interview_date = Column(DateTime, nullable=True)
    interview_notes = Column(Text, nullable=True)
    interviewers = Column(JSON, nullable=True, default=list)

    # Committee recommendation
    recommendation = Column(SQLEnum(Recommendation), nullable=True)
    recommendation_notes = Column(Text, nullable=True)
    recommended_at = Column(DateTime, nullable=True)

    # Board decision
    endorsement_result = Column(SQLEnum(Recommendation), nullable=True)
    endorsed_at = Column(DateTime, nullable=True)

    # Free-form; "known_urls" seeds the digital presence audit
    case_metadata = Column("metadata", JSON, nullable=True, default=dict)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    sections = relationship("ReportSectionDB", back_populates="vetting", cascade="all, delete-orphan")
    opponents = relationship("OpponentDB", back_populates="vetting", cascade="all, delete-orphan")
    votes = relationship("BoardVoteDB", back_populates="vetting", cascade="all, delete-orphan")
    audits = relationship("DigitalAuditDB", back_populates="vetting", cascade="all, delete-orphan")
    election_deadline = relationship("ElectionDeadlineDB")


class ReportSectionDB(Base):
    """One unit of the vetting report, seeded from the section catalog."""
    __tablename__ = "candidate_vetting_report_sections"
    __table_args__ = (
        UniqueConstraint("vetting_id", "section", name="uq_report_section_per_vetting"),
    )

    id = Column(String(36), primary_key=True)  # UUID
    vetting_id = Column(String(36), ForeignKey("candidate_vettings.id", ondelete="CASCADE"), nullable=False, index=True)
    section = Column(SQLEnum(ReportSectionType), nullable=False)
    status = Column(SQLEnum(SectionStatus), default=SectionStatus.NOT_STARTED, nullable=False)
    data = Column(JSON, nullable=True, default=dict)
    ai_draft_data = Column(JSON, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    vetting = relationship("VettingCaseDB", back_populates="sections")
    assignments = relationship("SectionAssignmentDB", back_populates="section", cascade="all, delete-orphan")


class SectionAssignmentDB(Base):
    """Assignment of a report section to a committee member."""
    __tablename__ = "candidate_vetting_section_assignments"
    __table_args__ = (
        UniqueConstraint("section_id", "committee_member_id", name="uq_section_assignment"),
    )

    id = Column(String(36), primary_key=True)  # UUID
    section_id = Column(String(36), ForeignKey("candidate_vetting_report_sections.id", ondelete="CASCADE"), nullable=False, index=True)
    committee_member_id = Column(String(36), ForeignKey("candidate_vetting_committee_members.id", ondelete="CASCADE"), nullable=False)
    assigned_by_id = Column(String(36), nullable=True)
    assigned_at = Column(DateTime, default=datetime.utcnow)

    section = relationship("ReportSectionDB", back_populates="assignments")


class OpponentDB(Base):
    """Opponent in the candidate's race."""
    __tablename__ = "candidate_vetting_opponents"

    id = Column(String(36), primary_key=True)  # UUID
    vetting_id = Column(String(36), ForeignKey("candidate_vettings.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    party = Column(String(100), nullable=True)
    is_incumbent = Column(Boolean, default=False, nullable=False)
    background = Column(Text, nullable=True)
    # Format: {"facebook": "https://...", "website": "https://..."}
    social_links = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    vetting = relationship("VettingCaseDB", back_populates="opponents")


class BoardVoteDB(Base):
    """One board member's vote on a case. One vote per voter per case."""
    __tablename__ = "candidate_vetting_board_votes"
    __table_args__ = (
        UniqueConstraint("vetting_id", "voter_id", name="uq_board_vote_per_voter"),
    )

    id = Column(String(36), primary_key=True)  # UUID
    vetting_id = Column(String(36), ForeignKey("candidate_vettings.id", ondelete="CASCADE"), nullable=False, index=True)
    voter_id = Column(String(36), nullable=False)
    vote = Column(SQLEnum(BoardVoteChoice), nullable=False)
    notes = Column(Text, nullable=True)
    voted_at = Column(DateTime, default=datetime.utcnow)

    vetting = relationship("VettingCaseDB", back_populates="votes")


# =============================================================================
# DIGITAL PRESENCE AUDIT
# =============================================================================

class DigitalAuditDB(Base):
    """
    One asynchronous audit run for a vetting case.

    Status transitions happen only inside the background task:
    PENDING -> RUNNING -> COMPLETED | FAILED
    """
    __tablename__ = "candidate_digital_audits"

    id = Column(String(36), primary_key=True)  # UUID
    vetting_id = Column(String(36), ForeignKey("candidate_vettings.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(SQLEnum(AuditStatus), default=AuditStatus.PENDING, nullable=False)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    triggered_by_id = Column(String(36), nullable=True)
    error_message = Column(Text, nullable=True)

    # Results (written by the workload on success)
    candidate_overall_score = Column(Integer, nullable=True)
    candidate_grade = Column(String(5), nullable=True)
    candidate_score_breakdown = Column(JSON, nullable=True)
    candidate_risks = Column(JSON, nullable=True)
    opponent_audits = Column(JSON, nullable=True)
    discovery_log = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    vetting = relationship("VettingCaseDB", back_populates="audits")
    platforms = relationship("AuditPlatformDB", back_populates="audit", cascade="all, delete-orphan")


# At most one non-terminal audit per vetting (enum names are what SQLEnum persists)
Index(
    "idx_digital_audits_active_per_vetting",
    DigitalAuditDB.vetting_id,
    unique=True,
    postgresql_where=text("status IN ('PENDING', 'RUNNING')"),
    sqlite_where=text("status IN ('PENDING', 'RUNNING')"),
)


class AuditPlatformDB(Base):
    """Per-platform result row of an audit."""
    __tablename__ = "candidate_audit_platforms"

    id = Column(String(36), primary_key=True)  # UUID
    audit_id = Column(String(36), ForeignKey("candidate_digital_audits.id", ondelete="CASCADE"), nullable=False, index=True)
    entity_type = Column(String(20), nullable=False)  # candidate | opponent
    entity_name = Column(String(200), nullable=False)
    platform_type = Column(String(50), nullable=False)
    platform_name = Column(String(200), nullable=False)
    platform_category = Column(String(50), nullable=False)
    platform_url = Column(String(1000), nullable=True)
    confidence_score = Column(Float, nullable=True)
    score_presence = Column(Float, nullable=True)
    score_consistency = Column(Float, nullable=True)
    score_quality = Column(Float, nullable=True)
    score_accessibility = Column(Float, nullable=True)
    total_score = Column(Integer, nullable=True)
    grade = Column(String(5), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    audit = relationship("DigitalAuditDB", back_populates="platforms")
