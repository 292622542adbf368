"""Candidate Vetting Engine - Data Models"""
from .db_models import (
    # Enums
    VettingStage, ReportSectionType, SectionStatus, Recommendation,
    BoardVoteChoice, AuditStatus, CommitteeRole,
    ACTIVE_AUDIT_STATUSES, TERMINAL_AUDIT_STATUSES,
    # Committee / calendar
    CommitteeDB, CommitteeMemberDB, ElectionDeadlineDB,
    # Vetting case
    VettingCaseDB, ReportSectionDB, SectionAssignmentDB, OpponentDB, BoardVoteDB,
    # Audit
    DigitalAuditDB, AuditPlatformDB,
)

__all__ = [
    "VettingStage", "ReportSectionType", "SectionStatus", "Recommendation",
    "BoardVoteChoice", "AuditStatus", "CommitteeRole",
    "ACTIVE_AUDIT_STATUSES", "TERMINAL_AUDIT_STATUSES",
    "CommitteeDB", "CommitteeMemberDB", "ElectionDeadlineDB",
    "VettingCaseDB", "ReportSectionDB", "SectionAssignmentDB", "OpponentDB", "BoardVoteDB",
    "DigitalAuditDB", "AuditPlatformDB",
]
