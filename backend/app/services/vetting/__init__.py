"""Candidate Vetting - Pipeline

Stage gate, progress, stage advance (compare-and-set + audit bootstrap),
board vote tally, capability checks and workflow operations.
"""
from .stage_gate import (
    STAGE_ORDER,
    REQUIRED_SECTIONS_FOR_REVIEW,
    GateFlags,
    GateResult,
    can_advance_stage,
    stage_index,
    next_stage,
)
from .progress import (
    Progress,
    calculate_progress,
    calculate_urgency,
    incomplete_sections,
    is_valid_section_transition,
    initialize_section_states,
)
from .stage_service import (
    StageAdvanceService,
    StageAdvanceOutcome,
    StageAdvanceResult,
    compare_and_set_stage,
)
from .votes import VoteTally, tally_votes, endorsement_result_from_tally
from .permissions import VettingContext, load_vetting_context
from .vetting_service import VettingService, VettingServiceError

__all__ = [
    "STAGE_ORDER",
    "REQUIRED_SECTIONS_FOR_REVIEW",
    "GateFlags",
    "GateResult",
    "can_advance_stage",
    "stage_index",
    "next_stage",
    "Progress",
    "calculate_progress",
    "calculate_urgency",
    "incomplete_sections",
    "is_valid_section_transition",
    "initialize_section_states",
    "StageAdvanceService",
    "StageAdvanceOutcome",
    "StageAdvanceResult",
    "compare_and_set_stage",
    "VoteTally",
    "tally_votes",
    "endorsement_result_from_tally",
    "VettingContext",
    "load_vetting_context",
    "VettingService",
    "VettingServiceError",
]
