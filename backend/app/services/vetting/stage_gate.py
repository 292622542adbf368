"""
Vetting Stage Gate

Decides whether a vetting case may move from one pipeline stage to another.

Stage order:
    SURVEY_SUBMITTED → AUTO_AUDIT → ASSIGNED → RESEARCH → INTERVIEW
    → COMMITTEE_REVIEW → BOARD_VOTE → PRESS_RELEASE_CREATED
    → PRESS_RELEASE_PUBLISHED

Gating rules:
- No backward moves, no no-op moves, no unknown stages
- Every boundary crossed must pass its own predicate (skipping a stage
  does not skip its requirement)
- AUTO_AUDIT cannot be skipped; entering it is what starts the audit
- Entering INTERVIEW or COMMITTEE_REVIEW requires the required report
  sections to be completed
- Entering BOARD_VOTE requires a committee recommendation
- Entering PRESS_RELEASE_CREATED requires a finalized board vote

Rejections are returned as data, never raised.
"""
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

from ...models.db_models import ReportSectionType, VettingStage
from .progress import SectionState, incomplete_sections, normalize_sections


# Ordered stage list (index = progression order)
STAGE_ORDER: List[VettingStage] = list(VettingStage)

# Stage whose entry launches the digital presence audit
AUDIT_TRIGGER_STAGE = VettingStage.AUTO_AUDIT

# Sections that must be completed before the interview / committee review
REQUIRED_SECTIONS_FOR_REVIEW: Tuple[ReportSectionType, ...] = (
    ReportSectionType.EXECUTIVE_SUMMARY,
    ReportSectionType.CANDIDATE_BACKGROUND,
    ReportSectionType.OPPONENT_RESEARCH,
    ReportSectionType.DISTRICT_DATA,
)


@dataclass(frozen=True)
class GateFlags:
    """Case facts the gate needs beyond section state."""
    has_recommendation: bool = False
    has_endorsement_result: bool = False


@dataclass(frozen=True)
class GateResult:
    """Outcome of a gate evaluation."""
    allowed: bool
    reason: Optional[str] = None

    def to_dict(self) -> dict:
        result = {"allowed": self.allowed}
        if self.reason:
            result["reason"] = self.reason
        return result


ALLOWED = GateResult(allowed=True)

BoundaryPredicate = Callable[[List[SectionState], GateFlags], GateResult]


# =============================================================================
# BOUNDARY PREDICATES
# =============================================================================

def _always(sections: List[SectionState], flags: GateFlags) -> GateResult:
    return ALLOWED


def _required_sections_completed(purpose: str) -> BoundaryPredicate:
    def predicate(sections: List[SectionState], flags: GateFlags) -> GateResult:
        missing = incomplete_sections(sections, REQUIRED_SECTIONS_FOR_REVIEW)
        if missing:
            names = ", ".join(section.value for section in missing)
            return GateResult(
                allowed=False,
                reason=f"Required report sections must be completed before {purpose} (incomplete: {names})",
            )
        return ALLOWED
    return predicate


def _recommendation_recorded(sections: List[SectionState], flags: GateFlags) -> GateResult:
    if not flags.has_recommendation:
        return GateResult(
            allowed=False,
            reason="Missing recommendation: committee chair must submit a recommendation before board vote",
        )
    return ALLOWED


def _vote_finalized(sections: List[SectionState], flags: GateFlags) -> GateResult:
    if not flags.has_endorsement_result:
        return GateResult(
            allowed=False,
            reason="Board vote must be finalized before creating press release",
        )
    return ALLOWED


# (from_stage, to_stage) -> predicate, one entry per adjacent boundary
BOUNDARY_GATES: Dict[Tuple[VettingStage, VettingStage], BoundaryPredicate] = {
    (VettingStage.SURVEY_SUBMITTED, VettingStage.AUTO_AUDIT): _always,
    (VettingStage.AUTO_AUDIT, VettingStage.ASSIGNED): _always,
    (VettingStage.ASSIGNED, VettingStage.RESEARCH): _always,
    (VettingStage.RESEARCH, VettingStage.INTERVIEW): _required_sections_completed("scheduling interview"),
    (VettingStage.INTERVIEW, VettingStage.COMMITTEE_REVIEW): _required_sections_completed("committee review"),
    (VettingStage.COMMITTEE_REVIEW, VettingStage.BOARD_VOTE): _recommendation_recorded,
    (VettingStage.BOARD_VOTE, VettingStage.PRESS_RELEASE_CREATED): _vote_finalized,
    (VettingStage.PRESS_RELEASE_CREATED, VettingStage.PRESS_RELEASE_PUBLISHED): _always,
}

_missing = [
    (a, b) for a, b in zip(STAGE_ORDER, STAGE_ORDER[1:]) if (a, b) not in BOUNDARY_GATES
]
if _missing:
    raise RuntimeError(f"Stage boundaries without a gate: {_missing}")


# =============================================================================
# GATE
# =============================================================================

def coerce_stage(value: Union[VettingStage, str, None]) -> Optional[VettingStage]:
    """Return the VettingStage for a value, or None if it is not a stage."""
    if value is None:
        return None
    try:
        return VettingStage(value)
    except ValueError:
        return None


def stage_index(stage: Union[VettingStage, str]) -> int:
    """Position of a stage in STAGE_ORDER, -1 if unknown."""
    stage = coerce_stage(stage)
    return STAGE_ORDER.index(stage) if stage is not None else -1


def next_stage(stage: Union[VettingStage, str]) -> Optional[VettingStage]:
    index = stage_index(stage)
    if index < 0 or index + 1 >= len(STAGE_ORDER):
        return None
    return STAGE_ORDER[index + 1]


def boundaries_between(
    from_stage: VettingStage,
    to_stage: VettingStage,
) -> List[Tuple[VettingStage, VettingStage]]:
    """Adjacent stage boundaries crossed moving forward from one stage to another."""
    start, end = STAGE_ORDER.index(from_stage), STAGE_ORDER.index(to_stage)
    return [(STAGE_ORDER[i], STAGE_ORDER[i + 1]) for i in range(start, end)]


def can_advance_stage(
    current_stage: Union[VettingStage, str],
    target_stage: Union[VettingStage, str],
    sections: Iterable[SectionState],
    flags: Optional[GateFlags] = None,
) -> GateResult:
    """
    Check if a stage transition is allowed given current case state.

    Args:
        current_stage: Stage the case is in now
        target_stage: Requested stage
        sections: (section_type, status) pairs for the case
        flags: Recommendation / endorsement facts

    Returns:
        GateResult with the first failing boundary's reason
    """
    flags = flags or GateFlags()
    current = coerce_stage(current_stage)
    target = coerce_stage(target_stage)

    if current is None:
        return GateResult(allowed=False, reason=f"Unknown current stage: {current_stage}")
    if target is None:
        return GateResult(allowed=False, reason=f"Unknown target stage: {target_stage}")

    if STAGE_ORDER.index(target) <= STAGE_ORDER.index(current):
        return GateResult(
            allowed=False,
            reason=f"Cannot transition from {current.value} to {target.value}: stages cannot move backward or stay in place",
        )

    section_states = normalize_sections(sections)
    for boundary in boundaries_between(current, target):
        if boundary[1] == AUDIT_TRIGGER_STAGE and target != AUDIT_TRIGGER_STAGE:
            return GateResult(
                allowed=False,
                reason=f"Cannot skip {AUDIT_TRIGGER_STAGE.value}: the case must enter "
                       f"{AUDIT_TRIGGER_STAGE.value} to run the digital presence audit",
            )
        result = BOUNDARY_GATES[boundary](section_states, flags)
        if not result.allowed:
            return result

    return ALLOWED
