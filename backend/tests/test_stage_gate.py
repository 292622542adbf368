"""
Tests for the vetting stage gate.

1. Forward-only ordering (no backward, no no-op, no unknown stages)
2. Required sections gate INTERVIEW and COMMITTEE_REVIEW
3. Recommendation gates BOARD_VOTE
4. Finalized vote gates PRESS_RELEASE_CREATED
5. Skipping forward must satisfy every boundary crossed
"""
import pytest

from app.models.db_models import ReportSectionType, SectionStatus, VettingStage
from app.services.vetting.stage_gate import (
    BOUNDARY_GATES, REQUIRED_SECTIONS_FOR_REVIEW, STAGE_ORDER, GateFlags,
    can_advance_stage, next_stage, stage_index,
)


def sections_with(status_by_section=None, default=SectionStatus.NOT_STARTED):
    status_by_section = status_by_section or {}
    return [(s, status_by_section.get(s, default)) for s in ReportSectionType]


def required_completed():
    return sections_with({s: SectionStatus.COMPLETED for s in REQUIRED_SECTIONS_FOR_REVIEW})


# =============================================================================
# TEST: ORDERING
# =============================================================================

class TestStageOrdering:
    """Stages only move forward."""

    def test_stage_order_matches_enum(self):
        assert STAGE_ORDER[0] == VettingStage.SURVEY_SUBMITTED
        assert STAGE_ORDER[-1] == VettingStage.PRESS_RELEASE_PUBLISHED
        assert len(STAGE_ORDER) == 9

    def test_every_adjacent_boundary_has_a_gate(self):
        for a, b in zip(STAGE_ORDER, STAGE_ORDER[1:]):
            assert (a, b) in BOUNDARY_GATES

    def test_single_step_forward_allowed(self):
        result = can_advance_stage("survey_submitted", "auto_audit", [])
        assert result.allowed is True
        assert result.reason is None

    @pytest.mark.parametrize("current,target", [
        ("research", "assigned"),
        ("board_vote", "survey_submitted"),
        ("research", "research"),
    ])
    def test_backward_and_noop_rejected(self, current, target):
        result = can_advance_stage(current, target, required_completed(), GateFlags(True, True))
        assert result.allowed is False
        assert "cannot move backward" in result.reason

    def test_unknown_target_rejected(self):
        result = can_advance_stage("research", "published", [])
        assert result.allowed is False
        assert "Unknown target stage" in result.reason

    def test_unknown_current_rejected(self):
        result = can_advance_stage("draft", "research", [])
        assert result.allowed is False
        assert "Unknown current stage" in result.reason

    def test_stage_index_and_next_stage(self):
        assert stage_index("survey_submitted") == 0
        assert stage_index("nope") == -1
        assert next_stage(VettingStage.AUTO_AUDIT) == VettingStage.ASSIGNED
        assert next_stage(VettingStage.PRESS_RELEASE_PUBLISHED) is None


# =============================================================================
# TEST: REQUIRED SECTIONS
# =============================================================================

class TestRequiredSections:
    """INTERVIEW and COMMITTEE_REVIEW need the required sections completed."""

    def test_interview_blocked_until_required_sections_completed(self):
        sections = sections_with({
            ReportSectionType.EXECUTIVE_SUMMARY: SectionStatus.COMPLETED,
            ReportSectionType.CANDIDATE_BACKGROUND: SectionStatus.COMPLETED,
            ReportSectionType.OPPONENT_RESEARCH: SectionStatus.IN_PROGRESS,
        })
        result = can_advance_stage("research", "interview", sections)
        assert result.allowed is False
        assert "opponent_research" in result.reason
        assert "district_data" in result.reason
        assert "executive_summary" not in result.reason

    def test_interview_allowed_when_required_completed(self):
        assert can_advance_stage("research", "interview", required_completed()).allowed is True

    def test_committee_review_requires_required_sections(self):
        sections = sections_with({ReportSectionType.EXECUTIVE_SUMMARY: SectionStatus.COMPLETED})
        result = can_advance_stage("interview", "committee_review", sections)
        assert result.allowed is False
        assert "committee review" in result.reason

    def test_needs_revision_does_not_count_as_done(self):
        sections = required_completed()
        sections = [
            (s, SectionStatus.NEEDS_REVISION if s == ReportSectionType.DISTRICT_DATA else st)
            for s, st in sections
        ]
        assert can_advance_stage("interview", "committee_review", sections).allowed is False

    def test_missing_section_rows_count_as_incomplete(self):
        result = can_advance_stage("research", "interview", [])
        assert result.allowed is False

    def test_optional_sections_do_not_block(self):
        # Only required ones completed; e.g. voting_rules still not started
        sections = required_completed()
        assert (ReportSectionType.VOTING_RULES, SectionStatus.NOT_STARTED) in sections
        assert can_advance_stage("interview", "committee_review", sections).allowed is True

    def test_unknown_section_values_are_ignored(self):
        sections = [(s.value, "completed") for s in REQUIRED_SECTIONS_FOR_REVIEW]
        sections.append(("legacy_section", "completed"))
        assert can_advance_stage("research", "interview", sections).allowed is True


# =============================================================================
# TEST: RECOMMENDATION / VOTE FLAGS
# =============================================================================

class TestFlagGates:
    """Recommendation and finalized vote gates."""

    def test_board_vote_requires_recommendation(self):
        result = can_advance_stage("committee_review", "board_vote", required_completed(), GateFlags())
        assert result.allowed is False
        assert result.reason == (
            "Missing recommendation: committee chair must submit a recommendation before board vote"
        )

    def test_board_vote_allowed_with_recommendation(self):
        flags = GateFlags(has_recommendation=True)
        assert can_advance_stage("committee_review", "board_vote", required_completed(), flags).allowed is True

    def test_press_release_requires_finalized_vote(self):
        flags = GateFlags(has_recommendation=True)
        result = can_advance_stage("board_vote", "press_release_created", [], flags)
        assert result.allowed is False
        assert "finalized" in result.reason

    def test_press_release_allowed_after_finalize(self):
        flags = GateFlags(has_recommendation=True, has_endorsement_result=True)
        assert can_advance_stage("board_vote", "press_release_created", [], flags).allowed is True


# =============================================================================
# TEST: SKIP-FORWARD
# =============================================================================

class TestSkipForward:
    """A multi-stage jump must pass every boundary it crosses."""

    def test_skip_to_board_vote_without_sections_rejected(self):
        flags = GateFlags(has_recommendation=True)
        result = can_advance_stage("assigned", "board_vote", sections_with(), flags)
        assert result.allowed is False
        assert "interview" in result.reason

    def test_skip_reports_first_failing_boundary(self):
        result = can_advance_stage("assigned", "board_vote", required_completed(), GateFlags())
        assert result.allowed is False
        assert "Missing recommendation" in result.reason

    def test_skip_with_all_requirements_met(self):
        flags = GateFlags(has_recommendation=True, has_endorsement_result=True)
        result = can_advance_stage("auto_audit", "press_release_published", required_completed(), flags)
        assert result.allowed is True

    def test_skip_over_ungated_boundaries(self):
        assert can_advance_stage("auto_audit", "research", []).allowed is True

    @pytest.mark.parametrize("target", ["assigned", "research", "press_release_published"])
    def test_auto_audit_cannot_be_skipped(self, target):
        flags = GateFlags(has_recommendation=True, has_endorsement_result=True)
        result = can_advance_stage("survey_submitted", target, required_completed(), flags)
        assert result.allowed is False
        assert "must enter auto_audit" in result.reason

    def test_gate_is_pure(self):
        sections = required_completed()
        snapshot = list(sections)
        can_advance_stage("research", "committee_review", sections)
        assert sections == snapshot
