"""
Tests for the stage advance orchestrator against SQLite.

1. Happy path, rejection, not found
2. Compare-and-set conflict when another writer advances in between
3. Audit bootstrap failure → compensating rollback
4. Rollback is itself conditional on the stage still being the target
5. Full pipeline walk-through including the background audit
"""
import pytest

from app.models.db_models import (
    AuditStatus, DigitalAuditDB, Recommendation, VettingStage,
)
from app.services.audit.engine import run_digital_presence_audit
from app.services.audit.records import AuditRecordStore
from app.services.audit.runner import AuditTaskRegistry
from app.services.vetting.stage_service import (
    StageAdvanceOutcome, StageAdvanceService, compare_and_set_stage,
)
from app.services.vetting.vetting_service import VettingService

from conftest import REQUIRED, get_stage, set_sections


# =============================================================================
# TEST: BASIC OUTCOMES
# =============================================================================

class TestAdvanceStage:
    """Gate + compare-and-set outcomes."""

    def test_advance_to_auto_audit_creates_pending_audit(self, db, make_case, session_factory):
        case_id = make_case()

        result = StageAdvanceService(db).advance_stage(case_id, "auto_audit", "chair-1")

        assert result.outcome == StageAdvanceOutcome.ADVANCED
        assert result.ok
        assert result.previous_stage == VettingStage.SURVEY_SUBMITTED
        assert result.audit_id is not None
        assert get_stage(session_factory, case_id) == VettingStage.AUTO_AUDIT

        audit = db.query(DigitalAuditDB).filter(DigitalAuditDB.id == result.audit_id).one()
        assert audit.status == AuditStatus.PENDING
        assert audit.triggered_by_id == "chair-1"

    def test_non_audit_stage_has_no_audit(self, db, make_case):
        case_id = make_case(stage=VettingStage.ASSIGNED)
        result = StageAdvanceService(db).advance_stage(case_id, VettingStage.RESEARCH, "chair-1")
        assert result.outcome == StageAdvanceOutcome.ADVANCED
        assert result.audit_id is None
        assert db.query(DigitalAuditDB).count() == 0

    def test_gate_rejection_does_not_mutate(self, db, make_case, session_factory):
        case_id = make_case(stage=VettingStage.RESEARCH)

        result = StageAdvanceService(db).advance_stage(case_id, "interview", "chair-1")

        assert result.outcome == StageAdvanceOutcome.REJECTED
        assert "Required report sections" in result.reason
        assert get_stage(session_factory, case_id) == VettingStage.RESEARCH

    def test_backward_move_rejected(self, db, make_case, session_factory):
        case_id = make_case(stage=VettingStage.RESEARCH)
        result = StageAdvanceService(db).advance_stage(case_id, "assigned", "chair-1")
        assert result.outcome == StageAdvanceOutcome.REJECTED
        assert get_stage(session_factory, case_id) == VettingStage.RESEARCH

    def test_skipping_auto_audit_rejected_without_audit(self, db, make_case, session_factory):
        case_id = make_case()

        result = StageAdvanceService(db).advance_stage(case_id, VettingStage.RESEARCH, "chair-1")

        assert result.outcome == StageAdvanceOutcome.REJECTED
        assert "must enter auto_audit" in result.reason
        assert get_stage(session_factory, case_id) == VettingStage.SURVEY_SUBMITTED
        assert db.query(DigitalAuditDB).filter(DigitalAuditDB.vetting_id == case_id).count() == 0

    def test_unknown_case(self, db):
        result = StageAdvanceService(db).advance_stage("missing", "auto_audit", "chair-1")
        assert result.outcome == StageAdvanceOutcome.NOT_FOUND

    def test_compare_and_set_requires_expected_stage(self, db, make_case, session_factory):
        case_id = make_case(stage=VettingStage.RESEARCH)
        assert compare_and_set_stage(db, case_id, VettingStage.ASSIGNED, VettingStage.INTERVIEW) is False
        assert compare_and_set_stage(db, case_id, VettingStage.RESEARCH, VettingStage.INTERVIEW) is True
        assert get_stage(session_factory, case_id) == VettingStage.INTERVIEW


# =============================================================================
# TEST: CONCURRENCY
# =============================================================================

class TestConcurrentAdvance:
    """Two writers reading the same stage: exactly one wins."""

    def test_second_writer_gets_conflict(self, db, make_case, session_factory, monkeypatch):
        case_id = make_case(stage=VettingStage.ASSIGNED)
        service_a = StageAdvanceService(db)
        original_load_sections = service_a._load_sections

        def interleaved(cid):
            # Writer B completes its whole advance between A's read and A's write
            other = session_factory()
            try:
                b_result = StageAdvanceService(other).advance_stage(cid, "research", "member-b")
                assert b_result.outcome == StageAdvanceOutcome.ADVANCED
            finally:
                other.close()
            return original_load_sections(cid)

        monkeypatch.setattr(service_a, "_load_sections", interleaved)

        result = service_a.advance_stage(case_id, "research", "member-a")

        assert result.outcome == StageAdvanceOutcome.CONFLICT
        assert result.reason == "Stage was modified by another user. Please refresh and try again."
        assert get_stage(session_factory, case_id) == VettingStage.RESEARCH

    def test_conflict_on_audit_stage_creates_single_audit(self, db, make_case, session_factory, monkeypatch):
        case_id = make_case()
        service_a = StageAdvanceService(db)
        original_load_sections = service_a._load_sections

        def interleaved(cid):
            other = session_factory()
            try:
                StageAdvanceService(other).advance_stage(cid, "auto_audit", "member-b")
            finally:
                other.close()
            return original_load_sections(cid)

        monkeypatch.setattr(service_a, "_load_sections", interleaved)

        result = service_a.advance_stage(case_id, "auto_audit", "member-a")

        assert result.outcome == StageAdvanceOutcome.CONFLICT
        assert db.query(DigitalAuditDB).filter(DigitalAuditDB.vetting_id == case_id).count() == 1


# =============================================================================
# TEST: AUDIT BOOTSTRAP FAILURE
# =============================================================================

class TestAuditBootstrapFailure:
    """Failed audit-record creation reverts the stage."""

    def test_existing_active_audit_blocks_and_rolls_back(self, db, make_case, session_factory):
        case_id = make_case()
        manual = VettingService(db).trigger_audit(case_id, "chair-1")

        result = StageAdvanceService(db).advance_stage(case_id, "auto_audit", "chair-1")

        assert result.outcome == StageAdvanceOutcome.AUDIT_BOOTSTRAP_FAILED
        assert result.rolled_back is True
        assert get_stage(session_factory, case_id) == VettingStage.SURVEY_SUBMITTED
        audits = db.query(DigitalAuditDB).filter(DigitalAuditDB.vetting_id == case_id).all()
        assert [a.id for a in audits] == [manual.id]

    def test_insert_error_rolls_back(self, db, make_case, session_factory, monkeypatch):
        case_id = make_case()

        def boom(self, vetting_id, triggered_by_id):
            raise RuntimeError("connection reset")

        monkeypatch.setattr(AuditRecordStore, "create_pending", boom)

        result = StageAdvanceService(db).advance_stage(case_id, "auto_audit", "chair-1")

        assert result.outcome == StageAdvanceOutcome.AUDIT_BOOTSTRAP_FAILED
        assert result.rolled_back is True
        assert get_stage(session_factory, case_id) == VettingStage.SURVEY_SUBMITTED

    def test_rollback_skipped_when_stage_moved_on(self, db, make_case, session_factory, monkeypatch):
        case_id = make_case()

        def boom_after_concurrent_move(self, vetting_id, triggered_by_id):
            other = session_factory()
            try:
                compare_and_set_stage(other, vetting_id, VettingStage.AUTO_AUDIT, VettingStage.ASSIGNED)
            finally:
                other.close()
            raise RuntimeError("insert failed")

        monkeypatch.setattr(AuditRecordStore, "create_pending", boom_after_concurrent_move)

        result = StageAdvanceService(db).advance_stage(case_id, "auto_audit", "chair-1")

        assert result.outcome == StageAdvanceOutcome.AUDIT_BOOTSTRAP_FAILED
        assert result.rolled_back is False
        # The other writer's value is not clobbered
        assert get_stage(session_factory, case_id) == VettingStage.ASSIGNED

    def test_bootstrap_failure_is_logged(self, db, make_case, monkeypatch, caplog):
        case_id = make_case()

        def boom(self, vetting_id, triggered_by_id):
            raise RuntimeError("db down")

        monkeypatch.setattr(AuditRecordStore, "create_pending", boom)

        with caplog.at_level("WARNING"):
            StageAdvanceService(db).advance_stage(case_id, "auto_audit", "chair-1")

        assert "Failed to create audit record" in caplog.text
        assert "rolled back" in caplog.text


# =============================================================================
# TEST: FULL PIPELINE
# =============================================================================

class TestPipelineWalkthrough:
    """survey_submitted → press_release_created with the audit in between."""

    def test_full_pipeline(self, db, make_case, session_factory):
        case_id = make_case(metadata={"known_urls": [
            "https://www.facebook.com/janesmithtx",
            "https://janesmithforsenate.com",
            "https://ballotpedia.org/Jane_Smith",
        ]})
        stages = StageAdvanceService(db)
        workflow = VettingService(db)

        result = stages.advance_stage(case_id, "auto_audit", "chair-1")
        assert result.outcome == StageAdvanceOutcome.ADVANCED

        registry = AuditTaskRegistry(session_factory, run_digital_presence_audit, timeout_seconds=30)
        try:
            outcome = registry.run(case_id, result.audit_id, "chair-1")
        finally:
            registry.shutdown(wait=True)

        assert outcome.status == AuditStatus.COMPLETED
        # Successful audit advances auto_audit → assigned
        assert get_stage(session_factory, case_id) == VettingStage.ASSIGNED

        db.expire_all()
        assert stages.advance_stage(case_id, "research", "chair-1").ok
        assert not stages.advance_stage(case_id, "interview", "chair-1").ok

        set_sections(db, case_id, REQUIRED)
        assert stages.advance_stage(case_id, "interview", "chair-1").ok
        assert stages.advance_stage(case_id, "committee_review", "chair-1").ok

        blocked = stages.advance_stage(case_id, "board_vote", "chair-1")
        assert blocked.outcome == StageAdvanceOutcome.REJECTED
        assert "Missing recommendation" in blocked.reason

        workflow.set_recommendation(case_id, "endorse", "Strong candidate")
        assert stages.advance_stage(case_id, "board_vote", "chair-1").ok

        assert not stages.advance_stage(case_id, "press_release_created", "chair-1").ok

        workflow.cast_board_vote(case_id, "board-1", "vote_endorse")
        workflow.cast_board_vote(case_id, "board-2", "vote_endorse")
        workflow.cast_board_vote(case_id, "board-3", "vote_do_not_endorse")
        finalized = workflow.finalize_votes(case_id)
        assert finalized["endorsement_result"] == Recommendation.ENDORSE.value

        result = stages.advance_stage(case_id, "press_release_created", "chair-1")
        assert result.ok
        assert result.case.stage == VettingStage.PRESS_RELEASE_CREATED
