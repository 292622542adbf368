"""
Stage Advance Service

Applies an approved stage transition to a persisted vetting case.

Order of operations:
1. Load case stage / recommendation / endorsement result
2. Load report section states
3. Evaluate the stage gate (rejection → no mutation)
4. Compare-and-set the stage on the value read in step 1
   (zero rows → conflict, never retried here)
5. Entering AUTO_AUDIT: create the PENDING audit record; if that fails,
   revert the stage and report a bootstrap failure

Scheduling the audit itself is left to the caller so it can run after the
response is delivered.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Union

from sqlalchemy.orm import Session

from ...models.db_models import VettingCaseDB, ReportSectionDB, VettingStage
from ..audit.records import AuditRecordStore
from .progress import SectionState
from .stage_gate import AUDIT_TRIGGER_STAGE, GateFlags, can_advance_stage


logger = logging.getLogger(__name__)


class StageAdvanceOutcome(str, Enum):
    ADVANCED = "advanced"
    NOT_FOUND = "not_found"
    REJECTED = "rejected"
    CONFLICT = "conflict"
    AUDIT_BOOTSTRAP_FAILED = "audit_bootstrap_failed"


@dataclass
class StageAdvanceResult:
    """Typed outcome of a stage advance request."""
    outcome: StageAdvanceOutcome
    case: Optional[VettingCaseDB] = None
    reason: Optional[str] = None
    previous_stage: Optional[VettingStage] = None
    audit_id: Optional[str] = None
    rolled_back: bool = False

    @property
    def ok(self) -> bool:
        return self.outcome == StageAdvanceOutcome.ADVANCED


def compare_and_set_stage(
    db: Session,
    case_id: str,
    expected_stage: VettingStage,
    new_stage: VettingStage,
) -> bool:
    """
    Set stage only if it still equals expected_stage. Commits.

    Returns True when exactly one row changed.
    """
    try:
        updated = db.query(VettingCaseDB).filter(
            VettingCaseDB.id == case_id,
            VettingCaseDB.stage == expected_stage,
        ).update(
            {
                VettingCaseDB.stage: new_stage,
                VettingCaseDB.updated_at: datetime.now(timezone.utc),
            },
            synchronize_session=False,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    return updated == 1


class StageAdvanceService:
    """Concurrency-safe stage advance for vetting cases."""

    def __init__(self, db: Session):
        self.db = db
        self.audits = AuditRecordStore(db)

    def advance_stage(
        self,
        case_id: str,
        target_stage: Union[VettingStage, str],
        actor_id: Optional[str],
    ) -> StageAdvanceResult:
        """
        Advance a case to target_stage.

        Args:
            case_id: Vetting case id
            target_stage: Requested stage
            actor_id: Member id recorded as the audit trigger

        Returns:
            StageAdvanceResult; datastore errors outside the audit bootstrap
            propagate as exceptions
        """
        # 1. Current case state
        case = self._load_case(case_id)
        if case is None:
            return StageAdvanceResult(outcome=StageAdvanceOutcome.NOT_FOUND, reason="Vetting not found")

        observed_stage = VettingStage(case.stage)
        flags = GateFlags(
            has_recommendation=case.recommendation is not None,
            has_endorsement_result=case.endorsement_result is not None,
        )

        # 2. Section states
        sections = self._load_sections(case_id)

        # 3. Gate
        gate = can_advance_stage(observed_stage, target_stage, sections, flags)
        if not gate.allowed:
            logger.info(f"Stage advance rejected for vetting {case_id}: {gate.reason}")
            return StageAdvanceResult(
                outcome=StageAdvanceOutcome.REJECTED,
                case=case,
                reason=gate.reason,
                previous_stage=observed_stage,
            )
        target = VettingStage(target_stage)

        # 4. Compare-and-set on the observed stage
        if not compare_and_set_stage(self.db, case_id, observed_stage, target):
            logger.info(
                f"Stage advance conflict for vetting {case_id}: "
                f"stage changed from {observed_stage.value} before write"
            )
            return StageAdvanceResult(
                outcome=StageAdvanceOutcome.CONFLICT,
                reason="Stage was modified by another user. Please refresh and try again.",
                previous_stage=observed_stage,
            )

        # 5. Audit bootstrap
        audit_id = None
        if target == AUDIT_TRIGGER_STAGE:
            audit_id = self._bootstrap_audit(case_id, actor_id)
            if audit_id is None:
                rolled_back = self._revert_stage(case_id, target, observed_stage)
                return StageAdvanceResult(
                    outcome=StageAdvanceOutcome.AUDIT_BOOTSTRAP_FAILED,
                    case=self._load_case(case_id),
                    reason="Audit initialization failed",
                    previous_stage=observed_stage,
                    rolled_back=rolled_back,
                )

        logger.info(f"Vetting {case_id} advanced {observed_stage.value} -> {target.value}")
        return StageAdvanceResult(
            outcome=StageAdvanceOutcome.ADVANCED,
            case=self._load_case(case_id),
            previous_stage=observed_stage,
            audit_id=audit_id,
        )

    # =========================================================================
    # INTERNAL
    # =========================================================================

    def _load_case(self, case_id: str) -> Optional[VettingCaseDB]:
        self.db.expire_all()
        return self.db.query(VettingCaseDB).filter(VettingCaseDB.id == case_id).first()

    def _load_sections(self, case_id: str) -> List[SectionState]:
        rows = self.db.query(ReportSectionDB.section, ReportSectionDB.status).filter(
            ReportSectionDB.vetting_id == case_id
        ).all()
        return [(row.section, row.status) for row in rows]

    def _bootstrap_audit(self, case_id: str, actor_id: Optional[str]) -> Optional[str]:
        try:
            audit = self.audits.create_pending(case_id, actor_id)
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to create audit record on stage advance: vetting={case_id} error={e}")
            return None
        return audit.id

    def _revert_stage(
        self,
        case_id: str,
        from_stage: VettingStage,
        to_stage: VettingStage,
    ) -> bool:
        """Compensating rollback. Returns True if the stage was restored."""
        try:
            restored = compare_and_set_stage(self.db, case_id, from_stage, to_stage)
        except Exception as e:
            logger.error(
                f"Compensating stage rollback failed: vetting={case_id} "
                f"stuck_stage={from_stage.value} intended_stage={to_stage.value} error={e}",
                exc_info=True,
            )
            return False

        if not restored:
            logger.error(
                f"Compensating stage rollback skipped: vetting={case_id} is no longer at "
                f"{from_stage.value}; manual reconciliation required"
            )
        else:
            logger.warning(f"Vetting {case_id} stage rolled back to {to_stage.value} after audit bootstrap failure")
        return restored
