"""
Candidate Vetting - Digital Presence Audit Engine

Default workload run by the AuditTaskRegistry.

Pipeline:
1. Load the vetting case and its opponents
2. Gather known URLs (case metadata "known_urls", opponent social_links)
3. Classify → confidence → per-platform score
4. Opponent mini-audits, the 0-100 overall score and the risk assessment
5. Store platform rows, pre-populate the digital_presence_audit section
6. Mark the audit COMPLETED (conditional) and advance auto_audit → assigned

Any exception propagates to the registry, which records FAILED.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional
from uuid import uuid4

from sqlalchemy.orm import Session

from ...models.db_models import (
    VettingCaseDB, OpponentDB, ReportSectionDB, AuditPlatformDB,
    ReportSectionType, VettingStage,
)
from ..vetting.stage_service import compare_and_set_stage
from .platform_classifier import classify_url
from .records import AuditRecordStore
from .risks import assess_risks
from .scoring import (
    calculate_confidence, score_platform, signals_from_confidence,
    score_overall, round_half_up,
)

logger = logging.getLogger(__name__)


class AuditWorkloadError(Exception):
    """Raised when the audit cannot run for this case."""
    pass


def _known_url_entries(raw: Any) -> List[Dict[str, str]]:
    """Accept ["https://..."] or [{"url": ..., "title": ...}]."""
    entries = []
    for item in raw or []:
        if isinstance(item, str):
            entries.append({"url": item, "title": ""})
        elif isinstance(item, dict) and item.get("url"):
            entries.append({"url": str(item["url"]), "title": str(item.get("title") or "")})
    return entries


class DigitalPresenceAuditEngine:
    """Computes and stores one audit run for a vetting case."""

    def __init__(self, db: Session):
        self.db = db
        self.records = AuditRecordStore(db)

    def run(self, vetting_id: str, audit_id: str, triggered_by_id: Optional[str] = None) -> bool:
        """
        Execute the audit.

        Returns:
            True if COMPLETED was written, False if the audit was already
            terminal (e.g. failed by a timeout) and results were discarded
        """
        case = self.db.query(VettingCaseDB).filter(VettingCaseDB.id == vetting_id).first()
        if case is None:
            raise AuditWorkloadError(f"Vetting {vetting_id} not found")

        opponents = self.db.query(OpponentDB).filter(OpponentDB.vetting_id == vetting_id).all()
        metadata = case.case_metadata or {}
        candidate_urls = _known_url_entries(metadata.get("known_urls"))

        logger.info(
            f"[Audit] Starting audit {audit_id} for \"{case.candidate_name}\" "
            f"({len(candidate_urls)} known URLs, {len(opponents)} opponents)"
        )

        candidate_platforms = self.process_platforms(
            candidate_urls,
            entity_type="candidate",
            entity_name=case.candidate_name,
            office=case.candidate_office,
            state=case.candidate_state,
        )

        opponent_audits = [self._audit_opponent(opponent, case) for opponent in opponents]
        breakdown = score_overall(candidate_platforms, opponent_audits)
        risk_assessment = assess_risks(candidate_platforms).to_dict()

        # Platform rows
        all_platforms = candidate_platforms + [p for o in opponent_audits for p in o["platforms"]]
        for platform in all_platforms:
            self.db.add(AuditPlatformDB(id=str(uuid4()), audit_id=audit_id, **platform))

        # Draft for the digital_presence_audit report section
        draft = {
            "overall_score": breakdown.total,
            "grade": breakdown.grade,
            "score_breakdown": breakdown.to_dict(),
            "risk_assessment": risk_assessment,
            "platform_count": len(candidate_platforms),
            "opponent_count": len(opponent_audits),
            "generated_at": datetime.now(timezone.utc).isoformat(),
        }
        self.db.query(ReportSectionDB).filter(
            ReportSectionDB.vetting_id == vetting_id,
            ReportSectionDB.section == ReportSectionType.DIGITAL_PRESENCE_AUDIT,
        ).update({ReportSectionDB.ai_draft_data: draft}, synchronize_session=False)

        completed = self.records.mark_completed(
            audit_id,
            {
                "candidate_overall_score": breakdown.total,
                "candidate_grade": breakdown.grade,
                "candidate_score_breakdown": breakdown.to_dict(),
                "candidate_risks": risk_assessment,
                "opponent_audits": [
                    {k: v for k, v in o.items() if k != "platforms"} for o in opponent_audits
                ],
                "discovery_log": {
                    "source": "known_urls",
                    "urls": [entry["url"] for entry in candidate_urls],
                    "total_searches": 0,
                },
            },
            commit=False,
        )
        if not completed:
            self.db.rollback()
            logger.warning(f"[Audit] Audit {audit_id} already terminal; discarding results")
            return False
        self.db.commit()

        if compare_and_set_stage(self.db, vetting_id, VettingStage.AUTO_AUDIT, VettingStage.ASSIGNED):
            logger.info(f"[Audit] Vetting {vetting_id} advanced auto_audit -> assigned")

        logger.info(
            f"[Audit] Completed for \"{case.candidate_name}\" - score {breakdown.total} ({breakdown.grade})"
        )
        return True

    def process_platforms(
        self,
        urls: Iterable[Dict[str, str]],
        entity_type: str,
        entity_name: str,
        office: Optional[str],
        state: Optional[str],
    ) -> List[Dict[str, Any]]:
        """Classify and score URLs; unclassifiable values are skipped."""
        results = []
        seen = set()
        for entry in urls:
            url = entry["url"].strip()
            if url.lower() in seen:
                continue
            seen.add(url.lower())

            classification = classify_url(url)
            if classification is None:
                continue

            _, confidence, _ = calculate_confidence(url, entry.get("title", ""), entity_name, office, state)
            scores = score_platform(signals_from_confidence(confidence))

            results.append({
                "entity_type": entity_type,
                "entity_name": entity_name,
                "platform_type": classification.platform_type,
                "platform_name": classification.platform_name,
                "platform_category": classification.category,
                "platform_url": url,
                "confidence_score": round_half_up(confidence * 100) / 100,
                "score_presence": scores.presence,
                "score_consistency": scores.consistency,
                "score_quality": scores.quality,
                "score_accessibility": scores.accessibility,
                "total_score": scores.total,
                "grade": scores.grade,
            })
        return results

    def _audit_opponent(self, opponent: OpponentDB, case: VettingCaseDB) -> Dict[str, Any]:
        try:
            links = opponent.social_links or {}
            urls = [{"url": str(url), "title": ""} for url in links.values() if url]
            platforms = self.process_platforms(
                urls,
                entity_type="opponent",
                entity_name=opponent.name,
                office=case.candidate_office,
                state=case.candidate_state,
            )
        except Exception as e:
            logger.warning(f"[Audit] Opponent audit failed for \"{opponent.name}\": {e}")
            return {
                "name": opponent.name,
                "party": opponent.party,
                "platform_count": 0,
                "overall_score": None,
                "platforms": [],
                "audit_failed": True,
                "failure_reason": str(e),
            }

        average = None
        if platforms:
            average = round_half_up(sum(p["total_score"] for p in platforms) / len(platforms))
        return {
            "name": opponent.name,
            "party": opponent.party,
            "platform_count": len(platforms),
            "overall_score": average,
            "platforms": platforms,
        }


def run_digital_presence_audit(
    db: Session,
    vetting_id: str,
    audit_id: str,
    triggered_by_id: Optional[str] = None,
) -> None:
    """Workload entry point for AuditTaskRegistry."""
    DigitalPresenceAuditEngine(db).run(vetting_id, audit_id, triggered_by_id)
