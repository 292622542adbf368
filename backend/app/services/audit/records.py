"""
Digital audit record writes.

Every status write is conditional on the audit still being non-terminal,
so COMPLETED / FAILED are never overwritten once reached.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import uuid4

from sqlalchemy.orm import Session

from ...models.db_models import (
    DigitalAuditDB, AuditStatus, ACTIVE_AUDIT_STATUSES,
)


class AuditRecordStore:
    """Lifecycle writes for DigitalAuditDB rows."""

    def __init__(self, db: Session):
        self.db = db

    def create_pending(self, vetting_id: str, triggered_by_id: Optional[str]) -> DigitalAuditDB:
        """
        Insert a PENDING audit and commit.

        Raises IntegrityError when another non-terminal audit exists for the
        vetting (partial unique index). The caller owns rollback.
        """
        audit = DigitalAuditDB(
            id=str(uuid4()),
            vetting_id=vetting_id,
            status=AuditStatus.PENDING,
            triggered_by_id=triggered_by_id,
        )
        self.db.add(audit)
        self.db.commit()
        return audit

    def get(self, audit_id: str) -> Optional[DigitalAuditDB]:
        return self.db.query(DigitalAuditDB).filter(DigitalAuditDB.id == audit_id).first()

    def latest_for_vetting(self, vetting_id: str) -> Optional[DigitalAuditDB]:
        return self.db.query(DigitalAuditDB).filter(
            DigitalAuditDB.vetting_id == vetting_id
        ).order_by(DigitalAuditDB.created_at.desc()).first()

    def mark_running(self, audit_id: str) -> bool:
        return self._transition(audit_id, {
            DigitalAuditDB.status: AuditStatus.RUNNING,
            DigitalAuditDB.started_at: datetime.now(timezone.utc),
        })

    def mark_completed(
        self,
        audit_id: str,
        results: Optional[Dict[str, Any]] = None,
        commit: bool = True,
    ) -> bool:
        """
        Write COMPLETED plus result columns.

        With commit=False the update is only flushed, so the caller can
        commit it together with its own rows or roll everything back.
        """
        values = {
            DigitalAuditDB.status: AuditStatus.COMPLETED,
            DigitalAuditDB.completed_at: datetime.now(timezone.utc),
        }
        for key, value in (results or {}).items():
            values[getattr(DigitalAuditDB, key)] = value
        return self._transition(audit_id, values, commit=commit)

    def mark_failed(self, audit_id: str, error_message: str) -> bool:
        return self._transition(audit_id, {
            DigitalAuditDB.status: AuditStatus.FAILED,
            DigitalAuditDB.error_message: error_message,
            DigitalAuditDB.completed_at: datetime.now(timezone.utc),
        })

    def _transition(self, audit_id: str, values: Dict[Any, Any], commit: bool = True) -> bool:
        """Apply values if the audit is PENDING or RUNNING. Returns False otherwise."""
        values[DigitalAuditDB.updated_at] = datetime.now(timezone.utc)
        try:
            updated = self.db.query(DigitalAuditDB).filter(
                DigitalAuditDB.id == audit_id,
                DigitalAuditDB.status.in_(ACTIVE_AUDIT_STATUSES),
            ).update(values, synchronize_session=False)
            if commit:
                self.db.commit()
            else:
                self.db.flush()
        except Exception:
            self.db.rollback()
            raise
        return updated == 1
