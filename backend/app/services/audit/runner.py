"""
Audit Task Registry

Supervised execution of the digital presence audit after the triggering
response has been sent.

Lifecycle owned here:
    PENDING → RUNNING (task body begins)
    RUNNING → FAILED  (workload raised, timed out, or returned without
                       recording a result)
The workload itself writes COMPLETED.

Failure handling has two layers:
1. Workload failure → FAILED + error_message + completed_at
2. That status write failing → "orphaned audit" error log with audit id,
   vetting id, original error and status-update error

Nothing escapes run(); every path leaves the record terminal or a log line
an operator can act on.
"""
import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from sqlalchemy.orm import Session

from ...models.db_models import AuditStatus, TERMINAL_AUDIT_STATUSES
from .records import AuditRecordStore


logger = logging.getLogger(__name__)

AUDIT_TIMEOUT_SECONDS = float(os.getenv("AUDIT_TIMEOUT_SECONDS", "300"))
AUDIT_MAX_WORKERS = int(os.getenv("AUDIT_MAX_WORKERS", "4"))

# (db, vetting_id, audit_id, triggered_by_id) -> None
AuditWorkload = Callable[[Session, str, str, Optional[str]], None]


class AuditTimeoutError(Exception):
    """Raised when the audit workload exceeds its time limit."""
    pass


class AuditIncompleteError(Exception):
    """Raised when the workload returns but the audit is still non-terminal."""
    pass


@dataclass
class AuditRunOutcome:
    """How a supervised audit run settled."""
    audit_id: str
    vetting_id: str
    status: Optional[AuditStatus]
    error_message: Optional[str] = None
    orphaned: bool = False


class AuditTaskRegistry:
    """
    Tracks and supervises background audit runs.

    Usage:
        registry = AuditTaskRegistry(SessionLocal, run_digital_presence_audit)
        registry.schedule(background_tasks, vetting_id, audit_id, actor_id)
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        workload: AuditWorkload,
        timeout_seconds: float = AUDIT_TIMEOUT_SECONDS,
        max_workers: int = AUDIT_MAX_WORKERS,
    ):
        self.session_factory = session_factory
        self.workload = workload
        self.timeout_seconds = timeout_seconds
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="audit")
        self._in_flight: Dict[str, str] = {}
        self._lock = threading.Lock()

    # =========================================================================
    # SCHEDULING
    # =========================================================================

    def schedule(self, background_tasks, vetting_id: str, audit_id: str, triggered_by_id: Optional[str]) -> None:
        """Queue a supervised run to start once the response is sent."""
        self._track(audit_id, vetting_id)
        background_tasks.add_task(self.run, vetting_id, audit_id, triggered_by_id)
        logger.info(f"[Audit] Scheduled audit {audit_id} for vetting {vetting_id}")

    def in_flight(self) -> Dict[str, str]:
        """audit_id -> vetting_id for audits scheduled or running."""
        with self._lock:
            return dict(self._in_flight)

    def shutdown(self, wait: bool = False) -> None:
        self._executor.shutdown(wait=wait)

    # =========================================================================
    # SUPERVISED RUN
    # =========================================================================

    def run(self, vetting_id: str, audit_id: str, triggered_by_id: Optional[str]) -> AuditRunOutcome:
        """Execute the audit to a terminal outcome. Never raises."""
        self._track(audit_id, vetting_id)
        try:
            try:
                self._mark_running(audit_id)
                self._execute_workload(vetting_id, audit_id, triggered_by_id)
                status = self._current_status(audit_id)
                if status not in TERMINAL_AUDIT_STATUSES:
                    raise AuditIncompleteError("Audit workload finished without recording a result")
            except Exception as err:
                logger.error(
                    f"[Audit] Background execution failed: audit={audit_id} vetting={vetting_id} error={err}",
                    exc_info=True,
                )
                return self._record_failure(vetting_id, audit_id, err)

            logger.info(f"[Audit] Audit {audit_id} for vetting {vetting_id} settled as {status.value}")
            return AuditRunOutcome(audit_id=audit_id, vetting_id=vetting_id, status=status)
        finally:
            with self._lock:
                self._in_flight.pop(audit_id, None)

    def _execute_workload(self, vetting_id: str, audit_id: str, triggered_by_id: Optional[str]) -> None:
        future = self._executor.submit(self._workload_in_session, vetting_id, audit_id, triggered_by_id)
        try:
            future.result(timeout=self.timeout_seconds)
        except FutureTimeoutError:
            # Drops the job if it is still queued; a started workload runs on
            # and its COMPLETED write is refused by the conditional update
            if future.cancel():
                logger.info(f"[Audit] Queued workload for audit {audit_id} cancelled after timeout")
            raise AuditTimeoutError(f"Audit timed out after {self.timeout_seconds:g} seconds")

    def _workload_in_session(self, vetting_id: str, audit_id: str, triggered_by_id: Optional[str]) -> None:
        db = self.session_factory()
        try:
            self.workload(db, vetting_id, audit_id, triggered_by_id)
        finally:
            db.close()

    def _record_failure(self, vetting_id: str, audit_id: str, err: Exception) -> AuditRunOutcome:
        message = str(err) or err.__class__.__name__
        try:
            db = self.session_factory()
            try:
                written = AuditRecordStore(db).mark_failed(audit_id, message)
            finally:
                db.close()
        except Exception as status_err:
            logger.error(
                f"[Audit] Fallback status update failed (orphaned audit): audit={audit_id} "
                f"vetting={vetting_id} original_error={message!r} status_update_error={status_err!r}",
                exc_info=True,
            )
            return AuditRunOutcome(
                audit_id=audit_id,
                vetting_id=vetting_id,
                status=None,
                error_message=message,
                orphaned=True,
            )

        if not written:
            logger.warning(f"[Audit] Audit {audit_id} was already terminal; failure not recorded: {message}")
        return AuditRunOutcome(
            audit_id=audit_id,
            vetting_id=vetting_id,
            status=AuditStatus.FAILED if written else self._safe_status(audit_id),
            error_message=message,
        )

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _track(self, audit_id: str, vetting_id: str) -> None:
        with self._lock:
            self._in_flight[audit_id] = vetting_id

    def _mark_running(self, audit_id: str) -> None:
        db = self.session_factory()
        try:
            if not AuditRecordStore(db).mark_running(audit_id):
                logger.warning(f"[Audit] Audit {audit_id} was not pending when the task started")
        finally:
            db.close()

    def _current_status(self, audit_id: str) -> Optional[AuditStatus]:
        db = self.session_factory()
        try:
            audit = AuditRecordStore(db).get(audit_id)
            return audit.status if audit else None
        finally:
            db.close()

    def _safe_status(self, audit_id: str) -> Optional[AuditStatus]:
        try:
            return self._current_status(audit_id)
        except Exception as e:
            logger.warning(f"[Audit] Could not read status of audit {audit_id}: {e}")
            return None


# =============================================================================
# DEFAULT REGISTRY
# =============================================================================

_registry: Optional[AuditTaskRegistry] = None
_registry_lock = threading.Lock()


def get_audit_registry() -> AuditTaskRegistry:
    """FastAPI dependency: process-wide registry running the digital presence audit."""
    global _registry
    with _registry_lock:
        if _registry is None:
            from ...database import SessionLocal
            from .engine import run_digital_presence_audit

            _registry = AuditTaskRegistry(SessionLocal, run_digital_presence_audit)
        return _registry


def shutdown_audit_registry() -> None:
    global _registry
    with _registry_lock:
        if _registry is not None:
            _registry.shutdown(wait=False)
            _registry = None
