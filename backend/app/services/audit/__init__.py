"""Candidate Vetting - Digital Presence Audit

Audit record lifecycle, supervised background execution, and the
classification/scoring used by the default workload (see engine.py).
"""
from .records import AuditRecordStore
from .runner import (
    AuditTaskRegistry,
    AuditRunOutcome,
    AuditTimeoutError,
    AuditIncompleteError,
    get_audit_registry,
    shutdown_audit_registry,
)
from .platform_classifier import PlatformClassification, classify_url
from .scoring import calculate_confidence, score_platform, score_overall
from .risks import assess_risks

__all__ = [
    "AuditRecordStore",
    "AuditTaskRegistry",
    "AuditRunOutcome",
    "AuditTimeoutError",
    "AuditIncompleteError",
    "get_audit_registry",
    "shutdown_audit_registry",
    "PlatformClassification",
    "classify_url",
    "calculate_confidence",
    "score_platform",
    "score_overall",
    "assess_risks",
]
