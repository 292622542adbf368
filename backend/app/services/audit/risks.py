"""
Candidate Vetting - Digital Risk Assessment

Five weighted categories, each scored 0-100:
    security     (0.30)  plain-HTTP links, no campaign website
    consistency  (0.25)  low messaging consistency across platforms
    abandonment  (0.20)  inactive or abandoned accounts
    reputation   (0.15)  low content quality
    compliance   (0.10)  missing contact / disclosure information

Only candidate platforms are assessed. Platforms without contact data
count as lacking disclosures.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .scoring import round_half_up


SEVERITY_THRESHOLDS = [
    (80, "CRITICAL"),
    (60, "HIGH"),
    (40, "MEDIUM"),
    (20, "LOW"),
    (0, "NONE"),
]

RISK_WEIGHTS = {
    "security": 0.30,
    "consistency": 0.25,
    "abandonment": 0.20,
    "reputation": 0.15,
    "compliance": 0.10,
}


def get_severity(score: float) -> str:
    for minimum, severity in SEVERITY_THRESHOLDS:
        if score >= minimum:
            return severity
    return "NONE"


@dataclass
class Risk:
    category: str
    severity: str
    description: str
    mitigation: str
    platform_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "category": self.category,
            "severity": self.severity,
            "description": self.description,
            "mitigation": self.mitigation,
        }
        if self.platform_url:
            result["platform_url"] = self.platform_url
        return result


@dataclass
class RiskAssessment:
    overall_score: int = 0
    overall_severity: str = "NONE"
    risks: List[Risk] = field(default_factory=list)

    @property
    def critical_count(self) -> int:
        return sum(1 for r in self.risks if r.severity == "CRITICAL")

    @property
    def high_count(self) -> int:
        return sum(1 for r in self.risks if r.severity == "HIGH")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall_score": self.overall_score,
            "overall_severity": self.overall_severity,
            "risks": [r.to_dict() for r in self.risks],
            "critical_count": self.critical_count,
            "high_count": self.high_count,
        }


def _is_website(platform: Dict[str, Any]) -> bool:
    name = (platform.get("platform_name") or "").lower()
    url = platform.get("platform_url") or ""
    return "website" in name or ("facebook" not in url and "twitter" not in url)


def _security(platforms: List[Dict[str, Any]], risks: List[Risk]) -> float:
    score = 0.0
    for p in platforms:
        url = p.get("platform_url") or ""
        if url.startswith("http://"):
            risks.append(Risk(
                category="security",
                severity="HIGH",
                description=f"{p.get('platform_name')} does not use HTTPS",
                mitigation="Enable SSL/HTTPS to protect visitor data",
                platform_url=url,
            ))
            score += 25

    if platforms and not any(_is_website(p) for p in platforms):
        risks.append(Risk(
            category="security",
            severity="MEDIUM",
            description="No dedicated campaign website detected",
            mitigation="Create a campaign website to control messaging and collect supporter info",
        ))
        score += 15

    return min(100.0, score)


def _consistency(platforms: List[Dict[str, Any]], risks: List[Risk]) -> float:
    values = [p["score_consistency"] for p in platforms if p.get("score_consistency")]
    if not values:
        return 0.0

    average = sum(values) / len(values)
    if average < 1:
        risks.append(Risk(
            category="consistency",
            severity="HIGH",
            description="Severe messaging inconsistency across platforms",
            mitigation="Standardize campaign branding, logo, and messaging across all platforms",
        ))
        return 30.0
    if average < 2:
        risks.append(Risk(
            category="consistency",
            severity="MEDIUM",
            description="Moderate messaging inconsistency detected",
            mitigation="Review and align platform bios, images, and campaign messaging",
        ))
        return 15.0
    return 0.0


def _abandonment(platforms: List[Dict[str, Any]], risks: List[Risk]) -> float:
    stale = sum(1 for p in platforms if p.get("activity_status") in ("inactive", "abandoned"))
    if stale == 0:
        return 0.0

    severe = stale >= 3
    risks.append(Risk(
        category="abandonment",
        severity="HIGH" if severe else "MEDIUM",
        description=f"{stale} inactive or abandoned platform(s) found",
        mitigation="Reactivate important accounts or deactivate to prevent voter confusion",
    ))
    return 40.0 if severe else 20.0


def _reputation(platforms: List[Dict[str, Any]], risks: List[Risk]) -> float:
    low_quality = sum(
        1 for p in platforms
        if p.get("score_quality") is not None and p["score_quality"] <= 1
    )
    if low_quality < 2:
        return 0.0

    risks.append(Risk(
        category="reputation",
        severity="MEDIUM",
        description=f"{low_quality} platform(s) have low content quality scores",
        mitigation="Improve content quality and professionalism on all public-facing platforms",
    ))
    return 20.0


def _compliance(platforms: List[Dict[str, Any]], risks: List[Risk]) -> float:
    missing = sum(1 for p in platforms if not p.get("contact_methods"))
    if not platforms or missing <= len(platforms) / 2:
        return 0.0

    risks.append(Risk(
        category="compliance",
        severity="MEDIUM",
        description="Most platforms lack visible contact or disclosure information",
        mitigation="Add FEC-required paid-for-by disclaimers and contact info on all campaign materials",
    ))
    return 20.0


def assess_risks(platforms: List[Dict[str, Any]]) -> RiskAssessment:
    """
    Assess digital risks for the candidate's platforms.

    platforms: dicts as produced by the audit engine; entity_type other
        than "candidate" is ignored
    """
    candidate = [p for p in platforms if p.get("entity_type", "candidate") == "candidate"]
    risks: List[Risk] = []

    scores = {
        "security": _security(candidate, risks),
        "consistency": _consistency(candidate, risks),
        "abandonment": _abandonment(candidate, risks),
        "reputation": _reputation(candidate, risks),
        "compliance": _compliance(candidate, risks),
    }
    overall = round_half_up(sum(scores[name] * weight for name, weight in RISK_WEIGHTS.items()))

    return RiskAssessment(
        overall_score=overall,
        overall_severity=get_severity(overall),
        risks=risks,
    )
