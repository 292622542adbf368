"""
Candidate Vetting - Audit Scoring

Confidence (0-1), five weighted factors:
    name_match       (0-0.4)  candidate name appears in URL/title
    office_match     (0-0.3)  office/district/state reference
    location_match   (0-0.15) state reference
    domain_authority (0-0.1)  known political platforms score higher
    content_signals  (0-0.05) political keywords

Per-platform (0-12): presence + consistency + quality + accessibility (each 0-3)

Overall (0-100): five dimensions x 20 points
    digital_presence, campaign_consistency, communication_quality,
    voter_accessibility, competitive_positioning
"""
import math
import re
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .platform_classifier import hostname_of


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


# =============================================================================
# CONFIDENCE
# =============================================================================

CONFIDENCE_HIGH = 0.7
CONFIDENCE_MEDIUM = 0.5
CONFIDENCE_LOW = 0.3

POLITICAL_DOMAIN_AUTHORITY = {
    "ballotpedia.org": 0.1,
    "votesmart.org": 0.1,
    "opensecrets.org": 0.1,
    "fec.gov": 0.1,
    "govtrack.us": 0.1,
    "congress.gov": 0.1,
    "linkedin.com": 0.1,
    "facebook.com": 0.1,
    "twitter.com": 0.1,
    "x.com": 0.1,
    "instagram.com": 0.09,
    "youtube.com": 0.09,
    "tiktok.com": 0.08,
    "patch.com": 0.07,
    "medium.com": 0.07,
    "substack.com": 0.07,
}

POLITICAL_KEYWORDS = (
    "campaign", "candidate", "election", "vote", "elect",
    "republican", "democrat", "libertarian", "conservative", "progressive",
    "district", "precinct", "ballot", "endorsement",
)


@dataclass
class ConfidenceFactors:
    name_match: float = 0.0
    office_match: float = 0.0
    location_match: float = 0.0
    domain_authority: float = 0.0
    content_signals: float = 0.0

    @property
    def total(self) -> float:
        return (
            self.name_match + self.office_match + self.location_match
            + self.domain_authority + self.content_signals
        )


def calculate_confidence(
    url: str,
    title: str,
    candidate_name: str,
    office: Optional[str],
    state: Optional[str],
) -> Tuple[ConfidenceFactors, float, str]:
    """
    Score how likely a URL belongs to the named candidate.

    Returns:
        (factors, score clamped to [0, 1], level HIGH/MEDIUM/LOW/NONE)
    """
    combined = f"{url.lower()} {(title or '').lower()}"
    factors = ConfidenceFactors(
        name_match=_name_match(combined, candidate_name),
        office_match=_office_match(combined, office, state),
        location_match=_location_match(combined, state),
        domain_authority=_domain_authority(url),
        content_signals=_content_signals(combined),
    )
    score = max(0.0, min(1.0, factors.total))
    return factors, score, confidence_level(score)


def confidence_level(score: float) -> str:
    if score >= CONFIDENCE_HIGH:
        return "HIGH"
    if score >= CONFIDENCE_MEDIUM:
        return "MEDIUM"
    if score >= CONFIDENCE_LOW:
        return "LOW"
    return "NONE"


def _name_match(text: str, name: str) -> float:
    parts = [p for p in (name or "").lower().split() if p]
    if not parts:
        return 0.0
    if "".join(parts) in text or "-".join(parts) in text:
        return 0.4
    if len(parts) >= 2:
        first, last = parts[0], parts[-1]
        if first in text and last in text:
            return 0.35
        if last in text:
            return 0.2
        if first in text:
            return 0.1
    return 0.0


def _office_match(text: str, office: Optional[str], state: Optional[str]) -> float:
    score = 0.0
    if office:
        office_lower = office.lower()
        if office_lower in text:
            score += 0.2
        elif any(kw in text for kw in office_lower.split() if len(kw) > 3):
            # Partial, e.g. "senate" for "State Senate District 5"
            score += 0.1

    if state and len(state) == 2:
        if re.search(rf"[^a-z]{re.escape(state.lower())}[^a-z]", f" {text} "):
            score += 0.1

    return min(0.3, score)


def _location_match(text: str, state: Optional[str]) -> float:
    if not state:
        return 0.0
    if state.lower() in text:
        return 0.15
    return 0.0


def _domain_authority(url: str) -> float:
    hostname = hostname_of(url)
    if not hostname:
        return 0.03
    for domain, score in POLITICAL_DOMAIN_AUTHORITY.items():
        if domain in hostname:
            return score
    if hostname.endswith(".gov"):
        return 0.09
    if hostname.endswith(".org"):
        return 0.06
    if hostname.endswith(".com"):
        return 0.05
    return 0.03


def _content_signals(text: str) -> float:
    matches = sum(1 for kw in POLITICAL_KEYWORDS if kw in text)
    return min(0.05, matches * 0.015)


# =============================================================================
# PER-PLATFORM SCORING (0-12)
# =============================================================================

PLATFORM_GRADES = [(11, "A"), (9, "B"), (7, "C"), (5, "D"), (0, "F")]

OVERALL_GRADES = [
    (97, "A+"), (93, "A"), (90, "A-"),
    (87, "B+"), (83, "B"), (80, "B-"),
    (77, "C+"), (73, "C"), (70, "C-"),
    (67, "D+"), (63, "D"), (0, "F"),
]


def get_grade(score: float, thresholds: Sequence[Tuple[int, str]]) -> str:
    for minimum, grade in thresholds:
        if score >= minimum:
            return grade
    return "F"


@dataclass
class PlatformSignals:
    """Observable signals for one platform profile."""
    has_profile: bool = True
    is_active: bool = False
    last_activity_recent: bool = False
    naming_consistent: bool = False
    messaging_consistent: bool = False
    has_logo: bool = False
    content_quality: str = "fair"  # good | fair | poor
    professional_presentation: bool = False
    has_contact_info: bool = False
    has_email: bool = False
    has_phone: bool = False
    has_website: bool = False


@dataclass
class PlatformScores:
    presence: float
    consistency: float
    quality: float
    accessibility: float
    total: int
    grade: str


def score_platform(signals: PlatformSignals) -> PlatformScores:
    presence = 0.0
    if signals.has_profile:
        presence += 1
    if signals.is_active:
        presence += 1
    elif signals.last_activity_recent:
        presence += 0.5
    if signals.has_logo:
        presence += 1
    presence = min(3.0, presence)

    consistency = float(sum([signals.naming_consistent, signals.messaging_consistent, signals.has_logo]))
    consistency = min(3.0, consistency)

    quality = 0.0
    if signals.content_quality == "good":
        quality += 2
    elif signals.content_quality == "fair":
        quality += 1
    if signals.professional_presentation:
        quality += 1
    quality = min(3.0, quality)

    accessibility = 0.0
    if signals.has_contact_info:
        accessibility += 1
    contact_count = sum([signals.has_email, signals.has_phone, signals.has_website])
    if contact_count >= 2:
        accessibility += 1
    if contact_count >= 3:
        accessibility += 1
    accessibility = min(3.0, accessibility)

    total = round_half_up(presence + consistency + quality + accessibility)
    return PlatformScores(
        presence=presence,
        consistency=consistency,
        quality=quality,
        accessibility=accessibility,
        total=total,
        grade=get_grade(total, PLATFORM_GRADES),
    )


def signals_from_confidence(confidence: float) -> PlatformSignals:
    """Heuristic signals when only the URL is known (no page crawl)."""
    return PlatformSignals(
        has_profile=True,
        naming_consistent=confidence > 0.5,
        messaging_consistent=confidence > 0.4,
        content_quality="good" if confidence > 0.6 else "fair",
        professional_presentation=confidence > 0.5,
    )


# =============================================================================
# OVERALL SCORING (0-100)
# =============================================================================

@dataclass
class ScoreBreakdown:
    digital_presence: float = 0.0
    campaign_consistency: float = 0.0
    communication_quality: float = 0.0
    voter_accessibility: float = 0.0
    competitive_positioning: float = 0.0
    total: int = 0
    grade: str = "F"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def score_overall(
    candidate_platforms: List[Dict[str, Any]],
    opponent_audits: List[Dict[str, Any]],
) -> ScoreBreakdown:
    """
    Roll candidate platform results up into the 0-100 score.

    candidate_platforms: dicts with score_consistency, score_quality,
        score_accessibility, total_score and activity_status
    opponent_audits: dicts with platform_count and overall_score
    """
    platforms = [p for p in candidate_platforms if p.get("entity_type", "candidate") == "candidate"]
    count = len(platforms)
    if count == 0:
        return ScoreBreakdown()

    # Digital presence: breadth (10 platforms = max), activity, scored coverage
    digital_presence = min(1.0, count / 10) * 10
    active = sum(1 for p in platforms if p.get("activity_status") == "active")
    digital_presence += (active / count) * 6
    scored = sum(1 for p in platforms if (p.get("total_score") or 0) > 0)
    digital_presence += (scored / count) * 4
    digital_presence = min(20.0, digital_presence)

    campaign_consistency = _dimension(platforms, "score_consistency")
    communication_quality = _dimension(platforms, "score_quality")
    voter_accessibility = _dimension(platforms, "score_accessibility")

    competitive_positioning = 10.0
    if opponent_audits:
        avg_opp_platforms = sum(o.get("platform_count", 0) for o in opponent_audits) / len(opponent_audits)
        if count > avg_opp_platforms:
            competitive_positioning += 5
        elif count == avg_opp_platforms:
            competitive_positioning += 2

        avg_opp_score = sum(o.get("overall_score") or 0 for o in opponent_audits) / len(opponent_audits)
        candidate_avg = sum(p.get("total_score") or 0 for p in platforms) / count
        if candidate_avg > avg_opp_score:
            competitive_positioning += 5
        elif candidate_avg >= avg_opp_score * 0.9:
            competitive_positioning += 2
    competitive_positioning = min(20.0, competitive_positioning)

    total = round_half_up(
        digital_presence + campaign_consistency + communication_quality
        + voter_accessibility + competitive_positioning
    )
    return ScoreBreakdown(
        digital_presence=_one_decimal(digital_presence),
        campaign_consistency=_one_decimal(campaign_consistency),
        communication_quality=_one_decimal(communication_quality),
        voter_accessibility=_one_decimal(voter_accessibility),
        competitive_positioning=_one_decimal(competitive_positioning),
        total=total,
        grade=get_grade(total, OVERALL_GRADES),
    )


def _dimension(platforms: List[Dict[str, Any]], key: str) -> float:
    average = sum(p.get(key) or 0 for p in platforms) / len(platforms)
    return min(20.0, (average / 3) * 20)


def _one_decimal(value: float) -> float:
    return round_half_up(value * 10) / 10
