"""
Tests for the digital presence audit: classification, scoring and the
default workload.
"""
import pytest

from app.models.db_models import (
    AuditPlatformDB, AuditStatus, DigitalAuditDB, ReportSectionDB,
    ReportSectionType, VettingStage,
)
from app.services.audit.engine import AuditWorkloadError, DigitalPresenceAuditEngine
from app.services.audit.platform_classifier import classify_url, format_domain_name, is_political_platform
from app.services.audit.records import AuditRecordStore
from app.services.audit.risks import assess_risks, get_severity
from app.services.audit.scoring import (
    PlatformSignals, calculate_confidence, get_grade, OVERALL_GRADES,
    score_overall, score_platform,
)
from app.services.vetting.vetting_service import VettingService

from conftest import get_stage


# =============================================================================
# TEST: PLATFORM CLASSIFIER
# =============================================================================

class TestPlatformClassifier:

    @pytest.mark.parametrize("url,platform_type,category", [
        ("https://ballotpedia.org/Jane_Smith", "ballotpedia", "political_platform"),
        ("https://www.fec.gov/data/candidate/H0TX01234/", "fec", "political_platform"),
        ("https://www.facebook.com/janesmithtx", "facebook", "social_media"),
        ("https://twitter.com/janesmith", "twitter", "social_media"),
        ("https://x.com/janesmith", "twitter", "social_media"),
        ("https://www.linkedin.com/in/janesmith", "linkedin-personal", "professional_network"),
        ("https://www.youtube.com/@janesmith", "youtube", "content_platform"),
        ("https://patch.com/texas/austin/jane-smith", "patch", "news_media"),
        ("https://janesmithforsenate.com", "campaign-website", "campaign_website"),
        ("https://smithbakery.com", "custom-website", "website"),
    ])
    def test_classification(self, url, platform_type, category):
        result = classify_url(url)
        assert result is not None
        assert result.platform_type == platform_type
        assert result.category == category

    def test_facebook_groups_not_a_profile(self):
        # Known platform domain that matches no profile pattern
        assert classify_url("https://www.facebook.com/groups/texasliberty") is None

    @pytest.mark.parametrize("value", [None, "", "not a url", 42])
    def test_non_urls(self, value):
        assert classify_url(value) is None

    def test_format_domain_name(self):
        assert format_domain_name("smith-for-senate.com") == "Smith For Senate"

    def test_is_political_platform(self):
        assert is_political_platform("https://votesmart.org/candidate/123") is True
        assert is_political_platform("https://instagram.com/janesmith") is False


# =============================================================================
# TEST: SCORING
# =============================================================================

class TestScoring:

    def test_confidence_full_name_in_url(self):
        factors, score, level = calculate_confidence(
            "https://janesmithforsenate.com", "", "Jane Smith", "State Senate", "TX"
        )
        assert factors.name_match == 0.4
        assert factors.office_match == 0.1  # "senate" partial match
        assert factors.domain_authority == 0.05
        assert 0 <= score <= 1
        assert level == "MEDIUM"

    def test_confidence_unrelated(self):
        _, score, level = calculate_confidence("https://example.net/page", "", "Jane Smith", None, None)
        assert score < 0.3
        assert level == "NONE"

    def test_platform_score_bounds(self):
        best = score_platform(PlatformSignals(
            has_profile=True, is_active=True, has_logo=True,
            naming_consistent=True, messaging_consistent=True,
            content_quality="good", professional_presentation=True,
            has_contact_info=True, has_email=True, has_phone=True, has_website=True,
        ))
        assert best.total == 12
        assert best.grade == "A"

        minimal = score_platform(PlatformSignals(has_profile=False, content_quality="poor"))
        assert minimal.total == 0
        assert minimal.grade == "F"

    def test_overall_empty_is_zero(self):
        breakdown = score_overall([], [])
        assert breakdown.total == 0
        assert breakdown.grade == "F"

    def test_overall_grade_thresholds(self):
        assert get_grade(97, OVERALL_GRADES) == "A+"
        assert get_grade(62, OVERALL_GRADES) == "F"
        assert get_grade(80, OVERALL_GRADES) == "B-"

    def test_overall_competitive_positioning(self):
        platforms = [
            {"entity_type": "candidate", "score_consistency": 3, "score_quality": 3,
             "score_accessibility": 0, "total_score": 8, "activity_status": None},
            {"entity_type": "candidate", "score_consistency": 3, "score_quality": 3,
             "score_accessibility": 0, "total_score": 8, "activity_status": None},
        ]
        ahead = score_overall(platforms, [{"platform_count": 1, "overall_score": 4}])
        behind = score_overall(platforms, [{"platform_count": 5, "overall_score": 11}])
        assert ahead.competitive_positioning == 20
        assert behind.competitive_positioning == 10
        assert ahead.total > behind.total


# =============================================================================
# TEST: RISK ASSESSMENT
# =============================================================================

def social_platform(url, **overrides):
    platform = {
        "entity_type": "candidate",
        "platform_name": "Facebook" if "facebook" in url else "Twitter/X",
        "platform_url": url,
        "score_consistency": 3,
        "score_quality": 3,
        "activity_status": "active",
        "contact_methods": ["email"],
    }
    platform.update(overrides)
    return platform


class TestRiskAssessment:

    def test_no_platforms_is_no_risk(self):
        assessment = assess_risks([])
        assert assessment.overall_score == 0
        assert assessment.overall_severity == "NONE"
        assert assessment.risks == []

    def test_plain_http_is_high_security_risk(self):
        assessment = assess_risks([{
            "entity_type": "candidate",
            "platform_name": "Smith For Senate",
            "platform_url": "http://smithforsenate.com",
            "score_consistency": 3,
            "score_quality": 3,
            "contact_methods": ["email", "phone"],
        }])

        assert [r.category for r in assessment.risks] == ["security"]
        risk = assessment.risks[0]
        assert risk.severity == "HIGH"
        assert risk.description == "Smith For Senate does not use HTTPS"
        assert risk.platform_url == "http://smithforsenate.com"
        assert assessment.high_count == 1
        # 25 x 0.30
        assert assessment.overall_score == 8

    def test_neglected_social_only_presence(self):
        neglected = dict(score_consistency=0.5, score_quality=1, activity_status="abandoned", contact_methods=[])
        assessment = assess_risks([
            social_platform("https://www.facebook.com/janesmithtx", **neglected),
            social_platform("https://www.facebook.com/janesmithforsenate", **neglected),
            social_platform("https://twitter.com/janesmith", **neglected),
        ])

        by_category = {r.category: r for r in assessment.risks}
        assert set(by_category) == {"security", "consistency", "abandonment", "reputation", "compliance"}
        assert by_category["security"].description == "No dedicated campaign website detected"
        assert by_category["consistency"].severity == "HIGH"
        assert by_category["abandonment"].severity == "HIGH"
        assert by_category["abandonment"].description == "3 inactive or abandoned platform(s) found"
        assert by_category["reputation"].description == "3 platform(s) have low content quality scores"
        assert assessment.overall_score == 25
        assert assessment.overall_severity == "LOW"
        assert assessment.to_dict()["high_count"] == 2

    def test_single_stale_account_is_medium(self):
        assessment = assess_risks([
            social_platform("https://www.facebook.com/janesmithtx", activity_status="inactive"),
            social_platform("https://janesmithforsenate.com"),
        ])
        assert [(r.category, r.severity) for r in assessment.risks] == [("abandonment", "MEDIUM")]

    def test_opponent_platforms_ignored(self):
        opponent = social_platform("http://bobjones.org", entity_type="opponent", activity_status="abandoned")
        assert assess_risks([opponent]).risks == []

    @pytest.mark.parametrize("score,severity", [
        (80, "CRITICAL"), (79, "HIGH"), (60, "HIGH"), (40, "MEDIUM"), (20, "LOW"), (19, "NONE"), (0, "NONE"),
    ])
    def test_severity_thresholds(self, score, severity):
        assert get_severity(score) == severity


# =============================================================================
# TEST: DEFAULT WORKLOAD
# =============================================================================

class TestDigitalPresenceAuditEngine:

    @pytest.fixture
    def running_audit(self, db, make_case):
        case_id = make_case(
            stage=VettingStage.AUTO_AUDIT,
            metadata={"known_urls": [
                "https://www.facebook.com/janesmithtx",
                {"url": "https://janesmithforsenate.com", "title": "Jane Smith for State Senate"},
                "https://www.facebook.com/janesmithtx",
                "not a url",
            ]},
        )
        VettingService(db).add_opponent(
            case_id, "Bob Jones", party="Democratic",
            social_links={"twitter": "https://twitter.com/bobjones", "website": "https://bobjones.org"},
        )
        store = AuditRecordStore(db)
        audit = store.create_pending(case_id, "chair-1")
        store.mark_running(audit.id)
        return case_id, audit.id

    def test_completes_and_stores_results(self, db, running_audit, session_factory):
        case_id, audit_id = running_audit

        assert DigitalPresenceAuditEngine(db).run(case_id, audit_id) is True

        db.expire_all()
        audit = db.query(DigitalAuditDB).filter(DigitalAuditDB.id == audit_id).one()
        assert audit.status == AuditStatus.COMPLETED
        assert audit.candidate_grade is not None
        assert 0 <= audit.candidate_overall_score <= 100
        assert audit.opponent_audits[0]["name"] == "Bob Jones"
        assert audit.opponent_audits[0]["platform_count"] == 2

        platforms = db.query(AuditPlatformDB).filter(AuditPlatformDB.audit_id == audit_id).all()
        candidate_rows = [p for p in platforms if p.entity_type == "candidate"]
        # Duplicate and invalid URLs are skipped
        assert len(candidate_rows) == 2
        assert {p.platform_category for p in candidate_rows} == {"social_media", "campaign_website"}
        assert len([p for p in platforms if p.entity_type == "opponent"]) == 2

        section = db.query(ReportSectionDB).filter(
            ReportSectionDB.vetting_id == case_id,
            ReportSectionDB.section == ReportSectionType.DIGITAL_PRESENCE_AUDIT,
        ).one()
        assert section.ai_draft_data["platform_count"] == 2
        assert section.ai_draft_data["grade"] == audit.candidate_grade
        assert section.ai_draft_data["risk_assessment"] == audit.candidate_risks
        # Known URLs carry no contact data
        assert "compliance" in {r["category"] for r in audit.candidate_risks["risks"]}

        assert get_stage(session_factory, case_id) == VettingStage.ASSIGNED

    def test_does_not_move_stage_past_auto_audit_only(self, db, make_case, session_factory):
        case_id = make_case(stage=VettingStage.RESEARCH)
        audit = AuditRecordStore(db).create_pending(case_id, "chair-1")

        DigitalPresenceAuditEngine(db).run(case_id, audit.id)

        assert get_stage(session_factory, case_id) == VettingStage.RESEARCH

    def test_terminal_audit_discards_results(self, db, running_audit, session_factory):
        case_id, audit_id = running_audit
        AuditRecordStore(db).mark_failed(audit_id, "Audit timed out after 300 seconds")

        assert DigitalPresenceAuditEngine(db).run(case_id, audit_id) is False

        assert db.query(AuditPlatformDB).filter(AuditPlatformDB.audit_id == audit_id).count() == 0
        assert get_stage(session_factory, case_id) == VettingStage.AUTO_AUDIT

    def test_missing_vetting_raises(self, db):
        with pytest.raises(AuditWorkloadError):
            DigitalPresenceAuditEngine(db).run("missing", "audit-1")
