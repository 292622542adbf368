"""
Tests for vetting progress helpers.

Percentage rounding, section status transitions, catalog seeding and
election urgency.
"""
from datetime import date, timedelta

import pytest

from app.models.db_models import ReportSectionType, SectionStatus
from app.services.vetting.progress import (
    calculate_progress, calculate_urgency, incomplete_sections,
    initialize_section_states, is_valid_section_transition,
)


class TestCalculateProgress:
    """completed / total, halves rounded up."""

    def test_empty_sections_is_zero(self):
        progress = calculate_progress([])
        assert (progress.completed, progress.total, progress.percentage) == (0, 0, 0)

    def test_two_of_nine(self):
        sections = initialize_section_states()
        sections[0] = (sections[0][0], SectionStatus.COMPLETED)
        sections[1] = (sections[1][0], SectionStatus.COMPLETED)
        progress = calculate_progress(sections)
        assert progress.completed == 2
        assert progress.total == 9
        assert progress.percentage == 22

    def test_half_rounds_up(self):
        sections = [
            (ReportSectionType.EXECUTIVE_SUMMARY, SectionStatus.COMPLETED),
            (ReportSectionType.DISTRICT_DATA, SectionStatus.IN_PROGRESS),
            (ReportSectionType.VOTING_RULES, SectionStatus.COMPLETED),
            (ReportSectionType.ELECTION_SCHEDULE, SectionStatus.ASSIGNED),
            (ReportSectionType.CANDIDATE_BACKGROUND, SectionStatus.COMPLETED),
            (ReportSectionType.INCUMBENT_RECORD, SectionStatus.NOT_STARTED),
            (ReportSectionType.OPPONENT_RESEARCH, SectionStatus.COMPLETED),
            (ReportSectionType.ELECTORAL_RESULTS, SectionStatus.COMPLETED),
        ]
        # 5 / 8 = 62.5%
        assert calculate_progress(sections).percentage == 63

    def test_order_insensitive(self):
        sections = [
            (ReportSectionType.EXECUTIVE_SUMMARY, SectionStatus.COMPLETED),
            (ReportSectionType.DISTRICT_DATA, SectionStatus.IN_PROGRESS),
            (ReportSectionType.VOTING_RULES, SectionStatus.NEEDS_REVISION),
        ]
        assert calculate_progress(sections) == calculate_progress(list(reversed(sections)))

    def test_only_completed_counts(self):
        sections = [
            (ReportSectionType.EXECUTIVE_SUMMARY, SectionStatus.NEEDS_REVISION),
            (ReportSectionType.DISTRICT_DATA, SectionStatus.IN_PROGRESS),
        ]
        assert calculate_progress(sections).percentage == 0

    def test_all_completed(self):
        sections = [(s, SectionStatus.COMPLETED) for s in ReportSectionType]
        assert calculate_progress(sections).to_dict() == {"completed": 9, "total": 9, "percentage": 100}


class TestSectionTransitions:

    @pytest.mark.parametrize("from_status,to_status", [
        ("not_started", "assigned"),
        ("not_started", "in_progress"),
        ("assigned", "in_progress"),
        ("in_progress", "completed"),
        ("in_progress", "needs_revision"),
        ("completed", "needs_revision"),
        ("needs_revision", "in_progress"),
    ])
    def test_allowed(self, from_status, to_status):
        assert is_valid_section_transition(from_status, to_status) is True

    @pytest.mark.parametrize("from_status,to_status", [
        ("not_started", "completed"),
        ("completed", "in_progress"),
        ("assigned", "not_started"),
        ("in_progress", "bogus"),
    ])
    def test_rejected(self, from_status, to_status):
        assert is_valid_section_transition(from_status, to_status) is False


class TestCatalog:

    def test_initialize_seeds_every_section_not_started(self):
        states = initialize_section_states()
        assert [s for s, _ in states] == list(ReportSectionType)
        assert all(status == SectionStatus.NOT_STARTED for _, status in states)

    def test_incomplete_sections_in_catalog_order(self):
        states = [(ReportSectionType.DIGITAL_PRESENCE_AUDIT, SectionStatus.COMPLETED)]
        missing = incomplete_sections(states)
        assert ReportSectionType.DIGITAL_PRESENCE_AUDIT not in missing
        assert missing[0] == ReportSectionType.EXECUTIVE_SUMMARY
        assert len(missing) == 8


class TestUrgency:
    """red < 14 days, amber < 30 days before the primary."""

    TODAY = date(2026, 3, 1)

    def test_no_primary_is_normal(self):
        assert calculate_urgency(None, today=self.TODAY) == "normal"

    def test_red(self):
        assert calculate_urgency(self.TODAY + timedelta(days=13), today=self.TODAY) == "red"

    def test_amber_boundary(self):
        assert calculate_urgency(self.TODAY + timedelta(days=14), today=self.TODAY) == "amber"
        assert calculate_urgency(self.TODAY + timedelta(days=29), today=self.TODAY) == "amber"

    def test_normal(self):
        assert calculate_urgency(self.TODAY + timedelta(days=30), today=self.TODAY) == "normal"

    def test_iso_string(self):
        assert calculate_urgency("2026-03-05", today=self.TODAY) == "red"

    def test_past_primary_is_red(self):
        assert calculate_urgency(self.TODAY - timedelta(days=3), today=self.TODAY) == "red"
