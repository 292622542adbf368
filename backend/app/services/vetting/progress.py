"""
Vetting Progress

Pure helpers over report section state:
- completion percentage
- section status transitions
- section catalog seeding
- election urgency

No I/O. Inputs are (section_type, status) pairs as loaded from the
report section table.
"""
import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from dateutil import parser as date_parser

from ...models.db_models import ReportSectionType, SectionStatus


SectionState = Tuple[ReportSectionType, SectionStatus]

# Statuses that count as "done" for a section
SECTION_DONE_STATUSES = frozenset({SectionStatus.COMPLETED})

# Allowed section status moves. NEEDS_REVISION reopens a completed section.
SECTION_TRANSITIONS = {
    SectionStatus.NOT_STARTED: {SectionStatus.ASSIGNED, SectionStatus.IN_PROGRESS},
    SectionStatus.ASSIGNED: {SectionStatus.IN_PROGRESS},
    SectionStatus.IN_PROGRESS: {SectionStatus.COMPLETED, SectionStatus.NEEDS_REVISION},
    SectionStatus.COMPLETED: {SectionStatus.NEEDS_REVISION},
    SectionStatus.NEEDS_REVISION: {SectionStatus.IN_PROGRESS},
}

# Days before the primary at which a case turns amber / red
URGENCY_AMBER_DAYS = 30
URGENCY_RED_DAYS = 14


@dataclass(frozen=True)
class Progress:
    """Section completion summary."""
    completed: int
    total: int
    percentage: int

    def to_dict(self) -> dict:
        return {"completed": self.completed, "total": self.total, "percentage": self.percentage}


def normalize_sections(sections: Iterable[Tuple]) -> List[SectionState]:
    """Coerce raw (section, status) pairs to enums, dropping values outside the catalog."""
    normalized = []
    for section, status in sections:
        try:
            normalized.append((ReportSectionType(section), SectionStatus(status)))
        except ValueError:
            continue
    return normalized


def is_section_done(status: Union[SectionStatus, str]) -> bool:
    try:
        return SectionStatus(status) in SECTION_DONE_STATUSES
    except ValueError:
        return False


def calculate_progress(sections: Iterable[SectionState]) -> Progress:
    """
    Derive completion from section statuses.

    percentage = round(completed / total * 100), halves rounded up.
    An empty section list is 0%, not an error.
    """
    statuses = [status for _, status in sections]
    total = len(statuses)
    completed = sum(1 for status in statuses if is_section_done(status))
    if total == 0:
        return Progress(completed=0, total=0, percentage=0)
    percentage = int(math.floor(completed * 100 / total + 0.5))
    return Progress(completed=completed, total=total, percentage=percentage)


def incomplete_sections(
    sections: Iterable[SectionState],
    required: Optional[Sequence[ReportSectionType]] = None,
) -> List[ReportSectionType]:
    """Section types (catalog order) that are missing or not done."""
    done = {section for section, status in normalize_sections(sections) if is_section_done(status)}
    catalog = list(required) if required is not None else list(ReportSectionType)
    return [section for section in catalog if section not in done]


def is_valid_section_transition(
    from_status: Union[SectionStatus, str],
    to_status: Union[SectionStatus, str],
) -> bool:
    """Check a single section status move against SECTION_TRANSITIONS."""
    try:
        from_status = SectionStatus(from_status)
        to_status = SectionStatus(to_status)
    except ValueError:
        return False
    return to_status in SECTION_TRANSITIONS.get(from_status, set())


def initialize_section_states() -> List[SectionState]:
    """Seed every catalog section as NOT_STARTED for a new case."""
    return [(section, SectionStatus.NOT_STARTED) for section in ReportSectionType]


def calculate_urgency(
    primary_date: Union[date, datetime, str, None],
    today: Optional[date] = None,
) -> str:
    """
    Urgency from days until the primary election.

    Returns "red" under 14 days, "amber" under 30 days, otherwise "normal".
    Unknown primary dates are "normal".
    """
    if not primary_date:
        return "normal"
    if isinstance(primary_date, str):
        primary_date = date_parser.isoparse(primary_date)
    if isinstance(primary_date, datetime):
        primary_date = primary_date.date()

    today = today or date.today()
    days_left = (primary_date - today).days
    if days_left < URGENCY_RED_DAYS:
        return "red"
    if days_left < URGENCY_AMBER_DAYS:
        return "amber"
    return "normal"
