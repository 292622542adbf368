"""
Vetting capability checks.

The identity provider supplies the member id and the member's highest
organization role; committee membership comes from the committee tables.
These functions only answer yes/no for a given context.
"""
from dataclasses import dataclass
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from ...models.db_models import CommitteeMemberDB, CommitteeRole


# Role hierarchy: higher index = more privilege
ROLE_HIERARCHY = [
    "member",
    "chapter_officer",
    "chapter_admin",
    "state_chair",
    "regional_coordinator",
    "national_board",
    "super_admin",
]

NATIONAL_ROLE = "national_board"


def get_role_weight(role: Optional[str]) -> int:
    """Index in ROLE_HIERARCHY; unknown roles weigh less than "member"."""
    if role in ROLE_HIERARCHY:
        return ROLE_HIERARCHY.index(role)
    return -1


@dataclass(frozen=True)
class VettingContext:
    """Authenticated actor plus committee membership."""
    member_id: str
    highest_role: str = "member"
    committee_id: Optional[str] = None
    committee_member_id: Optional[str] = None
    committee_role: Optional[CommitteeRole] = None

    @property
    def is_national(self) -> bool:
        return get_role_weight(self.highest_role) >= get_role_weight(NATIONAL_ROLE)

    @property
    def is_committee_member(self) -> bool:
        return self.committee_member_id is not None

    @property
    def is_chair(self) -> bool:
        return self.committee_role == CommitteeRole.CHAIR


def load_vetting_context(db: Session, member_id: str, highest_role: str) -> VettingContext:
    """Build a VettingContext from token claims and the member's active committee seat."""
    membership = db.query(CommitteeMemberDB).filter(
        CommitteeMemberDB.contact_id == member_id,
        CommitteeMemberDB.is_active.is_(True),
    ).order_by(CommitteeMemberDB.joined_at.asc()).first()

    return VettingContext(
        member_id=member_id,
        highest_role=highest_role or "member",
        committee_id=membership.committee_id if membership else None,
        committee_member_id=membership.id if membership else None,
        committee_role=membership.role if membership else None,
    )


def can_view_pipeline(ctx: VettingContext) -> bool:
    return ctx.is_committee_member or ctx.is_national


def can_create_vetting(ctx: VettingContext) -> bool:
    """Committee chair and national can create and advance vettings."""
    return ctx.is_chair or ctx.is_national


def can_assign_sections(ctx: VettingContext) -> bool:
    return ctx.is_chair or ctx.is_national


def can_edit_section(ctx: VettingContext, assigned_member_ids: Iterable[str]) -> bool:
    """Chair/national, or a member assigned to the section."""
    if ctx.is_national or ctx.is_chair:
        return True
    if not ctx.committee_member_id:
        return False
    return ctx.committee_member_id in set(assigned_member_ids)


def can_record_interview(ctx: VettingContext) -> bool:
    return ctx.is_committee_member or ctx.is_national


def can_manage_opponents(ctx: VettingContext) -> bool:
    return ctx.is_committee_member or ctx.is_national


def can_delete_opponent(ctx: VettingContext) -> bool:
    """Removing research is limited to the chair and national."""
    return ctx.is_chair or ctx.is_national


def can_make_recommendation(ctx: VettingContext) -> bool:
    return ctx.is_chair or ctx.is_national


def can_cast_board_vote(ctx: VettingContext) -> bool:
    return ctx.is_national


def can_manage_committee(ctx: VettingContext) -> bool:
    return ctx.is_national


def can_manage_deadlines(ctx: VettingContext) -> bool:
    return ctx.is_national
