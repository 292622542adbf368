#!/usr/bin/env python3
"""
Committee Seed Script
Creates a vetting committee with its chair and prints a development token.

Usage:
    python -m scripts.seed_committee <committee_name> <chair_member_id> [role]

Example:
    python -m scripts.seed_committee "Texas Vetting Committee" 2f0c... state_chair
"""
import sys
import os

# Add the parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy.orm import Session
from app.database import SessionLocal, init_db
from app.models.db_models import CommitteeRole
from app.auth import create_access_token
from app.services.vetting.vetting_service import VettingService, VettingServiceError


def seed_committee(name: str, chair_member_id: str, role: str) -> bool:
    """Create a committee and seat its chair."""
    # Ensure tables exist
    init_db()

    db: Session = SessionLocal()
    try:
        service = VettingService(db)
        committee = service.create_committee(name)
        service.add_committee_member(committee.id, chair_member_id, CommitteeRole.CHAIR.value)

        print(f"Committee created successfully!")
        print(f"  Committee: {committee.name} ({committee.id})")
        print(f"  Chair: {chair_member_id}")
        print(f"  Token: {create_access_token(chair_member_id, role)}")
        return True

    except VettingServiceError as e:
        print(f"Error creating committee: {e.message}")
        db.rollback()
        return False
    finally:
        db.close()


def main():
    if len(sys.argv) not in (3, 4):
        print(__doc__)
        sys.exit(1)

    name = sys.argv[1]
    chair_member_id = sys.argv[2]
    role = sys.argv[3] if len(sys.argv) == 4 else "member"

    success = seed_committee(name, chair_member_id, role)
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
