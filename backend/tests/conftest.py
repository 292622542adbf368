"""
Shared fixtures for the vetting tests.

Stage compare-and-set and the one-active-audit index are exercised
against a real SQLite file database; each test gets a fresh one.
"""
import os

# Modules read DATABASE_URL at import; keep them off PostgreSQL in tests
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.database import Base
from app.models import db_models  # noqa: F401  (registers tables on Base)
from app.models.db_models import (
    ReportSectionDB, ReportSectionType, SectionStatus, VettingCaseDB, VettingStage,
)


@pytest.fixture
def engine(tmp_path):
    db_engine = create_engine(
        f"sqlite:///{tmp_path / 'vetting.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=db_engine)
    yield db_engine
    db_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_case(db):
    """Create a vetting case (all sections seeded) and return its id."""
    from app.services.vetting.vetting_service import VettingService

    counter = {"n": 0}

    def _make(stage=VettingStage.SURVEY_SUBMITTED, **kwargs):
        counter["n"] += 1
        kwargs.setdefault("candidate_response_id", f"response-{counter['n']}")
        kwargs.setdefault("candidate_name", "Jane Smith")
        kwargs.setdefault("candidate_office", "State Senate")
        kwargs.setdefault("candidate_state", "TX")
        case = VettingService(db).create_vetting(**kwargs)
        if stage != VettingStage.SURVEY_SUBMITTED:
            set_stage(db, case.id, stage)
        return case.id

    return _make


def set_stage(db, case_id, stage):
    db.query(VettingCaseDB).filter(VettingCaseDB.id == case_id).update(
        {VettingCaseDB.stage: stage}, synchronize_session=False
    )
    db.commit()


def set_sections(db, case_id, sections, status=SectionStatus.COMPLETED):
    db.query(ReportSectionDB).filter(
        ReportSectionDB.vetting_id == case_id,
        ReportSectionDB.section.in_(list(sections)),
    ).update({ReportSectionDB.status: status}, synchronize_session=False)
    db.commit()


def get_stage(session_factory, case_id):
    """Read the stage through a fresh session."""
    session = session_factory()
    try:
        return session.query(VettingCaseDB.stage).filter(VettingCaseDB.id == case_id).scalar()
    finally:
        session.close()


REQUIRED = (
    ReportSectionType.EXECUTIVE_SUMMARY,
    ReportSectionType.CANDIDATE_BACKGROUND,
    ReportSectionType.OPPONENT_RESEARCH,
    ReportSectionType.DISTRICT_DATA,
)
