"""
Migration: Add candidate_risks to candidate_digital_audits.

Stores the weighted digital risk assessment written with a COMPLETED
audit. Audits completed before this migration keep NULL.
"""
from sqlalchemy import create_engine, text
import os

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql://{os.getenv('USER', 'postgres')}@localhost:5432/candidate_vetting"
)

def run_migration():
    """Add the candidate_risks JSON column."""
    engine = create_engine(DATABASE_URL)

    with engine.connect() as conn:
        result = conn.execute(text("""
            SELECT column_name
            FROM information_schema.columns
            WHERE table_name = 'candidate_digital_audits'
              AND column_name = 'candidate_risks'
        """))

        if result.fetchone():
            print("candidate_risks column already exists")
            return

        conn.execute(text("""
            ALTER TABLE candidate_digital_audits
            ADD COLUMN candidate_risks JSON
        """))
        print("Added candidate_risks column")

        conn.commit()

if __name__ == "__main__":
    run_migration()
