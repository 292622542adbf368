"""
Migration: Enforce at most one active digital audit per vetting.

Partial unique index on candidate_digital_audits(vetting_id) covering
PENDING and RUNNING rows. Fails if duplicates already exist; the script
reports them first so they can be failed out by hand.
"""
from sqlalchemy import create_engine, text
import os

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql://{os.getenv('USER', 'postgres')}@localhost:5432/candidate_vetting"
)

def run_migration():
    """Create idx_digital_audits_active_per_vetting."""
    engine = create_engine(DATABASE_URL)

    with engine.connect() as conn:
        result = conn.execute(text("""
            SELECT indexname
            FROM pg_indexes
            WHERE tablename = 'candidate_digital_audits'
              AND indexname = 'idx_digital_audits_active_per_vetting'
        """))

        if result.fetchone():
            print("idx_digital_audits_active_per_vetting already exists")
            return

        duplicates = conn.execute(text("""
            SELECT vetting_id, COUNT(*)
            FROM candidate_digital_audits
            WHERE status IN ('PENDING', 'RUNNING')
            GROUP BY vetting_id
            HAVING COUNT(*) > 1
        """)).fetchall()

        if duplicates:
            print("Cannot create index; vettings with more than one active audit:")
            for vetting_id, count in duplicates:
                print(f"  {vetting_id}: {count}")
            return

        conn.execute(text("""
            CREATE UNIQUE INDEX idx_digital_audits_active_per_vetting
            ON candidate_digital_audits (vetting_id)
            WHERE status IN ('PENDING', 'RUNNING')
        """))
        print("Created idx_digital_audits_active_per_vetting")

        conn.commit()

if __name__ == "__main__":
    run_migration()
