"""
Database migration system for the ledger.
Tracks applied migrations and creates the query indexes.
"""

from sqlmodel import SQLModel, Field, text, Session, select
from typing import Optional
from datetime import datetime, timezone
import logging

from . import models  # noqa: F401 - ledger tables

logger = logging.getLogger(__name__)


class Migration(SQLModel, table=True):
    """Track applied migrations"""
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True, unique=True)
    applied_at: datetime


def ensure_migration_table(engine):
    Migration.metadata.create_all(engine)


def has_migration_been_applied(engine, migration_name: str) -> bool:
    ensure_migration_table(engine)
    with Session(engine) as session:
        result = session.exec(
            select(Migration).where(Migration.name == migration_name)
        ).first()
        return result is not None


def apply_migration(engine, migration_name: str, migration_sql: str) -> bool:
    """Apply a migration and record it. Returns False if it was already applied."""
    if has_migration_been_applied(engine, migration_name):
        logger.info(f"Migration {migration_name} already applied, skipping")
        return False

    logger.info(f"Applying migration: {migration_name}")
    with Session(engine) as session:
        try:
            for statement in migration_sql.strip().split(';'):
                statement = statement.strip()
                if statement:
                    session.execute(text(statement))
            session.add(Migration(name=migration_name, applied_at=datetime.now(timezone.utc)))
            session.commit()
            logger.info(f"Migration {migration_name} applied successfully")
        except Exception as e:
            session.rollback()
            logger.error(f"Failed to apply migration {migration_name}: {e}")
            raise
    return True


MIGRATIONS = [
    ("001_history_indexes", """
    -- player history and token audit trail, both read in id order
    CREATE INDEX IF NOT EXISTS idx_session_player_id ON gamesession(player, id);
    CREATE INDEX IF NOT EXISTS idx_tokentx_player_id ON tokentransaction(player, id)
    """),
    ("002_tournament_indexes", """
    CREATE INDEX IF NOT EXISTS idx_entry_tournament_position ON tournamententry(tournament_id, position);
    CREATE INDEX IF NOT EXISTS idx_tournament_active ON tournament(is_active)
    """),
]


def run_migrations(engine):
    """Run all pending migrations against ``engine``."""
    SQLModel.metadata.create_all(engine)
    for name, sql in MIGRATIONS:
        apply_migration(engine, name, sql)
    logger.info("All migrations completed")


if __name__ == "__main__":
    import os
    from .platform import make_engine

    logging.basicConfig(level=logging.INFO)
    run_migrations(make_engine(os.getenv("DATABASE_URL", "sqlite:///./playledger.db")))
