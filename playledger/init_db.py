import os

from . import admin
from .logging_utils import get_logger
from .migrations import run_migrations
from .platform import Platform, make_engine

logger = get_logger("playledger.init_db")

DEFAULT_DATABASE_URL = "sqlite:///./playledger.db"


def init_db(path: str = "", owner: str = "", **kwargs) -> Platform:
    """Create tables, apply migrations and bootstrap the platform row.

    ``path`` and ``owner`` fall back to DATABASE_URL and PLATFORM_OWNER.
    """
    path = path or os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)
    owner = owner or os.getenv("PLATFORM_OWNER", "")
    engine = make_engine(path)
    run_migrations(engine)
    kwargs.setdefault("params", admin.GameParameters.from_env())
    platform = Platform(engine, owner, **kwargs)
    logger.info("db_initialized", extra={"url": path})
    return platform


if __name__ == '__main__':
    init_db()
