"""Database session management"""
import logging
import time

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker

from heydj.models.base import Base
from heydj.core.config import settings

logger = logging.getLogger(__name__)

INIT_DB_MAX_ATTEMPTS = 3
INIT_DB_BACKOFF_SECONDS = 1.0


def _engine_options(url: str) -> dict:
    """Engine options per backend. Postgres gets connect and statement timeouts."""
    options = {"pool_pre_ping": True}
    if url.startswith("postgresql"):
        timeout = settings.DB_TIMEOUT_SECONDS
        options["pool_recycle"] = 3600
        options["pool_timeout"] = timeout
        options["connect_args"] = {
            "connect_timeout": timeout,
            "options": f"-c statement_timeout={timeout * 1000}",
        }
    elif url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
    return options


engine = create_engine(settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """Dependency for FastAPI endpoints"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Create all tables, retrying with exponential backoff while the database comes up"""
    delay = INIT_DB_BACKOFF_SECONDS
    for attempt in range(1, INIT_DB_MAX_ATTEMPTS + 1):
        try:
            Base.metadata.create_all(bind=engine)
            return
        except Exception as e:
            if attempt == INIT_DB_MAX_ATTEMPTS:
                raise
            logger.warning(f"Database init attempt {attempt} failed: {e}; retrying in {delay:.1f}s")
            time.sleep(delay)
            delay *= 2


def check_database(db) -> bool:
    """Lightweight reachability probe"""
    try:
        db.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.warning(f"Database probe failed: {e}")
        return False
