"""
Database engine and session management
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
import logging

from oab_prep.config import settings

logger = logging.getLogger(__name__)


def _engine_kwargs(url: str) -> dict:
    """SQLite needs cross-thread access; in-memory databases share one connection"""
    if not url.startswith("sqlite"):
        return {"pool_pre_ping": True}

    kwargs = {"connect_args": {"check_same_thread": False}}
    if url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
    return kwargs


engine = create_engine(settings.DATABASE_URL, **_engine_kwargs(settings.DATABASE_URL))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def init_db():
    """Create all tables"""
    # Register models on the metadata
    import oab_prep.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info(f"Database tables ensured on {engine.url.drivername}")
