from sqlalchemy import create_engine, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
import logging

from config import settings
from models import Base

logger = logging.getLogger(__name__)


def get_db_connection(database_url: str | None = None) -> Engine:
    """Create and return database engine."""
    url = database_url or settings.DATABASE_URL
    if not url:
        raise ValueError("DATABASE_URL environment variable not set")

    if url.startswith("sqlite"):
        # In-memory SQLite must share one connection or every session sees an empty DB
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url == "sqlite://":
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)

    return create_engine(url, pool_pre_ping=True)


def get_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine: Engine) -> None:
    """Ensure required tables exist, create if missing."""
    existing_tables = set(inspect(engine).get_table_names())
    missing = [t for t in Base.metadata.tables if t not in existing_tables]
    if missing:
        logger.info(f"Creating missing tables: {', '.join(missing)}")
    Base.metadata.create_all(bind=engine)
