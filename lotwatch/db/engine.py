"""Database engine and session factory."""

from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from lotwatch.db.base import Base
from lotwatch.settings import get_settings

_engine: Optional[Engine] = None


def create_db_engine(url: str) -> Engine:
    """Create an engine; in-memory SQLite shares one connection across threads."""
    in_memory = ":memory:" in url or url in ("sqlite://", "sqlite+pysqlite://")
    if url.startswith("sqlite") and in_memory:
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True)


def get_engine() -> Engine:
    """Get or create the process-wide engine from settings."""
    global _engine
    if _engine is None:
        _engine = create_db_engine(get_settings().database_url)
    return _engine


def get_session_factory(engine: Optional[Engine] = None) -> sessionmaker:
    return sessionmaker(bind=engine or get_engine(), expire_on_commit=False)


def init_db(engine: Optional[Engine] = None) -> None:
    """Create all tables that do not exist yet."""
    Base.metadata.create_all(engine or get_engine())
