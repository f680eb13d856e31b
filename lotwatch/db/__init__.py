"""Database package for Lotwatch."""

from lotwatch.db.base import Base
from lotwatch.db.engine import create_db_engine, get_engine, get_session_factory, init_db
from lotwatch.db.models import AlertRuleRow

__all__ = [
    "Base",
    "create_db_engine",
    "get_engine",
    "get_session_factory",
    "init_db",
    "AlertRuleRow",
]
