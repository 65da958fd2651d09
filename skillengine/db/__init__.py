"""
SQLAlchemy plumbing for the persisted state store.
"""
from skillengine.db.database import create_db_engine, init_db, make_session_factory, session_scope
from skillengine.db.models import Base, EngineState

__all__ = [
    "Base",
    "EngineState",
    "create_db_engine",
    "init_db",
    "make_session_factory",
    "session_scope",
]
