"""
State stores for exported engine state.

The engine performs no I/O itself. Hosts persist the opaque string returned by
MasteryEngine.export_state() through one of these adapters and feed it back
to import_state(). Retry policy, if any, belongs to the host.
"""

from __future__ import annotations

from typing import Optional, Protocol

from loguru import logger
from sqlalchemy import select

from skillengine.db.database import create_db_engine, init_db, make_session_factory, session_scope
from skillengine.db.models import EngineState


class StateStore(Protocol):
    """Anything that can load and save state blobs by key."""

    def load(self, key: str) -> Optional[str]: ...

    def save(self, key: str, state: str) -> None: ...


class InMemoryStateStore:
    """
    Dict-backed store for tests and development.

    State is lost when the process exits.
    """

    def __init__(self):
        self._store: dict[str, str] = {}

    def load(self, key: str) -> Optional[str]:
        return self._store.get(key)

    def save(self, key: str, state: str) -> None:
        self._store[key] = state

    def delete(self, key: str) -> bool:
        return self._store.pop(key, None) is not None

    def clear(self) -> None:
        self._store.clear()

    def has(self, key: str) -> bool:
        return key in self._store

    def keys(self) -> list[str]:
        return sorted(self._store)


class SqlStateStore:
    """
    SQLAlchemy-backed store; one engine_states row per key.

    Usage:
        store = SqlStateStore("sqlite:///state.db")
        store.save("learner-1", engine.export_state())
        engine.import_state(store.load("learner-1"))
    """

    def __init__(self, url: Optional[str] = None):
        self._engine = create_db_engine(url)
        self._sessions = make_session_factory(self._engine)
        init_db(self._engine)

    def load(self, key: str) -> Optional[str]:
        with session_scope(self._sessions) as session:
            row = session.get(EngineState, key)
            return row.state if row is not None else None

    def save(self, key: str, state: str) -> None:
        with session_scope(self._sessions) as session:
            row = session.get(EngineState, key)
            if row is None:
                session.add(EngineState(key=key, state=state))
            else:
                row.state = state
        logger.debug(f"Saved engine state for {key} ({len(state)} bytes)")

    def delete(self, key: str) -> bool:
        with session_scope(self._sessions) as session:
            row = session.get(EngineState, key)
            if row is None:
                return False
            session.delete(row)
            return True

    def keys(self) -> list[str]:
        with session_scope(self._sessions) as session:
            return list(session.scalars(select(EngineState.key).order_by(EngineState.key)))

    def close(self) -> None:
        self._engine.dispose()
