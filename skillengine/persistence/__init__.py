"""
Persistence adapters for exported engine state.
"""
from skillengine.persistence.state_store import InMemoryStateStore, SqlStateStore, StateStore

__all__ = [
    "StateStore",
    "InMemoryStateStore",
    "SqlStateStore",
]
