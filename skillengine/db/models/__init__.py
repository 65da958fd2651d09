# SQLAlchemy models
from .base import Base
from .engine_state import EngineState

__all__ = [
    "Base",
    "EngineState",
]
