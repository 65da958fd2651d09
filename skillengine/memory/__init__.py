"""
Spaced retrieval scheduling (FSRS).
"""
from skillengine.memory.fsrs_scheduler import (
    MS_PER_DAY,
    FSRSParams,
    FSRSScheduler,
    InvalidFSRSParamsError,
    MemoryState,
    MemoryStatistics,
    ReviewState,
    calculate_retention,
)

__all__ = [
    "MS_PER_DAY",
    "FSRSParams",
    "FSRSScheduler",
    "InvalidFSRSParamsError",
    "MemoryState",
    "MemoryStatistics",
    "ReviewState",
    "calculate_retention",
]
