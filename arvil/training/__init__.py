"""
Arvil training core: spaced repetition for drill facts.

Components:
- SpacedItem / DrillResult / NDMEntry / UserStats: stored records
- SQLiteStateStore / MemoryStateStore: persistence (items, results, stats)
- SM2Scheduler: review processing and new-item creation
- accuracy_to_quality / get_competency_level: score mapping
- DrillRecorder: feeds finished drills back into the scheduler
"""

from .drills import DrillRecorder, DrillSummary, FactOutcome
from .errors import ArvilError, InvalidQualityError, ItemNotFoundError, StoreImportError
from .models import DrillResult, NDMEntry, SpacedItem, UserStats
from .scheduler import (
    CompetencyLevel,
    Quality,
    SM2Config,
    SM2Scheduler,
    accuracy_to_quality,
    get_competency_level,
)
from .state_store import (
    ItemStore,
    MemoryStateStore,
    ResultLog,
    SQLiteStateStore,
    StateStore,
)

__all__ = [
    # Records
    "SpacedItem",
    "DrillResult",
    "NDMEntry",
    "UserStats",
    # Persistence
    "ItemStore",
    "ResultLog",
    "StateStore",
    "SQLiteStateStore",
    "MemoryStateStore",
    # Scheduling
    "SM2Scheduler",
    "SM2Config",
    "Quality",
    "accuracy_to_quality",
    "CompetencyLevel",
    "get_competency_level",
    # Drill loop
    "DrillRecorder",
    "DrillSummary",
    "FactOutcome",
    # Errors
    "ArvilError",
    "InvalidQualityError",
    "ItemNotFoundError",
    "StoreImportError",
]
