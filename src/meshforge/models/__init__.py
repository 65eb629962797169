"""Domain entities.

The SQLModel table is imported here so it is registered with SQLModel
metadata before `create_tables` runs.
"""

from meshforge.models.collection import HistoryCollection
from meshforge.models.generation import (
    GeneratedResult,
    GenerationJob,
    InvalidStateTransition,
    ProgressSnapshot,
    RemoteStatus,
    ResultQuality,
    Stage,
    StageStatus,
    StatusReport,
)
from meshforge.models.key_value import KeyValueEntry

__all__ = [
    "GeneratedResult",
    "GenerationJob",
    "HistoryCollection",
    "InvalidStateTransition",
    "KeyValueEntry",
    "ProgressSnapshot",
    "RemoteStatus",
    "ResultQuality",
    "Stage",
    "StageStatus",
    "StatusReport",
]
