from busboard.schemas.queue import QueueEntry, QueueStatus
from busboard.schemas.scenario import (
    Emergency,
    ScenarioPayload,
    ScenarioRecord,
    ScenarioResponse,
    ScenarioSnapshot,
    Stop,
)

__all__ = [
    "Stop",
    "Emergency",
    "ScenarioPayload",
    "ScenarioSnapshot",
    "ScenarioRecord",
    "ScenarioResponse",
    "QueueEntry",
    "QueueStatus",
]
