from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class QueueEntry(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    scenario_id: str
    duration: float
    scenario_name: str


class QueueStatus(BaseModel):
    """Snapshot of the render queue, serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    queue_length: int
    is_processing: bool
    current_scenario_id: str | None = None
    queue: list[QueueEntry] = Field(default_factory=list)
