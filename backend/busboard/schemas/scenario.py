from datetime import datetime
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

# =============================================================================
# Scenario input
# =============================================================================

EmergencyType = Literal["danger", "traffic", "weather", "information", "announcement"]
VideoStatus = Literal["pending", "generating", "completed", "failed"]
Theme = Literal["dark", "light"]


class Stop(BaseModel):
    """One stop: dwell here, then travel to the next stop."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    stay_seconds: float = Field(
        default=0,
        ge=0,
        validation_alias=AliasChoices("stay_seconds", "staySeconds", "stayTimeAtStop"),
    )
    between_seconds: float = Field(
        default=0,
        ge=0,
        validation_alias=AliasChoices("between_seconds", "betweenSeconds", "travelTimeToNextStop"),
    )


class Emergency(BaseModel):
    """An interruption scheduled against the undisturbed timeline."""

    model_config = ConfigDict(populate_by_name=True)

    text: str = ""
    type: EmergencyType = "danger"
    logical_start: float = Field(
        default=0,
        ge=0,
        validation_alias=AliasChoices("logical_start", "logicalStart", "startSecond"),
    )
    # Zero-length emergencies are accepted but never rendered
    duration: float = Field(
        default=0,
        ge=0,
        validation_alias=AliasChoices("duration", "seconds"),
    )


class ScenarioPayload(BaseModel):
    """Create/update body coming from the CRUD layer."""

    name: str = Field(min_length=1)
    stops: list[Stop] = Field(min_length=1)
    emergencies: list[Emergency] = Field(default_factory=list)
    theme: Theme = "dark"


class ScenarioSnapshot(BaseModel):
    """Immutable copy of a scenario handed to the render queue."""

    id: str
    name: str
    stops: list[Stop]
    emergencies: list[Emergency] = Field(default_factory=list)
    theme: Theme = "dark"


# =============================================================================
# Stored record
# =============================================================================


class ScenarioRecord(BaseModel):
    """Scenario as persisted by the store."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    stops: list[Stop]
    emergencies: list[Emergency] = Field(default_factory=list)
    theme: Theme = "dark"
    video_status: VideoStatus = "pending"
    video_path: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def snapshot(self) -> ScenarioSnapshot:
        return ScenarioSnapshot(
            id=self.id,
            name=self.name,
            stops=[s.model_copy() for s in self.stops],
            emergencies=[e.model_copy() for e in self.emergencies],
            theme=self.theme,
        )

    def render_signature(self) -> list[Any]:
        """Fields that affect the rendered video, for change detection."""
        return [
            [(s.name, s.stay_seconds, s.between_seconds) for s in self.stops],
            [(e.text, e.type, e.logical_start, e.duration) for e in self.emergencies],
            self.theme,
        ]


class ScenarioResponse(BaseModel):
    scenario: ScenarioRecord
    message: str | None = None
    video_regenerated: bool | None = None
