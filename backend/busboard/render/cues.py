"""
Narration cue scheduling.

Turns a physical timeline into the list of audio cues the mixer places:

- a welcome cue at 0 naming the final destination (optionally suppressed when
  the scenario has emergencies)
- one "next stop" / "final stop" cue per non-first stop, started a fixed lead
  time before the physical arrival (clamped to 0)
- one cue per emergency, starting exactly when the emergency event starts so
  the looped effect track lines up with it in the mixer

Scheduling is pure: it only decides texts, file names and start times.
Synthesis happens afterwards (see ``synthesizer.synthesize_cues``).
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

from busboard.config import Settings, get_settings
from busboard.render.timeline import StayEvent, Timeline, TravelEvent
from busboard.schemas.scenario import Stop

DEFAULT_EMERGENCY_TEXT = "Emergency alert"


@dataclass(frozen=True)
class AudioCue:
    """One scheduled clip with an absolute physical start time (seconds)."""

    path: Path
    start_time: float
    text: str
    is_emergency: bool = False
    duration: float | None = None
    emergency_type: str | None = None
    label: str = ""


@dataclass
class NarrationConfig:
    """Texts and timing policy for announcements."""

    welcome_template: str
    next_stop_template: str
    final_stop_template: str
    emergency_templates: dict[str, str] = field(default_factory=dict)
    lead_seconds: float = 20.0
    suppress_welcome_with_emergencies: bool = True

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "NarrationConfig":
        settings = settings or get_settings()
        return cls(
            welcome_template=settings.welcome_template,
            next_stop_template=settings.next_stop_template,
            final_stop_template=settings.final_stop_template,
            emergency_templates=dict(settings.emergency_templates),
            lead_seconds=settings.announcement_lead_seconds,
            suppress_welcome_with_emergencies=settings.suppress_welcome_with_emergencies,
        )

    def emergency_text(self, emergency_type: str, text: str) -> str:
        template = self.emergency_templates.get(emergency_type) or self.emergency_templates.get(
            "danger", "Emergency alert! {text}."
        )
        return template.format(text=text or DEFAULT_EMERGENCY_TEXT)


def physical_arrival_time(timeline: Timeline, stop_index: int) -> float:
    """Physical time at which the bus reaches a stop.

    End of the last travel fragment into the stop; otherwise the start of the
    stop's first stay fragment; otherwise the end of the timeline.
    """
    arrival: float | None = None
    for event in timeline.events:
        if isinstance(event, TravelEvent) and event.next_stop_index == stop_index:
            arrival = event.end_time
    if arrival is not None:
        return arrival

    for event in timeline.events:
        if isinstance(event, StayEvent) and event.stop_index == stop_index:
            return event.start_time

    return timeline.total_physical_duration


def schedule_cues(
    stops: Sequence[Stop],
    timeline: Timeline,
    audio_dir: Path,
    config: NarrationConfig | None = None,
) -> list[AudioCue]:
    """Plan every announcement for a scenario, ordered by start time."""
    config = config or NarrationConfig.from_settings()
    audio_dir = Path(audio_dir)

    if not stops:
        return []

    emergency_events = timeline.emergency_events
    narration: list[AudioCue] = []

    if not (emergency_events and config.suppress_welcome_with_emergencies):
        narration.append(
            AudioCue(
                path=audio_dir / "welcome.mp3",
                start_time=0.0,
                text=config.welcome_template.format(destination=stops[-1].name),
                label="welcome",
            )
        )

    last_index = len(stops) - 1
    for i in range(1, len(stops)):
        stop = stops[i]
        template = config.final_stop_template if i == last_index else config.next_stop_template
        arrival = physical_arrival_time(timeline, i)
        narration.append(
            AudioCue(
                path=audio_dir / f"announcement_{i}.mp3",
                start_time=max(0.0, arrival - config.lead_seconds),
                text=template.format(stop=stop.name),
                label=f"stop:{i}",
            )
        )

    emergencies: list[AudioCue] = []
    for k, event in enumerate(emergency_events):
        emergencies.append(
            AudioCue(
                path=audio_dir / f"emergency_{k}.mp3",
                start_time=event.start_time,
                text=config.emergency_text(event.emergency_type, event.text),
                is_emergency=True,
                duration=event.duration,
                emergency_type=event.emergency_type,
                label=f"emergency:{event.emergency_index}",
            )
        )

    # Stable: narration precedes an emergency starting at the same instant
    return sorted(narration + emergencies, key=lambda cue: cue.start_time)
