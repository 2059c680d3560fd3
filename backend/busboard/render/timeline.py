"""
Logical and physical timeline construction.

A scenario is authored against an undisturbed schedule (logical time): every
non-final stop contributes a dwell phase followed by a travel phase.
Emergencies are scheduled at logical offsets and, once spliced in, push every
later event back. The physical timeline is what actually plays:

    logical:   [stay 0..60)[travel 60..90)
    emergency: logical_start=40, duration=20
    physical:  [stay 0..40)[emergency 40..60)[stay 60..80)[travel 80..110)

Placement rules:
- Emergency membership is half-open: an emergency interrupts the phase with
  ``phase.logical_start <= logical_start < phase.logical_end``. An emergency
  exactly on a boundary therefore interrupts the following phase before any
  of it plays.
- Emergencies at or beyond the total logical duration are appended after the
  last phase (with a warning), so no emergency is ever dropped.
- Zero-duration phases and emergencies are never emitted.
"""

import logging
from dataclasses import dataclass, field
from functools import cached_property
from typing import ClassVar, Literal, Sequence

from busboard.schemas.scenario import Emergency, Stop

logger = logging.getLogger(__name__)

PhaseType = Literal["stay", "travel"]
EventType = Literal["stay", "travel", "emergency"]


@dataclass(frozen=True)
class LogicalPhase:
    """One dwell or travel interval on the undisturbed schedule."""

    type: PhaseType
    stop_index: int
    logical_start: float
    logical_end: float
    next_stop_index: int | None = None

    @property
    def duration(self) -> float:
        return self.logical_end - self.logical_start


@dataclass(frozen=True)
class PhysicalEvent:
    """An interval of the played timeline.

    ``logical_start`` is the logical time at which the event begins; for an
    emergency it is the logical instant the schedule was interrupted.
    """

    type: ClassVar[EventType]

    start_time: float
    end_time: float
    stop_index: int
    logical_start: float
    next_stop_index: int | None = None

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    @property
    def is_emergency(self) -> bool:
        return self.type == "emergency"


@dataclass(frozen=True)
class StayEvent(PhysicalEvent):
    type: ClassVar[EventType] = "stay"


@dataclass(frozen=True)
class TravelEvent(PhysicalEvent):
    type: ClassVar[EventType] = "travel"


@dataclass(frozen=True)
class EmergencyEvent(PhysicalEvent):
    type: ClassVar[EventType] = "emergency"

    text: str = ""
    emergency_type: str = "danger"
    # Position in the scenario's emergency list
    emergency_index: int = 0


_FRAGMENT_TYPES: dict[str, type[PhysicalEvent]] = {
    "stay": StayEvent,
    "travel": TravelEvent,
}


@dataclass
class Timeline:
    """Result of merging the logical schedule with its emergencies."""

    phases: list[LogicalPhase] = field(default_factory=list)
    events: list[PhysicalEvent] = field(default_factory=list)
    # Logical arrival time at each stop (index-aligned with the stops)
    stop_arrivals: list[float] = field(default_factory=list)
    total_logical_duration: float = 0.0
    total_physical_duration: float = 0.0

    @property
    def is_empty(self) -> bool:
        return not self.events

    @cached_property
    def start_times(self) -> list[float]:
        return [e.start_time for e in self.events]

    @property
    def emergency_events(self) -> list[EmergencyEvent]:
        return [e for e in self.events if isinstance(e, EmergencyEvent)]

    def stay_phases_for(self, stop_index: int) -> list[LogicalPhase]:
        return [p for p in self.phases if p.type == "stay" and p.stop_index == stop_index]


def build_logical_phases(stops: Sequence[Stop]) -> list[LogicalPhase]:
    """Walk the stops in order, emitting stay then travel for every non-final stop."""
    phases: list[LogicalPhase] = []
    logical_time = 0.0

    for i, stop in enumerate(stops[:-1]):
        stay = float(stop.stay_seconds or 0)
        if stay > 0:
            phases.append(
                LogicalPhase(
                    type="stay",
                    stop_index=i,
                    logical_start=logical_time,
                    logical_end=logical_time + stay,
                )
            )
            logical_time += stay

        travel = float(stop.between_seconds or 0)
        if travel > 0:
            phases.append(
                LogicalPhase(
                    type="travel",
                    stop_index=i,
                    next_stop_index=i + 1,
                    logical_start=logical_time,
                    logical_end=logical_time + travel,
                )
            )
            logical_time += travel

    return phases


def compute_stop_arrivals(stops: Sequence[Stop]) -> list[float]:
    """Logical arrival time at every stop (stop 0 is reached at 0)."""
    arrivals: list[float] = []
    logical_time = 0.0
    for i, stop in enumerate(stops):
        arrivals.append(logical_time)
        if i < len(stops) - 1:
            logical_time += float(stop.stay_seconds or 0) + float(stop.between_seconds or 0)
    return arrivals


def sort_emergencies(emergencies: Sequence[Emergency]) -> list[tuple[int, Emergency]]:
    """Effective emergencies ordered by logical start, input order on ties."""
    effective = [(i, e) for i, e in enumerate(emergencies) if float(e.duration or 0) > 0]
    # sorted() is stable, so equal starts keep their input order
    return sorted(effective, key=lambda item: float(item[1].logical_start or 0))


def build_timeline(stops: Sequence[Stop], emergencies: Sequence[Emergency] = ()) -> Timeline:
    """Build the physical timeline for a scenario.

    Two-pointer merge of the logical phases with the sorted emergencies,
    O(phases + emergencies).
    """
    phases = build_logical_phases(stops)
    stop_arrivals = compute_stop_arrivals(stops)

    if not phases:
        if emergencies:
            logger.warning(
                f"[TIMELINE] Scenario has no logical duration; ignoring {len(emergencies)} emergencies"
            )
        return Timeline(phases=[], events=[], stop_arrivals=stop_arrivals)

    total_logical = phases[-1].logical_end
    ordered = sort_emergencies(emergencies)

    events: list[PhysicalEvent] = []
    physical_time = 0.0
    cursor = 0

    def emit_fragment(phase: LogicalPhase, logical_start: float, duration: float) -> None:
        nonlocal physical_time
        event_cls = _FRAGMENT_TYPES[phase.type]
        events.append(
            event_cls(
                start_time=physical_time,
                end_time=physical_time + duration,
                stop_index=phase.stop_index,
                next_stop_index=phase.next_stop_index,
                logical_start=logical_start,
            )
        )
        physical_time += duration

    def emit_emergency(
        index: int,
        emergency: Emergency,
        logical_start: float,
        stop_index: int,
        next_stop_index: int | None,
    ) -> None:
        nonlocal physical_time
        duration = float(emergency.duration)
        events.append(
            EmergencyEvent(
                start_time=physical_time,
                end_time=physical_time + duration,
                stop_index=stop_index,
                next_stop_index=next_stop_index,
                logical_start=logical_start,
                text=emergency.text,
                emergency_type=emergency.type,
                emergency_index=index,
            )
        )
        physical_time += duration

    for phase in phases:
        segment_start = phase.logical_start

        while cursor < len(ordered):
            index, emergency = ordered[cursor]
            emergency_start = float(emergency.logical_start or 0)
            if emergency_start >= phase.logical_end:
                break

            before = emergency_start - segment_start
            if before > 0:
                emit_fragment(phase, segment_start, before)
                segment_start = emergency_start

            emit_emergency(
                index, emergency, segment_start, phase.stop_index, phase.next_stop_index
            )
            cursor += 1

        remaining = phase.logical_end - segment_start
        if remaining > 0:
            emit_fragment(phase, segment_start, remaining)

    # Emergencies at or past the end of the schedule
    final_stop = len(stops) - 1
    for index, emergency in ordered[cursor:]:
        logger.warning(
            f"[TIMELINE] Emergency {index} starts at {emergency.logical_start}s, "
            f"at or beyond the schedule end ({total_logical}s); appending after the final phase"
        )
        emit_emergency(index, emergency, total_logical, final_stop, None)

    timeline = Timeline(
        phases=phases,
        events=events,
        stop_arrivals=stop_arrivals,
        total_logical_duration=total_logical,
        total_physical_duration=physical_time,
    )
    logger.debug(
        f"[TIMELINE] {len(phases)} phases, {len(events)} events, "
        f"logical={total_logical}s, physical={physical_time}s"
    )
    return timeline
