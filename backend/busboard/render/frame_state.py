"""
Per-frame time math.

Resolves an elapsed physical time to the event playing at that instant and
derives every countdown shown on screen. Countdowns run on logical time:
only non-emergency time advances the schedule, so an emergency freezes them.
"""

import math
from bisect import bisect_right
from dataclasses import dataclass, field
from typing import Sequence

from busboard.render.timeline import PhysicalEvent, Timeline
from busboard.schemas.scenario import Stop

UPCOMING_STOP_COUNT = 3


@dataclass(frozen=True)
class UpcomingStop:
    stop_index: int
    name: str
    seconds_remaining: int


@dataclass(frozen=True)
class FrameState:
    """Everything the frame renderer needs for one sample."""

    elapsed: float
    logical_elapsed: float
    event: PhysicalEvent
    current_stop_index: int
    next_stop_index: int | None
    # None when the current stop has no dwell phase
    departure_seconds: int | None
    terminal_seconds: int
    upcoming: list[UpcomingStop] = field(default_factory=list)

    @property
    def is_emergency(self) -> bool:
        return self.event.is_emergency


def remaining_seconds(target: float, now: float) -> int:
    return max(0, math.ceil(target - now))


def find_event(timeline: Timeline, elapsed: float) -> PhysicalEvent:
    """First event with ``start_time <= elapsed < end_time``.

    Samples at or past the end clamp to the last event, samples before 0 to
    the first one.
    """
    events = timeline.events
    if not events:
        raise ValueError("Cannot resolve a time on an empty timeline")

    index = bisect_right(timeline.start_times, elapsed) - 1
    index = min(max(index, 0), len(events) - 1)
    return events[index]


def logical_elapsed_at(timeline: Timeline, elapsed: float) -> float:
    """Logical time consumed after ``elapsed`` physical seconds.

    Sum of the non-emergency time played so far, computed from the event's
    logical offset.
    """
    event = find_event(timeline, elapsed)
    if event.is_emergency:
        return event.logical_start
    played = min(max(elapsed, event.start_time), event.end_time) - event.start_time
    return event.logical_start + played


def departure_time(timeline: Timeline, stop_index: int) -> float | None:
    """Logical end of the last dwell phase at a stop."""
    stays = timeline.stay_phases_for(stop_index)
    if not stays:
        return None
    return stays[-1].logical_end


def compute_frame_state(timeline: Timeline, stops: Sequence[Stop], elapsed: float) -> FrameState:
    event = find_event(timeline, elapsed)
    logical_now = logical_elapsed_at(timeline, elapsed)
    current = event.stop_index

    departure = departure_time(timeline, current)
    departure_seconds = remaining_seconds(departure, logical_now) if departure is not None else None

    upcoming: list[UpcomingStop] = []
    for index in range(current + 1, min(current + 1 + UPCOMING_STOP_COUNT, len(stops))):
        upcoming.append(
            UpcomingStop(
                stop_index=index,
                name=stops[index].name,
                seconds_remaining=remaining_seconds(timeline.stop_arrivals[index], logical_now),
            )
        )

    terminal_arrival = timeline.stop_arrivals[-1] if timeline.stop_arrivals else 0.0

    return FrameState(
        elapsed=elapsed,
        logical_elapsed=logical_now,
        event=event,
        current_stop_index=current,
        next_stop_index=event.next_stop_index,
        departure_seconds=departure_seconds,
        terminal_seconds=remaining_seconds(terminal_arrival, logical_now),
        upcoming=upcoming,
    )
