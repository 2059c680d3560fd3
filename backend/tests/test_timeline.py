"""Tests for logical phase construction and the physical timeline merge."""

import random

import pytest

from busboard.render.timeline import (
    EmergencyEvent,
    StayEvent,
    TravelEvent,
    build_logical_phases,
    build_timeline,
    compute_stop_arrivals,
    sort_emergencies,
)
from busboard.schemas.scenario import Emergency, Stop


def spans(timeline):
    return [(e.type, e.start_time, e.end_time) for e in timeline.events]


def random_scenario(rng: random.Random, max_emergencies: int = 4):
    stops = [
        Stop(name=f"Stop {i}", stay_seconds=rng.randint(0, 60), between_seconds=rng.randint(0, 60))
        for i in range(rng.randint(2, 6))
    ]
    total = sum(s.stay_seconds + s.between_seconds for s in stops[:-1])
    emergencies = [
        Emergency(
            text=f"Alert {k}",
            logical_start=rng.randint(0, max(int(total) + 10, 1)),
            duration=rng.randint(0, 30),
        )
        for k in range(rng.randint(0, max_emergencies))
    ]
    return stops, emergencies


RANDOM_SCENARIOS = [random_scenario(random.Random(seed)) for seed in range(40)]


class TestLogicalPhases:
    """Tests for the undisturbed schedule."""

    def test_stay_then_travel(self, two_stops):
        phases = build_logical_phases(two_stops)
        assert [(p.type, p.logical_start, p.logical_end) for p in phases] == [
            ("stay", 0, 60),
            ("travel", 60, 90),
        ]
        assert phases[1].next_stop_index == 1
        assert phases[0].next_stop_index is None

    def test_final_stop_contributes_nothing(self):
        stops = [Stop(name="A", stay_seconds=10, between_seconds=5), Stop(name="B", stay_seconds=99, between_seconds=99)]
        phases = build_logical_phases(stops)
        assert phases[-1].logical_end == 15

    def test_zero_duration_phases_skipped(self):
        stops = [
            Stop(name="A", stay_seconds=0, between_seconds=30),
            Stop(name="B", stay_seconds=15, between_seconds=0),
            Stop(name="C"),
        ]
        phases = build_logical_phases(stops)
        assert [(p.type, p.stop_index) for p in phases] == [("travel", 0), ("stay", 1)]

    def test_phases_are_contiguous(self, four_stops):
        phases = build_logical_phases(four_stops)
        for current, following in zip(phases, phases[1:]):
            assert current.logical_end == following.logical_start

    def test_stop_arrivals(self, four_stops):
        assert compute_stop_arrivals(four_stops) == [0, 90, 150, 250]


class TestSortEmergencies:
    """Tests for emergency ordering."""

    def test_sorted_by_logical_start(self):
        emergencies = [
            Emergency(text="late", logical_start=50, duration=5),
            Emergency(text="early", logical_start=10, duration=5),
        ]
        assert [e.text for _, e in sort_emergencies(emergencies)] == ["early", "late"]

    def test_ties_keep_input_order(self):
        emergencies = [
            Emergency(text="first", logical_start=10, duration=5),
            Emergency(text="second", logical_start=10, duration=5),
        ]
        assert [i for i, _ in sort_emergencies(emergencies)] == [0, 1]

    def test_zero_duration_dropped(self):
        emergencies = [Emergency(text="empty", logical_start=10, duration=0)]
        assert sort_emergencies(emergencies) == []


class TestBuildTimeline:
    """Tests for splicing emergencies into the schedule."""

    def test_no_emergencies(self, two_stops):
        timeline = build_timeline(two_stops)
        assert timeline.total_physical_duration == 90
        assert spans(timeline) == [("stay", 0, 60), ("travel", 60, 90)]
        assert isinstance(timeline.events[0], StayEvent)
        assert isinstance(timeline.events[1], TravelEvent)

    def test_emergency_splits_stay(self, two_stops, emergency_at_40):
        timeline = build_timeline(two_stops, [emergency_at_40])
        assert timeline.total_physical_duration == 110
        assert spans(timeline) == [
            ("stay", 0, 40),
            ("emergency", 40, 60),
            ("stay", 60, 80),
            ("travel", 80, 110),
        ]

        emergency = timeline.events[1]
        assert isinstance(emergency, EmergencyEvent)
        assert emergency.text == "Road blocked"
        assert emergency.emergency_type == "danger"
        assert emergency.logical_start == 40
        assert emergency.stop_index == 0

    def test_emergency_on_boundary_interrupts_following_phase(self, two_stops):
        timeline = build_timeline(two_stops, [Emergency(text="x", logical_start=60, duration=20)])
        assert spans(timeline) == [("stay", 0, 60), ("emergency", 60, 80), ("travel", 80, 110)]
        # Context of the interrupted travel phase
        assert timeline.events[1].stop_index == 0
        assert timeline.events[1].next_stop_index == 1

    def test_emergency_at_zero(self, two_stops):
        timeline = build_timeline(two_stops, [Emergency(text="x", logical_start=0, duration=10)])
        assert spans(timeline)[0] == ("emergency", 0, 10)
        assert spans(timeline)[1] == ("stay", 10, 70)

    @pytest.mark.parametrize("logical_start", [90, 200])
    def test_emergency_at_or_past_end_is_appended(self, two_stops, logical_start, caplog):
        with caplog.at_level("WARNING"):
            timeline = build_timeline(two_stops, [Emergency(text="x", logical_start=logical_start, duration=15)])
        assert spans(timeline)[-1] == ("emergency", 90, 105)
        assert timeline.total_physical_duration == 105
        assert timeline.events[-1].stop_index == 1
        assert timeline.events[-1].logical_start == 90
        assert "beyond the schedule end" in caplog.text

    def test_multiple_emergencies_in_one_phase(self, two_stops):
        emergencies = [
            Emergency(text="b", logical_start=30, duration=5),
            Emergency(text="a", logical_start=10, duration=5),
        ]
        timeline = build_timeline(two_stops, emergencies)
        assert spans(timeline) == [
            ("stay", 0, 10),
            ("emergency", 10, 15),
            ("stay", 15, 35),
            ("emergency", 35, 40),
            ("stay", 40, 70),
            ("travel", 70, 100),
        ]
        assert [e.emergency_index for e in timeline.emergency_events] == [1, 0]

    def test_back_to_back_emergencies(self, two_stops):
        emergencies = [
            Emergency(text="first", logical_start=20, duration=5),
            Emergency(text="second", logical_start=20, duration=7),
        ]
        timeline = build_timeline(two_stops, emergencies)
        assert spans(timeline)[:4] == [
            ("stay", 0, 20),
            ("emergency", 20, 25),
            ("emergency", 25, 32),
            ("stay", 32, 72),
        ]
        assert [e.text for e in timeline.emergency_events] == ["first", "second"]

    def test_zero_duration_emergency_ignored(self, two_stops):
        timeline = build_timeline(two_stops, [Emergency(text="x", logical_start=40, duration=0)])
        assert spans(timeline) == [("stay", 0, 60), ("travel", 60, 90)]

    def test_empty_stops(self):
        timeline = build_timeline([])
        assert timeline.is_empty
        assert timeline.total_physical_duration == 0

    def test_single_stop_has_no_duration(self):
        timeline = build_timeline([Stop(name="Only", stay_seconds=30)], [Emergency(logical_start=0, duration=5)])
        assert timeline.is_empty
        assert timeline.total_physical_duration == 0

    def test_logical_offsets_skip_emergency_time(self, two_stops, emergency_at_40):
        timeline = build_timeline(two_stops, [emergency_at_40])
        assert [e.logical_start for e in timeline.events] == [0, 40, 40, 60]


class TestTimelineProperties:
    """Invariants over a spread of generated scenarios."""

    @pytest.mark.parametrize("stops,emergencies", RANDOM_SCENARIOS)
    def test_total_duration_adds_emergencies(self, stops, emergencies):
        timeline = build_timeline(stops, emergencies)
        if timeline.is_empty:
            return
        expected = timeline.total_logical_duration + sum(e.duration for e in emergencies)
        assert timeline.total_physical_duration == pytest.approx(expected)

    @pytest.mark.parametrize("stops,emergencies", RANDOM_SCENARIOS)
    def test_events_contiguous_and_positive(self, stops, emergencies):
        timeline = build_timeline(stops, emergencies)
        if timeline.is_empty:
            return
        events = timeline.events
        assert events[0].start_time == 0
        assert events[-1].end_time == pytest.approx(timeline.total_physical_duration)
        for event in events:
            assert event.duration > 0
        for current, following in zip(events, events[1:]):
            assert current.end_time == pytest.approx(following.start_time)

    @pytest.mark.parametrize("seed", range(25))
    def test_appended_emergency_shifts_later_events(self, seed):
        rng = random.Random(1000 + seed)
        stops, _ = random_scenario(rng, max_emergencies=0)
        base_total = build_timeline(stops).total_logical_duration
        if base_total < 2:
            return

        late_start = rng.randint(1, int(base_total) - 1)
        existing = [
            Emergency(text=f"e{k}", logical_start=rng.randint(0, late_start - 1), duration=rng.randint(1, 20))
            for k in range(rng.randint(0, 3))
        ]
        added = Emergency(text="added", logical_start=late_start, duration=rng.randint(1, 20))

        before = build_timeline(stops, existing)
        after = build_timeline(stops, existing + [added])

        def matching(event, offset):
            return any(
                other.type == event.type
                and other.logical_start == pytest.approx(event.logical_start)
                and other.start_time == pytest.approx(event.start_time + offset)
                for other in after.events
            )

        for event in before.events:
            if event.logical_start >= late_start:
                assert matching(event, added.duration)
            else:
                assert matching(event, 0)
