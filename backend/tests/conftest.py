"""
Pytest fixtures for busboard backend tests.

No test needs network access. Tests that call a real ffmpeg binary are
marked with @pytest.mark.requires_ffmpeg and skipped when it is missing.
"""

from pathlib import Path

import pytest

from busboard.config import Settings
from busboard.schemas.scenario import Emergency, ScenarioSnapshot, Stop
from busboard.services.scenario_store import InMemoryScenarioStore


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "requires_ffmpeg: mark test as requiring an ffmpeg binary on PATH",
    )


@pytest.fixture
def temp_output_dir(tmp_path: Path) -> Path:
    """Temporary directory for test outputs."""
    output_dir = tmp_path / "output"
    output_dir.mkdir()
    return output_dir


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated from the environment, with small frames."""
    return Settings(
        _env_file=None,
        videos_dir=str(tmp_path / "videos"),
        temp_dir=str(tmp_path / "temp"),
        use_memory_store=True,
        render_width=96,
        render_height=54,
        render_fps=0.1,
        render_yield_interval=4,
        announcement_lead_seconds=20.0,
        suppress_welcome_with_emergencies=True,
    )


@pytest.fixture
def two_stops() -> list[Stop]:
    """60s dwell then 30s travel to the terminal."""
    return [
        Stop(name="Central Station", stay_seconds=60, between_seconds=30),
        Stop(name="Harbor", stay_seconds=0, between_seconds=0),
    ]


@pytest.fixture
def four_stops() -> list[Stop]:
    return [
        Stop(name="Central Station", stay_seconds=30, between_seconds=60),
        Stop(name="Museum", stay_seconds=20, between_seconds=40),
        Stop(name="Old Town", stay_seconds=10, between_seconds=90),
        Stop(name="Harbor"),
    ]


@pytest.fixture
def emergency_at_40() -> Emergency:
    return Emergency(text="Road blocked", type="danger", logical_start=40, duration=20)


@pytest.fixture
def snapshot(two_stops: list[Stop]) -> ScenarioSnapshot:
    return ScenarioSnapshot(id="abc123", name="Line M", stops=two_stops)


@pytest.fixture
def store() -> InMemoryScenarioStore:
    return InMemoryScenarioStore()
