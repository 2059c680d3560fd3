"""
In-process video job queue.

One worker task renders one job at a time. Before each pick the queued jobs
are ordered by physical duration so short videos are not starved behind long
ones; a job that has been picked runs to completion. Enqueueing a scenario
that already has a queued job replaces that job. Removing a scenario drops
its queued job but never interrupts one that is rendering.

The worker sleeps on an event while the queue is empty and is woken by the
next enqueue.
"""

import asyncio
import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable

from busboard.render.timeline import build_timeline
from busboard.schemas.queue import QueueEntry, QueueStatus
from busboard.schemas.scenario import ScenarioSnapshot, VideoStatus
from busboard.services.scenario_store import ScenarioStore
from busboard.services.video_files import TEMP_DIR_PREFIX, delete_video, output_path_for

logger = logging.getLogger(__name__)


@dataclass
class VideoJob:
    """One scenario's render request."""

    scenario_id: str
    scenario: ScenarioSnapshot
    output_path: Path
    temp_dir: Path
    total_duration: float
    scenario_name: str = ""
    enqueued_at: float = field(default_factory=time.monotonic)

    @classmethod
    def create(
        cls,
        scenario: ScenarioSnapshot,
        videos_dir: str | Path,
        temp_root: str | Path,
        extension: str = "mp4",
    ) -> "VideoJob":
        timeline = build_timeline(scenario.stops, scenario.emergencies)
        # Unique per job so a stale directory from an earlier run never collides
        temp_name = f"{TEMP_DIR_PREFIX}{scenario.id}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:6]}"
        return cls(
            scenario_id=scenario.id,
            scenario=scenario,
            output_path=output_path_for(videos_dir, scenario.id, extension),
            temp_dir=Path(temp_root) / temp_name,
            total_duration=timeline.total_physical_duration,
            scenario_name=scenario.name,
        )

    def to_entry(self) -> QueueEntry:
        return QueueEntry(
            scenario_id=self.scenario_id,
            duration=self.total_duration,
            scenario_name=self.scenario_name,
        )


JobRunner = Callable[[VideoJob], Awaitable[Any]]


class VideoJobQueue:
    """Single-worker, duration-sorted render queue."""

    def __init__(self, runner: JobRunner, store: ScenarioStore | None = None):
        self._runner = runner
        self._store = store
        self._jobs: list[VideoJob] = []
        self._current: VideoJob | None = None
        self._lock = threading.Lock()
        self._wakeup = asyncio.Event()
        self._idle = asyncio.Event()
        self._idle.set()
        self._worker: asyncio.Task | None = None

    # =========================================================================
    # Queue operations
    # =========================================================================

    def enqueue(self, job: VideoJob) -> bool:
        """Queue a job, replacing a queued job for the same scenario.

        Returns True if an existing queued job was replaced.
        """
        with self._lock:
            before = len(self._jobs)
            self._jobs = [j for j in self._jobs if j.scenario_id != job.scenario_id]
            replaced = len(self._jobs) != before
            self._jobs.append(job)
            queue_length = len(self._jobs)

        self._idle.clear()
        self._wakeup.set()
        logger.info(
            f"[QUEUE] {'Replaced' if replaced else 'Queued'} job for scenario {job.scenario_id} "
            f"({job.total_duration}s), queue length {queue_length}"
        )
        return replaced

    def remove(self, scenario_id: str) -> bool:
        """Drop a queued job. A job that is already rendering is not affected."""
        with self._lock:
            before = len(self._jobs)
            self._jobs = [j for j in self._jobs if j.scenario_id != scenario_id]
            removed = len(self._jobs) != before

        if removed:
            logger.info(f"[QUEUE] Removed queued job for scenario {scenario_id}")
        return removed

    def is_queued(self, scenario_id: str) -> bool:
        with self._lock:
            return any(j.scenario_id == scenario_id for j in self._jobs)

    def is_rendering(self, scenario_id: str) -> bool:
        with self._lock:
            return self._current is not None and self._current.scenario_id == scenario_id

    def is_pending(self, scenario_id: str) -> bool:
        """Queued or rendering."""
        return self.is_queued(scenario_id) or self.is_rendering(scenario_id)

    @property
    def is_processing(self) -> bool:
        with self._lock:
            return self._current is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def status(self) -> QueueStatus:
        with self._lock:
            jobs = sorted(self._jobs, key=lambda j: j.total_duration)
            current = self._current
        return QueueStatus(
            queue_length=len(jobs),
            is_processing=current is not None,
            current_scenario_id=current.scenario_id if current else None,
            queue=[j.to_entry() for j in jobs],
        )

    # =========================================================================
    # Worker
    # =========================================================================

    def start(self) -> None:
        if self._worker is not None and not self._worker.done():
            return
        self._worker = asyncio.create_task(self._run(), name="video-queue-worker")
        logger.info("[QUEUE] Worker started")

    async def stop(self) -> None:
        if self._worker is None:
            return
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        logger.info("[QUEUE] Worker stopped")

    async def join(self) -> None:
        """Wait until the worker has drained the queue."""
        await self._idle.wait()

    async def _run(self) -> None:
        while True:
            job = self._next_job()
            if job is None:
                self._idle.set()
                self._wakeup.clear()
                await self._wakeup.wait()
                continue
            await self.process(job)

    def _next_job(self) -> VideoJob | None:
        with self._lock:
            if not self._jobs:
                return None
            # Stable sort: equal durations keep enqueue order
            self._jobs.sort(key=lambda j: j.total_duration)
            job = self._jobs.pop(0)
            self._current = job
            return job

    async def process(self, job: VideoJob) -> None:
        """Render one job and persist its outcome. Never raises for job failures."""
        with self._lock:
            self._current = job
        logger.info(f"[QUEUE] Rendering scenario {job.scenario_id} ({job.total_duration}s)")

        try:
            output = await self._runner(job)
        except Exception as e:
            logger.exception(f"[QUEUE] Job for scenario {job.scenario_id} failed: {e}")
            await self._finish(job, "failed", None)
        else:
            updated = await self._finish(job, "completed", str(output))
            if updated is False:
                # Scenario was deleted while rendering
                delete_video(output)
        finally:
            with self._lock:
                self._current = None

    async def _finish(self, job: VideoJob, status: VideoStatus, video_path: str | None) -> bool | None:
        """Persist a job's outcome unless a newer job for the scenario is queued.

        Returns None when skipped, otherwise whether the record still existed.
        """
        if self.is_queued(job.scenario_id):
            logger.info(f"[QUEUE] Scenario {job.scenario_id} has a newer job queued; not marking {status}")
            return None
        return await self._persist(job.scenario_id, status, video_path)

    async def _persist(self, scenario_id: str, status: VideoStatus, video_path: str | None) -> bool:
        if self._store is None:
            return True
        try:
            updated = await self._store.update_status(scenario_id, status, video_path)
        except Exception as e:
            logger.exception(f"[QUEUE] Could not persist status {status} for scenario {scenario_id}: {e}")
            return True

        if not updated:
            logger.info(f"[QUEUE] Scenario {scenario_id} no longer exists; status update skipped")
        else:
            logger.info(f"[QUEUE] Scenario {scenario_id} marked {status}")
        return updated
