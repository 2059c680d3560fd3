"""
Scenario service: the seam between CRUD callers and the render queue.

Creating a scenario or changing anything that affects its video stores the
record as ``generating`` and queues a render; the caller gets the record back
immediately. Listing reconciles persisted status against the artifacts on
disk, skipping scenarios whose job is still queued or rendering, or whose
re-render request is still being written.
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from busboard.config import Settings, get_settings
from busboard.exceptions import ScenarioNotFoundError, VideoGeneratingError, VideoNotFoundError
from busboard.models.scenario import new_scenario_id
from busboard.schemas.queue import QueueStatus
from busboard.schemas.scenario import ScenarioPayload, ScenarioRecord
from busboard.services.scenario_store import ScenarioStore
from busboard.services.video_files import delete_video, output_path_for, video_exists
from busboard.services.video_queue import VideoJob, VideoJobQueue

logger = logging.getLogger(__name__)


class ScenarioService:
    def __init__(self, store: ScenarioStore, queue: VideoJobQueue, settings: Settings | None = None):
        self.store = store
        self.queue = queue
        self.settings = settings or get_settings()
        # Ids whose generating write and enqueue have not both finished
        self._writing: set[str] = set()

    def output_path(self, scenario_id: str) -> Path:
        return output_path_for(self.settings.videos_path, scenario_id, self.settings.video_extension)

    def _enqueue(self, record: ScenarioRecord) -> VideoJob:
        job = VideoJob.create(
            record.snapshot(),
            self.settings.videos_path,
            self.settings.temp_path,
            self.settings.video_extension,
        )
        self.queue.enqueue(job)
        return job

    @contextmanager
    def _reserve(self, scenario_id: str) -> Iterator[None]:
        self._writing.add(scenario_id)
        try:
            yield
        finally:
            self._writing.discard(scenario_id)

    def is_pending(self, scenario_id: str) -> bool:
        """A render for the scenario is being requested, queued or running."""
        return scenario_id in self._writing or self.queue.is_pending(scenario_id)

    async def _require(self, scenario_id: str) -> ScenarioRecord:
        record = await self.store.get(scenario_id)
        if record is None:
            raise ScenarioNotFoundError(scenario_id)
        return record

    # =========================================================================
    # CRUD
    # =========================================================================

    async def create_scenario(self, payload: ScenarioPayload) -> ScenarioRecord:
        scenario_id = new_scenario_id()
        with self._reserve(scenario_id):
            record = await self.store.create(payload, scenario_id=scenario_id, video_status="generating")
            self._enqueue(record)
        logger.info(f"Scenario {record.id} created, video queued")
        return record

    async def update_scenario(self, scenario_id: str, payload: ScenarioPayload) -> tuple[ScenarioRecord, bool]:
        """Update a scenario, re-rendering only when the video would change.

        Returns the stored record and whether a new render was queued.
        """
        existing = await self._require(scenario_id)
        candidate = existing.model_copy(
            update={
                "name": payload.name,
                "stops": payload.stops,
                "emergencies": payload.emergencies,
                "theme": payload.theme,
            }
        )
        changed = existing.render_signature() != candidate.render_signature()

        record = await self.store.update(scenario_id, payload)
        if record is None:
            raise ScenarioNotFoundError(scenario_id)

        if not changed:
            logger.info(f"Scenario {scenario_id} updated without render changes")
            return record, False

        with self._reserve(scenario_id):
            delete_video(self.output_path(scenario_id))
            await self.store.update_status(scenario_id, "generating", None)
            record = record.model_copy(update={"video_status": "generating", "video_path": None})
            self._enqueue(record)
        logger.info(f"Scenario {scenario_id} changed, video re-queued")
        return record, True

    async def delete_scenario(self, scenario_id: str) -> None:
        await self._require(scenario_id)
        self.queue.remove(scenario_id)
        await self.store.delete(scenario_id)
        delete_video(self.output_path(scenario_id))
        logger.info(f"Scenario {scenario_id} deleted")

    async def get_scenario(self, scenario_id: str) -> ScenarioRecord:
        return await self._require(scenario_id)

    async def list_scenarios(self) -> list[ScenarioRecord]:
        records = await self.store.list_all()
        return [await self._reconcile(record) for record in records]

    async def _reconcile(self, record: ScenarioRecord) -> ScenarioRecord:
        """Bring persisted status in line with the artifact on disk."""
        if self.is_pending(record.id):
            return record

        path = self.output_path(record.id)
        exists = video_exists(path)
        status = record.video_status
        video_path: str | None = str(path) if exists else None

        if exists and status != "completed":
            new_status = "completed"
        elif not exists and status in ("completed", "generating"):
            new_status = "failed"
        else:
            return record

        logger.info(f"Reconciling scenario {record.id}: {status} -> {new_status}")
        if await self.store.update_status(record.id, new_status, video_path):
            return record.model_copy(update={"video_status": new_status, "video_path": video_path})
        return record

    # =========================================================================
    # Video / queue
    # =========================================================================

    async def get_video(self, scenario_id: str) -> Path:
        """Path of the finished video.

        Raises VideoGeneratingError while a render is pending and
        VideoNotFoundError when no video exists and none is coming.
        """
        await self._require(scenario_id)
        if self.is_pending(scenario_id):
            raise VideoGeneratingError()

        path = self.output_path(scenario_id)
        if video_exists(path):
            return path
        raise VideoNotFoundError()

    def queue_status(self) -> QueueStatus:
        return self.queue.status()
