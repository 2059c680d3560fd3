"""Tests for the scenario service (queue worker not started unless noted)."""

import asyncio

import pytest

from busboard.exceptions import ScenarioNotFoundError, VideoGeneratingError, VideoNotFoundError
from busboard.schemas.scenario import Emergency, ScenarioPayload
from busboard.services.scenario_service import ScenarioService
from busboard.services.scenario_store import InMemoryScenarioStore
from busboard.services.video_queue import VideoJob, VideoJobQueue


async def write_output(job: VideoJob) -> str:
    job.output_path.parent.mkdir(parents=True, exist_ok=True)
    job.output_path.write_bytes(b"video")
    return str(job.output_path)


class YieldingStore(InMemoryScenarioStore):
    """Commits, then hands control back to the loop before returning."""

    def __init__(self):
        super().__init__()
        self.slow = False
        self.committed = asyncio.Event()

    async def _yield(self) -> None:
        if self.slow:
            self.committed.set()
            await asyncio.sleep(0.01)

    async def create(self, payload, **kwargs):
        record = await super().create(payload, **kwargs)
        await self._yield()
        return record

    async def update_status(self, scenario_id, status, video_path=None) -> bool:
        updated = await super().update_status(scenario_id, status, video_path)
        await self._yield()
        return updated


@pytest.fixture
def payload(two_stops) -> ScenarioPayload:
    return ScenarioPayload(name="Line M", stops=two_stops)


@pytest.fixture
def service(store, settings) -> ScenarioService:
    return ScenarioService(store, VideoJobQueue(write_output, store), settings)


def write_artifact(service: ScenarioService, scenario_id: str) -> None:
    path = service.output_path(scenario_id)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"video")


class TestCreate:
    """Tests for scenario creation."""

    @pytest.mark.asyncio
    async def test_create_queues_render(self, service, payload):
        record = await service.create_scenario(payload)

        assert record.video_status == "generating"
        assert service.queue.is_queued(record.id)
        assert service.queue_status().queue[0].duration == 90

    @pytest.mark.asyncio
    async def test_worker_completes_created_scenario(self, service, payload):
        record = await service.create_scenario(payload)

        service.queue.start()
        await asyncio.wait_for(service.queue.join(), timeout=5)
        await service.queue.stop()

        stored = await service.get_scenario(record.id)
        assert stored.video_status == "completed"
        assert await service.get_video(record.id) == service.output_path(record.id)


class TestUpdate:
    """Tests for change detection on update."""

    @pytest.mark.asyncio
    async def test_name_only_change_does_not_rerender(self, service, payload, store):
        record = await service.create_scenario(payload)
        service.queue.remove(record.id)
        await store.update_status(record.id, "completed", str(service.output_path(record.id)))
        write_artifact(service, record.id)

        updated, regenerated = await service.update_scenario(
            record.id, payload.model_copy(update={"name": "Line M (night)"})
        )

        assert regenerated is False
        assert updated.name == "Line M (night)"
        assert updated.video_status == "completed"
        assert len(service.queue) == 0
        assert service.output_path(record.id).exists()

    @pytest.mark.asyncio
    async def test_theme_change_rerenders(self, service, payload):
        record = await service.create_scenario(payload)

        _, regenerated = await service.update_scenario(record.id, payload.model_copy(update={"theme": "light"}))

        assert regenerated is True
        assert len(service.queue) == 1

    @pytest.mark.asyncio
    async def test_stop_change_replaces_job_and_deletes_artifact(self, service, payload, four_stops):
        record = await service.create_scenario(payload)
        write_artifact(service, record.id)

        updated, regenerated = await service.update_scenario(
            record.id, payload.model_copy(update={"stops": four_stops})
        )

        assert regenerated is True
        assert updated.video_status == "generating"
        assert updated.video_path is None
        assert not service.output_path(record.id).exists()
        status = service.queue_status()
        assert status.queue_length == 1
        assert status.queue[0].duration == 250

    @pytest.mark.asyncio
    async def test_emergency_change_rerenders(self, service, payload):
        record = await service.create_scenario(payload)
        changed = payload.model_copy(update={"emergencies": [Emergency(text="Fog", type="weather", duration=5)]})

        _, regenerated = await service.update_scenario(record.id, changed)

        assert regenerated is True

    @pytest.mark.asyncio
    async def test_update_missing(self, service, payload):
        with pytest.raises(ScenarioNotFoundError):
            await service.update_scenario("nope", payload)


class TestDelete:
    """Tests for deletion."""

    @pytest.mark.asyncio
    async def test_delete_queued_scenario(self, service, payload):
        record = await service.create_scenario(payload)
        write_artifact(service, record.id)

        await service.delete_scenario(record.id)

        assert len(service.queue) == 0
        assert not service.output_path(record.id).exists()
        with pytest.raises(ScenarioNotFoundError):
            await service.get_scenario(record.id)

    @pytest.mark.asyncio
    async def test_delete_missing(self, service):
        with pytest.raises(ScenarioNotFoundError):
            await service.delete_scenario("nope")


class TestGetVideo:
    """Tests for video lookup."""

    @pytest.mark.asyncio
    async def test_generating_while_queued(self, service, payload):
        record = await service.create_scenario(payload)

        with pytest.raises(VideoGeneratingError) as exc_info:
            await service.get_video(record.id)
        assert exc_info.value.status_code == 409

    @pytest.mark.asyncio
    async def test_returns_existing_file(self, service, payload):
        record = await service.create_scenario(payload)
        service.queue.remove(record.id)
        write_artifact(service, record.id)

        assert await service.get_video(record.id) == service.output_path(record.id)

    @pytest.mark.asyncio
    async def test_not_found_when_nothing_pending(self, service, payload):
        record = await service.create_scenario(payload)
        service.queue.remove(record.id)

        with pytest.raises(VideoNotFoundError) as exc_info:
            await service.get_video(record.id)
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_empty_file_is_not_a_video(self, service, payload):
        record = await service.create_scenario(payload)
        service.queue.remove(record.id)
        path = service.output_path(record.id)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.touch()

        with pytest.raises(VideoNotFoundError):
            await service.get_video(record.id)

    @pytest.mark.asyncio
    async def test_unknown_scenario(self, service):
        with pytest.raises(ScenarioNotFoundError):
            await service.get_video("nope")


class TestReconcile:
    """Tests for status reconciliation on list."""

    @pytest.mark.asyncio
    async def test_pending_job_left_alone(self, service, payload):
        record = await service.create_scenario(payload)

        [listed] = await service.list_scenarios()

        assert listed.id == record.id
        assert listed.video_status == "generating"

    @pytest.mark.asyncio
    async def test_artifact_marks_completed(self, service, payload, store):
        record = await service.create_scenario(payload)
        service.queue.remove(record.id)
        await store.update_status(record.id, "failed")
        write_artifact(service, record.id)

        [listed] = await service.list_scenarios()

        assert listed.video_status == "completed"
        assert listed.video_path == str(service.output_path(record.id))
        assert (await store.get(record.id)).video_status == "completed"

    @pytest.mark.asyncio
    async def test_missing_artifact_marks_failed(self, service, payload, store):
        record = await service.create_scenario(payload)
        service.queue.remove(record.id)
        await store.update_status(record.id, "completed", str(service.output_path(record.id)))

        [listed] = await service.list_scenarios()

        assert listed.video_status == "failed"
        assert listed.video_path is None

    @pytest.mark.asyncio
    async def test_orphaned_generating_marks_failed(self, service, payload):
        record = await service.create_scenario(payload)
        service.queue.remove(record.id)

        [listed] = await service.list_scenarios()

        assert listed.video_status == "failed"

    @pytest.mark.asyncio
    async def test_pending_status_without_job_unchanged(self, service, payload, store):
        record = await store.create(payload)

        [listed] = await service.list_scenarios()

        assert listed.id == record.id
        assert listed.video_status == "pending"


class TestConcurrentRequests:
    """Listing while a render request is still being written."""

    @pytest.mark.asyncio
    async def test_list_during_update_keeps_generating(self, settings, payload):
        store = YieldingStore()
        service = ScenarioService(store, VideoJobQueue(write_output, store), settings)
        record = await service.create_scenario(payload)
        service.queue.remove(record.id)
        await store.update_status(record.id, "completed", str(service.output_path(record.id)))
        write_artifact(service, record.id)

        store.slow = True
        changed = payload.model_copy(update={"emergencies": [Emergency(text="Road blocked", duration=20)]})
        update = asyncio.create_task(service.update_scenario(record.id, changed))
        await asyncio.wait_for(store.committed.wait(), timeout=5)

        assert service.is_pending(record.id)
        [listed] = await service.list_scenarios()
        await update

        assert listed.video_status == "generating"
        assert (await store.get(record.id)).video_status == "generating"
        assert service.queue.is_queued(record.id)

    @pytest.mark.asyncio
    async def test_list_during_create_keeps_generating(self, settings, payload):
        store = YieldingStore()
        service = ScenarioService(store, VideoJobQueue(write_output, store), settings)

        store.slow = True
        create = asyncio.create_task(service.create_scenario(payload))
        await asyncio.wait_for(store.committed.wait(), timeout=5)

        [listed] = await service.list_scenarios()
        record = await create

        assert listed.id == record.id
        assert listed.video_status == "generating"
        assert (await store.get(record.id)).video_status == "generating"
        assert service.queue.is_queued(record.id)
