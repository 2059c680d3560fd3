"""Scenario API endpoints. Rendering happens in the background queue."""

import logging

from fastapi import APIRouter, status
from fastapi.responses import FileResponse

from busboard.api.deps import ScenarioServiceDep
from busboard.schemas.queue import QueueStatus
from busboard.schemas.scenario import ScenarioPayload, ScenarioRecord, ScenarioResponse

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("", response_model=ScenarioResponse, status_code=status.HTTP_201_CREATED)
async def create_scenario(payload: ScenarioPayload, service: ScenarioServiceDep) -> ScenarioResponse:
    """Create a scenario and queue its video. Returns without waiting for the render."""
    record = await service.create_scenario(payload)
    return ScenarioResponse(scenario=record, message="Scenario created. Video generation started.")


@router.get("", response_model=list[ScenarioRecord])
async def list_scenarios(service: ScenarioServiceDep) -> list[ScenarioRecord]:
    return await service.list_scenarios()


# Declared before /{scenario_id} so "queue" is not taken for an id
@router.get("/queue/status", response_model=QueueStatus, response_model_by_alias=True)
async def get_queue_status(service: ScenarioServiceDep) -> QueueStatus:
    return service.queue_status()


@router.get("/{scenario_id}", response_model=ScenarioRecord)
async def get_scenario(scenario_id: str, service: ScenarioServiceDep) -> ScenarioRecord:
    return await service.get_scenario(scenario_id)


@router.put("/{scenario_id}", response_model=ScenarioResponse)
async def update_scenario(
    scenario_id: str,
    payload: ScenarioPayload,
    service: ScenarioServiceDep,
) -> ScenarioResponse:
    record, regenerated = await service.update_scenario(scenario_id, payload)
    message = (
        "Scenario updated. Video regeneration started."
        if regenerated
        else "Scenario updated. Video unchanged."
    )
    return ScenarioResponse(scenario=record, message=message, video_regenerated=regenerated)


@router.delete("/{scenario_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_scenario(scenario_id: str, service: ScenarioServiceDep) -> None:
    await service.delete_scenario(scenario_id)


@router.get("/{scenario_id}/video")
async def get_scenario_video(scenario_id: str, service: ScenarioServiceDep) -> FileResponse:
    """Stream the finished video; 409 while it is still being generated."""
    path = await service.get_video(scenario_id)
    return FileResponse(path, media_type="video/mp4", filename=path.name)
