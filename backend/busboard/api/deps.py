from typing import Annotated

from fastapi import Depends, Request

from busboard.services.scenario_service import ScenarioService


def get_scenario_service(request: Request) -> ScenarioService:
    return request.app.state.scenario_service


ScenarioServiceDep = Annotated[ScenarioService, Depends(get_scenario_service)]
