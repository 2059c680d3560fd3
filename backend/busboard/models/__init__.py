from busboard.models.base import Base
from busboard.models.scenario import ScenarioModel

__all__ = [
    "Base",
    "ScenarioModel",
]
