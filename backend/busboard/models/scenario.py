import uuid
from typing import Any

from sqlalchemy import JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from busboard.models.base import Base, TimestampMixin


def new_scenario_id() -> str:
    return uuid.uuid4().hex


class ScenarioModel(Base, TimestampMixin):
    __tablename__ = "scenarios"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_scenario_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Stops and emergencies are stored as serialized schema dicts
    stops: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    emergencies: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    theme: Mapped[str] = mapped_column(String(20), default="dark")

    # Status: pending, generating, completed, failed
    video_status: Mapped[str] = mapped_column(String(20), default="pending", index=True)
    video_path: Mapped[str | None] = mapped_column(Text, nullable=True)
