"""
Scenario persistence.

The render queue only needs a handful of CRUD calls, so storage sits behind
``ScenarioStore``. Two implementations ship: an in-memory store for tests and
single-process development, and an SQLAlchemy store (SQLite by default).

``update_status`` returns False when the record no longer exists; callers
treat that as a no-op rather than an error.
"""

import logging
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from busboard.models.scenario import ScenarioModel, new_scenario_id
from busboard.schemas.scenario import ScenarioPayload, ScenarioRecord, VideoStatus

logger = logging.getLogger(__name__)


class ScenarioStore(Protocol):
    async def create(
        self,
        payload: ScenarioPayload,
        *,
        scenario_id: str | None = None,
        video_status: VideoStatus = "pending",
    ) -> ScenarioRecord: ...

    async def get(self, scenario_id: str) -> ScenarioRecord | None: ...

    async def list_all(self) -> list[ScenarioRecord]: ...

    async def update(self, scenario_id: str, payload: ScenarioPayload) -> ScenarioRecord | None: ...

    async def delete(self, scenario_id: str) -> bool: ...

    async def update_status(
        self,
        scenario_id: str,
        status: VideoStatus,
        video_path: str | None = None,
    ) -> bool: ...


class InMemoryScenarioStore:
    """Dict-backed store. Records are copied in and out."""

    def __init__(self) -> None:
        self._records: dict[str, ScenarioRecord] = {}

    async def create(
        self,
        payload: ScenarioPayload,
        *,
        scenario_id: str | None = None,
        video_status: VideoStatus = "pending",
    ) -> ScenarioRecord:
        now = datetime.now(timezone.utc)
        record = ScenarioRecord(
            id=scenario_id or new_scenario_id(),
            name=payload.name,
            stops=[s.model_copy() for s in payload.stops],
            emergencies=[e.model_copy() for e in payload.emergencies],
            theme=payload.theme,
            video_status=video_status,
            created_at=now,
            updated_at=now,
        )
        self._records[record.id] = record
        return record.model_copy(deep=True)

    async def get(self, scenario_id: str) -> ScenarioRecord | None:
        record = self._records.get(scenario_id)
        return record.model_copy(deep=True) if record else None

    async def list_all(self) -> list[ScenarioRecord]:
        records = sorted(self._records.values(), key=lambda r: r.created_at, reverse=True)
        return [r.model_copy(deep=True) for r in records]

    async def update(self, scenario_id: str, payload: ScenarioPayload) -> ScenarioRecord | None:
        record = self._records.get(scenario_id)
        if record is None:
            return None
        updated = record.model_copy(
            update={
                "name": payload.name,
                "stops": [s.model_copy() for s in payload.stops],
                "emergencies": [e.model_copy() for e in payload.emergencies],
                "theme": payload.theme,
                "updated_at": datetime.now(timezone.utc),
            }
        )
        self._records[scenario_id] = updated
        return updated.model_copy(deep=True)

    async def delete(self, scenario_id: str) -> bool:
        return self._records.pop(scenario_id, None) is not None

    async def update_status(
        self,
        scenario_id: str,
        status: VideoStatus,
        video_path: str | None = None,
    ) -> bool:
        record = self._records.get(scenario_id)
        if record is None:
            return False
        self._records[scenario_id] = record.model_copy(
            update={
                "video_status": status,
                "video_path": video_path,
                "updated_at": datetime.now(timezone.utc),
            }
        )
        return True


class SqlScenarioStore:
    """SQLAlchemy-backed store; one short session per call."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def create(
        self,
        payload: ScenarioPayload,
        *,
        scenario_id: str | None = None,
        video_status: VideoStatus = "pending",
    ) -> ScenarioRecord:
        async with self._session_maker() as db:
            model = ScenarioModel(
                id=scenario_id or new_scenario_id(),
                name=payload.name,
                stops=[s.model_dump() for s in payload.stops],
                emergencies=[e.model_dump() for e in payload.emergencies],
                theme=payload.theme,
                video_status=video_status,
            )
            db.add(model)
            await db.commit()
            await db.refresh(model)
            return ScenarioRecord.model_validate(model)

    async def get(self, scenario_id: str) -> ScenarioRecord | None:
        async with self._session_maker() as db:
            model = await db.get(ScenarioModel, scenario_id)
            return ScenarioRecord.model_validate(model) if model else None

    async def list_all(self) -> list[ScenarioRecord]:
        async with self._session_maker() as db:
            result = await db.execute(select(ScenarioModel).order_by(ScenarioModel.created_at.desc()))
            return [ScenarioRecord.model_validate(m) for m in result.scalars().all()]

    async def update(self, scenario_id: str, payload: ScenarioPayload) -> ScenarioRecord | None:
        async with self._session_maker() as db:
            model = await db.get(ScenarioModel, scenario_id)
            if model is None:
                return None
            model.name = payload.name
            model.stops = [s.model_dump() for s in payload.stops]
            model.emergencies = [e.model_dump() for e in payload.emergencies]
            model.theme = payload.theme
            await db.commit()
            await db.refresh(model)
            return ScenarioRecord.model_validate(model)

    async def delete(self, scenario_id: str) -> bool:
        async with self._session_maker() as db:
            result = await db.execute(delete(ScenarioModel).where(ScenarioModel.id == scenario_id))
            await db.commit()
            return result.rowcount > 0

    async def update_status(
        self,
        scenario_id: str,
        status: VideoStatus,
        video_path: str | None = None,
    ) -> bool:
        async with self._session_maker() as db:
            model = await db.get(ScenarioModel, scenario_id)
            if model is None:
                logger.debug(f"[STORE] Status update for missing scenario {scenario_id} ignored")
                return False
            model.video_status = status
            model.video_path = video_path
            await db.commit()
            return True
