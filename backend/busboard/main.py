import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncEngine

from busboard.api import scenarios
from busboard.config import Settings, get_settings
from busboard.exceptions import BusboardError
from busboard.models.database import create_engine_and_sessionmaker, init_db
from busboard.render.pipeline import RenderPipeline
from busboard.services.scenario_service import ScenarioService
from busboard.services.scenario_store import InMemoryScenarioStore, ScenarioStore, SqlScenarioStore
from busboard.services.video_files import cleanup_stale_temp_dirs
from busboard.services.video_queue import VideoJob, VideoJobQueue

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def build_service(settings: Settings) -> tuple[ScenarioService, AsyncEngine | None]:
    """Wire the store, render pipeline and queue into a ScenarioService."""
    engine: AsyncEngine | None = None
    store: ScenarioStore
    if settings.use_memory_store:
        store = InMemoryScenarioStore()
    else:
        engine, session_maker = create_engine_and_sessionmaker(settings.database_url, settings.database_echo)
        await init_db(engine)
        store = SqlScenarioStore(session_maker)

    pipeline = RenderPipeline(settings)

    async def run_job(job: VideoJob) -> str:
        return await pipeline.render(job.scenario, job.output_path, job.temp_dir)

    queue = VideoJobQueue(run_job, store)
    return ScenarioService(store, queue, settings), engine


def create_app(service: ScenarioService | None = None, settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        # Startup
        settings.videos_path.mkdir(parents=True, exist_ok=True)
        settings.temp_path.mkdir(parents=True, exist_ok=True)
        cleanup_stale_temp_dirs(settings.temp_path)

        engine: AsyncEngine | None = None
        if getattr(app.state, "scenario_service", None) is None:
            app.state.scenario_service, engine = await build_service(settings)

        queue = app.state.scenario_service.queue
        queue.start()
        yield
        # Shutdown
        await queue.stop()
        if engine is not None:
            await engine.dispose()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.scenario_service = service

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(BusboardError)
    async def busboard_exception_handler(request: Request, exc: BusboardError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{exc.code}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_dict()})

    # Global exception handler to ensure errors return proper JSON
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Unhandled exception: {exc}")
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    app.include_router(scenarios.router, prefix="/api/scenario", tags=["scenarios"])

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy", "version": settings.app_version}

    return app


app = create_app()
