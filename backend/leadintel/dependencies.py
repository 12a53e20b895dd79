"""Pipeline wiring and FastAPI dependencies."""

import logging
from fastapi import FastAPI, Request

from leadintel.config import settings
from leadintel.database import create_engine, create_session_factory, init_models
from leadintel.repositories import InMemoryRepository, SQLAlchemyRepository
from leadintel.scheduler import CompetitorMonitor, schedule_stale_lead_scan
from leadintel.services.identity_cache import IdentityCache
from leadintel.services.lead_pipeline import LeadPipeline

logger = logging.getLogger(__name__)

MEMORY_DATABASE_URL = "memory://"


async def init_pipeline(app: FastAPI):
    """Build repository, pipeline and monitor and attach them to app.state."""
    engine = None
    if settings.DATABASE_URL == MEMORY_DATABASE_URL:
        repository = InMemoryRepository()
        logger.info("Using in-memory repository")
    else:
        engine = create_engine()
        if settings.ENVIRONMENT == "development":
            await init_models(engine)
        repository = SQLAlchemyRepository(create_session_factory(engine))
        logger.info("Using SQL repository")

    identity_cache = None
    if settings.ENABLE_IDENTITY_CACHE and settings.REDIS_URL:
        identity_cache = IdentityCache()
        await identity_cache.initialize()

    pipeline = LeadPipeline(repository, identity_cache=identity_cache)
    monitor = CompetitorMonitor(pipeline)
    schedule_stale_lead_scan(monitor.scheduler, pipeline)
    monitor.scheduler.start()

    app.state.engine = engine
    app.state.identity_cache = identity_cache
    app.state.pipeline = pipeline
    app.state.monitor = monitor


async def close_pipeline(app: FastAPI):
    """Stop jobs, drain background syncs and release connections."""
    monitor = getattr(app.state, "monitor", None)
    if monitor:
        monitor.shutdown()

    pipeline = getattr(app.state, "pipeline", None)
    if pipeline:
        await pipeline.crm_sync.wait_for_pending()

    identity_cache = getattr(app.state, "identity_cache", None)
    if identity_cache:
        await identity_cache.close()

    engine = getattr(app.state, "engine", None)
    if engine:
        await engine.dispose()


def get_pipeline(request: Request) -> LeadPipeline:
    """Dependency to get the pipeline."""
    return request.app.state.pipeline


def get_monitor(request: Request) -> CompetitorMonitor:
    """Dependency to get the competitor monitor."""
    return request.app.state.monitor
