"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from riskaudit import __version__
from riskaudit.analysis.analyzer import get_image_analyzer
from riskaudit.analysis.orchestrator import AnalysisOrchestrator
from riskaudit.api.router import api_router
from riskaudit.config import get_settings
from riskaudit.db.engine import async_session_factory, create_all, engine
from riskaudit.jobs.queue import InProcessJobQueue
from riskaudit.logging_config import configure_logging
from riskaudit.services.email import EmailNotifier
from riskaudit.services.image_store import LocalImageStore

logger = logging.getLogger(__name__)


def build_image_store(settings) -> LocalImageStore:
    return LocalImageStore(
        settings.image_store.base_dir, settings.image_store.fernet_key, settings.image_defaults,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(settings.log_level)

    await create_all(engine)

    image_store = build_image_store(settings)
    orchestrator = AnalysisOrchestrator(
        session_factory=async_session_factory,
        image_store=image_store,
        analyzer=get_image_analyzer(settings),
        notifier=EmailNotifier(settings.email),
        settings=settings,
    )
    interrupted = await orchestrator.fail_interrupted()
    if interrupted:
        logger.warning("Closed %d inspections interrupted by the previous shutdown", interrupted)
    queue = InProcessJobQueue(orchestrator.analyze_inspection_photos, settings.jobs.worker_count)
    queue.start()

    app.state.image_store = image_store
    app.state.orchestrator = orchestrator
    app.state.job_queue = queue
    logger.info("Site Risk Audit %s started", __version__)
    yield
    # Accepted jobs run to a terminal status before the engine goes away.
    await queue.stop(drain=True)
    await engine.dispose()


app = FastAPI(
    title="Site Risk Audit",
    description="Workplace safety inspections with AI photo analysis and emailed PDF reports.",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(api_router)


@app.get("/health")
async def health():
    return {"status": "ok"}
