"""Feedback Pipeline entry point."""

from __future__ import annotations

import logging
import os

import certifi
import uvicorn

# Fix SSL cert resolution for curl_cffi (used by Scrapling)
os.environ.setdefault("CURL_CA_BUNDLE", certifi.where())
os.environ.setdefault("SSL_CERT_FILE", certifi.where())

from api.app import create_app  # noqa: E402
from config.settings import settings  # noqa: E402
from pipeline.classifier import get_classifier  # noqa: E402
from pipeline.drafter import get_drafter  # noqa: E402
from pipeline.orchestrator import PipelineOrchestrator  # noqa: E402
from pipeline.scheduler import MonitorScheduler  # noqa: E402

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
)
log = logging.getLogger(__name__)

app = create_app()


@app.on_event("startup")
async def on_startup() -> None:
    orchestrator = PipelineOrchestrator(app.state.sources, get_classifier(), get_drafter())
    monitor = MonitorScheduler(orchestrator, broadcast_fn=app.state.broadcaster.broadcast)
    app.state.monitor = monitor
    if settings.MONITOR_ENABLED:
        log.info("Starting monitor scheduler…")
        monitor.start()


@app.on_event("shutdown")
async def on_shutdown() -> None:
    if hasattr(app.state, "monitor"):
        app.state.monitor.stop()
        log.info("Monitor scheduler stopped.")


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.PORT,
        reload=False,
    )
