import asyncio
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from . import __version__
from .api import control
from .dependencies import (
    get_exception_reporter,
    get_scan_orchestrator,
    get_settings,
    get_upload_client,
)
from .logging_config import setup_logging
from .services.remote_config import fetch_and_merge_remote_config

# Global reference til background tasks
_background_tasks = []


def _log_missing_api_key() -> None:
    logging.error("==========================================================")
    logging.error("ERROR: API key is missing (set API_KEY in plugin_guard.env)")
    logging.error("Scanning is disabled until an API key is configured.")
    logging.error("==========================================================")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    settings = get_settings()
    setup_logging(settings)

    config_info = settings.config_file_info
    logging.info(f"Plugin Guard {__version__} starting up...")
    logging.info(f"Configuration loaded from: {config_info['active_config_file']}")
    logging.info(f"Running on hostname: {config_info['hostname']}")

    orchestrator = None
    if not settings.has_valid_api_key:
        _log_missing_api_key()
    else:
        if settings.fetch_remote_config:
            await fetch_and_merge_remote_config(settings)

        reporter = get_exception_reporter()
        _background_tasks.append(
            asyncio.create_task(reporter.flush(), name="exception-flush")
        )

        orchestrator = get_scan_orchestrator()
        _background_tasks.append(
            asyncio.create_task(orchestrator.start_scanning(), name="scan-loop")
        )
        logging.info("Plugin Guard is now protecting your server!")

    yield

    logging.info("Plugin Guard shutting down...")

    if orchestrator is not None:
        orchestrator.stop_scanning()

    for task in _background_tasks:
        task.cancel()

    if _background_tasks:
        await asyncio.gather(*_background_tasks, return_exceptions=True)
    _background_tasks.clear()

    if orchestrator is not None:
        await get_upload_client().aclose()

    logging.info("Alle background tasks stoppet")


app = FastAPI(
    title="Plugin Guard",
    description="Watches server plugin folders and submits changed binaries for security analysis",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(control.router)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "message": "Plugin Guard is running"}


@app.get("/health")
async def health():
    return {"status": "healthy", "service": "plugin-guard", "version": __version__}


if __name__ == "__main__":
    uvicorn.run(
        "plugin_guard.main:app", host="127.0.0.1", port=8000, reload=False, log_level="info"
    )
