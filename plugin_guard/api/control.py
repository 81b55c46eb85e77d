import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional, Set

from fastapi import APIRouter, Depends, HTTPException, Query

from plugin_guard.config import Settings
from plugin_guard.core.exceptions import ScanAlreadyRunningError
from plugin_guard.dependencies import (
    get_pending_queue,
    get_scan_orchestrator,
    get_settings,
)
from plugin_guard.services.scan_orchestrator import ScanOrchestrator
from plugin_guard.services.update_check import check_for_updates
from plugin_guard.services.upload.pending_queue import PendingUploadQueue

router = APIRouter(prefix="/api", tags=["control"])

# Keep references so manual rescans are not garbage collected mid-run
_rescan_tasks: Set[asyncio.Task] = set()


@router.get("/status")
async def get_status(
    orchestrator: ScanOrchestrator = Depends(get_scan_orchestrator),
    pending_queue: PendingUploadQueue = Depends(get_pending_queue),
):
    """Scanner state, API token usage and the outcome of the last cycle."""
    state = orchestrator.get_rate_limit_state()

    if state.is_unlimited:
        rate_limit = {"unlimited": True}
    else:
        rate_limit = {
            "unlimited": False,
            "tokens": state.tokens,
            "limit": state.limit,
            "resets_at": datetime.fromtimestamp(
                state.reset_unix_seconds, tz=timezone.utc
            ).isoformat(),
            "window_seconds": state.window_seconds,
        }

    last = orchestrator.last_result
    return {
        "running": orchestrator.is_running,
        "scanning": orchestrator.is_scanning,
        "rate_limit": rate_limit,
        "pending_uploads": pending_queue.count,
        "last_scan": last.to_dict() if last else None,
    }


@router.post("/rescan", status_code=202)
async def rescan(
    path: Optional[str] = Query(default=None, description="Scan only this path"),
    orchestrator: ScanOrchestrator = Depends(get_scan_orchestrator),
):
    if orchestrator.is_scanning:
        raise HTTPException(status_code=409, detail="A scan cycle is already running")

    roots = [path] if path else None

    async def _run() -> None:
        try:
            await orchestrator.run_cycle(roots_override=roots, wait=False)
        except ScanAlreadyRunningError as e:
            logging.info(f"Manual rescan skipped: {e}")

    task = asyncio.create_task(_run(), name="manual-rescan")
    _rescan_tasks.add(task)
    task.add_done_callback(_rescan_tasks.discard)

    target = path or "all configured paths"
    logging.info(f"Manual rescan requested: {target}")
    return {"status": "started", "target": target}


@router.delete("/cache")
async def clear_cache(orchestrator: ScanOrchestrator = Depends(get_scan_orchestrator)):
    await orchestrator.clear_caches()
    logging.info("Cache cleared via API")
    return {"status": "cleared"}


@router.get("/config")
async def get_config(settings: Settings = Depends(get_settings)):
    def _distinct(items):
        return list(dict.fromkeys(items))

    return {
        "api_base_url": settings.api_base_url,
        "scan_interval_seconds": settings.scan_interval_seconds,
        "max_concurrent_uploads": settings.max_concurrent_uploads,
        "force_analyze": settings.force_analyze,
        "server_root": settings.server_root,
        "watch_paths": _distinct(settings.watch_paths),
        "include_patterns": _distinct(settings.include_patterns),
        "exclude_patterns": _distinct(settings.exclude_patterns),
    }


@router.get("/version")
async def get_version(settings: Settings = Depends(get_settings)):
    """Installed version and whether a newer module build is published."""
    return await check_for_updates(settings)
