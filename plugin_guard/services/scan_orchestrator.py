import asyncio
import logging
import os
from collections import deque
from datetime import datetime
from typing import Deque, List, Optional, Sequence

from plugin_guard.config import Settings
from plugin_guard.core.exceptions import ScanAlreadyRunningError
from plugin_guard.models import RateLimitState, ScanCycleResult, UploadTask
from plugin_guard.services.exception_reporter import ExceptionReporter
from plugin_guard.services.rate_limit.bucket import RateLimitBucket
from plugin_guard.services.rate_limit.state_cache import RateLimitStateCache
from plugin_guard.services.scanner.file_hasher import compute_file_hash
from plugin_guard.services.scanner.file_scanner import FileScanner
from plugin_guard.services.scanner.hash_cache import FileHashCache
from plugin_guard.services.scanner.path_expander import expand_watch_paths
from plugin_guard.services.upload.pending_queue import PendingUploadQueue
from plugin_guard.services.upload.upload_client import UploadClient
from plugin_guard.utils.file_operations import resolve_against_root


class ScanOrchestrator:
    """
    Runs scan cycles: drain retries, scan every root, upload with bounded
    concurrency, then record outcomes in the hash cache or the retry queue.
    """

    def __init__(
        self,
        settings: Settings,
        hash_cache: FileHashCache,
        scanner: FileScanner,
        bucket: RateLimitBucket,
        rate_limit_cache: RateLimitStateCache,
        pending_queue: PendingUploadQueue,
        upload_client: UploadClient,
        exception_reporter: Optional[ExceptionReporter] = None,
    ):
        self.settings = settings
        self.hash_cache = hash_cache
        self.scanner = scanner
        self.bucket = bucket
        self.rate_limit_cache = rate_limit_cache
        self.pending_queue = pending_queue
        self.upload_client = upload_client
        self.exception_reporter = exception_reporter

        self._running = False
        self._cycle_lock = asyncio.Lock()
        self._current_cycle: Optional[ScanCycleResult] = None
        self.last_result: Optional[ScanCycleResult] = None

        logging.info("ScanOrchestrator initialized")
        logging.info(f"Server root: {settings.server_root}")
        logging.info(f"Watch paths: {', '.join(settings.watch_paths)}")
        logging.info(f"Max concurrent uploads: {settings.max_concurrent_uploads}")

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_scanning(self) -> bool:
        return self._cycle_lock.locked()

    def get_rate_limit_state(self) -> RateLimitState:
        return self.bucket.snapshot()

    async def start_scanning(self) -> None:
        if self._running:
            logging.warning("Scanner is already running")
            return

        self._running = True
        logging.info(
            f"Auto-scan enabled: checking every {self.settings.scan_interval_seconds} seconds"
        )
        logging.info("Running initial scan...")

        try:
            await self._scan_loop()
        except asyncio.CancelledError:
            logging.info("Scan loop was cancelled")
            raise
        finally:
            self._running = False
            logging.info("Scan loop stopped")

    def stop_scanning(self) -> None:
        self._running = False
        logging.info("Scan loop stop requested")

    async def _scan_loop(self) -> None:
        while self._running:
            await self.run_cycle()
            await asyncio.sleep(self.settings.scan_interval_seconds)

    async def run_cycle(
        self, roots_override: Optional[Sequence[str]] = None, wait: bool = True
    ) -> ScanCycleResult:
        """
        Run one full scan cycle. Cycles never overlap; with ``wait=False`` a
        busy orchestrator raises ScanAlreadyRunningError instead of queueing.
        """
        if not wait and self._cycle_lock.locked():
            started = self._current_cycle.started_at if self._current_cycle else None
            raise ScanAlreadyRunningError(started)

        async with self._cycle_lock:
            result = ScanCycleResult(started_at=datetime.now())
            self._current_cycle = result
            try:
                await self._execute_cycle(result, roots_override)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                result.aborted = True
                result.error = f"{type(e).__name__}: {e}"
                logging.exception(f"Error in scan cycle: {e}")
                if self.exception_reporter:
                    self.exception_reporter.report(
                        e, "scan_loop", self.bucket.snapshot()
                    )
            finally:
                result.finished_at = datetime.now()
                self._current_cycle = None
                self.last_result = result

            logging.info(result.summary())
            return result

    async def _execute_cycle(
        self, result: ScanCycleResult, roots_override: Optional[Sequence[str]]
    ) -> None:
        roots = list(roots_override) if roots_override else self.settings.watch_paths
        work: Deque[UploadTask] = deque()

        result.retried = await self.pending_queue.drain_to(work)
        if result.retried:
            logging.info(f"Retrying {result.retried} previously failed upload(s)")

        # One upload per path per cycle; retried entries win
        scheduled = {task.path.casefold() for task in work}

        for root in expand_watch_paths(roots, self.settings.server_root):
            resolved = str(resolve_against_root(root, self.settings.server_root))
            if not os.path.isdir(resolved):
                result.skipped_roots += 1
                continue

            result.scanned_roots += 1
            file_count = 0
            async for path, content_hash in self.scanner.enumerate_changed(
                resolved, self.settings.include_patterns, self.settings.exclude_patterns
            ):
                if path.casefold() in scheduled:
                    continue
                scheduled.add(path.casefold())
                work.append(
                    UploadTask(
                        path=path,
                        filename=os.path.basename(path),
                        force_analyze=self.settings.force_analyze,
                        content_hash=content_hash,
                    )
                )
                file_count += 1

            if file_count:
                logging.info(f"Queued {file_count} file(s) for upload from: {resolved}")
            result.queued += file_count

        await self._drain_work(work, result)
        self.rate_limit_cache.save(self.bucket.snapshot())

    async def _drain_work(self, work: Deque[UploadTask], result: ScanCycleResult) -> None:
        if not work:
            return

        worker_count = max(1, min(self.settings.max_concurrent_uploads, len(work)))
        workers: List[asyncio.Task] = [
            asyncio.create_task(
                self._upload_worker(work, result), name=f"upload-worker-{i + 1}"
            )
            for i in range(worker_count)
        ]
        try:
            await asyncio.gather(*workers)
        finally:
            for worker in workers:
                if not worker.done():
                    worker.cancel()

    async def _upload_worker(self, work: Deque[UploadTask], result: ScanCycleResult) -> None:
        while work:
            task = work.popleft()
            success = await self._process_task(task)
            task.mark_completed(success)
            if success:
                result.uploaded += 1
            else:
                result.failed += 1

    async def _process_task(self, task: UploadTask) -> bool:
        if task.content_hash is None:
            # Rehydrated from the retry queue: hash the bytes about to be sent
            try:
                task.content_hash = await compute_file_hash(task.path)
            except OSError as e:
                logging.warning(f"Retried file {task.path} is no longer readable: {e}")
                return False

        success = await self.upload_client.upload_file(
            task.path, task.filename, task.force_analyze
        )
        if success:
            await self.hash_cache.mark_uploaded(task.path, task.content_hash)
        else:
            await self.pending_queue.enqueue(task.path, task.filename, task.force_analyze)
        return success

    async def clear_caches(self) -> None:
        await self.hash_cache.clear()
        self.rate_limit_cache.clear()
