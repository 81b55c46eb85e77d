from functools import lru_cache
from typing import Any, Dict

from .config import Settings
from .services.exception_reporter import ExceptionReporter
from .services.rate_limit.bucket import RateLimitBucket
from .services.rate_limit.state_cache import RateLimitStateCache
from .services.scan_orchestrator import ScanOrchestrator
from .services.scanner.file_scanner import FileScanner
from .services.scanner.hash_cache import FileHashCache
from .services.upload.pending_queue import PendingUploadQueue
from .services.upload.upload_client import UploadClient

# Global singleton instances
_singletons: Dict[str, Any] = {}


@lru_cache
def get_settings() -> Settings:
    return Settings()


def get_hash_cache() -> FileHashCache:
    if "hash_cache" not in _singletons:
        _singletons["hash_cache"] = FileHashCache(get_settings().hash_cache_file)
    return _singletons["hash_cache"]


def get_file_scanner() -> FileScanner:
    if "file_scanner" not in _singletons:
        _singletons["file_scanner"] = FileScanner(get_hash_cache())
    return _singletons["file_scanner"]


def get_rate_limit_cache() -> RateLimitStateCache:
    if "rate_limit_cache" not in _singletons:
        _singletons["rate_limit_cache"] = RateLimitStateCache(
            get_settings().rate_limit_file
        )
    return _singletons["rate_limit_cache"]


def get_rate_limit_bucket() -> RateLimitBucket:
    if "rate_limit_bucket" not in _singletons:
        saved_state = get_rate_limit_cache().load()
        _singletons["rate_limit_bucket"] = RateLimitBucket(state=saved_state)
    return _singletons["rate_limit_bucket"]


def get_pending_queue() -> PendingUploadQueue:
    if "pending_queue" not in _singletons:
        settings = get_settings()
        _singletons["pending_queue"] = PendingUploadQueue(
            settings.pending_uploads_file,
            max_items=settings.pending_max_items,
            max_total_bytes=settings.pending_max_total_bytes,
        )
    return _singletons["pending_queue"]


def get_upload_client() -> UploadClient:
    if "upload_client" not in _singletons:
        settings = get_settings()
        _singletons["upload_client"] = UploadClient(
            api_base_url=settings.api_base_url,
            api_key=settings.api_key,
            bucket=get_rate_limit_bucket(),
            max_attempts=settings.max_upload_attempts,
            timeout_seconds=settings.request_timeout_seconds,
        )
    return _singletons["upload_client"]


def get_exception_reporter() -> ExceptionReporter:
    if "exception_reporter" not in _singletons:
        settings = get_settings()
        _singletons["exception_reporter"] = ExceptionReporter(
            settings, settings.exception_queue_file
        )
    return _singletons["exception_reporter"]


def get_scan_orchestrator() -> ScanOrchestrator:
    if "scan_orchestrator" not in _singletons:
        _singletons["scan_orchestrator"] = ScanOrchestrator(
            settings=get_settings(),
            hash_cache=get_hash_cache(),
            scanner=get_file_scanner(),
            bucket=get_rate_limit_bucket(),
            rate_limit_cache=get_rate_limit_cache(),
            pending_queue=get_pending_queue(),
            upload_client=get_upload_client(),
            exception_reporter=get_exception_reporter(),
        )
    return _singletons["scan_orchestrator"]


def reset_singletons() -> None:
    """Drop all cached instances. Used by tests."""
    _singletons.clear()
    get_settings.cache_clear()
