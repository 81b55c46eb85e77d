from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class RateLimitState(BaseModel):
    """
    Snapshot of the remote service's request quota.

    Persisted to ratelimit.json between runs. ``limit == 0`` means the
    service has not reported a quota, which is treated as unlimited.
    """

    model_config = ConfigDict(populate_by_name=True)

    limit: int = Field(default=0, description="Tokens per window, 0 = unlimited")
    reset_unix_seconds: int = Field(default=0, alias="resetUnixSeconds")
    tokens: int = Field(default=0, description="Tokens left in the current window")
    last_update_unix_seconds: int = Field(default=0, alias="lastUpdateUnixSeconds")
    window_seconds: int = Field(default=3600, alias="windowSeconds")

    @property
    def is_unlimited(self) -> bool:
        return self.limit <= 0


class PendingUpload(BaseModel):
    """Durable record of an upload that exhausted its attempts."""

    model_config = ConfigDict(populate_by_name=True)

    path: str
    filename: str
    force_analyze: bool = Field(default=False, alias="forceAnalyze")
    size_bytes: int = Field(default=0, alias="sizeBytes")


class ExceptionReport(BaseModel):
    """Diagnostic report sent to the exception endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    module_version: Optional[str] = Field(default=None, alias="moduleVersion")
    framework_name: str = Field(default="module", alias="frameworkName")
    message: str
    type: str
    stack_trace: str = Field(alias="stackTrace")
    watch_paths: List[str] = Field(default_factory=list, alias="watchPaths")
    include_patterns: List[str] = Field(default_factory=list, alias="includePatterns")
    exclude_patterns: List[str] = Field(default_factory=list, alias="excludePatterns")
    force_analyze: bool = Field(default=False, alias="forceAnalyze")
    max_concurrent_uploads: int = Field(default=0, alias="maxConcurrentUploads")
    rate_limit_tokens: int = Field(default=0, alias="rateLimitTokens")
    rate_limit_limit: int = Field(default=0, alias="rateLimitLimit")
    rate_limit_reset: int = Field(default=0, alias="rateLimitReset")
    context: str
    occurred_at_utc: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), alias="occurredAtUtc"
    )


@dataclass
class UploadTask:
    """
    One artifact scheduled for upload within a single scan cycle.

    ``content_hash`` is None for tasks rehydrated from the pending queue.
    ``completed`` and ``success`` are execution state and never persisted.
    """

    path: str
    filename: str
    force_analyze: bool
    content_hash: Optional[str] = None
    completed: bool = False
    success: bool = False

    @classmethod
    def from_pending(cls, record: PendingUpload) -> "UploadTask":
        return cls(
            path=record.path,
            filename=record.filename,
            force_analyze=record.force_analyze,
        )

    def mark_completed(self, success: bool) -> None:
        self.completed = True
        self.success = success


@dataclass
class ScanCycleResult:
    """Counters for one scan cycle, used for the summary log and the status API."""

    started_at: datetime
    finished_at: Optional[datetime] = None
    retried: int = 0
    queued: int = 0
    uploaded: int = 0
    failed: int = 0
    scanned_roots: int = 0
    skipped_roots: int = 0
    aborted: bool = False
    error: Optional[str] = None

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    def summary(self) -> str:
        if self.aborted:
            return f"Scan aborted: {self.error}"
        if self.uploaded > 0 and self.failed > 0:
            return (
                f"Scan complete: {self.uploaded} file(s) uploaded successfully, "
                f"{self.failed} failed"
            )
        if self.uploaded > 0:
            return f"Scan complete: {self.uploaded} file(s) uploaded successfully"
        if self.failed > 0:
            return f"Scan complete: all {self.failed} upload(s) failed"
        if self.scanned_roots > 0:
            return (
                f"Scan complete: no new or changed files found in "
                f"{self.scanned_roots} path(s)"
            )
        if self.skipped_roots > 0:
            return f"Scan complete: all {self.skipped_roots} configured path(s) not found"
        return "Scan complete: nothing to scan"

    def to_dict(self) -> dict:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_seconds": self.duration_seconds,
            "retried": self.retried,
            "queued": self.queued,
            "uploaded": self.uploaded,
            "failed": self.failed,
            "scanned_roots": self.scanned_roots,
            "skipped_roots": self.skipped_roots,
            "aborted": self.aborted,
            "error": self.error,
        }
