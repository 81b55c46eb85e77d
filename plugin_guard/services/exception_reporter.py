import logging
import traceback
from pathlib import Path
from typing import List, Optional, Union

import httpx
from pydantic import ValidationError

from plugin_guard import __version__
from plugin_guard.config import Settings
from plugin_guard.models import ExceptionReport, RateLimitState
from plugin_guard.utils.file_operations import read_json_file, write_json_file

MAX_QUEUED_REPORTS = 10
MAX_STACK_TRACE_LENGTH = 4000


class ExceptionReporter:
    """
    Queues crash reports on disk and sends them to the exception endpoint.

    report() is called from error paths and must never raise. Reports
    survive restarts in exceptions.json until flush() delivers them.
    """

    def __init__(
        self,
        settings: Settings,
        queue_path: Union[str, Path],
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings
        self._queue_path = Path(queue_path)
        self._http_client = http_client

    @property
    def enabled(self) -> bool:
        return self.settings.report_errors

    def build_report(
        self, exc: BaseException, context: str, state: Optional[RateLimitState] = None
    ) -> ExceptionReport:
        stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        state = state or RateLimitState()
        cfg = self.settings
        return ExceptionReport(
            module_version=__version__,
            message=str(exc),
            type=f"{type(exc).__module__}.{type(exc).__qualname__}",
            stack_trace=stack[:MAX_STACK_TRACE_LENGTH],
            watch_paths=list(cfg.watch_paths),
            include_patterns=list(cfg.include_patterns),
            exclude_patterns=list(cfg.exclude_patterns),
            force_analyze=cfg.force_analyze,
            max_concurrent_uploads=cfg.max_concurrent_uploads,
            rate_limit_tokens=state.tokens,
            rate_limit_limit=state.limit,
            rate_limit_reset=state.reset_unix_seconds,
            context=context,
        )

    def report(
        self, exc: BaseException, context: str, state: Optional[RateLimitState] = None
    ) -> None:
        if not self.enabled:
            return
        try:
            reports = self._load_queue()
            reports.append(self.build_report(exc, context, state))
            self._save_queue(reports[-MAX_QUEUED_REPORTS:])
        except Exception as e:
            logging.error(f"Could not queue exception report ({context}): {e}")

    def pending_count(self) -> int:
        try:
            return len(self._load_queue())
        except (OSError, ValueError):
            return 0

    async def flush(self) -> int:
        """Send queued reports. Returns the number delivered."""
        if not self.enabled or not self.settings.has_valid_api_key:
            return 0

        try:
            reports = self._load_queue()
        except (OSError, ValueError) as e:
            logging.error(f"Could not read exception report queue: {e}")
            return 0

        if not reports:
            return 0

        url = f"{self.settings.api_base_url.rstrip('/')}/v1.0/exception"
        headers = {"X-API-Key": self.settings.api_key}
        delivered: List[ExceptionReport] = []

        client = self._http_client or httpx.AsyncClient(
            timeout=self.settings.request_timeout_seconds
        )
        try:
            for report in reports:
                try:
                    response = await client.post(
                        url,
                        content=report.model_dump_json(by_alias=True),
                        headers={**headers, "Content-Type": "application/json"},
                    )
                    if response.is_success:
                        delivered.append(report)
                except httpx.HTTPError as e:
                    logging.debug(f"Exception report delivery failed: {e}")
        finally:
            if self._http_client is None:
                await client.aclose()

        if delivered:
            self._remove_delivered(delivered)
            logging.info(f"Delivered {len(delivered)} queued exception report(s)")
        return len(delivered)

    def _remove_delivered(self, delivered: List[ExceptionReport]) -> None:
        # Reload so reports queued while posting are kept; no await between load and save
        try:
            current = self._load_queue()
            for report in delivered:
                if report in current:
                    current.remove(report)
            self._save_queue(current)
        except OSError as e:
            logging.error(f"Could not update exception report queue: {e}")

    def _load_queue(self) -> List[ExceptionReport]:
        try:
            data = read_json_file(self._queue_path)
        except ValueError as e:
            logging.warning(f"Exception report queue unreadable, starting empty: {e}")
            return []
        if not isinstance(data, list):
            return []
        reports: List[ExceptionReport] = []
        for raw in data:
            try:
                reports.append(ExceptionReport.model_validate(raw))
            except ValidationError:
                continue
        return reports

    def _save_queue(self, reports: List[ExceptionReport]) -> None:
        write_json_file(
            self._queue_path,
            [r.model_dump(mode="json", by_alias=True) for r in reports],
        )
