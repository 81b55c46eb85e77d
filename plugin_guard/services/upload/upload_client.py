"""
Upload Client - submits one artifact to the analysis service.

Each upload consumes one rate-limit token, then makes up to
``max_attempts`` POSTs with exponential backoff (1s, 2s, ...). A 429 with
a positive Retry-After waits the server's delay instead of the backoff.
Every response carrying quota headers re-seeds the shared bucket.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

import aiofiles
import httpx

from plugin_guard.services.rate_limit.bucket import RateLimitBucket

HEADER_LIMIT = "X-RateLimit-Limit"
HEADER_REMAINING = "X-RateLimit-Remaining"
HEADER_RESET = "X-RateLimit-Reset"
HEADER_RETRY_AFTER = "Retry-After"
CLIENT_NAME = "plugin-guard"
INITIAL_BACKOFF_SECONDS = 1.0


def parse_error_details(response: httpx.Response) -> Optional[str]:
    """Pull ``error`` (preferred) or ``message`` from a JSON error body."""
    try:
        if not response.content or not response.content.strip():
            return None
        body = response.json()
    except ValueError:
        return None

    if not isinstance(body, dict):
        return None

    for field in ("error", "message"):
        value = body.get(field)
        if value:
            return str(value)
    return None


def parse_retry_after(response: httpx.Response) -> Optional[int]:
    raw = response.headers.get(HEADER_RETRY_AFTER)
    if raw is None:
        return None
    try:
        seconds = int(raw.strip())
    except ValueError:
        return None
    return seconds if seconds > 0 else None


class UploadClient:
    def __init__(
        self,
        api_base_url: str,
        api_key: str,
        bucket: RateLimitBucket,
        http_client: Optional[httpx.AsyncClient] = None,
        max_attempts: int = 3,
        timeout_seconds: float = 60.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.api_base_url = api_base_url.rstrip("/")
        self.api_key = api_key
        self.bucket = bucket
        self.max_attempts = max(1, max_attempts)
        self._sleep = sleep
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout_seconds)

    def _upload_url(self) -> str:
        return f"{self.api_base_url}/v1.0/files"

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def upload_file(self, file_path: str, filename: str, force_analyze: bool) -> bool:
        """Upload one file. Never raises; returns True on success."""
        try:
            return await self._upload_with_retries(file_path, filename, force_analyze)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logging.error(f"Unexpected error uploading {filename}: {e}")
            return False

    async def _upload_with_retries(
        self, file_path: str, filename: str, force_analyze: bool
    ) -> bool:
        allowed, tokens_left = self.bucket.try_consume()
        if not allowed:
            logging.info(f"Upload of {filename} skipped, rate limit bucket is empty")
            return False
        logging.debug(f"Uploading {filename}, {tokens_left} rate limit token(s) left")

        params = {"forceAnalyze": "true" if force_analyze else "false"}
        headers = {"X-API-Key": self.api_key, "X-Client": CLIENT_NAME}
        backoff = INITIAL_BACKOFF_SECONDS
        attempts = 0

        while attempts < self.max_attempts:
            attempts += 1

            try:
                async with aiofiles.open(file_path, "rb") as f:
                    payload = await f.read()
            except OSError as e:
                logging.error(f"Failed to read file {file_path}: {e}")
                return False

            files = {"file": (filename, payload, "application/octet-stream")}

            try:
                response = await self._client.post(
                    self._upload_url(), params=params, headers=headers, files=files
                )
            except httpx.HTTPError as e:
                logging.error(
                    f"Upload failed for {filename}: {type(e).__name__}: {e} "
                    f"attempt {attempts}/{self.max_attempts}"
                )
                response = None

            if response is not None:
                self._update_rate_limit(response)

                if response.is_success:
                    logging.info(f"Upload succeeded for {filename}")
                    return True

                self._log_failure(response, filename, attempts)

                if response.status_code == 429:
                    retry_after = parse_retry_after(response)
                    if retry_after is not None:
                        if attempts >= self.max_attempts:
                            break
                        logging.info(f"Rate limited. Retrying after {retry_after}s")
                        await self._sleep(retry_after)
                        continue

            if attempts < self.max_attempts:
                await self._sleep(backoff)
                backoff *= 2

        return False

    def _log_failure(self, response: httpx.Response, filename: str, attempts: int) -> None:
        details = parse_error_details(response)
        reason = response.reason_phrase or "error"
        if details:
            logging.error(
                f"Upload failed for {filename}: {reason} ({response.status_code}) - "
                f"{details} (attempt {attempts}/{self.max_attempts})"
            )
        else:
            logging.error(
                f"Upload failed for {filename}: {reason} ({response.status_code}) "
                f"attempt {attempts}/{self.max_attempts}"
            )

    def _update_rate_limit(self, response: httpx.Response) -> None:
        limit_raw = response.headers.get(HEADER_LIMIT)
        remaining_raw = response.headers.get(HEADER_REMAINING)
        reset_raw = response.headers.get(HEADER_RESET)

        if not limit_raw or not remaining_raw or not reset_raw:
            logging.debug(
                f"Rate limit headers missing - Limit: {limit_raw!r}, "
                f"Remaining: {remaining_raw!r}, Reset: {reset_raw!r}"
            )
            return

        try:
            limit = int(limit_raw)
            remaining = int(remaining_raw)
            reset = int(reset_raw)
        except ValueError:
            logging.info(
                f"Rate limit headers could not be parsed - Limit: {limit_raw!r}, "
                f"Remaining: {remaining_raw!r}, Reset: {reset_raw!r}"
            )
            return

        self.bucket.seed_from_headers(limit, remaining, reset)
        logging.info(f"Rate limit updated: {remaining}/{limit} (resets at {reset})")
