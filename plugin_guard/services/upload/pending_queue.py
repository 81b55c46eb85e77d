import asyncio
import logging
import os
from pathlib import Path
from typing import Deque, List, Union

from pydantic import ValidationError

from plugin_guard.models import PendingUpload, UploadTask
from plugin_guard.utils.file_operations import read_json_file, write_json_file

DEFAULT_MAX_ITEMS = 100
DEFAULT_MAX_TOTAL_BYTES = 50 * 1024 * 1024
MIN_TOTAL_BYTES = 1024 * 1024


class PendingUploadQueue:
    """
    Durable FIFO of uploads that failed and must be retried next cycle.

    Backed by pending.json, loaded once at construction and rewritten after
    every mutation. Bounded by item count and total file size; the oldest
    records are evicted first.
    """

    def __init__(
        self,
        file_path: Union[str, Path],
        max_items: int = DEFAULT_MAX_ITEMS,
        max_total_bytes: int = DEFAULT_MAX_TOTAL_BYTES,
    ):
        self._file_path = Path(file_path)
        self._max_items = max(1, max_items)
        self._max_total_bytes = max(MIN_TOTAL_BYTES, max_total_bytes)
        self._lock = asyncio.Lock()
        self._queue: List[PendingUpload] = self._load()

        if self._queue:
            logging.info(f"Loaded {len(self._queue)} pending upload(s) from {self._file_path}")

    @property
    def count(self) -> int:
        return len(self._queue)

    @property
    def total_bytes(self) -> int:
        return sum(item.size_bytes for item in self._queue)

    def items(self) -> List[PendingUpload]:
        return [item.model_copy() for item in self._queue]

    async def enqueue(self, path: str, filename: str, force_analyze: bool) -> bool:
        """Queue a failed upload. Returns False when nothing was added."""
        if not path or not path.strip():
            return False

        try:
            size = os.path.getsize(path)
        except OSError:
            logging.debug(f"Not queueing {path}, file no longer exists")
            return False

        async with self._lock:
            key = path.casefold()
            if any(item.path.casefold() == key for item in self._queue):
                return False

            self._queue.append(
                PendingUpload(
                    path=path,
                    filename=filename,
                    force_analyze=force_analyze,
                    size_bytes=size,
                )
            )
            self._trim_if_needed()
            self._save()

        logging.info(f"Queued {filename} for retry next scan ({self.count} pending)")
        return True

    async def drain_to(self, destination: Deque[UploadTask]) -> int:
        """
        Move every record onto ``destination`` as a fresh UploadTask.

        Records whose file has disappeared are dropped. Returns the number
        of tasks appended.
        """
        async with self._lock:
            if not self._queue:
                return 0

            drained = list(self._queue)
            self._queue.clear()

            count = 0
            for record in drained:
                if os.path.isfile(record.path):
                    destination.append(UploadTask.from_pending(record))
                    count += 1
                else:
                    logging.info(f"Dropping pending upload for missing file: {record.path}")

            self._save()
            return count

    def _trim_if_needed(self) -> None:
        while self._queue and (
            len(self._queue) > self._max_items
            or self.total_bytes > self._max_total_bytes
        ):
            evicted = self._queue.pop(0)
            logging.warning(f"Pending upload queue full, evicted oldest: {evicted.path}")

    def _load(self) -> List[PendingUpload]:
        try:
            data = read_json_file(self._file_path)
        except (OSError, ValueError) as e:
            logging.warning(f"Pending upload file unreadable, starting empty: {e}")
            return []

        if data is None:
            return []
        if not isinstance(data, list):
            logging.warning(f"Pending upload file {self._file_path} has unexpected format")
            return []

        records: List[PendingUpload] = []
        for raw in data:
            try:
                records.append(PendingUpload.model_validate(raw))
            except ValidationError as e:
                logging.warning(f"Skipping invalid pending upload record: {e}")
        return records

    def _save(self) -> None:
        try:
            write_json_file(
                self._file_path,
                [item.model_dump(by_alias=True) for item in self._queue],
            )
        except (OSError, TypeError) as e:
            logging.error(f"Could not save pending uploads {self._file_path}: {e}")
