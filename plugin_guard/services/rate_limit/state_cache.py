import logging
import threading
from pathlib import Path
from typing import Union

from pydantic import ValidationError

from plugin_guard.models import RateLimitState
from plugin_guard.utils.file_operations import (
    delete_file_if_exists,
    read_json_file,
    write_json_file,
)


class RateLimitStateCache:
    """Loads and saves RateLimitState as ratelimit.json."""

    def __init__(self, file_path: Union[str, Path]):
        self._file_path = Path(file_path)
        self._lock = threading.Lock()

    def load(self) -> RateLimitState:
        with self._lock:
            try:
                data = read_json_file(self._file_path)
            except (OSError, ValueError) as e:
                logging.error(f"Failed to load rate limit cache, starting fresh: {e}")
                return RateLimitState()

            if data is None:
                logging.info("Rate limit cache not found, starting fresh")
                return RateLimitState()

            try:
                state = RateLimitState.model_validate(data)
            except ValidationError as e:
                logging.error(f"Rate limit cache is invalid, starting fresh: {e}")
                return RateLimitState()

            logging.info("Loaded rate limit cache")
            return state

    def save(self, state: RateLimitState) -> None:
        with self._lock:
            try:
                write_json_file(self._file_path, state.model_dump(by_alias=True))
            except (OSError, TypeError) as e:
                logging.error(f"Could not save rate limit cache {self._file_path}: {e}")

    def clear(self) -> None:
        with self._lock:
            try:
                if delete_file_if_exists(self._file_path):
                    logging.info("Cleared rate limit cache")
            except OSError as e:
                logging.error(f"Could not delete rate limit cache {self._file_path}: {e}")
