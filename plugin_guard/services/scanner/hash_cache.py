import asyncio
import logging
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

from plugin_guard.utils.file_operations import (
    delete_file_if_exists,
    read_json_file,
    write_json_file,
)


class FileHashCache:
    """
    Persisted map of path -> content hash last confirmed uploaded.

    Paths compare case-insensitively. Entries are only written after a
    successful upload, never for in-flight or failed attempts.
    """

    def __init__(self, file_path: Union[str, Path]):
        self._file_path = Path(file_path)
        self._lock = asyncio.Lock()
        # casefolded path -> (original path, hash)
        self._entries: Dict[str, Tuple[str, str]] = self._load()
        logging.info(
            f"FileHashCache initialiseret med {len(self._entries)} entries fra {self._file_path}"
        )

    @staticmethod
    def _key(path: str) -> str:
        return path.casefold()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, path: str) -> Optional[str]:
        entry = self._entries.get(self._key(path))
        return entry[1] if entry else None

    def has_changed(self, path: str, content_hash: str) -> bool:
        return self.get(path) != content_hash

    async def mark_uploaded(self, path: str, content_hash: str) -> None:
        async with self._lock:
            self._entries[self._key(path)] = (path, content_hash)
            self._save()

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()
            try:
                delete_file_if_exists(self._file_path)
            except OSError as e:
                logging.error(f"Could not delete hash cache {self._file_path}: {e}")
        logging.info("Hash cache cleared")

    def _load(self) -> Dict[str, Tuple[str, str]]:
        try:
            data = read_json_file(self._file_path)
        except (OSError, ValueError) as e:
            logging.warning(f"Hash cache {self._file_path} unreadable, starting empty: {e}")
            return {}

        if data is None:
            return {}
        if not isinstance(data, dict):
            logging.warning(f"Hash cache {self._file_path} has unexpected format, starting empty")
            return {}

        return {
            self._key(path): (path, content_hash)
            for path, content_hash in data.items()
            if isinstance(path, str) and isinstance(content_hash, str)
        }

    def _save(self) -> None:
        try:
            write_json_file(
                self._file_path,
                {path: content_hash for path, content_hash in self._entries.values()},
            )
        except (OSError, TypeError) as e:
            logging.error(f"Could not save hash cache {self._file_path}: {e}")
