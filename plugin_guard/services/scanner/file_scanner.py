import logging
import os
from typing import AsyncIterator, Iterable, List, Tuple

import aiofiles.os

from .file_hasher import compute_file_hash
from .hash_cache import FileHashCache


def matches_pattern(filename: str, pattern: str) -> bool:
    """
    Match a filename against ``*``, ``*.ext`` or an exact name.

    Both forms compare case-insensitively. No other glob syntax is supported.
    """
    if pattern == "*":
        return True
    if pattern.startswith("*."):
        return filename.lower().endswith(pattern[1:].lower())
    return filename.lower() == pattern.lower()


def matches_include(filename: str, patterns: List[str]) -> bool:
    if not patterns:
        return True
    return any(matches_pattern(filename, p) for p in patterns)


def matches_exclude(filename: str, patterns: List[str]) -> bool:
    return any(matches_pattern(filename, p) for p in patterns)


class FileScanner:
    """Finds files under a root whose content differs from the hash cache."""

    def __init__(self, hash_cache: FileHashCache):
        self.hash_cache = hash_cache

    async def enumerate_changed(
        self,
        root: str,
        include_patterns: Iterable[str],
        exclude_patterns: Iterable[str],
    ) -> AsyncIterator[Tuple[str, str]]:
        include = list(include_patterns)
        exclude = list(exclude_patterns)

        if not await aiofiles.os.path.isdir(root):
            logging.debug(f"Scan root does not exist: {root}")
            return

        for file_path in self._walk_candidates(root, include, exclude):
            try:
                content_hash = await compute_file_hash(file_path)
            except OSError as e:
                logging.warning(f"Skipping {file_path} this cycle, could not hash: {e}")
                continue

            if self.hash_cache.has_changed(file_path, content_hash):
                yield file_path, content_hash

    @staticmethod
    def _walk_candidates(
        root: str, include: List[str], exclude: List[str]
    ) -> List[str]:
        candidates: List[str] = []
        for dirpath, _, files in os.walk(root):
            for name in files:
                if matches_include(name, include) and not matches_exclude(name, exclude):
                    candidates.append(os.path.abspath(os.path.join(dirpath, name)))
        return candidates
