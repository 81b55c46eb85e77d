"""
Watch path expansion.

A watch path may contain ``*`` segments meaning "any immediate subdirectory
at this level", e.g. ``Servers/*/Rocket/Plugins``. Several wildcard segments
compose as a cartesian product.
"""

import logging
import os
import re
from pathlib import Path
from typing import Iterable, List, Union

from plugin_guard.utils.file_operations import resolve_against_root

WILDCARD = "*"
_SEPARATORS = re.compile(r"[\\/]+")


def _split_pattern(pattern: str) -> tuple[str, List[str]]:
    """Split a pattern into its anchor ("/" for absolute paths) and segments."""
    anchor = ""
    if os.path.isabs(pattern):
        anchor = Path(pattern).anchor
        pattern = pattern[len(anchor):]
    segments = [s for s in _SEPARATORS.split(pattern) if s]
    return anchor, segments


def _join(current: str, segment: str) -> str:
    if not current:
        return segment
    return os.path.join(current, segment)


def _list_subdirectories(directory: Path) -> List[str]:
    try:
        with os.scandir(directory) as entries:
            names = [entry.name for entry in entries if entry.is_dir()]
    except OSError as e:
        logging.debug(f"Cannot list {directory}: {e}")
        return []
    return sorted(names)


def expand_pattern(pattern: str, base_root: Union[str, Path]) -> List[str]:
    if WILDCARD not in pattern:
        return [pattern]

    anchor, segments = _split_pattern(pattern)
    candidates = [anchor]

    for segment in segments:
        next_candidates: List[str] = []
        for current in candidates:
            if segment == WILDCARD:
                search_dir = resolve_against_root(current, base_root)
                for name in _list_subdirectories(search_dir):
                    next_candidates.append(_join(current, name))
            else:
                next_candidates.append(_join(current, segment))
        candidates = next_candidates

    return candidates


def expand_watch_paths(
    patterns: Iterable[str], base_root: Union[str, Path]
) -> List[str]:
    """
    Expand every pattern and concatenate the results in order.

    Duplicates are kept. Missing or unreadable directories under a wildcard
    contribute nothing instead of raising.
    """
    result: List[str] = []
    for pattern in patterns:
        expanded = expand_pattern(pattern, base_root)
        if WILDCARD in pattern:
            logging.debug(f"Expanded {pattern} -> {len(expanded)} path(s)")
        result.extend(expanded)
    return result
