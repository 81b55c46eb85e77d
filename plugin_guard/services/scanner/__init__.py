from .file_scanner import FileScanner
from .hash_cache import FileHashCache
from .path_expander import expand_watch_paths

__all__ = [
    "FileHashCache",
    "FileScanner",
    "expand_watch_paths",
]
