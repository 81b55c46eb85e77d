import json
import os
from pathlib import Path
from typing import Any, Union

PathLike = Union[str, Path]


def create_temp_file_path(dest_path: Path) -> Path:
    return dest_path.with_suffix(dest_path.suffix + ".tmp")


def read_json_file(path: PathLike) -> Any:
    """Read a JSON document. Returns None when the file does not exist."""
    path = Path(path)
    if not path.exists():
        return None
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def write_json_file(path: PathLike, data: Any) -> None:
    """
    Write a JSON document through a temp file and an atomic rename, so a
    crash mid-write leaves the previous document intact.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = create_temp_file_path(path)
    with open(temp_path, "w", encoding="utf-8") as f:
        json.dump(data, f, separators=(",", ":"), default=str)
    os.replace(temp_path, path)


def delete_file_if_exists(path: PathLike) -> bool:
    path = Path(path)
    if not path.exists():
        return False
    path.unlink()
    return True


def resolve_against_root(path: str, base_root: PathLike) -> Path:
    """Absolute paths are returned as-is, relative ones are joined to base_root."""
    if not path or not path.strip():
        return Path(base_root)
    candidate = Path(path)
    if candidate.is_absolute():
        return candidate
    return Path(base_root) / candidate
