from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

PathLike = Union[str, Path]


def _norm_path(p: PathLike, *, base_dir: Optional[Path]) -> str:
    """Normalize a path relative to a base directory (when provided).

    - Leaves absolute paths unchanged.
    - If base_dir is provided and p is relative, returns an absolute resolved path.
    """
    pp = Path(p)
    if pp.is_absolute():
        return str(pp)
    if base_dir is None:
        return str(pp)
    return str((base_dir / pp).resolve())


def table_path(source_path: PathLike, name: str) -> Path:
    """CSV file backing table `name` inside `source_path`."""
    if name.endswith(".csv"):
        name = name[: -len(".csv")]
    return Path(source_path) / f"{name}.csv"


def human_readable_bytes(n: int) -> str:
    sizes = ["B", "KB", "MB", "GB", "TB"]
    size = float(n)
    i = 0
    while size >= 1024.0 and i < len(sizes) - 1:
        size /= 1024.0
        i += 1
    return f"{size:.2f} {sizes[i]}"


def display_relative_path(path: PathLike) -> str:
    p = Path(path)
    try:
        return str(p.relative_to(Path.cwd()))
    except ValueError:
        return str(p)

