from __future__ import annotations

import logging
import platform
import subprocess
from pathlib import Path

from csvgraph.errors import CsvGraphUserError

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ("png", "pdf")


def save_dot_file(dot_file: Path, content: str) -> Path:
    dot_file.parent.mkdir(parents=True, exist_ok=True)
    dot_file.write_text(content, encoding="utf-8")
    logger.info("DOT file saved to %s", dot_file)
    return dot_file


def run_dot(dot_file: Path, output_file: Path, fmt: str = "png", engine: str = "dot") -> Path:
    """Render `dot_file` to `output_file` with the Graphviz `engine` binary."""
    if fmt not in SUPPORTED_FORMATS:
        raise CsvGraphUserError(
            "E_RENDER_FORMAT",
            f"Unsupported output format '{fmt}'.",
            hint="Supported formats: " + ", ".join(SUPPORTED_FORMATS),
        )
    cmd = [engine, f"-T{fmt}", str(dot_file), "-o", str(output_file)]
    try:
        result = subprocess.run(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.PIPE, check=False)
    except FileNotFoundError as e:
        raise CsvGraphUserError(
            "E_RENDER_ENGINE_MISSING",
            f"Graphviz engine '{engine}' was not found.",
            hint="Install Graphviz (https://graphviz.org) or set graphviz.engine in .csvgraph/config.yaml.",
        ) from e
    if result.returncode != 0:
        stderr = (result.stderr or b"").decode("utf-8", "replace").strip()
        raise CsvGraphUserError(
            "E_RENDER_FAILED",
            f"Failed to run `{engine}` (exit code {result.returncode}).",
            hint=stderr or None,
        )
    logger.info("%s file saved to %s", fmt.upper(), output_file)
    return output_file


def open_file(path: Path) -> bool:
    """Open `path` with the desktop's default application. Failures are logged, not raised."""
    system = platform.system()
    if system == "Windows":
        cmd = ["cmd", "/C", "start", "", str(path)]
    elif system == "Darwin":
        cmd = ["open", str(path)]
    elif system == "Linux":
        cmd = ["xdg-open", str(path)]
    else:
        logger.warning("Unsupported platform %s: unable to open %s automatically.", system, path)
        return False
    try:
        subprocess.run(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL, check=False)
    except OSError as e:
        logger.warning("Could not open %s: %s", path, e)
        return False
    return True
