from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union
import logging
import os

import petl as etl

from csvgraph.errors import CsvGraphUserError

logger = logging.getLogger(__name__)

# newline-terminated, comma-joined output
DEFAULT_SINK_OPTIONS: Dict[str, Any] = {"encoding": "utf-8", "lineterminator": "\n"}


@dataclass(frozen=True)
class Sink:
    """CSV destination. `uri=None` writes to standard output."""
    uri: Optional[Union[str, Path]] = None
    options: Dict[str, Any] = field(default_factory=lambda: dict(DEFAULT_SINK_OPTIONS))

    def __post_init__(self) -> None:
        if isinstance(self.uri, Path):
            object.__setattr__(self, "uri", str(self.uri))
        if self.uri is None:
            return

        # Fail fast: ensure the output directory exists and is writable before running anything.
        parent = os.path.dirname(self.uri) or "."
        if not os.path.isdir(parent):
            raise CsvGraphUserError(
                "E_SINK_DIR_NOT_FOUND",
                f"Output directory does not exist: '{parent}'.",
                hint="Create the directory or choose a different output path.",
            )
        if not os.access(parent, os.W_OK):
            raise CsvGraphUserError(
                "E_SINK_NOT_WRITABLE",
                f"Output directory is not writable: '{parent}'.",
                hint="Check permissions or choose a different output location.",
            )

    @property
    def is_stdout(self) -> bool:
        return self.uri is None

    def write(self, table) -> None:
        target = etl.StdoutSource() if self.uri is None else self.uri
        try:
            etl.tocsv(table, target, **self.options)
        except CsvGraphUserError:
            raise
        except FileNotFoundError as e:
            parent = os.path.dirname(self.uri or "") or "."
            raise CsvGraphUserError(
                "E_SINK_DIR_NOT_FOUND",
                f"Output directory does not exist: '{parent}'.",
                hint="Create the directory or choose a different output path.",
            ) from e
        except PermissionError as e:
            parent = os.path.dirname(self.uri or "") or "."
            raise CsvGraphUserError(
                "E_SINK_NOT_WRITABLE",
                f"Cannot write to output directory: '{parent}'.",
                hint="Check permissions or choose a different output location.",
            ) from e
        except OSError as e:
            raise CsvGraphUserError(
                "E_SINK_WRITE",
                f"Could not write sink '{self}': {type(e).__name__}: {e}",
                hint="Check file permissions and disk space.",
            ) from e
        if self.uri is not None:
            logger.debug("wrote %s", self.uri)

    def __str__(self) -> str:
        return "Sink(<stdout>)" if self.uri is None else f'Sink("{self.uri}")'
