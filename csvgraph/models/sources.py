from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

import petl as etl

from csvgraph.errors import CsvGraphUserError
from csvgraph.models.table import TableDescriptor
from csvgraph.util import table_path

# fields are kept verbatim, leading spaces included
DEFAULT_CSV_OPTIONS: Dict[str, Any] = {"encoding": "utf-8"}


def read_header(table) -> tuple:
    """Header row of a PETL table, or () for an empty input."""
    it = iter(table)
    try:
        return tuple(next(it, ()))
    finally:
        close = getattr(it, "close", None)
        if close is not None:
            close()


@dataclass(frozen=True)
class Source:
    uri: Union[str, Path]
    name: Optional[str] = None
    options: Dict[str, Any] = field(default_factory=lambda: dict(DEFAULT_CSV_OPTIONS))

    # --- preview bounds ---
    preview_rows: int = 10
    preview_max_chars: int = 20_000  # prevent huge terminal spam

    def __post_init__(self) -> None:
        if isinstance(self.uri, Path):
            object.__setattr__(self, "uri", str(self.uri))
        if not isinstance(self.uri, str) or not self.uri:
            raise CsvGraphUserError(
                "E_SOURCE_URI_TYPE",
                f"Source uri must be a non-empty path string, got {type(self.uri).__name__}.",
                hint="Example: Source('users.csv')",
            )
        if self.name is None:
            object.__setattr__(self, "name", Path(self.uri).stem.lower())

        # Fail fast so errors point at the missing file rather than at the first iteration.
        if not Path(self.uri).is_file():
            raise CsvGraphUserError(
                "E_SOURCE_NOT_FOUND",
                f"CSV file not found: '{self.uri}'.",
                hint="Check source_path in .csvgraph/config.yaml or the file name you passed.",
            )

    # ---------- PETL table (lazy) ----------
    def table(self):
        """
        Return a PETL table. PETL is lazy: the file is opened and read row by row on iteration.
        """
        try:
            return etl.fromcsv(self.uri, **self.options)
        except FileNotFoundError as e:
            raise CsvGraphUserError(
                "E_SOURCE_NOT_FOUND",
                f"CSV file not found: '{self.uri}'.",
                hint="Check source_path in .csvgraph/config.yaml or the file name you passed.",
            ) from e
        except Exception as e:
            raise CsvGraphUserError(
                "E_SOURCE_READ",
                f"Could not read source '{self.uri}': {type(e).__name__}: {e}",
                hint="Check file permissions and encoding.",
            ) from e

    def descriptor(self) -> TableDescriptor:
        """Descriptor built from the file's header line (no keys)."""
        try:
            header = read_header(self.table())
        except CsvGraphUserError:
            raise
        except Exception as e:
            raise CsvGraphUserError(
                "E_SOURCE_READ",
                f"Could not read header of '{self.uri}': {type(e).__name__}: {e}",
                hint="Check file permissions and encoding.",
            ) from e
        return TableDescriptor(name=self.name, headers=header)

    # ---------- Peepholes / inspection ----------
    def head(self, n: Optional[int] = None):
        if n is None:
            n = self.preview_rows
        return etl.head(self.table(), n)

    def tail(self, n: Optional[int] = None):
        if n is None:
            n = self.preview_rows
        return etl.tail(self.table(), n)

    def _preview_str(self, table=None) -> str:
        """
        Bounded preview string. Does NOT load full dataset.
        """
        t = self.head(self.preview_rows) if table is None else table
        s = str(etl.look(t, limit=self.preview_rows))
        if len(s) > self.preview_max_chars:
            s = s[: self.preview_max_chars] + "\n… (truncated)"
        return s

    def __str__(self) -> str:
        return f'Source("{self.uri}")  table={self.name}\nPreview:\n' + self._preview_str()


def row_source_for(directory: Union[str, Path], **options: Any) -> Callable[[str], Source]:
    """Return a callable mapping a table name to the Source of `<directory>/<name>.csv`."""
    opts = dict(DEFAULT_CSV_OPTIONS)
    opts.update(options)

    def _source(name: str) -> Source:
        return Source(str(table_path(directory, name)), name=name, options=dict(opts))

    return _source
