from __future__ import annotations

from typing import Optional


class CsvGraphUserError(Exception):
    """An instructional error intended for end users.

    Use this for mistakes in the invocation (unknown tables, missing columns, bad files, etc.).
    It carries a short error code and an optional hint to guide the user.
    """

    def __init__(self, code: str, message: str, *, hint: Optional[str] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.hint = hint
        # set by the path-join orchestrator when the failure happened inside a hop
        self.hop_index: Optional[int] = None

    def __str__(self) -> str:
        base = f"[{self.code}] {self.message}"
        if self.hop_index is not None:
            base += f" (hop {self.hop_index + 1})"
        if self.hint:
            return base + f"\nHint: {self.hint}"
        return base


class ColumnNotFound(CsvGraphUserError):
    def __init__(self, side: str, column: str, *, available=None):
        hint = None
        if available:
            hint = "Available columns: " + ", ".join(available)
        super().__init__(
            "E_COLUMN_NOT_FOUND",
            f"Column '{column}' not found in {side} table.",
            hint=hint,
        )
        self.side = side
        self.column = column


class TableNotFound(CsvGraphUserError):
    def __init__(self, name: str):
        super().__init__(
            "E_TABLE_NOT_FOUND",
            f"Table '{name}' not found in graph.",
            hint="Table names are lower-cased by the schema extractor; "
                 "run 'csvgraph graph --regenerate' if the schema changed.",
        )
        self.name = name


class PathNotFound(CsvGraphUserError):
    def __init__(self, start: str, end: str):
        super().__init__(
            "E_PATH_NOT_FOUND",
            f"No path between '{start}' and '{end}'.",
            hint="The tables are not connected by any chain of foreign keys.",
        )
        self.start = start
        self.end = end


class NoJoinColumns(CsvGraphUserError):
    def __init__(self, left_table: str, right_table: str):
        super().__init__(
            "E_NO_JOIN_COLUMNS",
            f"No suitable join columns found between '{left_table}' and '{right_table}'.",
            hint="A foreign key on either side must reference a column of the other table.",
        )
        self.left_table = left_table
        self.right_table = right_table


class EmptyJoinResult(CsvGraphUserError):
    def __init__(self, hop_index: int, left_table: str = "", right_table: str = ""):
        between = f" between '{left_table}' and '{right_table}'" if left_table else ""
        super().__init__(
            "E_EMPTY_JOIN_RESULT",
            f"Join{between} produced no results.",
            hint="No key values matched; check that the CSV files hold related rows.",
        )
        self.hop_index = hop_index


class EmptyPath(CsvGraphUserError):
    def __init__(self):
        super().__init__("E_EMPTY_PATH", "Path is empty.")
