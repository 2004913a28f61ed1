from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence, Tuple

from csvgraph.errors import ColumnNotFound, CsvGraphUserError


class ForeignKey(NamedTuple):
    column: str
    ref_table: str
    ref_column: str


def unique_name(name: str, taken: Iterable[str], suffix: str) -> str:
    """Return `name`, or `name_suffix` (repeated) until it no longer collides with `taken`."""
    taken = set(taken)
    out = name
    while out in taken:
        out = f"{out}_{suffix}"
    return out


def joined_header(
    left_headers: Sequence[str],
    right_headers: Sequence[str],
    right_key: str,
    suffix: str = "right",
) -> Tuple[List[str], Dict[str, str]]:
    """Output header of a join: left headers, then right headers without the key column.

    Right columns whose name is already taken get `_<suffix>` appended.
    Returns the header and the mapping right column -> output column.
    """
    out = list(left_headers)
    renamed: Dict[str, str] = {}
    for h in right_headers:
        if h == right_key:
            continue
        name = unique_name(h, out, suffix)
        renamed[h] = name
        out.append(name)
    return out, renamed


@dataclass(frozen=True)
class TableDescriptor:
    """Schema of one CSV-backed table.

    `headers` is the on-disk column order and `header_index` is always its inverse.
    Instances are never mutated; the `select`/`drop`/`joined_with` helpers return new ones.
    """
    name: str
    headers: Tuple[str, ...] = ()
    primary_key: Optional[str] = None
    foreign_keys: Tuple[ForeignKey, ...] = ()

    header_index: Dict[str, int] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        headers = tuple(self.headers)
        index: Dict[str, int] = {}
        for i, h in enumerate(headers):
            if h in index:
                raise CsvGraphUserError(
                    "E_TABLE_DUPLICATE_HEADER",
                    f"Table '{self.name}' declares column '{h}' more than once.",
                    hint="Column names must be unique within a table.",
                )
            index[h] = i
        fks: List[ForeignKey] = []
        for fk in self.foreign_keys:
            fk = ForeignKey(*fk)
            if fk not in fks:
                fks.append(fk)
        object.__setattr__(self, "headers", headers)
        object.__setattr__(self, "foreign_keys", tuple(fks))
        object.__setattr__(self, "header_index", index)

    def column_index(self, column: str, *, side: str = "left") -> int:
        try:
            return self.header_index[column]
        except KeyError:
            raise ColumnNotFound(side, column, available=self.headers) from None

    def has_column(self, column: str) -> bool:
        return column in self.header_index

    def select(self, columns: Iterable[str]) -> "TableDescriptor":
        """Descriptor restricted to `columns`, kept in this table's header order."""
        wanted = set(columns)
        for c in wanted:
            self.column_index(c)
        return self._restricted([h for h in self.headers if h in wanted])

    def drop(self, columns: Iterable[str]) -> "TableDescriptor":
        unwanted = set(columns)
        for c in unwanted:
            self.column_index(c)
        return self._restricted([h for h in self.headers if h not in unwanted])

    def _restricted(self, headers: List[str]) -> "TableDescriptor":
        kept = set(headers)
        return TableDescriptor(
            name=self.name,
            headers=tuple(headers),
            primary_key=self.primary_key if self.primary_key in kept else None,
            foreign_keys=tuple(fk for fk in self.foreign_keys if fk.column in kept),
        )

    def joined_with(self, other: "TableDescriptor", left_col: str, right_col: str) -> "TableDescriptor":
        """Descriptor of `self JOIN other ON self.left_col = other.right_col`.

        `other`'s columns (minus `right_col`) are appended, renamed with the other table's
        name as suffix where they collide. `other`'s foreign keys follow, except the one whose
        column was consumed by the join. If `right_col` was `other`'s primary key, the
        result's primary key becomes `left_col`.
        """
        headers, renamed = joined_header(self.headers, other.headers, right_col, suffix=other.name)
        fks = list(self.foreign_keys)
        for fk in other.foreign_keys:
            if fk.column == right_col:
                continue
            fks.append(ForeignKey(renamed[fk.column], fk.ref_table, fk.ref_column))
        primary_key = self.primary_key
        if other.primary_key is not None and other.primary_key == right_col:
            primary_key = left_col
        return TableDescriptor(
            name=self.name,
            headers=tuple(headers),
            primary_key=primary_key,
            foreign_keys=tuple(fks),
        )

    def __str__(self) -> str:
        pk = f"  pk={self.primary_key}" if self.primary_key else ""
        fks = ""
        if self.foreign_keys:
            fks = "  fks=[" + ", ".join(f"{c}->{t}.{r}" for c, t, r in self.foreign_keys) + "]"
        return f"{self.name}({', '.join(self.headers)}){pk}{fks}"
