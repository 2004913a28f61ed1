"""Extract table descriptors (columns, primary and foreign keys) from SQL DDL."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import sqlglot
from sqlglot import exp
from sqlglot.errors import ParseError, TokenError

from csvgraph.errors import CsvGraphUserError
from csvgraph.models.table import ForeignKey, TableDescriptor

logger = logging.getLogger(__name__)

# (local_column, referenced_table, referenced_column or None when the DDL omits it)
_RawForeignKey = Tuple[str, str, Optional[str]]


def _names(nodes) -> List[str]:
    out: List[str] = []
    for n in nodes or []:
        if isinstance(n, exp.Ordered):
            n = n.this
        out.append(n.name if isinstance(n, exp.Expression) else str(n))
    return out


def _reference_target(ref: exp.Reference) -> Tuple[str, List[str]]:
    target = ref.this
    if isinstance(target, exp.Schema):
        return target.this.name.lower(), _names(target.expressions)
    return target.name.lower(), []


def _foreign_keys(fk: exp.ForeignKey) -> List[_RawForeignKey]:
    ref = fk.args.get("reference")
    if ref is None:
        return []
    table, ref_cols = _reference_target(ref)
    local = _names(fk.expressions)
    out: List[_RawForeignKey] = []
    for i, col in enumerate(local):
        out.append((col, table, ref_cols[i] if i < len(ref_cols) else None))
    return out


class _TableBuilder:
    def __init__(self, name: str):
        self.name = name
        self.headers: List[str] = []
        self.primary_key: Optional[str] = None
        self.foreign_keys: List[_RawForeignKey] = []

    def build(self, primary_keys: Dict[str, Optional[str]]) -> TableDescriptor:
        fks: List[ForeignKey] = []
        for col, table, ref_col in self.foreign_keys:
            if ref_col is None:
                ref_col = primary_keys.get(table)
                if ref_col is None:
                    logger.warning(
                        "%s.%s references %s without a column and %s has no primary key; skipped",
                        self.name, col, table, table,
                    )
                    continue
            fks.append(ForeignKey(col, table, ref_col))
        return TableDescriptor(
            name=self.name,
            headers=tuple(self.headers),
            primary_key=self.primary_key,
            foreign_keys=tuple(fks),
        )


def _parse_create(stmt: exp.Create) -> Optional[_TableBuilder]:
    schema = stmt.this
    if not isinstance(schema, exp.Schema):
        # CREATE TABLE ... AS SELECT has no column list
        return None
    t = _TableBuilder(schema.this.name.lower())

    for item in schema.expressions:
        if isinstance(item, exp.ColumnDef):
            col = item.name
            t.headers.append(col)
            for c in item.args.get("constraints") or []:
                kind = c.args.get("kind")
                if isinstance(kind, exp.PrimaryKeyColumnConstraint):
                    t.primary_key = col
                elif isinstance(kind, exp.Reference):
                    table, ref_cols = _reference_target(kind)
                    t.foreign_keys.append((col, table, ref_cols[0] if ref_cols else None))

    for pk in schema.find_all(exp.PrimaryKey):
        cols = _names(pk.expressions)
        if len(cols) == 1:
            t.primary_key = cols[0]
    for fk in schema.find_all(exp.ForeignKey):
        t.foreign_keys.extend(_foreign_keys(fk))
    return t


def parse_sql(text: str, *, dialect: str = "postgres") -> List[TableDescriptor]:
    """Return one descriptor per CREATE TABLE, in statement order.

    Foreign keys added later with ALTER TABLE are attached to their table.
    """
    try:
        statements = sqlglot.parse(text, read=dialect)
    except (ParseError, TokenError) as e:
        raise CsvGraphUserError(
            "E_SQL_PARSE",
            f"Failed to parse SQL schema: {e}",
            hint="Only CREATE TABLE and ALTER TABLE ... ADD FOREIGN KEY statements are read.",
        ) from e

    tables: Dict[str, _TableBuilder] = {}
    for stmt in statements:
        if isinstance(stmt, exp.Create) and str(stmt.args.get("kind") or "").upper() == "TABLE":
            t = _parse_create(stmt)
            if t is not None:
                tables[t.name] = t
        elif isinstance(stmt, exp.Alter):
            name = stmt.this.name.lower() if stmt.this is not None else ""
            t = tables.get(name)
            if t is None:
                logger.warning("ALTER TABLE for unknown table '%s' ignored", name)
                continue
            for fk in stmt.find_all(exp.ForeignKey):
                t.foreign_keys.extend(_foreign_keys(fk))

    primary_keys = {name: t.primary_key for name, t in tables.items()}
    return [t.build(primary_keys) for t in tables.values()]


def parse_sql_file(path: Union[str, Path]) -> List[TableDescriptor]:
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise CsvGraphUserError(
            "E_SCHEMA_READ",
            f"Failed to read schema file '{p}': {e}",
            hint="Pass an existing .sql file.",
        ) from e
    tables = parse_sql(text)
    logger.info("parsed %d tables from %s", len(tables), p.name)
    return tables
