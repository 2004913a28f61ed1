from __future__ import annotations

from dataclasses import dataclass, field
import logging
from pathlib import Path
import shutil
import tempfile
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import petl as etl

from csvgraph.errors import CsvGraphUserError, EmptyJoinResult, EmptyPath, NoJoinColumns
from csvgraph.graph import SchemaGraph
from csvgraph.models.join import JoinType, join
from csvgraph.models.sinks import Sink
from csvgraph.models.sources import DEFAULT_CSV_OPTIONS, Source
from csvgraph.models.table import TableDescriptor, joined_header
from csvgraph.util import human_readable_bytes

logger = logging.getLogger(__name__)

# table name -> (column in that table -> column in the running result)
ColumnOrigins = Dict[str, Dict[str, str]]


def find_join_columns(
    current: TableDescriptor,
    nxt: TableDescriptor,
    origins: Optional[ColumnOrigins] = None,
) -> Tuple[str, str]:
    """Pick `(left_column, right_column)` to join `current` with `nxt`.

    `current`'s foreign keys referencing `nxt` win; otherwise `nxt`'s foreign keys referencing
    a table already folded into `current` are used. `origins` tells where each folded table's
    columns ended up in `current` (a fresh table maps to itself).
    """
    if origins is None:
        origins = {current.name: {h: h for h in current.headers}}

    for fk in current.foreign_keys:
        if fk.ref_table == nxt.name and nxt.has_column(fk.ref_column) and current.has_column(fk.column):
            return fk.column, fk.ref_column

    for fk in nxt.foreign_keys:
        left = origins.get(fk.ref_table, {}).get(fk.ref_column)
        if left is not None and current.has_column(left):
            return left, fk.column

    raise NoJoinColumns(current.name, nxt.name)


@dataclass
class PathJoinContext:
    path: List[str] = field(default_factory=list)
    descriptor: Optional[TableDescriptor] = None
    checkpoints: List[Tuple[str, Dict[str, Any]]] = field(default_factory=list)


@dataclass
class PathJoin:
    """Inner-join every table on the shortest foreign-key path between two tables.

    Each hop streams the previous hop's result (a scratch CSV) against the next table's CSV;
    scratch files live in a private temporary directory removed when `run` returns or fails.
    """
    graph: SchemaGraph
    from_table: str
    to_table: str
    row_source: Callable[[str], Source]
    scratch_dir: Optional[Union[str, Path]] = None

    def path(self) -> List[int]:
        start = self.graph.find_node(self.from_table)
        end = self.graph.find_node(self.to_table)
        return self.graph.shortest_path(start, end)

    def _open(self, table: TableDescriptor) -> Source:
        src = self.row_source(table.name)
        found = src.descriptor().headers
        if found != table.headers:
            raise CsvGraphUserError(
                "E_HEADER_MISMATCH",
                f"Header of '{src.uri}' does not match table '{table.name}'.",
                hint=f"Expected: {','.join(table.headers)}\nFound:    {','.join(found)}",
            )
        return src

    def run(self, sink: Sink) -> PathJoinContext:
        path = self.path()
        if not path:
            raise EmptyPath()

        ctx = PathJoinContext(path=self.graph.path_names(path))
        logger.info("Join path: %s", " -> ".join(ctx.path))

        scratch = Path(tempfile.mkdtemp(prefix="csvgraph-", dir=self.scratch_dir))
        try:
            result = self._fold(path, scratch, ctx)
            sink.write(result)
        finally:
            try:
                shutil.rmtree(scratch)
            except OSError as e:
                logger.warning("Could not remove scratch directory %s: %s", scratch, e)

        if sink.uri is not None:
            logger.info("written %s to %s", human_readable_bytes(Path(sink.uri).stat().st_size), sink.uri)
        return ctx

    def _fold(self, path: List[int], scratch: Path, ctx: PathJoinContext):
        first = self.graph.nodes[path[0]]
        running = first
        try:
            table = self._open(first).table()
        except CsvGraphUserError as e:
            # the seed table belongs to the first hop
            if e.hop_index is None:
                e.hop_index = 0
            raise
        origins: ColumnOrigins = {first.name: {h: h for h in first.headers}}
        previous: Optional[Path] = None

        for i, (a, b) in enumerate(zip(path, path[1:])):
            nxt = self.graph.nodes[b]
            logger.info("Joining %s and %s", self.graph.nodes[a].name, nxt.name)
            out = scratch / f"hop-{i + 1}.csv"
            try:
                try:
                    left_col, right_col = find_join_columns(running, nxt, origins)
                except NoJoinColumns:
                    raise NoJoinColumns(self.graph.nodes[a].name, nxt.name) from None
                right = self._open(nxt).table()
                view = join(running, table, right, left_col, right_col, JoinType.INNER, rsuffix=nxt.name)
                Sink(out).write(view)
                rows = etl.nrows(etl.fromcsv(str(out), **DEFAULT_CSV_OPTIONS))
                if rows == 0:
                    raise EmptyJoinResult(i, self.graph.nodes[a].name, nxt.name)
            except CsvGraphUserError as e:
                if e.hop_index is None:
                    e.hop_index = i
                raise

            logger.info("Size after join %d: %s (%d rows)", i + 1, human_readable_bytes(out.stat().st_size), rows)
            _, renamed = joined_header(running.headers, nxt.headers, right_col, suffix=nxt.name)
            renamed[right_col] = left_col
            origins[nxt.name] = renamed
            running = running.joined_with(nxt, left_col, right_col)

            if previous is not None:
                previous.unlink()
            previous = out
            table = etl.fromcsv(str(out), **DEFAULT_CSV_OPTIONS)

            ctx.checkpoints.append(
                (
                    "hop",
                    {
                        "index": i,
                        "left": self.graph.nodes[a].name,
                        "right": nxt.name,
                        "on": [left_col, right_col],
                        "rows": rows,
                        "header": list(running.headers),
                    },
                )
            )

        ctx.descriptor = running
        return table


def join_along_path(
    graph: SchemaGraph,
    from_table: str,
    to_table: str,
    row_source: Callable[[str], Source],
    sink: Sink,
) -> PathJoinContext:
    return PathJoin(graph, from_table, to_table, row_source).run(sink)
