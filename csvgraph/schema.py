"""Dict IR for table descriptors and schema graphs (the persisted graph cache form)."""
from __future__ import annotations

from typing import Any, Dict, List

from csvgraph.errors import CsvGraphUserError
from csvgraph.graph import SchemaGraph
from csvgraph.models.table import ForeignKey, TableDescriptor


def _table_to_ir(t: TableDescriptor) -> Dict[str, Any]:
    d: Dict[str, Any] = {"name": t.name, "headers": list(t.headers)}
    if t.primary_key is not None:
        d["primary_key"] = t.primary_key
    if t.foreign_keys:
        d["foreign_keys"] = [list(fk) for fk in t.foreign_keys]
    return d


def _table_from_ir(d: Dict[str, Any]) -> TableDescriptor:
    if not isinstance(d, dict):
        raise CsvGraphUserError(
            "E_IR_TABLE",
            "IR table must be a mapping.",
            hint="Example: {name: users, headers: [id, name]}",
        )
    name = d.get("name")
    if not isinstance(name, str) or not name:
        raise CsvGraphUserError(
            "E_IR_TABLE",
            "IR table requires a non-empty 'name' string.",
            hint="Example: {name: users, headers: [id, name]}",
        )
    headers = d.get("headers") or []
    if not isinstance(headers, list):
        raise CsvGraphUserError(
            "E_IR_TABLE",
            f"IR table '{name}' headers must be a list.",
            hint="Example: headers: [id, name]",
        )
    fks: List[ForeignKey] = []
    for fk in d.get("foreign_keys") or []:
        if not isinstance(fk, (list, tuple)) or len(fk) != 3:
            raise CsvGraphUserError(
                "E_IR_FOREIGN_KEY",
                f"IR table '{name}' has a malformed foreign key: {fk!r}.",
                hint="Each foreign key is [local_column, referenced_table, referenced_column].",
            )
        fks.append(ForeignKey(*fk))
    return TableDescriptor(
        name=name,
        headers=tuple(headers),
        primary_key=d.get("primary_key"),
        foreign_keys=tuple(fks),
    )


def graph_to_ir(g: SchemaGraph) -> Dict[str, Any]:
    """Serialize a graph to a JSON/YAML-friendly dict: a node list and an edge list by node ordinal."""
    return {
        "csvgraph": 0,
        "nodes": [_table_to_ir(t) for t in g.nodes],
        "edges": [[e.source, e.target, list(e.columns)] for e in g.edges],
    }


def graph_from_ir(ir: Dict[str, Any]) -> SchemaGraph:
    if not isinstance(ir, dict):
        raise CsvGraphUserError(
            "E_IR_ROOT",
            "IR must be a mapping at the root.",
            hint="Expected keys: csvgraph, nodes, edges.",
        )
    version = ir.get("csvgraph", 0)
    if version != 0:
        raise CsvGraphUserError(
            "E_IR_VERSION",
            f"Unsupported IR version: {version!r}.",
            hint="Supported: csvgraph: 0. Regenerate the cache with 'csvgraph graph --regenerate'.",
        )

    nodes = ir.get("nodes") or []
    edges = ir.get("edges") or []
    if not isinstance(nodes, list) or not isinstance(edges, list):
        raise CsvGraphUserError(
            "E_IR_GRAPH",
            "IR nodes and edges must be lists.",
            hint="Example: {nodes: [...], edges: [[0, 1, [user_id, id]]]}",
        )

    g = SchemaGraph()
    for n in nodes:
        g.add_node(_table_from_ir(n))
    for i, e in enumerate(edges):
        try:
            source, target, (local, ref) = e
            g.add_edge(int(source), int(target), (local, ref))
        except (TypeError, ValueError, IndexError) as ex:
            raise CsvGraphUserError(
                "E_IR_EDGE",
                f"IR edge #{i} is malformed: {e!r}.",
                hint="Each edge is [source_index, target_index, [local_column, referenced_column]].",
            ) from ex
    return g
