"""Undirected graph of tables linked by foreign keys.

Nodes live in a list and are addressed by their position; edges are
`(source, target, (local_column, referenced_column))` triples. Neighbours are
explored in ascending node index, which makes path queries deterministic.
"""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, NamedTuple, Tuple

from csvgraph.errors import PathNotFound, TableNotFound
from csvgraph.models.table import TableDescriptor


class Edge(NamedTuple):
    source: int
    target: int
    columns: Tuple[str, str]


@dataclass
class SchemaGraph:
    nodes: List[TableDescriptor] = field(default_factory=list)
    edges: List[Edge] = field(default_factory=list)

    # ---------- construction ----------
    def add_node(self, table: TableDescriptor) -> int:
        self.nodes.append(table)
        return len(self.nodes) - 1

    def add_edge(self, source: int, target: int, columns: Tuple[str, str]) -> int:
        for n in (source, target):
            if not 0 <= n < len(self.nodes):
                raise IndexError(f"node index {n} out of range")
        self.edges.append(Edge(source, target, (columns[0], columns[1])))
        return len(self.edges) - 1

    @classmethod
    def build(cls, tables: Iterable[TableDescriptor]) -> "SchemaGraph":
        """One node per table; one edge per foreign key whose target table and column exist."""
        g = cls()
        by_name: Dict[str, int] = {}
        for t in tables:
            idx = g.add_node(t)
            by_name.setdefault(t.name, idx)

        for src, table in enumerate(g.nodes):
            for fk in table.foreign_keys:
                dst = by_name.get(fk.ref_table)
                if dst is None:
                    continue
                if not g.nodes[dst].has_column(fk.ref_column):
                    continue
                g.add_edge(src, dst, (fk.column, fk.ref_column))
        return g

    # ---------- queries ----------
    @property
    def node_count(self) -> int:
        return len(self.nodes)

    @property
    def edge_count(self) -> int:
        return len(self.edges)

    def find_node(self, name: str) -> int:
        for i, t in enumerate(self.nodes):
            if t.name == name:
                return i
        raise TableNotFound(name)

    def neighbors(self, node: int) -> List[int]:
        return self.adjacency()[node]

    def adjacency(self) -> Dict[int, List[int]]:
        adj: Dict[int, set] = {i: set() for i in range(len(self.nodes))}
        for e in self.edges:
            adj[e.source].add(e.target)
            adj[e.target].add(e.source)
        return {i: sorted(ns) for i, ns in adj.items()}

    def shortest_path(self, start: int, end: int) -> List[int]:
        """Breadth-first shortest path, `start` and `end` included."""
        if start == end:
            return [start]

        adj = self.adjacency()
        prev: Dict[int, int] = {start: start}
        queue = deque([start])
        while queue:
            current = queue.popleft()
            if current == end:
                break
            for n in adj[current]:
                if n not in prev:
                    prev[n] = current
                    queue.append(n)

        if end not in prev:
            raise PathNotFound(self.nodes[start].name, self.nodes[end].name)

        path = [end]
        while path[-1] != start:
            path.append(prev[path[-1]])
        path.reverse()
        return path

    def path_names(self, path: Iterable[int]) -> List[str]:
        return [self.nodes[i].name for i in path]

    def minimum_spanning_tree(self) -> "SchemaGraph":
        """Kruskal over unit weights: edges are taken in insertion order, first one wins.

        Every node is kept, so a disconnected schema yields a spanning forest.
        """
        parent = list(range(len(self.nodes)))

        def find(x: int) -> int:
            while parent[x] != x:
                parent[x] = parent[parent[x]]
                x = parent[x]
            return x

        tree = SchemaGraph(nodes=list(self.nodes))
        for e in self.edges:
            ra, rb = find(e.source), find(e.target)
            if ra == rb:
                continue
            parent[rb] = ra
            tree.edges.append(e)
        return tree


def to_dot(g: SchemaGraph) -> str:
    """Graphviz description: record-shaped nodes listing columns, edges labelled by column pair."""
    lines = [
        "graph G {",
        '  node [shape=record, fontname="Arial"];',
        "  edge [fontsize=12];",
        "  nodesep=1.0;",
        "  edgesep=0.75;",
        "  rankdir=TB;",
    ]
    for i, table in enumerate(g.nodes):
        columns = "|".join(table.headers)
        lines.append(
            f"  {i} [label=<{{<b><font point-size='16' color='red'>{table.name}</font></b>|{columns}}}>];"
        )
    for e in g.edges:
        lines.append(f'  {e.source} -- {e.target} [label="({e.columns[0]}, {e.columns[1]})"];')
    lines.append("}")
    return "\n".join(lines) + "\n"


def describe_path(g: SchemaGraph, path: List[int]) -> str:
    return " -> ".join(g.path_names(path))

