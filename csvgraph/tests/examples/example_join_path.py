from csvgraph import SchemaGraph, Sink, join_along_path
from csvgraph.graph import describe_path, to_dot
from csvgraph.models.sources import row_source_for
from csvgraph.sql import parse_sql_file
from csvgraph.tests import DATA_DIR

g = SchemaGraph.build(parse_sql_file(DATA_DIR / "schema.sql"))
print(to_dot(g))

path = g.shortest_path(g.find_node("comments"), g.find_node("users"))
print(describe_path(g, path))

ctx = join_along_path(g, "comments", "users", row_source_for(DATA_DIR), Sink(DATA_DIR / "out_join_path.csv"))
for kind, info in ctx.checkpoints:
    print(kind, info)
