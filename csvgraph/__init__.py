from csvgraph.errors import CsvGraphUserError
from csvgraph.graph import SchemaGraph
from csvgraph.models.join import JoinType, join
from csvgraph.models.path_join import PathJoin, join_along_path
from csvgraph.models.pipeline import Pipeline
from csvgraph.models.sinks import Sink
from csvgraph.models.sources import Source
from csvgraph.models.table import ForeignKey, TableDescriptor
from csvgraph.models.transforms import Transform, concatenate, drop, project

__version__ = "0.1.0"

__all__ = [
    "CsvGraphUserError",
    "ForeignKey",
    "JoinType",
    "PathJoin",
    "Pipeline",
    "SchemaGraph",
    "Sink",
    "Source",
    "TableDescriptor",
    "Transform",
    "concatenate",
    "drop",
    "join",
    "join_along_path",
    "project",
]
