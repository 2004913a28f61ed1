from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import List, Optional

import colorlog
import petl as etl

from csvgraph import __version__
from csvgraph.config import (
    CONFIG_FILE_NAME,
    Config,
    config_dir,
    ensure_config,
    find_sql_schema,
    graph_cache_exists,
    read_graph_cache,
    write_config,
    write_graph_cache,
)
from csvgraph.errors import CsvGraphUserError
from csvgraph.graph import SchemaGraph, describe_path, to_dot
from csvgraph.models.join import JoinType
from csvgraph.models.path_join import PathJoin
from csvgraph.models.pipeline import Pipeline
from csvgraph.models.sinks import Sink
from csvgraph.models.sources import Source, row_source_for
from csvgraph.models.transforms import Transform
from csvgraph.render import SUPPORTED_FORMATS, open_file, run_dot, save_dot_file
from csvgraph.sql import parse_sql_file
from csvgraph.util import display_relative_path, table_path

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
    log_format = "%(asctime)s:%(levelname)s:%(name)s: %(message)s"
    log_colors = {
        "DEBUG": "cyan",
        "INFO": "green",
        "WARNING": "yellow",
        "ERROR": "red",
        "CRITICAL": "bold_red",
    }
    # stderr, so CSV written to stdout stays pipeable
    stream_handler = colorlog.StreamHandler()
    formatter = colorlog.ColoredFormatter(f"%(log_color)s{log_format}", log_colors=log_colors)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)
    if quiet:
        root.setLevel(logging.WARNING)
    else:
        root.setLevel(logging.DEBUG if verbose else logging.INFO)


# ---------- shared helpers ----------

def _base_dir(args: argparse.Namespace) -> Path:
    return Path(args.directory).resolve() if args.directory else Path.cwd()


def _load_config(args: argparse.Namespace) -> Config:
    cfg = ensure_config(config_dir(_base_dir(args)))
    if args.set_output:
        cfg.output_file = args.set_output
        write_config(cfg, config_dir(_base_dir(args)))
        logger.info("Output file updated successfully to: %s", args.set_output)
    return cfg


def _sink(args: argparse.Namespace, cfg: Config) -> Sink:
    if args.output is None and not args.save:
        return Sink()
    path = Path(args.output or cfg.output_file)
    if not path.is_absolute():
        path = _base_dir(args) / path
    path.parent.mkdir(parents=True, exist_ok=True)
    return Sink(path)


def _source(args: argparse.Namespace, cfg: Config, name: str) -> Source:
    return Source(table_path(cfg.resolve("source_path", _base_dir(args)), name))


def regenerate_graph(base_dir: Path, schema: Optional[Path] = None) -> SchemaGraph:
    schema = schema or find_sql_schema(base_dir)
    if schema is None:
        raise CsvGraphUserError(
            "E_SCHEMA_NOT_FOUND",
            f"No SQL schema found in {base_dir}.",
            hint="Put a .sql file with CREATE TABLE statements in the project directory.",
        )
    logger.info("Generating new graph data from %s.", display_relative_path(schema))
    g = SchemaGraph.build(parse_sql_file(schema))
    path = write_graph_cache(g, config_dir(base_dir))
    logger.info("Graph data (%d tables, %d edges) cached in %s", g.node_count, g.edge_count,
                display_relative_path(path))
    return g


def _render(args: argparse.Namespace, cfg: Config, g: SchemaGraph, name: str, fmt: str) -> None:
    output_dir = cfg.resolve("output_path", _base_dir(args))
    dot_file = save_dot_file(output_dir / f"{name}.dot", to_dot(g))
    if args.no_render:
        return
    image = run_dot(dot_file, output_dir / f"{name}.{fmt}", fmt, cfg.graphviz.engine)
    if not args.no_open:
        open_file(image)


# ---------- commands ----------

def cmd_init(args: argparse.Namespace) -> int:
    base = _base_dir(args)
    cfg_dir = config_dir(base)
    cfg_file = cfg_dir / CONFIG_FILE_NAME
    if cfg_file.exists() and not args.force:
        logger.warning("Config file already exists at %s. Use --force to overwrite.",
                       display_relative_path(cfg_file))
        return 0

    write_config(Config(), cfg_dir)
    logger.info("Configuration file created successfully at %s", display_relative_path(cfg_file))

    schema = find_sql_schema(base)
    if schema is None:
        logger.warning("No SQL schema found in %s.", base)
        return 0
    logger.info("Found SQL schema: %s", display_relative_path(schema))
    regenerate_graph(base, schema)
    return 0


def cmd_path(args: argparse.Namespace) -> int:
    print(f"config file is located here:\n\t{config_dir(_base_dir(args))}")
    return 0


def cmd_graph(args: argparse.Namespace) -> int:
    base = _base_dir(args)
    cfg = _load_config(args)
    cfg_dir = config_dir(base)

    sub = args.graph_command
    if sub == "create":
        schema = Path(args.schema) if args.schema else None
        g = regenerate_graph(base, schema)
        _render(args, cfg, g, "graph", args.format or cfg.graphviz.format)
        return 0

    if args.regenerate or not graph_cache_exists(cfg_dir):
        g = regenerate_graph(base)
    else:
        g = read_graph_cache(cfg_dir)

    if sub is None:
        return 0

    if sub == "shortest-path":
        path = g.shortest_path(g.find_node(args.from_table), g.find_node(args.to_table))
        print(f"Shortest path: {describe_path(g, path)}")
        return 0

    if sub == "mst":
        mst = g.minimum_spanning_tree()
        logger.info("Minimum spanning tree keeps %d of %d edges", mst.edge_count, g.edge_count)
        _render(args, cfg, mst, "mst", args.format or cfg.graphviz.format)
        return 0

    if sub == "display":
        _render(args, cfg, g, "graph", args.format or cfg.graphviz.format)
        return 0

    if sub == "join":
        source_dir = cfg.resolve("source_path", base)
        job = PathJoin(g, args.left_table, args.right_table, row_source_for(source_dir))
        job.run(_sink(args, cfg))
        logger.info("Join operation completed successfully.")
        return 0

    raise CsvGraphUserError("E_CLI_COMMAND", f"Unknown graph command '{sub}'.")


def cmd_csv(args: argparse.Namespace) -> int:
    cfg = _load_config(args)
    sub = args.csv_command

    if sub in ("head", "tail"):
        src = _source(args, cfg, args.file)
        table = src.head(args.lines) if sub == "head" else src.tail(args.lines)
        print(etl.look(table, limit=args.lines))
        return 0

    if sub == "concat":
        if len(args.files) < 2:
            raise CsvGraphUserError(
                "E_CONCAT_PARAMS",
                "At least two files are needed to use the concat command.",
                hint="Example: csvgraph csv concat orders_2023 orders_2024",
            )
        first, *rest = [_source(args, cfg, f) for f in args.files]
        pipe = Pipeline(first).then(Transform("concat", params={"others": rest}))
        message = f"Successfully concatenated {len(args.files)} files"
    elif sub in ("select", "drop"):
        pipe = Pipeline(_source(args, cfg, args.file)).then(Transform(sub, params={"columns": args.columns}))
        verb = "selected" if sub == "select" else "dropped"
        message = f"Successfully {verb} columns {args.columns} from '{args.file}'"
    elif sub == "join":
        right = _source(args, cfg, args.file2)
        pipe = Pipeline(_source(args, cfg, args.file1)).then(
            Transform(
                "join",
                params={
                    "right": right,
                    "left_on": args.left_column,
                    "right_on": args.right_column,
                    "how": args.type,
                    "rsuffix": right.name,
                },
            )
        )
        message = (f"Successfully joined '{args.file1}' and '{args.file2}' "
                   f"on columns '{args.left_column}' and '{args.right_column}'")
    else:
        raise CsvGraphUserError("E_CLI_COMMAND", f"Unknown csv command '{sub}'.")

    pipe.then(_sink(args, cfg)).run()
    logger.info(message)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="csvgraph",
        description="SQL schema analysis and CSV manipulation tool: build a graph of tables from "
                    "their foreign keys, query it, and join CSV files along it.",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    p.add_argument("-q", "--quiet", action="store_true", help="Only log warnings and errors")
    p.add_argument("-C", "--directory", default=None, help="Project directory (defaults to the working directory)")
    p.add_argument("-o", "--output", default=None, help="Write CSV output to this file instead of stdout")
    p.add_argument("-s", "--save", action="store_true", help="Write CSV output to the configured output_file")
    p.add_argument("--set-output", default=None, help="Persist a new default output_file in the config")
    sub = p.add_subparsers(dest="command", required=True)

    p_init = sub.add_parser("init", aliases=["initialize"], help="Initialize csvgraph configuration")
    p_init.add_argument("-f", "--force", action="store_true", help="Overwrite existing config")
    p_init.set_defaults(func=cmd_init)

    p_path = sub.add_parser("path", help="Show path to config directory")
    p_path.set_defaults(func=cmd_path)

    p_graph = sub.add_parser("graph", help="Perform graph operations on the SQL schema")
    p_graph.add_argument("-r", "--regenerate", "--regen", action="store_true", help="Force regeneration of the graph")
    p_graph.add_argument("--no-render", action="store_true", help="Only write the .dot file")
    p_graph.add_argument("--no-open", action="store_true", help="Do not open the rendered file")
    p_graph.set_defaults(func=cmd_graph)
    gsub = p_graph.add_subparsers(dest="graph_command")

    g_create = gsub.add_parser("create", help="Create a graph from a SQL schema")
    g_create.add_argument("schema", nargs="?", default=None, help="Path to SQL schema file")
    g_create.add_argument("-f", "--format", choices=SUPPORTED_FORMATS, default=None)

    g_sp = gsub.add_parser("shortest-path", aliases=["sp", "shortest"],
                           help="Find the shortest path between two tables")
    g_sp.add_argument("from_table", help="Source table")
    g_sp.add_argument("to_table", help="Destination table")

    g_mst = gsub.add_parser("mst", help="Create a minimum spanning tree from the schema")
    g_mst.add_argument("-f", "--format", choices=SUPPORTED_FORMATS, default=None)

    g_display = gsub.add_parser("display", help="Display the graph structure")
    g_display.add_argument("-f", "--format", choices=SUPPORTED_FORMATS, default=None)

    g_join = gsub.add_parser("join", help="Join the CSV files of every table between two tables")
    g_join.add_argument("left_table")
    g_join.add_argument("right_table")

    p_csv = sub.add_parser("csv", help="Handle CSV files")
    p_csv.set_defaults(func=cmd_csv)
    csub = p_csv.add_subparsers(dest="csv_command", required=True)

    for name, help_text in (("head", "Display the first n rows of a CSV file"),
                            ("tail", "Display the last n rows of a CSV file")):
        c = csub.add_parser(name, help=help_text)
        c.add_argument("file", help="Input CSV file (table name)")
        c.add_argument("-n", "--lines", type=int, default=10, help="Number of lines to display")

    c_join = csub.add_parser("join", help="Join two CSV files")
    c_join.add_argument("file1")
    c_join.add_argument("file2")
    c_join.add_argument("left_column")
    c_join.add_argument("right_column")
    c_join.add_argument("-t", "--type", choices=[t.value for t in JoinType], default="inner")

    c_concat = csub.add_parser("concat", help="Concatenate CSV files vertically")
    c_concat.add_argument("files", nargs="+")

    c_select = csub.add_parser("select", help="Select specific columns from a CSV file")
    c_select.add_argument("file")
    c_select.add_argument("columns", nargs="+")

    c_drop = csub.add_parser("drop", help="Drop (remove) specific columns from a CSV file")
    c_drop.add_argument("file")
    c_drop.add_argument("columns", nargs="+")

    return p


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(verbose=bool(args.verbose), quiet=bool(args.quiet))
    if getattr(args, "graph_command", None) in ("sp", "shortest"):
        args.graph_command = "shortest-path"
    try:
        return args.func(args)
    except CsvGraphUserError as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
