import pytest
import yaml

from csvgraph import CsvGraphUserError, SchemaGraph
from csvgraph.config import (
    Config,
    config_dir,
    ensure_config,
    find_sql_schema,
    graph_cache_exists,
    read_config,
    read_graph_cache,
    write_config,
    write_graph_cache,
)
from csvgraph.sql import parse_sql_file
from csvgraph.tests import DATA_DIR


def test_config_dir_is_created(tmp_path):
    """config_dir creates .csvgraph under the base directory."""
    d = config_dir(tmp_path)
    assert d == tmp_path / ".csvgraph"
    assert d.is_dir()


def test_missing_config_reads_defaults(tmp_path):
    """a missing config.yaml reads as the default Config."""
    cfg = read_config(config_dir(tmp_path))
    assert cfg == Config()
    assert cfg.output_file == "output.csv"
    assert cfg.graphviz.engine == "dot"


def test_ensure_config_writes_defaults(tmp_path):
    """ensure_config writes the defaults as YAML."""
    d = config_dir(tmp_path)
    ensure_config(d)
    data = yaml.safe_load((d / "config.yaml").read_text(encoding="utf-8"))
    assert data["source_path"] == "./"
    assert data["graphviz"] == {"engine": "dot", "format": "png"}


def test_config_roundtrip_and_unknown_keys(tmp_path):
    """config survives write/read and unknown keys are ignored."""
    d = config_dir(tmp_path)
    cfg = Config(output_file="joined.csv", source_path="data")
    cfg.graphviz.format = "pdf"
    write_config(cfg, d)
    assert read_config(d) == cfg

    (d / "config.yaml").write_text("source_path: csvs\nlegacy_key: 1\n", encoding="utf-8")
    cfg = read_config(d)
    assert cfg.source_path == "csvs"
    assert cfg.output_file == "output.csv"


def test_config_resolve_relative_to_base(tmp_path):
    """relative config paths resolve against the base directory."""
    cfg = Config(source_path="data")
    assert cfg.resolve("source_path", tmp_path) == (tmp_path / "data").resolve()


def test_bad_config_values(tmp_path):
    """bad values, non-mapping roots and broken YAML get distinct codes."""
    d = config_dir(tmp_path)
    (d / "config.yaml").write_text("output_file: [a, b]\n", encoding="utf-8")
    with pytest.raises(CsvGraphUserError) as ex:
        read_config(d)
    assert getattr(ex.value, "code", None) == "E_CONFIG_VALUE"

    (d / "config.yaml").write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(CsvGraphUserError) as ex:
        read_config(d)
    assert getattr(ex.value, "code", None) == "E_CONFIG_TYPE"

    (d / "config.yaml").write_text("output_file: 'unterminated\n", encoding="utf-8")
    with pytest.raises(CsvGraphUserError) as ex:
        read_config(d)
    assert getattr(ex.value, "code", None) == "E_CONFIG_PARSE"


def test_find_sql_schema(tmp_path):
    """find_sql_schema picks the first .sql file by name."""
    assert find_sql_schema(tmp_path) is None
    (tmp_path / "b.sql").write_text("", encoding="utf-8")
    (tmp_path / "a.sql").write_text("", encoding="utf-8")
    assert find_sql_schema(tmp_path) == tmp_path / "a.sql"


def test_graph_cache_roundtrip(tmp_path):
    """the graph cache keeps node and edge counts."""
    d = config_dir(tmp_path)
    assert not graph_cache_exists(d)
    g = SchemaGraph.build(parse_sql_file(DATA_DIR / "schema.sql"))
    write_graph_cache(g, d)
    assert graph_cache_exists(d)
    g2 = read_graph_cache(d)
    assert (g2.node_count, g2.edge_count) == (g.node_count, g.edge_count)


def test_graph_cache_errors(tmp_path):
    """a missing or corrupt graph cache is a user error."""
    d = config_dir(tmp_path)
    with pytest.raises(CsvGraphUserError) as ex:
        read_graph_cache(d)
    assert getattr(ex.value, "code", None) == "E_GRAPH_CACHE_MISSING"

    (d / "graph.json").write_text("{not json", encoding="utf-8")
    with pytest.raises(CsvGraphUserError) as ex:
        read_graph_cache(d)
    assert getattr(ex.value, "code", None) == "E_GRAPH_CACHE_PARSE"
