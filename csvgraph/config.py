from __future__ import annotations

from dataclasses import asdict, dataclass, field
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from csvgraph.errors import CsvGraphUserError
from csvgraph.graph import SchemaGraph
from csvgraph.schema import graph_from_ir, graph_to_ir
from csvgraph.util import _norm_path

logger = logging.getLogger(__name__)

CONFIG_DIR_NAME = ".csvgraph"
CONFIG_FILE_NAME = "config.yaml"
GRAPH_CACHE_NAME = "graph.json"


@dataclass
class GraphvizSettings:
    engine: str = "dot"
    format: str = "png"


@dataclass
class Config:
    """Settings stored in `.csvgraph/config.yaml`. Relative paths resolve against the project directory."""
    output_file: str = "output.csv"
    output_path: str = ".csvgraph/generated-files"
    source_path: str = "./"
    graphviz: GraphvizSettings = field(default_factory=GraphvizSettings)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "Config":
        if d is None:
            return cls()
        if not isinstance(d, dict):
            raise CsvGraphUserError(
                "E_CONFIG_TYPE",
                "Config file must hold a mapping.",
                hint="Run 'csvgraph init --force' to write a fresh config.",
            )
        known = {k: v for k, v in d.items() if k in cls.__dataclass_fields__ and k != "graphviz"}
        for k, v in known.items():
            if not isinstance(v, str):
                raise CsvGraphUserError(
                    "E_CONFIG_VALUE",
                    f"Config key '{k}' must be a string, got {type(v).__name__}.",
                    hint=f"Example: {k}: {getattr(cls(), k)}",
                )
        gv = d.get("graphviz") or {}
        if not isinstance(gv, dict):
            raise CsvGraphUserError(
                "E_CONFIG_VALUE",
                "Config key 'graphviz' must be a mapping.",
                hint="Example: graphviz: {engine: dot, format: png}",
            )
        graphviz = GraphvizSettings(**{k: str(v) for k, v in gv.items() if k in ("engine", "format")})
        return cls(graphviz=graphviz, **known)

    def resolve(self, key: str, base_dir: Path) -> Path:
        return Path(_norm_path(getattr(self, key), base_dir=base_dir))


def config_dir(base_dir: Optional[Union[str, Path]] = None, *, create: bool = True) -> Path:
    """The `.csvgraph` directory under `base_dir` (default: working directory)."""
    d = Path(base_dir or Path.cwd()) / CONFIG_DIR_NAME
    if create:
        try:
            d.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CsvGraphUserError(
                "E_CONFIG_DIR",
                f"Failed to create config directory '{d}': {e}",
                hint="Check permissions of the working directory.",
            ) from e
    return d


def write_config(cfg: Config, cfg_dir: Path) -> Path:
    path = cfg_dir / CONFIG_FILE_NAME
    path.write_text(yaml.safe_dump(cfg.to_dict(), sort_keys=False), encoding="utf-8")
    return path


def read_config(cfg_dir: Path) -> Config:
    path = cfg_dir / CONFIG_FILE_NAME
    if not path.exists():
        return Config()
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise CsvGraphUserError(
            "E_CONFIG_PARSE",
            f"Failed to parse {path}: {e}",
            hint="Check indentation and quoting, or run 'csvgraph init --force'.",
        ) from e
    return Config.from_dict(data)


def ensure_config(cfg_dir: Path) -> Config:
    """Read the config, writing the defaults first if the file is missing."""
    if not (cfg_dir / CONFIG_FILE_NAME).exists():
        write_config(Config(), cfg_dir)
    return read_config(cfg_dir)


def find_sql_schema(directory: Optional[Union[str, Path]] = None) -> Optional[Path]:
    """First `*.sql` file in `directory`, in name order."""
    d = Path(directory or Path.cwd())
    candidates = sorted(p for p in d.glob("*.sql") if p.is_file())
    return candidates[0] if candidates else None


# ---------- graph cache ----------

def graph_cache_exists(cfg_dir: Path) -> bool:
    return (cfg_dir / GRAPH_CACHE_NAME).exists()


def write_graph_cache(g: SchemaGraph, cfg_dir: Path) -> Path:
    path = cfg_dir / GRAPH_CACHE_NAME
    path.write_text(json.dumps(graph_to_ir(g)), encoding="utf-8")
    logger.debug("graph cache written to %s", path)
    return path


def read_graph_cache(cfg_dir: Path) -> SchemaGraph:
    path = cfg_dir / GRAPH_CACHE_NAME
    try:
        ir = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise CsvGraphUserError(
            "E_GRAPH_CACHE_MISSING",
            f"Graph cache not found: {path}",
            hint="Run 'csvgraph graph --regenerate' or 'csvgraph init'.",
        ) from e
    except ValueError as e:
        raise CsvGraphUserError(
            "E_GRAPH_CACHE_PARSE",
            f"Failed to deserialize graph cache {path}: {e}",
            hint="Run 'csvgraph graph --regenerate' to rebuild it.",
        ) from e
    return graph_from_ir(ir)
