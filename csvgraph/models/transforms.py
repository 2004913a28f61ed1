from __future__ import annotations

from dataclasses import dataclass, field
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Type

import petl as etl
from petl.util.base import Table

from csvgraph.errors import CsvGraphUserError
from csvgraph.models.join import JoinType, join
from csvgraph.models.sources import Source, read_header
from csvgraph.models.table import TableDescriptor, joined_header

logger = logging.getLogger(__name__)


# ---------------- Streaming transforms ----------------

def project(descriptor: TableDescriptor, table, columns: Sequence[str]):
    """Keep only `columns`, in the descriptor's header order (not the order given)."""
    keep = descriptor.select(columns).headers
    return etl.cut(table, *keep)


def drop(descriptor: TableDescriptor, table, columns: Sequence[str]):
    """Remove `columns`; every other column is kept in header order."""
    unwanted = set(columns)
    for c in unwanted:
        descriptor.column_index(c)
    return etl.cutout(table, *[h for h in descriptor.headers if h in unwanted])


def concatenate(tables: Sequence[Any]) -> "ConcatView":
    """Header of the first table once, then the data rows of every table in order.

    Later tables are assumed to share the first table's columns; their rows are passed
    through as-is.
    """
    return ConcatView(list(tables))


class ConcatView(Table):
    def __init__(self, tables: List[Any]):
        self.tables = tables

    def __iter__(self) -> Iterator[tuple]:
        header = None
        for i, t in enumerate(self.tables):
            it = iter(t)
            hdr = tuple(next(it, ()))
            if header is None:
                header = hdr
                yield header
            elif hdr != header:
                logger.warning(
                    "input #%d header %s differs from %s; rows are concatenated unchanged",
                    i + 1, list(hdr), list(header),
                )
            for row in it:
                yield tuple(row)


# ---------------- Transform implementation registry ----------------

@dataclass
class TransformContext:
    """Running state handed to each transform: the descriptor of its input table."""
    descriptor: Optional[TableDescriptor] = None


class TransformImpl:
    """Internal implementation for a Transform op.

    Users interact with `Transform(op, params)`.
    Implementations are registered by op name and invoked by `Transform.apply`.
    """

    op: str = ""

    @classmethod
    def validate_params(cls, params: Dict[str, Any], descriptor: Optional[TableDescriptor] = None) -> None:
        return

    @classmethod
    def apply(cls, table, *, params: Dict[str, Any], context: TransformContext):
        raise CsvGraphUserError(
            "E_OP_NOT_IMPL",
            f"Transform op '{cls.op}' is not implemented.",
            hint="Implement it as a TransformImpl and register it.",
        )

    @classmethod
    def output_descriptor(cls, descriptor: Optional[TableDescriptor], params: Dict[str, Any]) -> Optional[
        TableDescriptor]:
        """Describe the output given the input descriptor.

        Return None if it cannot be determined statically.
        """
        return descriptor


TRANSFORM_REGISTRY: Dict[str, Type[TransformImpl]] = {}


def register_transform(op: str) -> Callable[[Type[TransformImpl]], Type[TransformImpl]]:
    """Decorator to register a TransformImpl under an op string."""

    def deco(cls: Type[TransformImpl]) -> Type[TransformImpl]:
        cls.op = op
        TRANSFORM_REGISTRY[op] = cls
        return cls

    return deco


def _require_descriptor(op: str, descriptor: Optional[TableDescriptor]) -> TableDescriptor:
    if descriptor is None:
        raise CsvGraphUserError(
            "E_NO_DESCRIPTOR",
            f"{op} needs the input table's header to resolve columns.",
            hint="Run the transform inside a Pipeline, or pass TransformContext(descriptor=...).",
        )
    return descriptor


def _column_list(op: str, params: Dict[str, Any]) -> List[str]:
    cols = params.get("columns")
    if not isinstance(cols, (list, tuple)) or not cols or not all(isinstance(c, str) for c in cols):
        raise CsvGraphUserError(
            f"E_{op.upper()}_PARAMS",
            f"{op} requires params.columns as a non-empty list of column names.",
            hint=f"Example: Transform('{op}', params={{'columns': ['id', 'name']}})",
        )
    return list(cols)


@register_transform("select")
class SelectTransform(TransformImpl):
    @classmethod
    def validate_params(cls, params: Dict[str, Any], descriptor: Optional[TableDescriptor] = None) -> None:
        cols = _column_list("select", params)
        if descriptor is not None:
            descriptor.select(cols)

    @classmethod
    def apply(cls, table, *, params: Dict[str, Any], context: TransformContext):
        descriptor = _require_descriptor("select", context.descriptor)
        return project(descriptor, table, params["columns"])

    @classmethod
    def output_descriptor(cls, descriptor, params):
        if descriptor is None:
            return None
        return descriptor.select(params.get("columns") or [])


@register_transform("drop")
class DropTransform(TransformImpl):
    @classmethod
    def validate_params(cls, params: Dict[str, Any], descriptor: Optional[TableDescriptor] = None) -> None:
        cols = _column_list("drop", params)
        if descriptor is not None:
            descriptor.drop(cols)

    @classmethod
    def apply(cls, table, *, params: Dict[str, Any], context: TransformContext):
        descriptor = _require_descriptor("drop", context.descriptor)
        return drop(descriptor, table, params["columns"])

    @classmethod
    def output_descriptor(cls, descriptor, params):
        if descriptor is None:
            return None
        return descriptor.drop(params.get("columns") or [])


def _as_table(item):
    """Accept a Source, a CSV path or a PETL table."""
    if isinstance(item, Source):
        return item.table()
    if isinstance(item, (str, Path)):
        return Source(item).table()
    return item


@register_transform("concat")
class ConcatTransform(TransformImpl):
    @classmethod
    def validate_params(cls, params: Dict[str, Any], descriptor: Optional[TableDescriptor] = None) -> None:
        others = params.get("others")
        if not isinstance(others, (list, tuple)) or not others:
            raise CsvGraphUserError(
                "E_CONCAT_PARAMS",
                "concat requires params.others as a non-empty list of tables to append.",
                hint="Example: Transform('concat', params={'others': ['orders_2024.csv']})",
            )

    @classmethod
    def apply(cls, table, *, params: Dict[str, Any], context: TransformContext):
        return concatenate([table] + [_as_table(o) for o in params["others"]])


@register_transform("join")
class JoinTransform(TransformImpl):
    @classmethod
    def validate_params(cls, params: Dict[str, Any], descriptor: Optional[TableDescriptor] = None) -> None:
        if params.get("right") is None:
            raise CsvGraphUserError(
                "E_JOIN_RIGHT",
                "join requires params.right (a Source, CSV path or PETL table).",
                hint="Example: Transform('join', params={'right': 'orders.csv', 'left_on': 'id', 'right_on': 'user_id'})",
            )
        for k in ("left_on", "right_on"):
            if not isinstance(params.get(k), str) or not params.get(k):
                raise CsvGraphUserError(
                    "E_JOIN_PARAMS",
                    f"join requires params.{k} as a single column name.",
                    hint="Only single-column equality joins are supported.",
                )
        JoinType.parse(params.get("how", "inner"))
        if descriptor is not None:
            descriptor.column_index(params["left_on"], side="left")

    @classmethod
    def apply(cls, table, *, params: Dict[str, Any], context: TransformContext):
        descriptor = _require_descriptor("join", context.descriptor)
        right = _as_table(params["right"])
        return join(
            descriptor,
            table,
            right,
            params["left_on"],
            params["right_on"],
            params.get("how", "inner"),
            rsuffix=params.get("rsuffix", "right"),
        )

    @classmethod
    def output_descriptor(cls, descriptor, params):
        if descriptor is None:
            return None
        right_header = read_header(_as_table(params["right"]))
        headers, _ = joined_header(descriptor.headers, right_header, params["right_on"],
                                   suffix=params.get("rsuffix", "right"))
        return TableDescriptor(name=descriptor.name, headers=tuple(headers),
                               primary_key=descriptor.primary_key, foreign_keys=descriptor.foreign_keys)


@dataclass(frozen=True)
class Transform:
    op: str
    params: Dict[str, Any] = field(default_factory=dict)

    def apply(self, table, *, context: TransformContext):
        """Apply this transform to a PETL table, returning a lazy PETL table."""
        impl = TRANSFORM_REGISTRY.get(self.op)
        if impl is None:
            raise CsvGraphUserError(
                "E_OP_NOT_IMPL",
                f"Transform op '{self.op}' is not implemented.",
                hint="Supported ops: " + ", ".join(sorted(TRANSFORM_REGISTRY.keys())),
            )

        impl.validate_params(self.params, descriptor=context.descriptor)
        return impl.apply(table, params=self.params, context=context)

    def output_descriptor(self, descriptor: Optional[TableDescriptor]) -> Optional[TableDescriptor]:
        impl = TRANSFORM_REGISTRY.get(self.op)
        if impl is None:
            return descriptor
        return impl.output_descriptor(descriptor, self.params)

    def __str__(self) -> str:
        return f"Transform(op={self.op}, params={self.params})"
