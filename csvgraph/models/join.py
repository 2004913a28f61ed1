"""Equality join of two CSV row streams.

The right input is read once into an in-memory index (key -> rows, in file order);
the left input is streamed row by row and never held in memory.
"""
from __future__ import annotations

import enum
import logging
import time
from typing import Dict, Iterator, List, Optional, Set, Tuple

from petl.util.base import Table

from csvgraph.errors import ColumnNotFound, CsvGraphUserError
from csvgraph.models.sources import read_header
from csvgraph.models.table import TableDescriptor, joined_header

logger = logging.getLogger(__name__)


class JoinType(enum.Enum):
    INNER = "inner"
    LEFT = "left"
    RIGHT = "right"
    FULL = "full"

    @classmethod
    def parse(cls, value) -> "JoinType":
        if isinstance(value, JoinType):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise CsvGraphUserError(
                "E_JOIN_TYPE",
                f"Unknown join type {value!r}.",
                hint="Supported join types: " + ", ".join(t.value for t in cls),
            ) from None

    @property
    def keeps_left_unmatched(self) -> bool:
        return self in (JoinType.LEFT, JoinType.FULL)

    @property
    def keeps_right_unmatched(self) -> bool:
        return self in (JoinType.RIGHT, JoinType.FULL)


def join(
    descriptor: TableDescriptor,
    left,
    right,
    left_key: str,
    right_key: str,
    how=JoinType.INNER,
    *,
    rsuffix: str = "right",
) -> "JoinView":
    """Join `left` (described by `descriptor`) with `right` on `left_key == right_key`.

    Both inputs are PETL tables whose first row is the header. Key columns are resolved
    eagerly so a missing column fails before any output is produced; the rows themselves
    are only read when the returned view is iterated.
    """
    how = JoinType.parse(how)
    left_index = descriptor.column_index(left_key, side="left")

    right_header = read_header(right)
    if right_key not in right_header:
        raise ColumnNotFound("right", right_key, available=right_header)

    return JoinView(
        left,
        right,
        left_header=descriptor.headers,
        left_index=left_index,
        right_key=right_key,
        how=how,
        rsuffix=rsuffix,
    )


class JoinView(Table):
    def __init__(self, left, right, *, left_header, left_index: int, right_key: str,
                 how: JoinType, rsuffix: str = "right"):
        self.left = left
        self.right = right
        self.left_header = tuple(left_header)
        self.left_index = left_index
        self.right_key = right_key
        self.how = how
        self.rsuffix = rsuffix

    def __iter__(self) -> Iterator[tuple]:
        return iterjoin(self.left, self.right, self.left_header, self.left_index,
                        self.right_key, self.how, self.rsuffix)


def build_right_index(rows, right_index: int) -> Dict[str, List[tuple]]:
    """Group right rows by trimmed key value, keeping file order inside each key."""
    index: Dict[str, List[tuple]] = {}
    skipped = 0
    for row in rows:
        if len(row) <= right_index:
            skipped += 1
            continue
        index.setdefault(row[right_index].strip(), []).append(tuple(row))
    if skipped:
        logger.debug("skipped %d right rows shorter than the key position", skipped)
    return index


def _without(row: tuple, position: int) -> tuple:
    return row[:position] + row[position + 1:]


def iterjoin(left, right, left_header: Tuple[str, ...], left_index: int, right_key: str,
             how: JoinType, rsuffix: str) -> Iterator[tuple]:
    started = time.perf_counter()

    rit = iter(right)
    right_header = tuple(next(rit, ()))
    if right_key not in right_header:
        raise ColumnNotFound("right", right_key, available=right_header)
    right_index = right_header.index(right_key)

    header, _ = joined_header(left_header, right_header, right_key, suffix=rsuffix)
    yield tuple(header)

    index = build_right_index(rit, right_index)
    right_pad = ("",) * (len(right_header) - 1)
    left_pad = ("",) * len(left_header)

    seen: Set[str] = set()
    skipped = 0
    lit = iter(left)
    next(lit, None)  # header; the descriptor is authoritative
    for row in lit:
        row = tuple(row)
        if len(row) <= left_index:
            skipped += 1
            continue
        key = row[left_index].strip()
        seen.add(key)
        matches = index.get(key)
        if matches:
            for r in matches:
                yield row + _without(r, right_index)
        elif how.keeps_left_unmatched:
            yield row + right_pad
    if skipped:
        logger.debug("skipped %d left rows shorter than the key position", skipped)

    if how.keeps_right_unmatched:
        for key in sorted(index):
            if key in seen:
                continue
            for r in index[key]:
                yield left_pad + _without(r, right_index)

    logger.debug("join took %.3fs", time.perf_counter() - started)
