"""Reassemble the result sets of a paged batch into (items, total)."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from decimal import Decimal
from typing import Any

from multirepo.mapping import to_entity

logger = logging.getLogger(__name__)

TOTAL_COLUMN = "TOTAL"

# Projections that take a row (or its first column) as is.
_PLAIN_TYPES = (str, int, float, bool, bytes, Decimal)


def _is_plain(projection) -> bool:
    if projection is None or projection is object:
        return True
    if not isinstance(projection, type):
        return False
    return issubclass(projection, Mapping) or issubclass(projection, _PLAIN_TYPES)


def read_total(rows: Sequence[Mapping[str, Any]]) -> int:
    """Total from the count result set; 0 when the set is empty or has no TOTAL column."""
    if not rows:
        logger.warning("Count result set is empty, reporting total 0")
        return 0
    for column, value in rows[0].items():
        if str(column).upper() == TOTAL_COLUMN:
            return int(value or 0)
    logger.warning("Count result set has no %s column, reporting total 0", TOTAL_COLUMN)
    return 0


def project_row(row: Mapping[str, Any], projection=dict):
    """Bind one row to ``projection``."""
    if projection is None or projection is object:
        return dict(row)
    if isinstance(projection, type) and issubclass(projection, Mapping):
        return dict(row)
    if _is_plain(projection):
        value = next(iter(row.values()), None)
        return value if value is None else projection(value)
    return to_entity(row, projection)


def correlate(result_sets: Sequence[Sequence[Mapping[str, Any]]], projection=dict) -> tuple[list, int]:
    """Map the result sets of a count + page batch to (items, total).

    Args:
        result_sets: Row lists in execution order. The first holds the total,
            the last holds the page.
        projection: Type each page row is bound to. Mappings and scalar types
            bind directly; other types are materialized by field name.

    Returns:
        Tuple of (page items, total row count).

    Raises:
        ValueError: If fewer than two result sets are given.
    """
    if len(result_sets) < 2:
        msg = f"Expected a count and a page result set, got {len(result_sets)}"
        raise ValueError(msg)
    total = read_total(result_sets[0])
    items = [project_row(row, projection) for row in result_sets[-1]]
    return items, total
