"""Composite multi-key ordering.

One key selector drives three outputs: ``ORDER BY`` clauses on a SQLAlchemy
``Select``, a stable in-memory sort of a sequence, and the ``ORDER BY`` text
fragment consumed by the page-query planner for raw SQL.

The first key is the primary order. Each following key only breaks ties left
by the keys before it. Directions are matched to keys by position: extra
directions are ignored, missing ones default to ascending.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, replace
from functools import lru_cache
from operator import attrgetter
from typing import Any, TypeVar

from sqlalchemy import Select
from sqlalchemy.orm import QueryableAttribute
from sqlalchemy.sql.elements import ColumnElement

from multirepo.mapping import resolve_field
from multirepo.schemas.paging import Direction, OrderSpec, OrderTerm

T = TypeVar("T")

# Raw order text that already carries a direction (or a comment) is used verbatim.
_EXPLICIT_DIRECTION = re.compile(r"/\*.*?\*/|\b(?:ASC|DESC)\b", re.IGNORECASE | re.DOTALL)


@dataclass(frozen=True)
class SortKey:
    """Typed sort-key descriptor: an accessor closure plus a direction.

    ``column`` holds the SQL expression when the key is bound to a mapped
    column, so the same descriptor can order a ``Select``.
    """

    name: str
    accessor: Callable[[Any], Any]
    direction: Direction = Direction.ASCENDING
    column: Any = None

    def with_direction(self, direction: Direction) -> SortKey:
        return replace(self, direction=direction)

    def clause(self):
        if self.column is None:
            msg = f"Sort key '{self.name}' is not bound to a column"
            raise ValueError(msg)
        return self.column.desc() if self.direction is Direction.DESCENDING else self.column.asc()


def _field_accessor(name: str) -> Callable[[Any], Any]:
    """Read ``name`` from a mapping (case-insensitive fallback) or an attribute."""
    lowered = name.lower()

    def get(item):
        if isinstance(item, Mapping):
            if name in item:
                return item[name]
            for key, value in item.items():
                if isinstance(key, str) and key.lower() == lowered:
                    return value
            raise KeyError(name)
        return getattr(item, name)

    return get


@lru_cache(maxsize=256)
def _entity_sort_keys(entity: type, fields: tuple[str, ...]) -> tuple[SortKey, ...]:
    keys = []
    for name in fields:
        attribute = resolve_field(entity, name)
        column = getattr(entity, attribute, None)
        keys.append(
            SortKey(
                name=attribute,
                accessor=attrgetter(attribute),
                column=column if isinstance(column, QueryableAttribute) else None,
            )
        )
    return tuple(keys)


def sort_keys(entity: type, *fields: str, directions: Sequence[Direction] = ()) -> tuple[SortKey, ...]:
    """Build sort keys for ``entity``'s fields. Resolution is cached per entity type."""
    keys = _entity_sort_keys(entity, tuple(fields))
    return tuple(key.with_direction(direction) for key, direction in _align(keys, directions))


def _as_keys(key_selector) -> tuple:
    if key_selector is None:
        return ()
    if isinstance(key_selector, (tuple, list)):
        return tuple(key_selector)
    return (key_selector,)


def _align(keys: Sequence, directions: Sequence[Direction | str]) -> list[tuple[Any, Direction]]:
    """Pair each key with its direction by position."""
    aligned = []
    for i, key in enumerate(keys):
        if i < len(directions):
            direction = Direction(directions[i])
        elif isinstance(key, (SortKey, OrderTerm)):
            direction = key.direction
        else:
            direction = Direction.ASCENDING
        aligned.append((key, direction))
    return aligned


def _select_column(query: Select, name: str):
    lowered = name.lower()
    for column in query.selected_columns:
        for candidate in (getattr(column, "key", None), getattr(column, "name", None)):
            if isinstance(candidate, str) and candidate.lower() == lowered:
                return column
    msg = f"Select has no column matching '{name}'"
    raise ValueError(msg)


def _resolve(key, query) -> SortKey:
    if isinstance(key, SortKey):
        if isinstance(query, Select) and key.column is None:
            return replace(key, column=_select_column(query, key.name))
        return key
    if isinstance(key, str):
        if not key.strip():
            msg = "Order field name must not be empty"
            raise ValueError(msg)
        column = _select_column(query, key) if isinstance(query, Select) else None
        return SortKey(name=key, accessor=_field_accessor(key), column=column)
    if isinstance(key, (ColumnElement, QueryableAttribute)):
        name = getattr(key, "key", None) or str(key)
        return SortKey(name=name, accessor=_field_accessor(name), column=key)
    if callable(key):
        return SortKey(name=getattr(key, "__name__", "key"), accessor=key)
    msg = f"Unsupported sort key: {key!r}"
    raise TypeError(msg)


def _nulls_first(accessor: Callable[[Any], Any], descending: bool = False) -> Callable[[Any], tuple]:
    # The flag is inverted for descending keys so the reversed sort still puts None first.
    def key(item):
        value = accessor(item)
        return ((value is None) if descending else (value is not None), value)

    return key


def sort_items(items: Iterable[T], keys: Sequence[SortKey]) -> list[T]:
    """Stable multi-key sort. Later keys only reorder items tied on earlier keys."""
    ordered = list(items)
    # Sorting by the least significant key first leaves ties of the more
    # significant keys in the order established by the less significant ones.
    for key in reversed(keys):
        descending = key.direction is Direction.DESCENDING
        ordered.sort(key=_nulls_first(key.accessor, descending), reverse=descending)
    return ordered


def apply_order(query, key_selector, directions: Sequence[Direction | str] = ()):
    """Order ``query`` by a single key or a tuple of keys.

    Args:
        query: A SQLAlchemy ``Select`` or any iterable of rows/objects.
        key_selector: A key or tuple of keys. A key is a field name, a column
            expression, a callable accessor or a ``SortKey``.
        directions: Directions matched to keys by position.

    Returns:
        The ordered ``Select``, or a new ordered list. With no keys the query
        is returned unchanged.
    """
    keys = _as_keys(key_selector)
    if not keys:
        return query

    resolved = [_resolve(key, query).with_direction(direction) for key, direction in _align(keys, directions)]
    if isinstance(query, Select):
        return query.order_by(*(key.clause() for key in resolved))
    return sort_items(query, resolved)


def order_terms(key_selector, directions: Sequence[Direction | str] = ()) -> OrderSpec:
    """Reduce named keys to an OrderSpec for raw SQL rendering."""
    terms = []
    for key, direction in _align(_as_keys(key_selector), directions):
        if isinstance(key, str):
            name = key
        elif isinstance(key, SortKey):
            name = key.name
        elif isinstance(key, (ColumnElement, QueryableAttribute)):
            # Labels carry their label as key; anonymous expressions have none.
            name = getattr(key, "key", None)
            if not isinstance(name, str) or not name:
                msg = f"Cannot render sort key {key!r} as SQL: expression has no name"
                raise TypeError(msg)
        elif isinstance(key, OrderTerm):
            name = key.field
        else:
            msg = f"Cannot render sort key {key!r} as SQL"
            raise TypeError(msg)
        terms.append(OrderTerm(name, direction))
    return tuple(terms)


def render_order_by(spec: OrderSpec) -> str:
    """Render ``ORDER BY f1 ASC, f2 DESC``; empty string for an empty spec."""
    if not spec:
        return ""
    return "ORDER BY " + ", ".join(f"{term.field} {term.direction.keyword}" for term in spec)


def order_clause(order_field: str | OrderSpec | None, ascending: bool = True) -> str:
    """Render the ORDER BY fragment for a raw field string or an OrderSpec.

    A raw string that already names ASC/DESC (or contains a comment) is used
    verbatim; otherwise the direction from ``ascending`` is appended.
    """
    if not order_field:
        return ""
    if not isinstance(order_field, str):
        return render_order_by(tuple(order_field))
    order_field = order_field.strip()
    if not order_field:
        return ""
    if _EXPLICIT_DIRECTION.search(order_field):
        return f"ORDER BY {order_field}"
    return f"ORDER BY {order_field} {'ASC' if ascending else 'DESC'}"
