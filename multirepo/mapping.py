"""Row materialization: column-name -> value rows into typed objects."""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from functools import lru_cache
from typing import Any, TypeVar

from pydantic import BaseModel
from sqlalchemy import inspect
from sqlalchemy.exc import NoInspectionAvailable

T = TypeVar("T")


def _mapped_attribute_names(cls: type) -> list[str] | None:
    """Column attribute keys of a SQLAlchemy mapped class, or None if unmapped."""
    try:
        mapper = inspect(cls)
    except NoInspectionAvailable:
        return None
    return [attr.key for attr in mapper.column_attrs]


def _attribute_names(cls: type) -> list[str]:
    if issubclass(cls, BaseModel):
        return list(cls.model_fields)
    if dataclasses.is_dataclass(cls):
        return [f.name for f in dataclasses.fields(cls)]
    mapped = _mapped_attribute_names(cls)
    if mapped is not None:
        return mapped
    names: list[str] = []
    for klass in reversed(cls.__mro__):
        for name in getattr(klass, "__annotations__", {}):
            if not name.startswith("_") and name not in names:
                names.append(name)
    return names


@lru_cache(maxsize=256)
def field_map(cls: type) -> dict[str, str]:
    """Lower-cased column name -> attribute name for ``cls``. Built once per type."""
    return {name.lower(): name for name in _attribute_names(cls)}


def resolve_field(cls: type, name: str) -> str:
    """Return the attribute of ``cls`` matching ``name`` case-insensitively.

    Raises:
        ValueError: If ``cls`` has no such attribute.
    """
    attribute = field_map(cls).get(name.lower())
    if attribute is None:
        msg = f"{cls.__name__} has no field matching '{name}'"
        raise ValueError(msg)
    return attribute


def to_entity(row: Mapping[str, Any], cls: type[T]) -> T:
    """Materialize a row into ``cls`` by case-insensitive name matching.

    Columns without a matching attribute are ignored, as are attributes
    without a matching column (they keep their defaults, or None for
    required dataclass fields).
    """
    fields = field_map(cls)
    values: dict[str, Any] = {}
    for column, value in row.items():
        attribute = fields.get(str(column).lower())
        if attribute is not None:
            values[attribute] = value

    if issubclass(cls, BaseModel):
        return cls.model_construct(**values)

    if dataclasses.is_dataclass(cls):
        kwargs = {}
        for f in dataclasses.fields(cls):
            if not f.init:
                continue
            if f.name in values:
                kwargs[f.name] = values[f.name]
            elif f.default is dataclasses.MISSING and f.default_factory is dataclasses.MISSING:
                kwargs[f.name] = None
        return cls(**kwargs)

    entity = cls()
    for attribute, value in values.items():
        setattr(entity, attribute, value)
    return entity
