"""Paging request/result carriers, ordering terms and page arithmetic."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from pydantic import BaseModel, Field

from multirepo.schemas.common import PaginationMeta

T = TypeVar("T")


class Direction(enum.StrEnum):
    ASCENDING = "ascending"
    DESCENDING = "descending"

    @classmethod
    def _missing_(cls, value):
        # Accept "asc"/"desc" and any casing.
        if isinstance(value, str):
            lowered = value.strip().lower()
            lowered = {"asc": "ascending", "desc": "descending"}.get(lowered, lowered)
            for member in cls:
                if member.value == lowered:
                    return member
        return None

    @property
    def keyword(self) -> str:
        """SQL keyword for this direction."""
        return "DESC" if self is Direction.DESCENDING else "ASC"


@dataclass(frozen=True)
class OrderTerm:
    """One entry of an order specification: a field name and its direction."""

    field: str
    direction: Direction = Direction.ASCENDING

    def __post_init__(self) -> None:
        if not self.field or not self.field.strip():
            msg = "Order field name must not be empty"
            raise ValueError(msg)


# First term is the primary sort key; an empty tuple means "no order requested".
OrderSpec = tuple[OrderTerm, ...]


def order_spec(*terms: str | tuple[str, Direction | str] | OrderTerm) -> OrderSpec:
    """Build an OrderSpec from field names, (field, direction) pairs or OrderTerms."""
    spec = []
    for term in terms:
        if isinstance(term, OrderTerm):
            spec.append(term)
        elif isinstance(term, str):
            spec.append(OrderTerm(term))
        else:
            name, direction = term
            spec.append(OrderTerm(name, Direction(direction)))
    return tuple(spec)


# -- Page arithmetic (unchecked beyond the >= 1 validation of PagingRequest) --


def page_offset(page_size: int, page_index: int) -> int:
    return page_size * (page_index - 1)


def page_row_start(page_size: int, page_index: int) -> int:
    return page_offset(page_size, page_index) + 1


def page_row_end(page_size: int, page_index: int) -> int:
    return page_size * page_index


class PagingRequest(BaseModel):
    """A 1-based page request. Out-of-range values are rejected, not clamped."""

    page_size: int = Field(20, ge=1)
    page_index: int = Field(1, ge=1)

    model_config = {"frozen": True}

    @property
    def offset(self) -> int:
        return page_offset(self.page_size, self.page_index)

    @property
    def row_start(self) -> int:
        return page_row_start(self.page_size, self.page_index)

    @property
    def row_end(self) -> int:
        return page_row_end(self.page_size, self.page_index)


@dataclass(frozen=True)
class PagingResult(Generic[T]):
    """A bounded page of items plus the total row count of the unpaged query."""

    items: list[T] = field(default_factory=list)
    total: int = 0
    page_size: int = 20
    page_index: int = 1

    @property
    def page_count(self) -> int:
        if self.total <= 0:
            return 0
        return (self.total + self.page_size - 1) // self.page_size

    @property
    def has_next(self) -> bool:
        return self.page_index < self.page_count

    @property
    def has_previous(self) -> bool:
        return self.page_index > 1

    def meta(self) -> PaginationMeta:
        return PaginationMeta(
            total=self.total,
            page=self.page_index,
            page_size=self.page_size,
            pages=self.page_count,
        )
