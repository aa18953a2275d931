"""Synchronous repository: paging, thin CRUD, transactions and the deferred queue."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from typing import Any, TypeVar

from sqlalchemy import Select, delete, func, select
from sqlalchemy.orm import Session

from multirepo.config import RepositoryOptions
from multirepo.correlator import correlate, project_row
from multirepo.database import DialectInfo, resolve_dialect
from multirepo.dialects.base import PageQuery
from multirepo.errors import MultirepoError
from multirepo.executor import SqlExecutor
from multirepo.ordering import apply_order
from multirepo.planner import PageQueryPlanner
from multirepo.schemas.paging import Direction, OrderSpec, PagingRequest, PagingResult

logger = logging.getLogger(__name__)

T = TypeVar("T")


def build_query(model, *criteria, order_by=(), directions: Sequence[Direction | str] = ()) -> Select:
    """``select(model)`` filtered by ``criteria`` and ordered by ``order_by``."""
    query = select(model)
    if criteria:
        query = query.where(*criteria)
    return apply_order(query, order_by, directions)


def count_query(query: Select) -> Select:
    return select(func.count()).select_from(query.order_by(None).subquery())


class Repository:
    """Uniform data access over one SQLAlchemy session.

    Paging over ORM queries goes through SQLAlchemy's own offset/limit
    compilation; paging over raw SQL goes through the dialect page planner.
    Writes commit immediately unless ``save_changes=False`` or a transaction
    begun with :meth:`begin_transaction` is open, in which case they only flush.
    """

    def __init__(
        self,
        session: Session,
        options: RepositoryOptions | None = None,
        dialect_info: DialectInfo | None = None,
    ):
        self.session = session
        self.options = options or RepositoryOptions()
        self._dialect_info = dialect_info
        self._in_transaction = False
        self._queue: list[Callable[[Repository], Any]] = []

    @property
    def executor(self) -> SqlExecutor:
        return SqlExecutor(self.session)

    @property
    def in_transaction(self) -> bool:
        return self._in_transaction

    def get_dialect_info(self) -> DialectInfo:
        """Dialect and server version of the session's connection, resolved once."""
        if self._dialect_info is None:
            self._dialect_info = resolve_dialect(self.session.connection())
            logger.debug("Resolved dialect %s", self._dialect_info)
        return self._dialect_info

    def planner(self) -> PageQueryPlanner:
        info = self.get_dialect_info()
        return PageQueryPlanner(info.dialect, info.server_version_major, self.options.count_syntax)

    # --- paging ---

    def find_page(
        self,
        model: type[T],
        *criteria,
        order_by=(),
        directions: Sequence[Direction | str] = (),
        paging: PagingRequest | None = None,
    ) -> PagingResult[T]:
        """Return one page of ``model`` rows matching ``criteria``.

        Args:
            model: Mapped class to query.
            *criteria: SQLAlchemy filter expressions.
            order_by: A key or tuple of keys (field names, columns or sort keys).
            directions: Directions matched to ``order_by`` keys by position.
            paging: Page request; defaults to the first page of 20.

        Returns:
            The page items and the total number of matching rows.
        """
        paging = paging or PagingRequest()
        query = build_query(model, *criteria, order_by=order_by, directions=directions)
        total = self.session.execute(count_query(query)).scalar_one()
        result = self.session.execute(query.offset(paging.offset).limit(paging.page_size))
        return PagingResult(
            items=list(result.scalars().all()),
            total=total,
            page_size=paging.page_size,
            page_index=paging.page_index,
        )

    def page_sql(
        self,
        sql: str,
        paging: PagingRequest | None = None,
        order_field: str | OrderSpec | None = None,
        ascending: bool = True,
        is_cte_form: bool = False,
    ) -> PageQuery:
        """Plan the count and page statements for raw SQL on this connection's dialect."""
        return self.planner().plan(sql, paging or PagingRequest(), order_field, ascending, is_cte_form)

    def find_page_by_sql(
        self,
        sql: str,
        paging: PagingRequest | None = None,
        order_field: str | OrderSpec | None = None,
        ascending: bool = True,
        params: Mapping[str, Any] | None = None,
        projection=dict,
        is_cte_form: bool = False,
    ) -> PagingResult:
        """Page a raw SELECT.

        Args:
            sql: The base query. Named ``:param`` binds are filled from ``params``.
            paging: Page request; defaults to the first page of 20.
            order_field: Raw ORDER BY text or an OrderSpec.
            ascending: Direction appended to raw order text that names none.
            params: Bind values shared by the count and page statements.
            projection: Type each row is bound to (``dict`` by default).
            is_cte_form: ``sql`` is ``WITH T AS (...)`` text.

        Returns:
            The page items and the total row count of ``sql``.
        """
        paging = paging or PagingRequest()
        page_query = self.page_sql(sql, paging, order_field, ascending, is_cte_form)
        items, total = correlate(self.executor.execute_batch(page_query.statements, params), projection)
        return PagingResult(items=items, total=total, page_size=paging.page_size, page_index=paging.page_index)

    def find_page_by_with(
        self,
        sql: str,
        paging: PagingRequest | None = None,
        order_field: str | OrderSpec | None = None,
        ascending: bool = True,
        params: Mapping[str, Any] | None = None,
        projection=dict,
    ) -> PagingResult:
        """Page a ``WITH T AS (...)`` query. See :meth:`find_page_by_sql`."""
        return self.find_page_by_sql(sql, paging, order_field, ascending, params, projection, is_cte_form=True)

    # --- queries ---

    def query(self, model: type[T], *criteria, order_by=(), directions: Sequence[Direction | str] = ()) -> Select:
        return build_query(model, *criteria, order_by=order_by, directions=directions)

    def find_entity(self, model: type[T], key) -> T | None:
        return self.session.get(model, key)

    def find_first(self, model: type[T], *criteria, order_by=(), directions=()) -> T | None:
        query = build_query(model, *criteria, order_by=order_by, directions=directions).limit(1)
        return self.session.execute(query).scalars().first()

    def find_list(self, model: type[T], *criteria, order_by=(), directions=()) -> list[T]:
        query = build_query(model, *criteria, order_by=order_by, directions=directions)
        return list(self.session.execute(query).scalars().all())

    def find_list_by_sql(self, sql: str, params: Mapping[str, Any] | None = None, projection=dict) -> list:
        return [project_row(row, projection) for row in self.executor.execute_rows(sql, params)]

    def find_object(self, sql: str, params: Mapping[str, Any] | None = None) -> Any:
        """First column of the first row, or None."""
        return self.executor.execute_scalar(sql, params)

    def find_multiple(
        self, statements: Sequence[str], params: Mapping[str, Any] | None = None, projection=dict
    ) -> list[list]:
        """Run several SELECTs and return one projected row list per statement."""
        result_sets = self.executor.execute_batch(statements, params)
        return [[project_row(row, projection) for row in rows] for rows in result_sets]

    # --- writes ---

    def _save(self, save_changes: bool) -> None:
        if not save_changes:
            return
        if self._in_transaction:
            self.session.flush()
        else:
            self.session.commit()

    def insert(self, *entities, save_changes: bool = True):
        """Add one or more entities. Returns the entity, or the list when several are given."""
        self.session.add_all(entities)
        self._save(save_changes)
        return entities[0] if len(entities) == 1 else list(entities)

    def update(self, entity: T, save_changes: bool = True) -> T:
        merged = self.session.merge(entity)
        self._save(save_changes)
        return merged

    def delete(self, entity, save_changes: bool = True) -> None:
        self.session.delete(entity)
        self._save(save_changes)

    def delete_where(self, model, *criteria, save_changes: bool = True) -> int:
        """Bulk-delete ``model`` rows matching ``criteria``; returns the affected-row count."""
        result = self.session.execute(delete(model).where(*criteria))
        self._save(save_changes)
        return result.rowcount

    def execute_by_sql(self, sql: str, params: Mapping[str, Any] | None = None, save_changes: bool = True) -> int:
        count = self.executor.execute_non_query(sql, params)
        self._save(save_changes)
        return count

    # --- transactions ---

    def begin_transaction(self) -> None:
        """Group following writes into one transaction until commit or rollback."""
        if self._in_transaction:
            raise MultirepoError("A transaction is already open on this repository")
        self._in_transaction = True

    def commit(self) -> None:
        self._in_transaction = False
        self.session.commit()

    def rollback(self) -> None:
        self._in_transaction = False
        self.session.rollback()

    def execute_transaction(self, handler: Callable[[Repository], T]) -> T:
        """Run ``handler(self)`` in one transaction; roll back and re-raise on error."""
        self.begin_transaction()
        try:
            result = handler(self)
            self.commit()
        except Exception:
            logger.warning("Transaction failed, rolling back", exc_info=True)
            self.rollback()
            raise
        return result

    # --- deferred queue ---

    def add_queue(self, operation: Callable[[Repository], Any]) -> None:
        """Defer ``operation(repository)`` until :meth:`save_queue`."""
        self._queue.append(operation)

    @property
    def queued(self) -> int:
        return len(self._queue)

    def save_queue(self, transaction: bool = True) -> list:
        """Run the queued operations in order and empty the queue.

        Args:
            transaction: Run all operations in one transaction, rolled back
                as a whole if any of them raises. An already open transaction
                is joined and left open for the caller to commit.

        Returns:
            The operations' return values, in queue order.
        """
        operations, self._queue = self._queue, []
        if transaction and not self._in_transaction:
            return self.execute_transaction(lambda repo: [operation(repo) for operation in operations])
        return [operation(self) for operation in operations]
