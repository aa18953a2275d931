"""Async repository: the suspendable twin of :mod:`multirepo.repository`."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any, TypeVar

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from multirepo.config import RepositoryOptions
from multirepo.correlator import correlate, project_row
from multirepo.database import DialectInfo, resolve_dialect
from multirepo.dialects.base import PageQuery
from multirepo.errors import MultirepoError
from multirepo.executor import AsyncSqlExecutor
from multirepo.planner import PageQueryPlanner
from multirepo.repository import build_query, count_query
from multirepo.schemas.paging import Direction, OrderSpec, PagingRequest, PagingResult

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AsyncRepository:
    """Uniform data access over one AsyncSession. Mirrors :class:`Repository`."""

    def __init__(
        self,
        session: AsyncSession,
        options: RepositoryOptions | None = None,
        dialect_info: DialectInfo | None = None,
    ):
        self.session = session
        self.options = options or RepositoryOptions()
        self._dialect_info = dialect_info
        self._in_transaction = False
        self._queue: list[Callable[[AsyncRepository], Awaitable[Any]]] = []

    @property
    def executor(self) -> AsyncSqlExecutor:
        return AsyncSqlExecutor(self.session)

    @property
    def in_transaction(self) -> bool:
        return self._in_transaction

    async def get_dialect_info(self) -> DialectInfo:
        if self._dialect_info is None:
            self._dialect_info = resolve_dialect(await self.session.connection())
            logger.debug("Resolved dialect %s", self._dialect_info)
        return self._dialect_info

    async def planner(self) -> PageQueryPlanner:
        info = await self.get_dialect_info()
        return PageQueryPlanner(info.dialect, info.server_version_major, self.options.count_syntax)

    # --- paging ---

    async def find_page(
        self,
        model: type[T],
        *criteria,
        order_by=(),
        directions: Sequence[Direction | str] = (),
        paging: PagingRequest | None = None,
    ) -> PagingResult[T]:
        paging = paging or PagingRequest()
        query = build_query(model, *criteria, order_by=order_by, directions=directions)
        total = (await self.session.execute(count_query(query))).scalar_one()
        result = await self.session.execute(query.offset(paging.offset).limit(paging.page_size))
        return PagingResult(
            items=list(result.scalars().all()),
            total=total,
            page_size=paging.page_size,
            page_index=paging.page_index,
        )

    async def page_sql(
        self,
        sql: str,
        paging: PagingRequest | None = None,
        order_field: str | OrderSpec | None = None,
        ascending: bool = True,
        is_cte_form: bool = False,
    ) -> PageQuery:
        planner = await self.planner()
        return planner.plan(sql, paging or PagingRequest(), order_field, ascending, is_cte_form)

    async def find_page_by_sql(
        self,
        sql: str,
        paging: PagingRequest | None = None,
        order_field: str | OrderSpec | None = None,
        ascending: bool = True,
        params: Mapping[str, Any] | None = None,
        projection=dict,
        is_cte_form: bool = False,
    ) -> PagingResult:
        paging = paging or PagingRequest()
        page_query = await self.page_sql(sql, paging, order_field, ascending, is_cte_form)
        result_sets = await self.executor.execute_batch(page_query.statements, params)
        items, total = correlate(result_sets, projection)
        return PagingResult(items=items, total=total, page_size=paging.page_size, page_index=paging.page_index)

    async def find_page_by_with(
        self,
        sql: str,
        paging: PagingRequest | None = None,
        order_field: str | OrderSpec | None = None,
        ascending: bool = True,
        params: Mapping[str, Any] | None = None,
        projection=dict,
    ) -> PagingResult:
        return await self.find_page_by_sql(sql, paging, order_field, ascending, params, projection, is_cte_form=True)

    # --- queries ---

    def query(self, model, *criteria, order_by=(), directions=()):
        return build_query(model, *criteria, order_by=order_by, directions=directions)

    async def find_entity(self, model: type[T], key) -> T | None:
        return await self.session.get(model, key)

    async def find_first(self, model: type[T], *criteria, order_by=(), directions=()) -> T | None:
        query = build_query(model, *criteria, order_by=order_by, directions=directions).limit(1)
        return (await self.session.execute(query)).scalars().first()

    async def find_list(self, model: type[T], *criteria, order_by=(), directions=()) -> list[T]:
        query = build_query(model, *criteria, order_by=order_by, directions=directions)
        return list((await self.session.execute(query)).scalars().all())

    async def find_list_by_sql(self, sql: str, params: Mapping[str, Any] | None = None, projection=dict) -> list:
        return [project_row(row, projection) for row in await self.executor.execute_rows(sql, params)]

    async def find_object(self, sql: str, params: Mapping[str, Any] | None = None) -> Any:
        return await self.executor.execute_scalar(sql, params)

    async def find_multiple(
        self, statements: Sequence[str], params: Mapping[str, Any] | None = None, projection=dict
    ) -> list[list]:
        result_sets = await self.executor.execute_batch(statements, params)
        return [[project_row(row, projection) for row in rows] for rows in result_sets]

    # --- writes ---

    async def _save(self, save_changes: bool) -> None:
        if not save_changes:
            return
        if self._in_transaction:
            await self.session.flush()
        else:
            await self.session.commit()

    async def insert(self, *entities, save_changes: bool = True):
        self.session.add_all(entities)
        await self._save(save_changes)
        return entities[0] if len(entities) == 1 else list(entities)

    async def update(self, entity: T, save_changes: bool = True) -> T:
        merged = await self.session.merge(entity)
        await self._save(save_changes)
        return merged

    async def delete(self, entity, save_changes: bool = True) -> None:
        await self.session.delete(entity)
        await self._save(save_changes)

    async def delete_where(self, model, *criteria, save_changes: bool = True) -> int:
        result = await self.session.execute(delete(model).where(*criteria))
        await self._save(save_changes)
        return result.rowcount

    async def execute_by_sql(
        self, sql: str, params: Mapping[str, Any] | None = None, save_changes: bool = True
    ) -> int:
        count = await self.executor.execute_non_query(sql, params)
        await self._save(save_changes)
        return count

    # --- transactions ---

    def begin_transaction(self) -> None:
        if self._in_transaction:
            raise MultirepoError("A transaction is already open on this repository")
        self._in_transaction = True

    async def commit(self) -> None:
        self._in_transaction = False
        await self.session.commit()

    async def rollback(self) -> None:
        self._in_transaction = False
        await self.session.rollback()

    async def execute_transaction(self, handler: Callable[[AsyncRepository], Awaitable[T]]) -> T:
        """Await ``handler(self)`` in one transaction; roll back and re-raise on error."""
        self.begin_transaction()
        try:
            result = await handler(self)
            await self.commit()
        except Exception:
            logger.warning("Transaction failed, rolling back", exc_info=True)
            await self.rollback()
            raise
        return result

    # --- deferred queue ---

    def add_queue(self, operation: Callable[[AsyncRepository], Awaitable[Any]]) -> None:
        self._queue.append(operation)

    @property
    def queued(self) -> int:
        return len(self._queue)

    async def save_queue(self, transaction: bool = True) -> list:
        operations, self._queue = self._queue, []

        async def run_all(repo: AsyncRepository) -> list:
            return [await operation(repo) for operation in operations]

        # An open transaction is joined, not nested.
        if transaction and not self._in_transaction:
            return await self.execute_transaction(run_all)
        return await run_all(self)
