"""
Generic persistence gateway.

A ``Repository`` gives CRUD and filtered/paged queries over one mapped
model.  It never writes: ``add``/``update``/``delete`` stage the change in
the owning ``UnitOfWork``, which applies every staged change in one commit.

Predicates and orderings are plain SQLAlchemy column expressions, e.g.::

    await uow.articles.get_paged(
        2, 10,
        predicate=Article.status == ArticleStatus.PUBLISHED,
        order_by=Article.published_date,
        ascending=False,
    )
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, Iterable, Sequence, TypeVar

from sqlalchemy import func, inspect, select
from sqlalchemy.sql import Select

from portfolio_cms.exceptions import ConcurrencyConflict, NotFoundError, ValidationFailure

if TYPE_CHECKING:
    from portfolio_cms.unit_of_work import UnitOfWork

ModelT = TypeVar("ModelT")


def validate_page(page_number: int, page_size: int) -> None:
    errors = []
    if page_number < 1:
        errors.append("page_number: must be 1 or greater")
    if page_size < 1:
        errors.append("page_size: must be 1 or greater")
    if errors:
        raise ValidationFailure("Invalid paging parameters", errors)


class Repository(Generic[ModelT]):
    """CRUD and query gateway for a single entity type."""

    model: type[ModelT]

    def __init__(self, uow: "UnitOfWork", model: type[ModelT] | None = None) -> None:
        if model is not None:
            self.model = model
        self._uow = uow
        self._pk = inspect(self.model).primary_key[0]

    @property
    def entity_name(self) -> str:
        return self.model.__name__

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def _scalars(self, stmt: Select) -> list[ModelT]:
        result = await self._uow.execute(stmt)
        return list(result.unique().scalars().all())

    async def _scalar(self, stmt: Select) -> Any:
        result = await self._uow.execute(stmt)
        return result.scalar_one()

    async def _first(self, stmt: Select) -> ModelT | None:
        result = await self._uow.execute(stmt.limit(1))
        return result.unique().scalars().first()

    def _select(self, predicate=None, options: Sequence = ()) -> Select:
        stmt = select(self.model)
        if predicate is not None:
            stmt = stmt.where(predicate)
        if options:
            stmt = stmt.options(*options)
        return stmt

    async def get_by_id(self, entity_id: Any, options: Sequence = ()) -> ModelT | None:
        return await self._first(self._select(self._pk == entity_id, options))

    async def get_required(self, entity_id: Any, options: Sequence = ()) -> ModelT:
        """Like ``get_by_id`` but raises ``NotFoundError`` for a missing row."""
        entity = await self.get_by_id(entity_id, options)
        if entity is None:
            raise NotFoundError(self.entity_name, entity_id)
        return entity

    async def get_all(self, predicate=None, options: Sequence = ()) -> list[ModelT]:
        """Every matching row.  Unbounded: page large sets with ``get_paged``."""
        return await self._scalars(self._select(predicate, options))

    async def first(self, predicate, order_by=None) -> ModelT | None:
        stmt = self._select(predicate)
        if order_by is not None:
            stmt = stmt.order_by(order_by)
        return await self._first(stmt)

    async def get_paged(
        self,
        page_number: int,
        page_size: int,
        predicate=None,
        order_by=None,
        ascending: bool = True,
        options: Sequence = (),
    ) -> list[ModelT]:
        """
        Return one 1-based page.  Pages past the end are empty.

        Without *order_by* rows are ordered by primary key so consecutive
        pages never overlap.
        """
        validate_page(page_number, page_size)
        column = order_by if order_by is not None else self._pk
        stmt = self._select(predicate, options).order_by(
            column.asc() if ascending else column.desc()
        )
        return await self._scalars(self.page(stmt, page_number, page_size))

    @staticmethod
    def page(stmt: Select, page_number: int, page_size: int) -> Select:
        return stmt.offset((page_number - 1) * page_size).limit(page_size)

    async def exists(self, predicate=None) -> bool:
        stmt = select(self._pk)
        if predicate is not None:
            stmt = stmt.where(predicate)
        result = await self._uow.execute(stmt.limit(1))
        return result.first() is not None

    async def count(self, predicate=None) -> int:
        stmt = select(func.count()).select_from(self.model)
        if predicate is not None:
            stmt = stmt.where(predicate)
        return await self._scalar(stmt)

    # ------------------------------------------------------------------
    # Staged writes
    # ------------------------------------------------------------------

    async def add(self, entity: ModelT) -> ModelT:
        if entity is None:
            raise ValueError("entity must not be None")
        self._uow.stage_add(entity)
        return entity

    async def add_range(self, entities: Iterable[ModelT]) -> list[ModelT]:
        staged = list(entities)
        for entity in staged:
            await self.add(entity)
        return staged

    async def update(self, entity: ModelT) -> None:
        if entity is None:
            raise ValueError("entity must not be None")
        self._uow.stage_update(entity)

    async def update_range(self, entities: Iterable[ModelT]) -> None:
        for entity in entities:
            await self.update(entity)

    async def delete(self, entity_or_id: Any) -> None:
        """Stage a delete.  Deleting an id that does not exist is a no-op."""
        if entity_or_id is None:
            raise ValueError("entity must not be None")
        if isinstance(entity_or_id, self.model):
            entity = entity_or_id
        else:
            entity = await self.get_by_id(entity_or_id)
            if entity is None:
                return
        self._uow.stage_delete(entity)

    async def delete_range(self, entities: Iterable[ModelT]) -> None:
        for entity in list(entities):
            await self.delete(entity)

    def staged_additions(self) -> list[ModelT]:
        """Entities of this type waiting to be inserted by the unit of work."""
        return self._uow.staged_additions(self.model)

    # ------------------------------------------------------------------
    # Optimistic concurrency
    # ------------------------------------------------------------------

    def ensure_version(self, entity: ModelT, row_version: str | None) -> None:
        """
        Raise ``ConcurrencyConflict`` when the caller's concurrency token is
        not the one currently held by *entity*.
        """
        current = getattr(entity, "row_version", None)
        if row_version is None or current != row_version:
            raise ConcurrencyConflict()
