"""
Transaction coordinator.

One ``UnitOfWork`` owns one ``AsyncSession``.  Gateways stage adds, updates
and deletes here; ``save_changes()`` applies all of them with a single
flush + commit and reports how many entities it wrote::

    async with UnitOfWork() as uow:
        article = await uow.articles.get_required(article_id)
        article.publish()
        await uow.articles.update(article)
        await uow.save_changes()

An explicit transaction (``begin_transaction`` / ``commit_transaction`` /
``rollback_transaction``) groups several ``save_changes`` calls under one
commit.  Only one may be open at a time.
"""
import enum
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.attributes import set_committed_value
from sqlalchemy.orm.exc import StaleDataError

from portfolio_cms.exceptions import (
    ConcurrencyConflict,
    ConnectivityFailure,
    NotFoundError,
    PersistenceFailure,
    TransactionStateError,
)
from portfolio_cms.repositories import (
    ArticleRepository,
    CommentRepository,
    MediaFileRepository,
    ProjectRepository,
    Repository,
    TagRepository,
)
from portfolio_cms.resilience import RetryPolicy, is_transient, run_with_retry

logger = logging.getLogger(__name__)


class ChangeKind(enum.Enum):
    ADD = "add"
    UPDATE = "update"
    DELETE = "delete"


@dataclass
class StagedChange:
    kind: ChangeKind
    entity: Any


def _change_key(entity) -> tuple:
    state = inspect(entity)
    if state.identity is not None:
        return (type(entity), state.identity)
    # Not yet inserted: tracked by object identity.
    return (type(entity), "new", id(entity))


def _revert_unsaved(session: AsyncSession, entity) -> None:
    """
    Drop in-memory edits to *entity* so the session will not write them.

    Pending objects leave the session; persistent ones get their loaded
    values back from attribute history, without a round trip.
    """
    state = inspect(entity)
    if state.pending:
        session.expunge(entity)
        return
    if not state.persistent:
        return
    relationships = state.mapper.relationships
    for attr in state.attrs:
        history = attr.history
        if not history.has_changes():
            continue
        if attr.key in relationships and relationships[attr.key].uselist:
            original = list(history.unchanged) + list(history.deleted)
        elif history.deleted:
            original = history.deleted[0]
        else:
            # Loaded value unknown (flag_modified): keep the current one as committed.
            original = state.dict.get(attr.key)
        set_committed_value(entity, attr.key, original)


def _object_graph(entities) -> set:
    """States of *entities* plus everything they reach by save-update cascade."""
    graph = set()
    for entity in entities:
        state = inspect(entity)
        graph.add(state)
        for _obj, _mapper, related, _dict in state.mapper.cascade_iterator("save-update", state):
            graph.add(related)
    return graph


def translate_error(exc: Exception) -> Exception:
    """Map a store error onto the domain error taxonomy."""
    if isinstance(exc, StaleDataError):
        return ConcurrencyConflict()
    if is_transient(exc):
        return ConnectivityFailure(str(exc))
    return PersistenceFailure(str(exc))


class UnitOfWork:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        *,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        if session_factory is None:
            from portfolio_cms.database import async_session as session_factory
        self._session_factory = session_factory
        self._retry_policy = retry_policy or RetryPolicy.from_settings()
        self._session: AsyncSession | None = None
        self._staged: dict[tuple, StagedChange] = {}
        self._repositories: dict[type, Repository] = {}
        self._transaction_open = False
        self._transaction_failed = False
        self._closed = False

    async def __aenter__(self) -> "UnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def session(self) -> AsyncSession:
        if self._closed:
            raise TransactionStateError("Unit of work is closed")
        if self._session is None:
            self._session = self._session_factory()
        return self._session

    # ------------------------------------------------------------------
    # Gateways
    # ------------------------------------------------------------------

    def _gateway(self, repository_cls: type[Repository]) -> Repository:
        gateway = self._repositories.get(repository_cls.model)
        if gateway is None:
            gateway = repository_cls(self)
            self._repositories[repository_cls.model] = gateway
        return gateway

    @property
    def articles(self) -> ArticleRepository:
        return self._gateway(ArticleRepository)

    @property
    def comments(self) -> CommentRepository:
        return self._gateway(CommentRepository)

    @property
    def tags(self) -> TagRepository:
        return self._gateway(TagRepository)

    @property
    def projects(self) -> ProjectRepository:
        return self._gateway(ProjectRepository)

    @property
    def media_files(self) -> MediaFileRepository:
        return self._gateway(MediaFileRepository)

    def repository(self, model: type) -> Repository:
        """Gateway for *model*; one instance per model per unit of work."""
        gateway = self._repositories.get(model)
        if gateway is None:
            gateway = Repository(self, model)
            self._repositories[model] = gateway
        return gateway

    # ------------------------------------------------------------------
    # Staging
    # ------------------------------------------------------------------

    def stage_add(self, entity) -> None:
        self._staged[_change_key(entity)] = StagedChange(ChangeKind.ADD, entity)

    def stage_update(self, entity) -> None:
        key = _change_key(entity)
        current = self._staged.get(key)
        if current is not None and current.kind is ChangeKind.ADD:
            return
        self._staged[key] = StagedChange(ChangeKind.UPDATE, entity)

    def stage_delete(self, entity) -> None:
        key = _change_key(entity)
        current = self._staged.get(key)
        if current is not None and current.kind is ChangeKind.ADD:
            # Never written, nothing to delete.
            del self._staged[key]
            return
        self._staged[key] = StagedChange(ChangeKind.DELETE, entity)

    def staged_additions(self, model: type) -> list:
        return [
            change.entity
            for change in self._staged.values()
            if change.kind is ChangeKind.ADD and isinstance(change.entity, model)
        ]

    @property
    def has_changes(self) -> bool:
        return bool(self._staged)

    def discard_changes(self) -> None:
        """Forget every staged change and undo its in-memory edits."""
        changes = list(self._staged.values())
        self._staged.clear()
        if self._session is None:
            return
        for change in changes:
            if change.entity in self._session:
                _revert_unsaved(self._session, change.entity)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _is_pristine(self) -> bool:
        # Retrying rolls the session back, which expires every loaded
        # object; only safe while the session holds none.  Staged additions
        # are not in the session until save_changes() and are unaffected.
        if self._transaction_open:
            return False
        session = self.session
        return not session.identity_map and not session.new

    async def _reset_session(self) -> None:
        if self._session is not None:
            await self._session.rollback()

    async def execute(self, statement, parameters=None):
        """Run a read statement, retrying transient failures when safe."""

        async def run():
            return await self.session.execute(statement, parameters)

        try:
            if self._is_pristine():
                return await run_with_retry(
                    run, self._retry_policy, on_retry=self._reset_session
                )
            return await run()
        except SQLAlchemyError as exc:
            raise translate_error(exc) from exc

    async def _acquire_connection(self) -> None:
        if self._is_pristine():
            await run_with_retry(
                self.session.connection, self._retry_policy, on_retry=self._reset_session
            )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def _load_current(self, entity):
        """
        Return the session's copy of *entity*, loading it when *entity* came
        from another unit of work.  The caller's concurrency token must match
        the stored one; the stored row is then overwritten with the caller's
        loaded column values.
        """
        session = self.session
        if entity in session:
            return entity

        mapper = inspect(type(entity))
        state = inspect(entity)
        identity = mapper.primary_key_from_instance(entity)
        if any(value is None for value in identity):
            raise NotFoundError(type(entity).__name__)
        current = await session.get(
            type(entity), identity[0] if len(identity) == 1 else tuple(identity)
        )
        if current is None:
            # Deleted by someone else since the caller read it.
            raise StaleDataError(f"{type(entity).__name__} {identity[0]} no longer exists")

        version_prop = None
        if mapper.version_id_col is not None:
            version_prop = mapper.get_property_by_column(mapper.version_id_col)
            if getattr(current, version_prop.key) != state.dict.get(version_prop.key):
                raise StaleDataError(
                    f"{type(entity).__name__} {identity[0]} has a newer version"
                )

        skip = {prop.key for prop in mapper.column_attrs if prop.columns[0].primary_key}
        if version_prop is not None:
            skip.add(version_prop.key)
        for prop in mapper.column_attrs:
            if prop.key not in skip and prop.key in state.dict:
                setattr(current, prop.key, state.dict[prop.key])
        return current

    async def save_changes(self) -> int:
        """
        Write every staged change in one flush.  Commits immediately unless an
        explicit transaction is open.  Returns the number of entities written.
        Edits to session objects that were never staged are dropped, not saved.

        Raises ``ConcurrencyConflict`` when an updated or deleted row changed
        since it was read, ``PersistenceFailure`` for any other store error.
        Either way nothing staged is written and the staged set is cleared.
        """
        if self._transaction_failed:
            raise TransactionStateError(
                "The current transaction failed; roll it back before saving again"
            )
        changes = list(self._staged.values())
        session = self.session

        try:
            await self._acquire_connection()
            targets = []
            for change in changes:
                if change.kind is ChangeKind.ADD:
                    session.add(change.entity)
                    targets.append(change.entity)
                elif change.kind is ChangeKind.UPDATE:
                    targets.append(await self._load_current(change.entity))
                else:
                    current = await self._load_current(change.entity)
                    await session.delete(current)
                    targets.append(current)
            self._drop_unstaged(session, _object_graph(targets))
            await session.flush()
            if not self._transaction_open:
                await session.commit()
        except ConnectivityFailure:
            await self._abandon_changes()
            raise
        except NotFoundError:
            await self._abandon_changes()
            raise
        except StaleDataError as exc:
            await self._abandon_changes()
            logger.info("Concurrency conflict while saving: %s", exc)
            raise ConcurrencyConflict() from exc
        except SQLAlchemyError as exc:
            await self._abandon_changes()
            if is_transient(exc):
                logger.error("Store unreachable while saving: %s", exc)
            else:
                logger.exception("Failed to save changes")
            raise translate_error(exc) from exc

        self._staged.clear()
        if changes:
            logger.debug("Saved %d change(s)", len(changes))
        return len(changes)

    @staticmethod
    def _drop_unstaged(session: AsyncSession, graph: set) -> None:
        # Only staged entities and the objects they cascade to are written.
        dropped = 0
        for entity in list(session.new) + list(session.dirty) + list(session.deleted):
            if entity not in session or inspect(entity) in graph:
                continue
            if entity in session.deleted:
                session.expunge(entity)
                dropped += 1
            elif entity in session.new or session.is_modified(entity):
                _revert_unsaved(session, entity)
                dropped += 1
        if dropped:
            logger.debug("Ignored %d unstaged change(s)", dropped)

    async def _abandon_changes(self) -> None:
        self._staged.clear()
        if self._session is not None:
            await self._session.rollback()
        if self._transaction_open:
            self._transaction_failed = True

    async def execute_raw(
        self,
        statement: str,
        parameters: Mapping[str, Any] | Sequence[Mapping[str, Any]] | None = None,
    ) -> int:
        """
        Run a raw SQL command with bound ``:name`` parameters and return the
        affected row count.  Values are never interpolated into the text.
        """
        session = self.session
        try:
            result = await session.execute(text(statement), parameters)
            if not self._transaction_open:
                await session.commit()
        except SQLAlchemyError as exc:
            await self._abandon_changes()
            logger.exception("Raw command failed")
            raise translate_error(exc) from exc
        return result.rowcount

    # ------------------------------------------------------------------
    # Explicit transactions
    # ------------------------------------------------------------------

    @property
    def in_transaction(self) -> bool:
        return self._transaction_open

    async def begin_transaction(self) -> None:
        if self._transaction_open:
            raise TransactionStateError("A transaction is already in progress")
        session = self.session
        if not session.in_transaction():
            await session.begin()
        self._transaction_open = True
        self._transaction_failed = False

    async def commit_transaction(self) -> None:
        if not self._transaction_open:
            raise TransactionStateError("No transaction is in progress")
        if self._transaction_failed:
            self._transaction_open = False
            self._transaction_failed = False
            raise TransactionStateError("The transaction failed and was rolled back")
        try:
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.exception("Transaction commit failed")
            raise translate_error(exc) from exc
        finally:
            self._transaction_open = False

    async def rollback_transaction(self) -> None:
        if not self._transaction_open:
            raise TransactionStateError("No transaction is in progress")
        self._staged.clear()
        try:
            await self.session.rollback()
        finally:
            self._transaction_open = False
            self._transaction_failed = False

    # ------------------------------------------------------------------
    # Liveness / lifecycle
    # ------------------------------------------------------------------

    async def can_connect(self) -> bool:
        """True when the store answers a trivial query.  Never raises."""
        try:
            async with self.session.bind.connect() as connection:
                await connection.execute(text("SELECT 1"))
        except Exception as exc:
            logger.warning("Store liveness check failed: %s", exc)
            return False
        return True

    async def close(self) -> None:
        if self._closed:
            return
        if self._staged:
            logger.debug("Discarding %d unsaved change(s)", len(self._staged))
            self._staged.clear()
        if self._session is not None:
            if self._transaction_open:
                logger.warning("Rolling back transaction left open on close")
                await self._session.rollback()
            await self._session.close()
        self._transaction_open = False
        self._closed = True
