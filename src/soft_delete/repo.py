"""
Soft Delete Repository

Wraps a SQLAlchemy Session with soft delete semantics: reads skip rows whose
deleted_at is set, and deletes/restores write the timestamp instead of removing rows.

    repo = SoftDeleteRepo(session)
    repo.soft_delete_all(select(Widget).where(Widget.id < 10))
    widgets = repo.all(Widget)                      # live rows only
    everything = repo.all(Widget, with_deleted=True)
"""

from datetime import datetime, timezone
import logging
from typing import Any, List, Optional, Tuple

from sqlalchemy import Select, Table, Update, func, inspect, select, update
from sqlalchemy.exc import ArgumentError, InvalidRequestError
from sqlalchemy.orm import Mapper, Session
from sqlalchemy.sql.selectable import Join

from .changeset import Result, change
from .config import SOFT_DELETE_FIELD, WITH_DELETED_OPTION
from .errors import InvalidChangesetError
from .hooks import ReadHook
from .query import to_query, with_undeleted
from .schema import FieldsResolver, fields_of, primary_source

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SoftDeleteRepo:
    """Repository facade adding soft delete and restore operations to a Session"""

    def __init__(
        self,
        session: Session,
        field: str = SOFT_DELETE_FIELD,
        option: str = WITH_DELETED_OPTION,
        resolver: FieldsResolver = fields_of,
        install_hook: bool = True,
    ):
        """
        Args:
            session: Session every read and write goes through
            field: Deletion timestamp field name
            option: Execution option key that lets a read include deleted rows
            resolver: Field name resolver used to decide if an entity is soft deletable
            install_hook: Install the read hook on the session now
        """
        self.session = session
        self.field = field
        self.option = option
        self.resolver = resolver
        self.read_hook = ReadHook(field=field, option=option, resolver=resolver)

        if install_hook:
            self.read_hook.install(session)

    # ========================================================================
    # Reads
    # ========================================================================

    def execute(self, statement: Any, **options: Any):
        """Execute any statement with ``options`` as execution options"""
        return self.session.execute(statement, execution_options=options)

    def all(self, queryable: Any, **options: Any) -> List[Any]:
        """
        Fetch every row matched by a query

        Single-entity or single-column queries return plain values; wider
        queries return rows.
        """
        result = self.execute(to_query(queryable), **options)
        if len(result.keys()) == 1:
            return list(result.scalars().all())
        return list(result.all())

    def first(self, queryable: Any, **options: Any) -> Optional[Any]:
        return self.execute(to_query(queryable), **options).scalars().first()

    def one(self, queryable: Any, **options: Any) -> Any:
        return self.execute(to_query(queryable), **options).scalar_one()

    def one_or_none(self, queryable: Any, **options: Any) -> Optional[Any]:
        return self.execute(to_query(queryable), **options).scalar_one_or_none()

    def get(self, entity: Any, ident: Any, **options: Any) -> Optional[Any]:
        """
        Fetch a row by primary key

        Always issues a SELECT so a soft-deleted instance already present in the
        identity map is still hidden.
        """
        primary_key = inspect(entity).primary_key
        idents = ident if isinstance(ident, tuple) else (ident,)
        if len(idents) != len(primary_key):
            raise InvalidRequestError(
                f"Incorrect number of values in identifier for {entity!r}: "
                f"expected {len(primary_key)}, got {len(idents)}"
            )

        query = select(entity).where(*[column == value for column, value in zip(primary_key, idents)])
        return self.one_or_none(query, **options)

    def count(self, queryable: Any, **options: Any) -> int:
        """
        Count the rows a query would return, honoring its LIMIT, OFFSET and DISTINCT

        The soft delete filter is decided on the inner query, so explicit
        deleted_at predicates inside it still count deleted rows.
        """
        query = to_query(queryable)
        if not options.get(self.option):
            query = with_undeleted(query, self.field, self.resolver)

        counted = select(func.count()).select_from(query.order_by(None).subquery())
        return self.execute(counted, **{**options, self.option: True}).scalar_one()

    # ========================================================================
    # Writes
    # ========================================================================

    def update_all(self, queryable: Any, **values: Any) -> Tuple[int, Optional[List[Any]]]:
        """
        Update every row matched by a query

        Returns:
            Tuple of (row count, returned rows); returned rows are None unless
            the statement asked for RETURNING
        """
        return self._execute_update(self._to_update(queryable), values)

    def update(self, data_or_changeset: Any) -> Result:
        """
        Apply a changeset and flush it

        Returns:
            Result("ok", instance) on success, Result("error", changeset) if the
            changeset is invalid or an ORM validator rejects a change
        """
        changeset = change(data_or_changeset)
        self._check_persisted(changeset.data)

        if not changeset.valid or not changeset.apply():
            logger.info(f"Update rejected for {type(changeset.data).__name__}: {changeset.errors}")
            return Result("error", changeset)

        self.session.add(changeset.data)
        self.session.flush()
        return Result("ok", changeset.data)

    def update_or_raise(self, data_or_changeset: Any) -> Any:
        """Same as update but returns the instance, raising InvalidChangesetError on failure"""
        return self._unwrap("update", self.update(data_or_changeset))

    # ========================================================================
    # Soft delete / restore
    # ========================================================================

    def soft_delete_all(self, queryable: Any) -> Tuple[int, Optional[List[Any]]]:
        """
        Soft delete every row matched by a query

            repo.soft_delete_all(Widget)
            repo.soft_delete_all(select(Widget).where(Widget.id < 10))

        Returns:
            Tuple of (row count, returned rows or None)
        """
        statement = self._to_update(queryable)
        count, results = self._execute_update(statement, {self.field: utc_now()})
        logger.info(f"Soft deleted {count} rows from {statement.table.name}")
        return count, results

    def soft_restore_all(self, queryable: Any) -> Tuple[int, Optional[List[Any]]]:
        """
        Restore every soft-deleted row matched by a query

        Rows that are not deleted are left alone and not counted.

        Returns:
            Tuple of (row count, returned rows or None)
        """
        statement = self._to_update(queryable)
        statement = statement.where(self._field_column(statement).is_not(None))
        count, results = self._execute_update(statement, {self.field: None})
        logger.info(f"Soft restored {count} rows from {statement.table.name}")
        return count, results

    def soft_delete(self, data_or_changeset: Any) -> Result:
        """
        Soft delete one instance by setting deleted_at to the current UTC time

            status, value = repo.soft_delete(widget)
            if status == "error":
                print(value.errors)
        """
        return self.update(change(data_or_changeset, **{self.field: utc_now()}))

    def soft_delete_or_raise(self, data_or_changeset: Any) -> Any:
        return self._unwrap("soft_delete", self.soft_delete(data_or_changeset))

    def soft_restore(self, data_or_changeset: Any) -> Result:
        """Restore one soft-deleted instance by clearing deleted_at"""
        return self.update(change(data_or_changeset, **{self.field: None}))

    def soft_restore_or_raise(self, data_or_changeset: Any) -> Any:
        return self._unwrap("soft_restore", self.soft_restore(data_or_changeset))

    # ========================================================================
    # Helpers
    # ========================================================================

    def _execute_update(self, statement: Update, values: dict) -> Tuple[int, Optional[List[Any]]]:
        statement = statement.values(**values)
        returning = len(statement.exported_columns) > 0

        result = self.session.execute(statement)
        if not returning:
            return result.rowcount, None

        rows = list(result.scalars().all()) if len(result.keys()) == 1 else list(result.all())
        return len(rows), rows

    def _to_update(self, queryable: Any) -> Update:
        if isinstance(queryable, Update):
            return queryable
        if not isinstance(queryable, Select):
            return update(queryable)

        statement = update(self._update_target(queryable))
        if queryable.whereclause is not None:
            statement = statement.where(queryable.whereclause)
        return statement

    def _field_column(self, statement: Update) -> Any:
        """Deletion timestamp column of an UPDATE target, as a mapped attribute when there is one"""
        entity = statement.entity_description.get("entity")
        if entity is not None and hasattr(entity, self.field):
            return getattr(entity, self.field)
        return statement.table.c[self.field]

    @staticmethod
    def _update_target(query: Select) -> Any:
        """Mapped class or table a SELECT reads from, as an UPDATE target"""
        froms = query.get_final_froms()
        if len(froms) > 1 or any(isinstance(source, Join) for source in froms):
            raise ArgumentError("Cannot update rows through a query over several tables; filter a single entity")

        descriptions = query.column_descriptions
        entity = descriptions[0].get("entity") if descriptions else None
        if isinstance(entity, type) and isinstance(inspect(entity, raiseerr=False), Mapper):
            return entity

        source = primary_source(query)
        if isinstance(source, Table):
            return source

        raise ArgumentError(f"Cannot update rows through {source!r}; query a table or mapped class directly")

    @staticmethod
    def _check_persisted(instance: Any) -> None:
        if inspect(instance).key is None:
            raise InvalidRequestError(f"{type(instance).__name__} instance has not been persisted yet")

    @staticmethod
    def _unwrap(action: str, result: Result) -> Any:
        if not result.ok:
            raise InvalidChangesetError(action, result.value)
        return result.value
