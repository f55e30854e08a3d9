"""
Soft Delete Read Hook

Session-level interception that hides soft-deleted rows from ORM SELECTs.

    hook = install_read_hook(SessionLocal)
    session.scalars(select(Widget)).all()  # live rows only
    session.scalars(select(Widget), execution_options={"with_deleted": True}).all()

UPDATE and DELETE executions are never rewritten, and neither are column loads
(refresh / expired attribute loads) of instances already in the session.
"""

import logging
from typing import Any, Mapping, Tuple

from sqlalchemy import Select, event
from sqlalchemy.orm import ORMExecuteState

from .config import SOFT_DELETE_FIELD, WITH_DELETED_OPTION
from .query import with_undeleted
from .schema import FieldsResolver, fields_of

logger = logging.getLogger(__name__)

EVENT_NAME = "do_orm_execute"


def prepare_query(
    operation: str,
    query: Any,
    options: Mapping[str, Any],
    field: str = SOFT_DELETE_FIELD,
    option: str = WITH_DELETED_OPTION,
    resolver: FieldsResolver = fields_of,
) -> Tuple[Any, Mapping[str, Any]]:
    """
    Rewrite a read so it excludes soft-deleted rows

    Precedence, highest first: the ``with_deleted`` option, an explicit
    ``deleted_at IS NOT NULL`` in the query, an entity without the field, and
    finally the default ``deleted_at IS NULL`` filter.

    Args:
        operation: Kind of read being executed ("all", "relationship")
        query: Statement about to run
        options: Execution options for this call
        field: Deletion timestamp field name
        option: Execution option key that disables filtering
        resolver: Field name resolver for the query's entity

    Returns:
        Tuple of (query, options)
    """
    if options.get(option):
        logger.debug(f"Soft delete filter skipped for {operation}: {option}=True")
        return query, options

    if not isinstance(query, Select):
        return query, options

    return with_undeleted(query, field, resolver), options


class ReadHook:
    """``do_orm_execute`` listener applying prepare_query to every ORM SELECT"""

    def __init__(
        self,
        field: str = SOFT_DELETE_FIELD,
        option: str = WITH_DELETED_OPTION,
        resolver: FieldsResolver = fields_of,
    ):
        self.field = field
        self.option = option
        self.resolver = resolver

    def __call__(self, orm_execute_state: ORMExecuteState) -> None:
        if not orm_execute_state.is_select or orm_execute_state.is_column_load:
            return

        operation = "relationship" if orm_execute_state.is_relationship_load else "all"
        statement, _ = prepare_query(
            operation,
            orm_execute_state.statement,
            orm_execute_state.execution_options,
            field=self.field,
            option=self.option,
            resolver=self.resolver,
        )

        if statement is not orm_execute_state.statement:
            logger.debug(f"Soft delete filter applied on {self.field} for {operation}")
            orm_execute_state.statement = statement

    def install(self, target: Any) -> "ReadHook":
        """Listen on a Session, sessionmaker or the Session class"""
        if not self.installed(target):
            event.listen(target, EVENT_NAME, self)
        return self

    def remove(self, target: Any) -> None:
        if self.installed(target):
            event.remove(target, EVENT_NAME, self)

    def installed(self, target: Any) -> bool:
        return event.contains(target, EVENT_NAME, self)


def install_read_hook(target: Any, **kwargs: Any) -> ReadHook:
    """Create a ReadHook and install it on ``target``"""
    return ReadHook(**kwargs).install(target)
