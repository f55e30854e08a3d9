"""
Soft Delete Query Utilities

Provides query filtering for soft-deleted records using SQLAlchemy.

    stmt = with_undeleted(select(Widget))
    widgets = session.scalars(stmt).all()

A statement that already carries ``deleted_at IS NOT NULL`` against its primary
source is taken as the caller's explicit choice and is never filtered again.
"""

from typing import Any, List, Optional

from sqlalchemy import Select, select
from sqlalchemy.exc import ArgumentError
from sqlalchemy.sql import operators
from sqlalchemy.sql.elements import BinaryExpression, BooleanClauseList, ColumnElement, Null
from sqlalchemy.sql.selectable import FromClause

from .config import SOFT_DELETE_FIELD, WITH_DELETED_OPTION
from .schema import FieldsResolver, fields_of, primary_source, resolve_entity


def to_query(queryable: Any) -> Select:
    """Normalize a mapped class, table or SELECT into a SELECT statement"""
    if isinstance(queryable, Select):
        return queryable
    return select(queryable)


def _as_select(queryable: Any) -> Optional[Select]:
    try:
        return to_query(queryable)
    except ArgumentError:
        return None


def _predicates(query: Select) -> List[Any]:
    """Top-level WHERE conjuncts, in the order they were added"""
    clause = query.whereclause
    if clause is None:
        return []
    if isinstance(clause, BooleanClauseList) and clause.operator is operators.and_:
        return list(clause.clauses)
    return [clause]


def _is_null_test(predicate: Any, source: FromClause, field: str, operator: Any) -> bool:
    if not isinstance(predicate, BinaryExpression) or predicate.operator is not operator:
        return False
    if not isinstance(predicate.right, Null) or not isinstance(predicate.left, ColumnElement):
        return False

    column = source.corresponding_column(predicate.left)
    return column is not None and column.key == field


def _has_null_test(queryable: Any, field: str, operator: Any) -> bool:
    query = _as_select(queryable)
    if query is None:
        return False

    source = primary_source(query)
    if source is None:
        return False

    return any(_is_null_test(predicate, source, field, operator) for predicate in _predicates(query))


def has_include_deleted_clause(queryable: Any, field: str = SOFT_DELETE_FIELD) -> bool:
    """
    Check whether the query explicitly asks for deleted rows

    Only the exact shape ``NOT (field IS NULL)`` on the primary source counts.
    SQLAlchemy folds ``~col.is_(None)``, ``col.is_not(None)`` and ``col != None``
    into that shape; other spellings such as ``col > '1970-01-01'`` are not recognized.
    """
    return _has_null_test(queryable, field, operators.is_not)


def has_undeleted_clause(queryable: Any, field: str = SOFT_DELETE_FIELD) -> bool:
    """Check whether the query already carries the ``field IS NULL`` filter"""
    return _has_null_test(queryable, field, operators.is_)


def soft_deletable(
    queryable: Any,
    field: str = SOFT_DELETE_FIELD,
    resolver: FieldsResolver = fields_of,
) -> bool:
    """
    Returns True if the query reads from a soft deletable entity, False otherwise

    The entity is found by unwrapping subqueries down to the innermost table;
    ``resolver`` receives that Table, so a custom resolver keys on table
    names or columns rather than mapped classes. Statements with no resolvable
    entity are simply not soft deletable.
    """
    query = _as_select(queryable)
    if query is None:
        return False

    source = primary_source(query)
    if source is None or field not in source.c:
        return False

    entity = resolve_entity(source)
    if entity is None:
        return False

    return field in set(resolver(entity))


def with_undeleted(
    queryable: Any,
    field: str = SOFT_DELETE_FIELD,
    resolver: FieldsResolver = fields_of,
) -> Select:
    """
    Returns a query that searches only for undeleted rows

        stmt = with_undeleted(select(Widget).where(Widget.name == "bolt"))

    The filter is appended after any existing criteria; queries that already
    decide on deleted rows, or that read from an entity without the field,
    come back unchanged.
    """
    query = to_query(queryable)
    if has_include_deleted_clause(query, field) or has_undeleted_clause(query, field):
        return query
    if not soft_deletable(query, field, resolver):
        return query

    return query.where(primary_source(query).c[field].is_(None))


def only_deleted(
    queryable: Any,
    field: str = SOFT_DELETE_FIELD,
    resolver: FieldsResolver = fields_of,
) -> Select:
    """Filter to show only soft-deleted rows"""
    query = to_query(queryable)
    if has_include_deleted_clause(query, field) or not soft_deletable(query, field, resolver):
        return query

    return query.where(~primary_source(query).c[field].is_(None))


def with_deleted(queryable: Any, option: str = WITH_DELETED_OPTION) -> Select:
    """Mark a query so the read hook lets soft-deleted rows through"""
    return to_query(queryable).execution_options(**{option: True})
