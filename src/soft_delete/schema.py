"""
Soft Delete Schema Introspection

Resolves the entity a statement reads from and the field names that entity declares.
Nothing here touches the database; only statement and mapper metadata are inspected.
"""

from typing import Any, Callable, Iterable, Optional, Set

from sqlalchemy import Select, inspect
from sqlalchemy.orm import Mapper
from sqlalchemy.sql.selectable import AliasedReturnsRows, FromClause, Join, TableClause

# Called with the innermost Table behind a statement, never the mapped class
FieldsResolver = Callable[[Any], Iterable[str]]


def fields_of(entity: Any) -> Set[str]:
    """
    Field names declared by a mapped class or table

    Unknown objects resolve to an empty set rather than raising.
    """
    info = inspect(entity, raiseerr=False)
    if isinstance(info, Mapper):
        return {attr.key for attr in info.column_attrs}
    if isinstance(entity, FromClause):
        return set(entity.c.keys())
    return set()


def primary_source(query: Any) -> Optional[FromClause]:
    """
    First FROM element of a SELECT, with joins unwrapped to their left side

    The entity named in the columns clause wins; statements that select only
    expressions (``select(func.count()).select_from(...)``) fall back to the
    compiled FROM list.
    """
    if not isinstance(query, Select):
        return None

    froms = query.columns_clause_froms or query.get_final_froms()
    if not froms:
        return None

    source = froms[0]
    while isinstance(source, Join):
        source = source.left
    return source


def resolve_entity(source: Optional[FromClause]) -> Optional[TableClause]:
    """
    Innermost concrete table behind a FROM element

    Subqueries, CTEs and aliases are unwrapped recursively; anything not backed
    by a table (textual selects, table-valued functions) resolves to None.
    """
    if isinstance(source, AliasedReturnsRows):
        inner = source.element
        if isinstance(inner, Select):
            return resolve_entity(primary_source(inner))
        if isinstance(inner, FromClause):
            return resolve_entity(inner)
        return None

    if isinstance(source, TableClause):
        return source

    return None
