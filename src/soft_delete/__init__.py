"""
Soft Delete for SQLAlchemy

Rows are marked deleted through a deleted_at timestamp instead of being removed,
and ORM reads leave them out unless the caller asks for them.
"""

from .changeset import Changeset, Result, change, validate_required
from .config import SOFT_DELETE_FIELD, WITH_DELETED_OPTION
from .errors import InvalidChangesetError, SoftDeleteError
from .hooks import ReadHook, install_read_hook, prepare_query
from .mixins import SoftDeleteMixin
from .query import (
    has_include_deleted_clause,
    has_undeleted_clause,
    only_deleted,
    soft_deletable,
    to_query,
    with_deleted,
    with_undeleted,
)
from .repo import SoftDeleteRepo
from .schema import fields_of, primary_source, resolve_entity

__all__ = [
    # Configuration
    "SOFT_DELETE_FIELD",
    "WITH_DELETED_OPTION",
    # Query helpers
    "to_query",
    "soft_deletable",
    "has_include_deleted_clause",
    "has_undeleted_clause",
    "with_undeleted",
    "only_deleted",
    "with_deleted",
    # Schema introspection
    "fields_of",
    "primary_source",
    "resolve_entity",
    # Read hook
    "ReadHook",
    "install_read_hook",
    "prepare_query",
    # Changesets
    "Changeset",
    "Result",
    "change",
    "validate_required",
    # Repository
    "SoftDeleteRepo",
    "SoftDeleteMixin",
    # Errors
    "SoftDeleteError",
    "InvalidChangesetError",
]
