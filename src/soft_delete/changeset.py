"""
Changesets

A changeset pairs a mapped instance with the field changes pending against it
and any validation errors collected along the way. Repositories apply a valid
changeset and flush; an invalid one is handed back untouched.
"""

from typing import Any, Dict, List, Literal, NamedTuple, Optional, Tuple


class Result(NamedTuple):
    """Outcome of a single-row write: ("ok", instance) or ("error", changeset)"""

    status: Literal["ok", "error"]
    value: Any

    @property
    def ok(self) -> bool:
        return self.status == "ok"


class Changeset:
    """Pending field changes against one mapped instance"""

    def __init__(
        self,
        data: Any,
        changes: Optional[Dict[str, Any]] = None,
        errors: Optional[List[Tuple[Optional[str], str]]] = None,
    ):
        self.data = data
        self.changes: Dict[str, Any] = dict(changes or {})
        self.errors: List[Tuple[Optional[str], str]] = list(errors or [])

    def __repr__(self) -> str:
        return (
            f"<Changeset data={type(self.data).__name__} changes={self.changes!r} "
            f"errors={self.errors!r} valid={self.valid}>"
        )

    @property
    def valid(self) -> bool:
        return not self.errors

    def add_error(self, field: Optional[str], message: str) -> "Changeset":
        self.errors.append((field, message))
        return self

    def get_change(self, field: str, default: Any = None) -> Any:
        return self.changes.get(field, default)

    def get_field(self, field: str, default: Any = None) -> Any:
        """Pending value for a field, falling back to the instance's current value"""
        if field in self.changes:
            return self.changes[field]
        return getattr(self.data, field, default)

    def apply(self) -> bool:
        """
        Assign pending changes onto the instance

        ORM validators run on assignment; a ValueError from one is recorded as an
        error on that field and every assignment already made is reverted.

        Returns:
            True if every change was applied, False otherwise
        """
        applied: List[Tuple[str, Any]] = []
        for field, value in self.changes.items():
            previous = getattr(self.data, field)
            try:
                setattr(self.data, field, value)
            except ValueError as e:
                self.add_error(field, str(e))
                for applied_field, applied_value in reversed(applied):
                    setattr(self.data, applied_field, applied_value)
                return False
            applied.append((field, previous))
        return True


def change(data_or_changeset: Any, **changes: Any) -> Changeset:
    """
    Start a changeset from an instance, or extend an existing one

        changeset = change(widget, deleted_at=None)

    An existing changeset is copied; the one passed in is left as it was.
    """
    if isinstance(data_or_changeset, Changeset):
        return Changeset(
            data_or_changeset.data,
            {**data_or_changeset.changes, **changes},
            data_or_changeset.errors,
        )
    return Changeset(data_or_changeset, changes)


def validate_required(changeset: Changeset, *fields: str) -> Changeset:
    """Add an error for every field whose pending or current value is blank"""
    for field in fields:
        value = changeset.get_field(field)
        if value is None or (isinstance(value, str) and not value.strip()):
            changeset.add_error(field, "can't be blank")
    return changeset
