"""
Soft Delete Errors
"""

from typing import Any


class SoftDeleteError(Exception):
    """Base class for errors raised by the soft delete layer"""


class InvalidChangesetError(SoftDeleteError):
    """Raised by the *_or_raise operations when a changeset fails validation"""

    def __init__(self, action: str, changeset: Any):
        self.action = action
        self.changeset = changeset
        errors = ", ".join(f"{field or 'base'}: {message}" for field, message in changeset.errors)
        super().__init__(f"could not perform {action} because changeset is invalid ({errors})")
