"""
Soft Delete Settings

Environment-driven defaults shared by the query helpers, the read hook and the repository.
"""

import os

# Column that records when a row was soft deleted; NULL means the row is live
SOFT_DELETE_FIELD = os.getenv("SOFT_DELETE_FIELD", "deleted_at")

# Execution option that lets a single read see soft-deleted rows
WITH_DELETED_OPTION = os.getenv("SOFT_DELETE_OPTION", "with_deleted")
