from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .models import MutationReport


class BulkOpsError(Exception):
    """Base exception for bulkops errors."""


class ValidationError(BulkOpsError):
    """Malformed mutation request. Never retried."""


class BackendUnavailable(BulkOpsError):
    """A required backend was not registered. Raised before any row is touched."""


class BackendError(BulkOpsError):
    """Any failure of the underlying store outside a partial run."""

    def __init__(self, message: str, report: Optional["MutationReport"] = None) -> None:
        super().__init__(message)
        self.report = report


class PartialFailure(BulkOpsError):
    """
    A backend failure after some rows were already committed.

    ``rows_committed`` counts only rows the backend confirmed before the
    failure. Retrying is left to the caller.
    """

    def __init__(
        self,
        message: str,
        rows_committed: int,
        report: Optional["MutationReport"] = None,
    ) -> None:
        super().__init__(message)
        self.rows_committed = rows_committed
        self.report = report
