from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping, Sequence

from sqlalchemy import Table

from ..models import OperationKind


class BulkBackend(ABC):
    """
    Abstract base for high-throughput multi-row writers.

    Rows are minimal projections: the key column plus, for UPDATE, only the
    fields being changed.
    """

    @abstractmethod
    def submit_batch(
        self,
        table: Table,
        operation_kind: OperationKind,
        rows: Sequence[Mapping[str, Any]],
    ) -> int:
        """Apply one batch and return the affected row count reported for it."""
        ...
