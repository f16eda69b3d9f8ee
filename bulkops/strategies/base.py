from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional

from ..db.backend import ExecutionBackend
from ..models import MutationRequest, StrategyKind, StrategyResult


class MutationStrategy(ABC):
    """
    Abstract base for bulk mutation strategies.

    A strategy owns its whole execution path against the ExecutionBackend it
    is handed; it keeps no state between runs.
    """

    kind: StrategyKind
    # True when the strategy bypasses any caller-held copy of the rows.
    stale_reads: bool = True

    @abstractmethod
    def run(
        self,
        backend: ExecutionBackend,
        request: MutationRequest,
        values: Mapping[str, Any],
        cancel: Optional[threading.Event] = None,
    ) -> StrategyResult:
        """
        Apply ``request`` with ``values`` (assignments with NOW resolved).

        Raises:
            PartialFailure: If a failure happens after rows were committed
        """
        ...


def is_cancelled(cancel: Optional[threading.Event]) -> bool:
    return cancel is not None and cancel.is_set()
