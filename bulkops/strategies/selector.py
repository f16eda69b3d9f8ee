from __future__ import annotations

from typing import Optional, Sequence

from ..bulk.base import BulkBackend
from ..config import MutationConfig
from ..models import MutationRequest, RowHook, StrategyKind
from .base import MutationStrategy
from .bulk_api import BulkApiStrategy
from .row_by_row import RowByRowStrategy
from .set_based import SetBasedStrategy


def select_strategy(
    request: MutationRequest,
    estimated_rows: int,
    config: MutationConfig,
    bulk_available: bool,
    has_hooks: bool = False,
) -> tuple[StrategyKind, str]:
    """
    Choose a strategy and the reason for it.

    Pure and deterministic: the same inputs always give the same choice.

    - Requests carrying row hooks, or estimated at or below
      ``row_by_row_threshold`` rows, run row by row.
    - Otherwise BULK_API when preferred and a bulk backend is registered.
    - Otherwise SET_BASED.
    """
    if has_hooks:
        return StrategyKind.ROW_BY_ROW, "row hooks can only run row by row"

    if estimated_rows <= config.row_by_row_threshold:
        return (
            StrategyKind.ROW_BY_ROW,
            f"estimate {estimated_rows} <= row_by_row_threshold {config.row_by_row_threshold}",
        )

    if config.prefer_bulk_api and bulk_available:
        return StrategyKind.BULK_API, "prefer_bulk_api is set and a bulk backend is registered"

    if config.prefer_bulk_api:
        return StrategyKind.SET_BASED, "prefer_bulk_api is set but no bulk backend is registered"

    return StrategyKind.SET_BASED, f"estimate {estimated_rows} > row_by_row_threshold"


def make_strategy(
    kind: StrategyKind,
    config: MutationConfig,
    bulk_backend: Optional[BulkBackend] = None,
    hooks: Sequence[RowHook] = (),
) -> MutationStrategy:
    """
    Build the strategy object for ``kind``.

    Raises:
        BackendUnavailable: If ``kind`` is BULK_API and ``bulk_backend`` is None
    """
    if kind == StrategyKind.ROW_BY_ROW:
        return RowByRowStrategy(page_size=config.page_size, hooks=hooks)

    if kind == StrategyKind.SET_BASED:
        return SetBasedStrategy()

    if kind == StrategyKind.BULK_API:
        return BulkApiStrategy(bulk_backend, batch_size=config.batch_size)

    raise ValueError(f"Unknown strategy: {kind}")
