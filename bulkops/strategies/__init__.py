from ..models import StrategyKind
from .base import MutationStrategy
from .bulk_api import BulkApiStrategy
from .row_by_row import RowByRowStrategy
from .selector import make_strategy, select_strategy
from .set_based import SetBasedStrategy

__all__ = [
    "StrategyKind",
    "MutationStrategy",
    "RowByRowStrategy",
    "SetBasedStrategy",
    "BulkApiStrategy",
    "select_strategy",
    "make_strategy",
]
