from .builder import build_request, reflect_table
from .bulk import BulkBackend, SqlBulkBackend
from .config import MutationConfig
from .db import DbSession, EngineBackend, ExecutionBackend
from .engine import MutationEngine
from .errors import (
    BackendError,
    BackendUnavailable,
    BulkOpsError,
    PartialFailure,
    ValidationError,
)
from .models import (
    NOW,
    Assignment,
    MutationReport,
    MutationRequest,
    OperationKind,
    Operator,
    Predicate,
    PredicateSet,
    StrategyKind,
)

__all__ = [
    "MutationEngine",
    "MutationConfig",
    "build_request",
    "reflect_table",
    "ExecutionBackend",
    "EngineBackend",
    "DbSession",
    "BulkBackend",
    "SqlBulkBackend",
    "NOW",
    "Assignment",
    "MutationReport",
    "MutationRequest",
    "OperationKind",
    "Operator",
    "Predicate",
    "PredicateSet",
    "StrategyKind",
    "BulkOpsError",
    "ValidationError",
    "BackendUnavailable",
    "BackendError",
    "PartialFailure",
]
