from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterator, Optional

from sqlalchemy import Table

from .errors import ValidationError


class StrategyKind(str, Enum):
    ROW_BY_ROW = "row_by_row"
    SET_BASED = "set_based"
    BULK_API = "bulk_api"


class Operator(str, Enum):
    EQ = "="
    NEQ = "<>"
    LT = "<"
    GT = ">"
    LE = "<="
    GE = ">="

    @classmethod
    def parse(cls, operator: "Operator | str") -> "Operator":
        """Accept the SQL token (``<``) or the member name (``LT``)."""
        try:
            return cls(operator)
        except ValueError:
            pass
        try:
            return cls[str(operator).upper()]
        except KeyError:
            raise ValidationError(f"Unknown operator {operator!r}") from None


class OperationKind(str, Enum):
    UPDATE = "update"
    DELETE = "delete"


class _Now:
    """Sentinel for "the current timestamp", resolved once per execution."""

    _instance: Optional["_Now"] = None

    def __new__(cls) -> "_Now":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NOW"

    def __reduce__(self) -> str:
        return "NOW"


NOW = _Now()


def key_column(schema: Table) -> str:
    """Name of the single primary key column of ``schema``."""
    return next(iter(schema.primary_key.columns)).name


@dataclass(frozen=True)
class Predicate:
    """
    A single comparison ``field <operator> value``.
    """
    field: str
    operator: Operator
    value: Any


@dataclass(frozen=True)
class PredicateSet:
    """
    Ordered conjunction of predicates.

    Order only affects the generated SQL text, never which rows match.
    """
    predicates: tuple[Predicate, ...] = ()

    def __iter__(self) -> Iterator[Predicate]:
        return iter(self.predicates)

    def __len__(self) -> int:
        return len(self.predicates)

    def and_(self, field: str, operator: "Operator | str", value: Any) -> "PredicateSet":
        return PredicateSet(self.predicates + (Predicate(field, Operator.parse(operator), value),))

    @property
    def fields(self) -> tuple[str, ...]:
        return tuple(p.field for p in self.predicates)


@dataclass(frozen=True)
class Assignment:
    field: str
    value: Any  # scalar or NOW


@dataclass(frozen=True)
class MutationRequest:
    """
    A single logical bulk UPDATE or DELETE.

    Built through :func:`bulkops.builder.build_request`, which validates field
    references and value types against ``schema``.
    """
    schema: Table
    predicates: PredicateSet
    operation_kind: OperationKind
    assignments: tuple[Assignment, ...] = ()

    @property
    def table(self) -> str:
        return self.schema.name

    @property
    def key(self) -> str:
        return key_column(self.schema)

    @property
    def assigned_fields(self) -> tuple[str, ...]:
        return tuple(a.field for a in self.assignments)

    def resolve_assignments(self, now: Any) -> dict[str, Any]:
        """
        Return ``field -> value`` with every NOW sentinel replaced by ``now``.
        """
        return {
            a.field: (now if a.value is NOW else a.value) for a in self.assignments
        }


@dataclass(frozen=True)
class MutationReport:
    """
    Outcome of executing one MutationRequest.

    ``rows_affected`` counts rows the backend reported as changed, never rows
    that were merely intended.
    """
    rows_affected: int
    strategy_used: StrategyKind
    elapsed_millis: float
    stale_read_warning: bool
    estimated_rows: int = 0
    cancelled: bool = False
    warnings: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.rows_affected < 0:
            raise ValueError("rows_affected must be >= 0")


@dataclass(frozen=True)
class StrategyResult:
    """What a strategy hands back to the engine before timing is attached."""
    rows_affected: int
    cancelled: bool = False


RowHook = Callable[[dict[str, Any]], None]
