from __future__ import annotations

import datetime
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional, Union

from sqlalchemy import Column, MetaData, Table
from sqlalchemy.engine import Engine

from .db.helpers import _validate_identifier
from .errors import ValidationError
from .models import (
    NOW,
    Assignment,
    MutationRequest,
    OperationKind,
    Operator,
    Predicate,
    PredicateSet,
)

PredicateLike = Union[Predicate, tuple]
AssignmentsLike = Union[Mapping[str, Any], Iterable[Assignment]]


def reflect_table(engine: Engine, name: str) -> Table:
    """Load the schema of an existing table."""
    return Table(_validate_identifier(name, "table"), MetaData(), autoload_with=engine)


def _python_type(column: Column) -> Optional[type]:
    try:
        return column.type.python_type
    except NotImplementedError:
        return None


def _check_value(column: Column, value: Any, what: str) -> None:
    expected = _python_type(column)
    if expected is None:
        return

    if expected is bool:
        ok = isinstance(value, bool)
    elif isinstance(value, bool):
        ok = False
    elif expected in (float, Decimal):
        ok = isinstance(value, (int, float, Decimal))
    else:
        ok = isinstance(value, expected)

    if not ok:
        raise ValidationError(
            f"{what} {column.name!r} expects {expected.__name__}, "
            f"got {type(value).__name__} ({value!r})"
        )


def _column(schema: Table, name: str, what: str) -> Column:
    try:
        _validate_identifier(name, what)
    except (TypeError, ValueError) as exc:
        raise ValidationError(str(exc)) from exc
    if name not in schema.c:
        raise ValidationError(f"Unknown {what} {name!r} for table {schema.name!r}")
    return schema.c[name]


def _coerce_predicates(predicates: Union[PredicateSet, Iterable[PredicateLike]]) -> PredicateSet:
    items = []
    for p in predicates:
        if isinstance(p, Predicate):
            if not isinstance(p.operator, Operator):
                p = Predicate(p.field, Operator.parse(p.operator), p.value)
        else:
            try:
                field, operator, value = p
            except (TypeError, ValueError) as exc:
                raise ValidationError(
                    f"Predicate must be (field, operator, value), got {p!r}"
                ) from exc
            p = Predicate(field, Operator.parse(operator), value)
        items.append(p)
    return PredicateSet(tuple(items))


def _coerce_assignments(assignments: Optional[AssignmentsLike]) -> tuple[Assignment, ...]:
    if assignments is None:
        return ()
    if isinstance(assignments, Mapping):
        return tuple(Assignment(f, v) for f, v in assignments.items())

    items = tuple(assignments)
    seen: set[str] = set()
    for a in items:
        if a.field in seen:
            raise ValidationError(f"Field {a.field!r} is assigned more than once")
        seen.add(a.field)
    return items


def build_request(
    schema: Table,
    predicates: Union[PredicateSet, Iterable[PredicateLike]],
    operation_kind: Union[OperationKind, str],
    assignments: Optional[AssignmentsLike] = None,
) -> MutationRequest:
    """
    Validate and assemble a MutationRequest. Pure; touches no backend.

    ``predicates`` is a PredicateSet or an iterable of Predicate /
    ``(field, operator, value)`` tuples, AND-ed in the order given.
    ``assignments`` is a ``field -> value`` mapping or an iterable of
    Assignment; values may be the ``NOW`` sentinel for date/time columns.

    Example:
        request = build_request(
            orders,
            [("created_on", "<", threshold), ("status", "=", "New")],
            OperationKind.UPDATE,
            {"status": "Archived", "archived_on": NOW},
        )

    Raises:
        ValidationError: On unknown fields, mismatched value types, an UPDATE
            without assignments, a DELETE with assignments, an assignment to
            the key column, or a table without a single-column primary key
    """
    try:
        kind = OperationKind(operation_kind)
    except ValueError as exc:
        raise ValidationError(f"Unknown operation kind {operation_kind!r}") from exc

    try:
        _validate_identifier(schema.name, "table")
    except (TypeError, ValueError) as exc:
        raise ValidationError(str(exc)) from exc

    pk_columns = list(schema.primary_key.columns)
    if len(pk_columns) != 1:
        raise ValidationError(
            f"Table {schema.name!r} must have a single-column primary key, "
            f"found {len(pk_columns)}"
        )
    key = pk_columns[0].name

    predicate_set = _coerce_predicates(predicates)
    for pred in predicate_set:
        column = _column(schema, pred.field, "predicate field")
        if pred.value is None:
            if pred.operator not in (Operator.EQ, Operator.NEQ):
                raise ValidationError(
                    f"NULL can only be compared with EQ or NEQ, got {pred.operator.name} "
                    f"on {pred.field!r}"
                )
            continue
        if pred.value is NOW:
            raise ValidationError("NOW is only valid as an assignment value")
        _check_value(column, pred.value, "Predicate field")

    assignment_items = _coerce_assignments(assignments)
    if kind == OperationKind.UPDATE and not assignment_items:
        raise ValidationError("UPDATE requires at least one assignment")
    if kind == OperationKind.DELETE and assignment_items:
        raise ValidationError("DELETE does not take assignments")

    for a in assignment_items:
        column = _column(schema, a.field, "assignment field")
        if a.field == key:
            raise ValidationError(f"Key column {key!r} cannot be assigned")
        if a.value is NOW:
            if _python_type(column) not in (datetime.datetime, datetime.date):
                raise ValidationError(f"NOW assigned to non date/time column {a.field!r}")
            continue
        if a.value is None:
            if not column.nullable:
                raise ValidationError(f"Column {a.field!r} is not nullable")
            continue
        _check_value(column, a.value, "Assignment field")

    return MutationRequest(
        schema=schema,
        predicates=predicate_set,
        operation_kind=kind,
        assignments=assignment_items,
    )
