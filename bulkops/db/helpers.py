from __future__ import annotations

import operator as op
import re
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

from sqlalchemy import Table, bindparam, delete, func, select, update
from sqlalchemy.sql.elements import ColumnElement
from sqlalchemy.sql.expression import Delete, Select, Update

from ..models import Operator, PredicateSet, key_column

KEY_PARAM = "key_value"
KEYS_PARAM = "key_values"
AFTER_PARAM = "after_key"

_COMPARATORS: dict[Operator, Callable[[Any, Any], ColumnElement]] = {
    Operator.EQ: op.eq,
    Operator.NEQ: op.ne,
    Operator.LT: op.lt,
    Operator.GT: op.gt,
    Operator.LE: op.le,
    Operator.GE: op.ge,
}


def _validate_identifier(name: str, identifier_type: str = "identifier") -> str:
    """
    Validate that an identifier (table/column name) is portable.

    Identifiers are restricted to alphanumeric characters and underscores.
    Statements are built from the schema's ``Column`` objects, so the dialect
    quotes them when rendering; reserved words such as ``order`` are fine.

    Raises:
        TypeError: If identifier is not a string
        ValueError: If identifier contains unsafe characters or is invalid

    Example:
        >>> _validate_identifier("orders", "table")
        'orders'
        >>> _validate_identifier("'; DROP TABLE--", "table")
        ValueError: Invalid table '; DROP TABLE--': ...
    """
    if not isinstance(name, str):
        raise TypeError(f"{identifier_type} must be a string, got {type(name).__name__}")

    if not name:
        raise ValueError(f"{identifier_type} cannot be empty")

    if not re.match(r'^[a-zA-Z_][a-zA-Z0-9_]*$', name):
        raise ValueError(
            f"Invalid {identifier_type} {name!r}: "
            "must start with letter/underscore and contain only alphanumeric characters and underscores"
        )

    if len(name) > 64:
        raise ValueError(f"{identifier_type} {name!r} exceeds the 64-character limit")

    return name


def _conditions(schema: Table, predicates: PredicateSet) -> list[ColumnElement]:
    """
    Render predicates in the order given, one positional parameter each.
    """
    conditions: list[ColumnElement] = []

    for i, pred in enumerate(predicates):
        col = schema.c[_validate_identifier(pred.field, "column")]
        if pred.value is None:
            # Only EQ/NEQ reach here; the builder rejects None elsewhere.
            conditions.append(col.is_(None) if pred.operator == Operator.EQ else col.is_not(None))
            continue

        param = bindparam(f"p{i}", pred.value, type_=col.type)
        conditions.append(_COMPARATORS[Operator.parse(pred.operator)](col, param))

    return conditions


def _set_values(schema: Table, values: Mapping[str, Any]) -> dict[Any, Any]:
    assignments: dict[Any, Any] = {}
    for name, value in values.items():
        col = schema.c[_validate_identifier(name, "column")]
        assignments[col] = bindparam(f"set_{name}", value, type_=col.type)
    return assignments


def _key_in(schema: Table, key_values: Sequence[Any]) -> ColumnElement:
    key = schema.c[key_column(schema)]
    return key.in_(bindparam(KEYS_PARAM, list(key_values), expanding=True, type_=key.type))


def compile_count(schema: Table, predicates: PredicateSet) -> Select:
    _validate_identifier(schema.name, "table")
    return (
        select(func.count().label("row_count"))
        .select_from(schema)
        .where(*_conditions(schema, predicates))
    )


def compile_page_select(
    schema: Table,
    predicates: PredicateSet,
    columns: Iterable[str],
    limit: int,
    after: Optional[Any] = None,
) -> Select:
    """
    Keyset page: rows matching ``predicates`` with key > ``after``, in key order.

    Keyset paging stays correct while earlier pages are being updated or
    deleted, unlike OFFSET paging.
    """
    _validate_identifier(schema.name, "table")
    key = schema.c[key_column(schema)]
    selected = [schema.c[_validate_identifier(c, "column")] for c in columns]

    conditions = _conditions(schema, predicates)
    if after is not None:
        conditions.append(key > bindparam(AFTER_PARAM, after, type_=key.type))

    return (
        select(*selected)
        .where(*conditions)
        .order_by(key)
        .limit(limit)
    )


def compile_update(
    schema: Table,
    predicates: PredicateSet,
    values: Mapping[str, Any],
) -> Update:
    _validate_identifier(schema.name, "table")
    return (
        update(schema)
        .values(_set_values(schema, values))
        .where(*_conditions(schema, predicates))
    )


def compile_delete(schema: Table, predicates: PredicateSet) -> Delete:
    _validate_identifier(schema.name, "table")
    return delete(schema).where(*_conditions(schema, predicates))


def compile_key_update(
    schema: Table,
    values: Mapping[str, Any],
    key_value: Any,
) -> Update:
    """UPDATE of exactly one row by primary key."""
    _validate_identifier(schema.name, "table")
    key = schema.c[key_column(schema)]
    return (
        update(schema)
        .values(_set_values(schema, values))
        .where(key == bindparam(KEY_PARAM, key_value, type_=key.type))
    )


def compile_keys_update(
    schema: Table,
    values: Mapping[str, Any],
    key_values: Sequence[Any],
) -> Update:
    """One UPDATE applying the same ``values`` to every row in ``key_values``."""
    _validate_identifier(schema.name, "table")
    return update(schema).values(_set_values(schema, values)).where(_key_in(schema, key_values))


def compile_keys_delete(schema: Table, key_values: Sequence[Any]) -> Delete:
    _validate_identifier(schema.name, "table")
    return delete(schema).where(_key_in(schema, key_values))
