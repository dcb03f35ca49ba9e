"""Predicate AST — table-agnostic row filters compiled to SQLAlchemy clauses."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from sqlalchemy import and_ as sa_and
from sqlalchemy import false, true
from sqlalchemy import or_ as sa_or

from quarry.exceptions import StorageError

if TYPE_CHECKING:
    from sqlalchemy.sql.elements import ColumnElement
    from sqlmodel import SQLModel

# ------------------------------------------------------------------
# Enums
# ------------------------------------------------------------------


class FilterOp(Enum):
    """Comparison operators for row filtering."""

    EQ = "eq"
    NE = "ne"
    IN = "in"
    NOT_IN = "not_in"


class LogicalOp(Enum):
    """Logical combinators for grouping filter expressions."""

    AND = "and"
    OR = "or"


# ------------------------------------------------------------------
# AST nodes
# ------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Comparison:
    """A single column comparison (e.g. ``field == value``).

    Attributes:
        field: Column name on the target model.
        op: Comparison operator.
        value: Value to compare against.  A sequence for ``IN``/``NOT_IN``.
    """

    field: str
    op: FilterOp
    value: Any


@dataclass(frozen=True, slots=True)
class LogicalGroup:
    """A logical combination of filter expressions.

    Attributes:
        op: Logical operator (AND / OR).
        expressions: Child expressions to combine.
    """

    op: LogicalOp
    expressions: list[FilterExpression]


FilterExpression = Comparison | LogicalGroup
"""Union type for the filter AST: either a leaf :class:`Comparison` or a
:class:`LogicalGroup` combining sub-expressions."""


# ------------------------------------------------------------------
# Builder helpers
# ------------------------------------------------------------------


def eq(field: str, value: Any) -> Comparison:
    """``field == value``."""
    return Comparison(field=field, op=FilterOp.EQ, value=value)


def ne(field: str, value: Any) -> Comparison:
    """``field != value``."""
    return Comparison(field=field, op=FilterOp.NE, value=value)


def in_(field: str, values: list[Any]) -> Comparison:
    """``field IN values``."""
    return Comparison(field=field, op=FilterOp.IN, value=list(values))


def not_in(field: str, values: list[Any]) -> Comparison:
    """``field NOT IN values``."""
    return Comparison(field=field, op=FilterOp.NOT_IN, value=list(values))


def and_(*exprs: FilterExpression) -> LogicalGroup:
    """Combine expressions with AND."""
    return LogicalGroup(op=LogicalOp.AND, expressions=list(exprs))


def or_(*exprs: FilterExpression) -> LogicalGroup:
    """Combine expressions with OR."""
    return LogicalGroup(op=LogicalOp.OR, expressions=list(exprs))


# ------------------------------------------------------------------
# Compiler
# ------------------------------------------------------------------


def _column(model: type[SQLModel], name: str) -> Any:
    if name not in model.model_fields:
        msg = f"{model.__name__} has no column {name!r}"
        raise StorageError(msg)
    return getattr(model, name)


def compile_sql(model: type[SQLModel], expr: FilterExpression) -> ColumnElement[bool]:
    """Compile a ``FilterExpression`` to a SQLAlchemy boolean clause on *model*.

    Examples::

        compile_sql(FileRecord, eq("progress", 0))
        # quarry_files.progress = :progress_1

        compile_sql(FileRecord, and_(eq("progress", 0), not_in("file_path", ["/a"])))
        # quarry_files.progress = :progress_1 AND quarry_files.file_path NOT IN (...)

    Raises :class:`StorageError` when a field is not a column of *model*.
    """
    if isinstance(expr, Comparison):
        column = _column(model, expr.field)
        if expr.op == FilterOp.EQ:
            return column.is_(None) if expr.value is None else column == expr.value
        if expr.op == FilterOp.NE:
            return column.is_not(None) if expr.value is None else column != expr.value
        if expr.op == FilterOp.IN:
            return column.in_(expr.value)
        return column.not_in(expr.value)

    # LogicalGroup
    clauses = [compile_sql(model, child) for child in expr.expressions]
    if expr.op == LogicalOp.AND:
        return sa_and(*clauses) if clauses else true()
    return sa_or(*clauses) if clauses else false()
