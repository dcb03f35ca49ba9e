"""Tests for the filter AST and its SQL compiler."""

from __future__ import annotations

import pytest
from sqlalchemy.sql.elements import False_, True_

from quarry.exceptions import StorageError
from quarry.models import FileRecord
from quarry.store.filters import (
    Comparison,
    FilterOp,
    LogicalGroup,
    LogicalOp,
    and_,
    compile_sql,
    eq,
    in_,
    ne,
    not_in,
    or_,
)


def _sql(expr) -> str:
    return str(compile_sql(FileRecord, expr).compile(compile_kwargs={"literal_binds": True}))


class TestBuilders:
    def test_eq(self):
        assert eq("progress", 0) == Comparison(field="progress", op=FilterOp.EQ, value=0)

    def test_in_copies_values(self):
        values = {"a", "b"}
        expr = in_("file_path", values)  # type: ignore[arg-type]
        assert isinstance(expr.value, list)
        assert sorted(expr.value) == ["a", "b"]

    def test_groups(self):
        group = and_(eq("progress", 0), or_(eq("name", "a"), eq("name", "b")))
        assert isinstance(group, LogicalGroup)
        assert group.op == LogicalOp.AND
        assert group.expressions[1].op == LogicalOp.OR


class TestCompile:
    def test_equality(self):
        assert _sql(eq("progress", 0)) == "quarry_files.progress = 0"

    def test_none_becomes_is_null(self):
        assert _sql(eq("file_type", None)) == "quarry_files.file_type IS NULL"
        assert _sql(ne("file_type", None)) == "quarry_files.file_type IS NOT NULL"

    def test_not_in(self):
        sql = _sql(not_in("file_path", ["a.txt"]))
        assert "NOT IN" in sql
        assert "'a.txt'" in sql

    def test_and(self):
        sql = _sql(and_(eq("progress", 0), in_("name", ["x"])))
        assert "progress = 0 AND" in sql

    def test_empty_and_is_true(self):
        assert isinstance(compile_sql(FileRecord, and_()), True_)

    def test_empty_or_is_false(self):
        assert isinstance(compile_sql(FileRecord, or_()), False_)

    def test_unknown_column(self):
        with pytest.raises(StorageError, match="no column 'nope'"):
            compile_sql(FileRecord, eq("nope", 1))
