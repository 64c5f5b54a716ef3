"""Tests for typed columns, Table and its pandas/polars views."""

import numpy as np
import pandas as pd
import polars as pl
import pytest

from openml_catalog.core.enums import ScientificType
from openml_catalog.core.errors import TableError
from openml_catalog.core.table import Table, TypedColumn, build_table


def _table() -> Table:
    return Table(
        [
            TypedColumn.from_values("x", ScientificType.CONTINUOUS, [1.5, 0, 2.0], [False, True, False]),
            TypedColumn.from_values("n", ScientificType.COUNT, [3, 0, 7], [False, True, False]),
            TypedColumn.from_values(
                "m", ScientificType.MULTICLASS, [1, 0, 0], [False, False, True], ("a", "b")
            ),
            TypedColumn.from_values(
                "o", ScientificType.ORDEREDFACTOR, [0, 2, 1], [False, False, False], ("lo", "mid", "hi")
            ),
            TypedColumn.from_values("t", ScientificType.TEXTUAL, ["p", "", "q"], [False, True, False]),
        ]
    )


class TestTypedColumn:
    def test_from_values_fills_missing_slots(self):
        col = TypedColumn.from_values("x", ScientificType.CONTINUOUS, [1.5, 99.0], [False, True])
        assert col.values.dtype == np.float64
        assert col.values.tolist() == [1.5, 0.0]
        assert col.to_list() == [1.5, None]
        assert col.n_missing == 1

    def test_equality_ignores_missing_fillers(self):
        a = TypedColumn("x", ScientificType.COUNT, np.array([1, 5]), np.array([False, True]))
        b = TypedColumn("x", ScientificType.COUNT, np.array([1, 9]), np.array([False, True]))
        assert a == b

    def test_level_code_out_of_range(self):
        with pytest.raises(TableError, match="level code"):
            TypedColumn.from_values("m", ScientificType.MULTICLASS, [2], [False], ("a", "b"))

    def test_levels_only_on_finite_columns(self):
        with pytest.raises(TableError):
            TypedColumn.from_values("x", ScientificType.CONTINUOUS, [1.0], [False], ("a",))

    def test_bitmap_length_must_match(self):
        with pytest.raises(TableError):
            TypedColumn("x", ScientificType.COUNT, np.array([1, 2]), np.array([False]))


class TestTable:
    def test_schema_and_rows(self):
        table = _table()
        assert table.n_rows == 3
        assert table.names == ["x", "n", "m", "o", "t"]
        assert table.schema()["o"] == ScientificType.ORDEREDFACTOR
        assert "m" in table
        assert table["m"].to_list() == ["b", "a", None]

    def test_uneven_columns_rejected(self):
        with pytest.raises(TableError, match="rows"):
            Table(
                [
                    TypedColumn.from_values("a", ScientificType.COUNT, [1, 2], [False, False]),
                    TypedColumn.from_values("b", ScientificType.COUNT, [1], [False]),
                ]
            )

    def test_duplicate_names_rejected(self):
        col = TypedColumn.from_values("a", ScientificType.COUNT, [1], [False])
        with pytest.raises(TableError, match="Duplicate"):
            Table([col, col])

    def test_select_reorders(self):
        table = _table().select(["t", "x"])
        assert table.names == ["t", "x"]
        with pytest.raises(TableError):
            table.select(["nope"])

    def test_empty_table(self):
        assert Table([]).n_rows == 0


class TestViews:
    def test_pandas_dtypes(self):
        df = _table().to_pandas()
        assert df["x"].dtype == np.float64
        assert np.isnan(df["x"][1])
        assert str(df["n"].dtype) == "Int64"
        assert df["n"].isna().tolist() == [False, True, False]
        assert isinstance(df["m"].dtype, pd.CategoricalDtype)
        assert list(df["m"].cat.categories) == ["a", "b"]
        assert not df["m"].cat.ordered
        assert df["o"].cat.ordered
        assert list(df["o"].cat.categories) == ["lo", "mid", "hi"]
        assert df["t"].dtype == "string"
        assert df["t"].isna().tolist() == [False, True, False]

    def test_polars_dtypes(self):
        df = _table().to_polars()
        assert df.schema["x"] == pl.Float64
        assert df.schema["n"] == pl.Int64
        assert isinstance(df.schema["m"], pl.Categorical)
        assert isinstance(df.schema["o"], pl.Enum)
        assert df.schema["t"] == pl.Utf8
        assert df["x"].null_count() == 1
        assert df["m"].null_count() == 1
        assert df["o"].to_list() == ["lo", "hi", "mid"]

    def test_build_table_containers(self):
        columns = _table().columns()
        assert isinstance(build_table(columns), Table)
        assert isinstance(build_table(columns, "pandas"), pd.DataFrame)
        assert isinstance(build_table(columns, "polars"), pl.DataFrame)
        assert build_table(columns, lambda t: t.n_rows) == 3
        with pytest.raises(TableError, match="Unknown container"):
            build_table(columns, "arrow")
