"""Tests for pubwrangle.table and the expression language."""

import math

import pandas as pd
import pytest

from pubwrangle import (
    NameCollision,
    SemanticType,
    Table,
    TypeMismatch,
    UnknownColumn,
    bind_rows,
    col,
    desc,
    if_else,
    mean,
    median,
    n,
    n_distinct,
    sd,
)

from .conftest import MEPS


def eids(table):
    return table.pull("eid").tolist()


class TestFilter:
    def test_keeps_matching_rows_in_order(self, publications):
        result = publications.filter(col("source_title") == MEPS)
        assert eids(result) == ["P1", "P3", "P6"]

    def test_missing_comparison_drops_row(self, publications):
        """Rows whose citation count is missing are neither > 5 nor not > 5."""
        assert eids(publications.filter(col("cited_by") > 5)) == ["P1", "P5"]
        assert eids(publications.filter(~(col("cited_by") > 5))) == ["P3", "P4"]

    def test_result_is_subset(self, publications):
        result = publications.filter(col("year") >= 2001)
        assert len(result) <= len(publications)
        assert set(eids(result)) <= set(eids(publications))

    def test_composition_equals_conjunction(self, publications):
        p1 = col("year") >= 2001
        p2 = col("document_type") == "Article"
        chained = publications.filter(p1).filter(p2)
        combined = publications.filter(p1 & p2)
        assert chained.equals(combined)
        assert eids(combined) == ["P4", "P5"]

    def test_several_predicates_are_anded(self, publications):
        result = publications.filter(col("year") == 2000, col("cited_by").is_missing())
        assert eids(result) == ["P2"]

    def test_isin_and_between(self, publications):
        assert eids(publications.filter(col("eid").isin(["P2", "P5"]))) == ["P2", "P5"]
        assert eids(publications.filter(col("cited_by").between(1, 10))) == ["P1", "P3"]

    def test_contains(self, publications):
        result = publications.filter(col("title").lower().contains("sea"))
        assert eids(result) == ["P2", "P6"]

    def test_unknown_column(self, publications):
        with pytest.raises(UnknownColumn) as excinfo:
            publications.filter(col("citations") > 1)
        assert "citations" in str(excinfo.value)

    def test_type_mismatch(self, publications):
        with pytest.raises(TypeMismatch):
            publications.filter(col("title") > 3)

    def test_python_boolean_operators_rejected(self, publications):
        with pytest.raises(TypeError):
            publications.filter(col("year") > 2000 and col("cited_by") > 1)

    def test_input_is_not_modified(self, publications):
        before = publications.to_pandas()
        publications.filter(col("year") == 2000)
        pd.testing.assert_frame_equal(publications.to_pandas(), before)

    def test_categorical_columns_with_different_categories(self):
        """Unordered categoricals are compared by value, not by category set."""
        table = Table(pd.DataFrame({
            "a": pd.Categorical(["x", "y"]),
            "b": pd.Categorical(["x", "z"]),
        }))
        assert len(table.filter(col("a") == col("b"))) == 1
        assert len(table.filter(col("a") != col("b"))) == 1

    def test_callable_returning_array(self, publications):
        result = publications.filter(lambda f: (f["year"] == 2000).to_numpy(dtype=bool))
        assert eids(result) == ["P1", "P2"]


class TestColumns:
    def test_select_keeps_order_given(self, publications):
        assert publications.select("year", "eid").columns == ["year", "eid"]

    def test_select_unknown(self, publications):
        with pytest.raises(UnknownColumn):
            publications.select("eid", "nope")

    def test_select_on_grouped_table_keeps_keys(self, publications):
        result = publications.group_by("year").select("eid")
        assert result.columns == ["year", "eid"]
        assert result.groups == ("year",)

    def test_drop(self, publications):
        result = publications.drop("doi", "authors")
        assert "doi" not in result.columns
        assert len(result.columns) == len(publications.columns) - 2

    def test_rename(self, publications):
        result = publications.rename(cited_by="citations")
        assert "citations" in result.columns
        assert result.schema["citations"] == publications.schema["cited_by"]

    def test_rename_collision(self, publications):
        with pytest.raises(NameCollision):
            publications.rename(title="year")
        with pytest.raises(NameCollision):
            publications.rename({"title": "label", "doi": "label"})

    def test_rename_unknown(self, publications):
        with pytest.raises(UnknownColumn):
            publications.rename(nope="x")

    def test_to_pandas_is_a_copy(self, publications):
        frame = publications.to_pandas()
        frame["year"] = 0
        assert publications.pull("year").tolist()[0] == 2000

    def test_duplicate_column_names_rejected(self):
        frame = pd.DataFrame([[1, 2]], columns=["a", "a"])
        with pytest.raises(NameCollision):
            Table(frame)


class TestMutate:
    def test_add_column(self, publications):
        result = publications.mutate(decade=(col("year") / 10).round() * 10)
        assert result.columns[-1] == "decade"
        assert result.pull("decade").tolist() == [2000] * 6

    def test_later_columns_see_earlier_ones(self, publications):
        result = publications.mutate(
            n_authors=col("author_ids").count_items(";"),
            solo=col("n_authors") == 1,
        )
        assert result.pull("n_authors").tolist() == [2, 2, 1, 1, 3, 1]
        assert result.pull("solo").tolist() == [False, False, True, True, False, True]

    def test_overwrite_keeps_position(self, publications):
        result = publications.mutate(year=col("year") + 1)
        assert result.columns == publications.columns
        assert result.pull("year").tolist()[0] == 2001

    def test_missing_propagates_through_arithmetic(self, publications):
        result = publications.mutate(double=col("cited_by") * 2)
        assert result.pull("double").isna().tolist() == [False, True, False, False, False, True]

    def test_if_else(self, publications):
        result = publications.mutate(
            band=if_else(col("cited_by") >= 10, "high", "low")
        )
        band = result.pull("band")
        assert band.tolist()[:1] == ["high"]
        assert pd.isna(band.iloc[1])
        assert band.iloc[3] == "low"

    def test_arithmetic_on_text(self, publications):
        with pytest.raises(TypeMismatch):
            publications.mutate(x=col("title") * 2)

    def test_grouped_z_score(self, publications):
        zscore = (col("cited_by") - col("cited_by").mean()) / col("cited_by").sd()
        result = (
            publications.fill_missing("cited_by", 0)
            .group_by("year")
            .mutate(z=zscore)
        )
        z = [float(v) for v in result.pull("z")]
        assert z[0] == pytest.approx(1 / math.sqrt(2))
        assert z[1] == pytest.approx(-1 / math.sqrt(2))
        assert z[4] == pytest.approx(1 / math.sqrt(2))
        assert result.groups == ("year",)

    def test_fill_missing(self, publications):
        result = publications.fill_missing("cited_by", 0)
        assert result.pull("cited_by").isna().sum() == 0
        assert result.schema["cited_by"] == publications.schema["cited_by"]
        assert publications.pull("cited_by").isna().sum() == 2

    def test_fill_missing_wrong_type(self, publications):
        with pytest.raises(TypeMismatch):
            publications.fill_missing("cited_by", "none")


class TestArrange:
    def test_multiple_keys_missing_last(self, publications):
        result = publications.arrange(desc("year"), "cited_by")
        assert eids(result) == ["P5", "P6", "P4", "P3", "P1", "P2"]

    def test_stable(self, publications):
        result = publications.arrange("source_title")
        assert eids(result) == ["P2", "P4", "P5", "P1", "P3", "P6"]

    def test_unknown_key(self, publications):
        with pytest.raises(UnknownColumn):
            publications.arrange("nope")


class TestDistinct:
    def test_first_occurrence_kept(self, publications):
        assert eids(publications.distinct("year")) == ["P1", "P3", "P5"]

    def test_only_named_columns(self, publications):
        result = publications.distinct("source_title", keep_all=False)
        assert result.columns == ["source_title"]
        assert result.pull("source_title").tolist() == [MEPS, "Journal A", "Journal B"]

    def test_slice_head_per_group(self, publications):
        result = publications.group_by("source_title").slice_head(1)
        assert eids(result) == ["P1", "P2", "P5"]


class TestSummarise:
    def test_one_row_per_group(self, publications):
        result = publications.group_by("year").summarise(n=n())
        assert result.columns == ["year", "n"]
        assert result.pull("year").tolist() == [2000, 2001, 2002]
        assert result.pull("n").sum() == len(publications)
        assert not result.is_grouped

    def test_group_sizes_sum_to_rows(self, publications):
        assert publications.group_by("source_title").group_sizes().sum() == len(publications)

    def test_whole_table(self, publications):
        clean = publications.fill_missing("cited_by", 0)
        result = clean.summarise(
            n=n(), mean=mean("cited_by"), median=median("cited_by"), sd=sd("cited_by"),
            venues=n_distinct("source_title"),
        )
        row = result.to_pandas().iloc[0]
        assert row["n"] == 6
        assert row["mean"] == pytest.approx(7.5)
        assert row["median"] == pytest.approx(2.5)
        assert row["sd"] == pytest.approx(pd.Series([10, 0, 5, 0, 30, 0]).std())
        assert row["venues"] == 3

    def test_all_missing_group_gives_nan(self):
        table = Table(pd.DataFrame({
            "g": ["a", "a", "b"],
            "v": pd.array([1, 2, None], dtype="Int64"),
        }))
        result = table.group_by("g").summarise(
            m=mean("v"), s=sd("v"), med=median("v"), c=col("v").count(), rows=n()
        ).to_pandas()
        assert result["m"].tolist()[0] == pytest.approx(1.5)
        assert math.isnan(result["m"].iloc[1])
        assert math.isnan(result["s"].iloc[1])
        assert math.isnan(result["med"].iloc[1])
        assert result["c"].tolist() == [2, 0]
        assert result["rows"].tolist() == [2, 1]

    def test_integer_extremes_stay_integer(self, publications):
        """max/min/sum of an integer column keep the integer type."""
        row = publications.summarise(
            mx=col("cited_by").max(), mn=col("cited_by").min(), total=col("cited_by").sum()
        )
        assert row.schema["mx"] is SemanticType.INTEGER
        assert row.schema["total"] is SemanticType.INTEGER
        assert row.to_pandas().iloc[0].tolist() == [30, 0, 45]

    def test_grouped_extremes_stay_integer(self, publications):
        result = publications.group_by("year").summarise(mx=col("cited_by").max())
        assert result.schema["mx"] is SemanticType.INTEGER
        assert result.pull("mx").tolist() == [10, 5, 30]

    def test_empty_table(self, publications):
        empty = publications.filter(col("year") > 3000)
        row = empty.summarise(rows=n(), m=mean("cited_by")).to_pandas().iloc[0]
        assert row["rows"] == 0
        assert math.isnan(row["m"])

    def test_numeric_aggregate_on_text(self, publications):
        with pytest.raises(TypeMismatch):
            publications.summarise(m=mean("title"))

    def test_requires_aggregates(self, publications):
        with pytest.raises(TypeMismatch):
            publications.summarise(m=col("cited_by"))

    def test_name_clash_with_key(self, publications):
        with pytest.raises(NameCollision):
            publications.group_by("year").summarise(year=n())

    def test_count_sorted(self, publications):
        result = publications.count("source_title", sort=True)
        assert result.pull("source_title").tolist() == [MEPS, "Journal A", "Journal B"]
        assert result.pull("n").tolist() == [3, 2, 1]


class TestCombining:
    def test_left_join(self, publications):
        venues = Table(pd.DataFrame({
            "source_title": pd.array([MEPS, "Journal A"], dtype="string"),
            "publisher": ["Inter-Research", "ACME"],
        }))
        result = publications.join(venues, on="source_title")
        assert len(result) == len(publications)
        publisher = result.pull("publisher")
        assert publisher.iloc[0] == "Inter-Research"
        assert pd.isna(publisher.iloc[4])

    def test_join_key_type_mismatch(self, publications):
        other = Table(pd.DataFrame({"year": ["2000"], "label": ["x"]}))
        with pytest.raises(TypeMismatch):
            publications.join(other, on="year")

    def test_bind_rows(self, publications):
        first = publications.filter(col("year") == 2000)
        rest = publications.filter(col("year") > 2000)
        assert eids(bind_rows([first, rest])) == eids(publications)
