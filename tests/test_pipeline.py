"""Tests for Pipeline and the recipes built on it."""

import pytest

from pubwrangle import Pipeline, PipelineError, UnknownColumn, col, desc
from pubwrangle.main import citation_zscores, document_types_by_year, top_venues


class TestPipeline:
    def test_steps_run_in_order(self, publications):
        pipeline = (
            Pipeline(name="recent")
            .add("recent", lambda t: t.filter(col("year") >= 2001))
            .add("by_citations", lambda t: t.arrange(desc("cited_by")))
            .add("ids", lambda t: t.select("eid"))
        )
        assert pipeline.labels == ["recent", "by_citations", "ids"]
        result = pipeline.run(publications)
        assert result.pull("eid").tolist() == ["P5", "P3", "P4", "P6"]

    def test_callable(self, publications):
        pipeline = Pipeline([("head", lambda t: t.slice_head(2))])
        assert len(pipeline(publications)) == 2

    def test_failing_step_is_named(self, publications):
        pipeline = Pipeline([
            ("ok", lambda t: t),
            ("broken", lambda t: t.select("nope")),
        ])
        with pytest.raises(PipelineError) as excinfo:
            pipeline.run(publications)
        assert excinfo.value.step == "broken"
        assert isinstance(excinfo.value.cause, UnknownColumn)

    def test_any_step_error_is_named(self, publications):
        """Errors from outside the library are wrapped too, with the cause kept."""
        pipeline = Pipeline([
            ("ok", lambda t: t),
            ("head_by_title", lambda t: t.slice_head(int(t.pull("title").iloc[0]))),
        ])
        with pytest.raises(PipelineError) as excinfo:
            pipeline.run(publications)
        assert excinfo.value.step == "head_by_title"
        assert isinstance(excinfo.value.cause, ValueError)
        assert excinfo.value.__cause__ is excinfo.value.cause

    def test_step_must_return_table(self, publications):
        pipeline = Pipeline([("count", lambda t: len(t))])
        with pytest.raises(PipelineError):
            pipeline.run(publications)

    def test_step_must_be_callable(self):
        with pytest.raises(TypeError):
            Pipeline().add("bad", 42)


class TestRecipes:
    def test_top_venues(self, publications):
        result = top_venues(publications, limit=2)
        assert result.pull("n").tolist() == [3, 2]

    def test_citation_zscores(self, publications):
        result = citation_zscores().run(publications.fill_missing("cited_by", 0))
        assert result.columns == ["eid", "year", "cited_by", "citation_z"]
        assert not result.is_grouped
        assert result.pull("eid").tolist()[:2] == ["P1", "P2"]

    def test_document_types_by_year(self, publications):
        result = document_types_by_year(publications)
        assert result.columns[0] == "year"
        assert set(result.columns[1:]) == {"Article", "Review", "Letter"}
        frame = result.to_pandas().set_index("year")
        assert frame.loc[2000, "Article"] == 2
        assert frame.loc[2000, "Review"] == 0
