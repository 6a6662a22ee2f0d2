"""Tests for charts: files are written and bad mappings are rejected."""

import pytest

from pubwrangle import UnknownColumn, analytics, visualization
from pubwrangle.graph_builder import AUTHORS, build_bipartite, explode_identifiers, project


class TestPlot:
    @pytest.mark.parametrize("mark", ["bar", "hist"])
    def test_single_variable(self, publications, tmp_path, mark):
        path = tmp_path / f"{mark}.png"
        visualization.plot(publications, x="year", mark=mark, title="Publications", path=path)
        assert path.exists()

    def test_colour_mapping(self, publications, tmp_path):
        path = tmp_path / "charts" / "scatter.png"
        visualization.plot(publications, x="year", y="cited_by", color="document_type", path=path)
        assert path.exists()

    def test_line_with_log_scale(self, publications, tmp_path):
        summary = publications.count("year")
        path = tmp_path / "line.png"
        visualization.plot(summary, x="year", y="n", mark="line", log_y=True, path=path)
        assert path.exists()

    def test_without_path_nothing_is_written(self, publications, tmp_path):
        visualization.plot(publications, x="year", mark="bar")
        assert list(tmp_path.iterdir()) == []

    def test_unknown_column(self, publications):
        with pytest.raises(UnknownColumn):
            visualization.plot(publications, x="citations")

    def test_unknown_mark(self, publications):
        with pytest.raises(ValueError):
            visualization.plot(publications, x="year", mark="pie")


class TestNetworkCharts:
    def test_degree_distribution(self, publications, tmp_path):
        coauthors = project(build_bipartite(publications), AUTHORS)
        path = visualization.plot_degree_distribution(
            analytics.degree_distribution(coauthors), tmp_path / "degrees.png"
        )
        assert path.exists()

    def test_network(self, publications, tmp_path):
        coauthors = project(build_bipartite(publications), AUTHORS)
        path = visualization.plot_network(coauthors, tmp_path / "network.png", max_nodes=2)
        assert path.exists()

    def test_yearly_stats(self, publications, tmp_path):
        pairs = explode_identifiers(publications, keep=["year"])
        stats = analytics.yearly_network_stats(pairs, progress=False)
        path = visualization.plot_yearly_stats(stats, tmp_path / "yearly.png")
        assert path.exists()
