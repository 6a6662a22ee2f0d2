"""
Command line walk-through over a publication export.

Loads the CSV, cleans it, computes citation and venue summaries, reshapes a
year x document-type table, builds the author-publication network with its
analytics, and writes CSV tables and PNG charts into the output directory.
"""

import argparse
import logging
import sys
from pathlib import Path

from . import analytics, visualization
from .cleaning import clean_publications
from .config import Config
from .errors import PubwrangleError
from .expressions import col, desc, mean, median, n, n_distinct, sd
from .graph_builder import AUTHORS, PUBLICATIONS, build_bipartite, project
from .loader import load_publications
from .logging_setup import setup_logging
from .pipeline import Pipeline
from .reshape import widen
from .table import Table

logger = logging.getLogger(__name__)


# ============== Tabular summaries ==============

def citation_summary(table: Table) -> Table:
    return table.summarise(
        n=n(),
        mean_citations=mean("cited_by"),
        sd_citations=sd("cited_by"),
        median_citations=median("cited_by"),
        max_citations=col("cited_by").max(),
    )


def yearly_summary(table: Table) -> Table:
    return (
        table.group_by("year")
        .summarise(
            n=n(),
            mean_citations=mean("cited_by"),
            median_citations=median("cited_by"),
            venues=n_distinct("source_title"),
        )
        .arrange("year")
    )


def top_venues(table: Table, limit: int = 10) -> Table:
    return table.count("source_title", sort=True).slice_head(limit)


def citation_zscores() -> Pipeline:
    """Citations standardised within each publication year."""
    zscore = (col("cited_by") - col("cited_by").mean()) / col("cited_by").sd()
    return Pipeline([
        ("group_by_year", lambda t: t.group_by("year")),
        ("z_score", lambda t: t.mutate(citation_z=zscore)),
        ("ungroup", lambda t: t.ungroup()),
        ("select", lambda t: t.select("eid", "year", "cited_by", "citation_z")),
        ("arrange", lambda t: t.arrange("year", desc("citation_z"))),
    ], name="citation_zscores")


def document_types_by_year(table: Table) -> Table:
    return widen(
        table.count("year", "document_type"),
        names_from="document_type",
        values_from="n",
        fill_value=0,
    ).arrange("year")


def _save(table: Table, output_dir: Path, name: str) -> Path:
    path = output_dir / f"{name}.csv"
    table.to_pandas().to_csv(path, index=False)
    logger.info(f"Saved {path}")
    return path


# ============== Run ==============

def run(config: Config, make_plots: bool = True, yearly: bool = True) -> dict:
    """Run the whole walk-through and return the computed results."""
    output_dir = Path(config.OUTPUT_DIR)
    config.ensure_directories()
    results = {'saved_files': {}}

    # Step 1: load and clean
    logger.info("Step 1: Loading and cleaning publications...")
    raw = load_publications(config.INPUT_FILE, delimiter=config.CSV_DELIMITER)
    publications, reports = clean_publications(raw)
    for report in reports:
        for line in report.lines():
            logger.info(line)
    results['rows'] = len(publications)
    results['cleaning'] = reports

    # Step 2: summaries
    logger.info("Step 2: Summarising citations, years and venues...")
    tables = {
        'citation_summary': citation_summary(publications),
        'yearly_summary': yearly_summary(publications),
        'top_venues': top_venues(publications, config.TOP_N),
        'citation_zscores': citation_zscores().run(publications),
        'document_types_by_year': document_types_by_year(publications),
    }

    # Step 3: network
    logger.info("Step 3: Building the author-publication network...")
    network = build_bipartite(
        publications,
        delimiter=config.ID_DELIMITER,
        sentinels=config.MISSING_ID_SENTINELS,
        include_isolated_nodes=config.INCLUDE_ISOLATED_NODES,
        keep=["year"],
    )
    results['components'] = {
        AUTHORS: analytics.count_components(network, AUTHORS),
        PUBLICATIONS: analytics.count_components(network, PUBLICATIONS),
    }
    logger.info(f"Connected components: {results['components']}")

    coauthors = project(network, AUTHORS)
    tables['papers_per_author'] = analytics.papers_per_author(network).slice_head(config.TOP_N)
    tables['coauthor_degree_distribution'] = analytics.degree_distribution(coauthors)
    tables['coauthor_pagerank'] = analytics.pagerank(
        coauthors, alpha=config.PAGERANK_ALPHA, backend=config.GRAPH_BACKEND
    ).slice_head(config.TOP_N)
    results['coauthor_network'] = analytics.network_summary(coauthors)
    if yearly:
        tables['yearly_network_stats'] = analytics.yearly_network_stats(network.pairs)

    for name, table in tables.items():
        results['saved_files'][name] = _save(table, output_dir, name)
    results['tables'] = tables

    # Step 4: charts
    if make_plots:
        logger.info("Step 4: Drawing charts...")
        charts = output_dir / "charts"
        dpi = config.FIGURE_DPI
        saved = results['saved_files']
        saved['publications_per_year'] = charts / "publications_per_year.png"
        visualization.plot(publications, x="year", mark="bar",
                           title="Publications per Year", path=saved['publications_per_year'], dpi=dpi)
        saved['citations_histogram'] = charts / "citations_histogram.png"
        visualization.plot(publications.filter(col("cited_by") > 0), x="cited_by", mark="hist",
                           log_x=True, title="Citations (log scale)",
                           path=saved['citations_histogram'], dpi=dpi)
        saved['citations_by_year'] = charts / "mean_citations_by_year.png"
        visualization.plot(tables['yearly_summary'], x="year", y="mean_citations", mark="line",
                           title="Mean Citations per Year", path=saved['citations_by_year'], dpi=dpi)
        saved['citations_vs_year'] = charts / "citations_vs_year_by_type.png"
        visualization.plot(publications, x="year", y="cited_by", color="document_type",
                           title="Citations by Year and Document Type",
                           path=saved['citations_vs_year'], dpi=dpi)
        saved['degree_distribution'] = visualization.plot_degree_distribution(
            tables['coauthor_degree_distribution'], charts / "coauthor_degree_distribution.png",
            title="Co-authorship", dpi=dpi,
        )
        saved['network'] = visualization.plot_network(
            coauthors, charts / "coauthor_network.png",
            max_nodes=config.DRAW_NETWORK_MAX_NODES, dpi=dpi,
        )
        if yearly:
            saved['yearly_network_stats_chart'] = visualization.plot_yearly_stats(
                tables['yearly_network_stats'], charts / "yearly_network_stats.png", dpi=dpi,
            )

    return results


def _print_execution_summary(results: dict) -> None:
    print("\n" + "=" * 70)
    print("PUBLICATION ANALYSIS SUMMARY")
    print("=" * 70)
    print(f"Publications: {results['rows']:,}")
    summary = results['tables']['citation_summary'].to_pandas().iloc[0]
    print(f"Citations: mean {summary['mean_citations']:.2f}, "
          f"sd {summary['sd_citations']:.2f}, median {summary['median_citations']:.0f}")
    print(f"Connected components (authors / publications): "
          f"{results['components'][AUTHORS]:,} / {results['components'][PUBLICATIONS]:,}")
    top = results['tables']['papers_per_author'].to_pandas()
    if len(top):
        print(f"Most prolific author id: {top.iloc[0]['author_id']} ({top.iloc[0]['n_papers']} papers)")
    net = results['coauthor_network']
    print(f"Co-authorship network: {net['num_nodes']:,} authors, {net['num_edges']:,} links, "
          f"largest component {net['largest_cc_size']:,}")
    print("\nGenerated outputs:")
    for name, path in results['saved_files'].items():
        print(f"  - {name}: {path}")
    print("=" * 70)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Wrangle a publication export and analyse its co-authorship network"
    )
    parser.add_argument("--input", type=str, default=None, help="CSV export to load")
    parser.add_argument("--output-dir", type=str, default=None, help="Directory for tables and charts")
    parser.add_argument("--log-level", type=str, default=None, help="DEBUG, INFO, WARNING, ...")
    parser.add_argument("--backend", choices=analytics.BACKENDS, default=None,
                        help="Graph library for components and PageRank")
    parser.add_argument("--include-isolated-nodes", action="store_true",
                        help="Keep publications without any author identifier as isolated nodes")
    parser.add_argument("--no-plots", action="store_true", help="Skip chart rendering")
    parser.add_argument("--no-yearly", action="store_true",
                        help="Skip the yearly cumulative network statistics")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    overrides = {
        'input_file': args.input,
        'output_dir': args.output_dir,
        'log_level': args.log_level,
        'graph_backend': args.backend,
    }
    config = Config({k: v for k, v in overrides.items() if v is not None})
    if args.include_isolated_nodes:
        config.INCLUDE_ISOLATED_NODES = True

    setup_logging(log_level=config.LOG_LEVEL, log_file=config.LOG_FILE, log_dir=config.LOG_DIR)
    invalid = [key for key, ok in config.validate().items() if not ok]
    if invalid:
        logger.error(f"Invalid configuration: {invalid}")
        return 1

    try:
        results = run(config, make_plots=not args.no_plots, yearly=not args.no_yearly)
    except FileNotFoundError as e:
        logger.error(f"Input not found: {e}")
        return 1
    except PubwrangleError as e:
        logger.error(f"Pipeline failed: {e}", exc_info=True)
        return 1

    _print_execution_summary(results)
    return 0


if __name__ == '__main__':
    sys.exit(main())
