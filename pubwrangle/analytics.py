"""
Network analytics adapters.

Thin wrappers that run off-the-shelf graph algorithms (networkx, or igraph
for the C-backed versions) and return their results as tables.
"""

import logging
from collections import Counter
from typing import Dict

import igraph as ig
import networkx as nx
import pandas as pd
from tqdm import tqdm

from .graph_builder import AUTHORS, PUBLICATIONS, SIDES, BipartiteGraph, coauthor_edges
from .table import Table

logger = logging.getLogger(__name__)

BACKENDS = ("networkx", "igraph")


def _check_backend(backend):
    if backend not in BACKENDS:
        raise ValueError(f"Unknown graph backend '{backend}', expected one of {BACKENDS}")


def to_igraph(graph: nx.Graph) -> ig.Graph:
    """Convert a networkx graph, keeping isolated nodes; names are in ``vs['name']``."""
    nodes = list(graph.nodes)
    index = {node: i for i, node in enumerate(nodes)}
    edges = list(graph.edges(data="weight"))
    g = ig.Graph(n=len(nodes), edges=[(index[u], index[v]) for u, v, _ in edges], directed=False)
    g.vs["name"] = nodes
    if any(w is not None for _, _, w in edges):
        g.es["weight"] = [1 if w is None else w for _, _, w in edges]
    return g


# ============== Connected components ==============

def _components(graph: nx.Graph, backend: str):
    _check_backend(backend)
    if backend == "igraph":
        g = to_igraph(graph)
        names = g.vs["name"]
        comps = [{names[i] for i in members} for members in g.connected_components()]
    else:
        comps = list(nx.connected_components(graph))
    return sorted(comps, key=len, reverse=True)


def connected_components(graph: nx.Graph, backend: str = "networkx") -> Table:
    """Node -> component id, ids numbered 0.. by decreasing component size."""
    rows = [
        (node, component_id)
        for component_id, members in enumerate(_components(graph, backend))
        for node in members
    ]
    frame = pd.DataFrame(rows, columns=["node", "component"])
    logger.info(f"{frame['component'].nunique() if len(frame) else 0} connected components")
    return Table(frame)


def component_sizes(graph: nx.Graph, backend: str = "networkx") -> Table:
    sizes = [len(c) for c in _components(graph, backend)]
    return Table(pd.DataFrame({"component": range(len(sizes)), "size": sizes}))


def count_components(graph: BipartiteGraph, side: str) -> int:
    """
    Number of components of the bipartite graph that contain a node of ``side``.

    Without isolated nodes every component holds both an author and a
    publication, so the count is the same from either side.
    """
    if side not in SIDES:
        raise ValueError(f"Unknown side '{side}', expected one of {SIDES}")
    return sum(
        1 for members in nx.connected_components(graph.graph)
        if any(node[0] == side for node in members)
    )


# ============== Degrees ==============

def degree_table(graph: nx.Graph) -> Table:
    """Node degrees, highest first (ties keep node order)."""
    frame = pd.DataFrame(list(graph.degree()), columns=["node", "degree"])
    frame = frame.sort_values("degree", ascending=False, kind="stable")
    return Table(frame)


def degree_distribution(graph: nx.Graph) -> Table:
    """Number and share of nodes per degree value."""
    degree_count = Counter(d for _, d in graph.degree())
    total = graph.number_of_nodes()
    rows = sorted(degree_count.items())
    frame = pd.DataFrame(rows, columns=["degree", "count"])
    frame["probability"] = frame["count"] / total if total else 0.0
    return Table(frame)


def papers_per_author(graph: BipartiteGraph) -> Table:
    """Publication count per author identifier, most prolific first."""
    rows = [(node[1], graph.graph.degree(node)) for node in graph.nodes(AUTHORS)]
    frame = pd.DataFrame(rows, columns=["author_id", "n_papers"])
    return Table(frame.sort_values("n_papers", ascending=False, kind="stable"))


def authors_per_paper(graph: BipartiteGraph) -> Table:
    rows = [(node[1], graph.graph.degree(node)) for node in graph.nodes(PUBLICATIONS)]
    frame = pd.DataFrame(rows, columns=["publication", "n_authors"])
    return Table(frame.sort_values("n_authors", ascending=False, kind="stable"))


# ============== Centrality ==============

def pagerank(graph: nx.Graph, alpha: float = 0.85, backend: str = "networkx") -> Table:
    """PageRank score per node, highest first."""
    _check_backend(backend)
    if graph.number_of_nodes() == 0:
        return Table(pd.DataFrame({"node": pd.Series(dtype=object), "pagerank": pd.Series(dtype=float)}))
    if backend == "igraph":
        g = to_igraph(graph)
        weights = "weight" if "weight" in g.es.attributes() else None
        scores = dict(zip(g.vs["name"], g.pagerank(damping=alpha, weights=weights)))
    else:
        scores = nx.pagerank(graph, alpha=alpha)
    frame = pd.DataFrame(list(scores.items()), columns=["node", "pagerank"])
    return Table(frame.sort_values("pagerank", ascending=False, kind="stable"))


# ============== Summary statistics ==============

def network_summary(graph: nx.Graph) -> Dict[str, float]:
    """Size, degree, density, component and clustering statistics of a graph."""
    num_nodes = graph.number_of_nodes()
    if num_nodes == 0:
        return {
            'num_nodes': 0, 'num_edges': 0, 'avg_degree': 0.0, 'max_degree': 0,
            'density': 0.0, 'num_components': 0, 'largest_cc_size': 0, 'avg_clustering': 0.0,
        }
    degree_dict = dict(graph.degree())
    # igraph for exact, C-speed clustering and components
    g = to_igraph(graph)
    local_clust = g.transitivity_local_undirected(mode="zero")
    comps = g.connected_components()
    return {
        'num_nodes': num_nodes,
        'num_edges': graph.number_of_edges(),
        'avg_degree': sum(degree_dict.values()) / num_nodes,
        'max_degree': max(degree_dict.values()),
        'density': nx.density(graph),
        'num_components': len(comps),
        'largest_cc_size': comps.giant().vcount(),
        'avg_clustering': sum(local_clust) / len(local_clust),
    }


def yearly_network_stats(pairs: Table, year_column: str = "year", key_column: str = "eid",
                         id_column: str = "author_id", progress: bool = True) -> Table:
    """
    Statistics of the cumulative co-authorship network at the end of each year.

    ``pairs`` is the exploded (publication, author) table carrying the
    publication year; rows without a year are skipped.
    """
    frame = pairs.to_pandas()
    frame = frame[frame[year_column].notna()]
    graph = nx.Graph()
    rows = []
    year_groups = frame.groupby(year_column, sort=True)
    for year, group in tqdm(year_groups, total=year_groups.ngroups, desc="Yearly networks", disable=not progress):
        graph.add_nodes_from(pd.unique(group[id_column]))
        graph.add_edges_from(coauthor_edges(Table(group), key_column=key_column, id_column=id_column))
        stats = network_summary(graph)
        stats[year_column] = int(year)
        rows.append(stats)
    columns = [year_column] + [c for c in network_summary(nx.Graph())]
    result = pd.DataFrame(rows, columns=columns)
    logger.info(f"Computed network statistics for {len(result)} years")
    return Table(result)
