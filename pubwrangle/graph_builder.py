"""
Author-publication networks.

The delimited author identifier column is exploded into one row per
(publication, author) pair. The pairs become the edges of a bipartite graph
whose two node sets are the distinct authors and the distinct publications,
and that graph can be projected onto either side.
"""

import logging
from typing import Iterable, Optional, Sequence

import networkx as nx
import pandas as pd
from networkx.algorithms import bipartite

from .table import Table

logger = logging.getLogger(__name__)

AUTHORS = "authors"
PUBLICATIONS = "publications"
SIDES = (AUTHORS, PUBLICATIONS)

# networkx convention: node attribute bipartite=0/1
_SIDE_FLAG = {AUTHORS: 0, PUBLICATIONS: 1}

NO_ID_SENTINELS = ("[No author id available]",)


def explode_identifiers(table: Table, id_column: str = "author_ids", key_column: str = "eid",
                        delimiter: str = ";", sentinels: Iterable[str] = NO_ID_SENTINELS,
                        output_column: str = "author_id", keep: Sequence[str] = ()) -> Table:
    """
    One row per (publication, identifier) pair.

    Identifiers are split on ``delimiter`` and stripped; empty strings and
    ``sentinels`` are dropped, and repeated pairs are kept once. Publications
    left with no identifier do not appear in the result.
    """
    keep = [c for c in keep if c not in (key_column, id_column)]
    frame = table.select(key_column, id_column, *keep).ungroup().to_pandas()
    sentinels = {s.strip() for s in sentinels}

    frame[output_column] = frame[id_column].astype("string").str.split(delimiter, regex=False)
    exploded = frame.drop(columns=[id_column]).explode(output_column)
    exploded[output_column] = exploded[output_column].astype("string").str.strip()

    valid = (
        exploded[output_column].notna()
        & (exploded[output_column] != "")
        & ~exploded[output_column].isin(sentinels)
    ).fillna(False).astype(bool)
    pairs = exploded[valid.to_numpy()].drop_duplicates(subset=[key_column, output_column])
    pairs = pairs[[key_column, output_column] + keep]

    dropped = len(exploded) - int(valid.sum())
    logger.info(
        f"Exploded '{id_column}': {len(frame)} publications -> {len(pairs)} "
        f"(publication, author) pairs ({dropped} empty or sentinel values dropped)"
    )
    return Table(pairs)


class BipartiteGraph:
    """
    Authors x publications graph.

    Nodes are ``(side, identifier)`` tuples so an author id can never collide
    with a publication id; each node also carries the networkx ``bipartite``
    attribute (0 for authors, 1 for publications). ``pairs`` keeps the exploded
    table the graph was built from, when there is one.
    """

    def __init__(self, graph: nx.Graph, pairs: Optional[Table] = None):
        self.graph = graph
        self.pairs = pairs

    @classmethod
    def from_pairs(cls, pairs: Table, key_column: str = "eid", id_column: str = "author_id",
                   publications: Optional[Iterable] = None) -> "BipartiteGraph":
        """
        Build from exploded pairs. ``publications`` adds publication nodes that
        have no pair, which then stay isolated.
        """
        frame = pairs.to_pandas()
        graph = nx.Graph()
        graph.add_nodes_from(
            ((AUTHORS, a) for a in pd.unique(frame[id_column])), bipartite=_SIDE_FLAG[AUTHORS]
        )
        pub_ids = pd.unique(frame[key_column])
        if publications is not None:
            pub_ids = pd.unique(pd.concat([pd.Series(pub_ids, dtype=object),
                                           pd.Series(list(publications), dtype=object)]))
        graph.add_nodes_from(
            ((PUBLICATIONS, p) for p in pub_ids if not pd.isna(p)), bipartite=_SIDE_FLAG[PUBLICATIONS]
        )
        graph.add_edges_from(
            ((AUTHORS, a), (PUBLICATIONS, p))
            for p, a in zip(frame[key_column], frame[id_column])
        )
        result = cls(graph, pairs)
        logger.info(
            f"Bipartite graph: {result.number_of_nodes(AUTHORS)} authors, "
            f"{result.number_of_nodes(PUBLICATIONS)} publications, {graph.number_of_edges()} edges"
        )
        return result

    def nodes(self, side: str):
        if side not in SIDES:
            raise ValueError(f"Unknown side '{side}', expected one of {SIDES}")
        return [node for node in self.graph.nodes if node[0] == side]

    def identifiers(self, side: str):
        return [node[1] for node in self.nodes(side)]

    def number_of_nodes(self, side: Optional[str] = None) -> int:
        if side is None:
            return self.graph.number_of_nodes()
        return len(self.nodes(side))

    def number_of_edges(self) -> int:
        return self.graph.number_of_edges()

    def isolated(self, side: str):
        return [node[1] for node in self.nodes(side) if self.graph.degree(node) == 0]

    def is_valid(self) -> bool:
        """Every edge joins an author to a publication."""
        return all(u[0] != v[0] for u, v in self.graph.edges)

    def neighbours(self, side: str, identifier):
        return [node[1] for node in self.graph.neighbors((side, identifier))]

    def __repr__(self):
        return (f"BipartiteGraph(authors={self.number_of_nodes(AUTHORS)}, "
                f"publications={self.number_of_nodes(PUBLICATIONS)}, "
                f"edges={self.number_of_edges()})")


def build_bipartite(table: Table, id_column: str = "author_ids", key_column: str = "eid",
                    delimiter: str = ";", sentinels: Iterable[str] = NO_ID_SENTINELS,
                    include_isolated_nodes: bool = False, keep: Sequence[str] = ()) -> BipartiteGraph:
    """
    Explode ``id_column`` and build the author-publication graph.

    With ``include_isolated_nodes`` every publication of ``table`` becomes a
    node, including those without a single valid author identifier. Columns
    named in ``keep`` are carried onto ``BipartiteGraph.pairs``.
    """
    pairs = explode_identifiers(
        table, id_column=id_column, key_column=key_column,
        delimiter=delimiter, sentinels=sentinels, keep=keep,
    )
    publications = table.pull(key_column).dropna().tolist() if include_isolated_nodes else None
    return BipartiteGraph.from_pairs(pairs, key_column=key_column, publications=publications)


def project(graph: BipartiteGraph, side: str = AUTHORS, weighted: bool = False) -> nx.Graph:
    """
    Unipartite projection onto ``side``.

    Two nodes are linked iff they share at least one neighbour. With
    ``weighted`` the edge ``weight`` is the number of shared neighbours.
    Nodes of the result are the plain identifiers.
    """
    nodes = graph.nodes(side)
    if weighted:
        projected = bipartite.weighted_projected_graph(graph.graph, nodes)
    else:
        projected = bipartite.projected_graph(graph.graph, nodes)
    projected = nx.relabel_nodes(projected, lambda node: node[1])
    logger.info(f"Projected onto {side}: {projected.number_of_nodes()} nodes, {projected.number_of_edges()} edges")
    return projected


def coauthor_edges(pairs: Table, key_column: str = "eid", id_column: str = "author_id"):
    """Co-author pairs per publication, without building the bipartite graph."""
    frame = pairs.to_pandas()
    edges = set()
    for _, authors in frame.groupby(key_column, sort=False)[id_column]:
        unique = list(dict.fromkeys(authors))
        edges.update(
            (a, b) if a < b else (b, a)
            for i, a in enumerate(unique) for b in unique[i + 1:]
        )
    return edges
