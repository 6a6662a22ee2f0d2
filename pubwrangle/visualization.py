"""
Charts.

``plot`` renders a table through a declarative mapping of columns to
aesthetics (seaborn's objects interface, a grammar of graphics). The network
figures are drawn with matplotlib and networkx.
"""

import logging
from pathlib import Path
from typing import Optional

import matplotlib.pyplot as plt
import networkx as nx
import pandas as pd
import seaborn.objects as so

from .table import Table

logger = logging.getLogger(__name__)

MARKS = ("dot", "line", "bar", "area", "hist")


def _plot_frame(table: Table, columns) -> pd.DataFrame:
    """Selected columns with nullable dtypes turned into plain numpy/object ones."""
    table.schema.require(columns)
    frame = table.ungroup().to_pandas()[list(dict.fromkeys(columns))]
    for name in frame.columns:
        kind = table.schema[name]
        if kind.is_numeric:
            frame[name] = frame[name].astype("float64")
        elif kind.value in ("string", "boolean"):
            frame[name] = frame[name].astype(object).where(frame[name].notna(), None)
    return frame


def plot(table: Table, x: str, y: Optional[str] = None, color: Optional[str] = None,
         mark: str = "dot", facet: Optional[str] = None, title: Optional[str] = None,
         log_x: bool = False, log_y: bool = False, bins: int = 30,
         path=None, dpi: int = 150) -> so.Plot:
    """
    Build (and optionally save) a chart from a table and an aesthetic mapping.

    ``mark`` is one of ``dot``, ``line``, ``bar``, ``area`` or ``hist``. A
    ``bar`` without ``y`` counts rows per ``x``; ``hist`` bins ``x``.
    """
    if mark not in MARKS:
        raise ValueError(f"Unknown mark '{mark}', expected one of {MARKS}")
    mapping = {k: v for k, v in (("x", x), ("y", y), ("color", color)) if v}
    columns = list(mapping.values()) + ([facet] if facet else [])
    frame = _plot_frame(table, columns)

    p = so.Plot(frame, **mapping)
    if mark == "hist":
        p = p.add(so.Bars(), so.Hist(bins=bins))
    elif mark == "bar" and y is None:
        p = p.add(so.Bar(), so.Count())
    elif mark == "bar":
        p = p.add(so.Bar())
    elif mark == "line":
        p = p.add(so.Line(marker="o"))
    elif mark == "area":
        p = p.add(so.Area())
    else:
        p = p.add(so.Dot(alpha=0.6))

    if facet:
        p = p.facet(facet)
    if log_x:
        p = p.scale(x="log")
    if log_y:
        p = p.scale(y="log")
    labels = {"x": x}
    if y or mark in ("bar", "hist"):
        labels["y"] = y or "count"
    if title:
        labels["title"] = title
    p = p.label(**labels)

    if path is not None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        p.save(path, dpi=dpi, bbox_inches="tight")
        logger.info(f"Saved chart {path}")
    return p


def plot_degree_distribution(distribution: Table, path, title: str = "Degree Distribution",
                             dpi: int = 150) -> Path:
    """Degree vs. number of nodes and degree vs. probability, side by side."""
    frame = distribution.to_pandas()
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fig, axes = plt.subplots(1, 2, figsize=(14, 6))
    axes[0].bar(frame["degree"], frame["count"], color='skyblue')
    axes[0].set_title(f"{title}: Degree vs. Number of Nodes")
    axes[0].set_xlabel("Degree")
    axes[0].set_ylabel("Number of Nodes")

    axes[1].scatter(frame["degree"], frame["probability"], color='skyblue', edgecolor='black')
    axes[1].set_xscale("log")
    axes[1].set_yscale("log")
    axes[1].set_title(f"{title}: Degree vs. Probability (log-log)")
    axes[1].set_xlabel("Degree")
    axes[1].set_ylabel("Probability")

    plt.tight_layout()
    fig.savefig(path, dpi=dpi)
    plt.close(fig)
    logger.info(f"Saved chart {path}")
    return path


def plot_yearly_stats(stats: Table, path, year_column: str = "year", dpi: int = 150) -> Path:
    """Growth of the cumulative collaboration network over time."""
    frame = stats.to_pandas()
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fig, axes = plt.subplots(2, 2, figsize=(14, 10))
    panels = [
        (axes[0, 0], ["num_nodes", "num_edges"], "Number of Nodes and Edges Over Time", "Count"),
        (axes[0, 1], ["avg_degree", "max_degree"], "Degree Over Time", "Degree"),
        (axes[1, 0], ["num_components", "largest_cc_size"], "Components Over Time", "Size"),
        (axes[1, 1], ["avg_clustering"], "Average Clustering Coefficient Over Time", "Clustering Coefficient"),
    ]
    for ax, columns, panel_title, ylabel in panels:
        for column in columns:
            ax.plot(frame[year_column], frame[column], marker='o', label=column)
        ax.set_title(panel_title)
        ax.set_xlabel("Year")
        ax.set_ylabel(ylabel)
        ax.legend()
        ax.grid(True)

    plt.tight_layout()
    fig.savefig(path, dpi=dpi)
    plt.close(fig)
    logger.info(f"Saved chart {path}")
    return path


def plot_network(graph: nx.Graph, path, max_nodes: int = 500, title: Optional[str] = None,
                 dpi: int = 150) -> Path:
    """
    Draw the giant component with a spring layout.

    Components larger than ``max_nodes`` are cut down to their best-connected
    ``max_nodes`` nodes.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    if graph.number_of_nodes():
        giant_component = max(nx.connected_components(graph), key=len)
        G_giant = graph.subgraph(giant_component)
    else:
        G_giant = graph
    if G_giant.number_of_nodes() > max_nodes:
        top = sorted(G_giant.degree, key=lambda item: item[1], reverse=True)[:max_nodes]
        G_giant = G_giant.subgraph(node for node, _ in top)

    fig = plt.figure(figsize=(12, 10))
    pos = nx.spring_layout(G_giant, seed=42)
    nx.draw(G_giant, pos, node_size=20, edge_color='gray', node_color='skyblue', with_labels=False)
    plt.title(title or f"Giant Component ({G_giant.number_of_nodes()} nodes, {G_giant.number_of_edges()} edges)")
    plt.tight_layout()
    fig.savefig(path, dpi=dpi)
    plt.close(fig)
    logger.info(f"Saved chart {path}")
    return path
