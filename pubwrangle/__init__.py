"""
pubwrangle

Wrangling and network analysis of bibliographic exports:
- loader: typed CSV loading against an explicit schema
- table: immutable tables and relational transforms
- reshape: long <-> wide
- graph_builder: author-publication bipartite graph and projections
- analytics: components, degrees, PageRank, network statistics
- visualization: charts
"""

from .errors import (
    DuplicateKey,
    NameCollision,
    PipelineError,
    PubwrangleError,
    SchemaError,
    TypeMismatch,
    UnknownColumn,
)
from .expressions import col, desc, if_else, lit, mean, median, n, n_distinct, sd
from .schema import PUBLICATION_SCHEMA, Schema, SemanticType
from .table import Table, bind_rows
from .loader import load_publications, read_table
from .pipeline import Pipeline
from .reshape import narrow, widen
from .graph_builder import BipartiteGraph, build_bipartite, explode_identifiers, project

__all__ = [
    'BipartiteGraph',
    'DuplicateKey',
    'NameCollision',
    'PUBLICATION_SCHEMA',
    'Pipeline',
    'PipelineError',
    'PubwrangleError',
    'Schema',
    'SchemaError',
    'SemanticType',
    'Table',
    'TypeMismatch',
    'UnknownColumn',
    'bind_rows',
    'build_bipartite',
    'col',
    'desc',
    'explode_identifiers',
    'if_else',
    'lit',
    'load_publications',
    'mean',
    'median',
    'n',
    'n_distinct',
    'narrow',
    'project',
    'read_table',
    'sd',
    'widen',
]

__version__ = "1.0.0"
