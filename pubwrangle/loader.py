"""
Loading delimited text files into typed tables.

This is the only I/O boundary of a pipeline run: the file is read once, every
column as text, then converted according to the declared schema.
"""

import logging
from pathlib import Path
from typing import Mapping, Optional

import pandas as pd

from .errors import SchemaError
from .schema import PUBLICATION_SCHEMA, SCOPUS_HEADERS, Schema
from .table import Table

logger = logging.getLogger(__name__)

NA_VALUES = [""]


def read_table(path, schema: Schema, delimiter: str = ",",
               aliases: Optional[Mapping[str, str]] = None) -> Table:
    """
    Read ``path`` into a :class:`Table` typed by ``schema``.

    Header names found in ``aliases`` are renamed first. Columns not in the
    schema are dropped (and logged).

    Raises:
        FileNotFoundError: the file does not exist.
        SchemaError: a schema column is missing from the header.
        TypeMismatch: a value cannot be converted to its column's type.
    """
    path = Path(path)
    logger.info(f"Loading {path}")
    try:
        raw = pd.read_csv(
            path,
            sep=delimiter,
            dtype=str,
            keep_default_na=False,
            na_values=NA_VALUES,
            encoding="utf-8-sig",
        )
    except FileNotFoundError:
        logger.error(f"File '{path}' was not found")
        raise

    raw = raw.rename(columns=lambda c: c.strip())
    if aliases:
        raw = raw.rename(columns=dict(aliases))

    missing = [name for name in schema if name not in raw.columns]
    if missing:
        raise SchemaError(f"{path.name} lacks required column(s): {missing}")
    extra = [name for name in raw.columns if name not in schema]
    if extra:
        logger.info(f"Ignoring {len(extra)} column(s) not in schema: {extra}")

    table = Table(schema.coerce(raw), schema)
    logger.info(f"Loaded {len(table)} rows x {len(table.columns)} columns")
    return table


def load_publications(path, delimiter: str = ",") -> Table:
    """Read a bibliographic export (canonical or Scopus headers) with the publication schema."""
    return read_table(path, PUBLICATION_SCHEMA, delimiter=delimiter, aliases=SCOPUS_HEADERS)
