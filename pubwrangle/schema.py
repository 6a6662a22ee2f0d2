"""
Column schemas.

A schema is declared once, when a file is loaded, and then travels with every
table derived from it so that transforms can reject unknown columns and
incompatible types at call time.
"""

from enum import Enum
from typing import Dict, Iterable, Mapping

import pandas as pd
from pandas.api import types as ptypes

from .errors import TypeMismatch, UnknownColumn


class SemanticType(Enum):
    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"
    CATEGORICAL = "categorical"
    BOOLEAN = "boolean"

    @property
    def dtype(self):
        return _PANDAS_DTYPES[self]

    @property
    def is_numeric(self) -> bool:
        return self in (SemanticType.INTEGER, SemanticType.FLOAT)

    @classmethod
    def infer(cls, series: pd.Series) -> "SemanticType":
        """Best semantic type for an already materialised column."""
        if ptypes.is_bool_dtype(series.dtype):
            return cls.BOOLEAN
        if isinstance(series.dtype, pd.CategoricalDtype):
            return cls.CATEGORICAL
        if ptypes.is_integer_dtype(series.dtype):
            return cls.INTEGER
        if ptypes.is_float_dtype(series.dtype):
            return cls.FLOAT
        return cls.STRING


_PANDAS_DTYPES = {
    SemanticType.STRING: "string",
    SemanticType.INTEGER: "Int64",
    SemanticType.FLOAT: "float64",
    SemanticType.CATEGORICAL: "category",
    SemanticType.BOOLEAN: "boolean",
}


class Schema:
    """Ordered mapping of column name to :class:`SemanticType`."""

    def __init__(self, columns: Mapping[str, SemanticType]):
        self._columns: Dict[str, SemanticType] = {
            name: SemanticType(kind) for name, kind in columns.items()
        }

    @classmethod
    def infer(cls, frame: pd.DataFrame) -> "Schema":
        return cls({name: SemanticType.infer(frame[name]) for name in frame.columns})

    @property
    def names(self):
        return list(self._columns)

    def __getitem__(self, name):
        if name not in self._columns:
            raise UnknownColumn(name, self.names)
        return self._columns[name]

    def __contains__(self, name):
        return name in self._columns

    def __iter__(self):
        return iter(self._columns)

    def __len__(self):
        return len(self._columns)

    def __eq__(self, other):
        return isinstance(other, Schema) and self._columns == other._columns

    def __repr__(self):
        body = ", ".join(f"{k}: {v.value}" for k, v in self._columns.items())
        return f"Schema({body})"

    def items(self):
        return self._columns.items()

    def require(self, names: Iterable[str]) -> None:
        missing = [name for name in names if name not in self._columns]
        if missing:
            raise UnknownColumn(missing, self.names)

    def select(self, names: Iterable[str]) -> "Schema":
        names = list(names)
        self.require(names)
        return Schema({name: self._columns[name] for name in names})

    def drop(self, names: Iterable[str]) -> "Schema":
        names = set(names)
        self.require(names)
        return Schema({k: v for k, v in self._columns.items() if k not in names})

    def rename(self, mapping: Mapping[str, str]) -> "Schema":
        return Schema({mapping.get(k, k): v for k, v in self._columns.items()})

    def with_column(self, name: str, kind: SemanticType) -> "Schema":
        columns = dict(self._columns)
        columns[name] = kind
        return Schema(columns)

    # ============== Load-time conversion ==============

    def coerce(self, frame: pd.DataFrame) -> pd.DataFrame:
        """
        Convert raw (string) columns of ``frame`` to the declared dtypes.

        Raises:
            UnknownColumn: a declared column is missing from ``frame``.
            TypeMismatch: a value cannot be represented in the declared type.
        """
        self.require_frame(frame)
        converted = {}
        for name, kind in self._columns.items():
            converted[name] = _convert(frame[name], name, kind)
        return pd.DataFrame(converted, index=frame.index)

    def require_frame(self, frame: pd.DataFrame) -> None:
        missing = [name for name in self._columns if name not in frame.columns]
        if missing:
            raise UnknownColumn(missing, list(frame.columns))


def _convert(series: pd.Series, name: str, kind: SemanticType) -> pd.Series:
    if kind.is_numeric:
        stripped = series.astype("string").str.strip().replace("", pd.NA)
        try:
            numeric = pd.to_numeric(stripped, errors="raise")
        except (ValueError, TypeError) as e:
            raise TypeMismatch(f"Column '{name}' is not {kind.value}: {e}") from e
        if kind is SemanticType.INTEGER:
            numeric = numeric.astype("Float64")
            fractional = numeric.notna() & (numeric != numeric.round())
            if fractional.any():
                raise TypeMismatch(
                    f"Column '{name}' has {int(fractional.sum())} non-integer values"
                )
        return numeric.astype(kind.dtype)
    if kind is SemanticType.BOOLEAN:
        lowered = series.astype("string").str.strip().str.lower()
        mapped = lowered.map({"true": True, "false": False, "1": True, "0": False})
        unknown = lowered.notna() & mapped.isna()
        if unknown.any():
            raise TypeMismatch(f"Column '{name}' has non-boolean values")
        return mapped.astype("boolean")
    return series.astype(kind.dtype)


# ============== Publication export ==============

PUBLICATION_SCHEMA = Schema({
    'authors': SemanticType.STRING,
    'author_ids': SemanticType.STRING,
    'title': SemanticType.STRING,
    'year': SemanticType.INTEGER,
    'source_title': SemanticType.STRING,
    'cited_by': SemanticType.INTEGER,
    'doi': SemanticType.STRING,
    'document_type': SemanticType.CATEGORICAL,
    'eid': SemanticType.STRING,
})

# Scopus CSV export headers
SCOPUS_HEADERS = {
    'Authors': 'authors',
    'Author(s) ID': 'author_ids',
    'Title': 'title',
    'Year': 'year',
    'Source title': 'source_title',
    'Cited by': 'cited_by',
    'DOI': 'doi',
    'Document Type': 'document_type',
    'EID': 'eid',
}
