"""
Reshaping between long (one observation per row) and wide layouts.

``widen`` and ``narrow`` are inverses of each other when no two rows share a
(keys, name) cell, up to the order of rows and columns.
"""

import logging
from typing import Optional, Sequence

import pandas as pd

from .errors import DuplicateKey, NameCollision, TypeMismatch
from .schema import Schema, SemanticType
from .table import Table, _flatten

logger = logging.getLogger(__name__)

_ROW = "__row__"
_POS = "__pos__"


def _labels(series: pd.Series) -> pd.Series:
    return series.astype("string").fillna("NA").astype(object)


def widen(table: Table, names_from: str, values_from: str, fill_value=None,
          id_columns: Optional[Sequence[str]] = None, values_fn=None) -> Table:
    """
    Pivot long rows into wide columns.

    One output row per combination of the id columns (by default every column
    except ``names_from`` and ``values_from``) in order of first appearance,
    one new column per distinct ``names_from`` value in order of first
    appearance. Absent cells get ``fill_value`` (missing when ``None``); a
    plain integer value column then comes back as float, so read a round trip
    back with ``narrow(..., drop_missing=True)`` and compare values, not dtypes.

    Raises:
        DuplicateKey: several rows map to one cell and no ``values_fn``
            (an aggregate name such as ``"sum"``, or a callable) was given.
        NameCollision: a new column name equals an id column.
    """
    table.schema.require([names_from, values_from])
    ids = list(id_columns) if id_columns is not None else [
        c for c in table.columns if c not in (names_from, values_from)
    ]
    table.schema.require(ids)
    frame = table.to_pandas()[ids + [names_from, values_from]].copy()
    frame[names_from] = _labels(frame[names_from])

    clashes = sorted(set(frame[names_from]) & set(ids))
    if clashes:
        raise NameCollision(f"widen would create column(s) {clashes} that already exist")

    duplicated = frame.duplicated(subset=ids + [names_from], keep=False)
    if duplicated.any():
        if values_fn is None:
            raise DuplicateKey(
                f"{int(duplicated.sum())} rows share the same {ids + [names_from]} cell; "
                f"summarise them first or pass values_fn"
            )
        frame = (
            frame.groupby(ids + [names_from], sort=False, dropna=False, observed=True)[values_from]
            .agg(values_fn)
            .reset_index()
        )

    order = list(dict.fromkeys(frame[names_from]))
    if ids:
        wide = frame.pivot(index=ids, columns=names_from, values=values_from)
        wide.columns.name = None
        wide = wide.reindex(columns=order).reset_index()
        # restore first-appearance order of the id combinations
        wide = frame[ids].drop_duplicates().merge(wide, on=ids, how='left')
    else:
        wide = pd.DataFrame([dict(zip(frame[names_from], frame[values_from]))], columns=order)

    if fill_value is not None:
        wide[order] = wide[order].fillna(fill_value)

    schema = Schema({
        name: table.schema[name] if name in ids else SemanticType.infer(wide[name])
        for name in wide.columns
    })
    logger.debug(f"widen: {len(table)} rows -> {len(wide)} rows x {len(order)} new columns")
    return Table(wide, schema)


def narrow(table: Table, columns, names_to: str = "name", values_to: str = "value",
           drop_missing: bool = False) -> Table:
    """
    Fold ``columns`` into a name column and a value column.

    Produces one row per (original row, folded column) pair, row-major. With
    ``drop_missing`` the rows whose value is missing are left out, which turns
    the output of ``widen`` with absent cells back into its long rows.

    Raises:
        TypeMismatch: the folded columns mix numeric and non-numeric types.
        NameCollision: ``names_to``/``values_to`` clash with a kept column.
    """
    columns = _flatten([columns])
    table.schema.require(columns)
    ids = [c for c in table.columns if c not in columns]
    clashes = sorted({names_to, values_to} & set(ids))
    if clashes or names_to == values_to:
        raise NameCollision(f"narrow output column(s) {clashes or [names_to]} clash")

    kinds = {table.schema[c] for c in columns}
    numeric = {k.is_numeric for k in kinds}
    if len(numeric) > 1:
        raise TypeMismatch(
            f"Cannot fold columns of mixed types {sorted(k.value for k in kinds)} into one"
        )
    if kinds == {SemanticType.INTEGER}:
        target = "Int64"
    elif numeric == {True}:
        target = "float64"
    elif kinds == {SemanticType.BOOLEAN}:
        target = "boolean"
    else:
        target = "string"

    frame = table.to_pandas()
    frame[columns] = frame[columns].astype(target)
    frame[_ROW] = range(len(frame))
    long = frame.melt(
        id_vars=[_ROW] + ids, value_vars=columns, var_name=names_to, value_name=values_to
    )
    position = {name: i for i, name in enumerate(columns)}
    long[_POS] = long[names_to].map(position)
    long = long.sort_values([_ROW, _POS], kind='stable').drop(columns=[_ROW, _POS])
    long[names_to] = long[names_to].astype("string")
    long[values_to] = long[values_to].astype(target)
    if drop_missing:
        long = long[long[values_to].notna()]

    schema = Schema({
        name: table.schema[name] if name in ids else SemanticType.infer(long[name])
        for name in long.columns
    })
    logger.debug(f"narrow: {len(table)} rows x {len(columns)} columns -> {len(long)} rows")
    return Table(long, schema)
