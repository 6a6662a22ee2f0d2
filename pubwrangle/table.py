"""
Immutable tables and the relational transforms over them.

Every method returns a new :class:`Table`; the wrapped ``DataFrame`` is never
modified after construction, so intermediate results can be kept and reused
freely along a pipeline.
"""

import logging
from typing import Iterable, Optional, Sequence

import numpy as np
import pandas as pd

from .errors import NameCollision, TypeMismatch, UnknownColumn
from .expressions import Agg, Expr, SortKey, _to_boolean, col, n
from .schema import Schema, SemanticType

logger = logging.getLogger(__name__)

JOIN_TYPES = ('left', 'right', 'inner', 'outer')


def _flatten(names):
    flat = []
    for name in names:
        if isinstance(name, (list, tuple)):
            flat.extend(name)
        else:
            flat.append(name)
    return flat


class Table:
    """A typed, ordered, immutable collection of named columns."""

    def __init__(self, data: pd.DataFrame, schema: Optional[Schema] = None,
                 groups: Sequence[str] = ()):
        if not data.columns.is_unique:
            dupes = data.columns[data.columns.duplicated()].tolist()
            raise NameCollision(f"Duplicate column names: {dupes}")
        self._frame = data.reset_index(drop=True)
        self._schema = schema if schema is not None else Schema.infer(self._frame)
        if self._schema.names != list(self._frame.columns):
            raise NameCollision(
                f"Schema columns {self._schema.names} do not match data columns "
                f"{list(self._frame.columns)}"
            )
        self._schema.require(groups)
        self._groups = tuple(groups)

    @classmethod
    def from_records(cls, records, schema: Optional[Schema] = None) -> "Table":
        frame = pd.DataFrame.from_records(list(records))
        if schema is not None:
            frame = schema.coerce(frame.astype(object))
        return cls(frame, schema)

    # ============== Introspection ==============

    @property
    def schema(self) -> Schema:
        return self._schema

    @property
    def columns(self):
        return list(self._frame.columns)

    @property
    def groups(self):
        return self._groups

    @property
    def is_grouped(self) -> bool:
        return bool(self._groups)

    @property
    def shape(self):
        return self._frame.shape

    def __len__(self):
        return len(self._frame)

    def __repr__(self):
        header = f"Table [{len(self)} x {len(self.columns)}]"
        if self._groups:
            header += f" grouped by {list(self._groups)}"
        return f"{header}\n{self._frame.head(10).to_string()}"

    def to_pandas(self) -> pd.DataFrame:
        """A copy of the underlying frame; changing it never affects the table."""
        return self._frame.copy()

    def pull(self, name: str) -> pd.Series:
        self._schema.require([name])
        return self._frame[name].copy()

    def equals(self, other: "Table") -> bool:
        return (
            isinstance(other, Table)
            and self._groups == other._groups
            and self._frame.equals(other._frame)
        )

    def _derive(self, frame, schema=None, groups=None) -> "Table":
        if schema is None:
            schema = Schema({
                name: self._schema[name] if name in self._schema else SemanticType.infer(frame[name])
                for name in frame.columns
            })
        return Table(frame, schema, self._groups if groups is None else groups)

    def _check(self, expr):
        if isinstance(expr, Expr):
            self._schema.require(sorted(expr.columns))

    def _evaluate(self, expr, frame=None):
        frame = self._frame if frame is None else frame
        if isinstance(expr, Expr):
            self._check(expr)
            return expr.evaluate(frame, self._groups)
        if callable(expr):
            try:
                return expr(frame)
            except KeyError as e:
                raise UnknownColumn(str(e.args[0]) if e.args else "?", list(frame.columns)) from e
        return expr

    # ============== Row operations ==============

    def filter(self, *predicates) -> "Table":
        """
        Keep the rows where every predicate is true.

        Predicates are expressions (or callables of the frame returning a
        boolean series). Rows where a predicate is unknown, because it
        compared a missing value, are dropped.
        """
        keep = pd.Series(True, index=self._frame.index, dtype="boolean")
        for predicate in predicates:
            mask = _to_boolean(self._evaluate(predicate), self._frame.index, repr(predicate))
            keep = keep & mask
        keep = keep.fillna(False).astype(bool)
        result = self._frame.loc[keep.to_numpy()]
        logger.debug(f"filter: {len(self)} -> {len(result)} rows")
        return self._derive(result, self._schema)

    def arrange(self, *keys) -> "Table":
        """
        Stable sort on one or more keys; ``desc("col")`` sorts descending.

        Ties are broken by later keys and then by the original row order.
        Missing values sort last.
        """
        sort_keys = [k if isinstance(k, SortKey) else SortKey(k) for k in _flatten(keys)]
        if not sort_keys:
            return self
        names = [k.name for k in sort_keys]
        self._schema.require(names)
        result = self._frame.sort_values(
            by=names,
            ascending=[k.ascending for k in sort_keys],
            kind='stable',
            na_position='last',
        )
        return self._derive(result, self._schema)

    def distinct(self, *names, keep_all: bool = True) -> "Table":
        """First occurrence of each unique combination of ``names`` (all columns by default)."""
        names = _flatten(names)
        self._schema.require(names)
        result = self._frame.drop_duplicates(subset=names or None, keep='first')
        if names and not keep_all:
            keep = list(dict.fromkeys(list(self._groups) + names))
            return self._derive(result[keep], self._schema.select(keep))
        return self._derive(result, self._schema)

    def slice_head(self, count: int = 5) -> "Table":
        """First ``count`` rows, per group when grouped."""
        if self._groups:
            result = self._frame.groupby(
                list(self._groups), sort=False, dropna=False, observed=True
            ).head(count)
        else:
            result = self._frame.head(count)
        return self._derive(result, self._schema)

    # ============== Column operations ==============

    def select(self, *names) -> "Table":
        names = _flatten(names)
        self._schema.require(names)
        missing_keys = [k for k in self._groups if k not in names]
        if missing_keys:
            logger.info(f"Adding missing grouping columns: {missing_keys}")
            names = missing_keys + names
        return self._derive(self._frame[names], self._schema.select(names))

    def drop(self, *names) -> "Table":
        """Project out ``names``; the inverse of :meth:`select`."""
        names = _flatten(names)
        self._schema.require(names)
        groups = tuple(k for k in self._groups if k not in names)
        return self._derive(self._frame.drop(columns=names), self._schema.drop(names), groups)

    def rename(self, mapping=None, **renames) -> "Table":
        """Rename columns, ``old -> new``."""
        mapping = dict(mapping or {}, **renames)
        self._schema.require(mapping.keys())
        new_names = list(mapping.values())
        if len(set(new_names)) != len(new_names):
            raise NameCollision(f"Several columns renamed to the same name: {new_names}")
        untouched = set(self.columns) - set(mapping)
        clashes = sorted(set(new_names) & untouched)
        if clashes:
            raise NameCollision(f"Renamed column(s) {clashes} already exist")
        groups = tuple(mapping.get(k, k) for k in self._groups)
        return self._derive(
            self._frame.rename(columns=mapping), self._schema.rename(mapping), groups
        )

    def mutate(self, **columns) -> "Table":
        """
        Add or overwrite columns.

        Values are expressions, callables of the frame, or scalars. They are
        evaluated in order, so later columns can use earlier ones. Aggregates
        inside an expression are computed per group on a grouped table.
        """
        frame = self._frame.copy()
        schema = self._schema
        for name, value in columns.items():
            if isinstance(value, Expr):
                schema.require(sorted(value.columns))
                result = value.evaluate(frame, self._groups)
            else:
                result = self._evaluate(value, frame)
            # results share the frame's RangeIndex, so assignment aligns row by row
            frame[name] = result
            schema = schema.with_column(name, SemanticType.infer(frame[name]))
        return Table(frame, schema, self._groups)

    def fill_missing(self, name: str, value) -> "Table":
        """
        Replace missing values of one column with ``value``.

        This is the explicit normalization step (e.g. absent citation counts
        become zero); nothing else in the engine fills missing values.
        """
        kind = self._schema[name]
        before = int(self._frame[name].isna().sum())
        if kind.is_numeric and not isinstance(value, (int, float, np.number)):
            raise TypeMismatch(f"Cannot fill {kind.value} column '{name}' with {value!r}")
        result = self.mutate(**{name: col(name).fill_missing(value)})
        logger.info(f"fill_missing: {before} missing value(s) in '{name}' set to {value!r}")
        return result

    # ============== Grouping ==============

    def group_by(self, *keys, add: bool = False) -> "Table":
        keys = _flatten(keys)
        self._schema.require(keys)
        groups = tuple(dict.fromkeys((list(self._groups) if add else []) + keys))
        return Table(self._frame, self._schema, groups)

    def ungroup(self) -> "Table":
        return Table(self._frame, self._schema, ())

    def group_sizes(self) -> pd.Series:
        if not self._groups:
            return pd.Series([len(self)])
        return self._frame.groupby(
            list(self._groups), sort=True, dropna=False, observed=True
        ).size()

    def summarise(self, **aggregates) -> "Table":
        """
        Collapse each group (or the whole table) to one row.

        The result holds the group keys followed by one column per aggregate
        and is ungrouped.
        """
        for name, agg in aggregates.items():
            if not isinstance(agg, Agg):
                raise TypeMismatch(f"summarise() needs aggregate expressions, got {agg!r} for '{name}'")
            self._check(agg)
        clashes = sorted(set(aggregates) & set(self._groups))
        if clashes:
            raise NameCollision(f"Aggregate name(s) {clashes} clash with group keys")

        if not self._groups:
            frame = pd.DataFrame({name: agg.summarise(self._frame, ()) for name, agg in aggregates.items()})
            return Table(frame, Schema.infer(frame), ())

        keys = list(self._groups)
        if aggregates:
            parts = {name: agg.summarise(self._frame, keys) for name, agg in aggregates.items()}
            frame = pd.DataFrame(parts).reset_index()
        else:
            frame = (
                self._frame[keys]
                .drop_duplicates()
                .sort_values(keys, kind='stable', na_position='last')
            )
        frame.columns = keys + list(aggregates)
        schema = Schema({
            name: self._schema[name] if name in keys else SemanticType.infer(frame[name])
            for name in frame.columns
        })
        for key in keys:
            if self._schema[key] is SemanticType.CATEGORICAL:
                frame[key] = frame[key].astype('category')
        logger.debug(f"summarise: {len(self)} rows -> {len(frame)} groups by {keys}")
        return Table(frame, schema, ())

    summarize = summarise

    def count(self, *keys, sort: bool = False, name: str = 'n') -> "Table":
        """Number of rows per combination of ``keys``."""
        keys = _flatten(keys) or list(self._groups)
        grouped = self.group_by(*keys) if keys else self.ungroup()
        result = grouped.summarise(**{name: n()})
        if sort:
            result = result.arrange(SortKey(name, ascending=False))
        return result

    # ============== Combining ==============

    def join(self, other: "Table", on, how: str = 'left') -> "Table":
        if how not in JOIN_TYPES:
            raise ValueError(f"Unknown join type '{how}', expected one of {JOIN_TYPES}")
        on = [on] if isinstance(on, str) else list(on)
        self._schema.require(on)
        other.schema.require(on)
        for key in on:
            left, right = self._schema[key], other.schema[key]
            if left.is_numeric != right.is_numeric:
                raise TypeMismatch(f"Join key '{key}' is {left.value} on the left and {right.value} on the right")
        result = self._frame.merge(other._frame, on=on, how=how, suffixes=('', '_y'))
        schema = Schema({
            name: (self._schema[name] if name in self._schema
                   else other.schema[name] if name in other.schema
                   else SemanticType.infer(result[name]))
            for name in result.columns
        })
        logger.debug(f"join ({how}) on {on}: {len(self)} x {len(other)} -> {len(result)} rows")
        return Table(result, schema, self._groups)

    def pipe(self, func, *args, **kwargs):
        return func(self, *args, **kwargs)

    def missing_counts(self) -> pd.Series:
        """Number of missing values per column."""
        return self._frame.isna().sum()


def bind_rows(tables: Iterable[Table]) -> Table:
    tables = list(tables)
    if not tables:
        raise ValueError("bind_rows() needs at least one table")
    frame = pd.concat([t.to_pandas() for t in tables], ignore_index=True)
    return Table(frame, tables[0].schema if all(t.schema == tables[0].schema for t in tables) else None)
