"""
Column expressions.

Expressions are small trees built with :func:`col`, :func:`lit` and Python
operators, e.g. ``(col("cited_by") > 100) & (col("year") >= 2000)``. They
are evaluated against a ``pandas.DataFrame`` by the table engine, which first
checks :attr:`Expr.columns` against the table schema.

Comparisons use three-valued logic: comparing a missing value to anything
gives ``<NA>`` (unknown), ``&``/``|``/``~`` propagate unknowns the Kleene way,
and ``filter`` drops unknown rows.
"""

import numbers
import operator

import numpy as np
import pandas as pd
from pandas.api import types as ptypes

from .errors import TypeMismatch
from .schema import SemanticType


def _is_missing_scalar(value):
    return value is None or value is pd.NA or (isinstance(value, float) and np.isnan(value))


def _family(value):
    """Coarse type family used to reject nonsensical comparisons."""
    if isinstance(value, pd.Series):
        dtype = value.dtype
        if ptypes.is_bool_dtype(dtype):
            return "bool"
        if ptypes.is_numeric_dtype(dtype):
            return "numeric"
        if isinstance(dtype, pd.CategoricalDtype):
            return _family(pd.Series(dtype.categories)) if len(dtype.categories) else None
        if ptypes.is_string_dtype(dtype) or ptypes.is_object_dtype(dtype):
            return "text"
        return None
    if _is_missing_scalar(value):
        return None
    if isinstance(value, (bool, np.bool_)):
        return "bool"
    if isinstance(value, numbers.Number):
        return "numeric"
    if isinstance(value, str):
        return "text"
    return None


def _isna(value, index):
    if isinstance(value, pd.Series):
        return value.isna()
    return pd.Series(_is_missing_scalar(value), index=index)


def _as_series(value, index):
    if isinstance(value, pd.Series):
        return value
    if isinstance(value, (list, np.ndarray, pd.api.extensions.ExtensionArray)) and len(value) == len(index):
        return pd.Series(value, index=index)
    if _is_missing_scalar(value):
        return pd.Series(pd.NA, index=index, dtype="object")
    return pd.Series([value] * len(index), index=index)


def _decategorize(value):
    """Unordered categoricals compare as their values, whatever their category sets."""
    if (isinstance(value, pd.Series)
            and isinstance(value.dtype, pd.CategoricalDtype)
            and not value.cat.ordered):
        if ptypes.is_numeric_dtype(value.cat.categories.dtype):
            return value.astype("float64")
        return value.astype("string")
    return value


def _to_boolean(value, index, what):
    series = _as_series(value, index)
    if (ptypes.is_bool_dtype(series.dtype)
            or series.isna().all()
            or ptypes.infer_dtype(series, skipna=True) == "boolean"):
        return series.astype("boolean")
    raise TypeMismatch(f"{what} needs boolean operands, got {series.dtype}")


class Expr:
    """Base class of all column expressions."""

    # Expressions override ==, so they are not hashable
    __hash__ = None

    @property
    def columns(self):
        return set()

    def evaluate(self, frame, groups=()):
        raise NotImplementedError

    # ---------- comparison ----------
    def __eq__(self, other):
        return Compare(operator.eq, "==", self, _wrap(other))

    def __ne__(self, other):
        return Compare(operator.ne, "!=", self, _wrap(other))

    def __lt__(self, other):
        return Compare(operator.lt, "<", self, _wrap(other))

    def __le__(self, other):
        return Compare(operator.le, "<=", self, _wrap(other))

    def __gt__(self, other):
        return Compare(operator.gt, ">", self, _wrap(other))

    def __ge__(self, other):
        return Compare(operator.ge, ">=", self, _wrap(other))

    # ---------- arithmetic ----------
    def __add__(self, other):
        return Arith(operator.add, "+", self, _wrap(other))

    def __radd__(self, other):
        return Arith(operator.add, "+", _wrap(other), self)

    def __sub__(self, other):
        return Arith(operator.sub, "-", self, _wrap(other))

    def __rsub__(self, other):
        return Arith(operator.sub, "-", _wrap(other), self)

    def __mul__(self, other):
        return Arith(operator.mul, "*", self, _wrap(other))

    def __rmul__(self, other):
        return Arith(operator.mul, "*", _wrap(other), self)

    def __truediv__(self, other):
        return Arith(operator.truediv, "/", self, _wrap(other))

    def __rtruediv__(self, other):
        return Arith(operator.truediv, "/", _wrap(other), self)

    def __neg__(self):
        return Arith(operator.mul, "*", self, Literal(-1))

    # ---------- logic ----------
    def __and__(self, other):
        return Logic(operator.and_, "&", self, _wrap(other))

    def __or__(self, other):
        return Logic(operator.or_, "|", self, _wrap(other))

    def __invert__(self):
        return Not(self)

    def __bool__(self):
        raise TypeError("Use '&', '|' and '~' to combine expressions, not and/or/not")

    # ---------- missing values ----------
    def is_missing(self):
        return Apply("is_missing", self, lambda s: s.isna().astype("boolean"))

    def not_missing(self):
        return Apply("not_missing", self, lambda s: s.notna().astype("boolean"))

    def fill_missing(self, value):
        return Apply(f"fill_missing({value!r})", self, lambda s: _fill(s, value))

    # ---------- membership and text ----------
    def isin(self, values):
        values = list(values)

        def _isin(s):
            result = s.isin(values).astype("boolean")
            result[s.isna()] = pd.NA
            return result

        return Apply(f"isin({values!r})", self, _isin)

    def between(self, low, high):
        return (self >= low) & (self <= high)

    def contains(self, pattern, case=True, regex=False):
        def _contains(s):
            return _text(s, "contains").str.contains(pattern, case=case, regex=regex)

        return Apply(f"contains({pattern!r})", self, _contains)

    def lower(self):
        return Apply("lower", self, lambda s: _text(s, "lower").str.lower())

    def strip(self):
        return Apply("strip", self, lambda s: _text(s, "strip").str.strip())

    def count_items(self, delimiter=";"):
        """Number of non-empty items in a delimited string (missing stays missing)."""
        def _count(s):
            parts = _text(s, "count_items").str.split(delimiter)
            counts = parts.map(
                lambda items: sum(1 for p in items if p.strip()) if isinstance(items, list) else pd.NA
            )
            return counts.astype("Int64")

        return Apply(f"count_items({delimiter!r})", self, _count)

    # ---------- numeric ----------
    def abs(self):
        return Apply("abs", self, lambda s: _numeric(s, "abs").abs())

    def round(self, digits=0):
        return Apply(f"round({digits})", self, lambda s: _numeric(s, "round").round(digits))

    def log10(self):
        def _log10(s):
            values = _numeric(s, "log10").astype("float64")
            with np.errstate(divide="ignore", invalid="ignore"):
                return np.log10(values)

        return Apply("log10", self, _log10)

    def astype(self, kind):
        kind = SemanticType(kind)

        def _cast(s):
            try:
                return s.astype(kind.dtype)
            except (TypeError, ValueError) as e:
                raise TypeMismatch(f"Cannot cast {s.dtype} to {kind.value}: {e}") from e

        return Apply(f"astype({kind.value})", self, _cast)

    # ---------- aggregates ----------
    def mean(self):
        return Agg("mean", self)

    def sd(self):
        return Agg("sd", self)

    def median(self):
        return Agg("median", self)

    def sum(self):
        return Agg("sum", self)

    def min(self):
        return Agg("min", self)

    def max(self):
        return Agg("max", self)

    def count(self):
        return Agg("count", self)

    def n_distinct(self):
        return Agg("n_distinct", self)

    def first(self):
        return Agg("first", self)

    def last(self):
        return Agg("last", self)


def _wrap(value):
    return value if isinstance(value, Expr) else Literal(value)


def _fill(series, value):
    if isinstance(series.dtype, pd.CategoricalDtype) and value not in series.cat.categories:
        series = series.cat.add_categories([value])
    try:
        return series.fillna(value)
    except (TypeError, ValueError) as e:
        raise TypeMismatch(f"Cannot fill {series.dtype} with {value!r}: {e}") from e


def _text(series, what):
    if _family(series) not in ("text", None):
        raise TypeMismatch(f"{what} needs a text column, got {series.dtype}")
    return series.astype("string")


def _numeric(series, what):
    if _family(series) not in ("numeric", None):
        raise TypeMismatch(f"{what} needs a numeric column, got {series.dtype}")
    return series


class Column(Expr):
    def __init__(self, name):
        self.name = name

    @property
    def columns(self):
        return {self.name}

    def evaluate(self, frame, groups=()):
        return frame[self.name]

    def __repr__(self):
        return f"col({self.name!r})"


class Literal(Expr):
    def __init__(self, value):
        self.value = value

    def evaluate(self, frame, groups=()):
        return self.value

    def __repr__(self):
        return repr(self.value)


class Compare(Expr):
    def __init__(self, op, symbol, left, right):
        self.op, self.symbol, self.left, self.right = op, symbol, left, right

    @property
    def columns(self):
        return self.left.columns | self.right.columns

    def evaluate(self, frame, groups=()):
        left = self.left.evaluate(frame, groups)
        right = self.right.evaluate(frame, groups)
        lf, rf = _family(left), _family(right)
        if lf and rf and lf != rf and {lf, rf} != {"numeric", "bool"}:
            raise TypeMismatch(f"Cannot compare {lf} with {rf} in {self!r}")
        index = frame.index
        missing = _isna(left, index) | _isna(right, index)
        left, right = _decategorize(left), _decategorize(right)
        try:
            result = self.op(_as_series(left, index), right)
        except TypeError as e:
            raise TypeMismatch(f"Cannot evaluate {self!r}: {e}") from e
        if not isinstance(result, pd.Series):
            result = pd.Series(result, index=index)
        result = result.astype("boolean")
        result[missing.to_numpy()] = pd.NA
        return result

    def __repr__(self):
        return f"({self.left!r} {self.symbol} {self.right!r})"


class Arith(Expr):
    def __init__(self, op, symbol, left, right):
        self.op, self.symbol, self.left, self.right = op, symbol, left, right

    @property
    def columns(self):
        return self.left.columns | self.right.columns

    def evaluate(self, frame, groups=()):
        left = self.left.evaluate(frame, groups)
        right = self.right.evaluate(frame, groups)
        for side in (left, right):
            if _family(side) not in ("numeric", None):
                raise TypeMismatch(f"Arithmetic on non-numeric operand in {self!r}")
        if not isinstance(left, pd.Series) and not isinstance(right, pd.Series):
            left = _as_series(left, frame.index)
        return self.op(left, right)

    def __repr__(self):
        return f"({self.left!r} {self.symbol} {self.right!r})"


class Logic(Expr):
    def __init__(self, op, symbol, left, right):
        self.op, self.symbol, self.left, self.right = op, symbol, left, right

    @property
    def columns(self):
        return self.left.columns | self.right.columns

    def evaluate(self, frame, groups=()):
        left = _to_boolean(self.left.evaluate(frame, groups), frame.index, repr(self))
        right = _to_boolean(self.right.evaluate(frame, groups), frame.index, repr(self))
        return self.op(left, right)

    def __repr__(self):
        return f"({self.left!r} {self.symbol} {self.right!r})"


class Not(Expr):
    def __init__(self, operand):
        self.operand = operand

    @property
    def columns(self):
        return self.operand.columns

    def evaluate(self, frame, groups=()):
        return ~_to_boolean(self.operand.evaluate(frame, groups), frame.index, repr(self))

    def __repr__(self):
        return f"~{self.operand!r}"


class Apply(Expr):
    """Element-wise function applied to the series of another expression."""

    def __init__(self, label, operand, func):
        self.label, self.operand, self.func = label, operand, func

    @property
    def columns(self):
        return self.operand.columns

    def evaluate(self, frame, groups=()):
        return self.func(_as_series(self.operand.evaluate(frame, groups), frame.index))

    def __repr__(self):
        return f"{self.operand!r}.{self.label}"


class IfElse(Expr):
    def __init__(self, condition, then, otherwise):
        self.condition, self.then, self.otherwise = condition, then, otherwise

    @property
    def columns(self):
        return self.condition.columns | self.then.columns | self.otherwise.columns

    def evaluate(self, frame, groups=()):
        index = frame.index
        cond = _to_boolean(self.condition.evaluate(frame, groups), index, repr(self))
        then = _as_series(self.then.evaluate(frame, groups), index)
        otherwise = _as_series(self.otherwise.evaluate(frame, groups), index)
        result = then.where(cond.fillna(False).astype(bool), otherwise)
        return result.mask(cond.isna().to_numpy())

    def __repr__(self):
        return f"if_else({self.condition!r}, {self.then!r}, {self.otherwise!r})"


# ============== Aggregates ==============

NUMERIC_AGGREGATES = {"mean", "sd", "median", "sum"}
_FLOAT_AGGREGATES = {"mean", "sd", "median"}
_DTYPE_KEEPING_AGGREGATES = {"sum", "min", "max", "first", "last"}

_GROUPBY_METHODS = {
    "mean": "mean",
    "sd": "std",
    "median": "median",
    "min": "min",
    "max": "max",
    "n": "size",
    "count": "count",
    "n_distinct": "nunique",
}


def _first(s):
    return s.iloc[0] if len(s) else np.nan


def _last(s):
    return s.iloc[-1] if len(s) else np.nan


def _reduce(how, s):
    """Reduce one whole series to a scalar; empty/all-missing numeric input gives NaN."""
    if how == "n":
        return len(s)
    if how == "count":
        return int(s.notna().sum())
    if how == "n_distinct":
        return int(s.nunique(dropna=True))
    if how == "first":
        return _first(s)
    if how == "last":
        return _last(s)
    if how == "sum":
        return s.sum(min_count=1)
    if how == "sd":
        return s.std(ddof=1)
    non_missing = s.dropna()
    if how in ("min", "max") and non_missing.empty:
        return np.nan
    return getattr(non_missing, how)()


class Agg(Expr):
    """
    Aggregate of an expression.

    Inside ``summarise`` it collapses each group to one value. Inside
    ``mutate`` it is broadcast back onto the rows of each group, which is how
    per-group derived columns such as z-scores are written.
    """

    def __init__(self, how, operand=None):
        self.how = how
        self.operand = operand

    @property
    def columns(self):
        return self.operand.columns if self.operand is not None else set()

    def _values(self, frame, groups):
        if self.operand is None:
            return pd.Series(np.zeros(len(frame)), index=frame.index)
        values = _as_series(self.operand.evaluate(frame, groups), frame.index)
        family = _family(values)
        if family is None and values.isna().all():
            values = pd.Series(np.nan, index=frame.index)
            family = "numeric"
        if self.how in NUMERIC_AGGREGATES and family not in ("numeric", "bool", None):
            raise TypeMismatch(f"{self.how}() needs a numeric column, got {values.dtype} in {self!r}")
        if self.how in _FLOAT_AGGREGATES:
            values = values.astype("float64")
        elif self.how in ("sum", "min", "max") and family in ("numeric", "bool"):
            # integer columns stay integer; booleans are summed as counts
            if ptypes.is_integer_dtype(values.dtype) or (self.how == "sum" and family == "bool"):
                values = values.astype("Int64")
            elif family == "bool":
                values = values.astype("boolean")
        elif isinstance(values.dtype, pd.CategoricalDtype) and self.how in ("min", "max"):
            values = values.astype("string")
        return values

    def _grouped(self, values, frame, groups):
        keys = [frame[k] for k in groups]
        return values.groupby(keys, sort=True, dropna=False, observed=True)

    def evaluate(self, frame, groups=()):
        values = self._values(frame, groups)
        if not groups:
            return _reduce(self.how, values)
        grouped = self._grouped(values, frame, groups)
        if self.how in ("first", "last"):
            return grouped.transform(_first if self.how == "first" else _last)
        if self.how == "sum":
            return grouped.transform("sum", min_count=1)
        return grouped.transform(_GROUPBY_METHODS[self.how])

    def summarise(self, frame, groups):
        """One value per group, indexed by the group keys; a single value without groups."""
        values = self._values(frame, groups)
        if not groups:
            value = _reduce(self.how, values)
            if self.how in _DTYPE_KEEPING_AGGREGATES:
                return pd.Series([value], dtype=values.dtype)
            return pd.Series([value])
        grouped = self._grouped(values, frame, groups)
        if self.how in ("first", "last"):
            return grouped.agg(_first if self.how == "first" else _last)
        if self.how == "sum":
            return grouped.sum(min_count=1)
        return getattr(grouped, _GROUPBY_METHODS[self.how])()

    def __repr__(self):
        inner = repr(self.operand) if self.operand is not None else ""
        return f"{self.how}({inner})"


# ============== Public constructors ==============

def col(name):
    """Reference a column by name."""
    return Column(name)


def lit(value):
    return Literal(value)


def if_else(condition, then, otherwise):
    return IfElse(_wrap(condition), _wrap(then), _wrap(otherwise))


def n():
    """Number of rows (per group inside ``summarise``)."""
    return Agg("n")


def mean(name):
    return Agg("mean", col(name))


def sd(name):
    return Agg("sd", col(name))


def median(name):
    return Agg("median", col(name))


def n_distinct(name):
    return Agg("n_distinct", col(name))


class SortKey:
    def __init__(self, name, ascending=True):
        self.name = name
        self.ascending = ascending

    def __repr__(self):
        return self.name if self.ascending else f"desc({self.name!r})"


def desc(name):
    """Descending sort key for :meth:`Table.arrange`."""
    return SortKey(name, ascending=False)
