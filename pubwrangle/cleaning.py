"""
Data cleaning

Explicit, logged cleaning steps. Each returns a new table together with a
small report so callers (and tests) can check counts before and after.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

import pandas as pd

from .table import Table

logger = logging.getLogger(__name__)


@dataclass
class CleaningReport:
    step: str
    rows_before: int
    rows_after: int
    missing_before: Dict[str, int] = field(default_factory=dict)
    missing_after: Dict[str, int] = field(default_factory=dict)
    notes: List[str] = field(default_factory=list)

    @property
    def rows_removed(self) -> int:
        return self.rows_before - self.rows_after

    def lines(self) -> List[str]:
        out = [f"[{self.step}] rows: {self.rows_before} -> {self.rows_after}"]
        for col, count in self.missing_before.items():
            after = self.missing_after.get(col, count)
            out.append(f"  - missing in {col}: {count} -> {after}")
        out.extend(f"  - {note}" for note in self.notes)
        return out


def missing_profile(table: Table) -> Dict[str, int]:
    """Missing (NA) values per column, only columns that have any."""
    counts = table.missing_counts()
    return {col: int(counts[col]) for col in counts.index if counts[col] > 0}


def empty_string_profile(table: Table) -> Dict[str, int]:
    frame = table.to_pandas()
    counts = {}
    for col in frame.columns:
        if pd.api.types.is_string_dtype(frame[col].dtype):
            empty = int((frame[col].astype("string").str.strip() == "").fillna(False).sum())
            if empty:
                counts[col] = empty
    return counts


def normalize_missing(table: Table, column: str, value=0) -> Tuple[Table, CleaningReport]:
    """
    Replace missing values of ``column`` with ``value`` (absent citation counts -> 0).

    Returns the new table and a report with the missing counts before and after.
    """
    before = missing_profile(table).get(column, 0)
    result = table.fill_missing(column, value)
    after = missing_profile(result).get(column, 0)
    report = CleaningReport(
        step=f"normalize_missing({column})",
        rows_before=len(table),
        rows_after=len(result),
        missing_before={column: before},
        missing_after={column: after},
        notes=[f"{before} missing value(s) replaced with {value!r}"],
    )
    logger.info(f"Normalized '{column}': {before} missing -> {after} missing")
    return result, report


def drop_duplicates(table: Table, subset=None) -> Tuple[Table, CleaningReport]:
    """Remove exact duplicate rows, or duplicates on ``subset`` keeping the first."""
    subset = [subset] if isinstance(subset, str) else list(subset or [])
    result = table.distinct(*subset)
    report = CleaningReport(
        step=f"drop_duplicates({', '.join(subset) or 'all columns'})",
        rows_before=len(table),
        rows_after=len(result),
    )
    if report.rows_removed:
        logger.info(f"Removed {report.rows_removed} duplicate row(s)")
    return result, report


def clean_publications(table: Table, citation_column: str = "cited_by",
                       key_column: str = "eid") -> Tuple[Table, List[CleaningReport]]:
    """Standard cleaning of a publication export: dedupe on the key, then citations -> 0."""
    reports = []
    profile = missing_profile(table)
    logger.info(f"Initial shape: {table.shape[0]} rows, {table.shape[1]} columns")
    if profile:
        logger.info(f"Missing values per column: {profile}")
    empty = empty_string_profile(table)
    if empty:
        logger.info(f"Empty string entries per column: {empty}")

    table, report = drop_duplicates(table, key_column)
    reports.append(report)
    table, report = normalize_missing(table, citation_column, 0)
    reports.append(report)
    logger.info(f"Final shape after cleaning: {table.shape[0]} rows")
    return table, reports
