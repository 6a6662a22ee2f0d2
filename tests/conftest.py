"""Shared pytest fixtures: a small publication export with known answers."""

import csv
import os
from pathlib import Path

import pytest

os.environ.setdefault("MPLBACKEND", "Agg")

from pubwrangle import PUBLICATION_SCHEMA, Table  # noqa: E402
from pubwrangle.schema import SCOPUS_HEADERS  # noqa: E402

MEPS = "Marine Ecology Progress Series"

# Authors 1-2-3 share papers P1/P2/P6, author 4 is alone on P3, authors 5-6
# wrote P5 together, and P4 has no usable author identifier.
RECORDS = [
    {"authors": "Ames A., Bell B.", "author_ids": "1;2;", "title": "Kelp forests",
     "year": 2000, "source_title": MEPS, "cited_by": 10, "doi": "10.1/a",
     "document_type": "Article", "eid": "P1"},
    {"authors": "Bell B., Cole C.", "author_ids": "2;3", "title": "Seagrass, again",
     "year": 2000, "source_title": "Journal A", "cited_by": None, "doi": "10.1/b",
     "document_type": "Article", "eid": "P2"},
    {"authors": "Dunn D.", "author_ids": "4", "title": "Coral bleaching",
     "year": 2001, "source_title": MEPS, "cited_by": 5, "doi": None,
     "document_type": "Review", "eid": "P3"},
    {"authors": "[No author name available]", "author_ids": "[No author id available]",
     "title": "Editorial", "year": 2001, "source_title": "Journal A", "cited_by": 0,
     "doi": None, "document_type": "Article", "eid": "P4"},
    {"authors": "Eddy E., Fox F.", "author_ids": "5; 6 ;5", "title": "Plankton",
     "year": 2002, "source_title": "Journal B", "cited_by": 30, "doi": "10.1/e",
     "document_type": "Article", "eid": "P5"},
    {"authors": "Ames A.", "author_ids": "1", "title": "Sea urchins",
     "year": 2002, "source_title": MEPS, "cited_by": None, "doi": "10.1/f",
     "document_type": "Letter", "eid": "P6"},
]


@pytest.fixture
def records():
    return [dict(r) for r in RECORDS]


@pytest.fixture
def publications(records):
    return Table.from_records(records, PUBLICATION_SCHEMA)


@pytest.fixture
def scopus_csv(tmp_path, records):
    """The same records written as a Scopus export (original headers, extra column)."""
    path = tmp_path / "scopus.csv"
    canonical_to_scopus = {v: k for k, v in SCOPUS_HEADERS.items()}
    headers = [canonical_to_scopus[name] for name in PUBLICATION_SCHEMA] + ["Link"]
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(headers)
        for r in records:
            row = ["" if r[name] is None else r[name] for name in PUBLICATION_SCHEMA]
            writer.writerow(row + [f"https://example.org/{r['eid']}"])
    return path


@pytest.fixture(scope="session")
def dataset_path():
    """Path to the full ~20,000 publication export, if available."""
    path = os.getenv("PUBWRANGLE_DATASET")
    if not path or not Path(path).exists():
        pytest.skip("PUBWRANGLE_DATASET not set or missing")
    return Path(path)
