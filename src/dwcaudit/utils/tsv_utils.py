"""Utility functions for writing TSV reports."""

import logging
from typing import Dict, List, Sequence

import polars as pl

from dwcaudit.utils.string_utils import sanitize_tsv_field

logger = logging.getLogger(__name__)


# Fields are written unquoted so raw strings survive as-is; sanitize_tsv_field
# keeps tabs and newlines out of them.
def _clean(value):
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    return sanitize_tsv_field(value)


def init_tsv(path: str, columns: Sequence[str]) -> str:
    """Create (or truncate) a TSV file containing only a header row.

    Rows are added afterwards with append_tsv_row, so an interrupted
    run leaves every row written so far on disk.
    """
    schema = pl.DataFrame(schema={column: pl.Utf8 for column in columns})
    schema.write_csv(path, separator="\t", quote_style="never")
    return path


def append_tsv_row(path: str, row: Dict[str, object]) -> None:
    """Append a single row to a TSV file created by init_tsv.

    The keys of row must follow the column order of the header.
    """
    entry = pl.DataFrame({key: [_clean(value)] for key, value in row.items()})
    with open(path, "a") as f:
        entry.write_csv(f, separator="\t", include_header=False, quote_style="never")


def write_tsv(path: str, columns: Sequence[str], rows: List[Sequence[object]]) -> str:
    """Write a complete TSV file with a header row and one line per row."""
    if not rows:
        return init_tsv(path, columns)

    data = {
        column: [_clean(row[i]) for row in rows]
        for i, column in enumerate(columns)
    }
    pl.DataFrame(data).write_csv(path, separator="\t", quote_style="never")
    logger.debug(f"Wrote {len(rows)} rows to {path}")
    return path
