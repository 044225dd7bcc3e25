from __future__ import annotations

import csv
import logging
from typing import List

import pandas as pd

logger = logging.getLogger(__name__)

SOURCE_ENCODING = "utf-8-sig"


class EmptyInputError(ValueError):
    """The tabular source has no rows at all, not even a header."""


class MalformedInputError(ValueError):
    """The source cannot be split into records, e.g. a quote never closes."""


def _check_quoting(path: str) -> int:
    """
    Walk the file with a strict reader and return its record count.

    The lenient pandas parser swallows everything after an unterminated quote,
    so a broken quote has to be caught before the real read.
    """
    records = 0
    with open(path, "r", encoding=SOURCE_ENCODING, errors="replace", newline="") as handle:
        reader = csv.reader(handle, strict=True)
        try:
            for row in reader:
                # pandas skips lines holding nothing but whitespace
                if len(row) > 1 or (row and row[0].strip()):
                    records += 1
        except csv.Error as exc:
            raise MalformedInputError(f"{path}, line {reader.line_num}: {exc}") from exc
    return records


def read_rows(path: str) -> List[List[str]]:
    """
    Read a comma-delimited export as raw string rows, header row first.

    Rows longer than the header are truncated and short rows are padded with
    empty cells; quoting follows the usual CSV rules. Broken quoting raises
    ``MalformedInputError`` instead of losing the rows behind it.
    """
    expected = _check_quoting(path)
    read_options = dict(
        header=None,
        engine="python",
        dtype=str,
        keep_default_na=False,
        encoding=SOURCE_ENCODING,
        encoding_errors="replace",
    )
    try:
        header = pd.read_csv(path, nrows=1, **read_options)
    except pd.errors.EmptyDataError as exc:
        raise EmptyInputError(f"no rows in {path}") from exc
    width = header.shape[1]

    truncated: List[int] = []

    def _truncate(bad_line: List[str]) -> List[str]:
        truncated.append(len(bad_line))
        return bad_line[:width]

    try:
        df = pd.read_csv(path, on_bad_lines=_truncate, **read_options)
    except pd.errors.ParserError as exc:
        raise MalformedInputError(f"{path}: {exc}") from exc
    if truncated:
        logger.info("Truncated %d over-long row(s) in %s to %d fields", len(truncated), path, width)

    rows = [[str(cell) for cell in row] for row in df.fillna("").values.tolist()]
    if len(rows) != expected:
        logger.warning("Read %d of %d record(s) from %s", len(rows), expected, path)
    return rows
