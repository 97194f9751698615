"""
Tabular file parsing for transaction uploads.

Rows are read positionally as type, amount, category, date, description.
The header row is skipped, and rows without all five cells populated are
dropped without being reported.
"""

import csv
import io
import logging
import zipfile
from pathlib import Path
from typing import Iterable, Iterator, List, NamedTuple, Optional, Sequence

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from .errors import ParseError
from .models import CandidateRecord
from .row_validator import coerce_amount

logger = logging.getLogger(__name__)

REQUIRED_CELLS = 5
CSV_EXTENSIONS = (".csv",)
WORKBOOK_EXTENSIONS = (".xlsx", ".xlsm")
SUPPORTED_EXTENSIONS = CSV_EXTENSIONS + WORKBOOK_EXTENSIONS


class ParsedRow(NamedTuple):
    index: int  # 0-based data row index in the source, header excluded
    record: CandidateRecord


def _is_populated(cell) -> bool:
    if cell is None:
        return False
    return str(cell).strip() != ""


def row_to_candidate(cells: Sequence) -> Optional[CandidateRecord]:
    """
    Map one row's cells to a CandidateRecord.

    Returns:
        The candidate, or None when fewer than five leading cells are populated
    """
    leading = list(cells[:REQUIRED_CELLS])
    if len(leading) < REQUIRED_CELLS or not all(_is_populated(c) for c in leading):
        return None

    type_cell, amount_cell, category_cell, date_cell, description_cell = leading
    amount = coerce_amount(amount_cell)
    return CandidateRecord(
        type=str(type_cell).lower(),
        amount=amount if amount is not None else 0.0,
        category=str(category_cell),
        date=str(date_cell),
        description=str(description_cell),
    )


def _collect(rows: Iterable[Sequence], filename: str) -> List[ParsedRow]:
    parsed = []
    dropped = 0
    data_rows = iter(rows)
    next(data_rows, None)  # header
    for index, cells in enumerate(data_rows):
        candidate = row_to_candidate(cells)
        if candidate is None:
            dropped += 1
            continue
        parsed.append(ParsedRow(index=index, record=candidate))
    if dropped:
        logger.debug("%s: dropped %d incomplete rows", filename, dropped)
    return parsed


def _csv_rows(filename: str, content: bytes) -> Iterator[List[str]]:
    try:
        decoded = content.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise ParseError(
            "File encoding error. Please ensure the file is UTF-8 encoded",
            filename=filename,
        )
    if "\x00" in decoded:
        raise ParseError("File does not contain delimited text", filename=filename)
    try:
        return iter(list(csv.reader(io.StringIO(decoded, newline=""))))
    except csv.Error as exc:
        raise ParseError(f"Malformed CSV: {exc}", filename=filename)


def _workbook_rows(filename: str, content: bytes) -> Iterator[tuple]:
    try:
        workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, ValueError, OSError) as exc:
        raise ParseError(f"Could not read workbook: {exc}", filename=filename)
    try:
        sheet = workbook.active
        if sheet is None:
            raise ParseError("Workbook has no worksheets", filename=filename)
        return iter(list(sheet.iter_rows(values_only=True)))
    finally:
        workbook.close()


def parse_file(filename: str, content: bytes) -> List[ParsedRow]:
    """
    Parse an uploaded CSV or Excel workbook into candidate records.

    Args:
        filename: Original file name; its extension selects the reader
        content: Raw file bytes

    Returns:
        Candidates in source order, each with its data row index

    Raises:
        ParseError: if the file cannot be read as tabular data
    """
    if not content:
        raise ParseError("File is empty", filename=filename)

    suffix = Path(filename).suffix.lower()
    if suffix in CSV_EXTENSIONS:
        rows = _csv_rows(filename, content)
    elif suffix in WORKBOOK_EXTENSIONS:
        rows = _workbook_rows(filename, content)
    else:
        raise ParseError(
            f"Unsupported file type '{suffix or filename}'. "
            f"Expected one of: {', '.join(SUPPORTED_EXTENSIONS)}",
            filename=filename,
        )

    parsed = _collect(rows, filename)
    logger.info("Parsed %s: %d candidate rows", filename, len(parsed))
    return parsed
