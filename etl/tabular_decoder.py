# WORKFLOW: Tabular decoder turning delimited-text archive entries into price records.
# Used by: Ingestion coordinator
# Functions:
# 1. detect_header_columns() - Match first-row cells against semantic field keywords
# 2. resolve_column_mapping() - Combine header matches with the positional fallback, per field
# 3. decode_row() - Validate one row into a PriceRecord or a RowSkip
# 4. decode_rows() - Lazily decode a whole entry stream
#
# Decode flow: Entry bytes -> CSV rows -> First row -> ColumnMapping -> PriceRecord | RowSkip per row
# The mapping is computed once per entry and reused for every row of that entry.

"""
Delimited-text decoding with header detection and positional fallback.
"""

import csv
import datetime
import io
import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import BinaryIO, Dict, Iterator, List, Optional, Sequence, Tuple, Union

from etl.archives import ARCHIVE_READ_ERRORS
from etl.errors import ArchiveFormatError
from etl.validators import parse_calendar_date, parse_price

logger = logging.getLogger(__name__)

# Checked in this order for every header cell; a cell claims the first
# unresolved field whose keyword it contains.
HEADER_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("date", ("date",)),
    ("price", ("price", "cost")),
    ("category", ("category", "type")),
    ("name", ("name", "product", "item")),
)

REQUIRED_FIELDS = ("name", "category", "price")

DECODE_ERRORS = (csv.Error, UnicodeDecodeError) + ARCHIVE_READ_ERRORS


class SkipReason(str, Enum):
    MISSING_FIELD = "missing-field"
    BAD_PRICE = "bad-price"
    BAD_DATE = "bad-date"
    MALFORMED_WIDTH = "malformed-width"


@dataclass(frozen=True)
class PriceRecord:
    name: str
    category: str
    price: Decimal
    date: Optional[datetime.date] = None


@dataclass(frozen=True)
class RowSkip:
    reason: SkipReason
    line: int


DecodedRow = Union[PriceRecord, RowSkip]


@dataclass(frozen=True)
class ColumnMapping:
    """Column index of every semantic field within one tabular entry."""

    name_idx: int
    category_idx: int
    price_idx: int
    date_idx: Optional[int] = None

    @property
    def min_width(self) -> int:
        indexes = [self.name_idx, self.category_idx, self.price_idx]
        if self.date_idx is not None:
            indexes.append(self.date_idx)
        return max(indexes) + 1


def detect_header_columns(cells: Sequence[str]) -> Dict[str, int]:
    """
    Match header cells against the semantic field keywords.

    Args:
        cells: First-row cell values

    Returns:
        Mapping of field name to column index for every field that matched
    """
    matched: Dict[str, int] = {}
    for idx, cell in enumerate(cells):
        text = cell.strip().lower()
        if not text:
            continue
        for field, keywords in HEADER_KEYWORDS:
            if field in matched:
                continue
            if any(keyword in text for keyword in keywords):
                matched[field] = idx
                break
    return matched


def _positional_layout(width: int) -> Dict[str, int]:
    # id,name,category,price[,date] for wide rows; name,category,price otherwise
    if width >= 4:
        return {"name": 1, "category": 2, "price": 3}
    return {"name": 0, "category": 1, "price": 2}


def _lowest_unclaimed(claimed: set) -> int:
    idx = 0
    while idx in claimed:
        idx += 1
    return idx


def resolve_column_mapping(first_row: Sequence[str]) -> Tuple[ColumnMapping, bool]:
    """
    Resolve the column mapping of an entry from its first row.

    Header matches are kept as found. Every required field the header did not
    resolve falls back to its positional index on its own; if that index is
    already taken by a header match, the lowest free index is used instead.

    Args:
        first_row: Cells of the first non-blank row

    Returns:
        Tuple of (mapping, is_header). is_header is True when any cell matched
        a field keyword, in which case the first row is not data.
    """
    resolved = detect_header_columns(first_row)
    is_header = bool(resolved)

    missing = [field for field in REQUIRED_FIELDS if field not in resolved]
    if missing:
        layout = _positional_layout(len(first_row))
        claimed = set(resolved.values())
        for field in missing:
            idx = layout[field]
            if idx in claimed:
                idx = _lowest_unclaimed(claimed)
            resolved[field] = idx
            claimed.add(idx)

        if "date" not in resolved and len(first_row) >= 5 and 4 not in claimed:
            resolved["date"] = 4

        logger.debug(f"Positional fallback used for {missing}, header={is_header}")

    mapping = ColumnMapping(
        name_idx=resolved["name"],
        category_idx=resolved["category"],
        price_idx=resolved["price"],
        date_idx=resolved.get("date"),
    )
    return mapping, is_header


def decode_row(row: Sequence[str], mapping: ColumnMapping, line: int) -> DecodedRow:
    """
    Validate one data row.

    Args:
        row: Raw cells
        mapping: Column mapping of the entry
        line: Source line number, carried into skips for logging

    Returns:
        PriceRecord, or RowSkip naming why the row was rejected
    """
    if len(row) < mapping.min_width:
        return RowSkip(SkipReason.MALFORMED_WIDTH, line)

    name = row[mapping.name_idx].strip()
    category = row[mapping.category_idx].strip()
    price_text = row[mapping.price_idx].strip()
    if not name or not category or not price_text:
        return RowSkip(SkipReason.MISSING_FIELD, line)

    price = parse_price(price_text)
    if price is None:
        return RowSkip(SkipReason.BAD_PRICE, line)

    record_date = None
    if mapping.date_idx is not None:
        date_text = row[mapping.date_idx].strip()
        if date_text:
            record_date = parse_calendar_date(date_text)
            if record_date is None:
                return RowSkip(SkipReason.BAD_DATE, line)

    return PriceRecord(name=name, category=category, price=price, date=record_date)


def _non_blank_rows(reader) -> Iterator[Tuple[int, List[str]]]:
    for row in reader:
        if any(cell.strip() for cell in row):
            yield reader.line_num, row


def decode_rows(stream: BinaryIO, delimiter: str = ",", encoding: str = "utf-8-sig") -> Iterator[DecodedRow]:
    """
    Lazily decode a delimited-text entry.

    Args:
        stream: Binary entry stream
        delimiter: Cell delimiter
        encoding: Text encoding of the entry

    Yields:
        PriceRecord or RowSkip for every non-blank data row

    Raises:
        ArchiveFormatError: If the entry cannot be read as delimited text
    """
    try:
        text = io.TextIOWrapper(stream, encoding=encoding, newline="")
        rows = _non_blank_rows(csv.reader(text, delimiter=delimiter))

        first = next(rows, None)
        if first is None:
            return

        line, first_row = first
        mapping, is_header = resolve_column_mapping(first_row)
        logger.debug(f"Column mapping {mapping} (header={is_header})")

        if not is_header:
            yield decode_row(first_row, mapping, line)

        for line, row in rows:
            yield decode_row(row, mapping, line)

    except DECODE_ERRORS as e:
        raise ArchiveFormatError(f"Unreadable tabular entry: {e}") from e
