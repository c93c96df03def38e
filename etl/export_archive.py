# WORKFLOW: Export of stored prices as a delimited-text archive.
# Used by: GET /prices endpoint
# Functions:
# 1. parse_export_filters() - Parse optional date and price bounds from query values
# 2. encode_chunks() - Render result chunks as CSV text with a fixed header
# 3. export_archive() - Query, encode and wrap the result into a ZIP or TAR archive
#
# Export flow: Query values -> ExportFilters -> Filtered select (id order) -> pandas chunks -> CSV -> Archive
# An empty result still produces an archive whose entry holds only the header row.

"""
Export of stored prices as a delimited-text archive.
"""

import io
import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional, Tuple

import pandas as pd
from sqlalchemy.exc import SQLAlchemyError

from core.config import settings
from db.store import PriceStore
from etl.archives import ArchiveKind, build_archive
from etl.errors import InvalidFilterError, StoreError
from etl.validators import parse_calendar_date

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = ["name", "category", "price", "date"]


@dataclass(frozen=True)
class ExportFilters:
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None


def _parse_date_bound(label: str, value: Optional[str]) -> Optional[date]:
    if value is None or not value.strip():
        return None
    parsed = parse_calendar_date(value)
    if parsed is None:
        raise InvalidFilterError(f"Invalid {label} date: {value}")
    return parsed


def _parse_price_bound(label: str, value: Optional[str]) -> Optional[Decimal]:
    if value is None or not value.strip():
        return None
    try:
        parsed = Decimal(value.strip())
    except InvalidOperation:
        raise InvalidFilterError(f"Invalid {label} price: {value}")
    if not parsed.is_finite():
        raise InvalidFilterError(f"Invalid {label} price: {value}")
    return parsed


def parse_export_filters(
    start: Optional[str] = None,
    end: Optional[str] = None,
    min_price: Optional[str] = None,
    max_price: Optional[str] = None,
) -> ExportFilters:
    """
    Parse export bounds. Missing or blank values impose no constraint.

    Raises:
        InvalidFilterError: If a supplied bound is not a date or number
    """
    return ExportFilters(
        start_date=_parse_date_bound("start", start),
        end_date=_parse_date_bound("end", end),
        min_price=_parse_price_bound("min", min_price),
        max_price=_parse_price_bound("max", max_price),
    )


def _format_price(value) -> str:
    if value is None or pd.isna(value):
        return ""
    return f"{value:.2f}"


def _format_date(value) -> str:
    if value is None or pd.isna(value):
        return ""
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat()


def encode_chunks(chunks: Iterable[pd.DataFrame]) -> Tuple[bytes, int]:
    """
    Render query result chunks as CSV.

    Args:
        chunks: DataFrames with name, category, price and create_date columns

    Returns:
        Tuple of (UTF-8 CSV payload, number of data rows)
    """
    buffer = io.StringIO()
    pd.DataFrame(columns=EXPORT_COLUMNS).to_csv(
        buffer, index=False, sep=settings.csv_delimiter, lineterminator="\n"
    )

    rows = 0
    for chunk in chunks:
        if chunk.empty:
            continue
        frame = pd.DataFrame({
            "name": chunk["name"],
            "category": chunk["category"],
            "price": chunk["price"].map(_format_price),
            "date": chunk["create_date"].map(_format_date),
        })
        frame.to_csv(buffer, header=False, index=False, sep=settings.csv_delimiter, lineterminator="\n")
        rows += len(frame)

    return buffer.getvalue().encode("utf-8"), rows


def export_archive(store: PriceStore, filters: ExportFilters, archive_kind: ArchiveKind) -> bytes:
    """
    Export the stored prices matching the filters.

    Args:
        store: Store gateway bound to a session
        filters: Parsed bounds
        archive_kind: Archive kind to produce

    Returns:
        Archive bytes with a single CSV entry

    Raises:
        StoreError: If the query fails
    """
    statement = store.select_statement(
        start_date=filters.start_date,
        end_date=filters.end_date,
        min_price=filters.min_price,
        max_price=filters.max_price,
    )

    try:
        chunks = pd.read_sql(
            statement,
            store.session.connection(),
            chunksize=settings.export_chunk_size,
            coerce_float=False,
        )
        payload, rows = encode_chunks(chunks)
    except SQLAlchemyError as e:
        logger.error(f"Export query failed: {e}")
        raise StoreError(f"Database error: {e}") from e

    logger.info(f"Exported {rows} prices as {archive_kind.value} with filters {filters}")
    return build_archive(archive_kind, settings.export_entry_name, payload)
