# WORKFLOW: Cell-level validation for price records.
# Used by: Tabular decoder (row validation), export filters (query bounds)
# Functions:
# 1. parse_price() - Parse a price cell into a non-negative Decimal the prices column stores exactly
# 2. parse_calendar_date() - Parse a date cell against the accepted formats
# 3. is_tabular_entry() - Check whether an archive entry name is delimited text
#
# Validation flow: Raw cell -> Strip -> Parse -> Value or None
# Parsers return None instead of raising so callers can tag the row as skipped.

"""
Cell-level validation for price records.
"""

import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

# Prices are stored as NUMERIC(PRICE_PRECISION, PRICE_SCALE).
PRICE_PRECISION = 12
PRICE_SCALE = 2
PRICE_QUANTUM = Decimal(1).scaleb(-PRICE_SCALE)
PRICE_LIMIT = Decimal(10) ** (PRICE_PRECISION - PRICE_SCALE)

# Tried in order; the first format that parses wins.
DATE_FORMATS = (
    "%Y-%m-%d",
    "%d.%m.%Y",
    "%d/%m/%Y",
    "%m/%d/%Y",
    "%Y/%m/%d",
)


def parse_price(value: str) -> Optional[Decimal]:
    """
    Parse a price cell.

    Args:
        value: Raw cell text

    Returns:
        Decimal price, or None if the text is not a finite, non-negative number
        the prices column holds exactly (at most PRICE_SCALE decimals, below PRICE_LIMIT)
    """
    try:
        price = Decimal(value.strip())
    except InvalidOperation:
        return None

    if not price.is_finite() or price < 0 or price >= PRICE_LIMIT:
        return None
    if price != price.quantize(PRICE_QUANTUM):
        return None
    return price


def parse_calendar_date(value: str) -> Optional[date]:
    """
    Parse a date cell against DATE_FORMATS.

    Args:
        value: Raw cell text

    Returns:
        Parsed date, or None if no accepted format matches
    """
    value = value.strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    return None


def is_tabular_entry(name: str, suffixes: Iterable[str]) -> bool:
    """Case-insensitive suffix check for delimited-text archive entries."""
    lowered = name.lower()
    return any(lowered.endswith(suffix.lower()) for suffix in suffixes)
