# WORKFLOW: In-memory duplicate detection for one ingestion call.
# Used by: Ingestion coordinator
# Functions:
# 1. identity_key() - Composite key of name, category, price and date
# 2. Deduplicator.add() - Record a key, report whether it was first seen
# 3. dedupe() - Partition a record sequence into unique records and a duplicate count
#
# Seen keys live only as long as the Deduplicator instance; nothing is shared across calls.

"""
In-memory duplicate detection for price records.
"""

from typing import Iterable, Iterator, List, Set, Tuple

from etl.tabular_decoder import PriceRecord
from etl.validators import PRICE_QUANTUM

IdentityKey = Tuple[str, str, str, str]


def identity_key(record: PriceRecord) -> IdentityKey:
    # keyed on the stored value: 100, 100.0 and 100.00 are the same price
    price = format(record.price.quantize(PRICE_QUANTUM), "f")
    record_date = record.date.isoformat() if record.date else ""
    return (record.name, record.category, price, record_date)


class Deduplicator:
    """Order-preserving first-seen filter."""

    def __init__(self):
        self._seen: Set[IdentityKey] = set()
        self.duplicates = 0

    def add(self, record: PriceRecord) -> bool:
        key = identity_key(record)
        if key in self._seen:
            self.duplicates += 1
            return False
        self._seen.add(key)
        return True

    def filter(self, records: Iterable[PriceRecord]) -> Iterator[PriceRecord]:
        for record in records:
            if self.add(record):
                yield record


def dedupe(records: Iterable[PriceRecord]) -> Tuple[List[PriceRecord], int]:
    """
    Drop repeated records.

    Args:
        records: Decoded records

    Returns:
        Tuple of (unique records in first-seen order, number of dropped duplicates)
    """
    deduplicator = Deduplicator()
    unique = list(deduplicator.filter(records))
    return unique, deduplicator.duplicates
