# WORKFLOW: Archive ingestion for price data uploads.
# Used by: POST /prices endpoint, bootstrap script
# Functions:
# 1. select_tabular_entries() - Keep the delimited-text entries of an archive
# 2. ingest_entry() - Decode one entry, dedupe and insert its records
# 3. ingest_archive() - Replace the stored snapshot with the archive contents
#
# Ingestion flow: Archive bytes -> Entries -> Tabular decoder -> Deduplicator -> Store insert -> Stats
# The archive is opened and checked for tabular entries before the store is touched.
# Reset and all inserts share one transaction, so a fatal error keeps the previous snapshot.

"""
Archive ingestion for price data uploads.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Sequence, Set

from core.config import settings
from db.store import PriceStore
from etl.archives import ARCHIVE_READ_ERRORS, ArchiveEntry, ArchiveKind, open_archive
from etl.deduplicator import Deduplicator
from etl.errors import ArchiveFormatError, ArchiveTooLargeError, NoTabularDataError
from etl.tabular_decoder import PriceRecord, RowSkip, decode_rows
from etl.validators import is_tabular_entry

logger = logging.getLogger(__name__)


@dataclass
class IngestionStats:
    rows_seen: int = 0
    duplicates: int = 0
    rows_inserted: int = 0
    price_sum: Decimal = Decimal("0")
    categories: Set[str] = field(default_factory=set)
    skipped: Counter = field(default_factory=Counter)

    @property
    def distinct_categories(self) -> int:
        return len(self.categories)

    def record_inserted(self, record: PriceRecord) -> None:
        self.rows_inserted += 1
        self.categories.add(record.category)
        self.price_sum += record.price

    def as_dict(self) -> Dict[str, object]:
        return {
            "rows_seen": self.rows_seen,
            "duplicates": self.duplicates,
            "rows_inserted": self.rows_inserted,
            "distinct_categories": self.distinct_categories,
            "price_sum": self.price_sum,
        }


def select_tabular_entries(entries: Sequence[ArchiveEntry]) -> List[ArchiveEntry]:
    """
    Keep the entries whose name carries a delimited-text suffix.

    Raises:
        NoTabularDataError: If no entry qualifies
    """
    tabular = [entry for entry in entries if is_tabular_entry(entry.name, settings.tabular_suffixes)]
    if not tabular:
        names = [entry.name for entry in entries]
        logger.warning(f"No tabular entries among {names}")
        raise NoTabularDataError(
            f"Archive contains no entries ending in {', '.join(settings.tabular_suffixes)}"
        )
    return tabular


def ingest_entry(
    entry: ArchiveEntry,
    store: PriceStore,
    deduplicator: Deduplicator,
    stats: IngestionStats,
) -> None:
    """
    Stream one tabular entry into the store, updating stats in place.

    Args:
        entry: Tabular archive entry
        store: Store gateway, already inside a transaction
        deduplicator: Seen-key filter shared by every entry of the call
        stats: Running statistics of the call
    """
    rows_before = stats.rows_seen
    skipped: Counter = Counter()

    try:
        stream = entry.open()
    except ARCHIVE_READ_ERRORS as e:
        raise ArchiveFormatError(f"Cannot open entry {entry.name}: {e}") from e

    with stream:
        for item in decode_rows(stream, delimiter=settings.csv_delimiter, encoding=settings.csv_encoding):
            stats.rows_seen += 1

            if isinstance(item, RowSkip):
                skipped[item.reason.value] += 1
                logger.debug(f"{entry.name}:{item.line} skipped ({item.reason.value})")
                continue

            if not deduplicator.add(item):
                stats.duplicates += 1
                continue

            if store.insert(item):
                stats.record_inserted(item)
            else:
                stats.duplicates += 1

    stats.skipped.update(skipped)
    logger.info(
        f"Ingested entry {entry.name}: {stats.rows_seen - rows_before} rows, skipped {dict(skipped)}"
    )


def ingest_archive(archive_bytes: bytes, archive_kind: ArchiveKind, store: PriceStore) -> IngestionStats:
    """
    Replace the stored prices with the records of an archive.

    Args:
        archive_bytes: Raw archive upload
        archive_kind: Declared archive kind
        store: Store gateway bound to a session

    Returns:
        Statistics of the call

    Raises:
        ArchiveTooLargeError: If the upload exceeds the configured size cap
        ArchiveFormatError: If the archive or one of its tabular entries is unreadable
        NoTabularDataError: If the archive holds no tabular entry
        StoreError: If the store fails for any reason other than a uniqueness conflict
    """
    if len(archive_bytes) > settings.max_archive_bytes:
        raise ArchiveTooLargeError(
            f"Archive of {len(archive_bytes)} bytes exceeds the {settings.max_archive_bytes} byte limit"
        )

    entries = select_tabular_entries(open_archive(archive_bytes, archive_kind))
    logger.info(f"Starting ingestion of {len(entries)} tabular entries from {archive_kind.value} archive")

    stats = IngestionStats()
    deduplicator = Deduplicator()

    with store.transaction():
        store.reset()
        for entry in entries:
            ingest_entry(entry, store, deduplicator, stats)

    logger.info(
        f"Ingestion finished: seen={stats.rows_seen} inserted={stats.rows_inserted} "
        f"duplicates={stats.duplicates} skipped={dict(stats.skipped)}"
    )
    return stats
