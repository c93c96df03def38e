# WORKFLOW: Bootstrap script for database preparation and optional initial load.
# Used by: Initial setup, local development, deployment preparation
# Functions:
# 1. setup_database() - Ensure the prices table and its optional columns exist
# 2. load_archive() - Ingest a local ZIP/TAR archive into the store
# 3. main() - Parse arguments and run the steps
#
# Bootstrap flow: Ensure schema -> (optional) ingest archive -> print stats
# Exit codes: 0 success, 1 ingestion rejected or store failure.

"""
Bootstrap script for the Prices API database.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from db.session import get_db, init_db  # noqa: E402
from db.store import PriceStore  # noqa: E402
from etl.archives import resolve_archive_kind  # noqa: E402
from etl.errors import PriceServiceError  # noqa: E402
from etl.ingest_archive import IngestionStats, ingest_archive  # noqa: E402

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
)
logger = logging.getLogger(__name__)


def setup_database() -> None:
    """
    Ensure the database schema exists.
    """
    logger.info("Ensuring database schema...")
    init_db()


def load_archive(archive_path: Path, archive_type: Optional[str]) -> IngestionStats:
    """
    Ingest a local archive, replacing stored prices.

    Args:
        archive_path: Path to a ZIP or TAR archive
        archive_type: "zip" or "tar"; inferred from the file suffix when omitted

    Returns:
        Ingestion statistics
    """
    if archive_type is None and archive_path.suffix.lower() in (".tar", ".tgz", ".gz"):
        archive_type = "tar"
    kind = resolve_archive_kind(archive_type)

    db_gen = get_db()
    db = next(db_gen)
    try:
        return ingest_archive(archive_path.read_bytes(), kind, PriceStore(db))
    finally:
        db_gen.close()


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(description="Prepare the prices database")
    parser.add_argument("--archive", type=Path, help="Archive to load after preparing the schema")
    parser.add_argument("--type", dest="archive_type", choices=["zip", "tar"], help="Archive type")
    args = parser.parse_args(argv)

    setup_database()

    if args.archive is None:
        logger.info("Database prepared successfully")
        return 0

    try:
        stats = load_archive(args.archive, args.archive_type)
    except PriceServiceError as e:
        logger.error(f"Loading {args.archive} failed ({e.error_code}): {e.message}")
        return 1

    print(json.dumps(stats.as_dict(), default=float))
    return 0


if __name__ == "__main__":
    sys.exit(main())
