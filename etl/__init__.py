# WORKFLOW: ETL package for price archive ingestion and export.
# Used by: Prices API endpoints, bootstrap script
# Modules include:
# 1. archives.py - Read ZIP/TAR archives and build single-entry export archives
# 2. tabular_decoder.py - Header detection, column mapping and row validation
# 3. validators.py - Price and calendar date parsing
# 4. deduplicator.py - In-memory duplicate detection per ingestion call
# 5. ingest_archive.py - Ingestion coordinator and statistics
# 6. export_archive.py - Filtered export encoder
# 7. errors.py - Error taxonomy
#
# ETL flow: Archive -> Tabular entries -> Records -> Dedupe -> prices table -> Filtered export archive

"""
ETL package for price archive ingestion and export.
"""
