# WORKFLOW: Error taxonomy for price ingestion and export.
# Used by: Archive reader, ingestion coordinator, export encoder, store gateway, API routers
# Errors:
# 1. ArchiveFormatError - container cannot be parsed as the declared kind
# 2. ArchiveTooLargeError - upload exceeds the configured size cap
# 3. NoTabularDataError - archive holds no delimited-text entry
# 4. InvalidFilterError - export bound cannot be parsed
# 5. StoreError - persistence or query failure
#
# Row-level problems are not exceptions; see etl.tabular_decoder.RowSkip.

"""
Error taxonomy for price ingestion and export.
"""


class PriceServiceError(Exception):
    """Base error carrying a stable error code and a client-safe message."""

    error_code = "PRICE_SERVICE_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ArchiveFormatError(PriceServiceError):
    error_code = "ARCHIVE_FORMAT"


class ArchiveTooLargeError(PriceServiceError):
    error_code = "ARCHIVE_TOO_LARGE"


class NoTabularDataError(PriceServiceError):
    error_code = "NO_TABULAR_DATA"


class InvalidFilterError(PriceServiceError):
    error_code = "INVALID_FILTER"


class StoreError(PriceServiceError):
    error_code = "STORE_ERROR"
