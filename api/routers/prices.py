# WORKFLOW: Prices resource endpoints for archive upload and download.
# Used by: Data loaders, reporting clients, integration testing
# Endpoints:
# 1. POST /prices - Replace stored prices with the contents of a ZIP/TAR upload
# 2. GET /prices - Download stored prices as a ZIP/TAR archive, optionally filtered
#
# Upload flow: Multipart file -> Size cap -> Ingestion coordinator -> Stats JSON
# Download flow: Query bounds -> Filter parsing -> Export encoder -> Archive response
# Other methods on the path are answered with 405 by the router.

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from fastapi.responses import Response
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
import logging
from typing import Optional

from api.schemas.response import ErrorResponse, IngestionStatsResponse
from core.config import settings
from db.session import get_db
from db.store import PriceStore
from etl.archives import resolve_archive_kind
from etl.errors import (
    ArchiveFormatError,
    ArchiveTooLargeError,
    InvalidFilterError,
    NoTabularDataError,
    PriceServiceError,
    StoreError,
)
from etl.export_archive import export_archive, parse_export_filters
from etl.ingest_archive import ingest_archive

logger = logging.getLogger(__name__)

router = APIRouter(tags=["prices"])

ERROR_STATUS = {
    ArchiveFormatError: 400,
    NoTabularDataError: 400,
    InvalidFilterError: 400,
    ArchiveTooLargeError: 413,
    StoreError: 500,
}

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid archive, filter or missing data"},
    413: {"model": ErrorResponse, "description": "Archive exceeds the size limit"},
    500: {"model": ErrorResponse, "description": "Store failure"},
}


def _http_error(error: PriceServiceError) -> HTTPException:
    return HTTPException(
        status_code=ERROR_STATUS.get(type(error), status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail=ErrorResponse(error_code=error.error_code, message=error.message).model_dump(),
    )


def _internal_error() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=ErrorResponse(error_code="INTERNAL_ERROR", message="Internal server error").model_dump(),
    )


@router.post("/prices", response_model=IngestionStatsResponse, responses=ERROR_RESPONSES)
async def upload_prices(
    file: Optional[UploadFile] = File(None, alias=settings.upload_field_name),
    archive_type: Optional[str] = Query(None, alias="type", description="zip (default) or tar"),
    db: Session = Depends(get_db),
):
    """
    Replace the stored prices with the records of an uploaded archive.

    Every successful call establishes a new snapshot: stored prices are removed
    and the archive's unique, valid rows are inserted in one transaction.
    """
    try:
        kind = resolve_archive_kind(archive_type, settings.default_archive_type)
        if file is None:
            raise ArchiveFormatError(f"Missing form field '{settings.upload_field_name}'")

        # one byte past the cap is enough to detect an oversized upload
        data = await file.read(settings.max_archive_bytes + 1)
        logger.info(f"Price upload: type={kind.value}, filename={file.filename}, bytes={len(data)}")

        stats = await run_in_threadpool(ingest_archive, data, kind, PriceStore(db))

    except PriceServiceError as e:
        logger.warning(f"Price upload rejected ({e.error_code}): {e.message}")
        raise _http_error(e)
    except Exception:
        logger.exception("Unexpected error during price upload")
        raise _internal_error()

    return IngestionStatsResponse(
        rows_seen=stats.rows_seen,
        duplicates=stats.duplicates,
        rows_inserted=stats.rows_inserted,
        distinct_categories=stats.distinct_categories,
        # summed as Decimal, converted once for the JSON number
        price_sum=float(stats.price_sum),
    )


@router.get(
    "/prices",
    response_class=Response,
    responses={
        200: {"content": {"application/zip": {}, "application/x-tar": {}}, "description": "Price archive"},
        **ERROR_RESPONSES,
    },
)
def download_prices(
    start: Optional[str] = Query(None, description="Earliest date, inclusive"),
    end: Optional[str] = Query(None, description="Latest date, inclusive"),
    min_price: Optional[str] = Query(None, alias="min", description="Lowest price, inclusive"),
    max_price: Optional[str] = Query(None, alias="max", description="Highest price, inclusive"),
    archive_type: Optional[str] = Query(None, alias="type", description="zip (default) or tar"),
    db: Session = Depends(get_db),
):
    """
    Download stored prices as an archive holding one CSV entry.

    Rows are ordered by insertion. Date bounds exclude rows without a date.
    """
    try:
        kind = resolve_archive_kind(archive_type, settings.default_archive_type)
        filters = parse_export_filters(start=start, end=end, min_price=min_price, max_price=max_price)
        payload = export_archive(PriceStore(db), filters, kind)

    except PriceServiceError as e:
        logger.warning(f"Price download rejected ({e.error_code}): {e.message}")
        raise _http_error(e)
    except Exception:
        logger.exception("Unexpected error during price download")
        raise _internal_error()

    return Response(
        content=payload,
        media_type=kind.media_type,
        headers={"Content-Disposition": f"attachment; filename=data.{kind.value}"},
    )
