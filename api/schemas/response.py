# WORKFLOW: Pydantic response schemas for the prices resource.
# Used by: Prices router, OpenAPI documentation, testing
# Schemas include:
# 1. IngestionStatsResponse - Aggregate statistics of one archive upload
# 2. ErrorResponse - Error code and message returned with 4xx/5xx responses
#
# Response flow: Ingestion stats -> Pydantic model -> JSON response

from pydantic import BaseModel, Field


class IngestionStatsResponse(BaseModel):
    """Statistics of one POST /prices call."""
    rows_seen: int = Field(..., ge=0, description="Data rows read, including skipped ones")
    duplicates: int = Field(..., ge=0, description="Rows dropped as repeats within the upload or by the store")
    rows_inserted: int = Field(..., ge=0, description="Rows stored")
    distinct_categories: int = Field(..., ge=0, description="Distinct categories among stored rows")
    price_sum: float = Field(
        ...,
        description="Sum of prices among stored rows, accumulated as an exact decimal and sent as a JSON number",
    )


class ErrorResponse(BaseModel):
    error_code: str = Field(..., description="Stable error code")
    message: str = Field(..., description="Human-readable error message")
