#!/usr/bin/env python3
"""
Prices API - archive upload and download of price records.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from core.config import settings
from api.middleware.logging import LoggingMiddleware
from api.routers import health, prices
from db.session import init_db

# Configure logging
logging.basicConfig(level=getattr(logging, settings.log_level.upper()))
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Ensure the prices table exists before serving requests."""
    init_db()
    logger.info("Prices API started")
    yield


# Create FastAPI app
app = FastAPI(
    title=settings.project_name,
    version=settings.version,
    description="Upload price records as ZIP/TAR archives of CSV files and download them back, filtered",
    lifespan=lifespan,
)

app.add_middleware(LoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=settings.allowed_methods,
    allow_headers=settings.allowed_headers,
)

app.include_router(prices.router, prefix=settings.api_prefix)
app.include_router(health.router)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
