"""
Main FastAPI application entry point.
"""

import logging

from fastapi import FastAPI

from lumpsum.config import get_settings
from lumpsum.api import router as api_router

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="15-year lump-sum reverse mortgage payout calculator",
    version="0.1.0",
    debug=settings.debug,
)

# Include API routes
app.include_router(api_router, prefix="/api")


@app.get("/")
async def home():
    """Liveness check kept for existing clients."""
    return {"msg": "works"}


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    return {"status": "healthy", "version": "0.1.0"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("lumpsum.main:app", host=settings.host, port=settings.port)
