"""
Opportunity Intelligence - FastAPI Backend
Main application entry point with health check and API routing.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import settings, validate_scoring_settings
from routers import health, intelligence, outcomes

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    logger.info("Starting Opportunity Intelligence API...")
    validate_scoring_settings()
    yield
    logger.info("Shutting down API...")


app = FastAPI(
    title="Opportunity Intelligence API",
    description="Diagnose channel performance, detect competitor gaps and rank growth opportunities",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(intelligence.router, prefix="/intelligence", tags=["Intelligence"])
app.include_router(outcomes.router, prefix="/outcomes", tags=["Outcomes"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Opportunity Intelligence API",
        "version": "0.1.0",
        "status": "running"
    }
