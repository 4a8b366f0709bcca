"""
FastAPI Application

Main FastAPI application for QueryPilot with:
- Lifespan management for registry, provider and pipeline initialization
- CORS middleware for frontend integration
- Exception handlers for errors raised before a stream opens
- Query, insights and health endpoints

Usage:
    uvicorn querypilot.api.main:app --reload --port 8000
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from querypilot import __version__
from querypilot.api.routes import health, insights, query
from querypilot.config import get_settings
from querypilot.llm.factory import LLMProviderFactory
from querypilot.models.errors import QueryPilotError, TenantNotFoundError
from querypilot.pipeline.insights import InsightsPipeline
from querypilot.pipeline.orchestrator import QueryPipeline, create_pipeline
from querypilot.registry.tenants import RegistryError, YamlTenantRegistry

logger = logging.getLogger(__name__)

# Global state for pipelines and shared read-only components
app_state = {
    "pipeline": None,
    "insights": None,
    "registry": None,
    "provider": None,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Lifespan context manager for startup and shutdown.

    Initializes:
    - Tenant registry (YAML file)
    - Text-generation provider
    - Query and insights pipelines
    """
    config = get_settings()
    logger.info("Starting QueryPilot API server...")

    try:
        logger.info("Loading tenant registry...")
        try:
            app_state["registry"] = YamlTenantRegistry.from_file(
                config.registry.path, credentials_key=config.registry.credentials_key
            )
        except RegistryError as e:
            logger.warning(f"Tenant registry unavailable: {e}")
            app_state["registry"] = None

        logger.info("Initializing generation provider...")
        try:
            app_state["provider"] = LLMProviderFactory.create_default_provider(config.llm)
        except ValueError as e:
            logger.warning(f"Generation provider unavailable: {e}")
            app_state["provider"] = None

        if app_state["registry"] is not None and app_state["provider"] is not None:
            logger.info("Initializing pipelines...")
            app_state["pipeline"] = create_pipeline(
                config,
                registry=app_state["registry"],
                provider=app_state["provider"],
            )
            app_state["insights"] = InsightsPipeline(
                provider=app_state["provider"],
                registry=app_state["registry"],
            )
        else:
            logger.warning("Pipelines not initialized; registry or provider is missing.")

        logger.info("QueryPilot API server started successfully")

        yield  # Application runs here

    finally:
        logger.info("Shutting down QueryPilot API server...")

        if app_state["provider"]:
            try:
                await app_state["provider"].close()
                logger.info("Generation provider closed")
            except Exception as e:
                logger.error(f"Error closing provider: {e}")

        app_state.update(pipeline=None, insights=None, registry=None, provider=None)
        logger.info("QueryPilot API server shut down complete")


# Create FastAPI app
app = FastAPI(
    title="QueryPilot API",
    description="Natural-language questions over your relational data, streamed as NDJSON",
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware for frontend
config = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception handlers
@app.exception_handler(TenantNotFoundError)
async def tenant_not_found_handler(request: Request, exc: TenantNotFoundError) -> JSONResponse:
    """Unknown tenants are rejected before any stream opens."""
    logger.warning(f"Tenant not found: {exc.tenant_id}", extra={"tenant_id": exc.tenant_id})
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "tenant_not_found", "message": exc.message},
    )


@app.exception_handler(QueryPilotError)
async def pipeline_error_handler(request: Request, exc: QueryPilotError) -> JSONResponse:
    """Handle pipeline errors raised outside a stream."""
    logger.error(f"Pipeline error: {exc}", extra={"error": exc.to_dict()})
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "pipeline_error", "message": exc.message},
    )


# Include routers
app.include_router(health.router, prefix="/api", tags=["health"])
app.include_router(query.router, prefix="/api", tags=["query"])
app.include_router(insights.router, prefix="/api", tags=["insights"])


# Root endpoint
@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with API information."""
    return {
        "name": "QueryPilot API",
        "version": __version__,
        "description": "Natural-language questions over relational data",
        "docs": "/docs",
    }


def get_pipeline() -> QueryPipeline:
    """Get the initialized query pipeline."""
    if app_state["pipeline"] is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Pipeline not initialized",
        )
    return app_state["pipeline"]


def get_insights() -> InsightsPipeline:
    """Get the initialized insights pipeline."""
    if app_state["insights"] is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Insights pipeline not initialized",
        )
    return app_state["insights"]
