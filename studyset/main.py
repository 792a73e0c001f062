"""FastAPI application for the study material ingestion service."""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, Union

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded  # type: ignore[import-not-found]

from studyset import __version__
from studyset.config import get_settings
from studyset.dependencies import Pipeline, build_pipeline, get_pipeline
from studyset.errors import PipelineError
from studyset.middleware.logging import RequestLoggingMiddleware, configure_logging
from studyset.middleware.rate_limit import get_limiter, rate_limit_exceeded_handler
from studyset.middleware.request_id import RequestIDMiddleware

configure_logging()
logger = logging.getLogger(__name__)

# Application metadata
VERSION = __version__
COMMIT_HASH = "development"  # This can be set via environment variable or build process


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan event handler for startup and shutdown."""
    # Startup: validate configuration and build the clients once
    try:
        # This will raise ValidationError if required env vars are missing
        settings = get_settings()
        app.state.pipeline = build_pipeline(settings)

        # Log startup (without exposing secrets)
        logger.info("Starting Study Set API v%s", VERSION)
        logger.info("Text model: %s, vision model: %s", settings.text_model_name, settings.vision_model_name)
        logger.info("Conversion engine: %s (timeout %.0fs)", settings.soffice_binary, settings.conversion_timeout_seconds)
        logger.info("Environment validation: OK")

    except Exception as e:
        logger.error("Startup validation failed: %s", e)
        raise

    yield

    # Shutdown: staged images of in-flight requests are left to the temp prefix sweep
    logger.info("Shutting down Study Set API")


app = FastAPI(
    title="Study Set API",
    description="Study material ingestion: office-to-PDF conversion, text extraction, AI titles and quizzes",
    version=VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Add rate limiter to app state (required by slowapi)
limiter = get_limiter()
app.state.limiter = limiter

# Register custom rate limit exceeded handler
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)  # type: ignore[arg-type]


@app.exception_handler(PipelineError)
async def pipeline_error_handler(request: Request, exc: PipelineError) -> JSONResponse:
    """Render typed pipeline failures as ``{"error", "kind", ...}`` payloads."""
    logger.warning("%s on %s %s: %s", exc.kind, request.method, request.url.path, exc)
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_payload(),
        headers={"X-Error-Kind": exc.kind},
    )


# Add logging middleware (added before request ids, so it runs inside them)
app.add_middleware(RequestLoggingMiddleware)

# Request ids are outermost so every log line carries one
app.add_middleware(RequestIDMiddleware)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, restrict this to specific domains
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-Request-ID"],
)


@app.get("/health", response_model=None)
async def health_check(pipeline: Pipeline = Depends(get_pipeline)) -> Union[Dict[str, Any], JSONResponse]:
    """
    Health check endpoint that verifies all required services are operational.

    The conversion engine is reported but does not fail the check: naming and
    quiz generation keep working without it, only ``/api/convert`` does not.

    Returns:
        JSON response with overall status, individual service statuses and
        staged-image cleanup counters.

    Status Codes:
        200: All required services healthy
        503: Model or storage client unavailable
    """
    timestamp = datetime.now(timezone.utc).isoformat()
    services: Dict[str, str] = {}
    overall_healthy = True

    # Check LibreOffice
    try:
        available = await pipeline.converter.is_available()
        services["libreoffice"] = "healthy" if available else "unavailable: not installed"
    except Exception as e:
        services["libreoffice"] = f"unavailable: {str(e)}"

    # Check Gemini API client
    if pipeline.gemini_client is not None:
        services["gemini_api"] = "healthy"
    else:
        services["gemini_api"] = "unhealthy: client is None"
        overall_healthy = False

    # Check Supabase connection
    try:
        query = pipeline.supabase_client.table("study_sets").select("id").limit(1)
        response = await asyncio.to_thread(query.execute)
        if response is not None:
            services["supabase"] = "healthy"
        else:
            services["supabase"] = "unhealthy: no response"
            overall_healthy = False
    except Exception as e:
        services["supabase"] = f"unhealthy: {str(e)}"
        overall_healthy = False

    response_data: Dict[str, Any] = {
        "status": "healthy" if overall_healthy else "unhealthy",
        "timestamp": timestamp,
        "services": services,
        "cleanup": pipeline.cleanup_stats.as_dict(),
    }

    if not overall_healthy:
        return JSONResponse(status_code=503, content=response_data)

    return response_data


@app.get("/version")
async def version_info() -> Dict[str, str]:
    """
    Get version information for the API.

    Returns:
        JSON with version number and commit hash.
    """
    return {
        "version": VERSION,
        "commit_hash": COMMIT_HASH,
    }


from studyset.routers import conversion, naming, quiz  # noqa: E402

app.include_router(conversion.router)
app.include_router(naming.router)
app.include_router(quiz.router)
