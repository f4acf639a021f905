"""
Main FastAPI application for the PRD Validator backend.
Handles CORS, request logging middleware, lifespan events, error handlers and router registration.
"""
import logging
import os
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import httpx
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from prd_validator.config import settings
from prd_validator.database import close_db, init_db
from prd_validator.errors import PrdValidatorError
from prd_validator.routers import documents, health, projects, validation

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Startup / shutdown helpers
# ---------------------------------------------------------------------------

async def _check_database() -> None:
    """Create tables and verify the connection. Raises on failure."""
    try:
        await init_db()
        logger.info("✓ Database connection OK")
    except Exception as exc:
        logger.error("✗ Database connection failed: %s", exc)
        raise


async def _check_ollama() -> bool:
    """
    Verify Ollama is reachable and that the analysis model is pulled.
    Never raises; analysis endpoints degrade to per-dimension failures.
    """
    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            resp = await client.get(f"{settings.OLLAMA_BASE_URL}/api/tags")
    except httpx.HTTPError as exc:
        logger.error("✗ Ollama unreachable (%s) - AI analysis will fail", exc)
        return False

    if resp.status_code != 200:
        logger.warning("⚠ Ollama responded with status %d", resp.status_code)
        return False

    available = [m["name"] for m in resp.json().get("models", [])]
    logger.info("✓ Ollama reachable - available models: %s", available)

    # Partial match so "qwen2.5:latest" still counts for "qwen2.5:3b"
    llm_model = settings.OLLAMA_LLM_MODEL
    if any(m == llm_model or m.startswith(llm_model.split(":")[0]) for m in available):
        logger.info("  ✓ LLM model '%s' is available", llm_model)
    else:
        logger.warning(
            "  ⚠ LLM model '%s' not found - run: ollama pull %s", llm_model, llm_model
        )
    return True


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown event handler."""
    logger.info("Starting PRD Validator backend …")

    await _check_database()

    if not await _check_ollama():
        logger.warning(
            "Ollama is not running. Start it with: ollama serve\n"
            "  Local parsing, validation and quick scores keep working."
        )

    os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
    logger.info("✓ Upload directory: %s", os.path.abspath(settings.UPLOAD_DIR))
    logger.info("PRD Validator ready on http://%s:%d", settings.HOST, settings.PORT)

    yield

    logger.info("Shutting down PRD Validator backend …")
    await close_db()


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="PRD Validator API",
    description=(
        "Parse Product Requirements Documents, check their structure, score "
        "them locally and with an LLM, and keep them organised in projects.\n\n"
        "Key endpoints:\n"
        "- `POST /api/documents/upload` - parse a PRD file\n"
        "- `POST /api/documents/validate-structure` - section scoring\n"
        "- `POST /api/validation/quick-score` - local score\n"
        "- `POST /api/validation/analyze` - AI analysis\n"
        "- `POST /api/projects/{id}/documents` - store an analysed PRD\n"
    ),
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Request / response logging middleware
# ---------------------------------------------------------------------------

@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Log every request with method, path, status code, and elapsed time.
    Attaches an ``X-Process-Time`` header (milliseconds) to every response.
    """
    t0 = time.monotonic()
    response = await call_next(request)
    elapsed_ms = round((time.monotonic() - t0) * 1000, 2)

    if request.url.path not in ("/api/health/", "/"):
        logger.info(
            "%s %s → %d  (%.2f ms)",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )

    response.headers["X-Process-Time"] = f"{elapsed_ms}ms"
    return response


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

@app.exception_handler(PrdValidatorError)
async def domain_exception_handler(request: Request, exc: PrdValidatorError):
    """Map domain errors to their HTTP status with a machine-readable kind."""
    logger.warning("%s on %s %s: %s", exc.kind, request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": exc.kind},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Return a structured JSON error for any unhandled exception."""
    logger.error(
        "Unhandled exception on %s %s: %s",
        request.method,
        request.url.path,
        exc,
        exc_info=True,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "Internal server error",
            "error": "internal_error",
            "path": str(request.url.path),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

app.include_router(health.router,     prefix="/api/health",     tags=["Health"])
app.include_router(documents.router,  prefix="/api/documents",  tags=["Documents"])
app.include_router(validation.router, prefix="/api/validation", tags=["Validation"])
app.include_router(projects.router,   prefix="/api/projects",   tags=["Projects"])


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------

@app.get("/", tags=["Root"], include_in_schema=False)
async def root():
    """API root - returns basic service info."""
    return {
        "name": "PRD Validator API",
        "version": "1.0.0",
        "description": "PRD parsing, validation and scoring backend",
        "docs": "/docs",
        "health": "/api/health/",
        "endpoints": {
            "documents": "/api/documents",
            "validation": "/api/validation",
            "projects": "/api/projects",
        },
    }


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "prd_validator.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=True,
        log_level="info",
    )
