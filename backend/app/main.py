from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from pathlib import Path

from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.core.database import init_db, close_db, session_scope
from app.core.exceptions import LetterServiceError, error_response, status_code_for
from app.core.logging_config import logger
from app.core.middleware import RequestLoggingMiddleware, RequestSizeLimitMiddleware
from app.api.v1.router import api_router
from app.config.template_registry import TemplateRegistry
from app.services.document_cleanup_service import document_cleanup_service
import app.models  # Import models so metadata knows about them


def ensure_directories():
    """Create the upload, generated, temp and templates directories"""
    for directory in (settings.UPLOAD_DIR, settings.GENERATED_DIR, settings.TEMP_DIR, settings.TEMPLATES_DIR):
        Path(directory).mkdir(parents=True, exist_ok=True)
    logger.info(f"[Startup] Storage root: {Path(settings.STORAGE_ROOT).resolve()}")


async def sync_template_registry():
    """Load templates.yml into document_templates"""
    try:
        registry = TemplateRegistry()
        async with session_scope() as session:
            await registry.sync(session)
    except (FileNotFoundError, ValueError, SQLAlchemyError) as e:
        logger.error(f"[Startup] Template registry sync failed: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown"""
    # Startup
    logger.info("=" * 60)
    logger.info(f"Starting {settings.APP_NAME}...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"API Version: {settings.API_VERSION}")
    logger.info("=" * 60)

    ensure_directories()
    await init_db()
    await sync_template_registry()

    removed = document_cleanup_service.cleanup_temp_files()
    logger.info(f"Cleaned up {removed} stale temp file(s)")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.APP_NAME}...")
    await close_db()


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description="Generation, numbering and verification of scholarship recommendation letters",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
    redirect_slashes=False  # Prevent 307 redirects that break CORS
)

# Add middleware (order matters - last added runs first)
# 1. Request logging (runs first for all requests)
app.add_middleware(RequestLoggingMiddleware)

# 2. Request size limit (10MB default)
app.add_middleware(RequestSizeLimitMiddleware, max_size=10 * 1024 * 1024)

# 3. CORS - Origins from CORS_ORIGINS_STR in .env
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-Request-ID", "X-Response-Time", "X-Generation-Log-Id"],
)


# Exception handlers
@app.exception_handler(LetterServiceError)
async def letter_service_exception_handler(request: Request, exc: LetterServiceError):
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error(f"[{exc.code}] {exc.message}", exc_info=True)
    else:
        logger.warning(f"[{exc.code}] {exc.message}")
    return JSONResponse(status_code=status_code, content=error_response(exc))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.log_error_with_context(exc, context=f"{request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": {
                "code": "INTERNAL_ERROR",
                "message": str(exc) if settings.DEBUG else "An error occurred",
                "details": {},
            },
        }
    )


# Root endpoint
@app.get("/", tags=["Root"])
async def root():
    """Root endpoint"""
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/v1/health"
    }


# Include API router
app.include_router(api_router, prefix=f"/api/{settings.API_VERSION}")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.SERVER_HOST,
        port=settings.SERVER_PORT,
        reload=settings.DEBUG
    )
