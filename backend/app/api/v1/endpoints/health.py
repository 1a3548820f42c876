"""
Health Check Endpoints

Endpoints:
- /health/live  - Basic liveness (app is running)
- /health/ready - Readiness check (database reachable, tables created)
- /health/deep  - Detailed diagnostics including storage, templates and LibreOffice
"""

from fastapi import APIRouter, HTTPException, status
from datetime import datetime
from pathlib import Path
from typing import Dict, Any
import asyncio
import time

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.core.logging_config import logger
from app.services.pdf_conversion_service import pdf_conversion_service


router = APIRouter(prefix="/health", tags=["Health Checks"])


async def check_database() -> Dict[str, Any]:
    """Check database connectivity and that the letter tables exist"""
    start = time.time()
    try:
        from app.core.database import session_scope

        async with session_scope() as session:
            await session.execute(text("SELECT 1 as health"))

            try:
                await session.execute(text("SELECT COUNT(*) FROM letter_instances"))
                tables_ok = True
            except SQLAlchemyError:
                tables_ok = False

            latency = (time.time() - start) * 1000
            return {
                "status": "healthy",
                "latency_ms": round(latency, 2),
                "connection": "ok",
                "tables_ready": tables_ok,
                "message": "Database connection successful"
            }
    except (SQLAlchemyError, OSError) as e:
        latency = (time.time() - start) * 1000
        logger.error(f"[HealthCheck] Database check failed: {e}")
        return {
            "status": "unhealthy",
            "latency_ms": round(latency, 2),
            "connection": "failed",
            "tables_ready": False,
            "error": str(e),
            "message": "Database connection failed"
        }


async def check_storage() -> Dict[str, Any]:
    """Check that the generated and temp directories are writable"""
    checks = {}
    for name, directory in (("generated", settings.GENERATED_DIR), ("temp", settings.TEMP_DIR)):
        path = Path(directory)
        try:
            path.mkdir(parents=True, exist_ok=True)
            marker = path / ".health_check"
            marker.write_bytes(b"ok")
            marker.unlink()
            checks[name] = "ok"
        except OSError as e:
            checks[name] = f"failed: {e}"

    healthy = all(value == "ok" for value in checks.values())
    return {
        "status": "healthy" if healthy else "unhealthy",
        "directories": checks,
    }


def check_templates() -> Dict[str, Any]:
    """Check the templates directory has at least one DOCX"""
    templates_dir = Path(settings.TEMPLATES_DIR)
    count = len(list(templates_dir.rglob("*.docx"))) if templates_dir.exists() else 0
    return {
        "status": "healthy" if count else "degraded",
        "templates_dir": str(templates_dir),
        "docx_count": count,
    }


def check_pdf_converter() -> Dict[str, Any]:
    """LibreOffice is optional: without it only DOCX can be produced"""
    available = pdf_conversion_service.is_available()
    return {
        "status": "healthy" if available else "degraded",
        "available": available,
        "path": pdf_conversion_service.soffice_path,
        "message": None if available else "LibreOffice not found, PDF output unavailable",
    }


@router.get("/live")
async def liveness_check():
    """
    Basic liveness check.

    Returns 200 if the application process is running.
    """
    return {
        "status": "alive",
        "timestamp": datetime.utcnow().isoformat(),
        "service": "surat-rekomendasi-engine"
    }


@router.get("/ready")
async def readiness_check():
    """Readiness check: database must be reachable with tables created"""
    db_check = await check_database()
    is_ready = db_check.get("status") == "healthy" and db_check.get("tables_ready", False)

    response = {
        "status": "ready" if is_ready else "not_ready",
        "timestamp": datetime.utcnow().isoformat(),
        "checks": {"database": db_check}
    }

    if not is_ready:
        logger.warning(f"[HealthCheck] Readiness check failed: {response}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=response
        )

    return response


@router.get("/deep")
async def deep_health_check():
    """
    Deep health check with full diagnostics.

    Use this for debugging and monitoring dashboards.
    """
    start_time = time.time()

    db_check, storage_check = await asyncio.gather(check_database(), check_storage())
    checks = {
        "database": db_check,
        "storage": storage_check,
        "templates": check_templates(),
        "pdf_converter": check_pdf_converter(),
    }

    statuses = [c.get("status", "unknown") for c in checks.values()]
    if "unhealthy" in statuses:
        overall = "unhealthy"
    elif "degraded" in statuses:
        overall = "degraded"
    else:
        overall = "healthy"

    total_time = (time.time() - start_time) * 1000

    response = {
        "status": overall,
        "timestamp": datetime.utcnow().isoformat(),
        "environment": settings.ENVIRONMENT,
        "version": settings.API_VERSION,
        "total_check_time_ms": round(total_time, 2),
        "checks": checks,
    }

    if overall == "unhealthy":
        logger.error(f"[HealthCheck] Deep check unhealthy: {response}")

    return response
