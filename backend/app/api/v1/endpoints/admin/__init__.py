"""
Admin API endpoints for document maintenance.
"""
from fastapi import APIRouter

from app.api.v1.endpoints.admin import documents

admin_router = APIRouter(prefix="/admin", tags=["Admin"])

admin_router.include_router(documents.router, prefix="/documents", tags=["Admin Documents"])
