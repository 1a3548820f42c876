from fastapi import APIRouter
from app.api.v1.endpoints import documents, health, letter_numbering, templates, verification
from app.api.v1.endpoints.admin import admin_router

api_router = APIRouter()

# Deep health check endpoints
api_router.include_router(health.router)


# Simple health check endpoint for load balancers
@api_router.get("/health", tags=["Health"])
async def health_check():
    """Simple health check endpoint"""
    return {"status": "healthy", "service": "surat-rekomendasi-engine"}


api_router.include_router(templates.router, prefix="/templates", tags=["Templates"])
api_router.include_router(documents.router, prefix="/documents", tags=["Documents"])
api_router.include_router(letter_numbering.router, prefix="/letter-numbering", tags=["Letter Numbering"])
api_router.include_router(verification.router, prefix="/public/verification", tags=["Verification"])

# Admin endpoints
api_router.include_router(admin_router)
