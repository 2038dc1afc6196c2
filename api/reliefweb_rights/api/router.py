from fastapi import APIRouter

from reliefweb_rights.api.routes import access, admin, health, moderation, posting_rights

api_router = APIRouter()
api_router.include_router(health.router, tags=["health"])
api_router.include_router(posting_rights.router, prefix="/posting-rights", tags=["posting-rights"])
api_router.include_router(access.router, prefix="/access", tags=["access"])
api_router.include_router(moderation.router, prefix="/moderation", tags=["moderation"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
