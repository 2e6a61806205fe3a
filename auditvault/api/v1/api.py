"""
V1 API router aggregation.

All versioned endpoint routers are mounted here under a common prefix.
The top-level ``main.py`` mounts this router at ``/api/v1``.
"""

from fastapi import APIRouter

from auditvault.api.v1.endpoints import auth, chat, documents, funds, users

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["Auth"])
api_router.include_router(users.router, prefix="/users", tags=["Users"])
api_router.include_router(funds.router, prefix="/funds", tags=["Funds"])
api_router.include_router(documents.router, prefix="/documents", tags=["Documents"])
api_router.include_router(chat.router, prefix="/chat", tags=["Chat"])
