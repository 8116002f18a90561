"""API router for version 1."""
from fastapi import APIRouter

from app.api.v1.endpoints import (
    chat,
    generation,
    sessions,
    tools,
)


api_router = APIRouter()
api_router.include_router(sessions.router)
api_router.include_router(chat.router)
api_router.include_router(tools.router)
api_router.include_router(generation.router)
