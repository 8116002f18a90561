"""API endpoint modules for v1."""

from app.api.v1.endpoints import (
    chat,
    generation,
    sessions,
    tools,
)

__all__ = [
    "chat",
    "generation",
    "sessions",
    "tools",
]
