"""Service layer for AgentHub."""

from .storage import StorageService

__all__ = [
    "StorageService",
]
