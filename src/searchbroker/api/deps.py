"""API dependencies — Dependency injection for FastAPI endpoints."""

from __future__ import annotations

from searchbroker.core.platform import PlatformService

# Platform service for the running app (set during application lifespan)
_service: PlatformService | None = None


def set_service(service: PlatformService | None) -> None:
    """Set the platform service instance (called during app lifespan)."""
    global _service
    _service = service


def get_service() -> PlatformService:
    """Get the platform service instance.

    Raises:
        RuntimeError: If the service is not initialized.
    """
    if _service is None:
        raise RuntimeError("SearchBroker platform service not initialized. Is the server running?")
    return _service
