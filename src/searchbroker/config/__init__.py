"""Configuration layer."""

from searchbroker.config.settings import Settings

__all__ = ["Settings"]
