"""Moderation package integration helpers exposed to the application."""

from campusmod.moderation.api import router
from campusmod.moderation.domain.container import configure, configure_postgres

__all__ = ["router", "configure", "configure_postgres"]
