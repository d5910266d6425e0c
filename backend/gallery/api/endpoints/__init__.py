"""API routers."""

from . import admin, auth, experiences, health, profiles

__all__ = ["admin", "auth", "experiences", "health", "profiles"]
