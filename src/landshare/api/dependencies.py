"""Shared FastAPI dependency providers."""

from __future__ import annotations

from functools import lru_cache

from landshare.services.factories import ServiceBundle, build_services
from landshare.settings import Settings, get_settings


@lru_cache(maxsize=1)
def _shared_services() -> ServiceBundle:
    return build_services()


def get_services() -> ServiceBundle:
    """Dependency provider returning the process-wide service bundle."""

    return _shared_services()


def get_app_settings() -> Settings:
    """Dependency provider for the active settings.

    Wraps :func:`get_settings` so its ``env`` argument is never exposed as a
    query parameter.
    """

    return get_settings()


def reset_services() -> None:
    """Drop the cached bundle (used in tests and after settings reloads)."""

    _shared_services.cache_clear()


__all__ = ["get_app_settings", "get_services", "reset_services"]
