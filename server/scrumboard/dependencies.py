"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

from scrumboard.config import Settings, get_settings
from scrumboard.provider import BackendClient, InMemoryBackend, SupabaseBackend

_backend: BackendClient | None = None


def build_backend(settings: Settings) -> BackendClient:
    """Construct the provider adapter described by ``settings``."""
    if settings.use_in_memory_backends:
        return InMemoryBackend(auto_confirm=settings.in_memory_auto_confirm)
    return SupabaseBackend(
        url=settings.supabase_url,
        key=settings.supabase_key,
        admin_key=settings.supabase_admin_key,
    )


def get_backend() -> BackendClient:
    """
    Return a singleton provider adapter. Construction is cheap; the Supabase
    clients themselves are only created on first use.
    """
    global _backend
    if _backend:
        return _backend

    _backend = build_backend(get_settings())
    return _backend
