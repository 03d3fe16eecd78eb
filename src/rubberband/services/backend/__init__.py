"""Backend selection: built-in SQL service or a Supabase project."""

from rubberband.services.backend.base import DataService, IdentityService


def build_backend(settings, session_factory=None) -> IdentityService:
    """Return the backend configured by ``settings``.

    The returned object implements both ``IdentityService`` and ``DataService``.
    """
    if settings.uses_supabase:
        from rubberband.services.backend.supabase import SupabaseBackend

        return SupabaseBackend(
            settings.supabase_url,
            settings.supabase_anon_key,
            timeout=settings.backend_timeout_seconds,
        )

    from rubberband.services.backend.sql import SqlBackend

    if session_factory is None:
        raise ValueError("The SQL backend needs a session factory")
    return SqlBackend(
        session_factory,
        service_role_key=settings.supabase_service_role_key,
        emulate_triggers=settings.emulate_triggers,
    )


__all__ = ["DataService", "IdentityService", "build_backend"]
