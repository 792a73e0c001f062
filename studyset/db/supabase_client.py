"""
Supabase client construction.

The client is built once per process in the application lifespan and passed
to the object stager and study set queries. When SUPABASE_SERVICE_ROLE_KEY is
set, the client uses it so server-side storage writes bypass RLS; otherwise it
falls back to the anon key.
"""

from typing import Optional

from supabase import Client, create_client

from studyset.config import Settings, get_settings


def create_supabase_client(settings: Optional[Settings] = None) -> Client:
    """
    Create a Supabase client from application settings.

    Prefers ``supabase_service_role_key`` (bypasses RLS) when available,
    otherwise falls back to ``supabase_key`` (anon key).

    Returns:
        Client: Supabase client instance

    Raises:
        ValueError: If SUPABASE_URL or SUPABASE_KEY are missing or invalid
    """
    settings = settings or get_settings()
    key = settings.supabase_service_role_key or settings.supabase_key
    try:
        return create_client(settings.supabase_url, key)
    except Exception as e:
        raise ValueError(f"Failed to create Supabase client: {str(e)}") from e
