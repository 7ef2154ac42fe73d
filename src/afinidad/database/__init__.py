"""
Módulo de base de datos.

Provee acceso a Supabase y repositorios de perfiles y matches.
"""

from afinidad.database.supabase_client import (
    create_supabase_client,
    get_supabase_client,
    supabase_configured,
    SupabaseClient,
)
from afinidad.database.repositories import (
    InMemoryMatchRepository,
    InMemoryProfileRepository,
    MatchRepository,
    ProfileRepository,
    SupabaseMatchRepository,
    SupabaseProfileRepository,
)

__all__ = [
    "create_supabase_client",
    "get_supabase_client",
    "supabase_configured",
    "SupabaseClient",
    "InMemoryMatchRepository",
    "InMemoryProfileRepository",
    "MatchRepository",
    "ProfileRepository",
    "SupabaseMatchRepository",
    "SupabaseProfileRepository",
]
