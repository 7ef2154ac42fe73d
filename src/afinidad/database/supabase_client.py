"""
Cliente de Supabase.

Las credenciales son opcionales en Settings: sin ellas el motor corre
sobre repositorios en memoria y este módulo no se usa.
"""

from functools import lru_cache
from typing import Optional

import structlog
from supabase import create_client, Client

from afinidad.config import Settings, get_settings

logger = structlog.get_logger()


class SupabaseClient:
    """Wrapper mínimo: los repositorios sólo necesitan `table()`."""

    def __init__(self, client: Client):
        self._client = client

    @property
    def client(self) -> Client:
        return self._client

    def table(self, name: str):
        return self._client.table(name)


def supabase_configured(settings: Optional[Settings] = None) -> bool:
    settings = settings or get_settings()
    return bool(settings.supabase_url and (settings.supabase_service_key or settings.supabase_key))


def create_supabase_client(settings: Optional[Settings] = None) -> SupabaseClient:
    """
    Crea un cliente nuevo con las credenciales de `settings`.

    El motor lee perfiles de todos los participantes, así que se
    prefiere la service key sobre la anon key.

    Raises:
        ValueError: Si las credenciales no están configuradas
    """
    settings = settings or get_settings()
    if not supabase_configured(settings):
        raise ValueError(
            "SUPABASE_URL y SUPABASE_SERVICE_KEY (o SUPABASE_KEY) son requeridos."
        )

    key = settings.supabase_service_key or settings.supabase_key
    client = create_client(settings.supabase_url, key)
    logger.info(
        "Cliente de Supabase inicializado",
        url=settings.supabase_url,
        service_role=bool(settings.supabase_service_key),
    )
    return SupabaseClient(client)


@lru_cache
def get_supabase_client() -> SupabaseClient:
    """Cliente compartido del proceso, con la configuración global."""
    return create_supabase_client(get_settings())
