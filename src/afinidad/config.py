"""
Configuración centralizada del sistema.
Carga variables de entorno y define settings globales.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Encontrar la raíz del proyecto (donde está el .env)
# config.py -> afinidad/ -> src/ -> project root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class RateLimitRule(BaseModel):
    """Cuota de una acción: máximo de requests por ventana fija."""

    max_requests: int = Field(..., ge=1)
    window_seconds: float = Field(..., gt=0)


# Acciones con cuota propia. El resto usa "api-default".
RECOMPUTE_MATCHES_ACTION = "recompute-matches"
DEFAULT_ACTION = "api-default"


def _default_rate_limits() -> dict[str, RateLimitRule]:
    return {
        RECOMPUTE_MATCHES_ACTION: RateLimitRule(max_requests=10, window_seconds=3600),
        DEFAULT_ACTION: RateLimitRule(max_requests=60, window_seconds=60),
    }


class Settings(BaseSettings):
    """Configuración principal de la aplicación."""

    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Supabase (opcional: sin credenciales se usan repositorios en memoria)
    supabase_url: Optional[str] = Field(None, description="URL del proyecto Supabase")
    supabase_key: Optional[str] = Field(None, description="Anon key de Supabase")
    supabase_service_key: Optional[str] = Field(
        None, description="Service role key para operaciones admin"
    )

    # LLM Provider
    llm_provider: str = Field(
        "groq",
        description="Proveedor de LLM a usar: 'gemini' o 'groq'"
    )

    # Gemini
    gemini_api_key: Optional[str] = Field(None, description="API key de Google Gemini")
    gemini_model: str = Field("gemini-2.0-flash", description="Modelo de Gemini a usar")

    # Groq
    groq_api_key: Optional[str] = Field(None, description="API key de Groq")
    groq_model: str = Field(
        "llama-3.1-8b-instant",
        description="Modelo de Groq a usar (llama-3.1-8b-instant, llama-3.3-70b-versatile)"
    )

    # Enriquecimiento de conversation starters
    enrichment_enabled: bool = Field(
        True, description="Usar el LLM para mejorar los conversation starters"
    )
    enrichment_timeout_seconds: float = Field(
        4.0, gt=0, description="Timeout por llamada de enriquecimiento"
    )
    enrichment_temperature: float = Field(0.6, ge=0.0, le=1.0)

    # Cache de resultados
    match_cache_ttl_seconds: float = Field(
        1800.0, gt=0, description="TTL del MatchSet cacheado por usuario"
    )
    cache_sweep_interval_seconds: float = Field(
        60.0, gt=0, description="Cada cuánto se barren entradas vencidas"
    )

    # Rate limiting
    rate_limits: dict[str, RateLimitRule] = Field(
        default_factory=_default_rate_limits,
        description="Cuotas por acción (JSON en env: RATE_LIMITS)",
    )

    # Scoring
    question_weights: dict[str, float] = Field(
        default_factory=dict,
        description="Overrides de pesos por pregunta (JSON en env: QUESTION_WEIGHTS)",
    )
    fallback_base_score: float = Field(
        0.6, ge=0.0, le=1.0, description="Base del fallback sin respuestas estructuradas"
    )
    fallback_partial_base_score: float = Field(
        0.75, ge=0.0, le=1.0, description="Base del fallback con respuestas parciales"
    )
    fallback_jitter: float = Field(
        0.2, ge=0.0, le=1.0, description="Amplitud máxima de la perturbación determinística"
    )
    fallback_max_score: float = Field(0.95, ge=0.0, le=1.0)

    # Ranking
    max_matches: int = Field(20, ge=1, description="Máximo de matches por MatchSet")

    # Logging
    log_level: str = Field("INFO", description="Nivel de logging")


@lru_cache
def get_settings() -> Settings:
    """Obtiene la configuración cacheada."""
    return Settings()
