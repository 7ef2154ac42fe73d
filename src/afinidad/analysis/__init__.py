"""
Módulo de análisis con IA.

Provee la capa de enriquecimiento de conversation starters usando
LLM (Groq/Gemini).
"""

from afinidad.analysis.llm_providers import (
    get_llm_provider,
    provider_configured,
    BaseLLMProvider,
    GeminiProvider,
    GroqProvider,
    LLMResponse,
)
from afinidad.analysis.opener_generator import (
    EnrichmentService,
    LLMOpenerGenerator,
    OpenerContext,
    build_enrichment_service,
    clean_openers,
)

__all__ = [
    # Enriquecimiento
    "EnrichmentService",
    "LLMOpenerGenerator",
    "OpenerContext",
    "build_enrichment_service",
    "clean_openers",
    # Proveedores LLM
    "get_llm_provider",
    "provider_configured",
    "BaseLLMProvider",
    "GeminiProvider",
    "GroqProvider",
    "LLMResponse",
]
