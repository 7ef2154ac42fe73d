"""
Abstracción de proveedores LLM.

Permite switchear entre proveedores (Groq, Gemini) sin cambiar
el generador de conversation starters.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import structlog

from afinidad.config import Settings, get_settings

logger = structlog.get_logger()


@dataclass
class LLMResponse:
    """Texto generado y de dónde salió."""
    text: str
    model: str
    provider: str


class BaseLLMProvider(ABC):
    """Clase base para proveedores de LLM."""

    provider_name: str = "base"

    @abstractmethod
    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.2,
        max_tokens: int = 1024,
    ) -> LLMResponse:
        """
        Genera una respuesta del LLM.

        Args:
            system_prompt: Instrucciones del sistema
            user_prompt: Prompt del usuario
            temperature: Temperatura de generación (0.0-1.0)
            max_tokens: Máximo de tokens a generar
        """


class GroqProvider(BaseLLMProvider):
    """
    Proveedor de Groq.

    Para openers cortos alcanza con llama-3.1-8b-instant: la latencia
    importa más que la calidad marginal.
    """

    provider_name = "groq"

    def __init__(self, settings: Settings):
        from groq import AsyncGroq

        if not settings.groq_api_key:
            raise ValueError("GROQ_API_KEY no configurada")

        self.model = settings.groq_model
        # Sin reintentos del SDK: el timeout por llamada lo maneja el generador
        self.client = AsyncGroq(api_key=settings.groq_api_key, max_retries=0)
        logger.info("GroqProvider inicializado", model=self.model)

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.2,
        max_tokens: int = 1024,
    ) -> LLMResponse:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=temperature,
            max_tokens=max_tokens,
        )
        text = response.choices[0].message.content or ""
        return LLMResponse(text=text.strip(), model=self.model, provider=self.provider_name)


class GeminiProvider(BaseLLMProvider):
    """Proveedor de Google Gemini."""

    provider_name = "gemini"

    def __init__(self, settings: Settings):
        from google import genai

        if not settings.gemini_api_key:
            raise ValueError("GEMINI_API_KEY no configurada")

        self.model = settings.gemini_model
        self.client = genai.Client(api_key=settings.gemini_api_key)
        logger.info("GeminiProvider inicializado", model=self.model)

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.2,
        max_tokens: int = 1024,
    ) -> LLMResponse:
        from google.genai import types

        response = await self.client.aio.models.generate_content(
            model=self.model,
            contents=user_prompt,
            config=types.GenerateContentConfig(
                system_instruction=system_prompt,
                temperature=temperature,
                max_output_tokens=max_tokens,
            ),
        )
        return LLMResponse(
            text=(response.text or "").strip(),
            model=self.model,
            provider=self.provider_name,
        )


_PROVIDERS = {
    "groq": GroqProvider,
    "gemini": GeminiProvider,
}


def provider_configured(settings: Settings) -> bool:
    """Indica si hay API key para el proveedor elegido."""
    provider = settings.llm_provider.lower()
    if provider == "groq":
        return bool(settings.groq_api_key)
    if provider == "gemini":
        return bool(settings.gemini_api_key)
    return False


def get_llm_provider(settings: Optional[Settings] = None) -> BaseLLMProvider:
    """Factory del proveedor configurado en settings.llm_provider ('groq' o 'gemini')."""
    settings = settings or get_settings()
    provider_cls = _PROVIDERS.get(settings.llm_provider.lower())
    if provider_cls is None:
        raise ValueError(
            f"Proveedor LLM no soportado: {settings.llm_provider}. Usar 'gemini' o 'groq'"
        )
    return provider_cls(settings)
