"""
Errores tipados del motor de matching.

Cada error lleva un `code` estable y si el caller puede reintentar,
para que la capa de API responda distinto a cada caso.
"""

from typing import Optional


class MatchingError(Exception):
    """Error base del motor."""

    code: str = "matching_error"
    retryable: bool = False


class RateLimitedError(MatchingError):
    """Se agotó la cuota de recómputo del usuario."""

    code = "rate_limited"
    retryable = True

    def __init__(self, user_id: str, action: str, retry_after_seconds: float):
        self.user_id = user_id
        self.action = action
        self.retry_after_seconds = retry_after_seconds
        super().__init__(
            f"Cuota agotada para '{action}'. Reintentar en {retry_after_seconds:.0f}s"
        )


class RepositoryUnavailableError(MatchingError):
    """No se pudo leer el repositorio de perfiles/respuestas."""

    code = "repository_unavailable"
    retryable = True

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message)


class EnrichmentUnavailableError(MatchingError):
    """El servicio de enriquecimiento falló. Nunca llega al caller."""

    code = "enrichment_unavailable"
    retryable = True


class MatchNotFoundError(MatchingError):
    """El match no existe (o es del set de demo)."""

    code = "match_not_found"

    def __init__(self, user_id: str, match_id: str):
        self.user_id = user_id
        self.match_id = match_id
        super().__init__(f"Match no encontrado: {match_id}")
