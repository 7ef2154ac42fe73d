"""
Script para calcular los matches de un usuario.

Lee perfiles y respuestas de Supabase, o de un fixture JSON local,
y muestra el MatchSet resultante.

Formato del fixture:
    {
        "profiles": [{"id": "...", "name": "...", "questionnaire_completed": true, ...}],
        "responses": {"<user_id>": {"industry": "Technology", "rechargeActivities": ["Hiking"]}}
    }

Uso:
    python -m afinidad.scripts.run_matching --user-id <id>
    python -m afinidad.scripts.run_matching --user-id <id> --fixture data.json
    python -m afinidad.scripts.run_matching --user-id <id> --force-refresh
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

import structlog

from afinidad.analysis import build_enrichment_service
from afinidad.config import get_settings
from afinidad.database import (
    InMemoryMatchRepository,
    InMemoryProfileRepository,
    supabase_configured,
)
from afinidad.errors import MatchingError
from afinidad.matching import MatchingEngine
from afinidad.models import Profile, ResponseSet

# Configurar logging
settings = get_settings()
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(message)s",
    stream=sys.stderr,
    force=True,
)

structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


def load_fixture(path: Path) -> InMemoryProfileRepository:
    """Arma un repositorio en memoria desde un archivo JSON."""
    data = json.loads(path.read_text(encoding="utf-8"))

    profiles = [Profile.model_validate(p) for p in data.get("profiles", [])]
    responses = [
        ResponseSet(user_id=user_id, answers=answers)
        for user_id, answers in (data.get("responses") or {}).items()
    ]
    logger.info("Fixture cargado", path=str(path), profiles=len(profiles))
    return InMemoryProfileRepository(profiles, responses)


def build_engine(fixture: Optional[Path]) -> MatchingEngine:
    if fixture is not None:
        return MatchingEngine(
            profiles=load_fixture(fixture),
            matches=InMemoryMatchRepository(),
            settings=settings,
            enrichment=build_enrichment_service(settings),
        )

    if not supabase_configured(settings):
        raise ValueError("Sin fixture, se requieren SUPABASE_URL y SUPABASE_KEY")
    return MatchingEngine.from_settings(settings)


async def run_matching(user_id: str, fixture: Optional[Path], force_refresh: bool) -> dict:
    """Calcula y devuelve los matches visibles del usuario como dict."""
    async with build_engine(fixture) as engine:
        result = await engine.get_matches(user_id, force_refresh=force_refresh)

    return {
        "from_cache": result.from_cache,
        "match_set": result.match_set.model_dump(mode="json"),
    }


def main():
    """Entry point del script."""
    parser = argparse.ArgumentParser(description="Calcular matches de un usuario")
    parser.add_argument("--user-id", required=True, help="ID del usuario")
    parser.add_argument("--fixture", type=Path, help="JSON con perfiles y respuestas")
    parser.add_argument(
        "--force-refresh",
        action="store_true",
        help="Ignorar la cache y recomputar",
    )
    args = parser.parse_args()

    logger.info("Calculando matches...", user_id=args.user_id)

    try:
        output = asyncio.run(run_matching(args.user_id, args.fixture, args.force_refresh))
    except KeyboardInterrupt:
        logger.info("Matching interrumpido por usuario")
        sys.exit(130)
    except MatchingError as e:
        logger.error("Error de matching", code=e.code, retryable=e.retryable, error=str(e))
        sys.exit(2)
    except Exception as e:
        logger.error("Error fatal en matching", error=str(e))
        sys.exit(1)

    print(json.dumps(output, indent=2, ensure_ascii=False))

    match_set = output["match_set"]
    logger.info(
        "Matching completado",
        matches=len(match_set["matches"]),
        placeholder=match_set["is_placeholder"],
        eligible=match_set["eligible"],
    )


if __name__ == "__main__":
    main()
