"""
Cache de resultados de matching.

Clave: ID del usuario. Valor: MatchSet completo (incluye los passed;
el filtrado se hace al leer). Las entradas vencidas se rechazan al
leer y además se barren periódicamente.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional

import structlog

from afinidad.cache.sweeper import PeriodicSweeper
from afinidad.models import MatchSet

logger = structlog.get_logger()


@dataclass
class CacheEntry:
    value: MatchSet
    expires_at: float
    created_at: float

    def expired(self, now: float) -> bool:
        return now >= self.expires_at


class CacheStore(ABC):
    """Storage de la cache. Puede ser local al proceso o compartido."""

    @abstractmethod
    async def get(self, key: str) -> Optional[CacheEntry]:
        ...

    @abstractmethod
    async def set(self, key: str, entry: CacheEntry) -> None:
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        ...

    @abstractmethod
    async def delete_expired(self, now: float) -> int:
        """Elimina las entradas vencidas y devuelve cuántas borró."""

    @abstractmethod
    async def size(self) -> int:
        ...


class InMemoryCacheStore(CacheStore):
    """Store en memoria del proceso. Guarda copias para aislar a los callers."""

    def __init__(self):
        self._entries: dict[str, CacheEntry] = {}

    async def get(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        return CacheEntry(entry.value.model_copy(deep=True), entry.expires_at, entry.created_at)

    async def set(self, key: str, entry: CacheEntry) -> None:
        self._entries[key] = CacheEntry(
            entry.value.model_copy(deep=True), entry.expires_at, entry.created_at
        )

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def delete_expired(self, now: float) -> int:
        expired = [key for key, entry in self._entries.items() if entry.expired(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    async def size(self) -> int:
        return len(self._entries)


def cache_key(user_id: str) -> str:
    return f"matches:{user_id}"


class ResultCache:
    """
    Cache de MatchSet por usuario con TTL.

    Operaciones: get, set, invalidate, update (mantiene el TTL restante)
    y sweep. `start()`/`stop()` manejan el barrido periódico.
    """

    def __init__(
        self,
        store: Optional[CacheStore] = None,
        ttl_seconds: float = 1800.0,
        sweep_interval_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store or InMemoryCacheStore()
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._sweeper = PeriodicSweeper("result-cache", self.sweep, sweep_interval_seconds)

    async def get(self, user_id: str) -> Optional[MatchSet]:
        key = cache_key(user_id)
        entry = await self.store.get(key)
        if entry is None:
            return None
        if entry.expired(self._clock()):
            await self.store.delete(key)
            logger.debug("Entrada de cache vencida", user_id=user_id)
            return None
        return entry.value

    async def set(
        self, user_id: str, match_set: MatchSet, ttl: Optional[float] = None
    ) -> None:
        now = self._clock()
        ttl = self.ttl_seconds if ttl is None else ttl
        await self.store.set(
            cache_key(user_id),
            CacheEntry(value=match_set, expires_at=now + ttl, created_at=now),
        )

    async def invalidate(self, user_id: str) -> bool:
        removed = await self.store.delete(cache_key(user_id))
        if removed:
            logger.debug("Cache invalidada", user_id=user_id)
        return removed

    async def update(
        self, user_id: str, fn: Callable[[MatchSet], MatchSet]
    ) -> Optional[MatchSet]:
        """
        Reescribe la entrada de un usuario sin extender su TTL.

        Returns:
            El MatchSet actualizado, o None si no había entrada vigente
        """
        key = cache_key(user_id)
        entry = await self.store.get(key)
        if entry is None or entry.expired(self._clock()):
            return None

        updated = fn(entry.value)
        await self.store.set(key, CacheEntry(updated, entry.expires_at, entry.created_at))
        return updated

    async def sweep(self) -> int:
        return await self.store.delete_expired(self._clock())

    def start(self) -> None:
        self._sweeper.start()

    async def stop(self) -> None:
        await self._sweeper.stop()
