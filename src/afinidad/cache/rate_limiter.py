"""
Rate limiter de ventana fija por (usuario, acción).

Acota cuántas veces por ventana se puede recomputar el matching de un
usuario. Las lecturas de cache no pasan por acá.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional

import structlog

from afinidad.cache.sweeper import PeriodicSweeper
from afinidad.config import DEFAULT_ACTION, RateLimitRule, Settings, get_settings

logger = structlog.get_logger()


@dataclass
class WindowRecord:
    count: int
    reset_at: float


@dataclass
class RateLimitDecision:
    """Resultado de consultar/consumir la cuota."""

    allowed: bool
    remaining: int
    reset_after_seconds: float
    count: int = 0


class RateLimiterStore(ABC):
    """Storage de ventanas. `hit` debe ser atómico en stores compartidos."""

    @abstractmethod
    async def hit(self, key: str, window_seconds: float, now: float) -> WindowRecord:
        """Abre una ventana nueva si venció (o no existe) e incrementa el contador."""

    @abstractmethod
    async def get(self, key: str) -> Optional[WindowRecord]:
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        ...

    @abstractmethod
    async def delete_expired(self, now: float) -> int:
        ...


class InMemoryRateLimiterStore(RateLimiterStore):
    def __init__(self):
        self._records: dict[str, WindowRecord] = {}

    async def hit(self, key: str, window_seconds: float, now: float) -> WindowRecord:
        record = self._records.get(key)
        if record is None or now >= record.reset_at:
            record = WindowRecord(count=0, reset_at=now + window_seconds)
            self._records[key] = record
        record.count += 1
        return WindowRecord(record.count, record.reset_at)

    async def get(self, key: str) -> Optional[WindowRecord]:
        record = self._records.get(key)
        return WindowRecord(record.count, record.reset_at) if record else None

    async def delete(self, key: str) -> bool:
        return self._records.pop(key, None) is not None

    async def delete_expired(self, now: float) -> int:
        expired = [key for key, record in self._records.items() if now >= record.reset_at]
        for key in expired:
            del self._records[key]
        return len(expired)


def rate_limit_key(user_id: str, action: str) -> str:
    return f"{user_id}:{action}"


class RateLimiter:
    """
    Contador de ventana fija.

    Cuando se agota la cuota, `hit` devuelve allowed=False con los
    segundos que faltan para que se reinicie la ventana.
    """

    def __init__(
        self,
        store: Optional[RateLimiterStore] = None,
        rules: Optional[dict[str, RateLimitRule]] = None,
        sweep_interval_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        settings: Optional[Settings] = None,
    ):
        if rules is None:
            rules = (settings or get_settings()).rate_limits
        self.store = store or InMemoryRateLimiterStore()
        self.rules = dict(rules)
        self._clock = clock
        self._sweeper = PeriodicSweeper("rate-limiter", self.sweep, sweep_interval_seconds)

    def rule_for(self, action: str) -> RateLimitRule:
        rule = self.rules.get(action) or self.rules.get(DEFAULT_ACTION)
        if rule is None:
            raise ValueError(f"No hay cuota configurada para '{action}'")
        return rule

    async def hit(self, user_id: str, action: str) -> RateLimitDecision:
        """Consume una unidad de cuota (si queda)."""
        rule = self.rule_for(action)
        now = self._clock()
        record = await self.store.hit(rate_limit_key(user_id, action), rule.window_seconds, now)

        allowed = record.count <= rule.max_requests
        decision = RateLimitDecision(
            allowed=allowed,
            remaining=max(0, rule.max_requests - record.count),
            reset_after_seconds=max(0.0, record.reset_at - now),
            count=min(record.count, rule.max_requests),
        )
        if not allowed:
            logger.info(
                "Rate limit alcanzado",
                user_id=user_id,
                action=action,
                reset_after=round(decision.reset_after_seconds, 1),
            )
        return decision

    async def status(self, user_id: str, action: str) -> RateLimitDecision:
        """Estado actual sin consumir cuota."""
        rule = self.rule_for(action)
        now = self._clock()
        record = await self.store.get(rate_limit_key(user_id, action))
        if record is None or now >= record.reset_at:
            return RateLimitDecision(
                allowed=True, remaining=rule.max_requests, reset_after_seconds=0.0
            )
        count = min(record.count, rule.max_requests)
        return RateLimitDecision(
            allowed=record.count < rule.max_requests,
            remaining=max(0, rule.max_requests - record.count),
            reset_after_seconds=record.reset_at - now,
            count=count,
        )

    async def reset(self, user_id: str, action: str) -> bool:
        """Borra la ventana de un usuario (tests u overrides de admin)."""
        return await self.store.delete(rate_limit_key(user_id, action))

    async def sweep(self) -> int:
        return await self.store.delete_expired(self._clock())

    def start(self) -> None:
        self._sweeper.start()

    async def stop(self) -> None:
        await self._sweeper.stop()
