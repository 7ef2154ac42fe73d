"""Tarea periódica de limpieza de entradas vencidas."""

import asyncio
from typing import Awaitable, Callable, Optional

import structlog

logger = structlog.get_logger()


class PeriodicSweeper:
    """Corre `sweep()` cada `interval_seconds` en una task de asyncio."""

    def __init__(
        self,
        name: str,
        sweep: Callable[[], Awaitable[int]],
        interval_seconds: float,
    ):
        self.name = name
        self._sweep = sweep
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Arranca la task. Requiere un event loop corriendo."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name=f"sweeper:{self.name}")
        logger.debug("Sweeper iniciado", sweeper=self.name, interval=self.interval_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.debug("Sweeper detenido", sweeper=self.name)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                removed = await self._sweep()
            except Exception as e:
                logger.error("Error barriendo entradas vencidas", sweeper=self.name, error=str(e))
                continue
            if removed:
                logger.debug("Entradas vencidas eliminadas", sweeper=self.name, removed=removed)
