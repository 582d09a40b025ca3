from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import replace

from .config import Settings
from .errors import MonitorError, UnsupportedMonitorKind
from .monitor import FillSource, MonitorLoop, Notifier, now_ms
from .observation_log import ObservationLog
from .types import MonitorHealth, MonitorKind, MonitorSpec

logger = logging.getLogger(__name__)


class MonitorRegistry:
    """Owns monitor definitions and the lifecycle of their polling tasks.

    Each started loop gets its own fill source from ``source_factory``; the
    source is closed when the loop is stopped.
    """

    def __init__(
        self,
        source_factory: Callable[[], FillSource],
        notifier: Notifier,
        log: ObservationLog,
        settings: Settings,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.source_factory = source_factory
        self.notifier = notifier
        self.log = log
        self.settings = settings
        self.clock = clock
        self._specs: dict[tuple[str, MonitorKind], MonitorSpec] = {}
        self._loops: dict[tuple[str, MonitorKind], MonitorLoop] = {}
        self._tasks: dict[tuple[str, MonitorKind], asyncio.Task[None]] = {}
        self._keys: list[str] = []

    @property
    def keys(self) -> list[str]:
        return list(self._keys)

    def set_keys(self, keys: Sequence[str]) -> None:
        # Running loops keep the keys they were started with.
        self._keys = list(keys)

    def monitors(self) -> list[MonitorSpec]:
        return list(self._specs.values())

    def add(self, spec: MonitorSpec) -> MonitorSpec:
        if spec.kind is not MonitorKind.TRANSACTIONS:
            raise UnsupportedMonitorKind(
                "Perpetuals monitoring is not supported yet", address=spec.address
            )
        if spec.key in self._specs:
            raise MonitorError("This address is already being monitored", address=spec.address)
        stored = replace(spec, active=False)
        self._specs[spec.key] = stored
        return stored

    async def remove(self, address: str, kind: MonitorKind = MonitorKind.TRANSACTIONS) -> None:
        key = self._key(address, kind)
        await self.stop(address, kind)
        self._specs.pop(key, None)

    def start(self, address: str, kind: MonitorKind = MonitorKind.TRANSACTIONS) -> MonitorLoop:
        key = self._key(address, kind)
        spec = self._specs.get(key)
        if spec is None:
            raise MonitorError("Unknown monitor", address=address, kind=kind.value)
        running = self._tasks.get(key)
        if running is not None and not running.done():
            return self._loops[key]

        loop = MonitorLoop(
            spec,
            self.source_factory(),
            self.notifier,
            self.log,
            self._keys,
            poll_interval=self.settings.poll_interval_seconds,
            backfill_ms=self.settings.backfill_window_ms,
            max_backoff=self.settings.max_backoff_seconds,
            degraded_after=self.settings.degraded_after_failures,
            clock=self.clock,
        )
        task = asyncio.create_task(loop.run(), name=f"monitor-{spec.address}")
        task.add_done_callback(self._on_done)
        self._loops[key] = loop
        self._tasks[key] = task
        self._specs[key] = replace(spec, active=True)
        logger.info("Started monitoring %s for %s", kind.value, spec.address)
        return loop

    async def stop(
        self,
        address: str,
        kind: MonitorKind = MonitorKind.TRANSACTIONS,
        timeout: float = 5.0,
    ) -> None:
        key = self._key(address, kind)
        loop = self._loops.pop(key, None)
        task = self._tasks.pop(key, None)
        spec = self._specs.get(key)
        if spec is not None:
            self._specs[key] = replace(spec, active=False)
        if loop is None or task is None:
            return

        loop.stop()
        # An in-flight fetch may still be running; cancel it if it overruns.
        done, _ = await asyncio.wait({task}, timeout=timeout)
        if not done:
            task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        await loop.source.close()

    async def shutdown(self) -> None:
        for address, kind in list(self._loops):
            await self.stop(address, kind)

    def health(self) -> dict[str, MonitorHealth]:
        return {loop.address: loop.health for loop in self._loops.values()}

    @staticmethod
    def _key(address: str, kind: MonitorKind) -> tuple[str, MonitorKind]:
        return (address.strip().lower(), kind)

    @staticmethod
    def _on_done(task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Monitor task %s crashed: %s", task.get_name(), exc)
