from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from .config import MonitorConfig, Settings
from .errors import MonitorError
from .hyperliquid_client import HyperliquidClient
from .monitor import FillSource
from .observation_log import ObservationLog
from .registry import MonitorRegistry
from .serverchan import ServerChanNotifier

logger = logging.getLogger(__name__)


class MonitorService:
    def __init__(
        self,
        settings: Settings,
        config: MonitorConfig,
        source_factory: Callable[[], FillSource] | None = None,
        notifier: ServerChanNotifier | None = None,
    ) -> None:
        self.settings = settings
        self.config = config
        self.source_factory = source_factory or self._hyperliquid_client
        self.notifier = notifier or ServerChanNotifier(timeout=settings.http_timeout_seconds)
        self.log = ObservationLog()
        self.registry = MonitorRegistry(self.source_factory, self.notifier, self.log, settings)

    def _hyperliquid_client(self) -> HyperliquidClient:
        return HyperliquidClient(
            self.settings.hl_api_url, timeout=self.settings.http_timeout_seconds
        )

    def start_monitors(self) -> int:
        self.registry.set_keys(self.config.sendkeys)
        started = 0
        for spec in self.config.monitors:
            try:
                self.registry.add(spec)
            except MonitorError as exc:
                logger.warning("Skipping monitor %s: %s", spec.address, exc)
                continue
            if spec.active:
                self.registry.start(spec.address, spec.kind)
                started += 1
        return started

    async def run(self) -> None:
        try:
            started = self.start_monitors()
            if not started:
                logger.warning("No active monitors configured in %s", self.settings.monitor_config_path)
            await self._health_loop()
        finally:
            await self.registry.shutdown()
            await self.notifier.close()

    async def health_line(self) -> str:
        health = self.registry.health()
        records = await self.log.count()
        sent = sum(h.notifications_sent for h in health.values())
        failed = sum(h.notifications_failed for h in health.values())
        degraded = sorted(addr for addr, h in health.items() if h.degraded)
        return (
            f"health monitors={len(health)} records={records} "
            f"notifications_sent={sent} notifications_failed={failed} "
            f"degraded={','.join(degraded) or '-'}"
        )

    async def _health_loop(self) -> None:
        while True:
            await asyncio.sleep(self.settings.health_log_interval_seconds)
            logger.info("%s", await self.health_line())
