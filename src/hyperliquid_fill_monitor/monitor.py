from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Sequence
from typing import Protocol

from .dedupe import FillDeduper
from .errors import FetchError, UnsupportedMonitorKind
from .formatting import format_body, format_time, format_title, short_address
from .observation_log import ObservationLog
from .types import (
    Fill,
    MonitorHealth,
    MonitorKind,
    MonitorSpec,
    MonitorState,
    NotifyResult,
    TransactionRecord,
)

logger = logging.getLogger(__name__)


class FillSource(Protocol):
    async def fetch_fills(self, address: str) -> list[Fill]: ...

    async def close(self) -> None: ...


class Notifier(Protocol):
    async def notify(self, title: str, body: str, keys: Sequence[str]) -> NotifyResult: ...


def now_ms() -> int:
    return int(time.time() * 1000)


class MonitorLoop:
    """Polls one address for fills and alerts on the ones it has not seen.

    Runs Initializing -> Polling -> Stopped. ``stop()`` is honoured at the top
    of every tick and before every fetch; fetch failures never end the loop.
    """

    def __init__(
        self,
        spec: MonitorSpec,
        source: FillSource,
        notifier: Notifier,
        log: ObservationLog,
        keys: Sequence[str],
        *,
        poll_interval: float = 10.0,
        backfill_ms: int = 3_600_000,
        max_backoff: float = 60.0,
        degraded_after: int = 6,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        if spec.kind is not MonitorKind.TRANSACTIONS:
            raise UnsupportedMonitorKind(
                "Only transaction monitors are supported", kind=spec.kind.value
            )
        self.spec = spec
        self.address = spec.address
        self.source = source
        self.notifier = notifier
        self.log = log
        self.keys = list(keys)
        self.poll_interval = poll_interval
        self.backfill_ms = backfill_ms
        self.max_backoff = max(max_backoff, poll_interval)
        self.degraded_after = degraded_after
        self.clock = clock
        self.health = MonitorHealth()
        self.deduper: FillDeduper | None = None
        self._stop = asyncio.Event()

    @property
    def state(self) -> MonitorState:
        return self.health.state

    @property
    def stopping(self) -> bool:
        return self._stop.is_set()

    def stop(self) -> None:
        self._stop.set()

    async def run(self) -> None:
        try:
            await self.initialize()
            if self.stopping:
                return
            self.health.state = MonitorState.POLLING
            while not self.stopping:
                if await self._wait(self.next_delay()):
                    break
                await self.poll_once()
        finally:
            self.health.state = MonitorState.STOPPED
            logger.info("Stopped monitoring %s", short_address(self.address))

    async def initialize(self) -> None:
        start = self.clock()
        self.deduper = FillDeduper(start)
        logger.info(
            "Starting %s monitor for %s at %s",
            self.spec.kind.value,
            self.address,
            format_time(start),
        )
        if self.stopping:
            return

        fills = await self._fetch()
        if fills is None:
            logger.warning("Failed to fetch initial fills for %s", short_address(self.address))
            return

        recent = self.deduper.bootstrap(fills, self.backfill_ms)
        await self.log.extend(TransactionRecord.from_fill(f, self.address) for f in recent)
        logger.info(
            "Initialized %s with %d existing fills (%d recent)",
            short_address(self.address),
            len(self.deduper),
            len(recent),
        )

    async def poll_once(self) -> list[TransactionRecord]:
        if self.deduper is None:
            raise RuntimeError("poll_once called before initialize")
        if self.stopping:
            return []

        self.health.polls += 1
        fills = await self._fetch()
        if fills is None:
            return []

        new = self.deduper.classify(fills)
        records = [TransactionRecord.from_fill(f, self.address) for f in new]
        if not records:
            return records

        self.health.new_fills += len(records)
        await self.log.extend(records)

        for record in records:
            try:
                await self._announce(record)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(
                    "Failed to announce fill at %d for %s",
                    record.timestamp,
                    short_address(self.address),
                )
        return records

    def next_delay(self) -> float:
        failures = self.health.consecutive_failures
        if failures == 0:
            return self.poll_interval
        return min(self.poll_interval * 2 ** min(failures, 16), self.max_backoff)

    async def _fetch(self) -> list[Fill] | None:
        try:
            fills = await self.source.fetch_fills(self.address)
        except asyncio.CancelledError:
            raise
        except FetchError as exc:
            self._record_failure()
            logger.warning("Fetch failed for %s: %s", short_address(self.address), exc)
            return None
        except Exception:
            self._record_failure()
            logger.exception("Unexpected error fetching fills for %s", short_address(self.address))
            return None

        self.health.consecutive_failures = 0
        self.health.last_success_ms = self.clock()
        if self.health.degraded:
            self.health.degraded = False
            logger.info("Monitor for %s recovered", short_address(self.address))
        return fills

    def _record_failure(self) -> None:
        self.health.fetch_failures += 1
        self.health.consecutive_failures += 1
        if not self.health.degraded and self.health.consecutive_failures >= self.degraded_after:
            self.health.degraded = True
            logger.warning(
                "Monitor for %s degraded after %d consecutive fetch failures",
                short_address(self.address),
                self.health.consecutive_failures,
            )

    async def _announce(self, record: TransactionRecord) -> None:
        logger.info(
            "New fill for %s: %s %s %s",
            short_address(self.address),
            format_time(record.timestamp),
            record.token,
            record.side,
        )
        if self.keys:
            await self._notify(record)

    async def _notify(self, record: TransactionRecord) -> None:
        title = format_title(record)
        body = format_body(self.address, record)
        try:
            result = await self.notifier.notify(title, body, self.keys)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self.health.notifications_failed += len(self.keys)
            logger.exception("Failed to notify fill for %s: %s", short_address(self.address), exc)
            return
        self.health.notifications_sent += result.sent
        self.health.notifications_failed += result.failed

    async def _wait(self, delay: float) -> bool:
        """Sleep for ``delay`` seconds; returns True if stopped meanwhile."""
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return False
        return True
