import asyncio

from hyperliquid_fill_monitor.config import MonitorConfig, Settings
from hyperliquid_fill_monitor.observation_log import ObservationLog
from hyperliquid_fill_monitor.service import MonitorService
from hyperliquid_fill_monitor.types import (
    Fill,
    MonitorKind,
    MonitorSpec,
    NotifyResult,
    TransactionRecord,
)


class DummySource:
    async def fetch_fills(self, address: str) -> list[Fill]:
        return []

    async def close(self) -> None:
        return None


class DummyNotifier:
    def __init__(self) -> None:
        self.closed = False

    async def notify(self, title, body, keys) -> NotifyResult:
        return NotifyResult(sent=len(keys))

    async def close(self) -> None:
        self.closed = True


def _settings() -> Settings:
    return Settings(
        hl_api_url="https://api.hyperliquid.xyz",
        monitor_config_path="monitor_config.json",
        poll_interval_seconds=0.01,
        backfill_window_seconds=3600,
        http_timeout_seconds=5.0,
        max_backoff_seconds=1.0,
        degraded_after_failures=6,
        health_log_interval_seconds=1000,
        log_level="INFO",
    )


def _service(config: MonitorConfig) -> MonitorService:
    return MonitorService(
        _settings(), config, source_factory=DummySource, notifier=DummyNotifier()
    )


def test_start_monitors_skips_unsupported_and_inactive() -> None:
    config = MonitorConfig(
        monitors=[
            MonitorSpec("0x1111111111111111111111111111111111111111", active=True),
            MonitorSpec("0x2222222222222222222222222222222222222222", MonitorKind.PERPETUALS, True),
            MonitorSpec("0x3333333333333333333333333333333333333333", active=False),
            MonitorSpec("0X1111111111111111111111111111111111111111", active=True),
        ],
        sendkeys=["KEY"],
    )
    service = _service(config)

    async def scenario():
        started = service.start_monitors()
        line = await service.health_line()
        await service.registry.shutdown()
        return started, line

    started, line = asyncio.run(scenario())
    assert started == 1
    assert len(service.registry.monitors()) == 2
    assert service.registry.keys == ["KEY"]
    assert "monitors=1" in line
    assert "records=0" in line
    assert "degraded=-" in line


def test_run_shuts_down_on_cancel() -> None:
    config = MonitorConfig(
        monitors=[MonitorSpec("0x1111111111111111111111111111111111111111", active=True)]
    )
    service = _service(config)

    async def scenario():
        task = asyncio.create_task(service.run())
        await asyncio.sleep(0.05)
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    asyncio.run(scenario())
    assert service.registry.health() == {}
    assert all(not m.active for m in service.registry.monitors())
    assert service.notifier.closed is True


def test_observation_log_snapshot_order() -> None:
    log = ObservationLog()
    records = [
        TransactionRecord(timestamp=i, token="ETH", side="buy", size=1.0, leverage=1.0, entry_price=1.0, address="0xabc")
        for i in range(3)
    ]

    async def scenario():
        await log.extend(records[:2])
        await log.extend([])
        await log.extend(records[2:])
        return await log.snapshot(), await log.newest_first(), await log.count()

    oldest_first, newest_first, count = asyncio.run(scenario())
    assert [r.timestamp for r in oldest_first] == [0, 1, 2]
    assert [r.timestamp for r in newest_first] == [2, 1, 0]
    assert count == 3
