from __future__ import annotations

import asyncio
import logging

from .config import load_monitor_config, load_settings
from .service import MonitorService


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def _main() -> None:
    settings = load_settings()
    configure_logging(settings.log_level)
    config = load_monitor_config(settings.monitor_config_path)
    service = MonitorService(settings, config)
    await service.run()


def main() -> None:
    try:
        asyncio.run(_main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
