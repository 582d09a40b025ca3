from __future__ import annotations

import asyncio
from collections.abc import Iterable

from .types import TransactionRecord


class ObservationLog:
    """Append-only record of fills shared by every monitor loop."""

    def __init__(self) -> None:
        self._records: list[TransactionRecord] = []
        self._lock = asyncio.Lock()

    async def count(self) -> int:
        async with self._lock:
            return len(self._records)

    async def extend(self, records: Iterable[TransactionRecord]) -> None:
        batch = list(records)
        if not batch:
            return
        async with self._lock:
            self._records.extend(batch)

    async def snapshot(self) -> list[TransactionRecord]:
        async with self._lock:
            return list(self._records)

    async def newest_first(self) -> list[TransactionRecord]:
        records = await self.snapshot()
        records.reverse()
        return records
