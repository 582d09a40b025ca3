from __future__ import annotations

from collections.abc import Iterable

from .types import Fill


class FillDeduper:
    """Per-monitor record of fill ids already observed.

    Only fills strictly newer than ``cutoff_ms`` can be reported as new, so a
    monitor never replays history as live alerts.
    """

    def __init__(self, cutoff_ms: int) -> None:
        self.cutoff_ms = cutoff_ms
        self._seen: set[str] = set()

    def __len__(self) -> int:
        return len(self._seen)

    def seen(self, fill_id: str) -> bool:
        return fill_id in self._seen

    def classify(self, fills: Iterable[Fill]) -> list[Fill]:
        new: list[Fill] = []
        for fill in fills:
            fill_id = fill.fill_id
            if fill_id in self._seen:
                continue
            self._seen.add(fill_id)
            if fill.time > self.cutoff_ms:
                new.append(fill)
        return new

    def bootstrap(self, fills: Iterable[Fill], backfill_ms: int) -> list[Fill]:
        """Mark every fill as seen and return the ones inside the backfill window."""
        window_start = self.cutoff_ms - backfill_ms
        recent: list[Fill] = []
        for fill in fills:
            fill_id = fill.fill_id
            if fill_id in self._seen:
                continue
            self._seen.add(fill_id)
            if fill.time > window_start:
                recent.append(fill)
        return recent
